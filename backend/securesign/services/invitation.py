from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from sqlmodel import Session, select

from securesign.core.config import settings
from securesign.core.errors import (
    CannotRevokeSignedDocument,
    DuplicateActiveInvitation,
    Forbidden,
    NotFound,
    SigningError,
)
from securesign.core.logging_setup import logger
from securesign.models.audit import AuditAction
from securesign.models.document import Document, DocumentStatus
from securesign.models.invitation import Invitation, InvitationRole, InvitationStatus
from securesign.models.user import User
from securesign.services.access import require_owner
from securesign.services.audit import AuditService, RequestMeta
from securesign.services.lifecycle import DocumentLifecycle, ensure_pending
from securesign.services.notification import InvitationEmail, NotificationService
from securesign.utils.email_validation import normalize_email
from securesign.utils.security import generate_guest_token, generate_share_token, hash_token


@dataclass
class InvitationResult:
    invitation: Invitation
    link: str
    email_sent: bool


def build_guest_link(token: str) -> str:
    return f"{settings.resolved_public_app_url()}/sign/{token}"


class InvitationService:
    def __init__(
        self,
        session: Session,
        notification_service: NotificationService | None = None,
        audit_service: AuditService | None = None,
    ) -> None:
        self.session = session
        self.notification_service = notification_service or NotificationService()
        self.audit_service = audit_service or AuditService(session)

    def active_invitations(self, document: Document) -> list[Invitation]:
        statement = select(Invitation).where(
            Invitation.document_id == document.id,
            Invitation.status == InvitationStatus.PENDING,
        )
        return [item for item in self.session.exec(statement).all() if not item.is_expired]

    def list_invitations(self, document: Document, owner: User | None) -> list[Invitation]:
        require_owner(document, owner)
        statement = (
            select(Invitation)
            .where(Invitation.document_id == document.id)
            .order_by(Invitation.created_at.desc())
        )
        return list(self.session.exec(statement).all())

    def invite(
        self,
        document: Document,
        owner: User | None,
        *,
        name: str,
        email: str,
        role: InvitationRole = InvitationRole.SIGNER,
        meta: RequestMeta | None = None,
    ) -> InvitationResult:
        owner = require_owner(document, owner)
        ensure_pending(document)

        display_name = (name or "").strip()
        if not display_name:
            raise SigningError("Name is required.")
        try:
            normalized_email = normalize_email(email)
        except ValueError as exc:
            raise SigningError(str(exc)) from exc

        if any(item.email == normalized_email for item in self.active_invitations(document)):
            raise DuplicateActiveInvitation()

        raw_token = generate_guest_token()
        invitation = Invitation(
            document_id=document.id,
            sender_id=owner.id,
            name=display_name,
            email=normalized_email,
            role=role,
            token_hash=hash_token(raw_token),
            status=InvitationStatus.PENDING,
            expires_at=datetime.utcnow() + timedelta(days=settings.invitation_ttl_days),
        )
        self.session.add(invitation)
        self.audit_service.record_event(
            AuditAction.SHARE,
            document.id,
            actor_id=owner.id,
            actor_email=owner.email,
            meta=meta,
            details=f"Invited {normalized_email} as {role.value}",
            commit=False,
        )
        self.session.commit()
        self.session.refresh(invitation)

        link = build_guest_link(raw_token)
        email_sent = self.notification_service.send_invitation_email(
            InvitationEmail(
                sender_name=owner.full_name,
                recipient_email=normalized_email,
                recipient_name=display_name,
                document_name=document.filename,
                role=role.value,
                link=link,
            )
        )
        if not email_sent:
            logger.warning("Invitation %s created but e-mail delivery failed", invitation.id)
        return InvitationResult(invitation=invitation, link=link, email_sent=email_sent)

    def revoke(
        self,
        invitation_id: UUID,
        owner: User | None,
        meta: RequestMeta | None = None,
    ) -> Document:
        invitation = self.session.get(Invitation, invitation_id)
        if invitation is None:
            raise NotFound("Invitation not found.")
        document = self.session.get(Document, invitation.document_id)
        if document is None:
            raise NotFound("Document not found.")
        if owner is None or document.owner_id != owner.id:
            raise Forbidden()
        if document.status == DocumentStatus.SIGNED:
            raise CannotRevokeSignedDocument()

        revoked_email = invitation.email
        self.session.delete(invitation)
        self.session.flush()

        if document.status == DocumentStatus.REJECTED and not self._has_rejections(document.id):
            DocumentLifecycle(self.session).recover(document)
            logger.info("Document %s recovered to Pending after revoking %s", document.id, revoked_email)

        self.audit_service.record_event(
            AuditAction.REVOKE,
            document.id,
            actor_id=owner.id,
            actor_email=owner.email,
            meta=meta,
            details=f"Revoked invitation for {revoked_email}",
            commit=False,
        )
        self.session.commit()
        self.session.refresh(document)
        return document

    def _has_rejections(self, document_id: UUID) -> bool:
        statement = select(Invitation).where(
            Invitation.document_id == document_id,
            Invitation.status == InvitationStatus.REJECTED,
        )
        return self.session.exec(statement).first() is not None

    def share_link(
        self,
        document: Document,
        owner: User | None,
        meta: RequestMeta | None = None,
    ) -> str:
        owner = require_owner(document, owner)
        ensure_pending(document)
        if not document.share_token:
            document.share_token = generate_share_token()
            document.updated_at = datetime.utcnow()
            self.session.add(document)
            self.audit_service.record_event(
                AuditAction.SHARE,
                document.id,
                actor_id=owner.id,
                actor_email=owner.email,
                meta=meta,
                details="Generated share link",
                commit=False,
            )
            self.session.commit()
            self.session.refresh(document)
        return build_guest_link(document.share_token)
