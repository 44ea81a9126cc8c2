"""Resolves callers to an :class:`Actor` and checks what they may do.

A caller is either the document owner (bearer session) or a guest holding a
token. Invitation tokens are looked up first; the legacy document-wide share
token is the fallback and grants the Signer role. When a token is supplied it
takes precedence over the session, so an owner opening a guest link acts as
that guest.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlmodel import Session, select

from securesign.core.errors import (
    AuthenticationRequired,
    Expired,
    Forbidden,
    InvalidToken,
    NotFound,
)
from securesign.models.document import Document
from securesign.models.invitation import Invitation, InvitationRole, InvitationStatus
from securesign.models.signature import SignatureField
from securesign.models.user import User
from securesign.utils.security import hash_token

OWNER_ROLE = "Owner"


class Capability(str, Enum):
    VIEW = "view"
    EDIT_FIELDS = "edit_fields"
    FINALIZE = "finalize"
    REJECT = "reject"


_ALL = frozenset(Capability)

ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    OWNER_ROLE: _ALL,
    InvitationRole.SIGNER.value: _ALL,
    InvitationRole.WITNESS.value: _ALL,
    InvitationRole.APPROVER.value: _ALL,
    InvitationRole.VIEWER.value: frozenset({Capability.VIEW}),
}

_CAPABILITY_LABELS = {
    Capability.VIEW: "view this document",
    Capability.EDIT_FIELDS: "place or edit signatures",
    Capability.FINALIZE: "finalize this document",
    Capability.REJECT: "reject this document",
}


class ActorKind(str, Enum):
    OWNER = "owner"
    GUEST = "guest"


@dataclass
class Actor:
    kind: ActorKind
    document_id: UUID
    role: str
    capabilities: frozenset[Capability]
    user: User | None = None
    invitation: Invitation | None = None
    email: str | None = None
    name: str | None = None

    @property
    def is_owner(self) -> bool:
        return self.kind == ActorKind.OWNER

    @property
    def is_guest(self) -> bool:
        return self.kind == ActorKind.GUEST

    @property
    def actor_id(self) -> UUID | None:
        return self.user.id if self.user else None

    def can(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def require(self, capability: Capability) -> None:
        if not self.can(capability):
            raise Forbidden(f"Your role ({self.role}) does not allow you to {_CAPABILITY_LABELS[capability]}.")

    def owns_field(self, field: SignatureField) -> bool:
        if field.document_id != self.document_id:
            return False
        if self.is_owner:
            return self.user is not None and field.user_id == self.user.id
        return field.user_id is None and bool(self.email) and field.signer_email == self.email


def _owner_actor(document: Document, user: User) -> Actor:
    return Actor(
        kind=ActorKind.OWNER,
        document_id=document.id,
        role=OWNER_ROLE,
        capabilities=ROLE_CAPABILITIES[OWNER_ROLE],
        user=user,
        email=user.email,
        name=user.full_name,
    )


def _guest_actor(
    document: Document,
    role: InvitationRole,
    *,
    invitation: Invitation | None = None,
    email: str | None = None,
    name: str | None = None,
) -> Actor:
    return Actor(
        kind=ActorKind.GUEST,
        document_id=document.id,
        role=role.value,
        capabilities=ROLE_CAPABILITIES[role.value],
        invitation=invitation,
        email=email,
        name=name,
    )


def require_owner(document: Document, user: User | None) -> User:
    if user is None:
        raise AuthenticationRequired()
    if document.owner_id != user.id:
        raise Forbidden()
    return user


class AccessGate:
    def __init__(self, session: Session) -> None:
        self.session = session

    def find_invitation(self, token: str | None) -> Invitation | None:
        normalized = (token or "").strip()
        if not normalized:
            return None
        statement = select(Invitation).where(Invitation.token_hash == hash_token(normalized))
        return self.session.exec(statement).first()

    def resolve(
        self,
        document: Document,
        user: User | None = None,
        token: str | None = None,
        signer_email: str | None = None,
        signer_name: str | None = None,
    ) -> Actor:
        normalized_token = (token or "").strip()
        if normalized_token:
            return self._resolve_guest(document, normalized_token, signer_email, signer_name)
        if user is None:
            raise AuthenticationRequired()
        if document.owner_id != user.id:
            raise Forbidden()
        return _owner_actor(document, user)

    def _resolve_guest(
        self,
        document: Document,
        token: str,
        signer_email: str | None,
        signer_name: str | None,
    ) -> Actor:
        invitation = self.find_invitation(token)
        if invitation is not None:
            if invitation.document_id != document.id:
                raise InvalidToken()
            self._ensure_not_expired(invitation)
            return _guest_actor(
                document,
                invitation.role,
                invitation=invitation,
                email=invitation.email,
                name=invitation.name,
            )

        if document.share_token and secrets.compare_digest(document.share_token, token):
            email = (signer_email or "").strip().lower() or None
            if email and self._is_invited_email(document, email):
                raise Forbidden("This e-mail belongs to an invited guest; use the invitation link.")
            name = (signer_name or "").strip() or None
            return _guest_actor(document, InvitationRole.SIGNER, email=email, name=name)

        raise InvalidToken()

    def _is_invited_email(self, document: Document, email: str) -> bool:
        statement = select(Invitation.id).where(
            Invitation.document_id == document.id,
            Invitation.email == email,
        )
        return self.session.exec(statement).first() is not None

    @staticmethod
    def _ensure_not_expired(invitation: Invitation) -> None:
        if invitation.status == InvitationStatus.PENDING and invitation.is_expired:
            raise Expired()

    def resolve_public(self, token: str) -> tuple[Document, Actor]:
        """Guest landing: find the document a bare token points at."""
        normalized = (token or "").strip()
        if not normalized:
            raise InvalidToken()

        invitation = self.find_invitation(normalized)
        if invitation is not None:
            self._ensure_not_expired(invitation)
            document = self.session.get(Document, invitation.document_id)
            if document is None:
                raise NotFound("Document not found.")
            return document, _guest_actor(
                document,
                invitation.role,
                invitation=invitation,
                email=invitation.email,
                name=invitation.name,
            )

        document = self.session.exec(select(Document).where(Document.share_token == normalized)).first()
        if document is None:
            raise InvalidToken()
        return document, _guest_actor(document, InvitationRole.SIGNER)
