from __future__ import annotations

import io
from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from botocore.exceptions import BotoCoreError, ClientError
from pypdf import PdfReader
from pypdf.errors import PyPdfError
from sqlmodel import Session, select

from securesign.core.config import settings
from securesign.core.errors import InvalidUpload, NotFound, SourceFetchFailed
from securesign.core.logging_setup import logger
from securesign.models.audit import AuditAction
from securesign.models.document import Document, DocumentStatus
from securesign.models.invitation import Invitation, InvitationStatus
from securesign.models.signature import SignatureField
from securesign.models.user import User
from securesign.services.access import AccessGate, Actor, Capability, require_owner
from securesign.services.audit import AuditService, RequestMeta
from securesign.services.lifecycle import DocumentLifecycle, ensure_pending
from securesign.services.realtime import DOCUMENT_UPDATED, DocumentEventHub
from securesign.services.storage import ORIGINALS_ROOT, StorageBackend, build_blob_name, get_storage

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf", "application/octet-stream"}


@dataclass
class DocumentOverview:
    document: Document
    actor: Actor | None = None
    invitations: list[Invitation] = field(default_factory=list)
    fields: list[SignatureField] = field(default_factory=list)


@dataclass
class DownloadTarget:
    filename: str
    blob_ref: str
    url: str | None = None
    content: bytes | None = None


class DocumentService:
    def __init__(
        self,
        session: Session,
        storage: StorageBackend | None = None,
        event_hub: DocumentEventHub | None = None,
        audit_service: AuditService | None = None,
    ) -> None:
        self.session = session
        self.storage = storage or get_storage()
        self.event_hub = event_hub
        self.audit_service = audit_service or AuditService(session)
        self.access_gate = AccessGate(session)

    def get_document(self, document_id: UUID) -> Document:
        document = self.session.get(Document, document_id)
        if document is None:
            raise NotFound("Document not found.")
        return document

    def _invitations(self, document_id: UUID) -> list[Invitation]:
        statement = (
            select(Invitation)
            .where(Invitation.document_id == document_id)
            .order_by(Invitation.created_at.desc())
        )
        return list(self.session.exec(statement).all())

    def _fields(self, document_id: UUID) -> list[SignatureField]:
        statement = (
            select(SignatureField)
            .where(SignatureField.document_id == document_id)
            .order_by(SignatureField.page, SignatureField.created_at)
        )
        return list(self.session.exec(statement).all())

    def upload(
        self,
        owner: User,
        *,
        filename: str | None,
        content: bytes,
        content_type: str | None = None,
        meta: RequestMeta | None = None,
    ) -> Document:
        name = (filename or "").strip() or "document.pdf"
        if content_type and content_type.lower() not in PDF_CONTENT_TYPES:
            raise InvalidUpload("Only PDF files are allowed.")
        if not content:
            raise InvalidUpload("Uploaded file is empty.")
        if len(content) > settings.max_upload_bytes:
            raise InvalidUpload("Uploaded file exceeds the size limit.")
        try:
            page_count = len(PdfReader(io.BytesIO(content)).pages)
        except (PyPdfError, ValueError) as exc:
            raise InvalidUpload() from exc
        if page_count == 0:
            raise InvalidUpload("PDF has no pages.")

        blob_ref = self.storage.save_bytes(root=ORIGINALS_ROOT, name=build_blob_name(name), data=content)
        document = Document(
            owner_id=owner.id,
            filename=name,
            original_blob_ref=blob_ref,
            status=DocumentStatus.PENDING,
        )
        self.session.add(document)
        self.session.flush()
        self.audit_service.record_event(
            AuditAction.UPLOAD,
            document.id,
            actor_id=owner.id,
            actor_email=owner.email,
            meta=meta,
            details=f"{name} ({page_count} page(s))",
            commit=False,
        )
        self.session.commit()
        self.session.refresh(document)
        logger.info("Document %s uploaded by %s", document.id, owner.email)
        return document

    def list_for_owner(self, owner: User) -> list[DocumentOverview]:
        statement = (
            select(Document)
            .where(Document.owner_id == owner.id)
            .order_by(Document.created_at.desc())
        )
        return [
            DocumentOverview(
                document=document,
                invitations=self._invitations(document.id),
                fields=self._fields(document.id),
            )
            for document in self.session.exec(statement).all()
        ]

    def view(
        self,
        document_id: UUID,
        *,
        user: User | None = None,
        token: str | None = None,
        signer_email: str | None = None,
        meta: RequestMeta | None = None,
    ) -> DocumentOverview:
        document = self.get_document(document_id)
        actor = self.access_gate.resolve(document, user=user, token=token, signer_email=signer_email)
        actor.require(Capability.VIEW)
        self._record_view(document, actor, meta)

        overview = DocumentOverview(document=document, actor=actor, fields=self._fields(document.id))
        if actor.is_owner:
            overview.invitations = self._invitations(document.id)
        return overview

    def public_view(self, token: str, meta: RequestMeta | None = None) -> DocumentOverview:
        document, actor = self.access_gate.resolve_public(token)
        self._record_view(document, actor, meta)
        return DocumentOverview(document=document, actor=actor, fields=self._fields(document.id))

    def _record_view(self, document: Document, actor: Actor, meta: RequestMeta | None) -> None:
        self.audit_service.record_event(
            AuditAction.VIEW,
            document.id,
            actor_id=actor.actor_id,
            actor_email=actor.email,
            signer_name=actor.name,
            meta=meta,
            details=f"Viewed as {actor.role}",
        )

    def reject(
        self,
        document_id: UUID,
        *,
        user: User | None = None,
        token: str | None = None,
        signer_email: str | None = None,
        signer_name: str | None = None,
        reason: str | None = None,
        meta: RequestMeta | None = None,
    ) -> Document:
        document = self.get_document(document_id)
        ensure_pending(document)
        actor = self.access_gate.resolve(
            document,
            user=user,
            token=token,
            signer_email=signer_email,
            signer_name=signer_name,
        )
        actor.require(Capability.REJECT)

        DocumentLifecycle(self.session).mark_rejected(document)
        if actor.invitation is not None:
            actor.invitation.status = InvitationStatus.REJECTED
            actor.invitation.updated_at = datetime.utcnow()
            self.session.add(actor.invitation)

        details = f"Rejected by {actor.role}"
        if reason:
            details += f": {reason.strip()}"
        self.audit_service.record_event(
            AuditAction.REJECT,
            document.id,
            actor_id=actor.actor_id,
            actor_email=actor.email,
            signer_name=actor.name,
            meta=meta,
            details=details,
            commit=False,
        )
        self.session.commit()
        self.session.refresh(document)

        if self.event_hub is not None:
            self.event_hub.publish(document.id, DOCUMENT_UPDATED, {"action": "rejected", "status": document.status.value})
        return document

    def download(
        self,
        document_id: UUID,
        *,
        user: User | None = None,
        token: str | None = None,
        meta: RequestMeta | None = None,
    ) -> DownloadTarget:
        document = self.get_document(document_id)
        actor = self.access_gate.resolve(document, user=user, token=token)
        actor.require(Capability.VIEW)

        signed = document.status == DocumentStatus.SIGNED and bool(document.signed_blob_ref)
        blob_ref = document.signed_blob_ref if signed else document.original_blob_ref
        stem = document.filename.rsplit(".", 1)[0] if "." in document.filename else document.filename
        filename = f"{stem}-signed.pdf" if signed else document.filename

        url = self.storage.presigned_url(path=blob_ref)
        content: bytes | None = None
        if url is None:
            try:
                content = self.storage.load_bytes(blob_ref)
            except OSError as exc:
                logger.error("Blob %s for document %s is missing: %s", blob_ref, document.id, exc)
                raise SourceFetchFailed("Could not fetch the document file.") from exc

        self.audit_service.record_event(
            AuditAction.DOWNLOAD,
            document.id,
            actor_id=actor.actor_id,
            actor_email=actor.email,
            signer_name=actor.name,
            meta=meta,
            details="signed" if signed else "original",
        )
        return DownloadTarget(filename=filename, blob_ref=blob_ref, url=url, content=content)

    def delete(self, document_id: UUID, owner: User | None) -> None:
        document = self.get_document(document_id)
        require_owner(document, owner)

        blobs = [ref for ref in (document.original_blob_ref, document.signed_blob_ref) if ref]
        for item in self._fields(document.id):
            self.session.delete(item)
        for invitation in self._invitations(document.id):
            self.session.delete(invitation)
        self.session.flush()
        self.session.delete(document)
        self.session.commit()

        for ref in blobs:
            try:
                self.storage.delete(ref)
            except (OSError, BotoCoreError, ClientError) as exc:
                logger.warning("Could not remove blob %s: %s", ref, exc)
        logger.info("Document %s deleted by %s", document_id, owner.email if owner else None)
