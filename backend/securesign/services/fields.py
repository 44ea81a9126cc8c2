from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlmodel import Session, select

from securesign.core.errors import Forbidden, NotFound, SigningError
from securesign.core.logging_setup import logger
from securesign.models.audit import AuditAction
from securesign.models.document import Document
from securesign.models.signature import SignatureField
from securesign.services.access import Actor, Capability
from securesign.services.audit import AuditService, RequestMeta
from securesign.services.coordinates import validate_field_geometry
from securesign.services.lifecycle import ensure_pending
from securesign.services.realtime import DOCUMENT_UPDATED, DocumentEventHub

MUTABLE_FIELD_ATTRIBUTES = ("page", "x", "y", "width", "height", "signature_data")


class FieldService:
    """CRUD over signature fields. Callers arrive already resolved to an Actor."""

    def __init__(
        self,
        session: Session,
        event_hub: DocumentEventHub | None = None,
        audit_service: AuditService | None = None,
    ) -> None:
        self.session = session
        self.event_hub = event_hub
        self.audit_service = audit_service or AuditService(session)

    def _get_document(self, document_id: UUID) -> Document:
        document = self.session.get(Document, document_id)
        if document is None:
            raise NotFound("Document not found.")
        return document

    def _get_field(self, field_id: UUID) -> SignatureField:
        field = self.session.get(SignatureField, field_id)
        if field is None:
            raise NotFound("Signature not found.")
        return field

    def _publish(self, document_id: UUID, **payload: Any) -> None:
        if self.event_hub is not None:
            self.event_hub.publish(document_id, DOCUMENT_UPDATED, payload)

    def _record_sign(self, field: SignatureField, actor: Actor, meta: RequestMeta | None) -> None:
        self.audit_service.record_event(
            AuditAction.SIGN,
            field.document_id,
            actor_id=actor.actor_id,
            actor_email=actor.email,
            signer_name=field.signer_name,
            meta=meta,
            details=f"Signature field {field.id} on page {field.page}",
            commit=False,
        )

    def _ensure_editable(self, document: Document, actor: Actor) -> None:
        ensure_pending(document)
        actor.require(Capability.EDIT_FIELDS)

    def list_fields(self, document_id: UUID, actor: Actor) -> list[SignatureField]:
        self._get_document(document_id)
        actor.require(Capability.VIEW)
        statement = (
            select(SignatureField)
            .where(SignatureField.document_id == document_id)
            .order_by(SignatureField.page, SignatureField.created_at)
        )
        return list(self.session.exec(statement).all())

    def create_field(
        self,
        document_id: UUID,
        *,
        page: int,
        x: float,
        y: float,
        width: float,
        height: float,
        actor: Actor,
        signature_data: str | None = None,
        signer_name: str | None = None,
        meta: RequestMeta | None = None,
    ) -> SignatureField:
        document = self._get_document(document_id)
        self._ensure_editable(document, actor)
        validate_field_geometry(page=page, x=x, y=y, width=width, height=height)

        if actor.is_guest and not actor.email:
            raise SigningError("Signer e-mail is required for shared links.")

        field = SignatureField(
            document_id=document.id,
            user_id=actor.actor_id if actor.is_owner else None,
            signer_email=actor.email,
            signer_name=(signer_name or "").strip() or actor.name,
            page=int(page),
            x=x,
            y=y,
            width=width,
            height=height,
            signature_data=signature_data or None,
        )
        if field.signature_data:
            field.signed_at = datetime.utcnow()
            self._record_sign(field, actor, meta)
        self.session.add(field)
        self.session.commit()
        self.session.refresh(field)

        logger.info("Field %s created on document %s by %s", field.id, document.id, actor.role)
        self._publish(document.id, action="field-created", field_id=str(field.id))
        return field

    def update_field(
        self,
        field_id: UUID,
        changes: dict[str, Any],
        actor: Actor,
        meta: RequestMeta | None = None,
    ) -> SignatureField:
        field = self._get_field(field_id)
        document = self._get_document(field.document_id)
        self._ensure_editable(document, actor)
        if not actor.owns_field(field):
            raise Forbidden("Not authorized to update this signature.")

        provided = {
            key: value
            for key, value in changes.items()
            if key in MUTABLE_FIELD_ATTRIBUTES and (value is not None or key == "signature_data")
        }
        validate_field_geometry(
            page=provided.get("page"),
            x=provided.get("x"),
            y=provided.get("y"),
            width=provided.get("width"),
            height=provided.get("height"),
        )
        for key, value in provided.items():
            setattr(field, key, value)

        if provided.get("signature_data"):
            field.signed_at = datetime.utcnow()
            self._record_sign(field, actor, meta)
        elif "signature_data" in provided:
            field.signature_data = None
            field.signed_at = None

        field.updated_at = datetime.utcnow()
        self.session.add(field)
        self.session.commit()
        self.session.refresh(field)

        self._publish(field.document_id, action="field-updated", field_id=str(field.id))
        return field

    def delete_field(self, field_id: UUID, actor: Actor) -> None:
        field = self._get_field(field_id)
        document = self._get_document(field.document_id)
        self._ensure_editable(document, actor)
        if not actor.owns_field(field):
            raise Forbidden("Not authorized to delete this signature.")

        self.session.delete(field)
        self.session.commit()
        self._publish(document.id, action="field-deleted", field_id=str(field_id))

    def delete_all_fields_for_caller(
        self,
        document_id: UUID,
        actor: Actor,
        meta: RequestMeta | None = None,
    ) -> int:
        document = self._get_document(document_id)
        self._ensure_editable(document, actor)

        statement = select(SignatureField).where(SignatureField.document_id == document.id)
        own_fields = [field for field in self.session.exec(statement).all() if actor.owns_field(field)]
        for field in own_fields:
            self.session.delete(field)
        self.audit_service.record_event(
            AuditAction.CLEAR,
            document.id,
            actor_id=actor.actor_id,
            actor_email=actor.email,
            signer_name=actor.name,
            meta=meta,
            details=f"Removed {len(own_fields)} signature field(s)",
            commit=False,
        )
        self.session.commit()

        logger.info("Cleared %d field(s) of %s on document %s", len(own_fields), actor.email, document.id)
        self._publish(document.id, action="fields-cleared", count=len(own_fields))
        return len(own_fields)
