"""Flattens collected signature images into the original PDF.

Fields whose ``signature_data`` is shorter than ``MIN_SIGNATURE_DATA_LENGTH``
are placeholders and never embedded. Each drawable field is mapped from the
logical canvas onto its page and painted through a reportlab overlay that is
merged onto the page; an undecodable image or a page index outside the
document skips that one field and the run continues. The signed file is stored
as a new blob before the document changes state, so a failure at any earlier
step leaves the document untouched.
"""

from __future__ import annotations

import base64
import binascii
import io
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Tuple
from uuid import UUID

from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, UnidentifiedImageError
from pypdf import PdfReader, PdfWriter
from pypdf.errors import PyPdfError
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas
from sqlmodel import Session, select

from securesign.core.errors import (
    ActiveGuestsPending,
    DocumentNotPending,
    Forbidden,
    InvalidPageIndex,
    NotFound,
    NothingToSign,
    SourceFetchFailed,
)
from securesign.core.logging_setup import logger
from securesign.models.audit import AuditAction
from securesign.models.document import Document
from securesign.models.invitation import Invitation, InvitationStatus
from securesign.models.signature import SignatureField
from securesign.services.access import Actor, Capability
from securesign.services.audit import AuditService, RequestMeta
from securesign.services.coordinates import to_page_space
from securesign.services.lifecycle import DocumentLifecycle, ensure_pending
from securesign.services.realtime import DOCUMENT_UPDATED, DocumentEventHub
from securesign.services.storage import SIGNED_ROOT, StorageBackend, build_blob_name, get_storage

MIN_SIGNATURE_DATA_LENGTH = 100
ALLOWED_SIGNATURE_IMAGE_MIMES = {"image/png": "PNG", "image/jpeg": "JPEG"}


class SignatureImageError(ValueError):
    pass


@dataclass(frozen=True)
class FieldPlacement:
    field_id: UUID
    page: int
    x: float
    y: float
    width: float
    height: float
    rotation: int = 0


@dataclass(frozen=True)
class SkippedField:
    field_id: UUID
    reason: str


@dataclass
class FinalizationResult:
    document: Document
    placements: list[FieldPlacement] = field(default_factory=list)
    skipped: list[SkippedField] = field(default_factory=list)


def decode_signature_image(payload: str) -> Tuple[bytes, str]:
    """Split a ``data:image/...;base64,`` URI and check the bytes are a real image."""
    data = (payload or "").strip()
    if not data.startswith("data:"):
        raise SignatureImageError("Signature image must be a data URI.")
    try:
        header, encoded = data.split(",", 1)
    except ValueError as exc:
        raise SignatureImageError("Malformed signature data URI.") from exc
    if ";base64" not in header:
        raise SignatureImageError("Signature image must be base64 encoded.")
    mime = header[len("data:"):].split(";", 1)[0].strip().lower()
    if mime not in ALLOWED_SIGNATURE_IMAGE_MIMES:
        raise SignatureImageError(f"Unsupported signature image type: {mime or 'unknown'}.")
    try:
        content = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise SignatureImageError("Signature image is not valid base64.") from exc
    if not content:
        raise SignatureImageError("Signature image is empty.")

    try:
        with Image.open(io.BytesIO(content)) as image:
            detected = image.format
            image.verify()
        # verify() only checks chunk structure; load() decompresses the pixels.
        with Image.open(io.BytesIO(content)) as image:
            image.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as exc:
        raise SignatureImageError("Signature image could not be decoded.") from exc
    if detected != ALLOWED_SIGNATURE_IMAGE_MIMES[mime]:
        raise SignatureImageError(f"Signature image declared as {mime} but contains {detected}.")
    return content, mime


class FinalizationEngine:
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

    def finalize(
        self,
        document_id: UUID,
        actor: Actor,
        meta: RequestMeta | None = None,
    ) -> FinalizationResult:
        document = self.session.get(Document, document_id)
        if document is None:
            raise NotFound("Document not found.")
        ensure_pending(document)
        actor.require(Capability.FINALIZE)
        if actor.is_owner and self._active_invitations(document.id):
            raise ActiveGuestsPending()
        if actor.is_guest and actor.invitation is None:
            raise Forbidden("Finalizing requires an invitation link.")

        fields = self._drawable_fields(document.id)
        if not fields:
            raise NothingToSign()

        reader = self._load_original(document)
        placements, skipped = self._embed(reader, fields)
        signed_pdf = self._render(reader)

        signed_ref = self.storage.save_bytes(
            root=SIGNED_ROOT,
            name=build_blob_name(document.filename, suffix="-signed.pdf"),
            data=signed_pdf,
        )
        try:
            DocumentLifecycle(self.session).mark_signed(document, signed_ref)
        except DocumentNotPending:
            logger.warning("Orphaned signed blob %s left for document %s", signed_ref, document_id)
            raise

        self._complete_invitations(document.id, actor)
        details = f"Embedded {len(placements)} signature(s)"
        if skipped:
            details += "; skipped " + ", ".join(f"{item.field_id} ({item.reason})" for item in skipped)
        self.audit_service.record_event(
            AuditAction.FINALIZE,
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

        logger.info(
            "Document %s finalized by %s: %d embedded, %d skipped",
            document.id,
            actor.role,
            len(placements),
            len(skipped),
        )
        if self.event_hub is not None:
            self.event_hub.publish(document.id, DOCUMENT_UPDATED, {"action": "finalized", "status": document.status.value})
        return FinalizationResult(document=document, placements=placements, skipped=skipped)

    def _active_invitations(self, document_id: UUID) -> list[Invitation]:
        statement = select(Invitation).where(
            Invitation.document_id == document_id,
            Invitation.status == InvitationStatus.PENDING,
        )
        return [item for item in self.session.exec(statement).all() if not item.is_expired]

    def _drawable_fields(self, document_id: UUID) -> list[SignatureField]:
        statement = (
            select(SignatureField)
            .where(SignatureField.document_id == document_id)
            .order_by(SignatureField.page, SignatureField.created_at)
        )
        return [
            item
            for item in self.session.exec(statement).all()
            if item.signature_data and len(item.signature_data) >= MIN_SIGNATURE_DATA_LENGTH
        ]

    def _load_original(self, document: Document) -> PdfReader:
        try:
            content = self.storage.load_bytes(document.original_blob_ref)
        except (OSError, ValueError, BotoCoreError, ClientError) as exc:
            logger.error("Could not fetch original of document %s: %s", document.id, exc)
            raise SourceFetchFailed() from exc
        try:
            return PdfReader(io.BytesIO(content))
        except (PyPdfError, ValueError) as exc:
            logger.error("Original of document %s is not a readable PDF: %s", document.id, exc)
            raise SourceFetchFailed("Original document could not be parsed.") from exc

    def _embed(
        self,
        reader: PdfReader,
        fields: list[SignatureField],
    ) -> tuple[list[FieldPlacement], list[SkippedField]]:
        placements: list[FieldPlacement] = []
        skipped: list[SkippedField] = []
        by_page: dict[int, list[tuple[FieldPlacement, bytes]]] = defaultdict(list)
        page_count = len(reader.pages)

        for item in fields:
            try:
                if not 1 <= item.page <= page_count:
                    raise InvalidPageIndex(f"Page {item.page} does not exist (document has {page_count}).")
                image_bytes, _mime = decode_signature_image(item.signature_data or "")
            except InvalidPageIndex as exc:
                logger.warning("Skipping field %s: %s", item.id, exc.message)
                skipped.append(SkippedField(field_id=item.id, reason=exc.code))
                continue
            except SignatureImageError as exc:
                logger.warning("Skipping field %s: %s", item.id, exc)
                skipped.append(SkippedField(field_id=item.id, reason="invalid_image"))
                continue

            page = reader.pages[item.page - 1]
            rotation = int(page.rotation or 0) % 360
            if rotation:
                logger.warning(
                    "Page %d is rotated %d degrees; field %s placed without rotation",
                    item.page,
                    rotation,
                    item.id,
                )
            box = page.mediabox
            mapped = to_page_space(
                x=item.x,
                y=item.y,
                width=item.width,
                height=item.height,
                page_width=float(box.width),
                page_height=float(box.height),
            )
            placement = FieldPlacement(
                field_id=item.id,
                page=item.page,
                x=mapped.x + float(box.left),
                y=mapped.y + float(box.bottom),
                width=mapped.width,
                height=mapped.height,
                rotation=rotation,
            )
            placements.append(placement)
            by_page[item.page - 1].append((placement, image_bytes))

        for index, items in by_page.items():
            self._stamp_page(reader, index, items)
        return placements, skipped

    @staticmethod
    def _stamp_page(reader: PdfReader, index: int, items: list[tuple[FieldPlacement, bytes]]) -> None:
        page = reader.pages[index]
        box = page.mediabox
        overlay_stream = io.BytesIO()
        overlay = canvas.Canvas(overlay_stream, pagesize=(float(box.right), float(box.top)))
        for placement, image_bytes in items:
            overlay.drawImage(
                ImageReader(io.BytesIO(image_bytes)),
                placement.x,
                placement.y,
                width=placement.width,
                height=placement.height,
                mask="auto",
            )
        overlay.save()
        overlay_stream.seek(0)
        page.merge_page(PdfReader(overlay_stream).pages[0])

    @staticmethod
    def _render(reader: PdfReader) -> bytes:
        writer = PdfWriter()
        for page in reader.pages:
            writer.add_page(page)
        output = io.BytesIO()
        writer.write(output)
        return output.getvalue()

    def _complete_invitations(self, document_id: UUID, actor: Actor) -> None:
        now = datetime.utcnow()
        if actor.invitation is not None:
            targets = [actor.invitation]
        else:
            statement = select(Invitation).where(
                Invitation.document_id == document_id,
                Invitation.status == InvitationStatus.PENDING,
            )
            targets = list(self.session.exec(statement).all())
        for invitation in targets:
            invitation.status = InvitationStatus.COMPLETED
            invitation.updated_at = now
            self.session.add(invitation)
