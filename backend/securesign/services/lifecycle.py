from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session

from securesign.core.errors import DocumentNotPending
from securesign.core.logging_setup import logger
from securesign.models.document import Document, DocumentStatus

ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.SIGNED, DocumentStatus.REJECTED}),
    DocumentStatus.REJECTED: frozenset({DocumentStatus.PENDING}),
    DocumentStatus.SIGNED: frozenset(),
}


def ensure_pending(document: Document) -> None:
    if document.status != DocumentStatus.PENDING:
        raise DocumentNotPending(f"Document is already {document.status.value}.")


class DocumentLifecycle:
    """
    Applies status transitions as conditional updates on (id, status, version).

    The caller's transaction is not committed here. When another request moved
    the document first, the session is rolled back and ``DocumentNotPending`` is
    raised, so nothing staged alongside the transition is persisted.
    """

    def __init__(self, session: Session) -> None:
        self.session = session

    def mark_signed(self, document: Document, signed_blob_ref: str) -> Document:
        if not signed_blob_ref:
            raise ValueError("A signed document requires its signed blob reference.")
        return self._transition(document, DocumentStatus.SIGNED, signed_blob_ref=signed_blob_ref)

    def mark_rejected(self, document: Document) -> Document:
        return self._transition(document, DocumentStatus.REJECTED)

    def recover(self, document: Document) -> Document:
        return self._transition(document, DocumentStatus.PENDING)

    def _transition(
        self,
        document: Document,
        target: DocumentStatus,
        signed_blob_ref: str | None = None,
    ) -> Document:
        source = document.status
        if target not in ALLOWED_TRANSITIONS[source]:
            raise DocumentNotPending(f"Cannot move a {source.value} document to {target.value}.")

        statement = (
            update(Document)
            .where(Document.id == document.id)
            .where(Document.status == source)
            .where(Document.version == document.version)
            .values(
                status=target,
                signed_blob_ref=signed_blob_ref,
                version=document.version + 1,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        if result.rowcount != 1:
            self.session.rollback()
            logger.warning(
                "Concurrent status change on document %s (%s -> %s lost the race)",
                document.id,
                source.value,
                target.value,
            )
            raise DocumentNotPending("Document was modified by another request.")

        self.session.refresh(document)
        logger.info("Document %s moved %s -> %s", document.id, source.value, target.value)
        return document
