import pytest
from sqlalchemy import update
from sqlmodel import Session

from securesign.core.errors import DocumentNotPending
from securesign.models.document import Document, DocumentStatus
from securesign.services.lifecycle import DocumentLifecycle, ensure_pending

from tests.conftest import create_document, create_user


def test_pending_to_signed_bumps_version(db_session: Session) -> None:
    document = create_document(db_session, create_user(db_session))
    lifecycle = DocumentLifecycle(db_session)

    lifecycle.mark_signed(document, "signed/abc.pdf")
    db_session.commit()

    assert document.status == DocumentStatus.SIGNED
    assert document.signed_blob_ref == "signed/abc.pdf"
    assert document.version == 2


def test_signed_is_terminal(db_session: Session) -> None:
    document = create_document(db_session, create_user(db_session))
    lifecycle = DocumentLifecycle(db_session)
    lifecycle.mark_signed(document, "signed/abc.pdf")
    db_session.commit()

    with pytest.raises(DocumentNotPending):
        ensure_pending(document)
    with pytest.raises(DocumentNotPending):
        lifecycle.mark_rejected(document)
    with pytest.raises(DocumentNotPending):
        lifecycle.recover(document)


def test_rejected_can_recover_to_pending(db_session: Session) -> None:
    document = create_document(db_session, create_user(db_session))
    lifecycle = DocumentLifecycle(db_session)

    lifecycle.mark_rejected(document)
    db_session.commit()
    assert document.status == DocumentStatus.REJECTED

    lifecycle.recover(document)
    db_session.commit()
    assert document.status == DocumentStatus.PENDING
    assert document.version == 3


def test_concurrent_transition_loses_race(db_engine, db_session: Session) -> None:
    document = create_document(db_session, create_user(db_session))

    # Another request rejects the document after we loaded it.
    with Session(db_engine) as other:
        other.execute(
            update(Document)
            .where(Document.id == document.id)
            .values(status=DocumentStatus.REJECTED, version=Document.version + 1)
        )
        other.commit()

    with pytest.raises(DocumentNotPending):
        DocumentLifecycle(db_session).mark_signed(document, "signed/late.pdf")

    stored = db_session.get(Document, document.id)
    assert stored.status == DocumentStatus.REJECTED
    assert stored.signed_blob_ref is None
