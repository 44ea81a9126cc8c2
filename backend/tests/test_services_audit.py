from sqlmodel import Session, select

from securesign.models.audit import AuditAction, AuditLog
from securesign.services.audit import AuditService, RequestMeta

from tests.conftest import create_document, create_user


def test_audit_service_records_events(db_session: Session) -> None:
    owner = create_user(db_session)
    document = create_document(db_session, owner)
    service = AuditService(db_session)

    service.record_event(
        AuditAction.VIEW,
        document.id,
        actor_id=owner.id,
        actor_email=owner.email,
        meta=RequestMeta(ip_address="127.0.0.1", user_agent="pytest"),
        details="Viewed as Owner",
    )
    service.record_event(AuditAction.SIGN, document.id, actor_email="guest@example.com", signer_name="Gina")

    events = service.list_events(document.id)
    assert len(events) == 2
    assert {event.action for event in events} == {AuditAction.VIEW, AuditAction.SIGN}
    view = next(event for event in events if event.action == AuditAction.VIEW)
    assert view.ip_address == "127.0.0.1"
    assert view.user_agent == "pytest"


def test_uncommitted_event_follows_caller_transaction(db_session: Session) -> None:
    owner = create_user(db_session)
    document = create_document(db_session, owner)

    AuditService(db_session).record_event(AuditAction.REJECT, document.id, commit=False)
    db_session.rollback()

    assert db_session.exec(select(AuditLog).where(AuditLog.document_id == document.id)).all() == []
