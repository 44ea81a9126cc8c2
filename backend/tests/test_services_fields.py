import pytest
from sqlmodel import Session, select

from securesign.core.errors import DocumentNotPending, Forbidden, InvalidGeometry, NotFound, SigningError
from securesign.models.audit import AuditAction, AuditLog
from securesign.models.invitation import InvitationRole
from securesign.models.signature import SignatureField
from securesign.services.access import AccessGate
from securesign.services.fields import FieldService
from securesign.services.lifecycle import DocumentLifecycle

from tests.conftest import create_document, create_invitation, create_user, make_signature_data_uri


class HubStub:
    def __init__(self) -> None:
        self.events = []

    def publish(self, document_id, event, payload=None) -> None:
        self.events.append((str(document_id), event, payload or {}))


@pytest.fixture()
def context(db_session: Session) -> dict:
    owner = create_user(db_session)
    document = create_document(db_session, owner)
    _, signer_token = create_invitation(db_session, document, owner, email="signer@example.com", name="Sam Signer")
    _, viewer_token = create_invitation(
        db_session,
        document,
        owner,
        email="viewer@example.com",
        role=InvitationRole.VIEWER,
    )
    gate = AccessGate(db_session)
    return {
        "owner": owner,
        "document": document,
        "owner_actor": gate.resolve(document, user=owner),
        "signer_actor": gate.resolve(document, token=signer_token),
        "viewer_actor": gate.resolve(document, token=viewer_token),
    }


def _create(service: FieldService, context: dict, actor_key: str, **overrides) -> SignatureField:
    values = {"page": 1, "x": 100, "y": 100, "width": 200, "height": 60}
    values.update(overrides)
    return service.create_field(context["document"].id, actor=context[actor_key], **values)


def test_create_placeholder_and_guest_identity(db_session: Session, context: dict) -> None:
    hub = HubStub()
    service = FieldService(db_session, event_hub=hub)

    owner_field = _create(service, context, "owner_actor")
    guest_field = _create(service, context, "signer_actor")

    assert owner_field.signature_data is None
    assert owner_field.user_id == context["owner"].id
    assert guest_field.user_id is None
    assert guest_field.signer_email == "signer@example.com"
    assert guest_field.signer_name == "Sam Signer"
    assert [event[1] for event in hub.events] == ["document-updated", "document-updated"]


def test_signature_data_stamps_and_audits(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    field = _create(service, context, "signer_actor")

    updated = service.update_field(field.id, {"signature_data": make_signature_data_uri()}, context["signer_actor"])

    assert updated.signed_at is not None
    actions = db_session.exec(select(AuditLog.action).where(AuditLog.document_id == context["document"].id)).all()
    assert actions.count(AuditAction.SIGN) == 1


def test_partial_update_only_touches_given_keys(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    field = _create(service, context, "owner_actor")

    updated = service.update_field(field.id, {"x": 300, "page": None}, context["owner_actor"])

    assert (updated.x, updated.y, updated.page) == (300, 100, 1)


def test_viewer_cannot_edit(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    with pytest.raises(Forbidden):
        _create(service, context, "viewer_actor")
    assert db_session.exec(select(SignatureField)).all() == []


def test_only_creator_mutates_field(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    owner_field = _create(service, context, "owner_actor")
    guest_field = _create(service, context, "signer_actor")

    with pytest.raises(Forbidden):
        service.update_field(owner_field.id, {"x": 10}, context["signer_actor"])
    with pytest.raises(Forbidden):
        service.delete_field(guest_field.id, context["owner_actor"])

    service.delete_field(guest_field.id, context["signer_actor"])
    assert db_session.get(SignatureField, guest_field.id) is None


def test_invalid_geometry(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    with pytest.raises(InvalidGeometry):
        _create(service, context, "owner_actor", x=900)
    field = _create(service, context, "owner_actor")
    with pytest.raises(InvalidGeometry):
        service.update_field(field.id, {"width": 0}, context["owner_actor"])


def test_missing_document_and_field(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    with pytest.raises(NotFound):
        service.create_field(context["owner"].id, page=1, x=1, y=1, width=1, height=1, actor=context["owner_actor"])
    with pytest.raises(NotFound):
        service.delete_field(context["document"].id, context["owner_actor"])


def test_signed_document_is_read_only(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    field = _create(service, context, "owner_actor")
    DocumentLifecycle(db_session).mark_signed(context["document"], "signed/x.pdf")
    db_session.commit()

    with pytest.raises(DocumentNotPending):
        _create(service, context, "owner_actor")
    with pytest.raises(DocumentNotPending):
        service.update_field(field.id, {"x": 5}, context["owner_actor"])
    assert len(service.list_fields(context["document"].id, context["viewer_actor"])) == 1


def test_delete_all_removes_only_callers_fields(db_session: Session, context: dict) -> None:
    service = FieldService(db_session)
    _create(service, context, "owner_actor")
    _create(service, context, "owner_actor", page=2)
    _create(service, context, "signer_actor")

    deleted = service.delete_all_fields_for_caller(context["document"].id, context["owner_actor"])

    remaining = service.list_fields(context["document"].id, context["owner_actor"])
    assert deleted == 2
    assert [item.signer_email for item in remaining] == ["signer@example.com"]
    actions = db_session.exec(select(AuditLog.action).where(AuditLog.document_id == context["document"].id)).all()
    assert AuditAction.CLEAR in actions


def test_share_link_guest_needs_email(db_session: Session, context: dict) -> None:
    document = context["document"]
    document.share_token = "b" * 64
    db_session.add(document)
    db_session.commit()
    anonymous = AccessGate(db_session).resolve(document, token="b" * 64)

    with pytest.raises(SigningError):
        FieldService(db_session).create_field(document.id, page=1, x=1, y=1, width=10, height=10, actor=anonymous)
