from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlmodel import Session

from securesign.api.deps import get_db, get_event_hub, get_optional_user, get_request_meta
from securesign.core.errors import NotFound
from securesign.models.document import Document
from securesign.models.signature import SignatureField
from securesign.models.user import User
from securesign.schemas.signature import (
    ClearedFields,
    FinalizeRequest,
    FinalizeResponse,
    PlacementRead,
    SignatureCreate,
    SignatureRead,
    SignatureUpdate,
    SkippedFieldRead,
)
from securesign.services.access import AccessGate, Actor
from securesign.services.audit import RequestMeta
from securesign.services.fields import FieldService
from securesign.services.finalization import FinalizationEngine
from securesign.services.lifecycle import ensure_pending
from securesign.services.realtime import DocumentEventHub

router = APIRouter(prefix="/signatures", tags=["signatures"])


def _resolve_actor(
    session: Session,
    document_id: UUID,
    *,
    user: User | None,
    token: str | None,
    signer_email: str | None = None,
    signer_name: str | None = None,
    mutation: bool = True,
) -> Actor:
    # Missing document, then terminal status, then permissions.
    document = session.get(Document, document_id)
    if document is None:
        raise NotFound("Document not found.")
    if mutation:
        ensure_pending(document)
    return AccessGate(session).resolve(
        document,
        user=user,
        token=token,
        signer_email=signer_email,
        signer_name=signer_name,
    )


def _field_document_id(session: Session, field_id: UUID) -> UUID:
    field = session.get(SignatureField, field_id)
    if field is None:
        raise NotFound("Signature not found.")
    return field.document_id


@router.post("/", response_model=SignatureRead, status_code=status.HTTP_201_CREATED)
def create_signature(
    payload: SignatureCreate,
    token: str | None = Query(default=None),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> SignatureField:
    actor = _resolve_actor(
        session,
        payload.document_id,
        user=current_user,
        token=token or payload.token,
        signer_email=payload.signer_email,
        signer_name=payload.signer_name,
    )
    return FieldService(session, event_hub=event_hub).create_field(
        payload.document_id,
        page=payload.page,
        x=payload.x,
        y=payload.y,
        width=payload.width,
        height=payload.height,
        actor=actor,
        signature_data=payload.signature_data,
        signer_name=payload.signer_name,
        meta=meta,
    )


@router.get("/{document_id}", response_model=list[SignatureRead])
def list_signatures(
    document_id: UUID,
    token: str | None = Query(default=None),
    signer_email: str | None = Query(default=None, alias="signerEmail"),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
) -> list[SignatureField]:
    actor = _resolve_actor(
        session,
        document_id,
        user=current_user,
        token=token,
        signer_email=signer_email,
        mutation=False,
    )
    return FieldService(session).list_fields(document_id, actor)


@router.put("/{field_id}", response_model=SignatureRead)
def update_signature(
    field_id: UUID,
    payload: SignatureUpdate,
    token: str | None = Query(default=None),
    signer_email: str | None = Query(default=None, alias="signerEmail"),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> SignatureField:
    document_id = _field_document_id(session, field_id)
    actor = _resolve_actor(session, document_id, user=current_user, token=token, signer_email=signer_email)
    changes = payload.model_dump(exclude_unset=True)
    return FieldService(session, event_hub=event_hub).update_field(field_id, changes, actor, meta=meta)


@router.delete("/all/{document_id}", response_model=ClearedFields)
def clear_signatures(
    document_id: UUID,
    token: str | None = Query(default=None),
    signer_email: str | None = Query(default=None, alias="signerEmail"),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> ClearedFields:
    actor = _resolve_actor(session, document_id, user=current_user, token=token, signer_email=signer_email)
    deleted = FieldService(session, event_hub=event_hub).delete_all_fields_for_caller(document_id, actor, meta=meta)
    return ClearedFields(deleted=deleted)


@router.delete("/{field_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_signature(
    field_id: UUID,
    token: str | None = Query(default=None),
    signer_email: str | None = Query(default=None, alias="signerEmail"),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> Response:
    document_id = _field_document_id(session, field_id)
    actor = _resolve_actor(session, document_id, user=current_user, token=token, signer_email=signer_email)
    FieldService(session, event_hub=event_hub).delete_field(field_id, actor)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/finalize", response_model=FinalizeResponse)
def finalize_document(
    payload: FinalizeRequest,
    token: str | None = Query(default=None),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> FinalizeResponse:
    actor = _resolve_actor(
        session,
        payload.document_id,
        user=current_user,
        token=payload.token or token,
        signer_email=payload.signer_email,
        signer_name=payload.signer_name,
    )
    result = FinalizationEngine(session, event_hub=event_hub).finalize(payload.document_id, actor, meta=meta)
    return FinalizeResponse(
        document_id=result.document.id,
        status=result.document.status.value,
        signed_blob_ref=result.document.signed_blob_ref,
        embedded=[PlacementRead.model_validate(item) for item in result.placements],
        skipped=[SkippedFieldRead.model_validate(item) for item in result.skipped],
    )
