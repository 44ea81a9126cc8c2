from uuid import UUID

from fastapi import APIRouter, Body, Depends, File, Query, Response, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlmodel import Session

from securesign.api.deps import (
    get_current_user,
    get_db,
    get_event_hub,
    get_notification_service,
    get_optional_user,
    get_request_meta,
)
from securesign.models.document import Document
from securesign.models.invitation import InvitationStatus
from securesign.models.signature import SignatureField
from securesign.models.user import User
from securesign.schemas.document import (
    DocumentDetail,
    DocumentRead,
    DocumentSummary,
    PublicDocumentRead,
    RejectRequest,
)
from securesign.schemas.invitation import (
    InvitationCreate,
    InvitationCreated,
    InvitationRead,
    ShareLinkRead,
)
from securesign.schemas.signature import SignatureRead
from securesign.services.audit import RequestMeta
from securesign.services.document import DocumentService
from securesign.services.invitation import InvitationService
from securesign.services.notification import NotificationService
from securesign.services.realtime import DOCUMENT_UPDATED, DocumentEventHub

router = APIRouter(prefix="/docs", tags=["documents"])


def _document_read(document: Document) -> DocumentRead:
    read = DocumentRead.model_validate(document)
    read.has_signed_copy = bool(document.signed_blob_ref)
    return read


def _fields_read(fields: list[SignatureField]) -> list[SignatureRead]:
    return [SignatureRead.model_validate(item) for item in fields]


@router.post("/upload", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> DocumentRead:
    content = await file.read()
    document = DocumentService(session).upload(
        current_user,
        filename=file.filename,
        content=content,
        content_type=file.content_type,
        meta=meta,
    )
    return _document_read(document)


@router.get("/", response_model=list[DocumentSummary])
def list_documents(
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[DocumentSummary]:
    summaries: list[DocumentSummary] = []
    for overview in DocumentService(session).list_for_owner(current_user):
        summary = DocumentSummary.model_validate(overview.document)
        summary.has_signed_copy = bool(overview.document.signed_blob_ref)
        summary.invitation_count = len(overview.invitations)
        summary.pending_invitation_count = sum(
            1 for item in overview.invitations if item.status == InvitationStatus.PENDING and not item.is_expired
        )
        summary.field_count = len(overview.fields)
        summary.signed_field_count = sum(1 for item in overview.fields if item.has_signature)
        summaries.append(summary)
    return summaries


@router.get("/public/{token}", response_model=PublicDocumentRead)
def public_document(
    token: str,
    session: Session = Depends(get_db),
    meta: RequestMeta = Depends(get_request_meta),
) -> PublicDocumentRead:
    overview = DocumentService(session).public_view(token, meta=meta)
    actor = overview.actor
    return PublicDocumentRead(
        document=_document_read(overview.document),
        guest_role=actor.role,
        guest_name=actor.name,
        guest_email=actor.email,
        fields=_fields_read(overview.fields),
    )


@router.get("/{document_id}", response_model=DocumentDetail)
def get_document(
    document_id: UUID,
    token: str | None = Query(default=None),
    signer_email: str | None = Query(default=None, alias="signerEmail"),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> DocumentDetail:
    overview = DocumentService(session).view(
        document_id,
        user=current_user,
        token=token,
        signer_email=signer_email,
        meta=meta,
    )
    return DocumentDetail(
        **_document_read(overview.document).model_dump(),
        role=overview.actor.role,
        invitations=[InvitationRead.model_validate(item) for item in overview.invitations],
        fields=_fields_read(overview.fields),
    )


@router.post("/share/{document_id}", response_model=ShareLinkRead)
def share_document(
    document_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> ShareLinkRead:
    document = DocumentService(session).get_document(document_id)
    link = InvitationService(session).share_link(document, current_user, meta=meta)
    return ShareLinkRead(link=link)


@router.post("/invite/{document_id}", response_model=InvitationCreated, status_code=status.HTTP_201_CREATED)
def invite_guest(
    document_id: UUID,
    payload: InvitationCreate,
    response: Response,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
    notification_service: NotificationService = Depends(get_notification_service),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> InvitationCreated:
    document = DocumentService(session).get_document(document_id)
    result = InvitationService(session, notification_service=notification_service).invite(
        document,
        current_user,
        name=payload.name,
        email=payload.email,
        role=payload.role,
        meta=meta,
    )
    event_hub.publish(document.id, DOCUMENT_UPDATED, {"action": "invitation-created"})
    if result.email_sent:
        message = "Invitation sent."
    else:
        response.status_code = status.HTTP_200_OK
        message = "Invitation created, but the e-mail could not be delivered. Share the link manually."
    return InvitationCreated(
        invitation=InvitationRead.model_validate(result.invitation),
        link=result.link,
        email_sent=result.email_sent,
        message=message,
    )


@router.get("/invite/{document_id}", response_model=list[InvitationRead])
def list_invitations(
    document_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[InvitationRead]:
    document = DocumentService(session).get_document(document_id)
    invitations = InvitationService(session).list_invitations(document, current_user)
    return [InvitationRead.model_validate(item) for item in invitations]


@router.delete("/invite/{invitation_id}", response_model=DocumentRead)
def revoke_invitation(
    invitation_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    meta: RequestMeta = Depends(get_request_meta),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> DocumentRead:
    document = InvitationService(session).revoke(invitation_id, current_user, meta=meta)
    event_hub.publish(document.id, DOCUMENT_UPDATED, {"action": "invitation-revoked", "status": document.status.value})
    return _document_read(document)


@router.post("/reject/{document_id}", response_model=DocumentRead)
def reject_document(
    document_id: UUID,
    payload: RejectRequest | None = Body(default=None),
    token: str | None = Query(default=None),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
    event_hub: DocumentEventHub = Depends(get_event_hub),
) -> DocumentRead:
    payload = payload or RejectRequest()
    document = DocumentService(session, event_hub=event_hub).reject(
        document_id,
        user=current_user,
        token=token or payload.token,
        signer_email=payload.signer_email,
        signer_name=payload.signer_name,
        reason=payload.reason,
        meta=meta,
    )
    return _document_read(document)


@router.get("/download/{document_id}")
def download_document(
    document_id: UUID,
    token: str | None = Query(default=None),
    session: Session = Depends(get_db),
    current_user: User | None = Depends(get_optional_user),
    meta: RequestMeta = Depends(get_request_meta),
) -> Response:
    target = DocumentService(session).download(document_id, user=current_user, token=token, meta=meta)
    if target.url:
        return RedirectResponse(url=target.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)
    safe_name = target.filename.encode("ascii", "ignore").decode("ascii").replace('"', "") or "document.pdf"
    return Response(
        target.content or b"",
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{safe_name}"'},
    )


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Response:
    DocumentService(session).delete(document_id, current_user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
