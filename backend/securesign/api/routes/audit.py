from uuid import UUID

from fastapi import APIRouter, Depends
from sqlmodel import Session

from securesign.api.deps import get_current_user, get_db
from securesign.core.errors import NotFound
from securesign.models.document import Document
from securesign.models.user import User
from securesign.schemas.audit import AuditLogRead
from securesign.services.access import require_owner
from securesign.services.audit import AuditService

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/{document_id}", response_model=list[AuditLogRead])
def list_document_events(
    document_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[AuditLogRead]:
    document = session.get(Document, document_id)
    if document is None:
        raise NotFound("Document not found.")
    require_owner(document, current_user)
    events = AuditService(session).list_events(document.id)
    return [AuditLogRead.model_validate(event) for event in events]
