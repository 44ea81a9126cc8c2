from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from securesign.models.audit import AuditAction


class AuditLogRead(BaseModel):
    id: UUID
    created_at: datetime
    document_id: UUID
    action: AuditAction
    actor_id: UUID | None
    actor_email: str | None
    signer_name: str | None
    ip_address: str | None
    user_agent: str | None
    details: str | None

    model_config = ConfigDict(from_attributes=True)
