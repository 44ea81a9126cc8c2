from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from securesign.models.invitation import InvitationRole, InvitationStatus
from securesign.schemas.common import IDModel, Timestamped


class InvitationCreate(BaseModel):
    name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    role: InvitationRole = InvitationRole.SIGNER


class InvitationRead(IDModel, Timestamped):
    document_id: UUID
    name: str
    email: str
    role: InvitationRole
    status: InvitationStatus
    expires_at: datetime
    is_expired: bool


class InvitationCreated(BaseModel):
    invitation: InvitationRead
    link: str
    email_sent: bool
    message: str


class ShareLinkRead(BaseModel):
    link: str
