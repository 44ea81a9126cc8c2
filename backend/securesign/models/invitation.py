from datetime import datetime
from enum import Enum
from uuid import UUID

from sqlmodel import Field

from securesign.models.base import TimestampedModel, UUIDModel


class InvitationRole(str, Enum):
    SIGNER = "Signer"
    WITNESS = "Witness"
    APPROVER = "Approver"
    VIEWER = "Viewer"


class InvitationStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    REJECTED = "Rejected"


class Invitation(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "invitations"

    document_id: UUID = Field(foreign_key="documents.id", index=True)
    sender_id: UUID = Field(foreign_key="users.id")
    name: str
    email: str = Field(index=True)
    role: InvitationRole = Field(default=InvitationRole.SIGNER)
    token_hash: str = Field(index=True, unique=True)
    status: InvitationStatus = Field(default=InvitationStatus.PENDING)
    expires_at: datetime

    @property
    def is_expired(self) -> bool:
        return datetime.utcnow() > self.expires_at

    @property
    def is_active(self) -> bool:
        return self.status == InvitationStatus.PENDING and not self.is_expired
