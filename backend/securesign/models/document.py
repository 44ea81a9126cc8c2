from enum import Enum
from uuid import UUID

from sqlmodel import Field

from securesign.models.base import TimestampedModel, UUIDModel


class DocumentStatus(str, Enum):
    PENDING = "Pending"
    SIGNED = "Signed"
    REJECTED = "Rejected"


class Document(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "documents"

    owner_id: UUID = Field(foreign_key="users.id", index=True)
    filename: str
    original_blob_ref: str
    signed_blob_ref: str | None = Field(default=None)
    share_token: str | None = Field(default=None, index=True, unique=True)
    status: DocumentStatus = Field(default=DocumentStatus.PENDING)
    version: int = Field(default=1, nullable=False)
