from datetime import datetime
from uuid import UUID

from sqlalchemy import Text
from sqlmodel import Field

from securesign.models.base import TimestampedModel, UUIDModel


class SignatureField(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "signature_fields"

    document_id: UUID = Field(foreign_key="documents.id", index=True)
    user_id: UUID | None = Field(default=None, foreign_key="users.id", index=True)
    signer_email: str | None = Field(default=None, index=True)
    signer_name: str | None = Field(default=None)
    page: int = Field(default=1, ge=1)
    x: float
    y: float
    width: float
    height: float
    signature_data: str | None = Field(default=None, sa_type=Text)
    signed_at: datetime | None = Field(default=None)

    @property
    def has_signature(self) -> bool:
        return bool(self.signature_data)
