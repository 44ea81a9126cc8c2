from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from securesign.schemas.common import IDModel, Timestamped

# Browser clients send camelCase keys; snake_case is accepted too.
_camel = ConfigDict(populate_by_name=True)


class SignatureCreate(BaseModel):
    model_config = _camel

    document_id: UUID = Field(alias="documentId")
    page: int = Field(default=1)
    x: float
    y: float
    width: float
    height: float
    signature_data: str | None = Field(default=None, alias="signatureData")
    signer_name: str | None = Field(default=None, alias="signerName")
    signer_email: str | None = Field(default=None, alias="signerEmail")
    token: str | None = None


class SignatureUpdate(BaseModel):
    model_config = _camel

    page: int | None = None
    x: float | None = None
    y: float | None = None
    width: float | None = None
    height: float | None = None
    signature_data: str | None = Field(default=None, alias="signatureData")


class SignatureRead(IDModel, Timestamped):
    document_id: UUID
    user_id: UUID | None = None
    signer_email: str | None = None
    signer_name: str | None = None
    page: int
    x: float
    y: float
    width: float
    height: float
    signature_data: str | None = None
    signed_at: datetime | None = None


class FinalizeRequest(BaseModel):
    model_config = _camel

    document_id: UUID = Field(alias="documentId")
    token: str | None = None
    signer_email: str | None = Field(default=None, alias="signerEmail")
    signer_name: str | None = Field(default=None, alias="signerName")


class PlacementRead(BaseModel):
    field_id: UUID
    page: int
    x: float
    y: float
    width: float
    height: float
    rotation: int

    model_config = ConfigDict(from_attributes=True)


class SkippedFieldRead(BaseModel):
    field_id: UUID
    reason: str

    model_config = ConfigDict(from_attributes=True)


class FinalizeResponse(BaseModel):
    document_id: UUID
    status: str
    signed_blob_ref: str | None
    embedded: list[PlacementRead]
    skipped: list[SkippedFieldRead]


class ClearedFields(BaseModel):
    deleted: int
