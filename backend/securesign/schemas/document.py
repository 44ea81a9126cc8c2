from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from securesign.models.document import DocumentStatus
from securesign.schemas.common import IDModel, Timestamped
from securesign.schemas.invitation import InvitationRead
from securesign.schemas.signature import SignatureRead


class DocumentRead(IDModel, Timestamped):
    owner_id: UUID
    filename: str
    status: DocumentStatus
    has_signed_copy: bool = False


class DocumentSummary(DocumentRead):
    invitation_count: int = 0
    pending_invitation_count: int = 0
    field_count: int = 0
    signed_field_count: int = 0


class DocumentDetail(DocumentRead):
    role: str
    invitations: list[InvitationRead] = []
    fields: list[SignatureRead] = []


class PublicDocumentRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document: DocumentRead
    guest_role: str = Field(alias="guestRole")
    guest_name: str | None = Field(default=None, alias="guestName")
    guest_email: str | None = Field(default=None, alias="guestEmail")
    fields: list[SignatureRead] = []


class RejectRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    reason: str | None = None
    signer_email: str | None = Field(default=None, alias="signerEmail")
    signer_name: str | None = Field(default=None, alias="signerName")
