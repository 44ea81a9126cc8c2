from __future__ import annotations

from enum import Enum
from uuid import UUID

from sqlalchemy import Text
from sqlmodel import Field

from securesign.models.base import TimestampedModel, UUIDModel


class AuditAction(str, Enum):
    UPLOAD = "UPLOAD"
    VIEW = "VIEW"
    SIGN = "SIGN"
    FINALIZE = "FINALIZE"
    REJECT = "REJECT"
    DOWNLOAD = "DOWNLOAD"
    SHARE = "SHARE"
    REVOKE = "REVOKE"
    CLEAR = "CLEAR"


class AuditLog(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "audit_logs"

    document_id: UUID = Field(index=True)
    action: AuditAction = Field(index=True)
    actor_id: UUID | None = Field(default=None, foreign_key="users.id")
    actor_email: str | None = Field(default=None)
    signer_name: str | None = Field(default=None)
    ip_address: str | None = Field(default=None)
    user_agent: str | None = Field(default=None)
    details: str | None = Field(default=None, sa_type=Text)
