from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlmodel import Session, select

from securesign.core.logging_setup import logger
from securesign.models.audit import AuditAction, AuditLog


@dataclass(frozen=True)
class RequestMeta:
    """Client details copied onto every audit entry."""

    ip_address: str | None = None
    user_agent: str | None = None


class AuditService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def record_event(
        self,
        action: AuditAction,
        document_id: UUID,
        actor_id: UUID | None = None,
        actor_email: str | None = None,
        signer_name: str | None = None,
        meta: RequestMeta | None = None,
        details: str | None = None,
        commit: bool = True,
    ) -> AuditLog:
        meta = meta or RequestMeta()
        log = AuditLog(
            document_id=document_id,
            action=action,
            actor_id=actor_id,
            actor_email=actor_email,
            signer_name=signer_name,
            ip_address=meta.ip_address,
            user_agent=meta.user_agent,
            details=details,
        )
        logger.info(
            "[AUDIT] %s document=%s actor=%s",
            action.value,
            document_id,
            actor_email or actor_id or "guest",
        )
        self.session.add(log)
        if commit:
            self.session.commit()
        return log

    def list_events(self, document_id: UUID) -> list[AuditLog]:
        statement = (
            select(AuditLog)
            .where(AuditLog.document_id == document_id)
            .order_by(AuditLog.created_at.desc())
        )
        return list(self.session.exec(statement).all())
