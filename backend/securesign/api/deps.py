from typing import Annotated, Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session, select

from securesign.core.config import settings
from securesign.db.session import get_session
from securesign.models.user import User
from securesign.services.audit import RequestMeta
from securesign.services.notification import NotificationService, build_notification_service
from securesign.services.realtime import DocumentEventHub
from securesign.utils.security import TokenType, decode_token

# Guests reach the same routes with a link token, so a missing bearer is not an error here.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.api_prefix}/auth/login", auto_error=False)


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def user_from_token(token: str | None, session: Session) -> User | None:
    """Resolve a bearer JWT to an active user; ``None`` when absent or invalid."""
    if not token:
        return None
    try:
        payload = decode_token(token)
    except ValueError:
        return None
    if payload.get("token_type") != TokenType.ACCESS.value:
        return None
    try:
        user_id = UUID(str(payload["sub"]))
    except (KeyError, ValueError, TypeError):
        return None
    user = session.exec(select(User).where(User.id == user_id)).first()
    if not user or not user.is_active:
        return None
    return user


def get_optional_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    session: Annotated[Session, Depends(get_db)],
) -> User | None:
    return user_from_token(token, session)


def get_current_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    session: Annotated[Session, Depends(get_db)],
) -> User:
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    user = user_from_token(token, session)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def get_request_meta(request: Request) -> RequestMeta:
    return RequestMeta(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def get_event_hub(request: Request) -> DocumentEventHub:
    return request.app.state.event_hub


def get_notification_service() -> NotificationService:
    return build_notification_service(settings)
