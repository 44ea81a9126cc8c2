from datetime import datetime, timedelta
from enum import Enum
from typing import Any
from uuid import uuid4
import hashlib
import secrets

from jose import JWTError, jwt
from passlib.context import CryptContext

from securesign.core.config import settings


class TokenType(str, Enum):
    ACCESS = "access"


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def create_access_token(subject: str, expires_delta: timedelta | None = None) -> str:
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode = {
        "sub": subject,
        "exp": expire,
        "token_type": TokenType.ACCESS.value,
        "jti": str(uuid4()),
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> dict[str, Any]:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if "token_type" not in payload:
        raise ValueError("Invalid token payload")
    return payload


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def generate_guest_token() -> str:
    """Unguessable secret embedded in invitation links."""
    return secrets.token_urlsafe(32)


def generate_share_token() -> str:
    return secrets.token_hex(32)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()
