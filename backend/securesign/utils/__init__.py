from securesign.utils.email_validation import normalize_email
from securesign.utils.security import (
    create_access_token,
    decode_token,
    get_password_hash,
    hash_token,
    verify_password,
)

__all__ = [
    "create_access_token",
    "decode_token",
    "get_password_hash",
    "hash_token",
    "verify_password",
    "normalize_email",
]
