from securesign.schemas import audit, auth, common, document, invitation, signature

__all__ = [
    "audit",
    "auth",
    "common",
    "document",
    "invitation",
    "signature",
]
