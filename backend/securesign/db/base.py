# noqa: F401 to ensure models are imported for metadata
from securesign.models.audit import AuditLog
from securesign.models.document import Document
from securesign.models.invitation import Invitation
from securesign.models.signature import SignatureField
from securesign.models.user import User

__all__ = [
    "AuditLog",
    "Document",
    "Invitation",
    "SignatureField",
    "User",
]
