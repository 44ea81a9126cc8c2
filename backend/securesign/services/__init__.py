from securesign.services.access import AccessGate, Actor, Capability
from securesign.services.audit import AuditService, RequestMeta
from securesign.services.document import DocumentService
from securesign.services.fields import FieldService
from securesign.services.finalization import FinalizationEngine, FinalizationResult
from securesign.services.invitation import InvitationService
from securesign.services.lifecycle import DocumentLifecycle
from securesign.services.notification import NotificationService

__all__ = [
    "AccessGate",
    "Actor",
    "AuditService",
    "Capability",
    "DocumentLifecycle",
    "DocumentService",
    "FieldService",
    "FinalizationEngine",
    "FinalizationResult",
    "InvitationService",
    "NotificationService",
    "RequestMeta",
]
