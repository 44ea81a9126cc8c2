"""Domain errors raised by the signing services.

Every error carries a stable ``code`` and the HTTP status the API layer maps it
to. They subclass ``ValueError`` so callers that only care about "the request
was invalid" can keep catching that.
"""

from __future__ import annotations

from fastapi import status


class SigningError(ValueError):
    code = "signing_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Request could not be processed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(SigningError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found."


class Forbidden(SigningError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Not authorized."


class AuthenticationRequired(SigningError):
    code = "authentication_required"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication or share token required."


class DocumentNotPending(SigningError):
    code = "document_not_pending"
    default_message = "Document is no longer pending."


class InvalidGeometry(SigningError):
    code = "invalid_geometry"
    default_message = "Invalid field geometry."


class InvalidPageIndex(SigningError):
    code = "invalid_page_index"
    default_message = "Page does not exist in this document."


class DuplicateActiveInvitation(SigningError):
    code = "duplicate_active_invitation"
    default_message = "An active invitation already exists for this e-mail."


class CannotRevokeSignedDocument(SigningError):
    code = "cannot_revoke_signed_document"
    default_message = "Cannot revoke invitation for a signed document."


class ActiveGuestsPending(SigningError):
    code = "active_guests_pending"
    default_message = (
        "Cannot finalize document while guest invitations are active. "
        "Wait for guests to sign or for the invitations to expire."
    )


class NothingToSign(SigningError):
    code = "nothing_to_sign"
    default_message = "No signatures to finalize."


class InvalidUpload(SigningError):
    code = "invalid_upload"
    default_message = "Uploaded file is not a readable PDF."


class SourceFetchFailed(SigningError):
    code = "source_fetch_failed"
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Could not fetch the original document."


class GuestLinkError(SigningError):
    """Base for token failures shown to guests as "link no longer valid"."""

    link_invalid = True


class InvalidToken(GuestLinkError):
    code = "invalid_token"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "This link is no longer valid."


class Expired(GuestLinkError):
    code = "expired"
    status_code = status.HTTP_410_GONE
    default_message = "This invitation link has expired. Please ask the owner to send a new invitation."
