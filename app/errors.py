"""
LoveConnect — Domain error taxonomy.

Every error carries a stable ``kind`` string and the HTTP status the REST
layer answers with.  The realtime layer sends the same ``kind``/``message``
pair back to the offending connection as a local ``error`` event.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for every error reported to a caller."""

    kind: str = "domain_error"
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.__class__.__doc__ or self.kind
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message}


class ValidationError(DomainError):
    """Malformed input."""

    kind = "validation_error"
    status_code = 422


class MessageTooLongError(ValidationError):
    """Message text exceeds the maximum length."""

    kind = "message_too_long"


class NotFoundError(DomainError):
    """Profile or match not found."""

    kind = "not_found"
    status_code = 404


class SelfLikeError(DomainError):
    """Cannot like yourself."""

    kind = "self_like"
    status_code = 400


class DuplicateLikeError(DomainError):
    """Already liked this user."""

    kind = "duplicate_like"
    status_code = 409


class PermissionDeniedError(DomainError):
    """Premium feature required."""

    kind = "permission_denied"
    status_code = 403


class NotAuthorizedError(DomainError):
    """Not authorized to access this match."""

    kind = "not_authorized"
    status_code = 403


class NotMemberError(DomainError):
    """Sender is not a member of this match."""

    kind = "not_member"
    status_code = 403


class InactiveMatchError(DomainError):
    """Match not found or inactive."""

    kind = "inactive_match"
    status_code = 409


class AuthenticationError(DomainError):
    """Missing or invalid credentials."""

    kind = "authentication_error"
    status_code = 401


class TransientStoreError(DomainError):
    """Temporary store failure; safe to retry."""

    kind = "transient_store_error"
    status_code = 503


class StoreUnavailableError(DomainError):
    """The store could not complete the operation, try again later."""

    kind = "store_unavailable"
    status_code = 503
