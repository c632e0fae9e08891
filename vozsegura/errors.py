"""Error taxonomy for the control plane.

Every expected, caller-recoverable outcome is a ControlPlaneError subclass
carrying its HTTP status. Only Internal should ever trigger alerting.
"""

from __future__ import annotations


class ControlPlaneError(Exception):
    """Base class for all control-plane outcomes surfaced to callers."""

    status_code: int = 500
    code: str = "internal"
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ControlPlaneError):
    """Malformed or missing fields, reported per field."""

    status_code = 400
    code = "invalid_input"
    default_message = "Invalid data"

    def __init__(
        self,
        message: str | None = None,
        field_errors: dict[str, list[str]] | None = None,
    ) -> None:
        super().__init__(message)
        self.field_errors = field_errors or {}

    @classmethod
    def for_field(cls, field: str, message: str) -> InvalidInput:
        """Shortcut for a single failing field."""
        return cls(message, field_errors={field: [message]})


class Unauthenticated(ControlPlaneError):
    """Missing, invalid or expired credentials. Never says which."""

    status_code = 401
    code = "unauthenticated"
    default_message = "Not authenticated"


class Forbidden(ControlPlaneError):
    """Authenticated, but the role does not allow the operation."""

    status_code = 403
    code = "forbidden"
    default_message = "Access denied"


class AccountInactive(Forbidden):
    """Deactivated account. Deliberately not disguised."""

    code = "account_inactive"
    default_message = "Account inactive. Contact the administrator."


class NotFound(ControlPlaneError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Conflict(ControlPlaneError):
    """Uniqueness violation (active rule pair, duplicate email)."""

    status_code = 409
    code = "conflict"
    default_message = "Conflicting resource"

    def __init__(self, message: str | None = None, existing_id: str | None = None) -> None:
        super().__init__(message)
        self.existing_id = existing_id


class TemporarilyLocked(ControlPlaneError):
    status_code = 423
    code = "temporarily_locked"
    default_message = "Account temporarily locked due to repeated failed attempts. Try again later."

    def __init__(self, message: str | None = None, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class Internal(ControlPlaneError):
    """Unexpected failure. Generic message to the caller, full detail in the logs."""
