"""
Error taxonomy shared by the resolver, the removal service and the stores.
"""

from typing import Any


class AccessRosterError(Exception):
    """Base exception for access roster errors."""

    default_code = "ACCESS_ROSTER_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.error_code,
            "message": self.message,
            "details": self.details,
        }


class InvalidIdentityError(AccessRosterError):
    """Malformed identity handed to the resolver."""

    default_code = "INVALID_IDENTITY"


class UnauthorizedError(AccessRosterError):
    """Identity is not on the allow-list."""

    default_code = "UNAUTHORIZED"

    def __init__(
        self,
        message: str,
        email: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, error_code=error_code, details=details)
        self.email = email


class StoreError(AccessRosterError):
    """Base exception for identity store failures."""

    default_code = "STORE_ERROR"


class StoreUnavailableError(StoreError):
    """Backend unreachable or failing; transient."""

    default_code = "STORE_UNAVAILABLE"


class PermissionDeniedError(StoreError):
    """Backend refused the operation; configuration problem."""

    default_code = "PERMISSION_DENIED"
