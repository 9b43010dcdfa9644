"""
Signed-in session state driven by identity provider callbacks.
"""

from dataclasses import dataclass

from accessroster.auth.provider import IdentityProvider, IdentityProviderError, Unsubscribe
from accessroster.auth.rbac import UserRole, ViewerAuthorization
from accessroster.auth.resolver import AccessResolver
from accessroster.auth.schemas import AuthOutcome, Identity
from accessroster.shared.logging import get_logger

logger = get_logger(__name__)

FAILED_ROLE_MESSAGE = "Failed to assign role. Please contact the administrator."


def _reason(exc: Exception) -> str:
    return exc.message if isinstance(exc, IdentityProviderError) else str(exc)


@dataclass(frozen=True)
class SessionActionResult:
    """Outcome of a user-triggered session action."""

    success: bool
    error: str | None = None


class AuthSession:
    """Tracks who is signed in and with which role."""

    def __init__(self, provider: IdentityProvider, resolver: AccessResolver) -> None:
        self._provider = provider
        self._resolver = resolver
        self._unsubscribe: Unsubscribe | None = None
        self.identity: Identity | None = None
        self.role: UserRole | None = None
        self.auth_error: str | None = None
        self.last_outcome: AuthOutcome | None = None
        self.loading: bool = True

    def start(self) -> None:
        """Begin listening to provider sign-in/out events."""
        if self._unsubscribe is not None:
            return
        self._unsubscribe = self._provider.on_auth_change(self.handle_auth_change)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_auth_change(self, identity: Identity | None) -> None:
        """Apply a provider event to the session state.

        Args:
            identity: Identity that signed in, None on sign-out.
        """
        if identity is None:
            self.identity = None
            self.role = None
            self.loading = False
            return

        outcome = await self._resolver.authorize(identity)
        self.last_outcome = outcome

        if outcome.authorized:
            self.identity = identity
            self.role = outcome.role
            self.auth_error = None
        else:
            if outcome.error_code == "UNAUTHORIZED":
                # the resolver already ended the provider session
                self.auth_error = outcome.message
            else:
                self.auth_error = FAILED_ROLE_MESSAGE
                await self._force_sign_out()
            self.identity = None
            self.role = None

        self.loading = False

    async def logout(self) -> SessionActionResult:
        try:
            await self._provider.sign_out()
        except Exception as exc:
            reason = _reason(exc)
            logger.error("Logout failed", extra={"error": reason})
            return SessionActionResult(success=False, error=reason)
        return SessionActionResult(success=True)

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def is_staff(self) -> bool:
        return self.role == UserRole.STAFF

    @property
    def viewer(self) -> ViewerAuthorization:
        return ViewerAuthorization(role=self.role, loading=self.loading)

    async def _force_sign_out(self) -> None:
        try:
            await self._provider.sign_out()
        except Exception as exc:
            logger.error("Forced sign-out failed", extra={"error": _reason(exc)})
