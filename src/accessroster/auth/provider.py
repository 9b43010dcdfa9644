"""
Identity provider interface definition.

Credentials never pass through this package: the provider signs people in
and reports the resulting identity.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

from accessroster.auth.schemas import Identity

AuthChangeCallback = Callable[[Identity | None], Awaitable[None]]
Unsubscribe = Callable[[], None]


class IdentityProviderError(Exception):
    """Base exception for identity provider errors."""

    def __init__(self, message: str, error_code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code


class SignOutError(IdentityProviderError):
    """Error while ending the provider session."""


class IdentityProvider(ABC):
    """Abstract interface for identity providers."""

    @abstractmethod
    def current_identity(self) -> Identity | None:
        """Identity of the current provider session, None when signed out."""
        ...

    @abstractmethod
    def on_auth_change(self, callback: AuthChangeCallback) -> Unsubscribe:
        """Register a callback invoked with the identity on every sign-in/out."""
        ...

    @abstractmethod
    async def sign_out(self) -> None:
        """End the provider session."""
        ...
