"""
Mock identity provider for tests and local runs.
"""

import logging

from accessroster.auth.provider import (
    AuthChangeCallback,
    IdentityProvider,
    SignOutError,
    Unsubscribe,
)
from accessroster.auth.schemas import Identity

logger = logging.getLogger(__name__)


class MockIdentityProvider(IdentityProvider):
    """In-process provider whose sessions are driven by the caller."""

    def __init__(self) -> None:
        self._identity: Identity | None = None
        self._callbacks: dict[int, AuthChangeCallback] = {}
        self._next_token: int = 1
        self._sign_out_count: int = 0
        self._should_fail_sign_out: bool = False

    def reset(self) -> None:
        self._identity = None
        self._callbacks.clear()
        self._sign_out_count = 0
        self._should_fail_sign_out = False

    def configure_sign_out_failure(self, should_fail: bool = True) -> None:
        self._should_fail_sign_out = should_fail

    @property
    def sign_out_count(self) -> int:
        return self._sign_out_count

    @property
    def listener_count(self) -> int:
        return len(self._callbacks)

    def current_identity(self) -> Identity | None:
        return self._identity

    def on_auth_change(self, callback: AuthChangeCallback) -> Unsubscribe:
        token = self._next_token
        self._next_token += 1
        self._callbacks[token] = callback

        def unsubscribe() -> None:
            self._callbacks.pop(token, None)

        return unsubscribe

    async def sign_in(self, identity: Identity) -> None:
        """Simulate a completed provider sign-in."""
        logger.info("Mock: sign-in", extra={"subject_id": identity.subject_id})
        self._identity = identity
        await self._notify()

    async def sign_out(self) -> None:
        if self._should_fail_sign_out:
            raise SignOutError("Mock sign-out failure", error_code="MOCK_ERROR")
        self._sign_out_count += 1
        was_signed_in = self._identity is not None
        self._identity = None
        if was_signed_in:
            await self._notify()

    async def _notify(self) -> None:
        for callback in list(self._callbacks.values()):
            await callback(self._identity)
