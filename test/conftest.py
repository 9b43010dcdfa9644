"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from accessroster.auth.mock_provider import MockIdentityProvider
from accessroster.auth.resolver import AccessResolver
from accessroster.auth.schemas import DeviceInfo, Identity
from accessroster.config import Settings
from accessroster.shared.database import DatabaseManager
from accessroster.store.memory import InMemoryIdentityStore
from accessroster.store.sql import SqlIdentityStore

FIXED_NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Deterministic clock that can be advanced."""

    def __init__(self, now: datetime = FIXED_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings."""
    return Settings(
        app_env="dev",
        debug=False,
        store_backend="memory",
        database_url="sqlite+aiosqlite:///:memory:",
        allow_list_collection="allowList",
        activity_collection="activity",
        allowed_email_domains="gmail.com",
        default_role="staff",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> InMemoryIdentityStore:
    return InMemoryIdentityStore()


@pytest.fixture
def provider() -> MockIdentityProvider:
    return MockIdentityProvider()


@pytest.fixture
def resolver(
    store: InMemoryIdentityStore,
    provider: MockIdentityProvider,
    test_settings: Settings,
    clock: FakeClock,
) -> AccessResolver:
    """Create resolver over the in-memory store."""
    return AccessResolver(
        store=store,
        provider=provider,
        settings=test_settings,
        clock=clock,
    )


@pytest.fixture
def identity() -> Identity:
    """Identity of an allow-listed person."""
    return Identity(
        subject_id="u1",
        email="a@gmail.com",
        display_name="Alice Example",
        photo_url="https://example.com/a.png",
        device_info=DeviceInfo(user_agent="pytest", platform="linux", language="en-US"),
    )


@pytest_asyncio.fixture
async def sql_store(test_settings: Settings) -> AsyncGenerator[SqlIdentityStore, None]:
    """SQL identity store on an in-memory SQLite database."""
    store = SqlIdentityStore(DatabaseManager(database_url=test_settings.database_url, echo=False))
    await store.initialize()
    yield store
    await store.close()
