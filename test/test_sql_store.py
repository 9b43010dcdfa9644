"""
Tests for the SQL identity store and the store factory.

Run against SQLite in memory through aiosqlite.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from accessroster.auth.rbac import UserRole
from accessroster.config import Settings
from accessroster.shared.exceptions import PermissionDeniedError, StoreUnavailableError
from accessroster.store.factory import _mask_url, create_identity_store
from accessroster.store.interface import StoredDocument
from accessroster.store.memory import InMemoryIdentityStore
from accessroster.store.sql import SqlIdentityStore, translate_store_error


class TestSqlIdentityStore:
    """Document operations against SQLite."""

    @pytest.mark.asyncio
    async def test_put_and_get(self, sql_store: SqlIdentityStore) -> None:
        await sql_store.put("activity", "u1", {"email": "a@gmail.com", "login_count": 1})

        doc = await sql_store.get_by_key("activity", "u1")

        assert doc == StoredDocument(key="u1", data={"email": "a@gmail.com", "login_count": 1})
        assert await sql_store.get_by_key("activity", "u2") is None
        assert await sql_store.get_by_key("allowList", "u1") is None

    @pytest.mark.asyncio
    async def test_merge_write(self, sql_store: SqlIdentityStore) -> None:
        await sql_store.put("activity", "u1", {"email": "a@gmail.com", "role": "admin"})
        await sql_store.put("activity", "u1", {"login_count": 3}, merge=True)

        doc = await sql_store.get_by_key("activity", "u1")

        assert doc.data == {"email": "a@gmail.com", "role": "admin", "login_count": 3}

    @pytest.mark.asyncio
    async def test_overwrite(self, sql_store: SqlIdentityStore) -> None:
        await sql_store.put("activity", "u1", {"email": "a@gmail.com", "role": "admin"})
        await sql_store.put("activity", "u1", {"login_count": 3})

        doc = await sql_store.get_by_key("activity", "u1")

        assert doc.data == {"login_count": 3}

    @pytest.mark.asyncio
    async def test_values_serialized(self, sql_store: SqlIdentityStore) -> None:
        when = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
        await sql_store.put("allowList", "a@gmail.com", {"role": UserRole.ADMIN, "created_at": when})

        doc = await sql_store.get_by_key("allowList", "a@gmail.com")

        assert doc.data == {"role": "admin", "created_at": when.isoformat()}

    @pytest.mark.asyncio
    async def test_query_by_field(self, sql_store: SqlIdentityStore) -> None:
        await sql_store.put("allowList", "k2", {"email": "a@gmail.com"})
        await sql_store.put("allowList", "k1", {"email": "a@gmail.com"})
        await sql_store.put("allowList", "k3", {"email": "b@gmail.com"})
        await sql_store.put("activity", "k4", {"email": "a@gmail.com"})

        matches = await sql_store.query_by_field("allowList", "email", "a@gmail.com")
        limited = await sql_store.query_by_field("allowList", "email", "a@gmail.com", limit=1)

        assert [d.key for d in matches] == ["k1", "k2"]
        assert [d.key for d in limited] == ["k1"]

    @pytest.mark.asyncio
    async def test_query_by_non_string_field(self, sql_store: SqlIdentityStore) -> None:
        await sql_store.put("activity", "u1", {"login_count": 2})
        await sql_store.put("activity", "u2", {"login_count": 5})

        matches = await sql_store.query_by_field("activity", "login_count", 5)

        assert [d.key for d in matches] == ["u2"]

    @pytest.mark.asyncio
    async def test_list_all_and_delete(self, sql_store: SqlIdentityStore) -> None:
        await sql_store.put("activity", "u2", {"email": "b@gmail.com"})
        await sql_store.put("activity", "u1", {"email": "a@gmail.com"})

        assert [d.key for d in await sql_store.list_all("activity")] == ["u1", "u2"]

        await sql_store.delete("activity", "u1")
        await sql_store.delete("activity", "ghost")

        assert [d.key for d in await sql_store.list_all("activity")] == ["u2"]

    @pytest.mark.asyncio
    async def test_subscribe(self, sql_store: SqlIdentityStore) -> None:
        await sql_store.put("activity", "u1", {"email": "a@gmail.com"})
        snapshots: list[list[StoredDocument]] = []

        unsubscribe = await sql_store.subscribe("activity", snapshots.append)
        await sql_store.put("activity", "u2", {"email": "b@gmail.com"})
        await sql_store.delete("activity", "u1")
        unsubscribe()
        await sql_store.delete("activity", "u2")

        assert [[d.key for d in s] for s in snapshots] == [["u1"], ["u1", "u2"], ["u2"]]


class TestTranslateStoreError:
    """SQLAlchemy exception mapping."""

    def test_operational_error_is_unavailable(self) -> None:
        exc = OperationalError("SELECT 1", {}, Exception("unable to open database file"))

        error = translate_store_error(exc, "list_all", "activity")

        assert isinstance(error, StoreUnavailableError)
        assert error.details == {
            "operation": "list_all",
            "collection": "activity",
            "cause": "OperationalError",
        }

    def test_readonly_is_permission_denied(self) -> None:
        exc = OperationalError("DELETE", {}, Exception("attempt to write a readonly database"))

        error = translate_store_error(exc, "delete", "allowList")

        assert isinstance(error, PermissionDeniedError)
        assert error.error_code == "PERMISSION_DENIED"

    def test_other_errors_are_unavailable(self) -> None:
        error = translate_store_error(SQLAlchemyError("boom"), "put", "activity")

        assert isinstance(error, StoreUnavailableError)
        assert "put" in error.message


class TestStoreFactory:
    """Backend selection."""

    @pytest.mark.asyncio
    async def test_memory_backend(self, test_settings: Settings) -> None:
        store = await create_identity_store(test_settings)

        assert isinstance(store, InMemoryIdentityStore)

    @pytest.mark.asyncio
    async def test_sql_backend_is_initialized(self, test_settings: Settings) -> None:
        settings = test_settings.model_copy(update={"store_backend": "sql"})

        store = await create_identity_store(settings)
        try:
            assert isinstance(store, SqlIdentityStore)
            assert await store.list_all("activity") == []
        finally:
            await store.close()

    def test_mask_url(self) -> None:
        assert _mask_url("postgresql+asyncpg://user:secret@db/roster") == (
            "postgresql+asyncpg://user:***@db/roster"
        )
        assert _mask_url("sqlite+aiosqlite:///:memory:") == "sqlite+aiosqlite:///:memory:"
