"""
Tests for complete user removal.
"""

import pytest

from accessroster.config import Settings
from accessroster.roster.removal import UserRemovalService
from accessroster.shared.exceptions import PermissionDeniedError
from accessroster.store.memory import InMemoryIdentityStore


@pytest.fixture
def removal_service(store: InMemoryIdentityStore, test_settings: Settings) -> UserRemovalService:
    return UserRemovalService(store, settings=test_settings)


async def _seed(store: InMemoryIdentityStore) -> None:
    await store.put("allowList", "c@gmail.com", {"email": "c@gmail.com", "role": "staff"})
    await store.put("activity", "u9", {"email": "c@gmail.com", "role": "staff"})
    await store.put("activity", "u10", {"email": " C@Gmail.com", "role": "staff"})
    await store.put("activity", "u11", {"email": "other@gmail.com", "role": "staff"})


class TestRemoveCompletely:
    """Removal from both collections."""

    @pytest.mark.asyncio
    async def test_scan_finds_undeclared_records(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await _seed(store)

        result = await removal_service.remove_completely("c@gmail.com", ["u9"])

        assert result.success is True
        assert result.message == "User removed from system completely"
        assert sorted(result.deleted_user_ids) == ["u10", "u9"]
        assert await store.get_by_key("activity", "u9") is None
        assert await store.get_by_key("activity", "u10") is None
        assert await store.get_by_key("activity", "u11") is not None
        assert await store.get_by_key("allowList", "c@gmail.com") is None

    @pytest.mark.asyncio
    async def test_email_normalized(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await _seed(store)

        result = await removal_service.remove_completely("  C@GMAIL.com ")

        assert result.email == "c@gmail.com"
        assert result.success is True
        assert await store.get_by_key("allowList", "c@gmail.com") is None

    @pytest.mark.asyncio
    async def test_absent_entries_are_not_errors(
        self,
        removal_service: UserRemovalService,
    ) -> None:
        result = await removal_service.remove_completely("nobody@gmail.com", ["ghost"])

        assert result.success is True
        assert result.deleted_user_ids == ["ghost"]

    @pytest.mark.asyncio
    async def test_legacy_allow_list_keys_removed(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await store.put("allowList", "C@Gmail.com", {"role": "staff"})
        await store.put("allowList", "auto-id", {"email": "c@gmail.com", "role": "staff"})

        result = await removal_service.remove_completely("c@gmail.com")

        assert result.success is True
        assert await store.list_all("allowList") == []

    @pytest.mark.asyncio
    async def test_partial_failure_reported_without_rollback(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await _seed(store)
        store.configure_failure(operation="delete", collection="activity", key="u10")

        result = await removal_service.remove_completely("c@gmail.com", ["u9"])

        assert result.success is False
        failed = result.failed_steps
        assert len(failed) == 1
        assert failed[0].kind == "activity"
        assert failed[0].key == "u10"
        assert failed[0].error.error_code == "STORE_UNAVAILABLE"
        assert "activity/u10" in result.message
        # the other deletions went through
        assert await store.get_by_key("activity", "u9") is None
        assert await store.get_by_key("allowList", "c@gmail.com") is None

    @pytest.mark.asyncio
    async def test_allow_list_failure_does_not_block_activity(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await _seed(store)
        store.configure_failure(
            operation="delete",
            collection="allowList",
            error=PermissionDeniedError(message="read-only"),
        )

        result = await removal_service.remove_completely("c@gmail.com", ["u9"])

        assert result.success is False
        assert [s.kind for s in result.failed_steps] == ["allow_list"]
        assert result.failed_steps[0].error.error_code == "PERMISSION_DENIED"
        assert sorted(result.deleted_user_ids) == ["u10", "u9"]

    @pytest.mark.asyncio
    async def test_scan_failure_still_deletes_known_ids(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await _seed(store)
        store.configure_failure(operation="list_all", collection="activity")

        result = await removal_service.remove_completely("c@gmail.com", ["u9"])

        assert result.success is False
        assert [s.kind for s in result.failed_steps] == ["scan"]
        assert result.deleted_user_ids == ["u9"]
        assert await store.get_by_key("activity", "u10") is not None

    @pytest.mark.asyncio
    async def test_known_ids_deduplicated(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await _seed(store)

        result = await removal_service.remove_completely("c@gmail.com", ["u9", "u9", "", "u10"])

        activity_steps = [s for s in result.steps if s.kind == "activity"]
        assert [s.key for s in activity_steps] == ["u9", "u10"]

    @pytest.mark.asyncio
    async def test_single_id_string(
        self,
        removal_service: UserRemovalService,
        store: InMemoryIdentityStore,
    ) -> None:
        await store.put("activity", "u9", {"email": "legacy@gmail.com"})

        result = await removal_service.remove_completely("c@gmail.com", "u9")

        activity_steps = [s for s in result.steps if s.kind == "activity"]
        assert [s.key for s in activity_steps] == ["u9"]
        assert result.deleted_user_ids == ["u9"]
        assert await store.get_by_key("activity", "u9") is None
