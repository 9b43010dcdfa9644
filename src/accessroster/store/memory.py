"""
In-memory identity store for tests and local runs.
"""

import copy
from collections.abc import Mapping
from typing import Any

from accessroster.shared.exceptions import StoreError, StoreUnavailableError
from accessroster.shared.logging import get_logger
from accessroster.store.interface import (
    IdentityStore,
    SnapshotCallback,
    StoredDocument,
    SubscriptionHub,
    Unsubscribe,
)

logger = get_logger(__name__)


class InMemoryIdentityStore(IdentityStore):
    """Dict-backed store with failure injection."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._hub = SubscriptionHub()
        # (operation, collection, key) -> error; None acts as a wildcard
        self._failures: list[tuple[str | None, str | None, str | None, StoreError]] = []
        self._operations: list[tuple[str, str, str | None]] = []

    def reset(self) -> None:
        self._collections.clear()
        self._failures.clear()
        self._operations.clear()

    def configure_failure(
        self,
        operation: str | None = None,
        collection: str | None = None,
        key: str | None = None,
        error: StoreError | None = None,
    ) -> None:
        """Make matching operations raise.

        Args:
            operation: get_by_key, query_by_field, list_all, put, delete
                or subscribe.
            collection: Collection to match.
            key: Document key to match.
            error: Error to raise, StoreUnavailableError by default.
        """
        self._failures.append(
            (
                operation,
                collection,
                key,
                error or StoreUnavailableError(message="Mock store failure"),
            )
        )

    def clear_failures(self) -> None:
        self._failures.clear()

    @property
    def operations(self) -> list[tuple[str, str, str | None]]:
        """Operations performed so far as (operation, collection, key)."""
        return self._operations.copy()

    def observer_count(self, collection: str) -> int:
        return self._hub.observer_count(collection)

    def _check(self, operation: str, collection: str, key: str | None = None) -> None:
        self._operations.append((operation, collection, key))
        for op, coll, k, error in self._failures:
            if op not in (None, operation):
                continue
            if coll not in (None, collection):
                continue
            if k is not None and k != key:
                continue
            raise error

    def _snapshot(self, collection: str) -> list[StoredDocument]:
        docs = self._collections.get(collection, {})
        return [
            StoredDocument(key=key, data=copy.deepcopy(data))
            for key, data in sorted(docs.items())
        ]

    async def get_by_key(self, collection: str, key: str) -> StoredDocument | None:
        self._check("get_by_key", collection, key)
        data = self._collections.get(collection, {}).get(key)
        if data is None:
            return None
        return StoredDocument(key=key, data=copy.deepcopy(data))

    async def query_by_field(
        self,
        collection: str,
        field_name: str,
        value: Any,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        self._check("query_by_field", collection)
        matches = [doc for doc in self._snapshot(collection) if doc.data.get(field_name) == value]
        return matches[:limit] if limit is not None else matches

    async def list_all(self, collection: str) -> list[StoredDocument]:
        self._check("list_all", collection)
        return self._snapshot(collection)

    async def put(
        self,
        collection: str,
        key: str,
        fields: Mapping[str, Any],
        merge: bool = False,
    ) -> None:
        self._check("put", collection, key)
        docs = self._collections.setdefault(collection, {})
        if merge and key in docs:
            docs[key].update(copy.deepcopy(dict(fields)))
        else:
            docs[key] = copy.deepcopy(dict(fields))
        self._hub.publish(collection, self._snapshot(collection))

    async def delete(self, collection: str, key: str) -> None:
        self._check("delete", collection, key)
        removed = self._collections.get(collection, {}).pop(key, None)
        if removed is not None:
            self._hub.publish(collection, self._snapshot(collection))

    async def subscribe(self, collection: str, on_change: SnapshotCallback) -> Unsubscribe:
        self._check("subscribe", collection)
        unsubscribe = self._hub.add(collection, on_change)
        logger.debug("Subscribed to collection", extra={"collection": collection})
        on_change(self._snapshot(collection))
        return unsubscribe
