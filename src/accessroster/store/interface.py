"""
Identity store interface definition.

The store is a minimal document-collection abstraction: documents are
addressed by (collection, key) and carry a flat mapping of fields.
Subscribers receive the whole collection as a snapshot, once on
registration and again after every write to that collection.
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from accessroster.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StoredDocument:
    """A document read back from the store."""

    key: str
    data: dict[str, Any] = field(default_factory=dict)


SnapshotCallback = Callable[[list[StoredDocument]], None]
Unsubscribe = Callable[[], None]


class IdentityStore(ABC):
    """Abstract interface for identity stores."""

    @abstractmethod
    async def get_by_key(self, collection: str, key: str) -> StoredDocument | None:
        """Fetch one document by key."""
        ...

    @abstractmethod
    async def query_by_field(
        self,
        collection: str,
        field_name: str,
        value: Any,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        """Return documents whose field equals value, ordered by key."""
        ...

    @abstractmethod
    async def list_all(self, collection: str) -> list[StoredDocument]:
        """Return every document of a collection, ordered by key."""
        ...

    @abstractmethod
    async def put(
        self,
        collection: str,
        key: str,
        fields: Mapping[str, Any],
        merge: bool = False,
    ) -> None:
        """Write a document.

        With merge=True the given fields are merged over the stored ones;
        otherwise the document is replaced.
        """
        ...

    @abstractmethod
    async def delete(self, collection: str, key: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        ...

    @abstractmethod
    async def subscribe(self, collection: str, on_change: SnapshotCallback) -> Unsubscribe:
        """Register a snapshot observer and return its unsubscribe handle."""
        ...


class SubscriptionHub:
    """Book-keeping for snapshot observers, shared by store implementations."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._observers: dict[str, dict[int, SnapshotCallback]] = {}
        self._next_token = 0

    def add(self, collection: str, on_change: SnapshotCallback) -> Unsubscribe:
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._observers.setdefault(collection, {})[token] = on_change

        def unsubscribe() -> None:
            with self._lock:
                self._observers.get(collection, {}).pop(token, None)

        return unsubscribe

    def has_observers(self, collection: str) -> bool:
        with self._lock:
            return bool(self._observers.get(collection))

    def observer_count(self, collection: str) -> int:
        with self._lock:
            return len(self._observers.get(collection, {}))

    def publish(self, collection: str, snapshot: list[StoredDocument]) -> None:
        """Deliver a snapshot to every observer of the collection.

        An observer raising does not prevent delivery to the others.
        """
        with self._lock:
            observers = list(self._observers.get(collection, {}).values())

        for on_change in observers:
            try:
                on_change(list(snapshot))
            except Exception:
                logger.exception(
                    "Snapshot observer failed",
                    extra={"collection": collection},
                )
