"""
SQLAlchemy-backed identity store.

Every collection lives in one table; a document is a JSON blob addressed
by (collection, key). Datetimes are written as ISO-8601 strings.
"""

from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from sqlalchemy import JSON, DateTime, String, delete, func, select
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Mapped, mapped_column

from accessroster.shared.database import Base, DatabaseManager
from accessroster.shared.exceptions import (
    PermissionDeniedError,
    StoreError,
    StoreUnavailableError,
)
from accessroster.shared.logging import get_logger
from accessroster.store.interface import (
    IdentityStore,
    SnapshotCallback,
    StoredDocument,
    SubscriptionHub,
    Unsubscribe,
)

logger = get_logger(__name__)

_PERMISSION_MARKERS = ("permission denied", "access denied", "readonly", "read-only", "not authorized")


class IdentityDocument(Base):
    """One document of a logical collection."""

    __tablename__ = "identity_documents"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    key: Mapped[str] = mapped_column(String(320), primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<IdentityDocument(collection={self.collection}, key={self.key})>"


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(k): _to_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    return value


def translate_store_error(exc: SQLAlchemyError, operation: str, collection: str) -> StoreError:
    """Map a SQLAlchemy exception onto the store error taxonomy.

    Args:
        exc: Exception raised by SQLAlchemy.
        operation: Store operation that failed.
        collection: Collection involved.

    Returns:
        StoreUnavailableError or PermissionDeniedError.
    """
    details = {"operation": operation, "collection": collection, "cause": type(exc).__name__}
    text = str(exc).lower()

    if isinstance(exc, DBAPIError) and any(marker in text for marker in _PERMISSION_MARKERS):
        return PermissionDeniedError(
            message=f"Store refused {operation} on {collection}",
            details=details,
        )
    if isinstance(exc, (OperationalError, InterfaceError)):
        return StoreUnavailableError(
            message=f"Store unreachable during {operation} on {collection}",
            details=details,
        )
    return StoreUnavailableError(
        message=f"Store failed during {operation} on {collection}",
        details=details,
    )


class SqlIdentityStore(IdentityStore):
    """Identity store persisted through async SQLAlchemy."""

    def __init__(self, database: DatabaseManager) -> None:
        """Initialize the store.

        Args:
            database: Database manager owning the engine and sessions.
        """
        self._database = database
        self._hub = SubscriptionHub()

    async def initialize(self) -> None:
        """Create the backing table if it does not exist."""
        try:
            await self._database.create_all()
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, "initialize", "*") from exc

    async def close(self) -> None:
        await self._database.close()

    async def get_by_key(self, collection: str, key: str) -> StoredDocument | None:
        try:
            async with self._database.session() as session:
                row = await session.get(IdentityDocument, (collection, key))
                if row is None:
                    return None
                return StoredDocument(key=row.key, data=dict(row.data or {}))
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, "get_by_key", collection) from exc

    async def query_by_field(
        self,
        collection: str,
        field_name: str,
        value: Any,
        limit: int | None = None,
    ) -> list[StoredDocument]:
        if not isinstance(value, str):
            # JSON path comparison is only portable for strings
            matches = [d for d in await self.list_all(collection) if d.data.get(field_name) == value]
            return matches[:limit] if limit is not None else matches

        stmt = (
            select(IdentityDocument)
            .where(IdentityDocument.collection == collection)
            .where(IdentityDocument.data[field_name].as_string() == value)
            .order_by(IdentityDocument.key)
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            async with self._database.session() as session:
                result = await session.execute(stmt)
                return [
                    StoredDocument(key=row.key, data=dict(row.data or {}))
                    for row in result.scalars().all()
                ]
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, "query_by_field", collection) from exc

    async def list_all(self, collection: str) -> list[StoredDocument]:
        stmt = (
            select(IdentityDocument)
            .where(IdentityDocument.collection == collection)
            .order_by(IdentityDocument.key)
        )
        try:
            async with self._database.session() as session:
                result = await session.execute(stmt)
                return [
                    StoredDocument(key=row.key, data=dict(row.data or {}))
                    for row in result.scalars().all()
                ]
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, "list_all", collection) from exc

    async def _write(
        self,
        collection: str,
        key: str,
        fields: dict[str, Any],
        merge: bool,
    ) -> None:
        async with self._database.session() as session:
            row = await session.get(IdentityDocument, (collection, key))
            if row is None:
                session.add(IdentityDocument(collection=collection, key=key, data=fields))
            elif merge:
                # reassign so the JSON column is flagged dirty
                row.data = {**(row.data or {}), **fields}
            else:
                row.data = fields

    async def put(
        self,
        collection: str,
        key: str,
        fields: Mapping[str, Any],
        merge: bool = False,
    ) -> None:
        payload = _to_json(dict(fields))
        try:
            try:
                await self._write(collection, key, payload, merge)
            except IntegrityError:
                # concurrent creation of the same key: last write wins
                logger.info(
                    "Concurrent document creation, retrying as update",
                    extra={"collection": collection, "key": key},
                )
                await self._write(collection, key, payload, merge)
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, "put", collection) from exc

        await self._publish(collection)

    async def delete(self, collection: str, key: str) -> None:
        stmt = (
            delete(IdentityDocument)
            .where(IdentityDocument.collection == collection)
            .where(IdentityDocument.key == key)
        )
        try:
            async with self._database.session() as session:
                result = await session.execute(stmt)
                deleted = result.rowcount or 0
        except SQLAlchemyError as exc:
            raise translate_store_error(exc, "delete", collection) from exc

        if deleted:
            await self._publish(collection)

    async def subscribe(self, collection: str, on_change: SnapshotCallback) -> Unsubscribe:
        snapshot = await self.list_all(collection)
        unsubscribe = self._hub.add(collection, on_change)
        on_change(snapshot)
        return unsubscribe

    async def _publish(self, collection: str) -> None:
        if not self._hub.has_observers(collection):
            return
        try:
            snapshot = await self.list_all(collection)
        except StoreError:
            logger.exception(
                "Failed to refresh snapshot for observers",
                extra={"collection": collection},
            )
            return
        self._hub.publish(collection, snapshot)
