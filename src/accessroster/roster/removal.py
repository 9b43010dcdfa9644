"""
Removing a person from both collections.

Deletions run concurrently and independently. There is no rollback: a
partial failure leaves the steps that succeeded in place and is reported
step by step.
"""

import asyncio
import logging
from collections.abc import Iterable

from accessroster.config import Settings, get_settings
from accessroster.roster.schemas import RemovalResult, RemovalStep, StepKind
from accessroster.shared.emails import normalize_email
from accessroster.shared.exceptions import AccessRosterError, StoreError, StoreUnavailableError
from accessroster.shared.logging import get_logger, log_with_context
from accessroster.store.interface import IdentityStore

logger = get_logger(__name__)


def _as_store_error(exc: Exception, operation: str, collection: str) -> AccessRosterError:
    if isinstance(exc, StoreError):
        return exc
    return StoreUnavailableError(
        message=f"Unexpected failure during {operation} on {collection}: {exc}",
        details={"operation": operation, "collection": collection, "cause": type(exc).__name__},
    )


class UserRemovalService:
    """Service removing allow-list entries and activity records."""

    def __init__(self, store: IdentityStore, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._store = store

    async def remove_completely(
        self,
        email: str,
        known_ids: str | Iterable[str] = (),
    ) -> RemovalResult:
        """Remove a person from the allow-list and the activity roster.

        Args:
            email: Email of the person; normalized before use.
            known_ids: Activity record ids the caller already knows about, or
                a single id. The activity collection is scanned as well,
                so a stale caller list still removes every record for the email.

        Returns:
            RemovalResult listing every attempted step.
        """
        normalized = normalize_email(email)
        allow_coll = self._settings.allow_list_collection
        activity_coll = self._settings.activity_collection
        steps: list[RemovalStep] = []

        allow_keys: list[str] = [normalized] if normalized else []
        if isinstance(known_ids, str):
            known_ids = [known_ids]
        activity_ids: list[str] = []
        for user_id in known_ids:
            if user_id and user_id not in activity_ids:
                activity_ids.append(user_id)

        if normalized:
            scans = await asyncio.gather(
                self._scan(allow_coll, normalized, match_key=True),
                self._scan(activity_coll, normalized, match_key=False),
            )
            for collection, (found, failure) in zip((allow_coll, activity_coll), scans):
                if failure is not None:
                    steps.append(failure)
                    continue
                target = allow_keys if collection == allow_coll else activity_ids
                for key in found:
                    if key not in target:
                        target.append(key)

        deletions: list[tuple[StepKind, str, str]] = [
            ("allow_list", allow_coll, key) for key in allow_keys
        ] + [("activity", activity_coll, key) for key in activity_ids]

        steps.extend(
            await asyncio.gather(
                *(self._delete(kind, collection, key) for kind, collection, key in deletions)
            )
        )

        result = RemovalResult(email=normalized, steps=tuple(steps))
        log_with_context(
            logger,
            logging.INFO if result.success else logging.ERROR,
            "User removal finished",
            email=normalized,
            success=result.success,
            deleted_user_ids=result.deleted_user_ids,
            failed_steps=[step.description for step in result.failed_steps],
        )
        return result

    async def _scan(
        self,
        collection: str,
        normalized: str,
        match_key: bool,
    ) -> tuple[list[str], RemovalStep | None]:
        try:
            docs = await self._store.list_all(collection)
        except Exception as exc:
            error = _as_store_error(exc, "list_all", collection)
            logger.error(
                "Removal scan failed",
                extra={"collection": collection, "error_code": error.error_code},
            )
            return [], RemovalStep(
                kind="scan", collection=collection, key=None, succeeded=False, error=error
            )

        found = [
            doc.key
            for doc in docs
            if normalize_email(doc.data.get("email")) == normalized
            or (match_key and normalize_email(doc.key) == normalized)
        ]
        return found, None

    async def _delete(self, kind: StepKind, collection: str, key: str) -> RemovalStep:
        try:
            await self._store.delete(collection, key)
        except Exception as exc:
            error = _as_store_error(exc, "delete", collection)
            logger.error(
                "Removal step failed",
                extra={"collection": collection, "key": key, "error_code": error.error_code},
            )
            return RemovalStep(
                kind=kind, collection=collection, key=key, succeeded=False, error=error
            )
        return RemovalStep(kind=kind, collection=collection, key=key, succeeded=True)
