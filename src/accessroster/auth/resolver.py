"""
Sign-in authorization against the allow-list.

An identity is authorized when it already owns an activity record
(re-authentication) or when its email is found on the allow-list. Allow-list
entries were keyed differently over time, so the lookup walks an ordered
chain of strategies and stops at the first hit.
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from accessroster.auth.provider import IdentityProvider, IdentityProviderError
from accessroster.auth.rbac import UserRole
from accessroster.auth.schemas import (
    ActivityRecord,
    AllowListEntry,
    AuthOutcome,
    Identity,
)
from accessroster.config import Settings, get_settings
from accessroster.shared.exceptions import (
    AccessRosterError,
    InvalidIdentityError,
    StoreError,
    StoreUnavailableError,
    UnauthorizedError,
)
from accessroster.shared.logging import get_logger
from accessroster.shared.timestamps import utc_now
from accessroster.store.interface import IdentityStore, StoredDocument

logger = get_logger(__name__)

UNAUTHORIZED_MESSAGE = "Unauthorized user {email}. Please contact the administrator for access."


@dataclass(frozen=True)
class AllowListLookup:
    """One way of finding an allow-list entry for an email.

    Attributes:
        name: Strategy name used in logs.
        by_field: Query the email field instead of the document key.
        use_raw: Use the email as given instead of its normalized form.
    """

    name: str
    by_field: bool
    use_raw: bool

    def candidate(self, identity: Identity) -> str | None:
        """Value this strategy looks up, None when it would repeat another."""
        if self.use_raw:
            raw = identity.email
            return raw if raw and raw != identity.normalized_email else None
        return identity.normalized_email

    async def find(
        self,
        store: IdentityStore,
        collection: str,
        identity: Identity,
    ) -> StoredDocument | None:
        value = self.candidate(identity)
        if value is None:
            return None
        if self.by_field:
            docs = await store.query_by_field(collection, "email", value, limit=1)
            return docs[0] if docs else None
        return await store.get_by_key(collection, value)


DEFAULT_LOOKUP_CHAIN: tuple[AllowListLookup, ...] = (
    AllowListLookup(name="key_normalized", by_field=False, use_raw=False),
    AllowListLookup(name="key_raw", by_field=False, use_raw=True),
    AllowListLookup(name="field_normalized", by_field=True, use_raw=False),
    AllowListLookup(name="field_raw", by_field=True, use_raw=True),
)


class _StageFailure(Exception):
    def __init__(self, stage: str, cause: Exception) -> None:
        super().__init__(stage)
        self.stage = stage
        self.cause = cause


class AccessResolver:
    """Decides whether a signed-in identity may use the system."""

    def __init__(
        self,
        store: IdentityStore,
        provider: IdentityProvider,
        settings: Settings | None = None,
        lookup_chain: Sequence[AllowListLookup] = DEFAULT_LOOKUP_CHAIN,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the resolver.

        Args:
            store: Identity store holding both collections.
            provider: Identity provider, used to force sign-out.
            settings: Application settings.
            lookup_chain: Ordered allow-list lookup strategies.
            clock: Source of the current time.
        """
        self._settings = settings or get_settings()
        self._store = store
        self._provider = provider
        self._lookup_chain = tuple(lookup_chain)
        self._clock = clock

    @property
    def lookup_chain(self) -> tuple[AllowListLookup, ...]:
        return self._lookup_chain

    async def authorize(self, identity: Identity | None) -> AuthOutcome:
        """Authorize an identity and record its activity.

        Args:
            identity: Identity reported by the provider.

        Returns:
            AuthOutcome; failures are carried in ``error``, never raised.
        """
        if identity is None or not identity.subject_id.strip() or not identity.normalized_email:
            error = InvalidIdentityError(
                message="Identity must carry a subject id and an email",
                details={"subject_id": getattr(identity, "subject_id", None)},
            )
            logger.warning("Rejected malformed identity", extra=error.details)
            return AuthOutcome(authorized=False, error=error)

        email = identity.normalized_email
        try:
            return await self._authorize(identity)
        except _StageFailure as failure:
            error = self._to_store_error(failure)
            logger.error(
                "Authorization failed on store error",
                extra={
                    "subject_id": identity.subject_id,
                    "email": email,
                    "stage": failure.stage,
                    "error_code": error.error_code,
                },
            )
            return AuthOutcome(authorized=False, error=error, email=email)

    async def _authorize(self, identity: Identity) -> AuthOutcome:
        email = identity.normalized_email
        now = self._clock()

        existing = await self._stage(
            "activity_lookup",
            self._store.get_by_key(self._settings.activity_collection, identity.subject_id),
        )
        existing_data: dict[str, Any] = existing.data if existing else {}
        role = self._stored_role(existing_data)

        if role is None:
            entry = await self._stage("allow_list_lookup", self._find_allow_list_entry(identity))
            if entry is None:
                return await self._reject(identity)

            role = entry.role or UserRole(self._settings.default_role)
            if existing is None:
                created = {
                    "email": identity.email,
                    "name": entry.display_name or entry.name or identity.display_name or email,
                    "role": role.value,
                    "created_at": now,
                }
                await self._stage(
                    "activity_write",
                    self._store.put(
                        self._settings.activity_collection,
                        identity.subject_id,
                        created,
                        merge=True,
                    ),
                )
                existing_data = created
            logger.info(
                "Activated allow-listed identity",
                extra={"subject_id": identity.subject_id, "email": email, "role": role.value},
            )

        activity: dict[str, Any] = {
            "email": identity.email,
            "photo_url": identity.photo_url,
            "role": role.value,
            "last_login": now,
            "last_active": now,
            "login_count": self._login_count(existing_data) + 1,
            "device_info": identity.device_info.model_dump() if identity.device_info else None,
            "updated_at": now,
        }
        if not existing_data.get("created_at"):
            activity["created_at"] = now

        await self._stage(
            "activity_write",
            self._store.put(
                self._settings.activity_collection,
                identity.subject_id,
                activity,
                merge=True,
            ),
        )

        record = ActivityRecord.model_validate(
            {**existing_data, **activity, "id": identity.subject_id}
        )
        logger.info(
            "Identity authorized",
            extra={
                "subject_id": identity.subject_id,
                "email": email,
                "role": role.value,
                "login_count": record.login_count,
            },
        )
        return AuthOutcome(authorized=True, role=role, record=record, email=email)

    async def _find_allow_list_entry(self, identity: Identity) -> AllowListEntry | None:
        for lookup in self._lookup_chain:
            doc = await lookup.find(self._store, self._settings.allow_list_collection, identity)
            if doc is None:
                continue
            try:
                entry = AllowListEntry.from_document(doc)
            except ValidationError:
                logger.warning(
                    "Skipping malformed allow-list entry",
                    extra={"strategy": lookup.name, "key": doc.key},
                )
                continue
            logger.debug(
                "Allow-list entry matched",
                extra={"strategy": lookup.name, "key": doc.key},
            )
            return entry
        return None

    async def _reject(self, identity: Identity) -> AuthOutcome:
        email = identity.normalized_email
        error = UnauthorizedError(
            message=UNAUTHORIZED_MESSAGE.format(email=identity.email.strip()),
            email=email,
        )
        logger.warning(
            "Identity not on allow-list",
            extra={"subject_id": identity.subject_id, "email": email},
        )
        try:
            await self._provider.sign_out()
        except Exception as exc:
            reason = exc.message if isinstance(exc, IdentityProviderError) else str(exc)
            error.details["sign_out_error"] = reason
            logger.error(
                "Forced sign-out failed",
                extra={"subject_id": identity.subject_id, "error": reason},
            )
        return AuthOutcome(authorized=False, error=error, email=email)

    @staticmethod
    async def _stage(stage: str, awaitable: Any) -> Any:
        try:
            return await awaitable
        except Exception as exc:
            raise _StageFailure(stage, exc) from exc

    @staticmethod
    def _to_store_error(failure: _StageFailure) -> AccessRosterError:
        cause = failure.cause
        if isinstance(cause, StoreError):
            cause.details.setdefault("stage", failure.stage)
            return cause
        return StoreUnavailableError(
            message=f"Unexpected failure during {failure.stage}: {cause}",
            details={"stage": failure.stage, "cause": type(cause).__name__},
        )

    @staticmethod
    def _stored_role(data: dict[str, Any]) -> UserRole | None:
        value = data.get("role")
        if not value:
            return None
        try:
            return UserRole.from_string(value)
        except ValueError:
            logger.warning("Ignoring unknown stored role", extra={"role": value})
            return None

    @staticmethod
    def _login_count(data: dict[str, Any]) -> int:
        try:
            return max(int(data.get("login_count") or 0), 0)
        except (TypeError, ValueError):
            return 0
