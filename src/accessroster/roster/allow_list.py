"""
Service layer for allow-list management.
"""

from collections.abc import Callable
from datetime import datetime

from accessroster.auth.schemas import AllowListEntry, AllowListEntryCreate
from accessroster.config import Settings, get_settings
from accessroster.shared.emails import email_domain, normalize_email
from accessroster.shared.logging import get_logger
from accessroster.shared.timestamps import utc_now
from accessroster.store.interface import IdentityStore

logger = get_logger(__name__)


class AllowListService:
    """Service for allow-list management operations."""

    def __init__(
        self,
        store: IdentityStore,
        settings: Settings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings or get_settings()
        self._store = store
        self._clock = clock

    async def get_entry(self, email: str) -> AllowListEntry | None:
        """Get the allow-list entry keyed by the normalized email."""
        normalized = normalize_email(email)
        if not normalized:
            return None
        doc = await self._store.get_by_key(self._settings.allow_list_collection, normalized)
        return AllowListEntry.from_document(doc) if doc else None

    async def add_entry(self, request: AllowListEntryCreate) -> AllowListEntry:
        """Add an identity to the allow-list.

        Args:
            request: Validated creation request.

        Returns:
            Created AllowListEntry.

        Raises:
            ValueError: If the domain is not accepted or the email is already listed.
        """
        allowed = self._settings.allowed_email_domains_list
        if allowed and email_domain(request.email) not in allowed:
            raise ValueError(
                "Only addresses from these domains are allowed: " + ", ".join(allowed)
            )

        if await self.get_entry(request.email) is not None:
            raise ValueError(f"Email already on the allow-list: {request.email}")

        entry = AllowListEntry(
            email=request.email,
            role=request.role,
            name=request.name,
            display_name=request.name,
            created_at=self._clock(),
        )
        await self._store.put(
            self._settings.allow_list_collection,
            request.email,
            entry.model_dump(mode="python"),
        )

        logger.info(
            "Added allow-list entry",
            extra={"email": request.email, "role": request.role.value},
        )
        return entry

    async def remove_entry(self, email: str) -> None:
        """Delete the allow-list entry keyed by the normalized email.

        Deleting an absent entry is not an error.
        """
        normalized = normalize_email(email)
        if not normalized:
            return
        await self._store.delete(self._settings.allow_list_collection, normalized)
        logger.info("Removed allow-list entry", extra={"email": normalized})
