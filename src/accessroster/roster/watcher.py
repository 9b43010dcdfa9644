"""
Live roster view fed by subscriptions to both collections.
"""

import threading
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from accessroster.auth.rbac import UserRole, ViewerAuthorization
from accessroster.auth.schemas import ActivityRecord, AllowListEntry
from accessroster.config import Settings, get_settings
from accessroster.roster.merger import merge_roster
from accessroster.roster.schemas import MergedUserView
from accessroster.shared.logging import get_logger
from accessroster.store.interface import IdentityStore, StoredDocument, Unsubscribe

logger = get_logger(__name__)

RosterListener = Callable[[tuple[MergedUserView, ...]], None]

M = TypeVar("M", bound=BaseModel)


def _parse_documents(
    docs: list[StoredDocument],
    parse: Callable[[StoredDocument], M],
    collection: str,
) -> tuple[M, ...]:
    parsed: list[M] = []
    for doc in docs:
        try:
            parsed.append(parse(doc))
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed document",
                extra={"collection": collection, "key": doc.key, "errors": exc.error_count()},
            )
    return tuple(parsed)


class RosterWatcher:
    """Keeps a merged roster current while an admin is viewing it.

    The watcher owns both unsubscribe handles. Every notification replaces
    one source list and publishes a freshly merged tuple; readers only ever
    see a complete view.
    """

    def __init__(
        self,
        store: IdentityStore,
        viewer: ViewerAuthorization,
        settings: Settings | None = None,
        on_update: RosterListener | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            store: Identity store to subscribe to.
            viewer: Authorization state of the viewer.
            settings: Application settings.
            on_update: Called with every new merged view.
        """
        self._settings = settings or get_settings()
        self._store = store
        self._viewer = viewer
        self._listeners: list[RosterListener] = [on_update] if on_update else []
        self._lock = threading.Lock()
        self._notify_lock = threading.RLock()
        self._version = 0
        self._delivered = 0
        self._allow_list: tuple[AllowListEntry, ...] = ()
        self._activity: tuple[ActivityRecord, ...] = ()
        self._view: tuple[MergedUserView, ...] = ()
        self._unsubscribers: list[Unsubscribe] = []

    @property
    def view(self) -> tuple[MergedUserView, ...]:
        return self._view

    @property
    def activity(self) -> tuple[ActivityRecord, ...]:
        return self._activity

    @property
    def viewer(self) -> ViewerAuthorization:
        return self._viewer

    @property
    def is_running(self) -> bool:
        return bool(self._unsubscribers)

    def add_listener(self, listener: RosterListener) -> None:
        self._listeners.append(listener)

    async def start(self) -> bool:
        """Subscribe to both collections if the viewer may see the roster.

        Returns:
            True when subscriptions are active.
        """
        if self.is_running:
            return True
        if self._viewer.loading:
            logger.debug("Viewer still loading, roster subscriptions deferred")
            return False
        if not self._viewer.is_admin:
            logger.info("Viewer is not admin, skipping roster subscriptions")
            return False

        logger.info("Setting up roster subscriptions")
        try:
            self._unsubscribers.append(
                await self._store.subscribe(
                    self._settings.allow_list_collection, self._on_allow_list
                )
            )
            self._unsubscribers.append(
                await self._store.subscribe(
                    self._settings.activity_collection, self._on_activity
                )
            )
        except Exception:
            self.stop()
            raise
        return True

    def stop(self) -> None:
        """Unregister both subscriptions together."""
        if not self._unsubscribers:
            return
        logger.info("Tearing down roster subscriptions")
        unsubscribers, self._unsubscribers = self._unsubscribers, []
        for unsubscribe in unsubscribers:
            unsubscribe()

    async def update_viewer(self, viewer: ViewerAuthorization) -> None:
        """Apply a new viewer authorization, subscribing or tearing down."""
        self._viewer = viewer
        if viewer.is_admin:
            await self.start()
        else:
            self.stop()

    def _on_allow_list(self, docs: list[StoredDocument]) -> None:
        entries = _parse_documents(
            docs, AllowListEntry.from_document, self._settings.allow_list_collection
        )
        with self._lock:
            self._allow_list = entries
            version, view = self._recompute()
        self._notify(version, view)

    def _on_activity(self, docs: list[StoredDocument]) -> None:
        records = _parse_documents(
            docs, ActivityRecord.from_document, self._settings.activity_collection
        )
        with self._lock:
            self._activity = records
            version, view = self._recompute()
        self._notify(version, view)

    def _recompute(self) -> tuple[int, tuple[MergedUserView, ...]]:
        view = tuple(
            merge_roster(
                self._allow_list,
                self._activity,
                default_role=UserRole(self._settings.default_role),
            )
        )
        self._view = view
        self._version += 1
        return self._version, view

    def _notify(self, version: int, view: tuple[MergedUserView, ...]) -> None:
        with self._notify_lock:
            # a newer view has already been delivered
            if version <= self._delivered:
                return
            self._delivered = version
            for listener in list(self._listeners):
                listener(view)
