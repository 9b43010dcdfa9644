"""
Identity store factory.

Single source of truth for store selection: Settings.store_backend.
"""

from __future__ import annotations

import logging
from urllib.parse import urlsplit

from accessroster.config import Settings, get_settings
from accessroster.shared.database import DatabaseManager
from accessroster.store.interface import IdentityStore
from accessroster.store.memory import InMemoryIdentityStore
from accessroster.store.sql import SqlIdentityStore

logger = logging.getLogger(__name__)


def _mask_url(url: str) -> str:
    parts = urlsplit(url)
    if parts.password:
        return url.replace(f":{parts.password}@", ":***@")
    return url


async def create_identity_store(settings: Settings | None = None) -> IdentityStore:
    """Create the identity store selected by settings.

    The SQL store has its table created before it is returned.
    """
    cfg = settings or get_settings()

    logger.info(
        "Identity store resolved",
        extra={
            "store_backend": cfg.store_backend,
            "database_url": _mask_url(cfg.database_url) if cfg.store_backend == "sql" else None,
        },
    )

    if cfg.store_backend == "memory":
        return InMemoryIdentityStore()

    if cfg.store_backend == "sql":
        store = SqlIdentityStore(DatabaseManager(database_url=cfg.database_url, echo=cfg.debug))
        await store.initialize()
        return store

    raise ValueError(f"Unsupported store_backend: {cfg.store_backend}")
