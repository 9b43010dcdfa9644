"""
Identity store adapters.
"""

from accessroster.store.interface import IdentityStore, StoredDocument
from accessroster.store.memory import InMemoryIdentityStore
from accessroster.store.sql import SqlIdentityStore

__all__ = [
    "IdentityStore",
    "InMemoryIdentityStore",
    "SqlIdentityStore",
    "StoredDocument",
]
