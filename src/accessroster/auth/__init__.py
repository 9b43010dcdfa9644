"""
Sign-in authorization against the allow-list.
"""

from accessroster.auth.rbac import UserRole, ViewerAuthorization
from accessroster.auth.resolver import DEFAULT_LOOKUP_CHAIN, AccessResolver, AllowListLookup
from accessroster.auth.schemas import (
    ActivityRecord,
    AllowListEntry,
    AllowListEntryCreate,
    AuthOutcome,
    DeviceInfo,
    Identity,
)
from accessroster.auth.session import AuthSession

__all__ = [
    "AccessResolver",
    "ActivityRecord",
    "AllowListEntry",
    "AllowListEntryCreate",
    "AllowListLookup",
    "AuthOutcome",
    "AuthSession",
    "DEFAULT_LOOKUP_CHAIN",
    "DeviceInfo",
    "Identity",
    "UserRole",
    "ViewerAuthorization",
]
