"""
Roster reconciliation, live view and removal.
"""

from accessroster.roster.allow_list import AllowListService
from accessroster.roster.formatting import format_last_active
from accessroster.roster.merger import merge_roster
from accessroster.roster.removal import UserRemovalService
from accessroster.roster.schemas import MergedUserView, RemovalResult, RemovalStep
from accessroster.roster.watcher import RosterWatcher

__all__ = [
    "AllowListService",
    "MergedUserView",
    "RemovalResult",
    "RemovalStep",
    "RosterWatcher",
    "UserRemovalService",
    "format_last_active",
    "merge_roster",
]
