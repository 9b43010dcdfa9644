"""
Roster reconciliation.

Merges the allow-list and the activity roster into one view per normalized
email. The merge is pure: both inputs are first put into a canonical order
(allow-list by email, activity by record id) so that any permutation of
either sequence yields the same output.
"""

from collections.abc import Iterable

from accessroster.auth.rbac import UserRole
from accessroster.auth.schemas import ActivityRecord, AllowListEntry
from accessroster.roster.schemas import MergedUserView
from accessroster.shared.timestamps import pick_most_recent


def _entry_order(entry: AllowListEntry) -> tuple[str, str, str, str]:
    return (
        entry.normalized_email,
        entry.email,
        entry.role.value if entry.role else "",
        entry.display_name or entry.name,
    )


def roster_sort_key(view: MergedUserView) -> tuple[int, str]:
    """Admins first, then ascending email."""
    return (0 if view.role == UserRole.ADMIN else 1, view.email)


def merge_roster(
    allow_list: Iterable[AllowListEntry],
    activity: Iterable[ActivityRecord],
    default_role: UserRole = UserRole.STAFF,
) -> list[MergedUserView]:
    """Merge allow-list entries and activity records per email.

    Args:
        allow_list: Allow-listed identities.
        activity: Activity records, possibly several per email.
        default_role: Role used when neither source carries one.

    Returns:
        Views sorted admins first, then by email.
    """
    by_email: dict[str, MergedUserView] = {}

    for entry in sorted(allow_list, key=_entry_order):
        email = entry.normalized_email
        if not email or email in by_email:
            continue
        by_email[email] = MergedUserView(
            email=email,
            approved=True,
            active=False,
            role=entry.role,
            name=entry.display_name or entry.name or "",
            created_at=entry.created_at,
        )

    for record in sorted(activity, key=lambda r: r.id):
        email = record.normalized_email
        if not email:
            continue

        view = by_email.get(email)
        if view is None:
            view = MergedUserView(email=email, approved=False, active=False)
            by_email[email] = view

        view.active = True
        view.role = view.role or record.role or default_role
        view.name = view.name or record.display_name or record.name or ""
        view.created_at = view.created_at or record.created_at
        view.last_active = pick_most_recent(
            view.last_active,
            record.last_active or record.last_login,
        )
        if record.id not in view.user_ids:
            view.user_ids.append(record.id)

    return sorted(by_email.values(), key=roster_sort_key)
