"""
Roles and viewer authorization state.
"""

from dataclasses import dataclass
from enum import Enum


class UserRole(str, Enum):
    """User roles with hierarchical ordering."""

    ADMIN = "admin"
    STAFF = "staff"

    @classmethod
    def from_string(cls, role_str: str) -> "UserRole":
        """Convert string to UserRole enum.

        Args:
            role_str: Role string value.

        Returns:
            Corresponding UserRole enum.

        Raises:
            ValueError: If role string is invalid.
        """
        if isinstance(role_str, cls):
            return role_str
        try:
            return cls(str(role_str).strip().lower())
        except ValueError:
            raise ValueError(f"Invalid role: {role_str}")

    def has_permission(self, required_role: "UserRole") -> bool:
        """Check if this role has permission for the required role.

        Role hierarchy: admin > staff

        Args:
            required_role: The minimum required role.

        Returns:
            True if this role has sufficient permissions.
        """
        hierarchy = {
            UserRole.ADMIN: 2,
            UserRole.STAFF: 1,
        }
        return hierarchy.get(self, 0) >= hierarchy.get(required_role, 0)


def check_role_permission(user_role: str | UserRole | None, required_role: UserRole) -> bool:
    """Check if a user role has permission for a required role.

    Args:
        user_role: User's role as string or enum, None when signed out.
        required_role: Required role for the operation.

    Returns:
        True if user has sufficient permissions.
    """
    if user_role is None:
        return False
    try:
        role = user_role if isinstance(user_role, UserRole) else UserRole.from_string(user_role)
    except ValueError:
        return False
    return role.has_permission(required_role)


@dataclass(frozen=True)
class ViewerAuthorization:
    """Authorization state of whoever is looking at the roster.

    Passed explicitly to components whose behavior depends on the viewer.
    """

    role: UserRole | None = None
    loading: bool = False

    @property
    def is_admin(self) -> bool:
        return not self.loading and check_role_permission(self.role, UserRole.ADMIN)

    @property
    def is_signed_in(self) -> bool:
        return not self.loading and self.role is not None
