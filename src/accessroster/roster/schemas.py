"""
Schemas for the merged roster and removal results.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from accessroster.auth.rbac import UserRole
from accessroster.shared.exceptions import AccessRosterError

StepKind = Literal["allow_list", "activity", "scan"]


class MergedUserView(BaseModel):
    """One row per normalized email, derived from both collections."""

    email: str
    approved: bool
    active: bool
    role: UserRole | None = None
    name: str = ""
    created_at: datetime | None = None
    last_active: datetime | None = None
    user_ids: list[str] = Field(default_factory=list)

    @property
    def has_duplicates(self) -> bool:
        """More than one activity record maps to this email."""
        return len(self.user_ids) > 1


@dataclass(frozen=True)
class RemovalStep:
    """One step attempted during a removal.

    ``scan`` steps list a collection; the others delete one document.
    """

    kind: StepKind
    collection: str
    key: str | None
    succeeded: bool
    error: AccessRosterError | None = None

    @property
    def description(self) -> str:
        if self.kind == "scan":
            return f"scan {self.collection}"
        return f"delete {self.collection}/{self.key}"


@dataclass(frozen=True)
class RemovalResult:
    """Aggregate outcome of removing a person from both collections."""

    email: str
    steps: tuple[RemovalStep, ...] = ()

    @property
    def success(self) -> bool:
        return all(step.succeeded for step in self.steps)

    @property
    def failed_steps(self) -> list[RemovalStep]:
        return [step for step in self.steps if not step.succeeded]

    @property
    def deleted_user_ids(self) -> list[str]:
        return [
            step.key
            for step in self.steps
            if step.kind == "activity" and step.succeeded and step.key is not None
        ]

    @property
    def message(self) -> str:
        if self.success:
            return "User removed from system completely"
        failed = ", ".join(step.description for step in self.failed_steps)
        return f"Failed to remove user completely: {failed}"
