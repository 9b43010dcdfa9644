"""
Pydantic schemas for identities, allow-list entries and activity records.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from accessroster.auth.rbac import UserRole
from accessroster.shared.emails import normalize_email
from accessroster.shared.exceptions import AccessRosterError
from accessroster.shared.timestamps import to_datetime
from accessroster.store.interface import StoredDocument


def _parse_role(v: Any) -> UserRole | None:
    if v is None or v == "":
        return None
    if isinstance(v, UserRole):
        return v
    return UserRole.from_string(v)


class DeviceInfo(BaseModel):
    """Client device metadata reported at sign-in."""

    user_agent: str | None = None
    platform: str | None = None
    language: str | None = None


class Identity(BaseModel):
    """Identity handed over by the identity provider after sign-in."""

    subject_id: str = ""
    email: str = ""
    display_name: str | None = None
    photo_url: str | None = None
    device_info: DeviceInfo | None = None

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)


class AllowListEntry(BaseModel):
    """Identity permitted to use the system."""

    model_config = ConfigDict(extra="ignore")

    email: str = ""
    role: UserRole | None = None
    name: str = ""
    display_name: str | None = None
    created_at: datetime | None = None

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v: Any) -> UserRole | None:
        return _parse_role(v)

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> str:
        return "" if v is None else str(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def validate_created_at(cls, v: Any) -> datetime | None:
        return to_datetime(v)

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @classmethod
    def from_document(cls, doc: StoredDocument) -> "AllowListEntry":
        """Build an entry from a stored document.

        Legacy documents without an email field are keyed by the email.
        """
        data = dict(doc.data)
        if not data.get("email"):
            data["email"] = doc.key
        return cls.model_validate(data)


class ActivityRecord(BaseModel):
    """Per subject-id record of login and activity history."""

    model_config = ConfigDict(extra="ignore")

    id: str
    email: str = ""
    name: str | None = None
    display_name: str | None = None
    role: UserRole | None = None
    photo_url: str | None = None
    last_login: datetime | None = None
    last_active: datetime | None = None
    login_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    device_info: DeviceInfo | None = None

    @field_validator("name", "display_name", "photo_url", mode="before")
    @classmethod
    def validate_optional_text(cls, v: Any) -> str | None:
        # legacy documents carry numbers or nested values here
        return v if isinstance(v, str) else None

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("device_info", mode="before")
    @classmethod
    def validate_device_info(cls, v: Any) -> Any:
        return v if isinstance(v, (dict, DeviceInfo)) else None

    @field_validator("role", mode="before")
    @classmethod
    def validate_role(cls, v: Any) -> UserRole | None:
        return _parse_role(v)

    @field_validator("last_login", "last_active", "created_at", "updated_at", mode="before")
    @classmethod
    def validate_timestamps(cls, v: Any) -> datetime | None:
        # values without a comparable instant are treated as absent
        return to_datetime(v)

    @field_validator("login_count", mode="before")
    @classmethod
    def validate_login_count(cls, v: Any) -> int:
        try:
            return max(int(v or 0), 0)
        except (TypeError, ValueError):
            return 0

    @property
    def normalized_email(self) -> str:
        return normalize_email(self.email)

    @classmethod
    def from_document(cls, doc: StoredDocument) -> "ActivityRecord":
        return cls.model_validate({**doc.data, "id": doc.key})


class AllowListEntryCreate(BaseModel):
    """Request schema for adding an identity to the allow-list."""

    email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Email address; stored normalized",
    )
    name: str = Field(
        ...,
        max_length=200,
        description="Display name of the person",
    )
    role: UserRole = UserRole.STAFF

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Normalize and sanity-check the email."""
        v = normalize_email(v)
        local, sep, domain = v.partition("@")
        if not sep or not local or not domain or "@" in domain:
            raise ValueError("Email address is not valid")
        return v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


@dataclass(frozen=True)
class AuthOutcome:
    """Result of an authorization attempt."""

    authorized: bool
    role: UserRole | None = None
    record: ActivityRecord | None = None
    error: AccessRosterError | None = None
    email: str | None = None

    @property
    def error_code(self) -> str | None:
        return self.error.error_code if self.error else None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None
