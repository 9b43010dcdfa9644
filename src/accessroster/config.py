"""
Application configuration with environment-driven settings.
"""

import os
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "accessroster"
    app_env: Literal["dev", "qa", "uat", "prod"] = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # Storage
    store_backend: Literal["memory", "sql"] = Field(
        default="memory",
        description="Identity store implementation: in-process memory or SQL",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./accessroster.db",
        description="SQLAlchemy async connection URL for the SQL store",
    )

    # Collections
    allow_list_collection: str = Field(
        default="allowList",
        description="Collection holding allow-listed identities (keyed by email)",
    )
    activity_collection: str = Field(
        default="activity",
        description="Collection holding activity records (keyed by subject id)",
    )

    # Allow-list policy
    allowed_email_domains: str = Field(
        default="gmail.com",
        description="Comma-separated list of email domains accepted on the allow-list",
    )
    default_role: Literal["admin", "staff"] = Field(
        default="staff",
        description="Role assumed when an activity record carries none",
    )

    @field_validator("allowed_email_domains", mode="before")
    @classmethod
    def validate_domains(cls, v: str) -> str:
        """Normalize the domain list to lower-case without stray whitespace."""
        domains = v.split(",") if isinstance(v, str) else list(v)
        return ",".join(d.strip().lower().lstrip("@") for d in domains if d.strip())

    @property
    def allowed_email_domains_list(self) -> list[str]:
        """Parse allowed email domains into a list."""
        return [d for d in self.allowed_email_domains.split(",") if d]


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process-wide settings instance.

    Under pytest a fresh instance is built on every call so that
    monkeypatched environment variables take effect.
    """
    global _settings
    if os.environ.get("PYTEST_CURRENT_TEST"):
        return Settings()
    if _settings is None:
        _settings = Settings()
    return _settings
