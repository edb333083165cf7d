"""
Configuration Management for Household Ledger

Settings are pydantic-settings models read from the environment (and .env).

DESIGN DECISION: All configuration is centralized here.
Every tunable of the ledger, the forecast views and the storage backends
is declared in one place and validated when first loaded.
"""

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Ledger and forecast view configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    default_currency: str = Field(
        default="EUR",
        min_length=3,
        max_length=3,
        description="Currency used when an account or investment omits one"
    )
    upcoming_window_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Length of the upcoming-payments window in days"
    )
    upcoming_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum number of upcoming payments returned"
    )
    recent_transactions_limit: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of transactions shown as recent activity"
    )
    default_horizon: Literal["5weeks", "6months", "2years"] = Field(
        default="6months",
        description="Forecast horizon used when none is requested"
    )

    @field_validator("default_currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        """Currency codes are stored upper-case."""
        return v.upper()


class StorageSettings(BaseSettings):
    """Snapshot persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        extra="ignore"
    )

    backend: Literal["memory", "json", "google_sheets"] = Field(
        default="json",
        description="Which snapshot storage backend to use"
    )
    snapshot_path: str = Field(
        default="ledger.json",
        description="Path of the JSON snapshot file (json backend)"
    )

    @property
    def snapshot_file(self) -> Path:
        return Path(self.snapshot_path).expanduser()


class GoogleSheetsSettings(BaseSettings):
    """Where the google_sheets backend keeps the ledger."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Service account key file used to authorize gspread"
    )
    spreadsheet_id: str = Field(
        ...,
        description="Key of the spreadsheet holding the ledger worksheets"
    )

    # One worksheet per ledger collection, named "<prefix><collection>"
    worksheet_prefix: str = Field(
        default="ledger_",
        description="Prefix for the per-collection worksheets"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Worksheet receiving the append-only audit trail"
    )

    @field_validator("credentials_path")
    @classmethod
    def warn_if_credentials_missing(cls, v: str) -> str:
        """A missing key file only warns; it may be mounted after start-up."""
        if not Path(v).exists():
            warnings.warn(
                f"Service account key {v} does not exist yet; "
                "the google_sheets backend will fail to connect without it."
            )
        return v


class AppSettings(BaseSettings):
    """Process-wide settings, read from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: Literal["development", "test", "production"] = Field(
        default="development",
        description="Deployment the process runs in"
    )
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Minimum level for local structured logs"
    )


class Settings(BaseSettings):
    """
    Entry point to every settings group.

    Groups are built on access, so an unconfigured group (typically
    google_sheets) only fails when something actually uses it.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Shared Settings instance.

    Tests that change the environment call get_settings.cache_clear().
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Try to load every settings group.

    Returns {group: loaded_ok}; a failed group also gets a
    "<group>_error" entry with the reason.
    """
    results = {}
    settings = get_settings()

    for name in ("app", "ledger", "storage", "google_sheets"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
