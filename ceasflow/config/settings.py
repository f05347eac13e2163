"""
Configuration Management for CeasFlow

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Storage location, ledger defaults and spreadsheet conventions are all
validated in one place at startup.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Local persistence configuration."""

    model_config = SettingsConfigDict(
        env_prefix="CEASFLOW_STORAGE_",
        extra="ignore"
    )

    backend: str = Field(
        default="json",
        pattern="^(json|memory)$",
        description="Storage backend: 'json' file or volatile 'memory'"
    )
    data_dir: Path = Field(
        default=Path("~/.ceasflow"),
        description="Directory holding the ledger file"
    )
    ledger_filename: str = Field(
        default="ledger.json",
        description="Name of the ledger file inside data_dir"
    )
    max_write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed write is retried"
    )
    audit_log_limit: int = Field(
        default=1000,
        ge=0,
        description="How many audit events the file backend keeps"
    )

    @field_validator('data_dir')
    @classmethod
    def expand_data_dir(cls, v: Path) -> Path:
        """Expand ~ so the path is usable as-is."""
        return v.expanduser()

    @property
    def ledger_path(self) -> Path:
        """Full path of the ledger file."""
        return self.data_dir / self.ledger_filename


class LedgerSettings(BaseSettings):
    """Defaults applied to categories and wallets."""

    model_config = SettingsConfigDict(
        env_prefix="CEASFLOW_LEDGER_",
        extra="ignore"
    )

    default_currency: str = Field(
        default="THB",
        min_length=3,
        max_length=3,
        description="Currency assigned to imported wallets"
    )
    max_category_notes: int = Field(
        default=50,
        ge=1,
        description="Recent notes kept per category (oldest evicted first)"
    )
    default_wallet_icon: str = Field(
        default="💰",
        description="Icon used when an imported wallet has none"
    )
    default_wallet_color: str = Field(
        default="#6366f1",
        pattern="^#[0-9a-fA-F]{6}$",
        description="Color used for imported wallets"
    )


class SpreadsheetSettings(BaseSettings):
    """Workbook export/import conventions."""

    model_config = SettingsConfigDict(
        env_prefix="CEASFLOW_SPREADSHEET_",
        extra="ignore"
    )

    export_filename_prefix: str = Field(
        default="CeasFlow_Export",
        min_length=1,
        description="Prefix of exported workbook file names"
    )
    wallet_sheet_marker: str = Field(
        default="💰",
        min_length=1,
        description="Glyph that flags a sheet as a wallet sheet"
    )
    currency_symbol: str = Field(
        default="฿",
        description="Symbol written in front of formatted amounts"
    )
    max_import_size_mb: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Largest workbook accepted for import"
    )

    @property
    def max_import_size_bytes(self) -> int:
        """Get max import size in bytes."""
        return self.max_import_size_mb * 1024 * 1024


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local logs"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built on access so a bad section only fails its users

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def spreadsheet(self) -> SpreadsheetSettings:
        return SpreadsheetSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for each section that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("storage", "ledger", "spreadsheet", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
