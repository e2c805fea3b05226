"""
Configuration Management for the Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger engine itself runs with defaults only; remote storage
settings are loaded lazily so the engine works offline.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LedgerSettings(BaseSettings):
    """Accounting rules and the names of the canonical accounts."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        extra="ignore"
    )

    balance_tolerance: Decimal = Field(
        default=Decimal("0.01"),
        ge=0,
        description="Maximum absolute difference between debits and credits"
    )
    liquidity_accounts: str = Field(
        default="Cash,Bank",
        description="Comma-separated names of accounts allowed to fund credits and investments"
    )

    # Canonical account names
    capital_account: str = "Capital"
    interest_income_account: str = "Interest Income"
    investment_gains_account: str = "Investment Gains"
    receivable_account: str = "Receivable"
    cash_account: str = "Cash"
    bank_account: str = "Bank"
    inventory_account: str = "Investment Inventory"
    operating_expense_account: str = "Operating Expense"
    accounts_payable_account: str = "Accounts Payable"

    @property
    def liquidity_accounts_list(self) -> list[str]:
        """Get liquidity account names as a list."""
        return [name.strip() for name in self.liquidity_accounts.split(",") if name.strip()]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # One worksheet per entity kind
    accounts_sheet_name: str = "Accounts"
    credits_sheet_name: str = "Credits"
    investments_sheet_name: str = "Investments"
    transactions_sheet_name: str = "Transactions"
    closures_sheet_name: str = "Closures"

    poll_interval_seconds: float = Field(
        default=15.0,
        gt=0,
        description="How often subscriptions re-read a worksheet"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v

    def sheet_name_for(self, kind: str) -> str:
        """Worksheet name for an entity kind (e.g. 'credits')."""
        return getattr(self, f"{kind}_sheet_name")


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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Replication
    replication_drain_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="How long shutdown waits for pending remote writes"
    )
    seed_default_accounts: bool = Field(
        default=True,
        description="Create the default chart of accounts when the store is empty"
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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

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

    Returns a dict of {setting_name: is_valid}, plus
    '<name>_error' entries describing any failure.
    """
    results = {}

    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
