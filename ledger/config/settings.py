"""
Configuration Management for the Wallet Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The ledger core itself takes no configuration; only the service layer and
logging read these values.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Main ledger settings.

    Loads configuration from LEDGER_* environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
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
        description="Enable debug logging"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level passed through the structured logger"
    )

    # Ledger defaults
    default_currency: str = Field(
        default="EUR",
        description="Currency code for new wallets"
    )
    enforce_non_negative: bool = Field(
        default=True,
        description="Reject transfers that would overdraw non-negative wallets"
    )
    forecast_months: int = Field(
        default=3,
        ge=1,
        le=60,
        description="Default balance forecast horizon in months"
    )

    @field_validator('default_currency')
    @classmethod
    def validate_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code: {v}")
        return code

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @property
    def effective_log_level(self) -> str:
        return "DEBUG" if self.debug_mode else self.log_level


class ScheduleSettings(BaseSettings):
    """Scheduled transfer execution limits."""

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_SCHEDULE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    max_catch_up_executions: int = Field(
        default=1000,
        ge=1,
        description="Most pending dates applied per schedule in one catch-up run"
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

    @property
    def app(self) -> AppSettings:
        return AppSettings()

    @property
    def schedule(self) -> ScheduleSettings:
        return ScheduleSettings()


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

    Returns a dict of {setting_name: is_valid}, plus "<name>_error" entries
    holding the validation message of failed sections.
    """
    results = {}

    settings = get_settings()

    for name in ("app", "schedule"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
