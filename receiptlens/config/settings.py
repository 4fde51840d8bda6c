"""
Configuration Management for ReceiptLens

Typed settings read from the environment and an optional .env file.

DESIGN DECISION: All configuration is centralized here.
Tier limits and trial length live here too, so product changes
don't require touching engine logic.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeminiSettings(BaseSettings):
    """Gemini receipt-parsing service configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class AppSettings(BaseSettings):
    """
    Engine settings: storage, tier policy, recurrence and validation.

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
    log_level: str = Field(
        default="INFO",
        description="Minimum level for local structured logs"
    )

    # Storage
    storage_dir: str = Field(
        default=".receiptlens",
        description="Directory holding one JSON file per record blob"
    )
    seed_example_data: bool = Field(
        default=True,
        description="Seed example expenses on first ledger access"
    )
    default_currency: str = Field(
        default="BRL",
        min_length=3,
        max_length=3,
        description="Currency for new profiles and seeded data"
    )

    # Subscription policy
    free_extra_categories: int = Field(
        default=2,
        ge=0,
        description="Custom categories a free user may add beyond the defaults"
    )
    free_ai_interaction_limit: int = Field(
        default=5,
        ge=0,
        description="AI interactions allowed on the free tier"
    )
    trial_length_days: int = Field(
        default=3,
        ge=0,
        description="Trial stays active while elapsed days do not exceed this"
    )

    # Recurrence
    recurring_summary_prefix: str = Field(
        default="[Recorrente] ",
        description="Marker prepended to the summary of generated occurrences"
    )

    # Draft validation thresholds
    max_expense_amount: float = Field(
        default=100000.0,
        gt=0,
        description="Maximum reasonable expense amount (for sanity checking)"
    )
    future_date_tolerance_days: int = Field(
        default=1,
        ge=0,
        description="How many days in the future a receipt date can be"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


class Settings(BaseSettings):
    """
    Root settings container.

    Groups the AI service and engine settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

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


def validate_all_settings() -> dict[str, Optional[object]]:
    """
    Check that every settings group loads.

    Returns a dict of {setting_name: is_valid} plus `<name>_error`
    entries for the ones that failed. Useful for startup checks.
    """
    results: dict[str, Optional[object]] = {}

    settings = get_settings()

    try:
        _ = settings.gemini
        results["gemini"] = True
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
