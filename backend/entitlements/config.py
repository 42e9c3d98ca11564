"""
Client configuration using pydantic-settings.
Loads environment variables from .env file.

Nested config groups (HttpConfig, EntitlementConfig, CheckoutConfig) are
env-overridable via the double-underscore delimiter, e.g.:
    HTTP__TIMEOUT_SECONDS=5
    ENTITLEMENTS__FALLBACK_POLICY=trial
    CHECKOUT__CANCEL_PATH=/#/upgrade
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class HttpConfig(BaseModel):
    """Backend API transport parameters."""

    timeout_seconds: float = 10.0


class EntitlementConfig(BaseModel):
    """Entitlement engine behaviour.

    Env-overridable via ENTITLEMENTS__KEY format, e.g.:
        ENTITLEMENTS__FALLBACK_POLICY=trial
    """

    # Snapshot substituted when the status read fails. "free" keeps every
    # counter at free-tier limits; "trial" grants a fresh trial.
    fallback_policy: Literal["free", "trial"] = "free"


class CheckoutConfig(BaseModel):
    """Destinations the payment provider returns to after checkout."""

    success_path: str = "/#/settings?checkout=success"
    cancel_path: str = "/#/pricing"


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Backend API
    api_base_url: str = "http://localhost:8080"

    # Origin of the dashboard itself (used to build return URLs)
    app_origin: str = "http://localhost:3000"

    debug: bool = False

    # Nested config groups (env-overridable via SECTION__KEY format)
    http: HttpConfig = Field(default_factory=HttpConfig)
    entitlements: EntitlementConfig = Field(default_factory=EntitlementConfig)
    checkout: CheckoutConfig = Field(default_factory=CheckoutConfig)

    @property
    def checkout_success_url(self) -> str:
        return f"{self.app_origin.rstrip('/')}{self.checkout.success_path}"

    @property
    def checkout_cancel_url(self) -> str:
        return f"{self.app_origin.rstrip('/')}{self.checkout.cancel_path}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
