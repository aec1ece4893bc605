"""Canonical configuration surface for TrustPay services."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class TrustPaySettings(BaseSettings):
    """Main TrustPay configuration.

    Loaded once per process and frozen afterwards; the notifier receives the
    VAPID credentials from here instead of generating them at startup.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRUSTPAY_",
        env_file=".env",
        extra="ignore",
        frozen=True,
    )

    # Environment
    environment: Literal["dev", "sandbox", "prod"] = "dev"

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Notification delivery
    notification_timeout_seconds: float = Field(default=10.0, gt=0)
    notification_ttl_seconds: int = Field(default=3600, ge=0)

    # Public URL of the HTTP layer, echoed to clients as server_endpoint
    public_base_url: Optional[str] = None

    currency_symbol: str = "₹"

    # VAPID credentials for push delivery
    vapid_public_key: str = ""
    vapid_private_key: str = ""
    vapid_subject: str = "mailto:admin@example.com"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("public_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        v = v.strip().rstrip("/")
        return v or None

    @field_validator("vapid_subject")
    @classmethod
    def validate_vapid_subject(cls, v: str) -> str:
        if not v.startswith(("mailto:", "https://")):
            raise ValueError("VAPID subject must be a mailto: or https: URL")
        return v

    @model_validator(mode="after")
    def require_vapid_keys_in_prod(self) -> "TrustPaySettings":
        if self.environment == "prod" and not (self.vapid_public_key and self.vapid_private_key):
            raise ValueError(
                "VAPID keys must be configured in production. "
                "Set TRUSTPAY_VAPID_PUBLIC_KEY and TRUSTPAY_VAPID_PRIVATE_KEY."
            )
        return self


@lru_cache
def load_settings(env_file: str | None = None) -> TrustPaySettings:
    """Load TrustPaySettings once per process to keep services consistent."""
    env_path = Path(env_file) if env_file else None
    return TrustPaySettings(_env_file=env_path)
