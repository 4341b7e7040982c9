import re
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_STRIPE_API_VERSION = "2025-02-24.acacia"

WEBHOOK_SECRET_PREFIX = "whsec_"
WEBHOOK_SECRET_MIN_LENGTH = len(WEBHOOK_SECRET_PREFIX) + 20
WEBHOOK_SECRET_PLACEHOLDERS = {
    "whsec_123",
    "whsec_test",
    "whsec_placeholder",
    "whsec_changeme",
    "whsec_your_webhook_secret",
}
_WEBHOOK_SECRET_PATTERN = re.compile(r"^whsec_[A-Za-z0-9]+$")


class Settings(BaseSettings):
    env: Literal["local", "test", "production"] = "local"

    # full URL override (tests, managed databases)
    database_url_override: str | None = None

    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "orderledger"
    db_user: str = "postgres"
    db_password: str | None = None

    stripe_api_key: SecretStr | None = None
    stripe_webhook_secret: SecretStr | None = None
    stripe_api_version: str = DEFAULT_STRIPE_API_VERSION
    stripe_success_url: str = "http://localhost:5173/success"
    stripe_cancel_url: str = "http://localhost:5173/cancel"
    webhook_signature_tolerance_sec: int = 300

    # strict: total == order amount; flex: total >= order amount (taxes, shipping)
    pricing_mode: Literal["strict", "flex"] = "strict"
    # recoverable orphans younger than this are NACKed so the provider retries
    orphan_retry_window_hours: int = 24

    payment_event_retention_mode: Literal["retain", "erase"] = "retain"
    payment_event_retention_days: int = Field(default=365, ge=1, le=3650)

    log_level: str = "INFO"
    log_json: bool = True
    log_stack_in_prod: bool = False
    metrics_enabled: bool = True

    slack_webhook_url: SecretStr | None = None

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        # 1) Prefer explicit DATABASE_URL_OVERRIDE
        if self.database_url_override:
            return self.database_url_override

        password = self.db_password or ""
        auth = f"{self.db_user}:{password}" if password else self.db_user

        # 2) Fallback to postgres assembled URL
        return (
            f"postgresql+psycopg://{auth}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}?connect_timeout=3"
        )

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def webhook_secret(self) -> str | None:
        if self.stripe_webhook_secret is None:
            return None
        value = self.stripe_webhook_secret.get_secret_value().strip()
        return value or None


def _validate_webhook_secret_for_prod(secret: str | None) -> None:
    if not secret:
        raise ValueError("STRIPE_WEBHOOK_SECRET is required in production and must not be empty.")
    if len(secret) < WEBHOOK_SECRET_MIN_LENGTH:
        raise ValueError(
            f"STRIPE_WEBHOOK_SECRET must be at least {WEBHOOK_SECRET_MIN_LENGTH} characters "
            f"({WEBHOOK_SECRET_PREFIX} + at least {WEBHOOK_SECRET_MIN_LENGTH - len(WEBHOOK_SECRET_PREFIX)} chars)."
        )
    if not _WEBHOOK_SECRET_PATTERN.match(secret):
        raise ValueError("STRIPE_WEBHOOK_SECRET must match whsec_<alphanumeric>.")
    lower = secret.lower()
    if lower in WEBHOOK_SECRET_PLACEHOLDERS or "your_webhook_secret" in lower:
        raise ValueError(
            "STRIPE_WEBHOOK_SECRET must be the real signing secret from the Stripe Dashboard. "
            "Placeholder values are not allowed in production."
        )


def validate_production_settings(s: Settings) -> None:
    """Production-only checks. Raises ValueError on the first problem found."""
    if not s.is_production:
        return

    _validate_webhook_secret_for_prod(s.webhook_secret())

    api_key = s.stripe_api_key.get_secret_value() if s.stripe_api_key else ""
    if api_key.startswith("sk_test_"):
        raise ValueError("STRIPE_API_KEY must be a live key (sk_live_...) in production.")

    for name, url in (("STRIPE_SUCCESS_URL", s.stripe_success_url), ("STRIPE_CANCEL_URL", s.stripe_cancel_url)):
        if not url.startswith("https://"):
            raise ValueError(f"{name} must use https:// in production.")


settings = Settings()
