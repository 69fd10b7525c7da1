"""Runtime settings for the marketplace, read from environment variables.

Settings are resolved once and cached; tests call reset_settings() after
changing the environment.
"""

import os

from pydantic import BaseModel, Field


class Settings(BaseModel):
    environment: str = "development"
    payment_gateway: str = "fake"  # fake | stripe
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    currency: str = "usd"
    default_application_fee_rate: float = Field(default=0.13, ge=0, le=1)
    cart_idle_minutes: int = Field(default=20, gt=0)
    stuck_checkout_minutes: int = Field(default=60, gt=0)
    frontend_url: str = "http://localhost:3000"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


def _from_environment() -> Settings:
    env = os.environ
    values = {
        "environment": env.get("PROTEAN_ENV"),
        "payment_gateway": env.get("PAYMENT_GATEWAY"),
        "stripe_secret_key": env.get("STRIPE_SECRET_KEY"),
        "stripe_webhook_secret": env.get("STRIPE_WEBHOOK_SECRET"),
        "currency": env.get("CURRENCY"),
        "default_application_fee_rate": env.get("DEFAULT_APPLICATION_FEE_RATE"),
        "cart_idle_minutes": env.get("CART_IDLE_MINUTES"),
        "stuck_checkout_minutes": env.get("STUCK_CHECKOUT_MINUTES"),
        "frontend_url": env.get("FRONTEND_URL"),
    }
    return Settings(**{key: value for key, value in values.items() if value})


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = _from_environment()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
