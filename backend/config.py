"""
Configuration management for the Royale meal subscription backend.

Loads settings from .env via pydantic-settings.

Notes:
    - Business components never read settings at call time; routes pass the
      meal price and secrets in explicitly.
    - validate_production_settings() refuses unsafe production deployments.
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/royale.db"

    # ── Pricing ─────────────────────────────────────────────────────
    meal_price: float = 10.0            # price of one delivered meal
    currency: str = "usd"
    max_subscription_weeks: int = 12

    # ── Admin Auth (JWT) ────────────────────────────────────────────
    admin_password: str = ""
    jwt_secret: str = ""
    jwt_issuer: str = "royale-api"
    admin_session_ttl_minutes: int = 480

    # ── Stripe ──────────────────────────────────────────────────────
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_api_base: str = "https://api.stripe.com/v1"
    checkout_product_name: str = "The Royale Indian - Meal Subscription"

    # ── Object Storage (menu / content images) ──────────────────────
    storage_url: str = ""
    storage_service_key: str = ""
    storage_bucket: str = "Royale-images"

    # ── Application ─────────────────────────────────────────────────
    environment: str = "development"
    public_domain: str = ""             # used for checkout redirect URLs in production
    simulation_mode: bool = True        # skip real Stripe calls, accept unsigned webhooks

    # ── CORS ────────────────────────────────────────────────────────
    cors_origins: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:5173,http://127.0.0.1:5173"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # allow unknown .env keys without crashing
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    def validate_production_settings(self):
        """
        Validate settings for production safety.

        Called during app startup.
        """
        if self.environment == "production":
            if "*" in self.cors_origins:
                raise ValueError(
                    "CORS_ORIGINS must not contain '*' in production. "
                    "Set explicit allowed origins."
                )
            if self.simulation_mode:
                raise ValueError(
                    "SIMULATION_MODE must be false in production. "
                    "Simulation skips payment capture and accepts unsigned webhooks."
                )
            if not self.admin_password:
                raise ValueError("ADMIN_PASSWORD must be set in production.")
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign admin session tokens."
                )
            if not self.stripe_secret_key or not self.stripe_webhook_secret:
                raise ValueError(
                    "STRIPE_SECRET_KEY and STRIPE_WEBHOOK_SECRET must be set in production."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if self.simulation_mode:
                warnings.append("SIMULATION_MODE=true (no real payments, unsigned webhooks accepted)")
            if not self.admin_password:
                warnings.append("ADMIN_PASSWORD not set (admin login disabled)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
