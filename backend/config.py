"""
Configuration management for the CRM / EC admin API.

Loads settings from .env via pydantic-settings.

Production checks:
    - validate_production_settings() requires a JWT secret in production
    - wildcard CORS is rejected in production
"""
import logging

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ── Application ─────────────────────────────────────────────────
    app_name: str = "CRM Admin API"
    environment: str = "development"

    # ── Database ────────────────────────────────────────────────────
    database_url: str = "sqlite:///./data/crm.db"

    # ── Auth (JWT) ──────────────────────────────────────────────────
    jwt_secret: str = ""
    jwt_issuer: str = "crm-admin-api"
    jwt_access_ttl_minutes: int = 60 * 24
    password_min_length: int = 6

    # ── Rate limits (requests / window) ─────────────────────────────
    login_rate_limit: int = 10
    register_rate_limit: int = 5
    auth_rate_window_seconds: int = 60

    # ── Commerce defaults ───────────────────────────────────────────
    currency: str = "jpy"
    default_free_shipping_threshold: int = 10000  # display only, when no rate is configured
    default_cod_fee: int = 330

    # ── Email (SMTP) ────────────────────────────────────────────────
    smtp_timeout_seconds: float = 10.0
    email_send_delay_seconds: float = 0.1  # pause between bulk sends

    # ── Payment provider ────────────────────────────────────────────
    stripe_api_base: str = "https://api.stripe.com"
    http_timeout_seconds: float = 10.0

    # ── Reverse proxy ───────────────────────────────────────────────
    # Comma-separated proxy IPs whose X-Forwarded-For header is trusted
    trusted_proxies: str = ""

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
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def trusted_proxies_set(self) -> set[str]:
        return {ip.strip() for ip in self.trusted_proxies.split(",") if ip.strip()}

    @property
    def is_development(self) -> bool:
        return self.environment == "development"

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
            if not self.jwt_secret:
                raise ValueError(
                    "JWT_SECRET must be set in production. "
                    "It is used to sign access tokens for admin and customer sessions."
                )
            logger.info("✅ Production settings validated")
        else:
            warnings = []
            if not self.jwt_secret:
                warnings.append("JWT_SECRET is empty (login will fail)")
            if "*" in self.cors_origins:
                warnings.append("CORS_ORIGINS contains '*' (open access)")
            for w in warnings:
                logger.warning(f"⚠️  {w}")


# Global settings instance
settings = Settings()
