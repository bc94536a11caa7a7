"""Application configuration using Pydantic Settings"""

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Protocol

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatvibes_api.core.errors import SecretStoreError

logger = logging.getLogger(__name__)

EMULATOR_ORIGINS = ["http://127.0.0.1:5002", "http://localhost:5002"]


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Google Cloud
    gcloud_project: str = Field(default="", description="Project holding secrets and Firestore")

    # Server URLs
    callback_url: str = Field(default="", description="Twitch OAuth redirect URI")
    frontend_url: str = Field(default="http://localhost:5002", description="Dashboard origin")
    obs_browser_base_url: str = Field(default="", description="OBS browser-source base URL")
    tts_bot_url: str = Field(default="", description="TTS bot service URL (EventSub setup)")
    twitch_bot_username: str = Field(default="", description="Bot account added as moderator")

    # Channel allow-list (literal comma list or secret reference)
    allowed_channels: str = Field(default="", description="Comma separated channel logins")
    allowed_channels_secret_name: str = Field(
        default="", description="Secret holding the comma separated allow-list"
    )

    # Local / emulator mode reads secrets from the environment
    use_env_secrets: bool = Field(
        default=False,
        validation_alias=AliasChoices("use_env_secrets", "functions_emulator"),
        description="Read secrets from environment instead of Secret Manager",
    )
    twitch_client_id: str = Field(default="", description="Twitch OAuth Client ID (env mode)")
    twitch_client_secret: str = Field(default="", description="Twitch OAuth secret (env mode)")
    jwt_secret_key: str = Field(
        default="",
        validation_alias=AliasChoices("jwt_secret_key", "jwt_secret"),
        description="JWT signing key (env mode)",
    )
    wavespeed_api_key: str = Field(default="", description="WaveSpeed API key (env mode)")

    # JWT Configuration
    jwt_algorithm: str = Field(default="HS256", description="JWT signing algorithm")
    jwt_expire_days: int = Field(default=7, description="Session token lifetime in days")
    jwt_issuer: str = Field(default="chatvibes-auth", description="Session token issuer")
    jwt_audience: str = Field(default="chatvibes-api", description="Session token audience")

    # Environment
    environment: str = Field(default="production", description="Environment name")
    log_level: str = Field(default="INFO", description="Logging level")

    # Server Configuration
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8080, description="Server port")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a valid logging level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            logger.warning(f"Invalid log level '{v}', defaulting to INFO")
            return "INFO"
        return v_upper

    @property
    def cors_origins(self) -> list[str]:
        """Get CORS allowed origins"""
        origins = [self.frontend_url.rstrip("/")]
        if self.use_env_secrets or self.is_development:
            origins.extend(o for o in EMULATOR_ORIGINS if o not in origins)
        return origins

    @property
    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.environment.lower() == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.environment.lower() == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# ============================================
# Runtime Secrets
# ============================================

SECRET_TWITCH_CLIENT_ID = "twitch-webui-client-id"
SECRET_TWITCH_CLIENT_SECRET = "twitch-webui-client-secret"
SECRET_JWT_KEY = "jwt-secret-key"
SECRET_WAVESPEED_KEY = "WAVESPEED_API_KEY"


class SecretReader(Protocol):
    def secret_path(self, secret_id: str) -> str: ...

    async def access(self, name: str) -> str: ...


@dataclass(frozen=True)
class AppSecrets:
    """Secrets resolved once at startup."""

    twitch_client_id: str
    twitch_client_secret: str
    jwt_secret_key: str
    wavespeed_api_key: str | None = None


async def load_secrets(settings: Settings, reader: SecretReader | None) -> AppSecrets:
    """Resolve runtime secrets from Secret Manager, or the environment in emulator mode.

    Raises SecretStoreError when a required value is missing; the caller keeps
    the service unready in that case.
    """
    if settings.use_env_secrets or reader is None:
        logger.info("Loading secrets from environment")
        secrets = AppSecrets(
            twitch_client_id=settings.twitch_client_id,
            twitch_client_secret=settings.twitch_client_secret,
            jwt_secret_key=settings.jwt_secret_key,
            wavespeed_api_key=settings.wavespeed_api_key or None,
        )
    else:
        if not settings.gcloud_project:
            raise SecretStoreError("GCLOUD_PROJECT is not configured")

        names = [SECRET_TWITCH_CLIENT_ID, SECRET_TWITCH_CLIENT_SECRET, SECRET_JWT_KEY]
        client_id, client_secret, jwt_key = await asyncio.gather(
            *(reader.access(reader.secret_path(name)) for name in names)
        )

        wavespeed_key: str | None = None
        try:
            wavespeed_key = await reader.access(reader.secret_path(SECRET_WAVESPEED_KEY))
        except SecretStoreError as e:
            logger.warning(f"WaveSpeed API key unavailable, TTS test disabled: {e}")

        secrets = AppSecrets(
            twitch_client_id=client_id,
            twitch_client_secret=client_secret,
            jwt_secret_key=jwt_key,
            wavespeed_api_key=wavespeed_key,
        )

    missing = [
        label
        for label, value in (
            ("twitch client id", secrets.twitch_client_id),
            ("twitch client secret", secrets.twitch_client_secret),
            ("jwt secret", secrets.jwt_secret_key),
        )
        if not value
    ]
    if missing:
        raise SecretStoreError(f"Missing required secrets: {', '.join(missing)}")

    logger.info("Secrets loaded")
    return secrets
