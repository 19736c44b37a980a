from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SecretConfig(BaseSettings):
    """
    Sensitive config.

    This module is safe to commit: it contains *no* secrets, only loading logic.
    Real secret values should come from:
      - environment variables (preferred in production)
      - optional local `.env.secrets` file (developer convenience)
    """

    model_config = SettingsConfigDict(
        env_file=".env.secrets",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # HS256 signing key for access tokens; validated at startup (>= 32 bytes)
    jwt_secret: SecretStr | None = Field(default=None, alias="JWT_SECRET")

    # optional shared rate-limit backend
    redis_url: str | None = Field(default=None, alias="REDIS_URL")
