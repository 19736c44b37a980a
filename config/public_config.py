from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class PublicConfig(BaseSettings):
    """
    Non-sensitive config with safe defaults.

    Loaded from (in order):
      - process env
      - optional `.env` file
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- runtime ---
    app_env: str = Field(default="development", alias="APP_ENV")  # development|production|test
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=4000, alias="PORT")

    # --- storage ---
    state_dir: Path = Field(
        default_factory=lambda: (Path.cwd() / "_state").resolve(), alias="BUDGET_STATE_DIR"
    )
    db_name: str = Field(default="budget.db", alias="BUDGET_DB_NAME")
    # sqlite busy timeout; bounds every storage call
    db_timeout_s: float = Field(default=10.0, alias="DB_TIMEOUT_S")

    # --- logging ---
    log_dir: Path = Field(default_factory=lambda: (Path.cwd() / "logs").resolve(), alias="LOG_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_max_bytes: int = Field(default=5 * 1024 * 1024, alias="LOG_MAX_BYTES")
    log_backup_count: int = Field(default=3, alias="LOG_BACKUP_COUNT")

    # --- tokens / cookies ---
    jwt_alg: str = Field(default="HS256", alias="JWT_ALG")
    access_token_minutes: int = Field(default=15, alias="ACCESS_TOKEN_MINUTES")
    refresh_token_short_hours: int = Field(default=24, alias="REFRESH_TOKEN_SHORT_HOURS")
    refresh_token_long_days: int = Field(default=30, alias="REFRESH_TOKEN_LONG_DAYS")
    refresh_cookie_name: str = Field(default="refresh_token", alias="REFRESH_COOKIE_NAME")
    refresh_cookie_path: str = Field(default="/api/auth", alias="REFRESH_COOKIE_PATH")
    # None => secure only when APP_ENV=production
    cookie_secure: bool | None = Field(default=None, alias="COOKIE_SECURE")
    cors_origins: str = Field(default="https://budgeto.app", alias="CORS_ORIGINS")

    # --- password hashing (argon2id) ---
    password_hash_time_cost: int = Field(default=3, alias="PASSWORD_HASH_TIME_COST")
    password_hash_memory_kib: int = Field(default=65536, alias="PASSWORD_HASH_MEMORY_KIB")
    password_hash_parallelism: int = Field(default=4, alias="PASSWORD_HASH_PARALLELISM")

    # --- rate limits ("<capacity>/<window seconds>") ---
    rate_limit_api: str = Field(default="100/60", alias="RATE_LIMIT_API")
    rate_limit_register: str = Field(default="5/60", alias="RATE_LIMIT_REGISTER")
    rate_limit_login: str = Field(default="10/60", alias="RATE_LIMIT_LOGIN")
    rate_limit_idle_s: int = Field(default=10 * 60, alias="RATE_LIMIT_IDLE_S")
    rate_limit_sweep_s: int = Field(default=5 * 60, alias="RATE_LIMIT_SWEEP_S")

    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in (self.cors_origins or "").split(",") if o.strip()]

    def rate_limit_policy(self, bucket: str) -> tuple[int, int]:
        raw = str(getattr(self, f"rate_limit_{bucket}", "") or "")
        limit_s, _, window_s = raw.partition("/")
        limit, window = int(limit_s), int(window_s)
        if limit <= 0 or window <= 0:
            raise ValueError(f"invalid rate limit policy for {bucket!r}: {raw!r}")
        return limit, window
