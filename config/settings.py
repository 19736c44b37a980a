from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from pydantic import SecretStr

from .public_config import PublicConfig
from .secret_config import SecretConfig

MIN_JWT_SECRET_BYTES = 32


class ConfigurationError(RuntimeError):
    """Fatal configuration problem; the process must not serve traffic."""


@dataclass(frozen=True, slots=True)
class Settings:
    """
    Merged settings view (dot-access).

    Precedence:
      - secrets override public when names overlap
    """

    public: PublicConfig
    secret: SecretConfig

    def __getattr__(self, name: str) -> Any:
        if hasattr(self.secret, name):
            return getattr(self.secret, name)
        return getattr(self.public, name)

    def cors_origin_list(self) -> list[str]:
        return self.public.cors_origin_list()

    def rate_limit_policy(self, bucket: str) -> tuple[int, int]:
        return self.public.rate_limit_policy(bucket)

    @property
    def is_production(self) -> bool:
        return str(self.public.app_env or "").strip().lower() in {"prod", "production"}

    @property
    def cookie_is_secure(self) -> bool:
        if self.public.cookie_secure is None:
            return self.is_production
        return bool(self.public.cookie_secure)

    def jwt_secret_bytes(self) -> bytes:
        raw = _secret_value(self.secret.jwt_secret)
        if not raw:
            raise ConfigurationError("JWT_SECRET is not set")
        return raw.encode("utf-8")


def _secret_value(secret: SecretStr | None) -> str:
    try:
        return secret.get_secret_value() if secret else ""
    except Exception:
        return ""


def validate_settings(s: Settings) -> None:
    """
    Startup gate. Raises ConfigurationError; never called per-request.
    """
    problems: list[str] = []
    jwt_val = _secret_value(s.secret.jwt_secret)
    if not jwt_val:
        problems.append("JWT_SECRET is required")
    elif len(jwt_val.encode("utf-8")) < MIN_JWT_SECRET_BYTES:
        problems.append(f"JWT_SECRET must be at least {MIN_JWT_SECRET_BYTES} bytes")

    if int(s.public.access_token_minutes) <= 0:
        problems.append("ACCESS_TOKEN_MINUTES must be positive")
    short_s = int(s.public.refresh_token_short_hours) * 3600
    long_s = int(s.public.refresh_token_long_days) * 86400
    if short_s <= 0 or long_s <= short_s:
        # remember-me is inferred from lifetime > short policy; the two must be distinguishable
        problems.append("REFRESH_TOKEN_LONG_DAYS must exceed REFRESH_TOKEN_SHORT_HOURS")

    for bucket in ("api", "register", "login"):
        try:
            s.rate_limit_policy(bucket)
        except ValueError as ex:
            problems.append(str(ex))

    if s.is_production:
        for o in s.cors_origin_list():
            if "*" in o:
                problems.append("CORS_ORIGINS must not contain wildcards in production")
                break
        if not s.cookie_is_secure:
            problems.append("COOKIE_SECURE must not be disabled in production")

    if problems:
        raise ConfigurationError("Unsafe configuration: " + "; ".join(problems))


def get_safe_config_report() -> dict[str, Any]:
    """
    Deterministic, non-sensitive config report.

    - Public values are included (paths are stringified)
    - Secret values are NEVER included; only SET/UNSET markers
    """
    s = get_settings()

    pub_s: dict[str, Any] = {}
    for k, v in s.public.model_dump().items():
        pub_s[k] = str(v) if hasattr(v, "__fspath__") else v

    sec: dict[str, str] = {}
    for k in sorted(s.secret.model_fields.keys()):
        v = getattr(s.secret, k, None)
        if v is None:
            sec[k] = "UNSET"
        elif isinstance(v, SecretStr):
            sec[k] = "SET" if v.get_secret_value() else "UNSET"
        else:
            sec[k] = "SET" if str(v).strip() else "UNSET"

    return {"public": pub_s, "secrets": sec}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings(public=PublicConfig(), secret=SecretConfig())
