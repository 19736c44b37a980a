from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from functools import lru_cache

from argon2 import PasswordHasher as _Argon2Hasher
from argon2.exceptions import InvalidHashError, VerificationError

from budget_sync.config import get_settings

# 48 bytes of entropy -> 64 URL-safe characters
REFRESH_SECRET_BYTES = 48


def random_id(prefix: str = "", n: int = 16) -> str:
    # URL-safe token without padding, deterministic length-ish.
    return f"{prefix}{secrets.token_urlsafe(n)}"


def generate_refresh_secret() -> str:
    return secrets.token_urlsafe(REFRESH_SECRET_BYTES)


def digest_secret(secret: str) -> str:
    # Fast, deterministic lookup key. The raw secret is never stored.
    return hashlib.sha256(str(secret).encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class PasswordHasher:
    """
    Thin wrapper around argon2-cffi (argon2id, per-hash random salt).
    """

    time_cost: int = 3
    memory_cost: int = 65536
    parallelism: int = 4

    @classmethod
    def from_settings(cls) -> PasswordHasher:
        s = get_settings()
        return cls(
            time_cost=int(s.password_hash_time_cost),
            memory_cost=int(s.password_hash_memory_kib),
            parallelism=int(s.password_hash_parallelism),
        )

    def _impl(self) -> _Argon2Hasher:
        return _Argon2Hasher(
            time_cost=self.time_cost, memory_cost=self.memory_cost, parallelism=self.parallelism
        )

    def hash(self, password: str) -> str:
        return self._impl().hash(password)

    def verify(self, hashed: str, password: str) -> bool:
        try:
            return bool(self._impl().verify(hashed, password))
        except (VerificationError, InvalidHashError):
            return False


@lru_cache(maxsize=4)
def _dummy_hash(hasher: PasswordHasher) -> str:
    return hasher.hash(secrets.token_urlsafe(16))


def burn_verify(hasher: PasswordHasher, password: str) -> bool:
    """
    Run one full verification against a throwaway digest.

    Used when the account does not exist, so both login failure paths cost the same.
    """
    hasher.verify(_dummy_hash(hasher), password)
    return False
