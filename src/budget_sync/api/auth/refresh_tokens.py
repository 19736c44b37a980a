from __future__ import annotations

from dataclasses import dataclass

from budget_sync.api.models import AuthStore, ConsumeStatus, RefreshTokenRow
from budget_sync.config import get_settings
from budget_sync.storage import now_ts
from budget_sync.utils.crypto import digest_secret, generate_refresh_secret


class RefreshTokenError(RuntimeError):
    """Internal reason for a failed redemption; callers surface a single 401."""


def short_lifetime_s() -> int:
    return int(get_settings().refresh_token_short_hours) * 3600


def long_lifetime_s() -> int:
    return int(get_settings().refresh_token_long_days) * 86400


def lifetime_for(remember_me: bool) -> int:
    return long_lifetime_s() if remember_me else short_lifetime_s()


def infer_remember_me(row: RefreshTokenRow) -> bool:
    """
    Re-derive the "keep me signed in" choice from the consumed row's lifetime:
    anything longer than the short policy counts as long-lived.
    """
    return row.lifetime_s > short_lifetime_s()


@dataclass(frozen=True, slots=True)
class IssuedRefreshToken:
    secret: str
    remember_me: bool
    max_age_s: int
    row: RefreshTokenRow


def issue_and_store_refresh_token(
    *, store: AuthStore, user_id: str, remember_me: bool, now: int | None = None
) -> IssuedRefreshToken:
    secret = generate_refresh_secret()
    created = int(now if now is not None else now_ts())
    ttl = lifetime_for(remember_me)
    row = store.put_refresh_token(
        user_id=user_id,
        token_hash=digest_secret(secret),
        created_at=created,
        expires_at=created + ttl,
    )
    return IssuedRefreshToken(secret=secret, remember_me=bool(remember_me), max_age_s=ttl, row=row)


@dataclass(frozen=True, slots=True)
class RotateResult:
    user_id: str
    old_id: str
    new: IssuedRefreshToken


def rotate_refresh_token(
    *, store: AuthStore, refresh_token: str, now: int | None = None
) -> RotateResult:
    """
    Redeem a refresh secret once and mint its replacement.

    The old row is deleted before the new one is written; if two callers race on
    the same secret, only the one whose DELETE removed the row gets a new token.
    """
    if not refresh_token:
        raise RefreshTokenError("missing refresh token")
    ts = int(now if now is not None else now_ts())
    res = store.consume_refresh_token(token_hash=digest_secret(refresh_token), now=ts)
    if res.status == ConsumeStatus.not_found or res.row is None:
        raise RefreshTokenError("unknown refresh token")
    if res.status == ConsumeStatus.expired:
        raise RefreshTokenError("refresh token expired")

    remember_me = infer_remember_me(res.row)
    new = issue_and_store_refresh_token(
        store=store, user_id=res.row.user_id, remember_me=remember_me, now=ts
    )
    return RotateResult(user_id=res.row.user_id, old_id=res.row.id, new=new)


def revoke_refresh_token(*, store: AuthStore, refresh_token: str) -> int:
    """
    Delete the row for this secret, if any. Absent rows are not an error.
    """
    if not refresh_token:
        return 0
    return store.delete_refresh_token_by_hash(digest_secret(refresh_token))
