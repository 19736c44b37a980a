from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from budget_sync.api.auth.refresh_tokens import (
    RefreshTokenError,
    issue_and_store_refresh_token,
    revoke_refresh_token,
    rotate_refresh_token,
)
from budget_sync.api.models import AuthStore
from budget_sync.storage import db_path_from_settings
from budget_sync.utils.crypto import digest_secret

HOUR = 3600
DAY = 86400


@pytest.fixture()
def store() -> AuthStore:
    return AuthStore(db_path_from_settings())


@pytest.fixture()
def user_id(store: AuthStore) -> str:
    return store.create_user(email="a@example.com", password_hash="x").id


def test_secret_is_stored_only_as_digest(store: AuthStore, user_id: str) -> None:
    issued = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False)
    assert len(issued.secret) >= 64
    assert store.get_refresh_token_by_hash(issued.secret) is None
    row = store.get_refresh_token_by_hash(digest_secret(issued.secret))
    assert row is not None
    assert row.token_hash != issued.secret


def test_lifetimes_follow_remember_me(store: AuthStore, user_id: str) -> None:
    short = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False, now=100)
    long = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=True, now=100)
    assert short.row.expires_at == 100 + 24 * HOUR
    assert long.row.expires_at == 100 + 30 * DAY
    assert long.max_age_s == 30 * DAY


def test_rotation_is_single_use(store: AuthStore, user_id: str) -> None:
    issued = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False)
    rot = rotate_refresh_token(store=store, refresh_token=issued.secret)
    assert rot.user_id == user_id
    assert rot.new.secret != issued.secret
    with pytest.raises(RefreshTokenError):
        rotate_refresh_token(store=store, refresh_token=issued.secret)
    # the replacement still works exactly once
    rotate_refresh_token(store=store, refresh_token=rot.new.secret)
    assert store.count_refresh_tokens(user_id=user_id) == 1


def test_rotation_preserves_remember_me(store: AuthStore, user_id: str) -> None:
    long = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=True, now=1000)
    rot = rotate_refresh_token(store=store, refresh_token=long.secret, now=2000)
    assert rot.new.remember_me is True
    assert rot.new.row.expires_at == 2000 + 30 * DAY

    short = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False, now=1000)
    rot = rotate_refresh_token(store=store, refresh_token=short.secret, now=2000)
    assert rot.new.remember_me is False
    assert rot.new.row.expires_at == 2000 + 24 * HOUR


def test_expired_token_is_rejected_and_removed(store: AuthStore, user_id: str) -> None:
    issued = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False, now=0)
    with pytest.raises(RefreshTokenError, match="expired"):
        rotate_refresh_token(store=store, refresh_token=issued.secret, now=24 * HOUR + 1)
    assert store.get_refresh_token_by_hash(digest_secret(issued.secret)) is None


def test_unknown_and_missing_tokens_rejected(store: AuthStore) -> None:
    with pytest.raises(RefreshTokenError):
        rotate_refresh_token(store=store, refresh_token="")
    with pytest.raises(RefreshTokenError):
        rotate_refresh_token(store=store, refresh_token="never-issued")


def test_revoke_is_idempotent(store: AuthStore, user_id: str) -> None:
    issued = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False)
    assert revoke_refresh_token(store=store, refresh_token=issued.secret) == 1
    assert revoke_refresh_token(store=store, refresh_token=issued.secret) == 0
    assert revoke_refresh_token(store=store, refresh_token="") == 0


def test_purge_expired_keeps_live_rows(store: AuthStore, user_id: str) -> None:
    issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False, now=0)
    issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=True, now=0)
    assert store.purge_expired_refresh_tokens(now=2 * DAY) == 1
    assert store.count_refresh_tokens(user_id=user_id) == 1


def test_concurrent_rotation_has_one_winner(store: AuthStore, user_id: str) -> None:
    issued = issue_and_store_refresh_token(store=store, user_id=user_id, remember_me=False)
    workers = 8
    barrier = threading.Barrier(workers)

    def attempt() -> str:
        barrier.wait()
        try:
            rotate_refresh_token(store=store, refresh_token=issued.secret)
        except RefreshTokenError:
            return "fail"
        return "ok"

    with ThreadPoolExecutor(max_workers=workers) as pool:
        outcomes = list(pool.map(lambda _: attempt(), range(workers)))

    assert sorted(outcomes) == ["fail"] * (workers - 1) + ["ok"]
    # only the winner's replacement row remains
    assert store.count_refresh_tokens(user_id=user_id) == 1
    assert store.get_refresh_token_by_hash(digest_secret(issued.secret)) is None
