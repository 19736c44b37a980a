from __future__ import annotations

from fastapi import Depends, Request

from budget_sync.api.models import AuthStore
from budget_sync.api.security import extract_bearer, verify_access_token
from budget_sync.config import get_settings
from budget_sync.entries.store import EntryStore
from budget_sync.errors import RateLimited, ServiceUnavailable, Unauthorized
from budget_sync.ops import metrics
from budget_sync.sync.engine import SyncEngine
from budget_sync.utils.log import logger, set_user_id
from budget_sync.utils.net import get_client_ip
from budget_sync.utils.ratelimit import RateLimiter


def get_store(request: Request) -> AuthStore:
    store = getattr(request.app.state, "auth_store", None)
    if store is None:
        raise ServiceUnavailable("Auth store not initialized")
    return store


def get_entry_store(request: Request) -> EntryStore:
    store = getattr(request.app.state, "entry_store", None)
    if store is None:
        raise ServiceUnavailable("Entry store not initialized")
    return store


def get_sync_engine(store: EntryStore = Depends(get_entry_store)) -> SyncEngine:
    return SyncEngine(store)


def get_limiter(request: Request) -> RateLimiter:
    rl = getattr(request.app.state, "rate_limiter", None)
    if rl is None:
        s = get_settings()
        rl = RateLimiter(redis_url=s.redis_url, idle_ttl_s=int(s.rate_limit_idle_s))
        request.app.state.rate_limiter = rl
    return rl


def rate_limit(*, bucket: str):
    """
    Per-call-site admission check. The policy ("<capacity>/<window>") is read from
    RATE_LIMIT_<BUCKET> so each endpoint class gets its own bucket and limits.
    """

    def dep(request: Request, rl: RateLimiter = Depends(get_limiter)) -> None:
        limit, per_seconds = get_settings().rate_limit_policy(bucket)
        ip = get_client_ip(request)
        try:
            rl.hit(f"{bucket}:{ip}", limit=limit, per_seconds=per_seconds)
        except RateLimited:
            metrics.rate_limited.labels(bucket=bucket).inc()
            logger.info("rate_limited", bucket=bucket, client=ip)
            raise

    return dep


async def current_user_id(request: Request) -> str:
    """
    Bearer-token gate for protected routes. Returns the verified user id.

    Runs on the event loop so the user_id context var reaches the (threadpool)
    endpoint and every log line it emits.
    """
    token = extract_bearer(request)
    if not token:
        raise Unauthorized("Missing or invalid Authorization header")
    uid = verify_access_token(token)
    set_user_id(uid)
    return uid
