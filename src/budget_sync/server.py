from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress

from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.exceptions import HTTPException as StarletteHTTPException

from budget_sync.api.deps import rate_limit
from budget_sync.api.middleware import request_context_middleware, security_headers_middleware
from budget_sync.api.models import AuthStore
from budget_sync.api.routes_auth import clear_refresh_cookie
from budget_sync.api.routes_auth import router as auth_router
from budget_sync.api.routes_budget import router as budget_router
from budget_sync.config import get_settings, validate_settings
from budget_sync.entries.models import ms_to_iso
from budget_sync.entries.store import EntryStore
from budget_sync.errors import BudgetSyncError, RateLimited, Unauthorized
from budget_sync.ops.metrics import REGISTRY
from budget_sync.storage import db_path_from_settings, now_ms
from budget_sync.utils.log import logger
from budget_sync.utils.ratelimit import RateLimiter


async def _sweep_loop(rl: RateLimiter, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            n = rl.purge_idle()
        except Exception as ex:
            logger.warning("ratelimit_sweep_failed", error=str(ex))
            continue
        if n:
            logger.debug("ratelimit_sweep", purged=n, remaining=len(rl))


@asynccontextmanager
async def lifespan(app: FastAPI):
    s = get_settings()
    # Refuse to serve with a missing/short JWT secret or an unsafe production config.
    validate_settings(s)

    db = db_path_from_settings()
    app.state.auth_store = AuthStore(db, timeout_s=float(s.db_timeout_s))
    app.state.entry_store = EntryStore(db, timeout_s=float(s.db_timeout_s))
    rl = RateLimiter(redis_url=s.redis_url, idle_ttl_s=int(s.rate_limit_idle_s))
    app.state.rate_limiter = rl

    sweep = asyncio.create_task(_sweep_loop(rl, float(s.rate_limit_sweep_s)))
    logger.info("server_started", db=str(db), env=str(s.app_env), shared_limiter=bool(s.redis_url))
    try:
        yield
    finally:
        sweep.cancel()
        with suppress(asyncio.CancelledError):
            await sweep
        logger.info("server_stopped")


app = FastAPI(
    title="budget-sync",
    lifespan=lifespan,
    dependencies=[Depends(rate_limit(bucket="api"))],
)

# Strict CORS: only configured origins, credentials on for the refresh cookie
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.middleware("http")(security_headers_middleware)
app.middleware("http")(request_context_middleware)

app.include_router(auth_router)
app.include_router(budget_router)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@app.exception_handler(BudgetSyncError)
async def budget_sync_error_handler(request: Request, exc: BudgetSyncError) -> JSONResponse:
    resp = _error(exc.status_code, exc.message)
    if isinstance(exc, RateLimited):
        resp.headers["Retry-After"] = str(exc.retry_after)
    if isinstance(exc, Unauthorized) and exc.clear_refresh_cookie:
        clear_refresh_cookie(resp)
    return resp


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Field locations only; submitted values (passwords included) are never echoed.
    fields = sorted({".".join(str(p) for p in e.get("loc", ())) for e in exc.errors()})
    return _error(400, "Invalid request", fields=fields)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    msg = "Not found" if exc.status_code == 404 else str(exc.detail)
    return _error(exc.status_code, msg)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=str(request.url.path), error_type=type(exc).__name__)
    return _error(500, "Internal server error")


@app.get("/api/health")
async def health():
    return {"status": "ok", "timestamp": ms_to_iso(now_ms())}


@app.get("/metrics")
async def metrics():
    return Response(content=generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
