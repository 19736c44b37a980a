from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from budget_sync.api.auth.refresh_tokens import (
    IssuedRefreshToken,
    RefreshTokenError,
    issue_and_store_refresh_token,
    revoke_refresh_token,
    rotate_refresh_token,
)
from budget_sync.api.deps import get_store, rate_limit
from budget_sync.api.middleware import audit_event
from budget_sync.api.models import AuthStore
from budget_sync.api.schemas import LoginRequest, RegisterRequest
from budget_sync.api.security import create_access_token
from budget_sync.config import get_settings
from budget_sync.errors import Conflict, Unauthorized
from budget_sync.ops import metrics
from budget_sync.utils.crypto import PasswordHasher, burn_verify

router = APIRouter(prefix="/api/auth", tags=["auth"])

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH = "Invalid or expired refresh token"


def set_refresh_cookie(resp: Response, issued: IssuedRefreshToken) -> None:
    s = get_settings()
    resp.set_cookie(
        s.refresh_cookie_name,
        issued.secret,
        httponly=True,
        samesite="strict",
        secure=s.cookie_is_secure,
        path=s.refresh_cookie_path,
        # without "remember me" the cookie lives for the browser session only
        max_age=issued.max_age_s if issued.remember_me else None,
    )


def clear_refresh_cookie(resp: Response) -> None:
    s = get_settings()
    resp.delete_cookie(
        s.refresh_cookie_name,
        path=s.refresh_cookie_path,
        secure=s.cookie_is_secure,
        httponly=True,
        samesite="strict",
    )


@router.post(
    "/register",
    status_code=201,
    dependencies=[Depends(rate_limit(bucket="register"))],
)
def register(
    body: RegisterRequest,
    request: Request,
    response: Response,
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    # cheap pre-check; the unique index still decides under concurrency
    if store.get_user_by_email(body.email) is not None:
        metrics.auth_events.labels(event="register", outcome="conflict").inc()
        audit_event("auth.register", request=request, outcome="conflict")
        raise Conflict("Email already registered")

    pw_hash = PasswordHasher.from_settings().hash(body.password)
    user = store.create_user(email=body.email, password_hash=pw_hash)

    access = create_access_token(sub=user.id)
    set_refresh_cookie(
        response, issue_and_store_refresh_token(store=store, user_id=user.id, remember_me=False)
    )
    metrics.auth_events.labels(event="register", outcome="ok").inc()
    audit_event("auth.register", request=request, user_id=user.id, outcome="ok")
    return {"accessToken": access, "user": user.public()}


@router.post("/login", dependencies=[Depends(rate_limit(bucket="login"))])
def login(
    body: LoginRequest,
    request: Request,
    response: Response,
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    hasher = PasswordHasher.from_settings()
    user = store.get_user_by_email(body.email)
    ok = (
        hasher.verify(user.password_hash, body.password)
        if user is not None
        else burn_verify(hasher, body.password)
    )
    if user is None or not ok:
        metrics.auth_events.labels(event="login", outcome="failed").inc()
        audit_event("auth.login_failed", request=request, outcome="failed")
        raise Unauthorized(INVALID_CREDENTIALS)

    access = create_access_token(sub=user.id)
    set_refresh_cookie(
        response,
        issue_and_store_refresh_token(store=store, user_id=user.id, remember_me=body.remember_me),
    )
    metrics.auth_events.labels(event="login", outcome="ok").inc()
    audit_event(
        "auth.login_ok",
        request=request,
        user_id=user.id,
        outcome="ok",
        meta={"remember_me": body.remember_me},
    )
    return {"accessToken": access, "user": user.public()}


@router.post("/refresh")
def refresh(
    request: Request,
    response: Response,
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    """
    Silent refresh: the client calls this on startup and after a 401 to extend
    the session without a new login. Every failure looks the same to the caller.
    """
    rt = request.cookies.get(get_settings().refresh_cookie_name) or ""
    try:
        rot = rotate_refresh_token(store=store, refresh_token=rt)
    except RefreshTokenError as ex:
        metrics.auth_events.labels(event="refresh", outcome="failed").inc()
        audit_event("auth.refresh_failed", request=request, outcome="failed", meta={"reason": str(ex)})
        raise Unauthorized(INVALID_REFRESH, clear_refresh_cookie=True) from None

    access = create_access_token(sub=rot.user_id)
    set_refresh_cookie(response, rot.new)
    metrics.auth_events.labels(event="refresh", outcome="ok").inc()
    audit_event(
        "auth.refresh_ok",
        request=request,
        user_id=rot.user_id,
        outcome="ok",
        meta={"remember_me": rot.new.remember_me},
    )
    return {"accessToken": access}


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    store: AuthStore = Depends(get_store),
) -> dict[str, Any]:
    rt = request.cookies.get(get_settings().refresh_cookie_name) or ""
    n = 0
    if rt:
        n = revoke_refresh_token(store=store, refresh_token=rt)
        clear_refresh_cookie(response)
    metrics.auth_events.labels(event="logout", outcome="ok").inc()
    audit_event("auth.logout", request=request, outcome="ok", meta={"revoked": n})
    return {"success": True}
