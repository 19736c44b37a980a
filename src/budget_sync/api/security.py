from __future__ import annotations

import time
from typing import Any

import jwt
from fastapi import Request

from budget_sync.config import get_settings
from budget_sync.errors import Unauthorized

ACCESS_TOKEN_TYP = "access"


def create_access_token(*, sub: str, minutes: int | None = None, now: int | None = None) -> str:
    """
    Signed, short-lived identity assertion: sub, iat, exp = iat + ACCESS_TOKEN_MINUTES.
    """
    s = get_settings()
    iat = int(now if now is not None else time.time())
    ttl_min = int(minutes if minutes is not None else s.access_token_minutes)
    payload: dict[str, Any] = {
        "typ": ACCESS_TOKEN_TYP,
        "sub": str(sub),
        "iat": iat,
        "exp": iat + ttl_min * 60,
    }
    return jwt.encode(payload, s.jwt_secret_bytes(), algorithm=s.jwt_alg)


def verify_access_token(token: str) -> str:
    """
    Validate signature + expiry and return the user id.

    Bad signature, malformed structure, missing claims and expiry all collapse to
    the same Unauthorized. No leeway is applied.
    """
    s = get_settings()
    try:
        data = jwt.decode(
            str(token or ""),
            s.jwt_secret_bytes(),
            algorithms=[s.jwt_alg],
            leeway=0,
            options={"require": ["sub", "iat", "exp"]},
        )
    except jwt.PyJWTError:
        raise Unauthorized("Invalid or expired token") from None
    if not isinstance(data, dict) or data.get("typ") != ACCESS_TOKEN_TYP:
        raise Unauthorized("Invalid or expired token")
    sub = str(data.get("sub") or "")
    if not sub:
        raise Unauthorized("Invalid or expired token")
    return sub


def extract_bearer(request: Request) -> str | None:
    auth = request.headers.get("authorization") or ""
    if auth[:7].lower() == "bearer ":
        return auth[7:].strip() or None
    return None
