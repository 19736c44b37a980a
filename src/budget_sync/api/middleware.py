from __future__ import annotations

import uuid
from collections.abc import Callable
from typing import Any

from fastapi import Request, Response

from budget_sync.utils.log import audit_logger, request_id_var, set_request_id, set_user_id
from budget_sync.utils.net import get_client_ip


def _new_request_id() -> str:
    return uuid.uuid4().hex


async def request_context_middleware(
    request: Request, call_next: Callable[[Request], Any]
) -> Response:
    """
    Request-scoped context:
    - Inject X-Request-ID if absent
    - Put request_id/user_id into contextvars so all logs get correlation fields
    """
    rid = request.headers.get("x-request-id") or _new_request_id()
    set_request_id(rid)
    set_user_id(None)
    request.state.request_id = rid
    try:
        resp = await call_next(request)
        resp.headers.setdefault("x-request-id", rid)
        return resp
    finally:
        set_request_id(None)
        set_user_id(None)


async def security_headers_middleware(
    request: Request, call_next: Callable[[Request], Any]
) -> Response:
    resp = await call_next(request)
    resp.headers.setdefault("x-content-type-options", "nosniff")
    resp.headers.setdefault("x-frame-options", "DENY")
    resp.headers.setdefault("referrer-policy", "no-referrer")
    resp.headers.setdefault("cross-origin-opener-policy", "same-origin")
    return resp


def audit_event(
    event: str,
    *,
    request: Request,
    user_id: str | None = None,
    outcome: str | None = None,
    meta: dict | None = None,
) -> None:
    """
    Structured audit line. `meta` must only carry safe values (never secrets,
    digests or passwords); the log redactor is a second line of defence.
    """
    rid = request_id_var.get() or getattr(request.state, "request_id", None)
    audit_logger.info(
        event,
        request_id=rid,
        actor_id=user_id,
        outcome=outcome,
        client=get_client_ip(request),
        meta=meta or {},
    )
