from __future__ import annotations

from collections.abc import Mapping
from typing import Any

UNKNOWN_CLIENT = "unknown"


def get_client_ip_from_headers(headers: Mapping[str, Any]) -> str:
    """
    Client identity for rate limiting.

    First hop of X-Forwarded-For, else X-Real-IP, else a shared "unknown" bucket.
    The server is expected to sit behind a proxy that sets these headers.
    """
    xff = headers.get("x-forwarded-for")
    if xff:
        first = str(xff).split(",")[0].strip()
        if first:
            return first
    xr = headers.get("x-real-ip")
    if xr and str(xr).strip():
        return str(xr).strip()
    return UNKNOWN_CLIENT


def get_client_ip(request: Any) -> str:
    """
    Canonical client IP extractor.
    """
    headers = getattr(request, "headers", {}) or {}
    return get_client_ip_from_headers(headers)
