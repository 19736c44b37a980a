"""
Canonical authentication helpers.

The server wires auth via:
- JWT access tokens (HS256, short-lived, stateless)
- opaque refresh secrets in an HTTP-only cookie, stored server-side as SHA-256
  digests and rotated on every use
"""

from __future__ import annotations

from .refresh_tokens import (
    IssuedRefreshToken,
    RefreshTokenError,
    RotateResult,
    infer_remember_me,
    issue_and_store_refresh_token,
    revoke_refresh_token,
    rotate_refresh_token,
)

__all__ = [
    "IssuedRefreshToken",
    "RefreshTokenError",
    "RotateResult",
    "infer_remember_me",
    "issue_and_store_refresh_token",
    "revoke_refresh_token",
    "rotate_refresh_token",
]
