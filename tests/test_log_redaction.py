from __future__ import annotations

from budget_sync.api.security import create_access_token
from budget_sync.config import get_settings
from budget_sync.utils.log import redact_event


def _redact(**kw) -> dict:
    return redact_event(None, None, dict(kw))


def test_jwt_and_bearer_values_are_redacted() -> None:
    tok = create_access_token(sub="u_1")
    out = _redact(event="auth header", header=f"Bearer {tok}", raw=tok)
    assert tok not in out["header"]
    assert tok not in out["raw"]
    assert "***REDACTED***" in out["raw"]


def test_refresh_cookie_and_password_pairs_are_redacted() -> None:
    out = _redact(
        event="request",
        cookie="refresh_token=abcDEF123_-xyz; other=1",
        form="email=a@example.com password=hunter22",
    )
    assert "abcDEF123_-xyz" not in out["cookie"]
    assert "other=1" in out["cookie"]
    assert "hunter22" not in out["form"]
    assert "email=a@example.com" in out["form"]


def test_configured_jwt_secret_literal_is_redacted() -> None:
    secret = get_settings().jwt_secret_bytes().decode()
    out = _redact(event=f"boot with {secret}")
    assert secret not in out["event"]


def test_non_string_values_pass_through() -> None:
    out = _redact(event="x", n=3, meta={"remember_me": True})
    assert out["n"] == 3
    assert out["meta"] == {"remember_me": True}
