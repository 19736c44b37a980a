from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest

# Settings are read at import time by the logger and the app module, so the
# process-wide defaults must be in place before any budget_sync import.
_BOOT = Path(tempfile.mkdtemp(prefix="budget_sync_test_"))
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789abcdefghijklmnopqrstuvwxyz")
os.environ.setdefault("LOG_DIR", str(_BOOT / "logs"))
os.environ.setdefault("BUDGET_STATE_DIR", str(_BOOT / "_state"))
os.environ.setdefault("COOKIE_SECURE", "0")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:5173")
# argon2 at production cost makes the HTTP tests slow for no benefit
os.environ.setdefault("PASSWORD_HASH_TIME_COST", "1")
os.environ.setdefault("PASSWORD_HASH_MEMORY_KIB", "8")
os.environ.setdefault("PASSWORD_HASH_PARALLELISM", "1")

from budget_sync.config import get_settings  # noqa: E402

TEST_JWT_SECRET = os.environ["JWT_SECRET"]


@pytest.fixture(autouse=True)
def _test_env(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> None:
    root = tmp_path_factory.mktemp("bs_test")
    (root / "_state").mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("BUDGET_STATE_DIR", str(root / "_state"))
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    monkeypatch.setenv("COOKIE_SECURE", "0")
    monkeypatch.delenv("REDIS_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
