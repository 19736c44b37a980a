from __future__ import annotations

import os

# Captured at import: the autouse env fixture clears REDIS_URL for every test.
_REDIS_URL = os.environ.get("REDIS_URL", "")


def redis_url() -> str:
    return _REDIS_URL


def redis_available() -> bool:
    url = redis_url()
    if not url:
        return False
    try:
        import redis

        client = redis.Redis.from_url(url, decode_responses=True, socket_connect_timeout=1.0)
        return bool(client.ping())
    except Exception:
        return False


def redis_client():
    url = redis_url()
    if not url:
        return None
    import redis

    return redis.Redis.from_url(url, decode_responses=True)
