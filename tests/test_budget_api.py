from __future__ import annotations

import sqlite3

from fastapi.testclient import TestClient

from budget_sync.server import app


def _auth(c: TestClient, email: str = "alice@example.com") -> dict[str, str]:
    r = c.post("/api/auth/register", json={"email": email, "password": "password123"})
    assert r.status_code == 201
    return {"Authorization": f"Bearer {r.json()['accessToken']}"}


def _sync(c: TestClient, headers: dict[str, str], kind: str, **payload):
    return c.post(
        "/api/budget/sync",
        headers=headers,
        json={"type": kind, "payload": payload, "timestamp": 1700000000000},
    )


def test_sync_replay_and_snapshot() -> None:
    with TestClient(app) as c:
        h = _auth(c)
        add = dict(
            entryId="e-1",
            amount=42.1,
            description="groceries",
            entryType="expense",
            createdAt="2024-03-01T12:00:00.000Z",
        )
        r = _sync(c, h, "add", **add)
        assert r.status_code == 200
        assert r.json() == {"success": True}
        # at-least-once delivery: the same add twice leaves one entry
        assert _sync(c, h, "add", **add).status_code == 200
        assert _sync(c, h, "update", entryId="e-1", description="food").status_code == 200

        r = c.get("/api/budget/entries", headers=h)
        assert r.status_code == 200
        assert r.json() == {
            "entries": [
                {
                    "id": "e-1",
                    "amount": 42.1,
                    "description": "food",
                    "type": "expense",
                    "createdAt": "2024-03-01T12:00:00.000Z",
                }
            ]
        }

        assert _sync(c, h, "delete", entryId="e-1").status_code == 200
        assert _sync(c, h, "delete", entryId="e-1").status_code == 200
        assert c.get("/api/budget/entries", headers=h).json() == {"entries": []}


def test_sync_noops_on_unknown_entries() -> None:
    with TestClient(app) as c:
        h = _auth(c)
        assert _sync(c, h, "update", entryId="ghost", amount=3).status_code == 200
        assert _sync(c, h, "delete", entryId="ghost").status_code == 200
        assert c.get("/api/budget/entries", headers=h).json() == {"entries": []}


def test_sync_rejects_bad_operations() -> None:
    with TestClient(app) as c:
        h = _auth(c)
        r = _sync(c, h, "add", entryId="e-1", entryType="income")
        assert r.status_code == 400
        assert "error" in r.json()

        assert _sync(c, h, "add", entryId="e-1", amount=-5, entryType="income").status_code == 400
        assert _sync(c, h, "add", entryId="e-1", amount=5, entryType="bogus").status_code == 400
        assert _sync(c, h, "rename", entryId="e-1").status_code == 400
        assert _sync(c, h, "add", entryId="", amount=5, entryType="income").status_code == 400
        assert _sync(c, h, "add", entryId="x" * 101, amount=5, entryType="income").status_code == 400


def test_entries_are_scoped_to_the_caller() -> None:
    with TestClient(app) as c:
        alice = _auth(c, "alice@example.com")
        bob = _auth(c, "bob@example.com")
        _sync(c, alice, "add", entryId="shared-id", amount=1, entryType="income")
        # bob cannot touch alice's row through the same client id
        _sync(c, bob, "delete", entryId="shared-id")
        _sync(c, bob, "update", entryId="shared-id", amount=999)

        mine = c.get("/api/budget/entries", headers=alice).json()["entries"]
        assert [(e["id"], e["amount"]) for e in mine] == [("shared-id", 1)]
        assert c.get("/api/budget/entries", headers=bob).json() == {"entries": []}


def test_sync_requires_auth() -> None:
    with TestClient(app) as c:
        r = c.post(
            "/api/budget/sync",
            json={"type": "delete", "payload": {"entryId": "e"}, "timestamp": 1},
        )
        assert r.status_code == 401


def test_register_rate_limit_sets_retry_after() -> None:
    with TestClient(app) as c:
        hdr = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        for i in range(5):
            r = c.post(
                "/api/auth/register",
                headers=hdr,
                json={"email": f"user{i}@example.com", "password": "password123"},
            )
            assert r.status_code == 201
        r = c.post(
            "/api/auth/register",
            headers=hdr,
            json={"email": "user5@example.com", "password": "password123"},
        )
        assert r.status_code == 429
        assert r.headers["retry-after"] == "60"
        assert "error" in r.json()

        # another client identity has its own bucket
        r = c.post(
            "/api/auth/register",
            headers={"X-Forwarded-For": "198.51.100.2"},
            json={"email": "user5@example.com", "password": "password123"},
        )
        assert r.status_code == 201


def test_health_metrics_and_response_headers() -> None:
    with TestClient(app) as c:
        r = c.get("/api/health", headers={"X-Request-ID": "req-abc"})
        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "ok"
        assert body["timestamp"].endswith("Z")
        assert r.headers["x-request-id"] == "req-abc"
        assert r.headers["x-content-type-options"] == "nosniff"
        assert r.headers["x-frame-options"] == "DENY"

        _auth(c)
        m = c.get("/metrics")
        assert m.status_code == 200
        assert "budget_sync_auth_events_total" in m.text


def test_unknown_route_uses_error_body() -> None:
    with TestClient(app) as c:
        r = c.get("/api/nope")
        assert r.status_code == 404
        assert r.json() == {"error": "Not found"}


def test_storage_failure_returns_503_with_generic_body() -> None:
    with TestClient(app) as c:
        h = _auth(c)
        con = sqlite3.connect(str(app.state.entry_store.db_path))
        con.execute("DROP TABLE budget_entries")
        con.commit()
        con.close()

        r = c.get("/api/budget/entries", headers=h)
        assert r.status_code == 503
        assert r.json() == {"error": "Service temporarily unavailable"}

        r = _sync(c, h, "add", entryId="e-1", amount=1, entryType="income")
        assert r.status_code == 503
        assert "budget_entries" not in r.text
