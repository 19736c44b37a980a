from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from enum import Enum

from budget_sync.errors import Conflict
from budget_sync.storage import SqliteStore, now_ts
from budget_sync.utils.crypto import random_id


@dataclass(frozen=True, slots=True)
class User:
    id: str
    email: str
    password_hash: str
    created_at: int

    def public(self) -> dict[str, str]:
        return {"id": self.id, "email": self.email}


@dataclass(frozen=True, slots=True)
class RefreshTokenRow:
    id: str
    user_id: str
    token_hash: str
    created_at: int
    expires_at: int

    @property
    def lifetime_s(self) -> int:
        return int(self.expires_at) - int(self.created_at)

    def is_expired(self, now: int) -> bool:
        return int(now) > int(self.expires_at)


class ConsumeStatus(str, Enum):
    ok = "ok"
    not_found = "not_found"
    expired = "expired"


@dataclass(frozen=True, slots=True)
class ConsumeResult:
    status: ConsumeStatus
    row: RefreshTokenRow | None = None


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def _user_from_row(row: sqlite3.Row) -> User:
    return User(
        id=str(row["id"]),
        email=str(row["email"]),
        password_hash=str(row["password_hash"]),
        created_at=int(row["created_at"]),
    )


def _refresh_from_row(row: sqlite3.Row) -> RefreshTokenRow:
    return RefreshTokenRow(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        token_hash=str(row["token_hash"]),
        created_at=int(row["created_at"]),
        expires_at=int(row["expires_at"]),
    )


class AuthStore(SqliteStore):
    """
    SQLite-backed store for users + refresh-token rows.

    Refresh rows hold only the SHA-256 digest of the secret; one row per issued secret.
    """

    def _init(self, con: sqlite3.Connection) -> None:
        con.execute(
            """
            CREATE TABLE IF NOT EXISTS users (
              id TEXT PRIMARY KEY,
              email TEXT UNIQUE NOT NULL,
              password_hash TEXT NOT NULL,
              created_at INTEGER NOT NULL
            );
            """
        )
        con.execute(
            """
            CREATE TABLE IF NOT EXISTS refresh_tokens (
              id TEXT PRIMARY KEY,
              user_id TEXT NOT NULL,
              token_hash TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              expires_at INTEGER NOT NULL,
              FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
            );
            """
        )
        con.execute(
            "CREATE UNIQUE INDEX IF NOT EXISTS refresh_tokens_hash ON refresh_tokens(token_hash);"
        )
        con.execute(
            "CREATE INDEX IF NOT EXISTS refresh_tokens_user_id ON refresh_tokens(user_id);"
        )

    # --- users ---

    def get_user_by_email(self, email: str) -> User | None:
        with self._conn() as con:
            row = con.execute(
                "SELECT * FROM users WHERE email = ?", (normalize_email(email),)
            ).fetchone()
            return _user_from_row(row) if row is not None else None

    def get_user(self, user_id: str) -> User | None:
        with self._conn() as con:
            row = con.execute("SELECT * FROM users WHERE id = ?", (str(user_id),)).fetchone()
            return _user_from_row(row) if row is not None else None

    def create_user(self, *, email: str, password_hash: str, created_at: int | None = None) -> User:
        """
        Insert a new user. The unique index on email turns a duplicate (including a
        concurrent one) into Conflict.
        """
        user = User(
            id=random_id("u_", 16),
            email=normalize_email(email),
            password_hash=str(password_hash),
            created_at=int(created_at if created_at is not None else now_ts()),
        )
        with self._conn() as con:
            try:
                con.execute(
                    "INSERT INTO users (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
                    (user.id, user.email, user.password_hash, user.created_at),
                )
            except sqlite3.IntegrityError:
                raise Conflict("Email already registered") from None
            con.commit()
        return user

    # --- refresh tokens ---

    def put_refresh_token(
        self, *, user_id: str, token_hash: str, created_at: int, expires_at: int
    ) -> RefreshTokenRow:
        row = RefreshTokenRow(
            id=random_id("r_", 16),
            user_id=str(user_id),
            token_hash=str(token_hash),
            created_at=int(created_at),
            expires_at=int(expires_at),
        )
        with self._conn() as con:
            con.execute(
                """
                INSERT INTO refresh_tokens (id, user_id, token_hash, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (row.id, row.user_id, row.token_hash, row.created_at, row.expires_at),
            )
            con.commit()
        return row

    def get_refresh_token_by_hash(self, token_hash: str) -> RefreshTokenRow | None:
        with self._conn() as con:
            row = con.execute(
                "SELECT * FROM refresh_tokens WHERE token_hash = ?", (str(token_hash),)
            ).fetchone()
            return _refresh_from_row(row) if row is not None else None

    def consume_refresh_token(self, *, token_hash: str, now: int) -> ConsumeResult:
        """
        Single-use redemption: look up by digest and delete in one write transaction.

        - no row            -> not_found
        - row past expiry   -> row deleted, expired
        - otherwise         -> row deleted, ok (only if this call's DELETE removed it)
        """
        with self._conn() as con:
            con.execute("BEGIN IMMEDIATE;")
            row = con.execute(
                "SELECT * FROM refresh_tokens WHERE token_hash = ?", (str(token_hash),)
            ).fetchone()
            if row is None:
                con.rollback()
                return ConsumeResult(ConsumeStatus.not_found)
            rec = _refresh_from_row(row)
            cur = con.execute("DELETE FROM refresh_tokens WHERE id = ?", (rec.id,))
            con.commit()
            if int(cur.rowcount or 0) != 1:
                return ConsumeResult(ConsumeStatus.not_found)
            if rec.is_expired(now):
                return ConsumeResult(ConsumeStatus.expired, rec)
            return ConsumeResult(ConsumeStatus.ok, rec)

    def delete_refresh_token_by_hash(self, token_hash: str) -> int:
        with self._conn() as con:
            cur = con.execute(
                "DELETE FROM refresh_tokens WHERE token_hash = ?", (str(token_hash),)
            )
            con.commit()
            return int(cur.rowcount or 0)

    def purge_expired_refresh_tokens(self, *, now: int | None = None) -> int:
        ts = int(now if now is not None else now_ts())
        with self._conn() as con:
            cur = con.execute("DELETE FROM refresh_tokens WHERE expires_at < ?", (ts,))
            con.commit()
            return int(cur.rowcount or 0)

    def count_refresh_tokens(self, *, user_id: str) -> int:
        with self._conn() as con:
            row = con.execute(
                "SELECT COUNT(*) AS n FROM refresh_tokens WHERE user_id = ?", (str(user_id),)
            ).fetchone()
            return int(row["n"])
