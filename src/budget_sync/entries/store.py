from __future__ import annotations

import sqlite3

from budget_sync.entries.models import BudgetEntry, EntryType
from budget_sync.storage import SqliteStore

# columns a partial update may touch
_UPDATABLE = ("amount_cents", "description", "entry_type")


def _entry_from_row(row: sqlite3.Row) -> BudgetEntry:
    return BudgetEntry(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        amount_cents=int(row["amount_cents"]),
        description=str(row["description"] or ""),
        entry_type=EntryType(str(row["entry_type"])),
        created_at_ms=int(row["created_at"]),
        updated_at_ms=int(row["updated_at"]),
        deleted_at_ms=(int(row["deleted_at"]) if row["deleted_at"] is not None else None),
    )


class EntryStore(SqliteStore):
    """
    Budget entries keyed by (user_id, client id).

    Every mutation is a single statement scoped by both owner and id, so a
    replay is atomic and a wrong-owner call simply matches nothing.
    """

    def _init(self, con: sqlite3.Connection) -> None:
        con.execute(
            """
            CREATE TABLE IF NOT EXISTS budget_entries (
              user_id TEXT NOT NULL,
              id TEXT NOT NULL,
              amount_cents INTEGER NOT NULL,
              description TEXT NOT NULL DEFAULT '',
              entry_type TEXT NOT NULL,
              created_at INTEGER NOT NULL,
              updated_at INTEGER NOT NULL,
              deleted_at INTEGER,
              PRIMARY KEY (user_id, id)
            );
            """
        )
        con.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_entries_user_deleted_created
            ON budget_entries(user_id, deleted_at, created_at);
            """
        )

    def upsert_entry(
        self,
        *,
        user_id: str,
        entry_id: str,
        amount_cents: int,
        description: str,
        entry_type: EntryType,
        created_at_ms: int,
        now_ms: int,
    ) -> None:
        """
        Insert, or overwrite amount/description/type and clear any tombstone.
        created_at is kept from the first insert.
        """
        with self._conn() as con:
            con.execute(
                """
                INSERT INTO budget_entries
                  (user_id, id, amount_cents, description, entry_type, created_at, updated_at, deleted_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, NULL)
                ON CONFLICT(user_id, id) DO UPDATE SET
                  amount_cents=excluded.amount_cents,
                  description=excluded.description,
                  entry_type=excluded.entry_type,
                  updated_at=excluded.updated_at,
                  deleted_at=NULL
                """,
                (
                    str(user_id),
                    str(entry_id),
                    int(amount_cents),
                    str(description),
                    EntryType(entry_type).value,
                    int(created_at_ms),
                    int(now_ms),
                ),
            )
            con.commit()

    def update_entry(
        self, *, user_id: str, entry_id: str, fields: dict[str, object], now_ms: int
    ) -> int:
        """
        Apply only the given columns (plus updated_at). Returns rows touched (0 or 1).
        """
        unknown = set(fields) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"not updatable: {sorted(unknown)}")
        sets = [f"{col}=?" for col in _UPDATABLE if col in fields]
        params: list[object] = [fields[col] for col in _UPDATABLE if col in fields]
        sets.append("updated_at=?")
        params.extend([int(now_ms), str(entry_id), str(user_id)])
        with self._conn() as con:
            cur = con.execute(
                f"UPDATE budget_entries SET {', '.join(sets)} WHERE id=? AND user_id=?",
                tuple(params),
            )
            con.commit()
            return int(cur.rowcount or 0)

    def soft_delete_entry(self, *, user_id: str, entry_id: str, now_ms: int) -> int:
        """
        Tombstone a live row. Already-deleted rows keep their first deletion instant.
        """
        with self._conn() as con:
            cur = con.execute(
                """
                UPDATE budget_entries SET deleted_at=?, updated_at=?
                WHERE id=? AND user_id=? AND deleted_at IS NULL
                """,
                (int(now_ms), int(now_ms), str(entry_id), str(user_id)),
            )
            con.commit()
            return int(cur.rowcount or 0)

    def get_entry(self, *, user_id: str, entry_id: str) -> BudgetEntry | None:
        with self._conn() as con:
            row = con.execute(
                "SELECT * FROM budget_entries WHERE id=? AND user_id=?",
                (str(entry_id), str(user_id)),
            ).fetchone()
            return _entry_from_row(row) if row is not None else None

    def list_live_entries(self, *, user_id: str) -> list[BudgetEntry]:
        """
        Non-deleted entries, oldest first; ties fall back to insertion order.
        """
        with self._conn() as con:
            rows = con.execute(
                """
                SELECT * FROM budget_entries
                WHERE user_id=? AND deleted_at IS NULL
                ORDER BY created_at ASC, rowid ASC
                """,
                (str(user_id),),
            ).fetchall()
            return [_entry_from_row(r) for r in rows]
