from __future__ import annotations

import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from budget_sync.errors import ServiceUnavailable
from budget_sync.utils.log import logger


def now_ts() -> int:
    return int(time.time())


def now_ms() -> int:
    return int(time.time() * 1000)


def db_path_from_settings() -> Path:
    from budget_sync.config import get_settings

    s = get_settings()
    return Path(s.state_dir).resolve() / str(s.db_name or "budget.db")


class SqliteStore:
    """
    Base for the SQLite-backed stores.

    One short-lived connection per call. Any sqlite3 failure is logged with
    detail and surfaced as ServiceUnavailable (no paths or SQL in the message).
    """

    def __init__(self, db_path: Path, *, timeout_s: float = 10.0) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.timeout_s = float(timeout_s)
        with self._conn() as con:
            self._init(con)
            con.commit()

    def _init(self, con: sqlite3.Connection) -> None:
        raise NotImplementedError

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        con: sqlite3.Connection | None = None
        try:
            con = sqlite3.connect(str(self.db_path), timeout=self.timeout_s)
            con.row_factory = sqlite3.Row
            con.execute("PRAGMA foreign_keys = ON;")
            yield con
        except sqlite3.Error as ex:
            if con is not None and con.in_transaction:
                con.rollback()
            logger.error(
                "storage_error",
                store=type(self).__name__,
                error_type=type(ex).__name__,
                error=str(ex),
            )
            raise ServiceUnavailable() from ex
        finally:
            if con is not None:
                con.close()
