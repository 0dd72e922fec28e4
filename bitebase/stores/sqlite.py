"""SQLite file store."""

import logging
import sqlite3
from contextlib import closing
from typing import Any, Dict, List, Sequence

from bitebase.core.errors import PersistedStoreError
from bitebase.stores.sql import SqlDialectStore

logger = logging.getLogger(__name__)


class SqliteStore(SqlDialectStore):
    """Opens a short-lived connection per statement so it is safe across threads."""

    name = "sqlite"

    def __init__(self, path: str, timeout: float = 5.0) -> None:
        if path == ":memory:":
            raise ValueError("SqliteStore needs a file path; use InMemoryStore for in-process data")
        self.path = path
        self.timeout = timeout

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
        try:
            with closing(sqlite3.connect(self.path, timeout=self.timeout)) as conn:
                conn.row_factory = sqlite3.Row
                with conn:
                    cursor = conn.execute(sql, list(params))
                    rows = cursor.fetchall()
        except sqlite3.Error as exc:
            logger.error("SQLite query failed on %s: %s", self.path, exc)
            raise PersistedStoreError(f"sqlite query failed: {exc}") from exc
        return [dict(row) for row in rows]
