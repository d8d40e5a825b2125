"""
SQLite handle shared by the config store, the project linker and the import workers.
"""

import sqlite3
import threading
from pathlib import Path
from typing import Any, Callable, Iterable, List, Sequence, TypeVar, Union

from loguru import logger

T = TypeVar('T')

_ROW_RETURNING = ('SELECT', 'PRAGMA', 'WITH')


class Database:
    """
    One sqlite3 connection guarded by a re-entrant lock.

    Every statement and every transaction runs under the lock, so worker
    threads take turns on the connection. A thread inside
    run_in_transaction keeps the lock until it commits or rolls back.
    """

    def __init__(self, db_path: Union[str, Path] = ":memory:"):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # isolation_level=None: transactions are opened explicitly
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._lock = threading.RLock()
        self._depth = 0
        logger.info(f"Opened database at {self.db_path}")

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Union[List[sqlite3.Row], int]:
        """
        Run one statement.

        Returns:
            Rows for SELECT/PRAGMA/WITH statements, affected-row count otherwise
        """
        with self._lock:
            try:
                cursor = self._conn.execute(sql, tuple(params))
            except sqlite3.Error as e:
                logger.error(f"Database error: {e}")
                raise
            if sql.lstrip().upper().startswith(_ROW_RETURNING):
                return cursor.fetchall()
            return cursor.rowcount

    def executemany(self, sql: str, seq_of_params: Iterable[Sequence[Any]]) -> int:
        """Run one statement for each parameter tuple and return the total row count"""
        with self._lock:
            try:
                cursor = self._conn.executemany(sql, [tuple(p) for p in seq_of_params])
            except sqlite3.Error as e:
                logger.error(f"Database error: {e}")
                raise
            return cursor.rowcount

    def run_in_transaction(self, fn: Callable[['Database'], T]) -> T:
        """
        Call fn(self) inside BEGIN/COMMIT, rolling back if it raises.

        Nested calls join the outermost transaction.
        """
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    return fn(self)
                finally:
                    self._depth -= 1

            self._conn.execute("BEGIN")
            self._depth = 1
            try:
                result = fn(self)
            except Exception:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")
                return result
            finally:
                self._depth = 0

    def table_exists(self, name: str) -> bool:
        rows = self.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
        )
        return bool(rows)

    def count_rows(self, table: str) -> int:
        """Row count of a table created by this package"""
        rows = self.execute(f'SELECT COUNT(*) FROM "{table}"')
        return rows[0][0]

    def close(self):
        with self._lock:
            self._conn.close()
            logger.debug(f"Closed database at {self.db_path}")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
