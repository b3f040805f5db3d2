"""SQLite storage shared by the trader components."""

from __future__ import annotations

import sqlite3
from pathlib import Path
from types import TracebackType

DATABASE_NAME = "control.db"
BUSY_TIMEOUT_SECONDS = 3.0


class TraderStore:
    """Owns the trader's control database and its long-running transaction.

    Writes are batched inside one open transaction; :meth:`checkpoint`
    commits what has been written so far and opens the next transaction.
    """

    def __init__(self, data_path: str | Path) -> None:
        self._data_path = Path(data_path)
        self._data_path.mkdir(parents=True, exist_ok=True)
        self.path = self._data_path / DATABASE_NAME
        self.path.touch(exist_ok=True)

        self._conn = sqlite3.connect(
            str(self.path),
            timeout=BUSY_TIMEOUT_SECONDS,
            isolation_level=None,
            check_same_thread=False,
        )
        self._closed = False
        try:
            self._conn.execute("PRAGMA synchronous = OFF")
            self._conn.execute("PRAGMA user_version = 1")
            self._conn.execute("BEGIN")
        except sqlite3.Error:
            self._conn.close()
            self._closed = True
            raise

    @property
    def connection(self) -> sqlite3.Connection:
        """The open database connection."""
        if self._closed:
            raise sqlite3.ProgrammingError("trader store is closed")
        return self._conn

    def checkpoint(self) -> None:
        """Commit pending writes and start a new transaction."""
        conn = self.connection
        if conn.in_transaction:
            conn.execute("COMMIT")
        conn.execute("BEGIN")

    def close(self) -> None:
        """Commit pending writes and close the connection."""
        if self._closed:
            return
        try:
            if self._conn.in_transaction:
                self._conn.execute("COMMIT")
        finally:
            self._conn.close()
            self._closed = True

    def __enter__(self) -> "TraderStore":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()