"""SQLite storage for upload parts: schema setup and a narrow CRUD interface."""

import sqlite3
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Any, Dict, Generator, List, Optional, Sequence

from common.constants import UPLOAD_PARTS_TABLE
from common.logging_config import get_logger
from partcache.config import DATABASE_PATH, DATABASE_TIMEOUT_SECONDS
from partcache.exceptions import StorageUnavailableError

logger = get_logger(__name__)

# Bad SQL or constraint violations are caller bugs, not an unavailable store
CALLER_ERRORS = (sqlite3.IntegrityError, sqlite3.ProgrammingError)

UPLOAD_PART_INDEXES = {
    "idx_upload_parts_hash_size": f"CREATE INDEX IF NOT EXISTS idx_upload_parts_hash_size ON {UPLOAD_PARTS_TABLE}(file_hash, file_size)",
    "idx_upload_parts_cid": f"CREATE INDEX IF NOT EXISTS idx_upload_parts_cid ON {UPLOAD_PARTS_TABLE}(cid)",
}


def _index_exists(cursor: sqlite3.Cursor, index_name: str) -> bool:
    cursor.execute(
        "SELECT name FROM sqlite_master WHERE type='index' AND tbl_name=? AND name=?",
        (UPLOAD_PARTS_TABLE, index_name)
    )
    return cursor.fetchone() is not None


def _create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the upload_parts table and its lookup indexes if they don't exist.
    """
    cursor = conn.cursor()

    cursor.execute(f"""
        CREATE TABLE IF NOT EXISTS {UPLOAD_PARTS_TABLE} (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            created_at INTEGER DEFAULT (strftime('%s', 'now')),
            file_hash TEXT NOT NULL,
            file_size INTEGER NOT NULL,
            cid INTEGER NOT NULL,
            filename TEXT NOT NULL,
            expire_time INTEGER NOT NULL
        )
    """)

    for index_name, sql in UPLOAD_PART_INDEXES.items():
        if not _index_exists(cursor, index_name):
            cursor.execute(sql)
            logger.info(f"Created index {index_name}")


class SqliteStorage:
    """
    Storage handle over a single SQLite database file.

    Every transaction runs on its own short-lived connection, so one handle
    can be shared by concurrent upload workers and the sweeper. Calls made
    without an explicit ``conn`` run in a transaction of their own; pass the
    connection yielded by ``transaction()`` to group several calls.
    """

    def __init__(self, database_path: Optional[str] = None, timeout: Optional[float] = None):
        self.database_path = str(database_path or DATABASE_PATH)
        self.timeout = DATABASE_TIMEOUT_SECONDS if timeout is None else timeout
        self._opened = False

    def __enter__(self) -> "SqliteStorage":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> None:
        """
        Create the database file, schema and indexes, and switch to WAL mode.

        Raises:
            StorageUnavailableError: If the database cannot be created or opened
        """
        if self._opened:
            return

        try:
            Path(self.database_path).parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailableError(f"Cannot create database directory: {e}") from e

        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("BEGIN")
            _create_schema(conn)
            conn.execute("COMMIT")
        except CALLER_ERRORS:
            self._rollback(conn)
            raise
        except sqlite3.DatabaseError as e:
            self._rollback(conn)
            logger.error(f"Failed to initialize database at {self.database_path}: {e}")
            raise StorageUnavailableError(f"Database initialization failed: {e}") from e
        finally:
            conn.close()

        self._opened = True
        logger.info(f"Opened part cache database at {self.database_path}")

    def close(self) -> None:
        if self._opened:
            self._opened = False
            logger.info(f"Closed part cache database at {self.database_path}")

    def _connect(self) -> sqlite3.Connection:
        try:
            conn = sqlite3.connect(
                self.database_path,
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False
            )
        except sqlite3.DatabaseError as e:
            raise StorageUnavailableError(f"Cannot open database {self.database_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    @staticmethod
    def _rollback(conn: sqlite3.Connection) -> None:
        if not conn.in_transaction:
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.warning(f"Rollback failed: {e}")

    @contextmanager
    def transaction(self, immediate: bool = False) -> Generator[sqlite3.Connection, None, None]:
        """
        Run a block of statements as one transaction.

        Args:
            immediate: Take the write lock up front (BEGIN IMMEDIATE) so a
                read-then-write sequence cannot interleave with other writers

        Raises:
            StorageUnavailableError: If the database is closed, unreachable or
                stays locked longer than the configured timeout, or the file
                is corrupt or not a database
        """
        if not self._opened:
            raise StorageUnavailableError("Storage is closed")

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
            yield conn
            conn.execute("COMMIT")
        except CALLER_ERRORS:
            self._rollback(conn)
            raise
        except sqlite3.DatabaseError as e:
            self._rollback(conn)
            logger.error(f"Storage operation failed: {e}")
            raise StorageUnavailableError(f"Storage operation failed: {e}") from e
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            conn.close()

    def _use(self, conn: Optional[sqlite3.Connection]):
        return nullcontext(conn) if conn is not None else self.transaction()

    def insert(self, table: str, values: Dict[str, Any], conn=None) -> int:
        """Insert one row and return its id."""
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        with self._use(conn) as c:
            cursor = c.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                tuple(values.values())
            )
            return cursor.lastrowid

    def update_by_id(self, table: str, row_id: int, values: Dict[str, Any], conn=None) -> int:
        """Update columns of one row; returns the number of rows changed."""
        assignments = ", ".join(f"{column} = ?" for column in values)
        with self._use(conn) as c:
            cursor = c.execute(
                f"UPDATE {table} SET {assignments} WHERE id = ?",
                (*values.values(), row_id)
            )
            return cursor.rowcount

    def query_one(
        self,
        table: str,
        where: str,
        params: Sequence[Any] = (),
        order_by: Optional[str] = None,
        conn=None
    ) -> Optional[sqlite3.Row]:
        sql = f"SELECT * FROM {table} WHERE {where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        sql += " LIMIT 1"
        with self._use(conn) as c:
            return c.execute(sql, tuple(params)).fetchone()

    def query_many(
        self,
        table: str,
        where: str,
        params: Sequence[Any] = (),
        order_by: Optional[str] = None,
        conn=None
    ) -> List[sqlite3.Row]:
        sql = f"SELECT * FROM {table} WHERE {where}"
        if order_by:
            sql += f" ORDER BY {order_by}"
        with self._use(conn) as c:
            return c.execute(sql, tuple(params)).fetchall()

    def delete_where(self, table: str, where: str, params: Sequence[Any] = (), conn=None) -> int:
        """Delete matching rows in one statement; returns the number deleted."""
        with self._use(conn) as c:
            cursor = c.execute(f"DELETE FROM {table} WHERE {where}", tuple(params))
            return cursor.rowcount


def row_to_dict(row: Optional[sqlite3.Row]) -> Optional[Dict[str, Any]]:
    """
    Convert a sqlite3.Row to a plain dict (None stays None).
    """
    if row is None:
        return None
    return {key: row[key] for key in row.keys()}
