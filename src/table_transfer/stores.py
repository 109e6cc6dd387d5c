"""
Source and target stores

The transfer core only talks to the protocols below. PostgresSource and
SQLiteTarget are the concrete stores used by the command line tool.
"""

import re
import sqlite3
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Protocol, Sequence, Tuple

import psycopg
import structlog

from .config import DEFAULT_BATCH_SIZE
from .errors import DatabaseConnectionError
from .models import ForeignKey, Row
from .types import quote_identifier

logger = structlog.get_logger()


class SourceCatalog(Protocol):
    def columns(self, table: str, namespace: Optional[str] = None) -> List[Tuple[str, str]]: ...

    def primary_key(self, table: str, namespace: Optional[str] = None) -> List[str]: ...

    def foreign_keys(self, table: str, namespace: Optional[str] = None) -> Dict[str, ForeignKey]: ...

    def row_estimate(self, table: str, namespace: Optional[str] = None) -> int: ...

    def stream(self, statement: str) -> Iterator[Row]: ...

    def close(self) -> None: ...


class TargetStore(Protocol):
    def exec_ddl(self, statement: str) -> None: ...

    def begin(self) -> Any: ...

    def insert(self, tx: Any, statement: str, values: Sequence[Any]) -> int: ...

    def commit(self, tx: Any) -> None: ...

    def rollback(self, tx: Any) -> None: ...

    def count(self, table: str) -> int: ...

    def table_exists(self, table: str) -> bool: ...

    def close(self) -> None: ...


class ProgressSink(Protocol):
    def increment(self) -> None: ...


class NullProgress:
    """Progress sink that discards increments"""

    def increment(self) -> None:
        pass


COLUMNS_QUERY = """
    SELECT column_name, data_type
    FROM information_schema.columns
    WHERE table_name = %s AND table_schema = COALESCE(%s, current_schema())
    ORDER BY ordinal_position
"""

PRIMARY_KEY_QUERY = """
    SELECT kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    WHERE tc.constraint_type = 'PRIMARY KEY'
      AND tc.table_name = %s AND tc.table_schema = COALESCE(%s, current_schema())
    ORDER BY kcu.ordinal_position
"""

FOREIGN_KEYS_QUERY = """
    SELECT kcu.column_name, ccu.table_name, ccu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    JOIN information_schema.constraint_column_usage ccu
      ON tc.constraint_name = ccu.constraint_name
     AND tc.table_schema = ccu.constraint_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
      AND tc.table_name = %s AND tc.table_schema = COALESCE(%s, current_schema())
    ORDER BY kcu.ordinal_position
"""

ROW_ESTIMATE_QUERY = """
    SELECT c.reltuples
    FROM pg_class c
    JOIN pg_namespace n ON n.oid = c.relnamespace
    WHERE c.relname = %s AND n.nspname = COALESCE(%s, current_schema())
    LIMIT 1
"""


def _mask_credentials(message: str) -> str:
    return re.sub(r"://([^:/@]+):([^@]+)@", r"://\1:***@", message)


class PostgresSource:
    """Read-only access to a PostgreSQL database"""

    def __init__(self, connection: psycopg.Connection, itersize: int = DEFAULT_BATCH_SIZE):
        self.connection = connection
        self.itersize = itersize
        self._cursor_seq = 0

    @classmethod
    def connect(cls, url: str, itersize: int = DEFAULT_BATCH_SIZE) -> "PostgresSource":
        try:
            connection = psycopg.connect(url)
        except psycopg.Error as e:
            raise DatabaseConnectionError(
                f"Unable to connect to Postgres database: {_mask_credentials(str(e))}", store="source"
            ) from e

        logger.info("Connected to Postgres", server=connection.info.host, database=connection.info.dbname)
        return cls(connection, itersize=itersize)

    def _fetch(self, query: str, params: tuple) -> List[tuple]:
        with self.connection.cursor() as cursor:
            cursor.execute(query, params)
            return cursor.fetchall()

    def columns(self, table: str, namespace: Optional[str] = None) -> List[Tuple[str, str]]:
        return [(name, data_type) for name, data_type in self._fetch(COLUMNS_QUERY, (table, namespace))]

    def primary_key(self, table: str, namespace: Optional[str] = None) -> List[str]:
        return [row[0] for row in self._fetch(PRIMARY_KEY_QUERY, (table, namespace))]

    def foreign_keys(self, table: str, namespace: Optional[str] = None) -> Dict[str, ForeignKey]:
        return {
            column: ForeignKey(table=ref_table, column=ref_column)
            for column, ref_table, ref_column in self._fetch(FOREIGN_KEYS_QUERY, (table, namespace))
        }

    def row_estimate(self, table: str, namespace: Optional[str] = None) -> int:
        rows = self._fetch(ROW_ESTIMATE_QUERY, (table, namespace))
        if not rows:
            raise LookupError(f"No row estimate returned for {table}")
        # reltuples is -1 for tables that were never analyzed
        return max(0, int(rows[0][0]))

    def stream(self, statement: str) -> Iterator[Row]:
        """Yield rows through a server-side cursor, closing it when done"""
        self._cursor_seq += 1
        name = f"table_transfer_{self._cursor_seq}"
        try:
            with self.connection.cursor(name=name) as cursor:
                cursor.itersize = self.itersize
                cursor.execute(statement)
                for row in cursor:
                    yield tuple(row)
        finally:
            # Named cursors live inside a transaction; nothing was written
            self.connection.rollback()

    def close(self) -> None:
        self.connection.close()


class SQLiteTarget:
    """Write access to a SQLite database file.

    The connection runs in autocommit mode and transactions are opened with
    an explicit BEGIN, so DDL is applied immediately and rows only become
    visible on COMMIT.
    """

    def __init__(self, connection: sqlite3.Connection):
        self.connection = connection

    @classmethod
    def connect(cls, path: str, create_if_missing: bool = False) -> "SQLiteTarget":
        if path != ":memory:" and not create_if_missing and not Path(path).exists():
            raise DatabaseConnectionError(f"Unable to access sqlite3 file: {path}", store="target")

        try:
            # Inserts happen on the transfer worker thread
            connection = sqlite3.connect(path, isolation_level=None, check_same_thread=False)
            connection.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise DatabaseConnectionError(f"Unable to open Sqlite3 database {path}: {e}", store="target") from e

        logger.info("Opened SQLite database", path=path)
        return cls(connection)

    def exec_ddl(self, statement: str) -> None:
        self.connection.execute(statement)

    def begin(self) -> sqlite3.Cursor:
        cursor = self.connection.cursor()
        cursor.execute("BEGIN")
        return cursor

    def insert(self, tx: sqlite3.Cursor, statement: str, values: Sequence[Any]) -> int:
        tx.execute(statement, tuple(values))
        return tx.rowcount

    def commit(self, tx: sqlite3.Cursor) -> None:
        tx.execute("COMMIT")
        tx.close()

    def rollback(self, tx: sqlite3.Cursor) -> None:
        # Some errors already end the transaction on the SQLite side
        if self.connection.in_transaction:
            tx.execute("ROLLBACK")
        tx.close()

    def count(self, table: str) -> int:
        row = self.connection.execute(f"SELECT COUNT(*) FROM {quote_identifier(table)}").fetchone()
        return row[0]

    def table_exists(self, table: str) -> bool:
        row = self.connection.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?", (table,)
        ).fetchone()
        return row is not None

    def close(self) -> None:
        self.connection.close()
