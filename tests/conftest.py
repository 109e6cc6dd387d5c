"""
Shared fakes and fixtures
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from table_transfer.models import ForeignKey, TableSchema, build_columns  # noqa: E402
from table_transfer.stores import SQLiteTarget  # noqa: E402


class FakeSource:
    """Scripted source catalog.

    ``failures`` maps a method name to the exception it raises; ``fail_after``
    makes the row stream raise once that many rows were yielded.
    """

    def __init__(self, columns, rows=(), primary_key=(), foreign_keys=None, estimate=None,
                 failures=None, fail_after=None):
        self._columns = list(columns)
        self.rows = [tuple(row) for row in rows]
        self._primary_key = list(primary_key)
        self._foreign_keys = dict(foreign_keys or {})
        self.estimate = len(self.rows) if estimate is None else estimate
        self.failures = dict(failures or {})
        self.fail_after = fail_after

        self.calls = []
        self.statements = []
        self.yielded = 0
        self.stream_closed = False
        self.closed = False

    def _call(self, name):
        self.calls.append(name)
        if name in self.failures:
            raise self.failures[name]

    def columns(self, table, namespace=None):
        self._call("columns")
        return list(self._columns)

    def primary_key(self, table, namespace=None):
        self._call("primary_key")
        return list(self._primary_key)

    def foreign_keys(self, table, namespace=None):
        self._call("foreign_keys")
        return dict(self._foreign_keys)

    def row_estimate(self, table, namespace=None):
        self._call("row_estimate")
        return self.estimate

    def stream(self, statement):
        self._call("stream")
        self.statements.append(statement)
        try:
            for index, row in enumerate(self.rows):
                if self.fail_after is not None and index == self.fail_after:
                    raise RuntimeError("server closed the connection unexpectedly")
                self.yielded += 1
                yield row
        finally:
            self.stream_closed = True

    def close(self):
        self.closed = True


class RecordingTarget:
    """Wraps a real target and records DDL and transaction calls"""

    def __init__(self, target, insert_result=None, count_offset=0):
        self.target = target
        self.insert_result = insert_result
        self.count_offset = count_offset
        self.ddl = []
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def exec_ddl(self, statement):
        self.ddl.append(statement)
        self.target.exec_ddl(statement)

    def begin(self):
        return self.target.begin()

    def insert(self, tx, statement, values):
        affected = self.target.insert(tx, statement, values)
        if self.insert_result is not None:
            return self.insert_result
        return affected

    def commit(self, tx):
        self.commits += 1
        self.target.commit(tx)

    def rollback(self, tx):
        self.rollbacks += 1
        self.target.rollback(tx)

    def count(self, table):
        return self.target.count(table) + self.count_offset

    def table_exists(self, table):
        return self.target.table_exists(table)

    def close(self):
        self.closed = True
        self.target.close()


class RecordingProgress:
    def __init__(self):
        self.count = 0
        self.closed = False

    def increment(self):
        self.count += 1

    def close(self):
        self.closed = True


def make_schema(name, columns, ignored=(), primary_key=(), namespace=None, foreign_keys=None):
    return TableSchema(
        name=name,
        columns=build_columns(columns, ignored, primary_key, foreign_keys),
        namespace=namespace,
        key_order=tuple(primary_key),
    )


@pytest.fixture
def sqlite_path(tmp_path):
    return str(tmp_path / "target.db")


@pytest.fixture
def target(sqlite_path):
    store = SQLiteTarget.connect(sqlite_path, create_if_missing=True)
    yield store
    store.connection.close()


@pytest.fixture
def fk_users():
    return {"user_id": ForeignKey(table="users", column="id")}
