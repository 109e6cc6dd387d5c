"""
End-to-end tests for the migration pipeline
"""

import sqlite3

import pytest

from conftest import FakeSource, RecordingProgress, RecordingTarget
from table_transfer.config import TargetConfig, TransferConfig
from table_transfer.errors import (
    EmptySourceError,
    MigrationCancelled,
    TableAlreadyExists,
    TableNotFound,
    TransferError,
    VerificationMismatch,
)
from table_transfer.pipeline import MigrationPipeline

PEOPLE_COLUMNS = [("id", "integer"), ("name", "text")]
PEOPLE_ROWS = [(1, "a"), (2, "b")]


def make_pipeline(source, target, table="t", target_config=None, **kwargs):
    transfer_config = TransferConfig(table=table, **kwargs.pop("transfer", {}))
    return MigrationPipeline(
        source,
        target,
        transfer_config,
        target_config=target_config or TargetConfig(path="unused.db"),
        **kwargs,
    )


def test_end_to_end(target):
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS, primary_key=["id"])
    echoed = []

    result = make_pipeline(source, target, echo=echoed.append).run()

    assert result.ddl == 'CREATE TABLE "t" ( "id" INTEGER, "name" TEXT, PRIMARY KEY (id) )'
    assert result.rows_transferred == 2
    assert result.verified_rows == 2
    assert result.estimated_rows == 2
    assert target.connection.execute('SELECT id, name FROM "t" ORDER BY rowid').fetchall() == PEOPLE_ROWS
    assert any("Will create table" in line for line in echoed)
    assert any(line.startswith('Schema of table "t"') for line in echoed)


def test_json_column_lands_as_text(target):
    columns = [("id", "integer"), ("doc", "jsonb")]
    payload = '{"name": "café", "n": [1, 2.5, true]}'
    source = FakeSource(columns, rows=[(1, payload)])

    result = make_pipeline(source, target, table="docs").run()

    assert 'SELECT "id", "doc"::text FROM "docs"' in source.statements
    assert '"doc" TEXT' in result.ddl
    (stored,) = target.connection.execute('SELECT doc FROM "docs"').fetchone()
    assert stored == payload
    assert stored.encode("utf-8") == payload.encode("utf-8")


def test_missing_source_table_touches_nothing(target):
    source = FakeSource([])
    recording = RecordingTarget(target)

    with pytest.raises(TableNotFound):
        make_pipeline(source, recording).run()

    assert recording.ddl == []
    assert "stream" not in source.calls
    assert not target.table_exists("t")


def test_existing_target_table_is_refused(target):
    target.exec_ddl('CREATE TABLE "t" ( "id" INTEGER )')
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS)

    with pytest.raises(TableAlreadyExists):
        make_pipeline(source, target).run()

    assert source.calls == []


def test_existing_target_table_is_dropped_when_asked(target):
    target.exec_ddl('CREATE TABLE "t" ( "old" INTEGER )')
    target.exec_ddl('INSERT INTO "t" VALUES (99)')
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS)
    recording = RecordingTarget(target)

    result = make_pipeline(
        source, recording, target_config=TargetConfig(path="unused.db", drop_table_if_exists=True)
    ).run()

    assert recording.ddl[0] == 'DROP TABLE IF EXISTS "t"'
    assert result.rows_transferred == 2
    assert target.count("t") == 2


def test_declined_confirmation_cancels(target):
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS)
    prompts = []

    def decline(prompt):
        prompts.append(prompt)
        return False

    with pytest.raises(MigrationCancelled):
        make_pipeline(source, target, confirm=decline).run()

    assert prompts == ["Does this look ok?"]
    assert not target.table_exists("t")


def test_confirm_flag_skips_prompt(target):
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS)

    def fail_prompt(prompt):
        raise AssertionError("prompt should not be shown")

    result = make_pipeline(source, target, confirm=fail_prompt, transfer={"confirm": True}).run()
    assert result.rows_transferred == 2


@pytest.mark.skipif(sqlite3.sqlite_version_info < (3, 37, 0), reason="STRICT tables need SQLite 3.37")
def test_ignored_columns_and_strict_mode(target):
    columns = [("id", "integer"), ("secret", "text"), ("amount", "numeric")]
    source = FakeSource(columns, rows=[(1, 1.5), (2, 2.5)], primary_key=["id"])

    result = make_pipeline(
        source,
        target,
        target_config=TargetConfig(path="unused.db", strict=True),
        transfer={"ignore_columns": "secret"},
    ).run()

    assert result.ddl == 'CREATE TABLE "t" ( "id" INTEGER, "amount" REAL, PRIMARY KEY (id) ) STRICT'
    assert result.ignored_columns == ["secret"]
    assert source.statements == ['SELECT "id", "amount"::double precision FROM "t"']


def test_progress_sink_gets_estimate_and_is_closed(target):
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS, estimate=1000)
    sinks = {}

    def factory(estimate):
        sinks[estimate] = RecordingProgress()
        return sinks[estimate]

    make_pipeline(source, target, progress_factory=factory).run()

    assert list(sinks) == [1000]
    assert sinks[1000].count == 2
    assert sinks[1000].closed


def test_verification_mismatch_surfaces(target):
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS)

    with pytest.raises(VerificationMismatch) as excinfo:
        make_pipeline(source, RecordingTarget(target, count_offset=-1)).run()

    assert excinfo.value.expected == 2
    assert excinfo.value.actual == 1
    # The transfer itself committed
    assert target.count("t") == 2


def test_verification_can_be_skipped(target):
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS)
    result = make_pipeline(source, RecordingTarget(target, count_offset=5), transfer={"verify": False}).run()
    assert result.verified_rows is None
    assert not result.verified


def test_empty_source_leaves_empty_table(target):
    with pytest.raises(EmptySourceError):
        make_pipeline(FakeSource(PEOPLE_COLUMNS), target).run()
    assert target.count("t") == 0


def test_close_releases_both_stores(target):
    source = FakeSource(PEOPLE_COLUMNS, rows=PEOPLE_ROWS)
    recording = RecordingTarget(target)

    with make_pipeline(source, recording):
        pass

    assert source.closed
    assert recording.closed


def test_ignoring_every_column_fails_before_any_ddl(target):
    source = FakeSource([("a", "integer"), ("b", "text")], rows=[(1, "x")])
    recording = RecordingTarget(target)

    with pytest.raises(TransferError) as excinfo:
        make_pipeline(source, recording, transfer={"ignore_columns": "a,b"}).run()

    assert excinfo.value.step == "map columns"
    assert recording.ddl == []
    assert "stream" not in source.calls
