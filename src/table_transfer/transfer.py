"""
Streaming row transfer from source to target

One producer thread reads rows from the source and puts them on a bounded
queue, one consumer thread inserts them into the target inside a single
transaction. The transaction is committed only after the queue is drained
and the producer finished cleanly. A failure on either side cancels the
other and rolls the transaction back.
"""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Optional

import structlog

from .config import DEFAULT_BATCH_SIZE
from .ddl import build_insert, build_select
from .errors import EmptySourceError, InsertError, SourceReadError, TransferError
from .models import TableSchema, TransferResult
from .stores import NullProgress, ProgressSink, SourceCatalog, TargetStore

logger = structlog.get_logger()


class _EndOfStream:
    """Last item on the channel, tells the consumer whether production failed"""

    def __init__(self, failed: bool):
        self.failed = failed


class _TransferRun:
    """State shared by the producer and consumer of one run"""

    def __init__(self, capacity: int):
        self.channel: queue.Queue = queue.Queue(maxsize=capacity)
        self.cancel_event = threading.Event()
        self.error: Optional[BaseException] = None
        self._error_lock = threading.Lock()

    def fail(self, error: BaseException) -> None:
        """Record the first error and stop the other side"""
        with self._error_lock:
            if self.error is None:
                self.error = error
        self.cancel_event.set()


class TransferPipeline:
    """Copies all rows of a table from source to target"""

    def __init__(
        self,
        source: SourceCatalog,
        target: TargetStore,
        capacity: int = DEFAULT_BATCH_SIZE,
        progress: Optional[ProgressSink] = None,
        poll_interval: float = 0.5,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.source = source
        self.target = target
        self.capacity = capacity
        self.progress = progress or NullProgress()
        self.poll_interval = poll_interval

    def run(self, schema: TableSchema) -> TransferResult:
        """Transfer every row of ``schema``, returning the number inserted"""
        select_statement = build_select(schema)
        insert_statement = build_insert(schema)
        run = _TransferRun(self.capacity)
        start_time = time.monotonic()

        logger.info("Starting transfer", table=schema.name, capacity=self.capacity)
        logger.debug("Transfer statements", select=select_statement, insert=insert_statement)

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="transfer") as executor:
            producer = executor.submit(self._produce, run, schema, select_statement)
            consumer = executor.submit(self._consume, run, schema, insert_statement)
            try:
                # A failing side cancels the other, both still release their
                # cursor or transaction before returning
                wait([producer, consumer])
            except BaseException:
                run.cancel_event.set()
                raise

        elapsed = time.monotonic() - start_time

        error = run.error or producer.exception() or consumer.exception()
        if error is not None:
            logger.error("Transfer failed", table=schema.name, error=str(error))
            raise error

        rows = consumer.result()
        logger.info("Transfer completed", table=schema.name, rows=rows, time_seconds=round(elapsed, 3))
        return TransferResult(table_name=schema.name, rows_transferred=rows, elapsed_seconds=elapsed)

    def _put(self, run: _TransferRun, item: Any) -> bool:
        """Blocking put that gives up once the run is cancelled"""
        while not run.cancel_event.is_set():
            try:
                run.channel.put(item, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def _get(self, run: _TransferRun) -> Any:
        """Blocking get that raises once the run is cancelled"""
        while not run.cancel_event.is_set():
            try:
                return run.channel.get(timeout=self.poll_interval)
            except queue.Empty:
                continue
        raise TransferError("Transfer cancelled", step="transfer")

    def _produce(self, run: _TransferRun, schema: TableSchema, statement: str) -> int:
        produced = 0
        failed = False
        rows = None
        try:
            rows = iter(self.source.stream(statement))
            for row in rows:
                if not self._put(run, row):
                    logger.debug("Producer cancelled", table=schema.name, rows=produced)
                    break
                produced += 1
        except Exception as e:
            failed = True
            error = SourceReadError(f"Error while loading data: {e}", table=schema.name, step="read source")
            run.fail(error)
            raise error from e
        finally:
            try:
                close = getattr(rows, "close", None)
                if close is not None:
                    close()
            finally:
                self._put(run, _EndOfStream(failed))

        return produced

    def _consume(self, run: _TransferRun, schema: TableSchema, statement: str) -> int:
        try:
            return self._insert_all(run, schema, statement)
        except BaseException as e:
            run.fail(e)
            raise

    def _insert_all(self, run: _TransferRun, schema: TableSchema, statement: str) -> int:
        try:
            tx = self.target.begin()
        except Exception as e:
            raise TransferError(f"Unable to begin target transaction: {e}", table=schema.name, step="begin") from e

        inserted = 0
        try:
            while True:
                item = self._get(run)
                if isinstance(item, _EndOfStream):
                    end = item
                    break

                row_number = inserted + 1
                try:
                    affected = self.target.insert(tx, statement, item)
                except Exception as e:
                    raise InsertError(f"Error inserting a row: {e}", schema.name, row_number) from e
                if affected != 1:
                    raise InsertError(
                        f"Insert affected {affected} rows instead of 1", schema.name, row_number
                    )

                inserted += 1
                self.progress.increment()
        except BaseException:
            self.target.rollback(tx)
            logger.warning("Rolled back target transaction", table=schema.name, rows=inserted)
            raise

        if end.failed:
            # The producer already reported the read error
            self.target.rollback(tx)
            logger.warning("Rolled back target transaction after source failure", table=schema.name, rows=inserted)
            return inserted

        if inserted == 0:
            self.target.rollback(tx)
            raise EmptySourceError(schema.name)

        try:
            self.target.commit(tx)
        except Exception as e:
            self.target.rollback(tx)
            raise TransferError(f"Unable to commit transferred rows: {e}", table=schema.name, step="commit") from e

        return inserted
