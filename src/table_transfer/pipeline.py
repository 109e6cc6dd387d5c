"""
Table migration pipeline - main orchestration
"""

import time
from typing import Callable, Optional

import structlog

from .config import SourceConfig, TargetConfig, TransferConfig
from .ddl import build_create_table, build_drop_table, format_schema
from .errors import IntrospectionError, MigrationCancelled, TableAlreadyExists, TransferError
from .models import MigrationResult
from .schema import SchemaIntrospector
from .stores import NullProgress, PostgresSource, ProgressSink, SourceCatalog, SQLiteTarget, TargetStore
from .transfer import TransferPipeline
from .verify import Verifier

logger = structlog.get_logger()


def _no_output(message: str) -> None:
    pass


class MigrationPipeline:
    """Copies one table's schema and rows from source to target"""

    def __init__(
        self,
        source: SourceCatalog,
        target: TargetStore,
        transfer_config: TransferConfig,
        target_config: Optional[TargetConfig] = None,
        namespace: Optional[str] = None,
        confirm: Optional[Callable[[str], bool]] = None,
        progress_factory: Optional[Callable[[int], ProgressSink]] = None,
        echo: Callable[[str], None] = _no_output,
    ):
        self.source = source
        self.target = target
        self.transfer_config = transfer_config
        self.target_config = target_config or TargetConfig(path=":memory:")
        self.namespace = namespace
        self.confirm = confirm
        self.progress_factory = progress_factory or (lambda estimate: NullProgress())
        self.echo = echo

        self.introspector = SchemaIntrospector(source)
        self.verifier = Verifier(target)

    @classmethod
    def connect(
        cls,
        source_config: SourceConfig,
        target_config: TargetConfig,
        transfer_config: TransferConfig,
        **kwargs,
    ) -> "MigrationPipeline":
        """Open both stores; either failing aborts before anything is touched"""
        source = PostgresSource.connect(source_config.url, itersize=transfer_config.batch_size)
        try:
            target = SQLiteTarget.connect(target_config.path, create_if_missing=target_config.create_if_missing)
        except TransferError:
            source.close()
            raise
        return cls(
            source,
            target,
            transfer_config,
            target_config=target_config,
            namespace=source_config.namespace,
            **kwargs,
        )

    def __enter__(self) -> "MigrationPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.source.close()
        self.target.close()

    def run(self) -> MigrationResult:
        """Run the complete migration"""
        table = self.transfer_config.table
        start_time = time.monotonic()

        logger.info("Starting table migration", table=table)

        try:
            self._check_target(table)

            schema = self.introspector.fetch(
                table,
                ignored_columns=self.transfer_config.ignore_columns,
                namespace=self.namespace,
                with_foreign_keys=self.transfer_config.with_foreign_keys,
            )
            self.echo(format_schema(schema))

            ddl = build_create_table(schema, strict=self.target_config.strict)
            self.echo(f"Will create table with the following statement:\n{ddl}\n")

            if not self.transfer_config.confirm and self.confirm is not None:
                if not self.confirm("Does this look ok?"):
                    raise MigrationCancelled(table)

            self._create_table(table, ddl)

            estimate = self._estimate_rows(table)
            self.echo(f"Estimated row count: {estimate}")

            progress = self.progress_factory(estimate)
            try:
                transfer = TransferPipeline(
                    self.source,
                    self.target,
                    capacity=self.transfer_config.batch_size,
                    progress=progress,
                ).run(schema)
            finally:
                close = getattr(progress, "close", None)
                if close is not None:
                    close()

            verified_rows = None
            if self.transfer_config.verify:
                verified_rows = self.verifier.reconcile(table, transfer.rows_transferred)

        except TransferError as e:
            logger.error("Table migration failed", table=table, error=str(e))
            raise

        elapsed = time.monotonic() - start_time
        logger.info("Table migration completed", table=table, rows=transfer.rows_transferred, time_seconds=round(elapsed, 3))

        return MigrationResult(
            table_name=table,
            ddl=ddl,
            estimated_rows=estimate,
            rows_transferred=transfer.rows_transferred,
            elapsed_seconds=elapsed,
            verified_rows=verified_rows,
            ignored_columns=[col.name for col in schema.columns if col.ignored],
        )

    def _check_target(self, table: str) -> None:
        try:
            exists = self.target.table_exists(table)
        except Exception as e:
            raise TransferError(f"Unable to inspect target: {e}", table=table, step="validate target") from e

        if exists and not self.target_config.drop_table_if_exists:
            raise TableAlreadyExists(table)

    def _create_table(self, table: str, ddl: str) -> None:
        if self.target_config.drop_table_if_exists:
            try:
                self.target.exec_ddl(build_drop_table(table))
            except Exception as e:
                raise TransferError(f"Unable to drop target table: {e}", table=table, step="drop table") from e
            logger.warning("Dropped target table", table=table)

        try:
            self.target.exec_ddl(ddl)
        except Exception as e:
            raise TransferError(f"Unable to create target table: {e}", table=table, step="create table") from e
        logger.info("Created target table", table=table)

    def _estimate_rows(self, table: str) -> int:
        try:
            return self.source.row_estimate(table, self.namespace)
        except Exception as e:
            raise IntrospectionError(f"Unable to estimate rows: {e}", table=table, step="row estimate") from e
