"""
Source schema introspection
"""

from typing import Callable, Iterable, Optional, TypeVar

import structlog

from .errors import IntrospectionError, TableNotFound, TransferError
from .models import TableSchema, build_columns
from .stores import SourceCatalog

logger = structlog.get_logger()

T = TypeVar("T")


class SchemaIntrospector:
    """Reads a table's columns and constraints from the source catalog"""

    def __init__(self, source: SourceCatalog):
        self.source = source

    def fetch(
        self,
        table: str,
        ignored_columns: Iterable[str] = (),
        namespace: Optional[str] = None,
        with_foreign_keys: bool = False,
    ) -> TableSchema:
        """Build the TableSchema for ``table``.

        Raises TableNotFound when the catalog reports no columns, and
        IntrospectionError naming the failed step for any catalog failure.
        """
        ignored = set(ignored_columns)

        catalog_columns = self._step("columns", table, lambda: self.source.columns(table, namespace))
        if not catalog_columns:
            raise TableNotFound(table)

        primary_key = self._step("primary key", table, lambda: self.source.primary_key(table, namespace))

        foreign_keys = {}
        if with_foreign_keys:
            foreign_keys = self._step("foreign keys", table, lambda: self.source.foreign_keys(table, namespace))

        columns = build_columns(catalog_columns, ignored, primary_key, foreign_keys)

        unknown = ignored - {col.name for col in columns}
        if unknown:
            logger.warning("Ignored columns not found in source table", table=table, columns=sorted(unknown))

        if not primary_key:
            logger.info("Source table has no primary key", table=table)

        schema = TableSchema(name=table, columns=columns, namespace=namespace, key_order=tuple(primary_key))

        logger.info(
            "Schema discovered",
            table=table,
            columns=len(schema.columns),
            ignored=len(schema.columns) - len(schema.transfer_columns),
            primary_key=schema.primary_key,
        )
        return schema

    def _step(self, step: str, table: str, query: Callable[[], T]) -> T:
        try:
            return query()
        except TransferError:
            raise
        except Exception as e:
            logger.error("Catalog query failed", table=table, step=step, error=str(e))
            raise IntrospectionError(f"Unable to fetch {step} from source table: {e}", table=table, step=step) from e
