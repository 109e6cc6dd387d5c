"""
Table Transfer - copy one table from PostgreSQL into SQLite

Introspects the source table, maps its column types, creates the target
table and streams the rows across inside a single transaction.
"""

__version__ = "0.1.0"

from .config import SourceConfig, TargetConfig, TransferConfig
from .ddl import build_create_table, build_insert, build_select
from .errors import (
    DatabaseConnectionError,
    EmptySourceError,
    InsertError,
    IntrospectionError,
    MigrationCancelled,
    SourceReadError,
    TableAlreadyExists,
    TableNotFound,
    TransferError,
    TypeMappingError,
    VerificationMismatch,
)
from .models import Column, ForeignKey, MigrationResult, TableSchema, TransferResult
from .pipeline import MigrationPipeline
from .schema import SchemaIntrospector
from .transfer import TransferPipeline
from .types import map_column_type
from .verify import Verifier

__all__ = [
    "MigrationPipeline",
    "TransferPipeline",
    "SchemaIntrospector",
    "Verifier",
    "SourceConfig",
    "TargetConfig",
    "TransferConfig",
    "Column",
    "ForeignKey",
    "TableSchema",
    "TransferResult",
    "MigrationResult",
    "map_column_type",
    "build_create_table",
    "build_select",
    "build_insert",
    "TransferError",
    "DatabaseConnectionError",
    "TableNotFound",
    "TableAlreadyExists",
    "TypeMappingError",
    "IntrospectionError",
    "EmptySourceError",
    "SourceReadError",
    "InsertError",
    "VerificationMismatch",
    "MigrationCancelled",
]
