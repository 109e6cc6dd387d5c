"""
Error hierarchy for table transfers
"""

from typing import Optional


class TransferError(Exception):
    """Base class for all table transfer failures"""

    def __init__(self, message: str, table: Optional[str] = None, step: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.table = table
        self.step = step

    def __str__(self) -> str:
        parts = []
        if self.table:
            parts.append(f"table {self.table}")
        if self.step:
            parts.append(f"step {self.step}")
        if not parts:
            return self.message
        return f"{self.message} ({', '.join(parts)})"


class DatabaseConnectionError(TransferError):
    """Raised when the source or target store cannot be reached"""

    def __init__(self, message: str, store: str):
        super().__init__(message, step=f"connect {store}")
        self.store = store


class TableNotFound(TransferError):
    """Raised when the source table does not exist or has no columns"""

    def __init__(self, table: str):
        super().__init__("Source table doesn't exist or has no columns", table=table, step="introspect")


class TableAlreadyExists(TransferError):
    """Raised when the target table exists and dropping it was not requested"""

    def __init__(self, table: str):
        super().__init__(
            "Target table already exists, use --drop-table-if-exists to replace it",
            table=table,
            step="validate target",
        )


class TypeMappingError(TransferError):
    """Raised when a type cannot be mapped, not even to the default entry"""

    def __init__(self, source_type: str):
        super().__init__(f"Type {source_type!r} could not be mapped and no default mapping exists")
        self.source_type = source_type


class IntrospectionError(TransferError):
    """Raised when a catalog query fails while reading the source schema"""


class EmptySourceError(TransferError):
    """Raised when the source query yields no rows"""

    def __init__(self, table: str):
        super().__init__("No rows in source table found", table=table, step="transfer")


class SourceReadError(TransferError):
    """Raised when streaming rows from the source fails mid-transfer"""


class InsertError(TransferError):
    """Raised when a row cannot be inserted into the target"""

    def __init__(self, message: str, table: str, row_number: int):
        super().__init__(message, table=table, step=f"insert row {row_number}")
        self.row_number = row_number


class VerificationMismatch(TransferError):
    """Raised when the target row count differs from the transferred count"""

    def __init__(self, table: str, expected: int, actual: int):
        super().__init__(
            f"Verification failed: transferred {expected} rows but target contains {actual}",
            table=table,
            step="verify",
        )
        self.expected = expected
        self.actual = actual


class MigrationCancelled(TransferError):
    """Raised when the operator declines the generated DDL"""

    def __init__(self, table: str):
        super().__init__("Cancelled", table=table, step="confirm")
