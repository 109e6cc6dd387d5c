"""
Data models for table transfers
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Tuple

Row = Tuple[Any, ...]


@dataclass(frozen=True)
class ForeignKey:
    """Referenced table and column, informational only"""
    table: str
    column: str


@dataclass(frozen=True)
class Column:
    """One source table column; ``target_type`` is only set on mapped views"""
    name: str
    source_type: str
    ignored: bool = False
    is_primary_key: bool = False
    foreign_key: Optional[ForeignKey] = None
    target_type: Optional[str] = None


@dataclass(frozen=True)
class TableSchema:
    """A table as introspected from the source.

    Column order is the source ordinal position. The same order is used for
    the generated DDL, the SELECT projection and the INSERT placeholders, so
    a row's values line up with ``transfer_columns`` by position.
    """
    name: str
    columns: Tuple[Column, ...]
    namespace: Optional[str] = None
    key_order: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.columns:
            raise ValueError(f"Table {self.name} must have at least one column")
        # Accept lists from callers but always store tuples
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "key_order", tuple(self.key_order))

        names = [col.name for col in self.columns]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate column names in table {self.name}")

    @property
    def transfer_columns(self) -> Tuple[Column, ...]:
        return tuple(col for col in self.columns if not col.ignored)

    @property
    def primary_key(self) -> List[str]:
        """Primary key columns in constraint order, ignored columns excluded"""
        keyed = {col.name for col in self.columns if col.is_primary_key and not col.ignored}
        ordered = [name for name in self.key_order if name in keyed]
        ordered += [col.name for col in self.columns if col.name in keyed and col.name not in ordered]
        return ordered

    def with_types(self, types: Dict[str, str]) -> "TableSchema":
        """New view with ignored columns dropped and target types filled in"""
        columns = tuple(
            replace(col, target_type=types[col.name])
            for col in self.transfer_columns
        )
        return TableSchema(
            name=self.name,
            columns=columns,
            namespace=self.namespace,
            key_order=self.key_order,
        )

    def column(self, name: str) -> Column:
        for col in self.columns:
            if col.name == name:
                return col
        raise KeyError(name)


def build_columns(
    rows: Iterable[Tuple[str, str]],
    ignored: Iterable[str] = (),
    primary_key: Iterable[str] = (),
    foreign_keys: Optional[Dict[str, ForeignKey]] = None,
) -> Tuple[Column, ...]:
    """Build columns from catalog ``(name, type)`` tuples"""
    ignored = set(ignored)
    primary_key = set(primary_key)
    foreign_keys = foreign_keys or {}
    return tuple(
        Column(
            name=name,
            source_type=data_type,
            ignored=name in ignored,
            is_primary_key=name in primary_key,
            foreign_key=foreign_keys.get(name),
        )
        for name, data_type in rows
    )


@dataclass
class TransferResult:
    """Outcome of streaming rows into the target"""
    table_name: str
    rows_transferred: int
    elapsed_seconds: float


@dataclass
class MigrationResult:
    """Outcome of a complete table migration"""
    table_name: str
    ddl: str
    estimated_rows: int
    rows_transferred: int
    elapsed_seconds: float
    verified_rows: Optional[int] = None
    ignored_columns: List[str] = field(default_factory=list)

    @property
    def verified(self) -> bool:
        return self.verified_rows is not None
