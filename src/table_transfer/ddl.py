"""
Statement builders for the target table
"""

import re
from typing import Mapping

from .errors import TransferError, TypeMappingError
from .models import TableSchema
from .types import TYPE_MAPPINGS, cast_expression, map_column_type, quote_identifier

PLAIN_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

SQL_KEYWORDS = frozenset({
    "abort", "action", "add", "all", "alter", "and", "as", "asc", "between", "by",
    "case", "cast", "check", "collate", "column", "commit", "constraint", "create",
    "cross", "current_date", "current_time", "current_timestamp", "default", "delete",
    "desc", "distinct", "drop", "else", "end", "escape", "except", "exists", "foreign",
    "from", "full", "group", "having", "in", "index", "inner", "insert", "intersect",
    "into", "is", "join", "key", "left", "like", "limit", "natural", "not", "null",
    "offset", "on", "or", "order", "outer", "primary", "references", "right",
    "rollback", "select", "set", "table", "then", "to", "transaction", "union",
    "unique", "update", "user", "using", "values", "when", "where", "with",
})


def key_identifier(name: str) -> str:
    """Bare name when it is safe unquoted, otherwise a quoted identifier"""
    if PLAIN_IDENTIFIER.match(name) and name not in SQL_KEYWORDS:
        return name
    return quote_identifier(name)


def map_schema(schema: TableSchema, mappings: Mapping[str, str] = TYPE_MAPPINGS) -> TableSchema:
    """Target view of ``schema``: ignored columns dropped, types mapped"""
    if not schema.transfer_columns:
        raise TransferError("All columns are ignored, nothing to transfer", table=schema.name, step="map columns")

    types = {}
    for col in schema.transfer_columns:
        try:
            types[col.name] = map_column_type(col.source_type, mappings)
        except TypeMappingError as e:
            e.table = schema.name
            e.step = f"map column {col.name}"
            raise
    return schema.with_types(types)


def build_create_table(schema: TableSchema, strict: bool = False, mappings: Mapping[str, str] = TYPE_MAPPINGS) -> str:
    """Render the CREATE TABLE statement for the target"""
    target = map_schema(schema, mappings)

    definitions = [f"{quote_identifier(col.name)} {col.target_type}" for col in target.columns]
    if target.primary_key:
        keys = ", ".join(key_identifier(name) for name in target.primary_key)
        definitions.append(f"PRIMARY KEY ({keys})")

    statement = f"CREATE TABLE {quote_identifier(schema.name)} ( {', '.join(definitions)} )"
    if strict:
        statement += " STRICT"
    return statement


def build_drop_table(table: str) -> str:
    return f"DROP TABLE IF EXISTS {quote_identifier(table)}"


def build_select(schema: TableSchema) -> str:
    """SELECT over the transferred columns, casting types the target can't take as-is"""
    projection = ", ".join(cast_expression(col) for col in schema.transfer_columns)
    source = quote_identifier(schema.name)
    if schema.namespace:
        source = f"{quote_identifier(schema.namespace)}.{source}"
    return f"SELECT {projection} FROM {source}"


def build_insert(schema: TableSchema) -> str:
    columns = schema.transfer_columns
    names = ", ".join(quote_identifier(col.name) for col in columns)
    placeholders = ", ".join("?" for _ in columns)
    return f"INSERT INTO {quote_identifier(schema.name)} ({names}) VALUES ({placeholders})"


def format_schema(schema: TableSchema) -> str:
    """Human readable listing of the source schema"""
    rows = []
    for col in schema.columns:
        notes = []
        if col.is_primary_key:
            notes.append("primary key")
        if col.foreign_key:
            notes.append(f"references {col.foreign_key.table}({col.foreign_key.column})")
        if col.ignored:
            notes.append("ignored")
        rows.append((col.name, col.source_type, ", ".join(notes)))

    name_width = max(len("Column"), *(len(r[0]) for r in rows))
    type_width = max(len("Type"), *(len(r[1]) for r in rows))

    lines = [f'Schema of table "{schema.name}"']
    lines.append(f"{'Column':<{name_width}} | {'Type':<{type_width}} | Notes")
    lines.append(f"{'-' * name_width} | {'-' * type_width} | -----")
    for name, data_type, notes in rows:
        lines.append(f"{name:<{name_width}} | {data_type:<{type_width}} | {notes}".rstrip())
    return "\n".join(lines)
