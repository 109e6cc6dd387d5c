"""
Source to target type mapping
"""

from typing import Dict, Mapping

from .errors import TypeMappingError
from .models import Column

DEFAULT_TYPE_KEY = "__other"

# Keys are data_type values as reported by information_schema.columns
TYPE_MAPPINGS: Dict[str, str] = {
    "integer": "INTEGER",
    "smallint": "INTEGER",
    "bigint": "INTEGER",
    "boolean": "INTEGER",
    "numeric": "REAL",
    "real": "REAL",
    "double precision": "REAL",
    "date": "TEXT",
    "array": "TEXT",
    "ARRAY": "TEXT",
    "character": "TEXT",
    "character varying": "TEXT",
    "text": "TEXT",
    "timestamp with time zone": "TEXT",
    "bytea": "BLOB",
    DEFAULT_TYPE_KEY: "TEXT",
}

TEXT_CAST = "{column}::text"

# Types the driver would hand over as composite or non-SQLite values are
# serialized at the source so the target receives plain scalars
CAST_EXPRESSIONS: Dict[str, str] = {
    "json": TEXT_CAST,
    "jsonb": TEXT_CAST,
    "ARRAY": "array_to_json({column})::text",
    "USER-DEFINED": TEXT_CAST,
    "uuid": TEXT_CAST,
    "interval": TEXT_CAST,
    "inet": TEXT_CAST,
    "cidr": TEXT_CAST,
    "macaddr": TEXT_CAST,
    "xml": TEXT_CAST,
    "date": TEXT_CAST,
    "time without time zone": TEXT_CAST,
    "time with time zone": TEXT_CAST,
    "timestamp without time zone": TEXT_CAST,
    "timestamp with time zone": TEXT_CAST,
    "int4range": TEXT_CAST,
    "int8range": TEXT_CAST,
    "numrange": TEXT_CAST,
    "tsrange": TEXT_CAST,
    "tstzrange": TEXT_CAST,
    "daterange": TEXT_CAST,
    "int4multirange": TEXT_CAST,
    "int8multirange": TEXT_CAST,
    "nummultirange": TEXT_CAST,
    "tsmultirange": TEXT_CAST,
    "tstzmultirange": TEXT_CAST,
    "datemultirange": TEXT_CAST,
    "numeric": "{column}::double precision",
    "money": "{column}::numeric::double precision",
}


def map_column_type(source_type: str, mappings: Mapping[str, str] = TYPE_MAPPINGS) -> str:
    """Map a source type name to a target type name"""
    target_type = mappings.get(source_type)
    if target_type is not None:
        return target_type

    target_type = mappings.get(DEFAULT_TYPE_KEY)
    if target_type is None:
        raise TypeMappingError(source_type)
    return target_type


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def cast_expression(column: Column, casts: Mapping[str, str] = CAST_EXPRESSIONS) -> str:
    """Projection item for a column in the source SELECT"""
    quoted = quote_identifier(column.name)
    template = casts.get(column.source_type)
    if template is None:
        return quoted
    return template.format(column=quoted)
