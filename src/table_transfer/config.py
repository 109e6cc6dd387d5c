"""
Configuration for table transfers
"""

import os
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_BATCH_SIZE = 10000


class SourceConfig(BaseModel):
    """PostgreSQL source configuration"""
    url: str = Field(..., description="Postgres connection string, i.e. postgres://localhost:5432/mydb")
    namespace: Optional[str] = Field(default=None, description="Schema the source table lives in")


class TargetConfig(BaseModel):
    """SQLite target configuration"""
    path: str = Field(..., description="Path to SQLite database file")
    create_if_missing: bool = Field(default=False, description="Create the database file when it doesn't exist")
    strict: bool = Field(default=False, description="Create the table in STRICT typing mode")
    drop_table_if_exists: bool = Field(default=False, description="DANGER: drop the target table if it exists")


class TransferConfig(BaseModel):
    """What to transfer and how"""
    table: str = Field(..., min_length=1, description="Name of table to transfer")
    ignore_columns: List[str] = Field(default_factory=list, description="Columns left out of DDL and data")
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0, description="Capacity of the row channel")
    verify: bool = Field(default=True, description="Compare target row count after transfer")
    confirm: bool = Field(default=False, description="Skip the confirmation prompt")
    with_foreign_keys: bool = Field(default=False, description="Annotate columns with foreign keys")

    @field_validator("ignore_columns", mode="before")
    @classmethod
    def split_ignore_columns(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        return [name.strip() for name in value if name and name.strip()]


def env_default(name: str, default: Optional[str] = None) -> Optional[str]:
    """Read a setting from the environment, treating blank values as unset"""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value
