"""
Database schema introspection for ddlsync.

Provides utilities for examining MySQL table definitions through
``SHOW TABLES`` and ``DESCRIBE``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .base import SchemaInspector
from .connection import ConnectionPool
from ..exceptions import DatabaseError, SchemaError


logger = logging.getLogger(__name__)


@dataclass
class ColumnInfo:
    """A live column as reported by ``DESCRIBE``."""

    name: str
    data_type: str
    is_nullable: bool = True
    key: str = ""
    default_value: Optional[str] = None
    extra: str = ""

    @classmethod
    def from_describe_row(cls, row: Mapping[str, Any]) -> "ColumnInfo":
        """Build from a ``DESCRIBE`` row (Field, Type, Null, Key, Default, Extra)."""
        data_type = row["Type"]
        if isinstance(data_type, bytes):
            data_type = data_type.decode("utf-8")
        return cls(
            name=row["Field"],
            data_type=data_type,
            is_nullable=row.get("Null") == "YES",
            key=row.get("Key") or "",
            default_value=row.get("Default"),
            extra=row.get("Extra") or "",
        )

    @property
    def is_primary_key(self) -> bool:
        return self.key == "PRI"

    @property
    def is_auto_increment(self) -> bool:
        return "auto_increment" in self.extra.lower()

    def __str__(self) -> str:
        result = f"{self.name} {self.data_type}"
        if not self.is_nullable:
            result += " NOT NULL"
        if self.default_value is not None:
            result += f" DEFAULT {self.default_value}"
        if self.extra:
            result += f" {self.extra}"
        return result


@dataclass
class TableInfo:
    """Information about a live table."""

    name: str
    columns: Dict[str, ColumnInfo] = field(default_factory=dict)

    @property
    def primary_key(self) -> List[str]:
        return [name for name, col in self.columns.items() if col.is_primary_key]

    def has_column(self, column_name: str) -> bool:
        """Check if table has a specific column."""
        return column_name in self.columns

    def get_column(self, column_name: str) -> Optional[ColumnInfo]:
        """Get column information by name."""
        return self.columns.get(column_name)


class MySQLIntrospector(SchemaInspector):
    """Schema inspector backed by a live MySQL connection pool."""

    def __init__(self, pool: ConnectionPool):
        self.pool = pool

    async def table_exists(self, table: str) -> bool:
        """Check if a table exists in the current database."""
        query = "SHOW TABLES LIKE %s"

        try:
            result = await self.pool.fetchval(query, _escape_like(table))
            return result is not None
        except Exception as e:
            logger.error(f"Error checking table existence for {table}: {e}")
            raise DatabaseError(
                f"Failed to check table existence: {e}", details={"table": table}
            ) from e

    async def describe_columns(self, table: str) -> List[ColumnInfo]:
        """Describe all columns of a table, in table order."""
        query = f"DESCRIBE {quote_identifier(table)}"

        try:
            rows = await self.pool.fetch(query)
        except Exception as e:
            logger.error(f"Error describing {table}: {e}")
            raise SchemaError(
                f"Failed to describe table: {e}", details={"table": table}
            ) from e

        return [ColumnInfo.from_describe_row(row) for row in rows]

    async def get_table_info(self, table: str) -> Optional[TableInfo]:
        """Get complete information about a table, or None if it doesn't exist."""
        if not await self.table_exists(table):
            return None
        columns = await self.describe_columns(table)
        return TableInfo(name=table, columns={col.name: col for col in columns})

    async def list_tables(self) -> List[str]:
        """List all tables in the current database."""
        try:
            rows = await self.pool.fetch("SHOW TABLES")
        except Exception as e:
            logger.error(f"Error listing tables: {e}")
            raise DatabaseError(f"Failed to list tables: {e}") from e
        # SHOW TABLES names its single column "Tables_in_<db>"
        return [next(iter(row.values())) for row in rows]


def quote_identifier(name: str) -> str:
    """Quote a MySQL identifier with backticks."""
    return "`" + name.replace("`", "``") + "`"


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
