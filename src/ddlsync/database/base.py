"""
Collaborator interfaces used by the schema reconciler.

The reconciler never talks to a driver directly: it asks a SchemaInspector
about the live schema and hands rendered statements to a StatementExecutor.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .introspection import ColumnInfo


class SchemaInspector(ABC):
    """Reports the live state of the database schema."""

    @abstractmethod
    async def table_exists(self, table: str) -> bool:
        """
        Check whether a table exists.

        Raises:
            DatabaseError: If the check cannot be performed
        """
        pass

    @abstractmethod
    async def describe_columns(self, table: str) -> List["ColumnInfo"]:
        """
        Describe the columns of an existing table, in table order.

        Must reflect the live state at call time; results are never cached.

        Raises:
            SchemaError: If the table cannot be described
        """
        pass


class StatementExecutor(ABC):
    """Executes literal DDL statements."""

    @abstractmethod
    async def execute(self, sql: str) -> None:
        """
        Execute a single statement.

        Raises:
            DatabaseError: If the statement fails
        """
        pass
