"""
Database integration package for ddlsync.

This package provides:
- Async MySQL connection pooling
- Table existence checks and column descriptions
- The collaborator interfaces the reconciler depends on
"""

from .base import SchemaInspector, StatementExecutor
from .connection import ConnectionConfig, ConnectionPool
from .introspection import ColumnInfo, MySQLIntrospector, TableInfo

__all__ = [
    "SchemaInspector",
    "StatementExecutor",
    "ConnectionConfig",
    "ConnectionPool",
    "ColumnInfo",
    "MySQLIntrospector",
    "TableInfo",
]
