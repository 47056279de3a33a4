"""
Pytest configuration and shared fixtures for ddlsync tests.

This module provides an in-memory fake database that implements both the
schema inspector and the statement executor, plus sample models and
configuration files.
"""

import os
import re
import tempfile
from typing import Any, Dict, List, Optional

import pytest
import yaml

from ddlsync.database.base import SchemaInspector, StatementExecutor
from ddlsync.database.introspection import ColumnInfo
from ddlsync.exceptions import DatabaseError, SchemaError
from ddlsync.schema.model import FieldDescriptor, FieldKind, ModelRegistry, ModelSchema


# ============================================================================
# Fake database
# ============================================================================

_CREATE = re.compile(
    r"CREATE TABLE IF NOT EXISTS `(\w+)` \(`(\w+)` (.+?) NOT NULL PRIMARY KEY"
)
_FOREIGN_KEY = re.compile(r"ALTER TABLE `(\w+)` ADD FOREIGN KEY `(\w+)`")
_ALTER = re.compile(r"ALTER TABLE `(\w+)` (.+)$")
_COLUMN_ACTION = re.compile(r"(ADD|MODIFY) `(\w+)` (.+)$|DROP `(\w+)`$")


class FakeDatabase(SchemaInspector, StatementExecutor):
    """In-memory MySQL stand-in that applies the DDL it is given."""

    def __init__(self, tables: Optional[Dict[str, Dict[str, str]]] = None):
        self.tables: Dict[str, Dict[str, str]] = {
            name: dict(columns) for name, columns in (tables or {}).items()
        }
        self.executed: List[str] = []
        self.foreign_keys: List[str] = []
        self.describe_calls: List[str] = []
        self.fail_on: Optional[str] = None

    async def table_exists(self, table: str) -> bool:
        return table in self.tables

    async def describe_columns(self, table: str) -> List[ColumnInfo]:
        self.describe_calls.append(table)
        if table not in self.tables:
            raise SchemaError("Failed to describe table", details={"table": table})
        columns = list(self.tables[table].items())
        return [
            ColumnInfo(name=name, data_type=data_type, key="PRI" if i == 0 else "")
            for i, (name, data_type) in enumerate(columns)
        ]

    async def execute(self, sql: str) -> None:
        if self.fail_on and self.fail_on in sql:
            raise DatabaseError("Statement failed", details={"sql": sql})
        self.executed.append(sql)
        self._apply(sql)

    def _apply(self, sql: str) -> None:
        match = _CREATE.match(sql)
        if match:
            table, column, data_type = match.groups()
            self.tables.setdefault(table, {column: data_type})
            return

        match = _FOREIGN_KEY.match(sql)
        if match:
            self.foreign_keys.append(match.group(2))
            return

        match = _ALTER.match(sql)
        table, content = match.groups()
        columns = self.tables[table]
        for part in re.split(r", (?=ADD|MODIFY|DROP)", content):
            action = _COLUMN_ACTION.match(part)
            if action.group(4):
                del columns[action.group(4)]
            else:
                columns[action.group(2)] = action.group(3)


@pytest.fixture
def fake_db() -> FakeDatabase:
    """Empty fake database."""
    return FakeDatabase()


# ============================================================================
# Sample models
# ============================================================================

@pytest.fixture
def users_model() -> ModelSchema:
    """The users table: integer id plus a 50 character name."""
    return ModelSchema(
        name="user",
        table="users",
        fields=(
            FieldDescriptor("id", FieldKind.INT),
            FieldDescriptor("name", FieldKind.STRING, {"length": 50}),
        ),
    )


@pytest.fixture
def orders_model(users_model) -> ModelSchema:
    """The orders table referencing users by name."""
    return ModelSchema(
        name="order",
        table="orders",
        fields=(
            FieldDescriptor("id", FieldKind.INT),
            FieldDescriptor("user_id", FieldKind.REFERENCE, references="user"),
            FieldDescriptor("total", FieldKind.MONEY),
        ),
    )


@pytest.fixture
def registry(users_model, orders_model) -> ModelRegistry:
    return ModelRegistry([users_model, orders_model])


# ============================================================================
# Configuration fixtures
# ============================================================================

@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Complete ddlsync configuration for testing."""
    return {
        "service_name": "ddlsync-test",
        "database": {
            "host": "localhost",
            "port": 3306,
            "database": "test_db",
            "user": "test_user",
            "password": "test_password",
        },
        "schema_management": {
            "engine": "InnoDB",
            "drop_policy": "manual",
        },
        "models": [
            {
                "name": "user",
                "table": "users",
                "fields": [
                    {"name": "id", "type": "int"},
                    {"name": "name", "type": "string", "length": 50},
                ],
            },
            {
                "name": "order",
                "table": "orders",
                "fields": [
                    {"name": "id", "type": "int"},
                    {"name": "user_id", "type": "reference", "references": "user"},
                    {"name": "total", "type": "money"},
                ],
            },
        ],
    }


@pytest.fixture
def temp_config_file(sample_config_data) -> str:
    """Temporary configuration file for testing."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(sample_config_data, f)
    yield f.name
    os.unlink(f.name)
