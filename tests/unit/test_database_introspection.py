"""
Tests for ddlsync.database.introspection module.

Tests the ColumnInfo and TableInfo dataclasses and the MySQLIntrospector
class against a mocked connection pool.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from ddlsync.database.base import SchemaInspector
from ddlsync.database.connection import ConnectionPool
from ddlsync.database.introspection import (
    ColumnInfo,
    MySQLIntrospector,
    TableInfo,
    quote_identifier,
)
from ddlsync.exceptions import DatabaseError, SchemaError


DESCRIBE_USERS = [
    {"Field": "id", "Type": "int(11)", "Null": "NO", "Key": "PRI",
     "Default": None, "Extra": "auto_increment"},
    {"Field": "name", "Type": b"varchar(50)", "Null": "YES", "Key": "",
     "Default": None, "Extra": ""},
    {"Field": "status", "Type": "varchar(10)", "Null": "NO", "Key": "",
     "Default": "new", "Extra": ""},
]


@pytest.fixture
def mock_pool():
    pool = MagicMock(spec=ConnectionPool)
    pool.fetchval = AsyncMock()
    pool.fetch = AsyncMock()
    return pool


@pytest.fixture
def introspector(mock_pool):
    return MySQLIntrospector(mock_pool)


class TestColumnInfo:
    """Test ColumnInfo dataclass."""

    def test_from_describe_row(self):
        col = ColumnInfo.from_describe_row(DESCRIBE_USERS[0])

        assert col.name == "id"
        assert col.data_type == "int(11)"
        assert col.is_nullable is False
        assert col.is_primary_key
        assert col.is_auto_increment

    def test_from_describe_row_bytes_type(self):
        col = ColumnInfo.from_describe_row(DESCRIBE_USERS[1])

        assert col.data_type == "varchar(50)"
        assert col.is_nullable is True
        assert not col.is_primary_key

    def test_str(self):
        assert str(ColumnInfo.from_describe_row(DESCRIBE_USERS[0])) == (
            "id int(11) NOT NULL auto_increment"
        )
        assert str(ColumnInfo.from_describe_row(DESCRIBE_USERS[2])) == (
            "status varchar(10) NOT NULL DEFAULT new"
        )


class TestTableInfo:
    """Test TableInfo dataclass."""

    def test_table_info(self):
        columns = [ColumnInfo.from_describe_row(row) for row in DESCRIBE_USERS]
        table = TableInfo(name="users", columns={c.name: c for c in columns})

        assert table.primary_key == ["id"]
        assert table.has_column("name")
        assert not table.has_column("email")
        assert table.get_column("status").default_value == "new"
        assert table.get_column("email") is None


class TestMySQLIntrospector:
    """Test MySQLIntrospector class."""

    def test_is_schema_inspector(self, introspector):
        assert isinstance(introspector, SchemaInspector)

    @pytest.mark.asyncio
    async def test_table_exists_true(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = "users"

        assert await introspector.table_exists("users") is True
        mock_pool.fetchval.assert_awaited_once_with("SHOW TABLES LIKE %s", "users")

    @pytest.mark.asyncio
    async def test_table_exists_false(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = None
        assert await introspector.table_exists("ghosts") is False

    @pytest.mark.asyncio
    async def test_table_exists_escapes_wildcards(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = None

        await introspector.table_exists("order_items")

        mock_pool.fetchval.assert_awaited_once_with("SHOW TABLES LIKE %s", "order\\_items")

    @pytest.mark.asyncio
    async def test_table_exists_error(self, introspector, mock_pool):
        mock_pool.fetchval.side_effect = Exception("Lost connection")

        with pytest.raises(DatabaseError, match="Failed to check table existence"):
            await introspector.table_exists("users")

    @pytest.mark.asyncio
    async def test_describe_columns(self, introspector, mock_pool):
        mock_pool.fetch.return_value = DESCRIBE_USERS

        columns = await introspector.describe_columns("users")

        assert [c.name for c in columns] == ["id", "name", "status"]
        assert columns[1].data_type == "varchar(50)"
        mock_pool.fetch.assert_awaited_once_with("DESCRIBE `users`")

    @pytest.mark.asyncio
    async def test_describe_columns_error(self, introspector, mock_pool):
        mock_pool.fetch.side_effect = Exception("Table 'shop.ghosts' doesn't exist")

        with pytest.raises(SchemaError) as exc_info:
            await introspector.describe_columns("ghosts")

        assert exc_info.value.details["table"] == "ghosts"

    @pytest.mark.asyncio
    async def test_get_table_info(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = "users"
        mock_pool.fetch.return_value = DESCRIBE_USERS

        table = await introspector.get_table_info("users")

        assert table.name == "users"
        assert list(table.columns) == ["id", "name", "status"]

    @pytest.mark.asyncio
    async def test_get_table_info_missing(self, introspector, mock_pool):
        mock_pool.fetchval.return_value = None

        assert await introspector.get_table_info("ghosts") is None
        mock_pool.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_list_tables(self, introspector, mock_pool):
        mock_pool.fetch.return_value = [
            {"Tables_in_shop": "orders"},
            {"Tables_in_shop": "users"},
        ]

        assert await introspector.list_tables() == ["orders", "users"]

    @pytest.mark.asyncio
    async def test_list_tables_error(self, introspector, mock_pool):
        mock_pool.fetch.side_effect = Exception("Access denied")

        with pytest.raises(DatabaseError, match="Failed to list tables"):
            await introspector.list_tables()


def test_quote_identifier():
    assert quote_identifier("users") == "`users`"
    assert quote_identifier("odd`name") == "`odd``name`"
