"""
Statement execution for ddlsync.

Runs rendered DDL statements against MySQL one at a time. There is no
transactional wrapping: MySQL commits DDL implicitly, so a failed statement
leaves the schema in whatever state the server left it.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..database.base import StatementExecutor
from ..database.connection import ConnectionPool
from ..exceptions import DatabaseError


logger = logging.getLogger(__name__)


class ExecutionMode(str, Enum):
    """Statement execution modes."""

    APPLY = "apply"        # Execute statements against the database
    DRY_RUN = "dry_run"    # Record statements but don't execute


@dataclass
class ExecutedStatement:
    """A statement handed to the executor, with its outcome."""

    sql: str
    executed: bool = False
    execution_time_ms: Optional[float] = None


class SqlExecutor(StatementExecutor):
    """Executes DDL statements through a connection pool."""

    def __init__(
        self,
        pool: Optional[ConnectionPool] = None,
        mode: ExecutionMode = ExecutionMode.APPLY,
    ):
        if pool is None and mode == ExecutionMode.APPLY:
            raise DatabaseError("A connection pool is required to apply statements")
        self.pool = pool
        self.mode = mode
        self.history: List[ExecutedStatement] = []

    @property
    def is_dry_run(self) -> bool:
        return self.mode == ExecutionMode.DRY_RUN

    async def execute(self, sql: str) -> None:
        """Execute a single statement; driver failures become DatabaseError."""
        record = ExecutedStatement(sql=sql)
        self.history.append(record)

        if self.is_dry_run:
            logger.info(f"[dry run] {sql}")
            return

        start = time.monotonic()
        try:
            await self.pool.execute(sql)
        except Exception as e:
            logger.error(f"Statement failed: {sql}: {e}")
            raise DatabaseError(
                f"Failed to execute statement: {e}", details={"sql": sql}, cause=e
            ) from e

        record.executed = True
        record.execution_time_ms = (time.monotonic() - start) * 1000
        logger.info(f"Executed ({record.execution_time_ms:.1f}ms): {sql}")

    @property
    def statements(self) -> List[str]:
        return [record.sql for record in self.history]
