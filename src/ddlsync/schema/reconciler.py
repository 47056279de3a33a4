"""
Schema reconciliation core logic for ddlsync.

Compares a declared model with the live MySQL table and executes the DDL
needed to make the table match: CREATE TABLE when it is missing, a single
ALTER TABLE for added, changed and dropped columns, then ADD FOREIGN KEY
for newly added reference fields.

Every run describes the live table again. This is slow on a busy server and
statements are not wrapped in a transaction, so a failed ALTER can leave the
table half-changed. Run it at deployment time, one model at a time.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from ..database.base import SchemaInspector, StatementExecutor
from ..exceptions import ReferenceResolutionError, ValidityCheckError
from .actions import ActionBuilder, ActionKind, ActionPlan, ReferenceTarget
from .model import FieldDescriptor, ModelRegistry, ModelSchema, same_column
from .types import TypeMapper


logger = logging.getLogger(__name__)


class DropPolicy(str, Enum):
    """How live columns missing from the model are treated."""

    MANUAL = "manual"    # Report orphans, drop only on explicit request
    AUTO = "auto"        # Drop every orphan column
    FORBID = "forbid"    # Report orphans, refuse any drop request


class ReconciliationStatus(str, Enum):
    """Status of reconciliation operations."""

    SUCCESS = "success"
    UNCHANGED = "unchanged"


@dataclass
class ReconciliationResult:
    """Result of a schema reconciliation run."""

    status: ReconciliationStatus
    model: str
    table: str
    plan: ActionPlan
    statements: List[str] = field(default_factory=list)
    execution_time_ms: float = 0.0

    @property
    def created_table(self) -> bool:
        return self.plan.create_table is not None

    @property
    def orphan_columns(self) -> List[str]:
        return list(self.plan.orphan_columns)

    @property
    def changes(self) -> Dict[str, int]:
        """Count of planned actions per kind."""
        counts = {kind.value: self.plan.count(kind) for kind in ActionKind}
        counts.pop(ActionKind.MODIFY_TABLE.value)
        return {kind: count for kind, count in counts.items() if count}


class SchemaReconciler:
    """
    Brings live tables in line with declared models.

    The reconciler keeps only read-only configuration between runs; each
    run builds its own ActionBuilder and discards it afterwards.
    """

    def __init__(
        self,
        inspector: SchemaInspector,
        executor: StatementExecutor,
        type_mapper: Optional[TypeMapper] = None,
        engine: str = "MyISAM",
        default_id_field: str = "id",
        drop_policy: DropPolicy = DropPolicy.MANUAL,
        registry: Optional[ModelRegistry] = None,
    ):
        self.inspector = inspector
        self.executor = executor
        self.type_mapper = type_mapper or TypeMapper()
        self.engine = engine
        self.default_id_field = default_id_field
        self.drop_policy = DropPolicy(drop_policy)
        self.registry = registry or ModelRegistry()

    async def plan(
        self,
        model: ModelSchema,
        drop: Iterable[str] = (),
        created: Optional[Dict[str, str]] = None,
    ) -> ActionPlan:
        """
        Plan the actions for a model without executing anything.

        ``created`` maps tables whose CREATE TABLE was planned earlier in the
        same run to their key type; references to them resolve from it while
        the table does not exist yet.
        """
        builder = await self._build(model, drop, created)
        return builder.build()

    async def plan_all(self, models: Sequence[ModelSchema]) -> Dict[str, ActionPlan]:
        """Plan several models, referenced tables first, as one run."""
        created: Dict[str, str] = {}
        plans = {}
        for model in order_by_dependencies(models):
            plans[model.table] = await self.plan(model, created=created)
        return plans

    async def reconcile(
        self,
        model: ModelSchema,
        drop: Iterable[str] = (),
        created: Optional[Dict[str, str]] = None,
    ) -> ReconciliationResult:
        """
        Plan, render and execute the DDL for a model.

        Args:
            model: Declared model to synchronize
            drop: Live columns to drop explicitly (subject to the drop policy)
            created: Key types of tables created earlier in the same run

        Returns:
            ReconciliationResult with the plan and executed statements

        Raises:
            ValidityCheckError: If the model or a drop request is invalid
            ReferenceResolutionError: If a reference target cannot be found
            DatabaseError: If a statement fails; later statements are not run
        """
        start_time = time.monotonic()
        logger.info(f"Starting reconciliation for {model.name} ({model.table})")

        builder = await self._build(model, drop, created)
        plan = builder.build()
        statements = builder.render()

        executed: List[str] = []
        for sql in statements:
            try:
                await self.executor.execute(sql)
            except Exception:
                logger.error(
                    f"Reconciliation of {model.table} stopped after "
                    f"{len(executed)} of {len(statements)} statements"
                )
                raise
            executed.append(sql)
        builder.executed()

        result = ReconciliationResult(
            status=(
                ReconciliationStatus.SUCCESS if executed
                else ReconciliationStatus.UNCHANGED
            ),
            model=model.name,
            table=model.table,
            plan=plan,
            statements=executed,
            execution_time_ms=(time.monotonic() - start_time) * 1000,
        )

        if plan.orphan_columns and self.drop_policy != DropPolicy.AUTO:
            logger.warning(
                f"Columns of {model.table} not declared by {model.name}: "
                f"{', '.join(plan.orphan_columns)}"
            )
        logger.info(
            f"Reconciliation completed for {model.table}: "
            f"{result.status.value}, {len(executed)} statement(s) "
            f"({result.execution_time_ms:.1f}ms)"
        )
        return result

    async def reconcile_all(
        self, models: Sequence[ModelSchema]
    ) -> Dict[str, ReconciliationResult]:
        """
        Reconcile several models, referenced tables first.

        Stops at the first error, which propagates to the caller.
        """
        created: Dict[str, str] = {}
        results = {}
        for model in order_by_dependencies(models):
            results[model.table] = await self.reconcile(model, created=created)
        return results

    async def _build(
        self,
        model: ModelSchema,
        drop: Iterable[str],
        created: Optional[Dict[str, str]] = None,
    ) -> ActionBuilder:
        created = {} if created is None else created
        builder = ActionBuilder(
            model,
            type_mapper=self.type_mapper,
            engine=self.engine,
            default_id_field=self.default_id_field,
        )
        # fail before touching the database when the model has no primary key
        model.primary_key

        exists = await self.inspector.table_exists(model.table)
        builder.table_checked()

        # live columns keyed by lower-cased name: (name as reported, type)
        live: Dict[str, Tuple[str, str]]
        if exists:
            columns = await self.inspector.describe_columns(model.table)
            live = {col.name.lower(): (col.name, col.data_type) for col in columns}
        else:
            create = builder.plan_create_table()
            created[model.table] = create.tags["type"]
            # the new table holds only its key; every other field is added
            # by the alter pass that follows
            live = {model.id_field.lower(): (model.id_field, create.tags["type"])}

        for field_descriptor in model.fields:
            column = field_descriptor.column_name
            if model.is_primary_key(field_descriptor):
                continue

            reference = None
            if field_descriptor.is_reference:
                reference = await self._resolve_reference(model, field_descriptor, created)
            sql_type = builder.resolve_type(field_descriptor, reference)

            if column.lower() not in live:
                builder.plan_alter_field(field_descriptor, is_new=True, reference=reference)
                continue
            live_type = live[column.lower()][1]
            if not same_type(sql_type, live_type):
                logger.debug(
                    f"Type of {model.table}.{column} differs: "
                    f"live {live_type}, declared {sql_type}"
                )
                builder.plan_alter_field(field_descriptor, is_new=False, reference=reference)

        orphans = [name for name, _ in live.values() if not model.declares_column(name)]
        for column in orphans:
            builder.note_orphan(column)

        for column in self._drop_requests(model, orphans, drop):
            if column.lower() not in live:
                raise ValidityCheckError(
                    "Column to drop does not exist",
                    field=column,
                    details={"model": model.name, "table": model.table},
                )
            builder.plan_drop_field(live[column.lower()][0])

        return builder

    def _drop_requests(
        self, model: ModelSchema, orphans: List[str], drop: Iterable[str]
    ) -> List[str]:
        requested = list(dict.fromkeys(drop))
        if self.drop_policy == DropPolicy.FORBID and requested:
            raise ValidityCheckError(
                "Dropping columns is forbidden by the drop policy",
                field=requested[0],
                details={"model": model.name, "table": model.table},
            )
        if self.drop_policy == DropPolicy.AUTO:
            known = {column.lower() for column in orphans}
            return orphans + [column for column in requested if column.lower() not in known]
        return requested

    async def _resolve_reference(
        self,
        model: ModelSchema,
        field_descriptor: FieldDescriptor,
        created: Dict[str, str],
    ) -> ReferenceTarget:
        """
        Find the live type of the referenced model's primary-key column.

        A referenced table that does not exist yet but whose CREATE TABLE was
        planned in this run (including the model's own table) resolves to the
        planned key type.
        """
        details = {
            "model": model.name,
            "field": field_descriptor.name,
            "references": field_descriptor.reference_name,
        }
        try:
            target = self.registry.resolve(field_descriptor)
        except ReferenceResolutionError as e:
            raise ReferenceResolutionError(
                f"Cannot resolve reference of {model.name}.{field_descriptor.name}",
                details=details,
                cause=e,
            ) from e

        details["table"] = target.table
        if not await self.inspector.table_exists(target.table):
            if target.table in created:
                return ReferenceTarget(target, created[target.table])
            raise ReferenceResolutionError(
                f"Referenced table '{target.table}' not found", details=details
            )

        for column in await self.inspector.describe_columns(target.table):
            if same_column(column.name, target.id_field):
                return ReferenceTarget(target, column.data_type)

        details["column"] = target.id_field
        raise ReferenceResolutionError(
            f"Primary key column '{target.id_field}' of '{target.table}' not found",
            details=details,
        )


def same_type(declared: str, live: str) -> bool:
    """Textual type comparison, ignoring case and surrounding whitespace."""
    return declared.strip().lower() == live.strip().lower()


def order_by_dependencies(models: Sequence[ModelSchema]) -> List[ModelSchema]:
    """Order models so that referenced models come before the models using them."""
    by_name = {model.name: model for model in models}
    ordered: List[ModelSchema] = []
    done = set()
    visiting = set()

    def visit(model: ModelSchema) -> None:
        if model.name in done or model.name in visiting:
            return
        visiting.add(model.name)
        for f in model.fields:
            name = f.reference_name if f.is_reference else None
            if name in by_name and name != model.name:
                visit(by_name[name])
        visiting.discard(model.name)
        done.add(model.name)
        ordered.append(model)

    for model in models:
        visit(model)
    return ordered
