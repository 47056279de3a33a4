"""
DDL action planning for ddlsync.

An ActionBuilder accumulates the pending actions of one reconciliation run
and freezes them into an ActionPlan, which renders to literal MySQL
statements in a fixed order: create table, alter table, foreign keys.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..exceptions import ReconciliationError, ReferenceResolutionError, ValidityCheckError
from .model import FieldDescriptor, FieldKind, ModelSchema, same_column
from .types import TypeMapper


logger = logging.getLogger(__name__)


class ActionKind(str, Enum):
    """Kinds of DDL actions."""

    CREATE_TABLE = "create_table"
    MODIFY_TABLE = "modify_table"
    ADD_FIELD = "add_field"
    MODIFY_FIELD = "modify_field"
    DROP_FIELD = "drop_field"
    ADD_FOREIGN_KEY = "add_foreign_key"


SQL_TEMPLATES: Dict[ActionKind, str] = {
    ActionKind.CREATE_TABLE: (
        "CREATE TABLE IF NOT EXISTS `[table]` "
        "(`[field]` [type] NOT NULL PRIMARY KEY [auto_incr]) ENGINE=[engine]"
    ),
    ActionKind.MODIFY_TABLE: "ALTER TABLE `[table]` [content]",
    ActionKind.ADD_FIELD: "ADD `[field]` [type]",
    ActionKind.MODIFY_FIELD: "MODIFY `[field]` [type]",
    ActionKind.DROP_FIELD: "DROP `[field]`",
    ActionKind.ADD_FOREIGN_KEY: (
        "ALTER TABLE `[table]` ADD FOREIGN KEY `[idx_name]` (`[idx_col]`) "
        "REFERENCES `[ref_table]` (`[ref_col]`)"
    ),
}

COLUMN_ACTIONS = (ActionKind.ADD_FIELD, ActionKind.MODIFY_FIELD, ActionKind.DROP_FIELD)

_TAG_PATTERN = re.compile(r"\[(\w+)\]")


@dataclass(frozen=True)
class PendingAction:
    """A single DDL action with the tags needed to render its template."""

    kind: ActionKind
    tags: Mapping[str, Any] = field(default_factory=dict)

    @property
    def column(self) -> Optional[str]:
        return self.tags.get("field")

    def render(self) -> str:
        """Substitute ``[tag]`` placeholders; nested actions are comma-joined."""

        def replace(match: "re.Match") -> str:
            value = self.tags[match.group(1)]
            if isinstance(value, (list, tuple)):
                return ", ".join(action.render() for action in value)
            return str(value)

        return _TAG_PATTERN.sub(replace, SQL_TEMPLATES[self.kind])


@dataclass(frozen=True)
class ReferenceTarget:
    """Resolved target of a reference field."""

    model: ModelSchema
    column_type: str

    @property
    def table(self) -> str:
        return self.model.table

    @property
    def column(self) -> str:
        return self.model.id_field


@dataclass(frozen=True)
class ActionPlan:
    """Immutable result of one planning pass."""

    table: str
    create_table: Optional[PendingAction] = None
    alterations: Tuple[PendingAction, ...] = ()
    foreign_keys: Tuple[PendingAction, ...] = ()
    orphan_columns: Tuple[str, ...] = ()

    @property
    def modify_table(self) -> Optional[PendingAction]:
        """The single ALTER TABLE action, or None when there is nothing to alter."""
        if not self.alterations:
            return None
        return PendingAction(
            ActionKind.MODIFY_TABLE,
            {"table": self.table, "content": self.alterations},
        )

    @property
    def is_empty(self) -> bool:
        return (
            self.create_table is None
            and not self.alterations
            and not self.foreign_keys
        )

    def actions(self) -> List[PendingAction]:
        """Top-level actions in execution order."""
        ordered = []
        if self.create_table is not None:
            ordered.append(self.create_table)
        if self.modify_table is not None:
            ordered.append(self.modify_table)
        ordered.extend(self.foreign_keys)
        return ordered

    def render(self) -> List[str]:
        """Render every action to a literal statement, in execution order."""
        return [action.render() for action in self.actions()]

    def count(self, kind: ActionKind) -> int:
        pool = self.alterations if kind in COLUMN_ACTIONS else self.actions()
        return sum(1 for action in pool if action.kind == kind)


class BuilderState(str, Enum):
    """Lifecycle of a reconciliation run."""

    IDLE = "idle"
    TABLE_CHECKED = "table_checked"
    ACTIONS_ACCUMULATED = "actions_accumulated"
    RENDERED = "rendered"
    EXECUTED = "executed"


class ActionBuilder:
    """
    Accumulates pending DDL actions for a single model.

    One builder is created per reconciliation run and discarded afterwards;
    nothing is shared between runs.
    """

    def __init__(
        self,
        model: ModelSchema,
        type_mapper: Optional[TypeMapper] = None,
        engine: str = "MyISAM",
        default_id_field: str = "id",
    ):
        self.model = model
        self.type_mapper = type_mapper or TypeMapper()
        self.engine = engine
        self.default_id_field = default_id_field
        self.state = BuilderState.IDLE

        self._create_table: Optional[PendingAction] = None
        self._alterations: List[PendingAction] = []
        self._foreign_keys: List[PendingAction] = []
        self._orphans: List[str] = []
        self._plan: Optional[ActionPlan] = None

    @property
    def is_default_id_field(self) -> bool:
        """Whether the primary key is the conventional integer identity field."""
        pk = self.model.primary_key
        return pk.column_name == self.default_id_field and pk.kind == FieldKind.INT

    def table_checked(self) -> None:
        self._require(BuilderState.IDLE)
        self.state = BuilderState.TABLE_CHECKED

    def resolve_type(
        self, field_descriptor: FieldDescriptor, reference: Optional[ReferenceTarget] = None
    ) -> str:
        """SQL type of a field; reference fields take their target's key type."""
        if field_descriptor.is_reference:
            if reference is None:
                raise ReferenceResolutionError(
                    "Reference field has no resolved target",
                    details={"model": self.model.name, "field": field_descriptor.name},
                )
            return reference.column_type
        return self.type_mapper.map_field_type(field_descriptor)

    def plan_create_table(self) -> PendingAction:
        """Register the create-table action for the model's primary key."""
        self._accumulating()
        pk = self.model.primary_key
        if self.is_default_id_field:
            sql_type = "integer"
            auto = "auto_increment"
        else:
            sql_type = self.type_mapper.map_field_type(pk)
            auto = ""

        self._create_table = PendingAction(
            ActionKind.CREATE_TABLE,
            {
                "table": self.model.table,
                "field": self.model.id_field,
                "type": sql_type,
                "auto_incr": auto,
                "engine": self.engine,
            },
        )
        logger.debug(f"CREATE TABLE planned for {self.model.table}")
        return self._create_table

    def plan_alter_field(
        self,
        field_descriptor: FieldDescriptor,
        is_new: bool = False,
        reference: Optional[ReferenceTarget] = None,
    ) -> Optional[PendingAction]:
        """
        Register an ADD or MODIFY for a field.

        The primary-key field is never altered, as that can break
        auto_increment. A newly added reference field also gets its foreign
        key; keys of existing fields are left alone.
        """
        self._accumulating()
        column = field_descriptor.column_name
        if self.model.is_primary_key(field_descriptor):
            logger.debug(f"Skipping primary key {self.model.table}.{column}")
            return None

        sql_type = self.resolve_type(field_descriptor, reference)
        if field_descriptor.is_reference and is_new:
            self.plan_add_foreign_key(field_descriptor, reference)

        action = PendingAction(
            ActionKind.ADD_FIELD if is_new else ActionKind.MODIFY_FIELD,
            {"field": column, "type": sql_type},
        )
        self._alterations.append(action)
        logger.debug(f"{action.kind.value} planned: {self.model.table}.{column} {sql_type}")
        return action

    def plan_drop_field(self, column: str) -> PendingAction:
        """Register a DROP for a live column the model no longer declares."""
        self._accumulating()
        if same_column(column, self.model.id_field):
            raise ValidityCheckError(
                "Primary key column cannot be dropped",
                field=column,
                details={"model": self.model.name},
            )
        if self.model.declares_column(column):
            raise ValidityCheckError(
                "Declared field cannot be dropped",
                field=column,
                details={"model": self.model.name},
            )

        action = PendingAction(ActionKind.DROP_FIELD, {"field": column})
        self._alterations.append(action)
        logger.debug(f"drop_field planned: {self.model.table}.{column}")
        return action

    def plan_add_foreign_key(
        self, field_descriptor: FieldDescriptor, reference: Optional[ReferenceTarget]
    ) -> PendingAction:
        """Register an ADD FOREIGN KEY for a reference field."""
        self._accumulating()
        column = field_descriptor.column_name
        target = reference.model.name if reference else None
        logger.debug(f"ADD FOREIGN KEY: {self.model.name}->{column} --> {target}")

        if not field_descriptor.is_reference:
            raise ValidityCheckError(
                "Field must be a reference field",
                field=column,
                details={"model": self.model.name},
            )
        if reference is None:
            raise ReferenceResolutionError(
                "Reference field has no resolved target",
                details={"model": self.model.name, "field": column},
            )

        action = PendingAction(
            ActionKind.ADD_FOREIGN_KEY,
            {
                "table": self.model.table,
                "idx_name": f"fk_{column}",
                "idx_col": column,
                "ref_table": reference.table,
                "ref_col": reference.column,
            },
        )
        self._foreign_keys.append(action)
        return action

    def note_orphan(self, column: str) -> None:
        """Record a live column that the model does not declare."""
        self._accumulating()
        self._orphans.append(column)

    def build(self) -> ActionPlan:
        """Freeze the accumulated actions into a plan."""
        if self._plan is None:
            if self.state == BuilderState.TABLE_CHECKED:
                self.state = BuilderState.ACTIONS_ACCUMULATED
            self._require(BuilderState.ACTIONS_ACCUMULATED)
            self._plan = ActionPlan(
                table=self.model.table,
                create_table=self._create_table,
                alterations=tuple(self._alterations),
                foreign_keys=tuple(self._foreign_keys),
                orphan_columns=tuple(self._orphans),
            )
        return self._plan

    def render(self) -> List[str]:
        statements = self.build().render()
        self.state = BuilderState.RENDERED
        return statements

    def executed(self) -> None:
        self._require(BuilderState.RENDERED)
        self.state = BuilderState.EXECUTED

    def _accumulating(self) -> None:
        if self._plan is not None:
            raise ReconciliationError(
                "Action builder is frozen once its plan is built",
                details={"model": self.model.name},
            )
        if self.state == BuilderState.TABLE_CHECKED:
            self.state = BuilderState.ACTIONS_ACCUMULATED
        self._require(BuilderState.ACTIONS_ACCUMULATED)

    def _require(self, state: BuilderState) -> None:
        if self.state != state:
            raise ReconciliationError(
                f"Action builder is {self.state.value}, expected {state.value}",
                details={"model": self.model.name},
            )
