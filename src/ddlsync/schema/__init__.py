"""
Schema management package for ddlsync.

This package provides:
- Declarative model definitions
- Field type to SQL type mapping
- DDL action planning and rendering
- Schema reconciliation against the live database
"""

from .actions import ActionBuilder, ActionKind, ActionPlan, PendingAction, ReferenceTarget
from .model import FieldDescriptor, FieldKind, ModelRegistry, ModelSchema
from .operations import ExecutionMode, SqlExecutor
from .reconciler import (
    DropPolicy,
    ReconciliationResult,
    ReconciliationStatus,
    SchemaReconciler,
)
from .types import TypeMapper

__all__ = [
    "ActionBuilder",
    "ActionKind",
    "ActionPlan",
    "PendingAction",
    "ReferenceTarget",
    "FieldDescriptor",
    "FieldKind",
    "ModelRegistry",
    "ModelSchema",
    "ExecutionMode",
    "SqlExecutor",
    "DropPolicy",
    "ReconciliationResult",
    "ReconciliationStatus",
    "SchemaReconciler",
    "TypeMapper",
]
