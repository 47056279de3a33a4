"""
Declarative model definitions for ddlsync.

A ModelSchema describes a table the way the application declares it: an
ordered list of field descriptors plus the name of the primary-key field.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple, Union

from ..exceptions import (
    ReferenceResolutionError,
    UnidentifiablePrimaryKeyError,
    ValidityCheckError,
)


class FieldKind(str, Enum):
    """Logical field types understood by the type mapper."""

    INT = "int"
    REAL = "real"
    MONEY = "money"
    DATETIME = "datetime"
    DATE = "date"
    STRING = "string"
    TEXT = "text"
    BOOLEAN = "boolean"
    REFERENCE = "reference"


@dataclass(frozen=True)
class FieldDescriptor:
    """A single declared field of a model."""

    name: str
    kind: FieldKind = FieldKind.STRING
    params: Mapping[str, Any] = field(default_factory=dict)
    references: Optional[Union[str, "ModelSchema"]] = None
    column: Optional[str] = None

    def __post_init__(self):
        if not self.name:
            raise ValidityCheckError("Field name is required")
        # Accept plain strings from config ("int", "reference", ...)
        if not isinstance(self.kind, FieldKind):
            try:
                object.__setattr__(self, "kind", FieldKind(self.kind))
            except ValueError:
                raise ValidityCheckError(
                    f"Unknown field type '{self.kind}'", field=self.name
                )
        if self.kind == FieldKind.REFERENCE and self.references is None:
            raise ValidityCheckError(
                "Reference field must name the model it references", field=self.name
            )

    @property
    def column_name(self) -> str:
        """Actual name of the column backing this field."""
        return self.column or self.name

    @property
    def is_reference(self) -> bool:
        return self.kind == FieldKind.REFERENCE

    @property
    def reference_name(self) -> Optional[str]:
        """Name of the referenced model, if any."""
        if self.references is None:
            return None
        if isinstance(self.references, ModelSchema):
            return self.references.name
        return self.references


@dataclass(frozen=True)
class ModelSchema:
    """A declarative model: table name, ordered fields and primary key."""

    name: str
    table: str
    fields: Tuple[FieldDescriptor, ...]
    id_field: str = "id"

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))
        # MySQL column names are case-insensitive
        seen = set()
        for f in self.fields:
            if f.column_name.lower() in seen:
                raise ValidityCheckError(
                    f"Duplicate field in model '{self.name}'",
                    field=f.column_name,
                    details={"model": self.name},
                )
            seen.add(f.column_name.lower())

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self.fields)

    @property
    def primary_key(self) -> FieldDescriptor:
        """
        Get the descriptor of the primary-key field.

        Raises:
            UnidentifiablePrimaryKeyError: If id_field is not declared
        """
        for f in self.fields:
            if same_column(f.column_name, self.id_field):
                return f
        raise UnidentifiablePrimaryKeyError(self.name, self.id_field)

    @property
    def column_names(self) -> List[str]:
        return [f.column_name for f in self.fields]

    def get_field(self, name: str) -> Optional[FieldDescriptor]:
        for f in self.fields:
            if f.column_name == name or f.name == name:
                return f
        return None

    def is_primary_key(self, field_descriptor: FieldDescriptor) -> bool:
        return same_column(field_descriptor.column_name, self.id_field)

    def declares_column(self, column: str) -> bool:
        return any(same_column(column, name) for name in self.column_names)


class ModelRegistry:
    """Resolves models by name, used for reference fields declared by name."""

    def __init__(self, models: Optional[Iterable[ModelSchema]] = None):
        self._models: Dict[str, ModelSchema] = {}
        for model in models or []:
            self.register(model)

    def register(self, model: ModelSchema) -> None:
        if model.name in self._models:
            raise ValidityCheckError(
                f"Model '{model.name}' is already registered",
                details={"model": model.name},
            )
        self._models[model.name] = model

    def get(self, name: str) -> ModelSchema:
        if name not in self._models:
            raise ReferenceResolutionError(
                f"Referenced model '{name}' not found", details={"model": name}
            )
        return self._models[name]

    def resolve(self, field_descriptor: FieldDescriptor) -> ModelSchema:
        """Get the model a reference field points at."""
        target = field_descriptor.references
        if isinstance(target, ModelSchema):
            return target
        if target is None:
            raise ValidityCheckError(
                "Field is not a reference field", field=field_descriptor.name
            )
        return self.get(target)

    def __contains__(self, name: str) -> bool:
        return name in self._models

    def __iter__(self) -> Iterator[ModelSchema]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)


def same_column(a: str, b: str) -> bool:
    """Column name equality as MySQL sees it (case-insensitive)."""
    return a.lower() == b.lower()
