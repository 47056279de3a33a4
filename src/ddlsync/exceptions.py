"""
Exception classes for ddlsync.
"""

from typing import Any, Dict, Optional


class DdlSyncError(Exception):
    """Base exception for all ddlsync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(DdlSyncError):
    """Raised when there's an error in configuration or a type template."""

    pass


class ValidityCheckError(DdlSyncError):
    """Raised when a model or a requested action fails a validity check."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        details = dict(details or {})
        if field is not None:
            details.setdefault("field", field)
        super().__init__(message, details)
        self.field = field


class UnidentifiablePrimaryKeyError(ValidityCheckError):
    """Raised when a model's id field is not among its declared fields."""

    def __init__(self, model: str, id_field: str) -> None:
        super().__init__(
            f"Unidentifiable primary key for model '{model}'",
            details={"model": model, "id_field": id_field},
        )
        self.model = model
        self.id_field = id_field


class ReconciliationError(DdlSyncError):
    """Raised when a reconciliation run cannot be planned."""

    pass


class ReferenceResolutionError(ReconciliationError):
    """Raised when a reference field's target model, table or column is missing."""

    pass


class DatabaseError(DdlSyncError):
    """Raised when there's an error with database operations."""

    pass


class DatabaseConnectionError(DatabaseError):
    """Raised when there's an error establishing or maintaining database connections."""

    pass


class DatabaseConfigurationError(DatabaseError):
    """Raised when there's an error in database configuration."""

    pass


class SchemaError(DatabaseError):
    """Raised when there's an error reading the live database schema."""

    pass
