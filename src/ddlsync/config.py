"""
Configuration system for ddlsync using Pydantic.
"""

import logging
import logging.handlers
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .database.connection import ConnectionConfig
from .exceptions import ConfigurationError, DdlSyncError
from .schema.model import FieldDescriptor, FieldKind, ModelRegistry, ModelSchema
from .schema.types import DEFAULT_TYPE, DEFAULT_TYPE_MAPPING, TypeMapper


class FieldConfig(BaseModel):
    """A declared model field. Extra keys become type parameters."""

    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Field name")
    type: FieldKind = Field(FieldKind.STRING, description="Logical field type")
    column: Optional[str] = Field(None, description="Column name, if not the field name")
    references: Optional[str] = Field(
        None, description="Referenced model name (reference fields only)"
    )
    params: Dict[str, Any] = Field(
        default_factory=dict, description="Type template parameters"
    )

    @property
    def all_params(self) -> Dict[str, Any]:
        """Explicit params merged with extra keys such as ``length: 50``."""
        merged = dict(self.model_extra or {})
        merged.update(self.params)
        return merged

    def to_descriptor(self) -> FieldDescriptor:
        return FieldDescriptor(
            name=self.name,
            kind=self.type,
            params=self.all_params,
            references=self.references,
            column=self.column,
        )


class ModelConfig(BaseModel):
    """A declared model and its table."""

    name: str = Field(..., description="Model name")
    table: Optional[str] = Field(None, description="Table name (defaults to model name)")
    id_field: str = Field("id", description="Primary key field")
    fields: List[FieldConfig] = Field(default_factory=list, description="Ordered fields")

    @property
    def table_name(self) -> str:
        return self.table or self.name

    def to_schema(self) -> ModelSchema:
        return ModelSchema(
            name=self.name,
            table=self.table_name,
            fields=tuple(f.to_descriptor() for f in self.fields),
            id_field=self.id_field,
        )


class SchemaManagementConfig(BaseModel):
    """Schema synchronization configuration."""

    engine: str = Field("MyISAM", description="Storage engine for created tables")
    default_id_field: str = Field(
        "id", description="Primary key name that gets integer auto_increment"
    )
    drop_policy: Literal["manual", "auto", "forbid"] = Field(
        "manual", description="Handling of live columns missing from the model"
    )
    dry_run: bool = Field(False, description="Print statements instead of executing")
    type_mapping: Dict[str, str] = Field(
        default_factory=dict,
        description="Overrides of the field type to SQL type mapping",
    )
    default_type: str = Field(DEFAULT_TYPE, description="SQL type for unmapped fields")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")

    def apply(self, debug: bool = False) -> None:
        """Configure the ``ddlsync`` logger hierarchy."""
        handlers: List[logging.Handler] = [logging.StreamHandler()]
        if self.file:
            handlers.append(
                logging.handlers.RotatingFileHandler(
                    self.file, maxBytes=self.max_size, backupCount=self.backup_count
                )
            )

        root = logging.getLogger("ddlsync")
        for handler in list(root.handlers):
            root.removeHandler(handler)
        formatter = logging.Formatter(self.format)
        for handler in handlers:
            handler.setFormatter(formatter)
            root.addHandler(handler)
        root.setLevel(logging.DEBUG if debug else self.level)


class DdlSyncConfig(BaseSettings):
    """Main ddlsync configuration."""

    service_name: str = Field("ddlsync", description="Service name")
    debug: bool = Field(False, description="Enable debug mode")

    database: Optional[ConnectionConfig] = Field(
        None, description="Database connection"
    )
    database_url: Optional[str] = Field(
        None, description="Database URL, used when no connection block is given"
    )
    schema_management: SchemaManagementConfig = Field(
        default_factory=SchemaManagementConfig,
        description="Schema synchronization configuration",
    )
    models: List[ModelConfig] = Field(
        default_factory=list, description="Declared models"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="DDLSYNC_",
        case_sensitive=False,
        extra="ignore"
    )

    @model_validator(mode="after")
    def check_unique_models(self) -> "DdlSyncConfig":
        names = [m.name for m in self.models]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate model names: {', '.join(duplicates)}")
        return self

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "DdlSyncConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    def get_connection_config(self) -> ConnectionConfig:
        """Get the database connection configuration."""
        if self.database is not None:
            return self.database
        if self.database_url:
            try:
                return ConnectionConfig.from_url(self.database_url)
            except (DdlSyncError, ValidationError) as e:
                raise ConfigurationError(f"Invalid database URL: {e}")
        raise ConfigurationError("No database connection configured")

    def get_model(self, name: str) -> ModelConfig:
        """Get model configuration by name."""
        for model in self.models:
            if model.name == name:
                return model
        raise ConfigurationError(f"Model configuration '{name}' not found")

    def build_type_mapper(self) -> TypeMapper:
        """Build the type mapper from defaults and configured overrides."""
        mapping = dict(DEFAULT_TYPE_MAPPING)
        mapping.update(self.schema_management.type_mapping)
        return TypeMapper(mapping, self.schema_management.default_type)

    def build_schemas(self) -> List[ModelSchema]:
        """Convert model configurations to model schemas."""
        schemas = []
        for model in self.models:
            try:
                schemas.append(model.to_schema())
            except DdlSyncError as e:
                raise ConfigurationError(
                    f"Invalid model '{model.name}': {e.message}", details=e.details
                ) from e
        return schemas

    def build_registry(self) -> ModelRegistry:
        return ModelRegistry(self.build_schemas())

    def validate_config(self) -> None:
        """Validate the entire configuration for consistency."""
        self.build_type_mapper()
        registry = self.build_registry()

        for model in registry:
            try:
                model.primary_key
            except DdlSyncError as e:
                raise ConfigurationError(e.message, details=e.details) from e

            for f in model.fields:
                if f.is_reference and f.reference_name not in registry:
                    raise ConfigurationError(
                        f"Model '{model.name}' field '{f.name}' references "
                        f"unknown model '{f.reference_name}'"
                    )

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to a YAML file."""
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(mode="json", exclude_none=True),
                f,
                default_flow_style=False,
                indent=2,
                sort_keys=False,
            )
