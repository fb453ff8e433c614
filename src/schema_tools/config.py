"""
Configuration Management for Schema Tools
Uses Pydantic for validation and type safety

The configuration is layered. Global defaults can be overridden per table
through the ``overrides`` mapping, whose keys are either an exact table
name, ``category:<name>`` or a glob containing ``*``. ``resolve_for_table``
merges the layers into the effective configuration for one table.
"""
from __future__ import annotations

import json
import os
from enum import Enum
from fnmatch import fnmatchcase
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .utils.errors import ConfigurationError, DialectError
from .utils.logging import get_logger

logger = get_logger(__name__)

CATEGORY_PREFIX = "category:"
GLOB_CHARACTERS = "*?["


class SoftDeleteMode(str, Enum):
    """How deactivating a parent row affects its active children"""
    CASCADE = "Cascade"
    RESTRICT = "Restrict"
    IGNORE = "Ignore"

    @classmethod
    def _missing_(cls, value: object) -> Optional["SoftDeleteMode"]:
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return None


class SqlServerVersion(str, Enum):
    """Target SQL Server versions"""
    SQL100 = "Sql100"
    SQL110 = "Sql110"
    SQL120 = "Sql120"
    SQL130 = "Sql130"
    SQL140 = "Sql140"
    SQL150 = "Sql150"
    SQL160 = "Sql160"
    SQL170 = "Sql170"

    @property
    def level(self) -> int:
        return int(self.value[3:])

    @property
    def supports_create_or_alter(self) -> bool:
        """CREATE OR ALTER arrived with SQL Server 2016 SP1 (130)"""
        return self.level >= 130

    @classmethod
    def parse(cls, value: str) -> "SqlServerVersion":
        """Resolve a version string, raising DialectError when unknown"""
        candidate = (value or "").strip().lower()
        for member in cls:
            if member.value.lower() == candidate:
                return member
        raise DialectError(
            f"Unsupported SQL Server version '{value}'",
            requested_version=value,
        )


class _ConfigModel(BaseModel):
    """Base for config sections; accepts camelCase or snake_case keys"""
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "extra": "forbid",
    }


class FeatureConfig(_ConfigModel):
    """Pattern detection and generation feature flags"""
    enable_soft_delete: bool = True
    enable_temporal_versioning: bool = True
    soft_delete_mode: SoftDeleteMode = SoftDeleteMode.CASCADE
    generate_reactivation_guards: bool = True
    reactivation_cascade: bool = False
    reactivation_cascade_tolerance_ms: int = Field(default=2000, ge=0, le=3_600_000)
    detect_polymorphic_patterns: bool = True
    detect_append_only_tables: bool = True


class ValidationConfig(_ConfigModel):
    """Toggles for the optional validation rules"""
    validate_foreign_keys: bool = True
    validate_polymorphic: bool = True
    validate_temporal: bool = True
    validate_audit_columns: bool = True
    enforce_naming_conventions: bool = True
    treat_warnings_as_errors: bool = False


class PolymorphicPattern(_ConfigModel):
    """A (type column, id column) pair identifying polymorphic ownership"""
    type_column: str = Field(min_length=1)
    id_column: str = Field(min_length=1)


def _default_polymorphic_patterns() -> List[PolymorphicPattern]:
    return [PolymorphicPattern(type_column="owner_type", id_column="owner_id")]


class ColumnConfig(_ConfigModel):
    """Column naming conventions"""
    active: str = "record_active"
    active_value: str = "1"
    inactive_value: str = "0"
    created_at: str = "record_created_at"
    created_by: str = "record_created_by"
    updated_by: str = "record_updated_by"
    updated_by_type: str = "UNIQUEIDENTIFIER"
    valid_from: str = "record_valid_from"
    valid_to: str = "record_valid_until"
    audit_foreign_key_table: Optional[str] = None
    polymorphic_patterns: List[PolymorphicPattern] = Field(default_factory=_default_polymorphic_patterns)


class PurgeConfig(_ConfigModel):
    """Hard-delete procedure settings"""
    enabled: bool = True
    procedure_name: str = Field(default="usp_purge_soft_deleted", pattern=r"^[A-Za-z_][A-Za-z0-9_]*$")
    default_grace_period_days: int = Field(default=90, ge=0, le=36500)
    default_batch_size: int = Field(default=1000, ge=0, le=1_000_000)


class ViewConfig(_ConfigModel):
    """Active/deleted convenience view settings"""
    enabled: bool = True
    naming_pattern: str = "vw_{table}"
    include_deleted_views: bool = False
    deleted_view_naming_pattern: str = "vw_{table}_deleted"

    @field_validator('naming_pattern', 'deleted_view_naming_pattern')
    @classmethod
    def validate_placeholder(cls, v: str) -> str:
        """View names are derived per table, so the pattern must mention it"""
        if "{table}" not in v:
            raise ValueError("view naming pattern must contain '{table}'")
        return v


class FeatureOverride(_ConfigModel):
    """Partial feature flags; None inherits from the next layer"""
    enable_soft_delete: Optional[bool] = None
    enable_temporal_versioning: Optional[bool] = None
    soft_delete_mode: Optional[SoftDeleteMode] = None
    generate_reactivation_guards: Optional[bool] = None
    reactivation_cascade: Optional[bool] = None
    reactivation_cascade_tolerance_ms: Optional[int] = Field(default=None, ge=0, le=3_600_000)
    detect_polymorphic_patterns: Optional[bool] = None
    detect_append_only_tables: Optional[bool] = None


class ValidationOverride(_ConfigModel):
    """Partial validation toggles; None inherits from the next layer"""
    validate_foreign_keys: Optional[bool] = None
    validate_polymorphic: Optional[bool] = None
    validate_temporal: Optional[bool] = None
    validate_audit_columns: Optional[bool] = None
    enforce_naming_conventions: Optional[bool] = None
    treat_warnings_as_errors: Optional[bool] = None


class ColumnOverride(_ConfigModel):
    """Partial column naming; None inherits from the next layer"""
    active: Optional[str] = None
    created_at: Optional[str] = None
    created_by: Optional[str] = None
    updated_by: Optional[str] = None
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None


class TableOverride(_ConfigModel):
    """One configuration layer keyed by table, category or glob"""
    features: Optional[FeatureOverride] = None
    validation: Optional[ValidationOverride] = None
    columns: Optional[ColumnOverride] = None


class SchemaToolsConfig(_ConfigModel):
    """Main configuration"""
    database: str = ""
    default_schema: str = "dbo"
    sql_server_version: str = SqlServerVersion.SQL170.value
    features: FeatureConfig = Field(default_factory=FeatureConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    columns: ColumnConfig = Field(default_factory=ColumnConfig)
    purge: PurgeConfig = Field(default_factory=PurgeConfig)
    views: ViewConfig = Field(default_factory=ViewConfig)
    categories: Dict[str, str] = Field(default_factory=dict)
    overrides: Dict[str, TableOverride] = Field(default_factory=dict)

    def get_sql_server_version(self) -> SqlServerVersion:
        return SqlServerVersion.parse(self.sql_server_version)

    def resolve_for_table(self, table_name: str, category: Optional[str] = None) -> "SchemaToolsConfig":
        return resolve_for_table(table_name, category, self)


def _match_kind(key: str, table_name: str, category: Optional[str]) -> Optional[int]:
    """
    Return the precedence rank of an override key for this table, or None
    if it does not apply. Lower ranks win.
    """
    if key.lower() == table_name.lower():
        return 0
    if key.lower().startswith(CATEGORY_PREFIX):
        wanted = key[len(CATEGORY_PREFIX):].strip().lower()
        if category and wanted == category.lower():
            return 1
        return None
    if any(ch in key for ch in GLOB_CHARACTERS) and fnmatchcase(table_name.lower(), key.lower()):
        return 2
    return None


def matching_overrides(
    table_name: str,
    category: Optional[str],
    config: SchemaToolsConfig,
) -> List[Tuple[str, TableOverride]]:
    """
    Overrides that apply to a table, highest precedence first.

    Exact table name beats ``category:`` which beats globs. A key is a glob
    when it contains any of ``*``, ``?`` or ``[``. Globs keep
    their declaration order, so the first declared glob wins a tie.
    """
    ranked = []
    for position, (key, override) in enumerate(config.overrides.items()):
        rank = _match_kind(key, table_name, category)
        if rank is not None:
            ranked.append((rank, position, key, override))
    ranked.sort(key=lambda item: (item[0], item[1]))
    return [(key, override) for _, _, key, override in ranked]


def _merge_section(base: BaseModel, layers: List[Optional[BaseModel]]) -> BaseModel:
    updates: Dict[str, Any] = {}
    for name in type(base).model_fields:
        for layer in layers:
            if layer is None or name not in type(layer).model_fields:
                continue
            value = getattr(layer, name)
            if value is not None:
                updates[name] = value
                break
    if not updates:
        return base
    return base.model_copy(update=updates)


def resolve_for_table(
    table_name: str,
    category: Optional[str],
    config: SchemaToolsConfig,
) -> SchemaToolsConfig:
    """
    Compute the effective configuration for one table.

    Every field takes its value from the highest-precedence layer that
    sets it, falling back to the global value. The input config is not
    modified; when no override applies it is returned as is.
    """
    layers = [override for _, override in matching_overrides(table_name, category, config)]
    if not layers:
        return config

    return config.model_copy(update={
        "features": _merge_section(config.features, [layer.features for layer in layers]),
        "validation": _merge_section(config.validation, [layer.validation for layer in layers]),
        "columns": _merge_section(config.columns, [layer.columns for layer in layers]),
    })


def load_config(path: Optional[str] = None) -> SchemaToolsConfig:
    """
    Load configuration from a YAML or JSON file.

    A missing path yields the defaults. Malformed content raises
    ConfigurationError; an unknown ``sqlServerVersion`` raises DialectError.
    """
    if not path:
        logger.debug("No configuration file given, using defaults")
        return SchemaToolsConfig()

    if not os.path.exists(path):
        raise ConfigurationError(f"Configuration file not found: {path}", config_key=path)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.endswith(('.yaml', '.yml')):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Could not read configuration file {path}: {e}",
            config_key=path,
            original_error=e,
        ) from e

    config = config_from_dict(data or {})
    logger.info(f"Loaded configuration from {path} ({len(config.overrides)} overrides)")
    return config


def config_from_dict(data: Dict[str, Any]) -> SchemaToolsConfig:
    """Validate a configuration mapping"""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    try:
        config = SchemaToolsConfig.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid configuration: {first.get('msg')} at '{key}'",
            config_key=key or None,
            original_error=e,
        ) from e

    for key in config.overrides:
        if key.lower().startswith(CATEGORY_PREFIX) and not key[len(CATEGORY_PREFIX):].strip():
            raise ConfigurationError(f"Override key '{key}' names no category", config_key=f"overrides.{key}")

    # fail fast on an unknown dialect
    config.get_sql_server_version()
    return config
