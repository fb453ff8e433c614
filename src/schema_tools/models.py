"""
Table Descriptor Model Definitions

Immutable value objects describing tables, their columns and constraints.
Raw descriptors come from the SQL front end (or a JSON/YAML document); each
analysis stage returns new descriptors via ``dataclasses.replace`` instead of
mutating them.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import yaml

from .config import SoftDeleteMode


class ForeignKeyAction(str, Enum):
    """Referential actions for ON DELETE"""
    NO_ACTION = "NoAction"
    CASCADE = "Cascade"
    SET_NULL = "SetNull"
    SET_DEFAULT = "SetDefault"

    @classmethod
    def _missing_(cls, value: object) -> Optional["ForeignKeyAction"]:
        if isinstance(value, str):
            normalised = value.replace(" ", "").replace("_", "").lower()
            for member in cls:
                if member.value.lower() == normalised:
                    return member
        return None


class GeneratedAlways(str, Enum):
    """Temporal period column markers"""
    ROW_START = "row_start"
    ROW_END = "row_end"


class ObjectKind(str, Enum):
    """Kinds of pre-existing SQL objects"""
    TRIGGER = "trigger"
    VIEW = "view"
    PROCEDURE = "procedure"


def strip_brackets(name: str) -> str:
    """'[dbo].[users]' -> 'dbo.users'"""
    return name.replace("[", "").replace("]", "").strip()


def unqualified_name(name: str) -> str:
    """'[dbo].[users_history]' -> 'users_history'"""
    stripped = strip_brackets(name)
    return stripped.split(".")[-1] if stripped else ""


@dataclass(frozen=True)
class ColumnRef:
    """Implicit or declared single-column foreign key on a column"""
    table: str
    column: str = "id"
    schema: str = "dbo"

    def to_dict(self) -> Dict[str, Any]:
        return {"table": self.table, "column": self.column, "schema": self.schema}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnRef":
        return cls(
            table=data["table"],
            column=data.get("column", "id"),
            schema=data.get("schema", "dbo"),
        )


@dataclass(frozen=True)
class ColumnDescriptor:
    """A column and its structural markers"""
    name: str
    data_type: str = "INT"
    nullable: bool = True
    is_primary_key: bool = False
    is_unique: bool = False
    is_identity: bool = False
    default_value: Optional[str] = None
    foreign_key: Optional[ColumnRef] = None
    is_polymorphic_foreign_key: bool = False
    generated_always: Optional[GeneratedAlways] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "data_type": self.data_type,
            "nullable": self.nullable,
            "is_primary_key": self.is_primary_key,
            "is_unique": self.is_unique,
            "is_identity": self.is_identity,
            "default_value": self.default_value,
            "foreign_key": self.foreign_key.to_dict() if self.foreign_key else None,
            "is_polymorphic_foreign_key": self.is_polymorphic_foreign_key,
            "generated_always": self.generated_always.value if self.generated_always else None,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ColumnDescriptor":
        fk = data.get("foreign_key")
        generated = data.get("generated_always")
        return cls(
            name=data["name"],
            data_type=data.get("data_type", data.get("type", "INT")),
            nullable=data.get("nullable", True),
            is_primary_key=data.get("is_primary_key", False),
            is_unique=data.get("is_unique", False),
            is_identity=data.get("is_identity", False),
            default_value=data.get("default_value"),
            foreign_key=ColumnRef.from_dict(fk) if fk else None,
            is_polymorphic_foreign_key=data.get("is_polymorphic_foreign_key", False),
            generated_always=GeneratedAlways(generated.lower()) if generated else None,
            description=data.get("description"),
        )


@dataclass(frozen=True)
class ForeignKeyRef:
    """A declared foreign-key constraint"""
    referenced_table: str
    columns: Tuple[str, ...]
    referenced_columns: Tuple[str, ...]
    referenced_schema: str = "dbo"
    name: Optional[str] = None
    on_delete: ForeignKeyAction = ForeignKeyAction.NO_ACTION

    @property
    def is_composite(self) -> bool:
        return len(self.columns) > 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "referenced_table": self.referenced_table,
            "referenced_schema": self.referenced_schema,
            "columns": list(self.columns),
            "referenced_columns": list(self.referenced_columns),
            "on_delete": self.on_delete.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ForeignKeyRef":
        return cls(
            name=data.get("name"),
            referenced_table=data["referenced_table"],
            referenced_schema=data.get("referenced_schema", "dbo"),
            columns=tuple(data.get("columns", [])),
            referenced_columns=tuple(data.get("referenced_columns", [])),
            on_delete=ForeignKeyAction(data.get("on_delete", ForeignKeyAction.NO_ACTION.value)),
        )


@dataclass(frozen=True)
class CheckConstraint:
    name: Optional[str]
    expression: str

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "expression": self.expression}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CheckConstraint":
        return cls(name=data.get("name"), expression=data.get("expression", ""))


@dataclass(frozen=True)
class UniqueConstraint:
    """Unique constraint or unique index, optionally filtered"""
    name: Optional[str]
    columns: Tuple[str, ...]
    filter_predicate: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "filter_predicate": self.filter_predicate,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "UniqueConstraint":
        return cls(
            name=data.get("name"),
            columns=tuple(data.get("columns", [])),
            filter_predicate=data.get("filter_predicate"),
        )


@dataclass(frozen=True)
class PolymorphicOwner:
    """Owner metadata for a polymorphic table"""
    type_column: str
    id_column: str
    allowed_types: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type_column": self.type_column,
            "id_column": self.id_column,
            "allowed_types": list(self.allowed_types),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PolymorphicOwner":
        return cls(
            type_column=data["type_column"],
            id_column=data["id_column"],
            allowed_types=tuple(data.get("allowed_types", [])),
        )


@dataclass(frozen=True)
class TableDescriptor:
    """
    A table with its raw facts and derived analysis flags.

    Raw facts: name through ``has_temporal_versioning``. Everything after
    that is derived by the analysis stages and should not be authored.
    """
    name: str
    schema: str = "dbo"
    columns: Tuple[ColumnDescriptor, ...] = ()
    primary_key_columns: Tuple[str, ...] = ()
    primary_key_name: Optional[str] = None
    foreign_keys: Tuple[ForeignKeyRef, ...] = ()
    check_constraints: Tuple[CheckConstraint, ...] = ()
    unique_constraints: Tuple[UniqueConstraint, ...] = ()
    category: Optional[str] = None
    description: Optional[str] = None
    source_file: Optional[str] = None
    history_table: Optional[str] = None
    has_temporal_versioning: bool = False

    # Derived
    has_active_column: bool = False
    has_soft_delete: bool = False
    soft_delete_mode: SoftDeleteMode = SoftDeleteMode.CASCADE
    is_append_only: bool = False
    is_polymorphic: bool = False
    polymorphic_owner: Optional[PolymorphicOwner] = None
    is_history_table: bool = False
    is_leaf_table: bool = False
    child_tables: Tuple[str, ...] = ()
    reactivation_cascade: bool = False
    reactivation_cascade_tolerance_ms: int = 2000
    active_column_name: Optional[str] = None
    valid_from_column: Optional[str] = None
    valid_to_column: Optional[str] = None

    @property
    def qualified_name(self) -> str:
        return f"[{self.schema}].[{self.name}]"

    @property
    def key(self) -> str:
        return self.name.lower()

    def get_column(self, name: str) -> Optional[ColumnDescriptor]:
        """Get column by name (case-insensitive)"""
        name_lower = name.lower()
        for column in self.columns:
            if column.name.lower() == name_lower:
                return column
        return None

    def has_column(self, name: Optional[str]) -> bool:
        return bool(name) and self.get_column(name) is not None

    def period_column(self, marker: GeneratedAlways) -> Optional[ColumnDescriptor]:
        for column in self.columns:
            if column.generated_always == marker:
                return column
        return None

    def evolve(self, **changes: Any) -> "TableDescriptor":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "schema": self.schema,
            "category": self.category,
            "description": self.description,
            "source_file": self.source_file,
            "columns": [c.to_dict() for c in self.columns],
            "primary_key_columns": list(self.primary_key_columns),
            "primary_key_name": self.primary_key_name,
            "foreign_keys": [fk.to_dict() for fk in self.foreign_keys],
            "check_constraints": [cc.to_dict() for cc in self.check_constraints],
            "unique_constraints": [uc.to_dict() for uc in self.unique_constraints],
            "history_table": self.history_table,
            "has_temporal_versioning": self.has_temporal_versioning,
            "has_active_column": self.has_active_column,
            "has_soft_delete": self.has_soft_delete,
            "soft_delete_mode": self.soft_delete_mode.value,
            "is_append_only": self.is_append_only,
            "is_polymorphic": self.is_polymorphic,
            "polymorphic_owner": self.polymorphic_owner.to_dict() if self.polymorphic_owner else None,
            "is_history_table": self.is_history_table,
            "is_leaf_table": self.is_leaf_table,
            "child_tables": list(self.child_tables),
            "reactivation_cascade": self.reactivation_cascade,
            "reactivation_cascade_tolerance_ms": self.reactivation_cascade_tolerance_ms,
            "active_column_name": self.active_column_name,
            "valid_from_column": self.valid_from_column,
            "valid_to_column": self.valid_to_column,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableDescriptor":
        """
        Create a descriptor from a dictionary.

        Accepts both raw front-end output and previously enriched
        descriptors. Derived fields are read when present so an enriched
        document can be validated again without re-analysis.
        """
        columns = tuple(ColumnDescriptor.from_dict(c) for c in data.get("columns", []))
        pk = data.get("primary_key_columns")
        if pk is None:
            pk = [c.name for c in columns if c.is_primary_key]
        owner = data.get("polymorphic_owner")

        return cls(
            name=data["name"],
            schema=data.get("schema") or "dbo",
            columns=columns,
            primary_key_columns=tuple(pk),
            primary_key_name=data.get("primary_key_name"),
            foreign_keys=tuple(ForeignKeyRef.from_dict(fk) for fk in data.get("foreign_keys", [])),
            check_constraints=tuple(CheckConstraint.from_dict(cc) for cc in data.get("check_constraints", [])),
            unique_constraints=tuple(UniqueConstraint.from_dict(uc) for uc in data.get("unique_constraints", [])),
            category=data.get("category"),
            description=data.get("description"),
            source_file=data.get("source_file"),
            history_table=data.get("history_table"),
            has_temporal_versioning=data.get("has_temporal_versioning", False),
            has_active_column=data.get("has_active_column", False),
            has_soft_delete=data.get("has_soft_delete", False),
            soft_delete_mode=SoftDeleteMode(data.get("soft_delete_mode", SoftDeleteMode.CASCADE.value)),
            is_append_only=data.get("is_append_only", False),
            is_polymorphic=data.get("is_polymorphic", False),
            polymorphic_owner=PolymorphicOwner.from_dict(owner) if owner else None,
            is_history_table=data.get("is_history_table", False),
            is_leaf_table=data.get("is_leaf_table", False),
            child_tables=tuple(data.get("child_tables", [])),
            reactivation_cascade=data.get("reactivation_cascade", False),
            reactivation_cascade_tolerance_ms=data.get("reactivation_cascade_tolerance_ms", 2000),
            active_column_name=data.get("active_column_name"),
            valid_from_column=data.get("valid_from_column"),
            valid_to_column=data.get("valid_to_column"),
        )


@dataclass(frozen=True)
class ExistingObject:
    """A trigger, view or procedure already present in the source tree"""
    name: str
    kind: ObjectKind
    schema: str = "dbo"
    target_table: Optional[str] = None
    source_file: Optional[str] = None
    is_generated: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "schema": self.schema,
            "target_table": self.target_table,
            "source_file": self.source_file,
            "is_generated": self.is_generated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExistingObject":
        return cls(
            name=data["name"],
            kind=ObjectKind(data.get("kind", ObjectKind.TRIGGER.value).lower()),
            schema=data.get("schema") or "dbo",
            target_table=data.get("target_table"),
            source_file=data.get("source_file"),
            is_generated=data.get("is_generated", False),
        )


@dataclass(frozen=True)
class SchemaStatistics:
    """Summary counts for one analysed schema"""
    total_tables: int = 0
    temporal_tables: int = 0
    soft_delete_tables: int = 0
    append_only_tables: int = 0
    polymorphic_tables: int = 0
    history_tables: int = 0
    triggers_to_generate: int = 0
    total_columns: int = 0

    @classmethod
    def from_tables(cls, tables: Iterable[TableDescriptor], triggers_to_generate: int = 0) -> "SchemaStatistics":
        tables = list(tables)
        return cls(
            total_tables=len(tables),
            temporal_tables=sum(1 for t in tables if t.has_temporal_versioning),
            soft_delete_tables=sum(1 for t in tables if t.has_soft_delete),
            append_only_tables=sum(1 for t in tables if t.is_append_only),
            polymorphic_tables=sum(1 for t in tables if t.is_polymorphic),
            history_tables=sum(1 for t in tables if t.is_history_table),
            triggers_to_generate=triggers_to_generate,
            total_columns=sum(len(t.columns) for t in tables),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tables": self.total_tables,
            "temporal_tables": self.temporal_tables,
            "soft_delete_tables": self.soft_delete_tables,
            "append_only_tables": self.append_only_tables,
            "polymorphic_tables": self.polymorphic_tables,
            "history_tables": self.history_tables,
            "triggers_to_generate": self.triggers_to_generate,
            "total_columns": self.total_columns,
        }


@dataclass
class SchemaDocument:
    """
    The serialized pipeline input/output: tables plus existing objects.
    """
    tables: List[TableDescriptor] = field(default_factory=list)
    existing_objects: List[ExistingObject] = field(default_factory=list)
    statistics: Optional[SchemaStatistics] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "tables": [t.to_dict() for t in self.tables],
            "existing_objects": [o.to_dict() for o in self.existing_objects],
        }
        if self.statistics:
            data["statistics"] = self.statistics.to_dict()
        return data

    def to_json(self, indent: int = 2) -> str:
        """Export as JSON"""
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def to_yaml(self) -> str:
        """Export as YAML"""
        return yaml.dump(self.to_dict(), default_flow_style=False, sort_keys=False)

    def save(self, path: str) -> None:
        """Save document to file (JSON or YAML based on extension)"""
        with open(path, 'w', encoding='utf-8') as f:
            if path.endswith(('.yaml', '.yml')):
                f.write(self.to_yaml())
            else:
                f.write(self.to_json())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaDocument":
        return cls(
            tables=[TableDescriptor.from_dict(t) for t in data.get("tables", [])],
            existing_objects=[ExistingObject.from_dict(o) for o in data.get("existing_objects", [])],
        )
