"""
Shared fixtures and descriptor builders
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema_tools.analysis import AnalysisResult, SchemaAnalyzer
from schema_tools.config import SchemaToolsConfig, config_from_dict
from schema_tools.models import (
    CheckConstraint,
    ColumnDescriptor,
    ForeignKeyRef,
    GeneratedAlways,
    TableDescriptor,
    UniqueConstraint,
)


def column(name, data_type="INT", **kwargs):
    return ColumnDescriptor(name=name, data_type=data_type, **kwargs)


def fk(table, to, columns=None, referenced_columns=("id",), name=None):
    columns = tuple(columns or (f"{to.rstrip('s')}_id",))
    return ForeignKeyRef(
        referenced_table=to,
        columns=columns,
        referenced_columns=tuple(referenced_columns),
        name=name or f"fk_{table}_{to}",
    )


def soft_delete_table(
    name,
    extra_columns=(),
    foreign_keys=(),
    pk=("id",),
    history=True,
    **kwargs
):
    """
    A fully conforming soft-delete table: active flag, audit columns,
    period columns and a history table.
    """
    pk_columns = tuple(column(c, is_primary_key=True, nullable=False) for c in pk)
    columns = pk_columns + tuple(
        column(c) if isinstance(c, str) else c for c in extra_columns
    ) + (
        column("record_active", "BIT", nullable=False, default_value="1"),
        column("record_created_by", "UNIQUEIDENTIFIER", nullable=False),
        column("record_updated_by", "UNIQUEIDENTIFIER", nullable=False),
        column("record_valid_from", "DATETIME2", nullable=False, generated_always=GeneratedAlways.ROW_START),
        column("record_valid_until", "DATETIME2", nullable=False, generated_always=GeneratedAlways.ROW_END),
    )
    return TableDescriptor(
        name=name,
        columns=columns,
        primary_key_columns=tuple(pk),
        primary_key_name=f"pk_{name}",
        foreign_keys=tuple(foreign_keys),
        history_table=f"[dbo].[{name}_history]" if history else None,
        has_temporal_versioning=history,
        **kwargs
    )


def history_table(name):
    """History companion for ``name``; no key of its own"""
    return TableDescriptor(
        name=f"{name}_history",
        columns=(
            column("id"),
            column("record_active", "BIT"),
            column("record_created_by", "UNIQUEIDENTIFIER"),
            column("record_updated_by", "UNIQUEIDENTIFIER"),
            column("record_valid_from", "DATETIME2"),
            column("record_valid_until", "DATETIME2"),
        ),
    )


def plain_table(name, columns=("id",), pk=("id",), foreign_keys=(), **kwargs):
    return TableDescriptor(
        name=name,
        columns=tuple(column(c, is_primary_key=c in pk) if isinstance(c, str) else c for c in columns),
        primary_key_columns=tuple(pk),
        primary_key_name=f"pk_{name}" if pk else None,
        foreign_keys=tuple(foreign_keys),
        **kwargs
    )


def analyze(tables, config=None) -> AnalysisResult:
    return SchemaAnalyzer(config or SchemaToolsConfig()).analyze(tables)


@pytest.fixture
def config():
    """Default configuration"""
    return SchemaToolsConfig()


@pytest.fixture
def users_orders():
    """users <- orders <- order_items, all soft-delete, with history tables"""
    return [
        soft_delete_table("users", extra_columns=["email"]),
        history_table("users"),
        soft_delete_table("orders", extra_columns=["user_id"], foreign_keys=[fk("orders", "users")]),
        history_table("orders"),
        soft_delete_table(
            "order_items",
            extra_columns=["order_id"],
            foreign_keys=[fk("order_items", "orders")],
        ),
        history_table("order_items"),
    ]


@pytest.fixture
def composite_tables():
    """tenant-scoped parent/child with a two-column key"""
    return [
        soft_delete_table("entities", pk=("tenant_id", "entity_id")),
        history_table("entities"),
        soft_delete_table(
            "entity_notes",
            extra_columns=["tenant_id", "entity_id"],
            foreign_keys=[fk(
                "entity_notes", "entities",
                columns=("tenant_id", "entity_id"),
                referenced_columns=("tenant_id", "entity_id"),
            )],
        ),
        history_table("entity_notes"),
    ]


@pytest.fixture
def polymorphic_table():
    return soft_delete_table(
        "comments",
        extra_columns=["owner_type", "owner_id", "body"],
        check_constraints=(
            CheckConstraint("ck_comments_owner_type", "[owner_type] IN (N'post', N'photo')"),
        ),
    )


@pytest.fixture
def make_config():
    """Build a configuration from a camelCase mapping"""
    return config_from_dict
