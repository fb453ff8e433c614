"""
Pattern Detection

Derives soft-delete, temporal, append-only and polymorphic flags for a table
from its raw column facts and its effective configuration. Every rule is
feature-gated; configuration can switch a pattern off but never on when the
structure it needs is missing.
"""
from __future__ import annotations

import re
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple

from ..config import SchemaToolsConfig
from ..models import (
    ColumnDescriptor,
    ColumnRef,
    GeneratedAlways,
    PolymorphicOwner,
    TableDescriptor,
    unqualified_name,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

_STRING_LITERAL = re.compile(r"N?'((?:[^']|'')*)'")


def _in_list_pattern(column: str) -> re.Pattern:
    name = re.escape(column)
    return re.compile(
        rf"(?:\[{name}\]|(?<![\w\]]){name}(?![\w\[]))\s+IN\s*\(([^)]*)\)",
        re.IGNORECASE,
    )


def extract_allowed_types(table: TableDescriptor, type_column: str) -> List[str]:
    """
    Collect the string literals of every CHECK constraint that restricts
    ``type_column`` with an IN-list, preserving order and dropping repeats.
    """
    pattern = _in_list_pattern(type_column)
    allowed: List[str] = []
    for constraint in table.check_constraints:
        if not constraint.expression:
            continue
        for match in pattern.finditer(constraint.expression):
            for literal in _STRING_LITERAL.findall(match.group(1)):
                value = literal.replace("''", "'")
                if value not in allowed:
                    allowed.append(value)
    return allowed


def history_table_names(tables: Iterable[TableDescriptor]) -> List[str]:
    """Lower-cased unqualified names of every declared history table"""
    names = []
    for table in tables:
        if table.history_table:
            name = unqualified_name(table.history_table).lower()
            if name and name not in names:
                names.append(name)
    return names


def mark_history_tables(tables: Sequence[TableDescriptor]) -> List[TableDescriptor]:
    """
    Flag every descriptor that another descriptor names as its history table.

    Needs the whole set, so it runs before per-table detection.
    """
    names = set(history_table_names(tables))
    result = []
    for table in tables:
        if table.key in names and not table.is_history_table:
            logger.debug(f"Marked {table.name} as history table")
            table = table.evolve(is_history_table=True)
        result.append(table)
    return result


class PatternDetector:
    """
    Enriches raw table descriptors with pattern flags.

    Usage:
        detector = PatternDetector(config)
        enriched = [detector.detect(t) for t in mark_history_tables(raw)]
    """

    def __init__(self, config: SchemaToolsConfig):
        self.config = config

    def detect(self, table: TableDescriptor) -> TableDescriptor:
        """Return a new descriptor with every pattern flag recomputed"""
        effective = self.config.resolve_for_table(table.name, table.category)
        features = effective.features
        cols = effective.columns

        active_column = table.get_column(cols.active)
        has_active_column = active_column is not None

        structurally_temporal = table.has_temporal_versioning or bool(table.history_table)
        has_temporal = structurally_temporal and features.enable_temporal_versioning

        has_soft_delete = (
            features.enable_soft_delete
            and has_active_column
            and has_temporal
            and not table.is_history_table
        )

        is_append_only = (
            features.detect_append_only_tables
            and table.has_column(cols.created_at)
            and not table.has_column(cols.updated_by)
            and not structurally_temporal
        )

        columns = self._wire_audit_columns(table, effective)

        is_polymorphic = False
        owner: Optional[PolymorphicOwner] = None
        if features.detect_polymorphic_patterns and not table.is_history_table:
            owner = self._detect_polymorphic_owner(table, effective)
            if owner:
                is_polymorphic = True
                tagged = {owner.type_column.lower(), owner.id_column.lower()}
                columns = tuple(
                    replace(c, is_polymorphic_foreign_key=True)
                    if c.name.lower() in tagged else c
                    for c in columns
                )

        valid_from = table.period_column(GeneratedAlways.ROW_START)
        valid_to = table.period_column(GeneratedAlways.ROW_END)

        enriched = table.evolve(
            columns=columns,
            has_active_column=has_active_column,
            has_temporal_versioning=has_temporal,
            has_soft_delete=has_soft_delete,
            soft_delete_mode=features.soft_delete_mode,
            is_append_only=is_append_only,
            is_polymorphic=is_polymorphic,
            polymorphic_owner=owner,
            reactivation_cascade=has_soft_delete and features.reactivation_cascade,
            reactivation_cascade_tolerance_ms=features.reactivation_cascade_tolerance_ms,
            active_column_name=active_column.name if active_column else None,
            valid_from_column=valid_from.name if valid_from else cols.valid_from,
            valid_to_column=valid_to.name if valid_to else cols.valid_to,
        )

        logger.debug(
            f"{table.name}: soft_delete={has_soft_delete} temporal={has_temporal} "
            f"append_only={is_append_only} polymorphic={is_polymorphic}"
        )
        return enriched

    def detect_all(self, tables: Sequence[TableDescriptor]) -> List[TableDescriptor]:
        """Mark history tables, then detect patterns table by table"""
        return [self.detect(table) for table in mark_history_tables(tables)]

    def _detect_polymorphic_owner(
        self,
        table: TableDescriptor,
        effective: SchemaToolsConfig,
    ) -> Optional[PolymorphicOwner]:
        for pattern in effective.columns.polymorphic_patterns:
            type_column = table.get_column(pattern.type_column)
            id_column = table.get_column(pattern.id_column)
            if type_column and id_column:
                return PolymorphicOwner(
                    type_column=type_column.name,
                    id_column=id_column.name,
                    allowed_types=tuple(extract_allowed_types(table, type_column.name)),
                )
        return None

    def _wire_audit_columns(
        self,
        table: TableDescriptor,
        effective: SchemaToolsConfig,
    ) -> Tuple[ColumnDescriptor, ...]:
        """Give created-by/updated-by columns an implicit FK to the audit table"""
        cols = effective.columns
        audit_table = cols.audit_foreign_key_table
        if not audit_table:
            return table.columns

        audit_names = {cols.created_by.lower(), cols.updated_by.lower()}
        wired: List[ColumnDescriptor] = []
        for column in table.columns:
            if column.name.lower() in audit_names and column.foreign_key is None:
                column = replace(
                    column,
                    foreign_key=ColumnRef(table=audit_table, column="id", schema=effective.default_schema),
                )
            wired.append(column)
        return tuple(wired)
