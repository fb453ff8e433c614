"""
Soft-Delete Trigger Generator

Produces up to four AFTER UPDATE triggers per soft-delete table:

- cascade soft delete (parent, mode Cascade): propagates an active ->
  inactive transition, and the acting user, to active child rows
- restrict soft delete (parent, mode Restrict): aborts the transition
  while active child rows still reference the row
- reactivation guard (child): aborts an inactive -> active transition
  while a referenced soft-delete parent row is inactive
- cascade reactivation (parent, opt-in): reactivates child rows whose
  deactivation timestamp lies within a tolerance of the parent's

Rows are matched between ``inserted`` and ``deleted`` on the primary key.
Single-column keys join on one equality, composite keys on an AND-chain.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..analysis.analyzer import AnalysisResult
from ..config import SchemaToolsConfig, SoftDeleteMode
from ..models import ForeignKeyRef, TableDescriptor, unqualified_name
from ..utils.diagnostics import Diagnostic, DiagnosticCode, OperationResult
from ..utils.logging import get_logger
from .base import ArtifactKind, SqlArtifact
from .sql import (
    column_equalities,
    create_keyword,
    header,
    literal,
    qualified,
    quote,
    raise_error,
)

logger = get_logger(__name__)

Relation = Tuple[TableDescriptor, ForeignKeyRef]

INDENT = "    "

RESTRICT_ERROR_NUMBER = 50001
GUARD_ERROR_NUMBER = 50002


def trigger_name(table_name: str, kind: ArtifactKind) -> str:
    return f"trg_{table_name}_{kind.value}"


def referenced_columns(fk: ForeignKeyRef, parent: TableDescriptor) -> Tuple[str, ...]:
    """Referenced columns, defaulting to the parent's primary key"""
    return fk.referenced_columns or parent.primary_key_columns


def soft_delete_children(analysis: AnalysisResult, parent: TableDescriptor) -> List[Relation]:
    """(child, fk) pairs for every soft-delete table referencing ``parent``"""
    relations = []
    for table in analysis.tables:
        if not table.has_soft_delete:
            continue
        for fk in table.foreign_keys:
            if unqualified_name(fk.referenced_table).lower() == parent.key:
                relations.append((table, fk))
    return relations


def soft_delete_parents(analysis: AnalysisResult, child: TableDescriptor) -> List[Relation]:
    """(parent, fk) pairs for every soft-delete table ``child`` references, itself excluded"""
    relations = []
    for fk in child.foreign_keys:
        parent = analysis.get_table(fk.referenced_table)
        if parent is None or parent.key == child.key:
            continue
        if parent.has_soft_delete:
            relations.append((parent, fk))
    return relations


class TriggerGenerator:
    """
    Builds trigger artifacts for every soft-delete table.

    Usage:
        result = TriggerGenerator(config).generate(analysis)
        writer.write_all(result.value)
    """

    def __init__(self, config: SchemaToolsConfig):
        self.config = config
        self.version = config.get_sql_server_version()
        self.active = literal(config.columns.active_value)
        self.inactive = literal(config.columns.inactive_value)

    def generate(self, analysis: AnalysisResult) -> OperationResult[List[SqlArtifact]]:
        artifacts: List[SqlArtifact] = []
        diagnostics: List[Diagnostic] = []

        for table in analysis.tables:
            if not table.has_soft_delete or table.soft_delete_mode == SoftDeleteMode.IGNORE:
                continue

            if not table.primary_key_columns:
                diagnostics.append(Diagnostic.warning(
                    DiagnosticCode.GENERATION_NO_PRIMARY_KEY,
                    f"{table.name}: no primary key, soft-delete triggers not generated",
                ))
                continue

            children = [
                (child, fk) for child, fk in soft_delete_children(analysis, table)
                if self._joinable(child, fk, table, diagnostics)
            ]
            if children:
                if table.soft_delete_mode == SoftDeleteMode.CASCADE:
                    artifacts.append(self.cascade_trigger(table, children))
                elif table.soft_delete_mode == SoftDeleteMode.RESTRICT:
                    artifacts.append(self.restrict_trigger(table, children))
                if table.reactivation_cascade:
                    artifacts.append(self.reactivation_cascade_trigger(table, children))

            effective = self.config.resolve_for_table(table.name, table.category)
            if effective.features.generate_reactivation_guards:
                parents = [
                    (parent, fk) for parent, fk in soft_delete_parents(analysis, table)
                    if self._joinable(table, fk, parent, diagnostics)
                ]
                if parents:
                    artifacts.append(self.reactivation_guard(table, parents))

        logger.info(f"Prepared {len(artifacts)} trigger(s)")
        if diagnostics:
            return OperationResult.with_warnings(artifacts, diagnostics)
        return OperationResult.success(artifacts)

    # ------------------------------------------------------------------
    # Artifact builders
    # ------------------------------------------------------------------

    def cascade_trigger(self, parent: TableDescriptor, children: Sequence[Relation]) -> SqlArtifact:
        name = trigger_name(parent.name, ArtifactKind.CASCADE_TRIGGER)
        body: List[str] = []
        for child, fk in children:
            body.extend(self._cascade_update(parent, child, fk, deactivate=True))
            body.append("")
        return self._artifact(
            parent, name, ArtifactKind.CASCADE_TRIGGER,
            "Cascade Soft Delete Trigger",
            [
                f"Table: {parent.qualified_name}",
                "When a row is deactivated, deactivates active rows in:",
                *[f"  - {child.qualified_name} ({', '.join(fk.columns)})" for child, fk in children],
            ],
            body,
        )

    def restrict_trigger(self, parent: TableDescriptor, children: Sequence[Relation]) -> SqlArtifact:
        name = trigger_name(parent.name, ArtifactKind.RESTRICT_TRIGGER)
        parent_active = quote(parent.active_column_name)
        body: List[str] = []
        for child, fk in children:
            child_active = quote(child.active_column_name)
            message = (
                f"Cannot deactivate {parent.qualified_name}: active rows in "
                f"{child.qualified_name} still reference it."
            )
            body.extend([
                f"{INDENT}-- Block while {child.qualified_name} ({', '.join(fk.columns)}) has active rows",
                f"{INDENT}IF EXISTS (",
                f"{INDENT}    SELECT 1",
                f"{INDENT}    FROM inserted AS i",
                f"{INDENT}    INNER JOIN deleted AS d ON {self._pk_join(parent)}",
                f"{INDENT}    INNER JOIN {child.qualified_name} AS child"
                f" ON {column_equalities('child', fk.columns, 'i', referenced_columns(fk, parent))}",
                f"{INDENT}    WHERE d.{parent_active} = {self.active}",
                f"{INDENT}      AND i.{parent_active} = {self.inactive}",
                f"{INDENT}      AND child.{child_active} = {self.active}",
                f"{INDENT})",
                f"{INDENT}BEGIN",
                *raise_error(self.version, RESTRICT_ERROR_NUMBER, message, INDENT * 2),
                f"{INDENT}END",
                "",
            ])
        return self._artifact(
            parent, name, ArtifactKind.RESTRICT_TRIGGER,
            "Restrict Soft Delete Trigger",
            [
                f"Table: {parent.qualified_name}",
                "Rejects deactivation while active rows exist in:",
                *[f"  - {child.qualified_name} ({', '.join(fk.columns)})" for child, fk in children],
            ],
            body,
        )

    def reactivation_guard(self, child: TableDescriptor, parents: Sequence[Relation]) -> SqlArtifact:
        name = trigger_name(child.name, ArtifactKind.REACTIVATION_GUARD)
        child_active = quote(child.active_column_name)
        body: List[str] = []
        for parent, fk in parents:
            parent_active = quote(parent.active_column_name)
            message = (
                f"Cannot reactivate {child.qualified_name}: referenced row in "
                f"{parent.qualified_name} is inactive."
            )
            body.extend([
                f"{INDENT}-- Parent {parent.qualified_name} via ({', '.join(fk.columns)})",
                f"{INDENT}IF EXISTS (",
                f"{INDENT}    SELECT 1",
                f"{INDENT}    FROM inserted AS i",
                f"{INDENT}    INNER JOIN deleted AS d ON {self._pk_join(child)}",
                f"{INDENT}    INNER JOIN {parent.qualified_name} AS parent"
                f" ON {column_equalities('parent', referenced_columns(fk, parent), 'i', fk.columns)}",
                f"{INDENT}    WHERE d.{child_active} = {self.inactive}",
                f"{INDENT}      AND i.{child_active} = {self.active}",
                f"{INDENT}      AND parent.{parent_active} = {self.inactive}",
                f"{INDENT})",
                f"{INDENT}BEGIN",
                *raise_error(self.version, GUARD_ERROR_NUMBER, message, INDENT * 2),
                f"{INDENT}END",
                "",
            ])
        return self._artifact(
            child, name, ArtifactKind.REACTIVATION_GUARD,
            "Reactivation Guard Trigger",
            [
                f"Table: {child.qualified_name}",
                "Rejects reactivation while any of these parents is inactive:",
                *[f"  - {parent.qualified_name} ({', '.join(fk.columns)})" for parent, fk in parents],
            ],
            body,
        )

    def reactivation_cascade_trigger(self, parent: TableDescriptor, children: Sequence[Relation]) -> SqlArtifact:
        name = trigger_name(parent.name, ArtifactKind.REACTIVATION_CASCADE)
        body: List[str] = []
        for child, fk in children:
            body.extend(self._cascade_update(parent, child, fk, deactivate=False))
            body.append("")
        tolerance = parent.reactivation_cascade_tolerance_ms
        return self._artifact(
            parent, name, ArtifactKind.REACTIVATION_CASCADE,
            "Cascade Reactivation Trigger",
            [
                f"Table: {parent.qualified_name}",
                "When a row is reactivated, reactivates inactive child rows whose",
                f"deactivation happened within {tolerance}ms of the parent's own.",
                "Matching is by timestamp proximity: no identifier links the",
                "original cascade, so concurrent deactivations can over- or under-match.",
                *[f"  - {child.qualified_name} ({', '.join(fk.columns)})" for child, fk in children],
            ],
            body,
        )

    # ------------------------------------------------------------------
    # Fragments
    # ------------------------------------------------------------------

    def _joinable(
        self,
        child: TableDescriptor,
        fk: ForeignKeyRef,
        parent: TableDescriptor,
        diagnostics: List[Diagnostic],
    ) -> bool:
        """False, with a warning, when the key columns cannot be paired up"""
        target = referenced_columns(fk, parent)
        if len(fk.columns) == len(target):
            return True
        diagnostic = Diagnostic.warning(
            DiagnosticCode.GENERATION_FK_MISMATCH,
            f"{child.name}: FK '{fk.name or '<unnamed>'}' has {len(fk.columns)} column(s) "
            f"but {parent.name} is referenced by {len(target)}, relation skipped",
        )
        if diagnostic not in diagnostics:
            diagnostics.append(diagnostic)
        return False

    def _pk_join(self, table: TableDescriptor) -> str:
        return column_equalities("i", table.primary_key_columns, "d")

    def _updated_by(self, table: TableDescriptor) -> Optional[str]:
        effective = self.config.resolve_for_table(table.name, table.category)
        column = table.get_column(effective.columns.updated_by)
        return quote(column.name) if column else None

    def _cascade_update(
        self,
        parent: TableDescriptor,
        child: TableDescriptor,
        fk: ForeignKeyRef,
        deactivate: bool,
    ) -> List[str]:
        """
        UPDATE propagating a parent transition to one child relation.

        ``deactivate`` selects active -> inactive propagation; otherwise
        inactive -> active propagation limited by the tolerance window.
        """
        parent_active = quote(parent.active_column_name)
        child_active = quote(child.active_column_name)
        before, after = (self.active, self.inactive) if deactivate else (self.inactive, self.active)

        parent_updated_by = self._updated_by(parent)
        child_updated_by = self._updated_by(child)
        fk_join = column_equalities("child", fk.columns, "i", referenced_columns(fk, parent))

        conditions = [
            f"d.{parent_active} = {before}",
            f"i.{parent_active} = {after}",
        ]
        if not deactivate:
            tolerance = parent.reactivation_cascade_tolerance_ms
            conditions.append(
                f"child.{quote(child.valid_from_column)} BETWEEN "
                f"DATEADD(MILLISECOND, -{tolerance}, d.{quote(parent.valid_from_column)}) AND "
                f"DATEADD(MILLISECOND, {tolerance}, d.{quote(parent.valid_from_column)})"
            )

        verb = "Cascade" if deactivate else "Reactivate"
        lines = [f"{INDENT}-- {verb} {child.qualified_name} ({', '.join(fk.columns)})"]

        if not fk.is_composite:
            lines.extend([
                f"{INDENT}UPDATE child",
                f"{INDENT}SET child.{child_active} = {after}"
                + ("," if parent_updated_by and child_updated_by else ""),
            ])
            if parent_updated_by and child_updated_by:
                lines.append(f"{INDENT}    child.{child_updated_by} = i.{parent_updated_by}")
            lines.extend([
                f"{INDENT}FROM {child.qualified_name} AS child",
                f"{INDENT}INNER JOIN inserted AS i ON {fk_join}",
                f"{INDENT}INNER JOIN deleted AS d ON {self._pk_join(parent)}",
                f"{INDENT}WHERE {conditions[0]}",
                *[f"{INDENT}  AND {c}" for c in conditions[1:]],
                f"{INDENT}  AND child.{child_active} = {before};",
            ])
            return lines

        # composite foreign key: correlated EXISTS
        lines.extend([
            f"{INDENT}UPDATE child",
            f"{INDENT}SET child.{child_active} = {after}"
            + ("," if parent_updated_by and child_updated_by else ""),
        ])
        if parent_updated_by and child_updated_by:
            lines.extend([
                f"{INDENT}    child.{child_updated_by} = (",
                f"{INDENT}        SELECT TOP (1) i.{parent_updated_by}",
                f"{INDENT}        FROM inserted AS i",
                f"{INDENT}        WHERE {fk_join}",
                f"{INDENT}    )",
            ])
        lines.extend([
            f"{INDENT}FROM {child.qualified_name} AS child",
            f"{INDENT}WHERE child.{child_active} = {before}",
            f"{INDENT}  AND EXISTS (",
            f"{INDENT}      SELECT 1",
            f"{INDENT}      FROM inserted AS i",
            f"{INDENT}      INNER JOIN deleted AS d ON {self._pk_join(parent)}",
            f"{INDENT}      WHERE {conditions[0]}",
            *[f"{INDENT}        AND {c}" for c in conditions[1:]],
            f"{INDENT}        AND {fk_join}",
            f"{INDENT}  );",
        ])
        return lines

    def _artifact(
        self,
        table: TableDescriptor,
        name: str,
        kind: ArtifactKind,
        title: str,
        details: Sequence[str],
        body: Sequence[str],
    ) -> SqlArtifact:
        active_column = quote(table.active_column_name)
        lines = [
            header(title, details),
            "",
            f"{create_keyword(self.version)} TRIGGER {qualified(table.schema, name)}",
            f"ON {table.qualified_name}",
            "AFTER UPDATE",
            "AS",
            "BEGIN",
            f"{INDENT}SET NOCOUNT ON;",
            "",
            f"{INDENT}IF NOT UPDATE({active_column}) OR NOT EXISTS (SELECT 1 FROM inserted)",
            f"{INDENT}    RETURN;",
            "",
            *body,
            "END;",
            "GO",
            "",
        ]
        return SqlArtifact(
            name=name,
            kind=kind,
            sql="\n".join(lines),
            schema=table.schema,
            table=table.name,
        )
