"""
Schema Validation

Checks enriched descriptors for structural problems. Nothing here raises:
every finding is collected so a single run reports all of them. Messages
are prefixed with the table they concern, and each one is also recorded as
a coded ``Diagnostic``.

Toggled checks (foreign keys, polymorphic, temporal, audit, naming) follow
the effective configuration of each table. Primary keys, circular foreign
keys, soft-delete consistency and unique constraints are always checked.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .analysis.analyzer import AnalysisResult
from .config import SchemaToolsConfig
from .models import GeneratedAlways, TableDescriptor
from .utils.diagnostics import Diagnostic, DiagnosticCode, Severity, SourceLocation
from .utils.logging import get_logger, log_operation

logger = get_logger(__name__)

SNAKE_CASE = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass
class ValidationReport:
    """Accumulated validation findings"""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    treat_warnings_as_errors: bool = False

    @property
    def is_valid(self) -> bool:
        if self.errors:
            return False
        return not (self.treat_warnings_as_errors and self.warnings)

    @property
    def blocks_generation(self) -> bool:
        """Dependency cycles are reported but the acyclic remainder is still generated"""
        if any(
            d.is_error and d.code != DiagnosticCode.CIRCULAR_FOREIGN_KEY
            for d in self.diagnostics
        ):
            return True
        return self.treat_warnings_as_errors and bool(self.warnings)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class SchemaValidator:
    """
    Runs every validation check over an analysis result.

    Usage:
        report = SchemaValidator(config).validate(analysis)
        if not report.is_valid:
            for message in report.errors:
                print(message)
    """

    def __init__(self, config: SchemaToolsConfig):
        self.config = config
        self._report = ValidationReport()

    def validate(self, analysis: AnalysisResult) -> ValidationReport:
        self._report = ValidationReport(
            treat_warnings_as_errors=self.config.validation.treat_warnings_as_errors,
        )

        with log_operation(logger, "validate_schema", tables=len(analysis.tables)) as ctx:
            for table in analysis.tables:
                effective = self.config.resolve_for_table(table.name, table.category)
                checks = effective.validation

                if checks.validate_foreign_keys:
                    self._check_foreign_keys(table, analysis)
                if checks.validate_polymorphic:
                    self._check_polymorphic(table)
                if checks.validate_temporal:
                    self._check_temporal(table, effective)
                if checks.validate_audit_columns:
                    self._check_audit_columns(table, effective)
                if checks.enforce_naming_conventions:
                    self._check_naming(table)

                self._check_primary_key(table)
                self._check_soft_delete_consistency(table)
                self._check_unique_constraints(table, effective)
                self._check_category(table)

            self._check_cycles(analysis)

            ctx['errors'] = len(self._report.errors)
            ctx['warnings'] = len(self._report.warnings)

        report = self._report
        if report.is_valid:
            logger.info(f"Schema valid ({len(report.warnings)} warning(s))")
        else:
            logger.warning(
                f"Schema invalid: {len(report.errors)} error(s), {len(report.warnings)} warning(s)"
            )
        return report

    # -- recording ------------------------------------------------------

    def _add(self, severity: Severity, code: str, message: str, table: Optional[TableDescriptor]) -> None:
        location = SourceLocation(table.source_file) if table is not None and table.source_file else None
        self._report.diagnostics.append(Diagnostic(severity, code, message, location))
        if severity == Severity.ERROR:
            self._report.errors.append(message)
        else:
            self._report.warnings.append(message)

    def _error(self, table: TableDescriptor, code: str, message: str) -> None:
        self._add(Severity.ERROR, code, f"{table.name}: {message}", table)

    def _warning(self, table: TableDescriptor, code: str, message: str) -> None:
        self._add(Severity.WARNING, code, f"{table.name}: {message}", table)

    # -- toggled checks -------------------------------------------------

    def _check_foreign_keys(self, table: TableDescriptor, analysis: AnalysisResult) -> None:
        for fk in table.foreign_keys:
            name = fk.name or "<unnamed>"
            referenced = analysis.get_table(fk.referenced_table)
            if referenced is None:
                self._error(
                    table, DiagnosticCode.FOREIGN_KEY_TARGET,
                    f"FK '{name}' references non-existent table '{fk.referenced_table}'",
                )
            else:
                for column in fk.referenced_columns:
                    if not referenced.has_column(column):
                        self._error(
                            table, DiagnosticCode.FOREIGN_KEY_TARGET,
                            f"FK '{name}' references non-existent column '{column}' "
                            f"in table '{fk.referenced_table}'",
                        )

            if len(fk.columns) != len(fk.referenced_columns):
                self._error(
                    table, DiagnosticCode.FOREIGN_KEY_TARGET,
                    f"FK '{name}' has mismatched column counts "
                    f"({len(fk.columns)} vs {len(fk.referenced_columns)})",
                )

    def _check_polymorphic(self, table: TableDescriptor) -> None:
        if not table.is_polymorphic:
            return
        code = DiagnosticCode.POLYMORPHIC_STRUCTURE

        if table.is_history_table:
            self._error(table, code, "History table must not carry polymorphic metadata")
            return

        owner = table.polymorphic_owner
        if owner is None:
            self._error(table, code, "Marked as polymorphic but missing PolymorphicOwner metadata")
            return

        if not table.has_column(owner.type_column):
            self._error(table, code, f"Polymorphic type column '{owner.type_column}' not found")
        if not table.has_column(owner.id_column):
            self._error(table, code, f"Polymorphic id column '{owner.id_column}' not found")

        if not owner.allowed_types:
            self._warning(table, code, "Polymorphic table has no allowed types defined in CHECK constraint")

        type_column = owner.type_column.lower()
        if not any(type_column in cc.expression.lower() for cc in table.check_constraints):
            self._error(table, code, f"Polymorphic table missing CHECK constraint on '{owner.type_column}'")

    def _check_temporal(self, table: TableDescriptor, effective: SchemaToolsConfig) -> None:
        if not table.has_temporal_versioning:
            return
        code = DiagnosticCode.TEMPORAL_STRUCTURE
        cols = effective.columns

        for name, marker, label in (
            (cols.valid_from, GeneratedAlways.ROW_START, "ROW START"),
            (cols.valid_to, GeneratedAlways.ROW_END, "ROW END"),
        ):
            column = table.get_column(name)
            if column is None:
                self._error(table, code, f"Temporal table missing '{name}' column")
            elif column.generated_always != marker:
                self._error(table, code, f"'{name}' must be GENERATED ALWAYS AS {label}")

        if not table.history_table:
            self._warning(table, code, "Temporal table missing history table specification")

    def _check_audit_columns(self, table: TableDescriptor, effective: SchemaToolsConfig) -> None:
        if table.is_history_table:
            return
        code = DiagnosticCode.AUDIT_COLUMNS
        cols = effective.columns

        if table.is_append_only:
            if not table.has_column(cols.created_at):
                self._warning(table, code, f"Append-only table missing '{cols.created_at}' column")
            if table.has_column(cols.updated_by):
                self._warning(table, code, f"Append-only table should not have '{cols.updated_by}' column")
            return

        for required in (cols.created_by, cols.updated_by):
            if not table.has_column(required):
                self._error(table, code, f"Missing required '{required}' column")

    def _check_naming(self, table: TableDescriptor) -> None:
        code = DiagnosticCode.NAMING_CONVENTION

        if not SNAKE_CASE.match(table.name):
            self._warning(table, code, "Table name should be lowercase snake_case (e.g., 'table_name')")

        for column in table.columns:
            if not SNAKE_CASE.match(column.name):
                self._add(
                    Severity.WARNING, code,
                    f"{table.name}.{column.name}: Column name should be lowercase snake_case",
                    table,
                )

        prefix = f"fk_{table.name}_"
        for fk in table.foreign_keys:
            if fk.name and not fk.name.startswith(prefix):
                self._warning(table, code, f"FK '{fk.name}' should start with '{prefix}'")

        expected = f"pk_{table.name}"
        if table.primary_key_name and table.primary_key_name != expected:
            self._warning(
                table, code,
                f"PK should be named '{expected}', found '{table.primary_key_name}'",
            )

    # -- always-on checks -----------------------------------------------

    def _check_primary_key(self, table: TableDescriptor) -> None:
        # History tables carry no primary key
        if table.is_history_table:
            return

        if not table.primary_key_columns:
            self._error(table, DiagnosticCode.MISSING_PRIMARY_KEY, "Table has no primary key defined")
            return

        for column in table.primary_key_columns:
            if not table.has_column(column):
                self._error(
                    table, DiagnosticCode.MISSING_PRIMARY_KEY,
                    f"Primary key column '{column}' not found in table",
                )

    def _check_cycles(self, analysis: AnalysisResult) -> None:
        for cycle in analysis.graph.find_cycles():
            self._add(
                Severity.ERROR,
                DiagnosticCode.CIRCULAR_FOREIGN_KEY,
                f"Circular foreign key dependency detected: {' -> '.join(cycle)}",
                analysis.get_table(cycle[0]),
            )

    def _check_soft_delete_consistency(self, table: TableDescriptor) -> None:
        if not table.has_soft_delete:
            return
        code = DiagnosticCode.SOFT_DELETE_CONSISTENCY
        if not table.has_active_column:
            self._error(table, code, "Marked as HasSoftDelete but HasActiveColumn is false")
        if not table.has_temporal_versioning:
            self._error(table, code, "Marked as HasSoftDelete but HasTemporalVersioning is false")

    def _check_unique_constraints(self, table: TableDescriptor, effective: SchemaToolsConfig) -> None:
        code = DiagnosticCode.UNIQUE_CONSTRAINT
        active = table.active_column_name or effective.columns.active

        for constraint in table.unique_constraints:
            name = constraint.name or "<unnamed>"
            for column in constraint.columns:
                if not table.has_column(column):
                    self._error(
                        table, code,
                        f"Unique constraint '{name}' references non-existent column '{column}'",
                    )

            predicate = constraint.filter_predicate
            if table.has_soft_delete and predicate and active.lower() not in predicate.lower():
                self._warning(
                    table, code,
                    f"Filtered unique constraint '{name}' should filter on "
                    f"'{active} = {effective.columns.active_value}' for soft delete tables",
                )

    def _check_category(self, table: TableDescriptor) -> None:
        categories = self.config.categories
        if categories and table.category and table.category not in categories:
            self._warning(
                table, DiagnosticCode.ANNOTATION_UNKNOWN,
                f"Unknown category '{table.category}'",
            )
