"""
Purge Procedure Generator

Generates one stored procedure that hard-deletes soft-deleted rows once
they have been inactive for longer than a grace period. Tables are
processed children-first so foreign keys never block a delete.
"""
from __future__ import annotations

from typing import List, Optional

from ..analysis.analyzer import AnalysisResult
from ..config import SchemaToolsConfig, SoftDeleteMode
from ..models import TableDescriptor
from ..utils.diagnostics import Diagnostic, DiagnosticCode, OperationResult
from ..utils.logging import get_logger
from .base import ArtifactKind, SqlArtifact
from .sql import column_equalities, create_keyword, header, literal, qualified, qualify_reference, quote

logger = get_logger(__name__)


def is_purgeable(table: TableDescriptor) -> bool:
    return table.has_soft_delete and table.soft_delete_mode != SoftDeleteMode.IGNORE


def uses_history(table: TableDescriptor) -> bool:
    return bool(table.history_table) and table.has_temporal_versioning


class PurgeProcedureGenerator:
    """
    Builds the purge procedure artifact.

    Usage:
        result = PurgeProcedureGenerator(config).generate(analysis)
        if result.value:
            writer.write_all([result.value])
    """

    def __init__(self, config: SchemaToolsConfig):
        self.config = config
        self.version = config.get_sql_server_version()
        self.schema = config.default_schema
        self.procedure_name = config.purge.procedure_name
        self.active = literal(config.columns.active_value)
        self.inactive = literal(config.columns.inactive_value)

    def deletion_order(self, analysis: AnalysisResult) -> OperationResult[List[TableDescriptor]]:
        return analysis.graph.children_first_order(include=is_purgeable)

    def generate(self, analysis: AnalysisResult) -> OperationResult[Optional[SqlArtifact]]:
        """
        Returns no artifact when purging is disabled or nothing qualifies.
        Cycle warnings from the ordering are carried through.
        """
        if not self.config.purge.enabled:
            logger.info("Purge procedure disabled in configuration")
            return OperationResult.success(None)

        ordered = self.deletion_order(analysis)
        diagnostics = list(ordered.diagnostics)
        tables = []
        for table in ordered.value:
            # history rows are matched back on the primary key
            if uses_history(table) and not table.primary_key_columns:
                diagnostics.append(Diagnostic.warning(
                    DiagnosticCode.GENERATION_NO_PRIMARY_KEY,
                    f"{table.name}: no primary key, excluded from purge procedure",
                ))
                continue
            tables.append(table)

        if not tables:
            logger.info("No soft-delete tables, purge procedure not generated")
            return OperationResult.with_warnings(None, diagnostics)

        artifact = SqlArtifact(
            name=self.procedure_name,
            kind=ArtifactKind.PURGE_PROCEDURE,
            sql=self.render(tables),
            schema=self.schema,
        )
        logger.info(f"Prepared purge procedure over {len(tables)} table(s)")
        return OperationResult.with_warnings(artifact, diagnostics)

    def render(self, deletion_order: List[TableDescriptor]) -> str:
        proc = qualified(self.schema, self.procedure_name)
        grace = self.config.purge.default_grace_period_days
        batch = self.config.purge.default_batch_size

        details = [
            "Purpose:",
            "  Hard-deletes soft-deleted records that have exceeded the grace period.",
            "  Deletes in FK-safe order (children before parents).",
            "",
            f"Tables processed ({len(deletion_order)}):",
            *[f"  {i}. {table.name}" for i, table in enumerate(deletion_order, start=1)],
            "",
            "Parameters:",
            f"  @grace_period_days: days after soft-delete before hard-delete (default: {grace})",
            f"  @batch_size: maximum rows per table per execution (default: {batch}, 0 = unlimited)",
            "  @dry_run: if 1, reports what would be deleted without deleting",
            "",
            "Usage:",
            f"  EXEC {proc};",
            f"  EXEC {proc} @grace_period_days = 30;",
            f"  EXEC {proc} @dry_run = 1;",
        ]

        lines = [
            header("Purge Soft-Deleted Records Procedure", details),
            "",
            f"{create_keyword(self.version)} PROCEDURE {proc}",
            f"    @grace_period_days INT = {grace},",
            f"    @batch_size INT = {batch},",
            "    @dry_run BIT = 0",
            "AS",
            "BEGIN",
            "    SET NOCOUNT ON;",
            "    SET XACT_ABORT ON;",
            "",
            "    DECLARE @cutoff_date DATETIME2 = DATEADD(DAY, -@grace_period_days, SYSUTCDATETIME());",
            "    DECLARE @deleted_count INT;",
            "    DECLARE @total_deleted INT = 0;",
            "    DECLARE @start_time DATETIME2 = SYSUTCDATETIME();",
            "",
            "    IF @batch_size IS NULL OR @batch_size <= 0",
            "        SET @batch_size = 2147483647;",
            "",
            "    CREATE TABLE #purge_results (",
            "        table_name NVARCHAR(128),",
            "        records_deleted INT,",
            "        execution_order INT",
            "    );",
            "",
            "    IF @dry_run = 1",
            "    BEGIN",
            "        PRINT 'DRY RUN MODE - No records will be deleted';",
            "        PRINT 'Cutoff date: ' + CONVERT(VARCHAR(30), @cutoff_date, 120);",
            "    END",
            "",
            "    BEGIN TRY",
            "        IF @dry_run = 0",
            "            BEGIN TRANSACTION;",
        ]

        for position, table in enumerate(deletion_order, start=1):
            lines.append("")
            lines.append(f"        -- {position}. {table.qualified_name}")
            lines.extend(self._table_block(table, capped=position > 1))
            lines.extend([
                "",
                "        INSERT INTO #purge_results (table_name, records_deleted, execution_order)",
                f"        VALUES (N'{table.name}', @deleted_count, {position});",
                "",
                "        SET @total_deleted = @total_deleted + @deleted_count;",
            ])

        lines.extend([
            "",
            "        IF @dry_run = 0",
            "            COMMIT TRANSACTION;",
            "",
            "        SELECT",
            "            table_name AS [Table],",
            "            records_deleted AS [Records Deleted],",
            "            execution_order AS [Order]",
            "        FROM #purge_results",
            "        WHERE records_deleted > 0",
            "        ORDER BY execution_order;",
            "",
            "        SELECT",
            "            @total_deleted AS [Total Records Deleted],",
            "            DATEDIFF(MILLISECOND, @start_time, SYSUTCDATETIME()) AS [Duration (ms)],",
            "            @grace_period_days AS [Grace Period (days)],",
            "            @cutoff_date AS [Cutoff Date],",
            "            CASE WHEN @dry_run = 1 THEN 'DRY RUN' ELSE 'EXECUTED' END AS [Mode];",
            "    END TRY",
            "    BEGIN CATCH",
            "        IF @@TRANCOUNT > 0",
            "            ROLLBACK TRANSACTION;",
            "",
            "        DECLARE @error_msg NVARCHAR(4000) = ERROR_MESSAGE();",
            "        DECLARE @error_severity INT = ERROR_SEVERITY();",
            "        DECLARE @error_state INT = ERROR_STATE();",
            "",
            "        RAISERROR(@error_msg, @error_severity, @error_state);",
            "    END CATCH",
            "",
            f"    {self._drop_temp_table()}",
            "END;",
            "GO",
            "",
        ])
        return "\n".join(lines)

    def _drop_temp_table(self) -> str:
        # DROP ... IF EXISTS arrived with SQL Server 2016 (130)
        if self.version.level >= 130:
            return "DROP TABLE IF EXISTS #purge_results;"
        return "IF OBJECT_ID('tempdb..#purge_results') IS NOT NULL DROP TABLE #purge_results;"

    def _table_block(self, table: TableDescriptor, capped: bool) -> List[str]:
        target = table.qualified_name
        active = quote(table.active_column_name)
        valid_to = quote(table.valid_to_column)
        top = " TOP (@batch_size)" if capped else ""

        if uses_history(table):
            history = qualify_reference(table.history_table, table.schema)
            pk_columns = table.primary_key_columns
            eligibility = [
                f"            WHERE t.{active} = {self.inactive}",
                "            AND EXISTS (",
                f"                SELECT 1 FROM {history} h",
                f"                WHERE {column_equalities('t', pk_columns, 'h')}",
                f"                AND h.{active} = {self.active}",
                f"                AND h.{valid_to} <= @cutoff_date",
                "            );",
            ]
            return [
                "        IF @dry_run = 1",
                "        BEGIN",
                "            SELECT @deleted_count = COUNT(*)",
                f"            FROM {target} t",
                *eligibility,
                "        END",
                "        ELSE",
                "        BEGIN",
                f"            DELETE{top} t",
                f"            FROM {target} t",
                *eligibility,
                "            SET @deleted_count = @@ROWCOUNT;",
                "        END",
            ]

        return [
            f"        -- Warning: No history table detected - using {table.valid_to_column} approximation",
            "        IF @dry_run = 1",
            "        BEGIN",
            "            SELECT @deleted_count = COUNT(*)",
            f"            FROM {target}",
            f"            WHERE {active} = {self.inactive}",
            f"            AND {valid_to} <= @cutoff_date;",
            "        END",
            "        ELSE",
            "        BEGIN",
            f"            DELETE{top} FROM {target}",
            f"            WHERE {active} = {self.inactive}",
            f"            AND {valid_to} <= @cutoff_date;",
            "            SET @deleted_count = @@ROWCOUNT;",
            "        END",
        ]
