"""
Unit Tests for the Purge Procedure Generator
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_tools.config import SchemaToolsConfig, config_from_dict
from schema_tools.generation import ArtifactKind, PurgeProcedureGenerator
from schema_tools.utils.diagnostics import DiagnosticCode

from conftest import analyze, fk, history_table, plain_table, soft_delete_table


def _generate(tables, config=None):
    config = config or SchemaToolsConfig()
    return PurgeProcedureGenerator(config).generate(analyze(tables, config))


class TestPurgeArtifact:
    """Tests for artifact selection"""

    def test_artifact_identity(self, users_orders):
        """Test name, kind and schema of the procedure"""
        artifact = _generate(users_orders).value
        assert artifact.name == "usp_purge_soft_deleted"
        assert artifact.kind == ArtifactKind.PURGE_PROCEDURE
        assert artifact.file_name == "usp_purge_soft_deleted.sql"
        assert artifact.schema == "dbo"

    def test_no_soft_delete_tables(self):
        """Test no artifact when nothing is soft-delete"""
        result = _generate([plain_table("countries")])
        assert result.is_success
        assert result.value is None

    def test_disabled(self, users_orders):
        """Test purge.enabled=false produces nothing"""
        config = config_from_dict({"purge": {"enabled": False}})
        assert _generate(users_orders, config).value is None

    def test_ignore_tables_excluded(self, users_orders):
        """Test Ignore-mode tables are not purged"""
        config = config_from_dict({"overrides": {"users": {"features": {"softDeleteMode": "Ignore"}}}})
        sql = _generate(users_orders, config).value.sql
        assert "[dbo].[users]" not in sql
        assert "[dbo].[orders]" in sql

    def test_custom_name_and_schema(self, users_orders):
        """Test configured procedure name and default schema"""
        config = config_from_dict({"defaultSchema": "ops", "purge": {"procedureName": "usp_cleanup"}})
        artifact = _generate(users_orders, config).value
        assert artifact.schema == "ops"
        assert "PROCEDURE [ops].[usp_cleanup]" in artifact.sql


class TestPurgeBody:
    """Tests for the generated procedure text"""

    @pytest.fixture
    def sql(self, users_orders):
        return _generate(users_orders).value.sql

    def test_signature(self, sql):
        """Test parameters and defaults"""
        assert "CREATE OR ALTER PROCEDURE [dbo].[usp_purge_soft_deleted]" in sql
        assert "@grace_period_days INT = 90," in sql
        assert "@batch_size INT = 1000," in sql
        assert "@dry_run BIT = 0" in sql

    def test_session_settings(self, sql):
        """Test NOCOUNT and XACT_ABORT are set"""
        assert "SET NOCOUNT ON;" in sql
        assert "SET XACT_ABORT ON;" in sql

    def test_children_deleted_first(self, sql):
        """Test deletion order is children before parents"""
        items = sql.index("-- 1. [dbo].[order_items]")
        orders = sql.index("-- 2. [dbo].[orders]")
        users = sql.index("-- 3. [dbo].[users]")
        assert items < orders < users

    def test_history_eligibility(self, sql):
        """Test rows qualify through the history table's last active version"""
        assert "FROM [dbo].[users_history] h" in sql
        assert "WHERE t.[id] = h.[id]" in sql
        assert "AND h.[record_active] = 1" in sql
        assert "AND h.[record_valid_until] <= @cutoff_date" in sql
        assert "WHERE t.[record_active] = 0" in sql

    def test_dry_run_counts_rows(self, sql):
        """Test dry run counts rows with COUNT(*)"""
        assert "SELECT @deleted_count = COUNT(*)" in sql
        assert "COUNT(DISTINCT" not in sql

    def test_batch_size_on_later_tables(self, sql):
        """Test every table after the first is capped by @batch_size"""
        assert sql.count("DELETE TOP (@batch_size) t") == 2
        assert "DELETE t\n" in sql

    def test_unlimited_batch(self, sql):
        """Test a non-positive batch size means unlimited"""
        assert "IF @batch_size IS NULL OR @batch_size <= 0" in sql
        assert "SET @batch_size = 2147483647;" in sql

    def test_error_handling(self, sql):
        """Test the transaction is rolled back and the error re-raised"""
        assert "BEGIN TRY" in sql
        assert "IF @@TRANCOUNT > 0" in sql
        assert "RAISERROR(@error_msg, @error_severity, @error_state);" in sql

    def test_report(self, sql):
        """Test per-table and summary result sets"""
        assert "FROM #purge_results" in sql
        assert "AS [Total Records Deleted]" in sql
        assert "AS [Duration (ms)]" in sql
        assert "DROP TABLE IF EXISTS #purge_results;" in sql

    def test_ends_with_go(self, sql):
        """Test the batch terminator"""
        assert sql.rstrip().endswith("END;\nGO")


class TestPurgeVariants:
    """Tests for key shapes, history shapes and dialects"""

    def test_composite_key_join(self, composite_tables):
        """Test a two-column key joins on both columns"""
        sql = _generate(composite_tables).value.sql
        assert "WHERE t.[tenant_id] = h.[tenant_id] AND t.[entity_id] = h.[entity_id]" in sql
        assert "COUNT(*)" in sql

    def test_history_in_other_schema(self):
        """Test the history reference keeps its own schema"""
        users = soft_delete_table("users").evolve(history_table="archive.users_history")
        sql = _generate([users]).value.sql
        assert "FROM [archive].[users_history] h" in sql

    def test_legacy_dialect(self, users_orders):
        """Test pre-2016 targets use CREATE and OBJECT_ID cleanup"""
        config = config_from_dict({"sqlServerVersion": "Sql120"})
        sql = _generate(users_orders, config).value.sql
        assert "CREATE PROCEDURE [dbo].[usp_purge_soft_deleted]" in sql
        assert "IF OBJECT_ID('tempdb..#purge_results') IS NOT NULL DROP TABLE #purge_results;" in sql

    def test_configured_defaults(self, users_orders):
        """Test grace period and batch size defaults come from config"""
        config = config_from_dict({"purge": {"defaultGracePeriodDays": 30, "defaultBatchSize": 0}})
        sql = _generate(users_orders, config).value.sql
        assert "@grace_period_days INT = 30," in sql
        assert "@batch_size INT = 0," in sql

    def test_cycle_warning_carried(self):
        """Test ordering warnings surface on the result"""
        tables = [
            soft_delete_table("a", extra_columns=["b_id"], foreign_keys=[fk("a", "b", columns=("b_id",))]),
            soft_delete_table("b", extra_columns=["a_id"], foreign_keys=[fk("b", "a", columns=("a_id",))]),
            history_table("a"),
            history_table("b"),
        ]
        result = _generate(tables)
        assert result.value is not None
        assert result.has_warnings

    def test_period_end_fallback(self):
        """Test tables without a history table filter on their own period end"""
        users = soft_delete_table("users").evolve(history_table=None)
        sql = _generate([users]).value.sql
        assert "-- Warning: No history table detected - using record_valid_until approximation" in sql
        assert "WHERE [record_active] = 0" in sql
        assert "AND [record_valid_until] <= @cutoff_date;" in sql

    def test_missing_primary_key_excluded(self):
        """Test a history-backed table without a key is left out with a warning"""
        result = _generate([soft_delete_table("users", pk=()), history_table("users")])
        assert result.value is None
        assert [d.code for d in result.warnings] == [DiagnosticCode.GENERATION_NO_PRIMARY_KEY]

    def test_missing_primary_key_keeps_others(self, users_orders):
        """Test the remaining tables are still purged"""
        tables = [soft_delete_table("users", pk=())] + users_orders[1:]
        result = _generate(tables)
        assert "[dbo].[orders]" in result.value.sql
        assert "[dbo].[users]" not in result.value.sql
        assert "users: no primary key, excluded from purge procedure" in [d.message for d in result.warnings]
