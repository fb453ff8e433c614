"""
Unit Tests for Soft-Delete Trigger Generation

Triggers cannot be executed here, so these assert on the generated T-SQL.
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_tools.config import SchemaToolsConfig, config_from_dict
from schema_tools.generation import ArtifactKind, GENERATED_MARKER, TriggerGenerator, trigger_name
from schema_tools.utils.diagnostics import DiagnosticCode

from conftest import analyze, fk, history_table, soft_delete_table


def _generate(tables, config=None):
    config = config or SchemaToolsConfig()
    return TriggerGenerator(config).generate(analyze(tables, config))


def _by_name(result):
    return {artifact.name: artifact for artifact in result.value}


class TestTriggerSelection:
    """Tests for which triggers are produced"""

    def test_default_set(self, users_orders):
        """Test cascade on parents and guards on children by default"""
        names = set(_by_name(_generate(users_orders)))
        assert names == {
            "trg_users_cascade_soft_delete",
            "trg_orders_cascade_soft_delete",
            "trg_orders_reactivation_guard",
            "trg_order_items_reactivation_guard",
        }

    def test_restrict_mode(self, users_orders):
        """Test Restrict mode swaps cascade for restrict triggers"""
        config = config_from_dict({"features": {"softDeleteMode": "Restrict"}})
        names = set(_by_name(_generate(users_orders, config)))
        assert "trg_users_restrict_soft_delete" in names
        assert "trg_users_cascade_soft_delete" not in names

    def test_ignore_mode_skips_table(self, users_orders):
        """Test Ignore mode generates nothing for that table"""
        config = config_from_dict({"overrides": {"users": {"features": {"softDeleteMode": "Ignore"}}}})
        names = set(_by_name(_generate(users_orders, config)))
        assert not any(name.startswith("trg_users_") for name in names)
        assert "trg_orders_cascade_soft_delete" in names

    def test_guards_can_be_disabled(self, users_orders):
        """Test generateReactivationGuards=false drops guard triggers"""
        config = config_from_dict({"features": {"generateReactivationGuards": False}})
        names = set(_by_name(_generate(users_orders, config)))
        assert not any(name.endswith("_reactivation_guard") for name in names)

    def test_reactivation_cascade_opt_in(self, users_orders):
        """Test cascade reactivation triggers only when enabled"""
        assert "trg_users_cascade_reactivation" not in _by_name(_generate(users_orders))
        config = config_from_dict({"features": {"reactivationCascade": True}})
        assert "trg_users_cascade_reactivation" in _by_name(_generate(users_orders, config))

    def test_non_soft_delete_children_ignored(self):
        """Test a parent whose only children are not soft-delete gets no cascade"""
        tables = [
            soft_delete_table("users"),
            history_table("users"),
            soft_delete_table("sessions", extra_columns=["user_id"],
                              foreign_keys=[fk("sessions", "users")], history=False),
        ]
        assert _generate(tables).value == []

    def test_missing_primary_key_warns(self):
        """Test a soft-delete table without a key is skipped with a warning"""
        tables = [soft_delete_table("users", pk=()), history_table("users")]
        result = _generate(tables)
        assert result.value == []
        assert [d.code for d in result.warnings] == [DiagnosticCode.GENERATION_NO_PRIMARY_KEY]

    def test_trigger_name(self):
        """Test trigger naming convention"""
        assert trigger_name("users", ArtifactKind.RESTRICT_TRIGGER) == "trg_users_restrict_soft_delete"


class TestCascadeTrigger:
    """Tests for the cascade soft delete trigger body"""

    @pytest.fixture
    def sql(self, users_orders):
        return _by_name(_generate(users_orders))["trg_users_cascade_soft_delete"].sql

    def test_header(self, sql):
        """Test the generated marker and no-edit notice"""
        assert GENERATED_MARKER in sql
        assert "DO NOT EDIT MANUALLY - regenerate with --force" in sql

    def test_trigger_definition(self, sql):
        """Test CREATE OR ALTER AFTER UPDATE on the parent"""
        assert "CREATE OR ALTER TRIGGER [dbo].[trg_users_cascade_soft_delete]" in sql
        assert "ON [dbo].[users]\nAFTER UPDATE" in sql
        assert "IF NOT UPDATE([record_active]) OR NOT EXISTS (SELECT 1 FROM inserted)" in sql

    def test_deactivates_active_children_only(self, sql):
        """Test only active child rows referencing a deactivated parent change"""
        assert "UPDATE child" in sql
        assert "SET child.[record_active] = 0," in sql
        assert "FROM [dbo].[orders] AS child" in sql
        assert "INNER JOIN inserted AS i ON child.[user_id] = i.[id]" in sql
        assert "INNER JOIN deleted AS d ON i.[id] = d.[id]" in sql
        assert "WHERE d.[record_active] = 1" in sql
        assert "AND i.[record_active] = 0" in sql
        assert "AND child.[record_active] = 1;" in sql

    def test_propagates_updated_by(self, sql):
        """Test the acting user is copied to the child"""
        assert "child.[record_updated_by] = i.[record_updated_by]" in sql

    def test_batch_terminator(self, sql):
        """Test the file ends with END; GO"""
        assert sql.rstrip().endswith("END;\nGO")

    def test_child_without_updated_by(self):
        """Test the SET list omits updated_by when the child lacks it"""
        orders = soft_delete_table("orders", extra_columns=["user_id"], foreign_keys=[fk("orders", "users")])
        orders = orders.evolve(columns=tuple(c for c in orders.columns if c.name != "record_updated_by"))
        tables = [soft_delete_table("users"), history_table("users"), orders, history_table("orders")]
        sql = _by_name(_generate(tables))["trg_users_cascade_soft_delete"].sql
        assert "SET child.[record_active] = 0\n" in sql
        assert "[record_updated_by] = i." not in sql

    def test_configured_values_quoted(self, users_orders):
        """Test non-numeric active values render as N'' literals"""
        config = config_from_dict({"columns": {"activeValue": "Y", "inactiveValue": "N"}})
        sql = _by_name(_generate(users_orders, config))["trg_users_cascade_soft_delete"].sql
        assert "SET child.[record_active] = N'N'," in sql
        assert "WHERE d.[record_active] = N'Y'" in sql

    def test_self_reference_cascades(self):
        """Test a self-referencing table cascades to its own children"""
        categories = soft_delete_table(
            "categories",
            extra_columns=["parent_id"],
            foreign_keys=[fk("categories", "categories", columns=("parent_id",))],
        )
        artifacts = _by_name(_generate([categories, history_table("categories")]))
        sql = artifacts["trg_categories_cascade_soft_delete"].sql
        assert "INNER JOIN inserted AS i ON child.[parent_id] = i.[id]" in sql
        assert "trg_categories_reactivation_guard" not in artifacts


class TestCompositeKeys:
    """Tests for multi-column keys"""

    @pytest.fixture
    def sql(self, composite_tables):
        return _by_name(_generate(composite_tables))["trg_entities_cascade_soft_delete"].sql

    def test_pk_join_is_and_chain(self, sql):
        """Test inserted/deleted match on every key column"""
        assert "INNER JOIN deleted AS d ON i.[tenant_id] = d.[tenant_id] AND i.[entity_id] = d.[entity_id]" in sql

    def test_correlated_exists(self, sql):
        """Test composite FKs use a correlated EXISTS"""
        assert "AND EXISTS (" in sql
        assert "AND child.[tenant_id] = i.[tenant_id] AND child.[entity_id] = i.[entity_id]" in sql

    def test_updated_by_subquery(self, sql):
        """Test updated_by comes from a single matching inserted row"""
        assert "SELECT TOP (1) i.[record_updated_by]" in sql

    def test_column_count_mismatch_skipped(self):
        """Test a single-column FK to a composite key is skipped with a warning"""
        tables = [
            soft_delete_table("entities", pk=("tenant_id", "entity_id")),
            history_table("entities"),
            soft_delete_table(
                "entity_notes",
                extra_columns=["entity_id"],
                foreign_keys=[fk("entity_notes", "entities", columns=("entity_id",), referenced_columns=())],
            ),
            history_table("entity_notes"),
        ]
        result = _generate(tables)
        assert result.value == []
        assert [d.code for d in result.warnings] == [DiagnosticCode.GENERATION_FK_MISMATCH]
        assert "fk_entity_notes_entities" in result.warnings[0].message


class TestRestrictTrigger:
    """Tests for the restrict trigger body"""

    def _sql(self, tables, version="Sql170"):
        config = config_from_dict({"sqlServerVersion": version, "features": {"softDeleteMode": "Restrict"}})
        return _by_name(_generate(tables, config))["trg_users_restrict_soft_delete"].sql

    def test_aborts_with_throw(self, users_orders):
        """Test restrict rolls back and throws on modern servers"""
        sql = self._sql(users_orders)
        assert "INNER JOIN [dbo].[orders] AS child ON child.[user_id] = i.[id]" in sql
        assert "AND child.[record_active] = 1" in sql
        assert "ROLLBACK TRANSACTION;" in sql
        assert "THROW 50001" in sql

    def test_legacy_raiserror(self, users_orders):
        """Test pre-2012 targets use RAISERROR and plain CREATE"""
        sql = self._sql(users_orders, version="Sql100")
        assert "RAISERROR(" in sql
        assert "THROW" not in sql
        assert "CREATE TRIGGER [dbo].[trg_users_restrict_soft_delete]" in sql


class TestReactivationGuard:
    """Tests for the reactivation guard body"""

    def test_rejects_reactivation_under_inactive_parent(self, users_orders):
        """Test the guard checks the parent row state"""
        sql = _by_name(_generate(users_orders))["trg_orders_reactivation_guard"].sql
        assert "ON [dbo].[orders]" in sql
        assert "INNER JOIN [dbo].[users] AS parent ON parent.[id] = i.[user_id]" in sql
        assert "WHERE d.[record_active] = 0" in sql
        assert "AND i.[record_active] = 1" in sql
        assert "AND parent.[record_active] = 0" in sql
        assert "THROW 50002" in sql


class TestReactivationCascade:
    """Tests for the opt-in reactivation cascade"""

    def test_tolerance_window(self, users_orders):
        """Test children are matched by valid_from proximity"""
        config = config_from_dict({"features": {"reactivationCascade": True, "reactivationCascadeToleranceMs": 1500}})
        sql = _by_name(_generate(users_orders, config))["trg_users_cascade_reactivation"].sql
        assert "SET child.[record_active] = 1," in sql
        assert "WHERE d.[record_active] = 0" in sql
        assert (
            "child.[record_valid_from] BETWEEN DATEADD(MILLISECOND, -1500, d.[record_valid_from]) "
            "AND DATEADD(MILLISECOND, 1500, d.[record_valid_from])"
        ) in sql
        assert "AND child.[record_active] = 0;" in sql
