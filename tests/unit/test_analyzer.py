"""
Unit Tests for the Schema Analyzer
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_tools.analysis import SchemaAnalyzer
from schema_tools.config import SchemaToolsConfig
from schema_tools.utils.errors import InputError

from conftest import analyze, plain_table, soft_delete_table


class TestSchemaAnalyzer:
    """Tests for the combined analysis stages"""

    def test_statistics(self, users_orders):
        """Test summary counts over the enriched set"""
        stats = analyze(users_orders).statistics
        assert stats.total_tables == 6
        assert stats.soft_delete_tables == 3
        assert stats.temporal_tables == 3
        assert stats.history_tables == 3
        assert stats.total_columns == sum(len(t.columns) for t in users_orders)

    def test_history_tables_never_soft_delete(self, users_orders):
        """Test history companions are marked and excluded"""
        history = analyze(users_orders).get_table("users_history")
        assert history.is_history_table
        assert not history.has_soft_delete

    def test_graph_matches_tables(self, users_orders):
        """Test the returned graph is built over the enriched descriptors"""
        result = analyze(users_orders)
        assert result.graph.get("orders").has_soft_delete
        assert [t.name for t in result.soft_delete_tables] == ["users", "orders", "order_items"]

    def test_input_not_modified(self, users_orders):
        """Test analysis returns new descriptors"""
        analyze(users_orders)
        assert not users_orders[0].has_soft_delete

    def test_duplicate_names_rejected(self):
        """Test names are unique case-insensitively"""
        with pytest.raises(InputError, match="Duplicate table name 'Users'"):
            SchemaAnalyzer(SchemaToolsConfig()).analyze([plain_table("users"), plain_table("Users")])

    def test_same_name_other_schema_rejected(self):
        """Test uniqueness ignores the schema"""
        with pytest.raises(InputError) as excinfo:
            analyze([soft_delete_table("users"), soft_delete_table("users", schema="audit")])
        assert excinfo.value.context.table_name == "users"
