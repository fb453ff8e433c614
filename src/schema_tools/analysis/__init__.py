"""
Schema Analysis

Pattern detection, history-table marking and the foreign-key dependency
graph. Usage:

    from schema_tools.analysis import SchemaAnalyzer

    result = SchemaAnalyzer(config).analyze(raw_tables)
    order = result.graph.children_first_order().value
"""

from .pattern_detector import (
    PatternDetector,
    extract_allowed_types,
    history_table_names,
    mark_history_tables,
)
from .dependency_graph import DependencyGraph
from .analyzer import AnalysisResult, SchemaAnalyzer, ensure_unique_names

__all__ = [
    "PatternDetector",
    "extract_allowed_types",
    "history_table_names",
    "mark_history_tables",
    "DependencyGraph",
    "AnalysisResult",
    "SchemaAnalyzer",
    "ensure_unique_names",
]
