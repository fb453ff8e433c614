"""
Schema Analyzer

Runs the analysis stages in order over one complete descriptor set:
history marking, per-table pattern detection with the effective
configuration, then graph construction and child/leaf derivation.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..config import SchemaToolsConfig
from ..models import SchemaStatistics, TableDescriptor
from ..utils.errors import ErrorContext, InputError
from ..utils.logging import get_logger, log_operation
from .dependency_graph import DependencyGraph
from .pattern_detector import PatternDetector, mark_history_tables

logger = get_logger(__name__)


@dataclass
class AnalysisResult:
    """Enriched descriptors plus the graph built over them"""
    tables: List[TableDescriptor]
    graph: DependencyGraph
    statistics: SchemaStatistics = field(default_factory=SchemaStatistics)

    def get_table(self, name: str) -> Optional[TableDescriptor]:
        return self.graph.get(name)

    @property
    def soft_delete_tables(self) -> List[TableDescriptor]:
        return [t for t in self.tables if t.has_soft_delete]


def ensure_unique_names(tables: Sequence[TableDescriptor]) -> None:
    """Table names must be unique case-insensitively within one run"""
    seen: Dict[str, TableDescriptor] = {}
    for table in tables:
        previous = seen.get(table.key)
        if previous is not None:
            raise InputError(
                f"Duplicate table name '{table.name}' "
                f"(also declared as '{previous.schema}.{previous.name}')",
                file_path=table.source_file,
                context=ErrorContext(table_name=table.name),
            )
        seen[table.key] = table


class SchemaAnalyzer:
    """
    Produces enriched descriptors from raw ones.

    Usage:
        analyzer = SchemaAnalyzer(config)
        result = analyzer.analyze(raw_tables)
        for table in result.soft_delete_tables:
            ...
    """

    def __init__(self, config: SchemaToolsConfig):
        self.config = config
        self.detector = PatternDetector(config)

    def analyze(self, tables: Sequence[TableDescriptor]) -> AnalysisResult:
        ensure_unique_names(tables)

        with log_operation(logger, "analyze_schema", tables=len(tables)) as ctx:
            marked = mark_history_tables(tables)
            detected = [self.detector.detect(table) for table in marked]

            enriched = DependencyGraph.build(detected).apply_to(detected)
            graph = DependencyGraph.build(enriched)

            statistics = SchemaStatistics.from_tables(enriched)
            ctx['soft_delete_tables'] = statistics.soft_delete_tables
            ctx['history_tables'] = statistics.history_tables

        logger.info(
            f"Analysed {statistics.total_tables} tables: "
            f"{statistics.soft_delete_tables} soft-delete, "
            f"{statistics.temporal_tables} temporal, "
            f"{statistics.append_only_tables} append-only, "
            f"{statistics.polymorphic_tables} polymorphic"
        )
        return AnalysisResult(tables=enriched, graph=graph, statistics=statistics)
