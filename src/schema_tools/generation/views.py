"""
Active / Deleted Record Views

One view per soft-delete table exposing only active rows, and optionally
a second one exposing only soft-deleted rows.
"""
from __future__ import annotations

from typing import List

from ..analysis.analyzer import AnalysisResult
from ..config import SchemaToolsConfig
from ..models import TableDescriptor
from ..utils.logging import get_logger
from .base import ArtifactKind, SqlArtifact
from .procedures import is_purgeable
from .sql import create_keyword, header, literal, qualified, quote

logger = get_logger(__name__)


class ViewGenerator:
    def __init__(self, config: SchemaToolsConfig):
        self.config = config
        self.version = config.get_sql_server_version()
        self.views = config.views

    def view_name(self, table: TableDescriptor, deleted: bool = False) -> str:
        pattern = self.views.deleted_view_naming_pattern if deleted else self.views.naming_pattern
        return pattern.format(table=table.name)

    def generate(self, analysis: AnalysisResult) -> List[SqlArtifact]:
        if not self.views.enabled:
            logger.info("View generation disabled in configuration")
            return []

        artifacts: List[SqlArtifact] = []
        for table in analysis.tables:
            if not is_purgeable(table):
                continue
            artifacts.append(self.active_view(table))
            if self.views.include_deleted_views:
                artifacts.append(self.deleted_view(table))

        logger.info(f"Prepared {len(artifacts)} view(s)")
        return artifacts

    def active_view(self, table: TableDescriptor) -> SqlArtifact:
        return self._view(
            table,
            name=self.view_name(table),
            kind=ArtifactKind.ACTIVE_VIEW,
            value=self.config.columns.active_value,
            title=f"Active records of {table.qualified_name}",
        )

    def deleted_view(self, table: TableDescriptor) -> SqlArtifact:
        return self._view(
            table,
            name=self.view_name(table, deleted=True),
            kind=ArtifactKind.DELETED_VIEW,
            value=self.config.columns.inactive_value,
            title=f"Soft-deleted records of {table.qualified_name}",
        )

    def _view(self, table: TableDescriptor, name: str, kind: ArtifactKind, value: str, title: str) -> SqlArtifact:
        active = quote(table.active_column_name)
        sql = "\n".join([
            header(title),
            "",
            f"{create_keyword(self.version)} VIEW {qualified(table.schema, name)}",
            "AS",
            "SELECT *",
            f"FROM {table.qualified_name}",
            f"WHERE {active} = {literal(value)};",
            "GO",
            "",
        ])
        return SqlArtifact(name=name, kind=kind, sql=sql, schema=table.schema, table=table.name)
