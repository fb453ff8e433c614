"""
Generated Artifacts and Writer

Generators are pure: they turn enriched descriptors into ``SqlArtifact``
values. ``ArtifactWriter`` owns the file system side and applies the two
skip rules in order:

1. Explicit wins - a hand-authored object with the same name suppresses
   the generated one. This is a normal skip, not an error.
2. Existing output - a file already on disk is left alone unless
   ``force`` is set, so repeated runs are idempotent.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

from ..models import ExistingObject, ObjectKind
from ..utils.diagnostics import Diagnostic, DiagnosticCode, SourceLocation
from ..utils.errors import ErrorContext, GenerationError
from ..utils.logging import get_logger

logger = get_logger(__name__)


class ArtifactKind(str, Enum):
    """Kinds of generated SQL objects"""
    CASCADE_TRIGGER = "cascade_soft_delete"
    RESTRICT_TRIGGER = "restrict_soft_delete"
    REACTIVATION_GUARD = "reactivation_guard"
    REACTIVATION_CASCADE = "cascade_reactivation"
    PURGE_PROCEDURE = "purge_procedure"
    ACTIVE_VIEW = "active_view"
    DELETED_VIEW = "deleted_view"

    @property
    def object_kind(self) -> ObjectKind:
        if self in (ArtifactKind.ACTIVE_VIEW, ArtifactKind.DELETED_VIEW):
            return ObjectKind.VIEW
        if self == ArtifactKind.PURGE_PROCEDURE:
            return ObjectKind.PROCEDURE
        return ObjectKind.TRIGGER


class ArtifactStatus(str, Enum):
    GENERATED = "generated"
    SKIPPED_EXPLICIT = "skipped_explicit"
    SKIPPED_EXISTS = "skipped_exists"


@dataclass(frozen=True)
class SqlArtifact:
    """One generated SQL object and the file it belongs in"""
    name: str
    kind: ArtifactKind
    sql: str
    schema: str = "dbo"
    table: Optional[str] = None

    @property
    def file_name(self) -> str:
        return f"{self.name}.sql"


@dataclass
class GenerationReport:
    """Outcome of writing a batch of artifacts"""
    generated: List[str] = field(default_factory=list)
    skipped_explicit: List[str] = field(default_factory=list)
    skipped_existing: List[str] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.generated) + len(self.skipped_explicit) + len(self.skipped_existing)

    def merge(self, other: "GenerationReport") -> "GenerationReport":
        return GenerationReport(
            generated=self.generated + other.generated,
            skipped_explicit=self.skipped_explicit + other.skipped_explicit,
            skipped_existing=self.skipped_existing + other.skipped_existing,
            diagnostics=self.diagnostics + other.diagnostics,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated": self.generated,
            "skipped_explicit": self.skipped_explicit,
            "skipped_existing": self.skipped_existing,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class ArtifactWriter:
    """
    Writes artifacts into one output directory.

    Usage:
        writer = ArtifactWriter("Schema/Generated/Triggers", existing_objects)
        report = writer.write_all(TriggerGenerator(config).generate(analysis))
    """

    def __init__(
        self,
        output_dir: str,
        existing_objects: Sequence[ExistingObject] = (),
        force: bool = False,
    ):
        self.output_dir = output_dir
        self.force = force
        self._explicit = {
            (obj.kind, obj.name.lower()): obj
            for obj in existing_objects
            if not obj.is_generated
        }

    def explicit_definition(self, artifact: SqlArtifact) -> Optional[ExistingObject]:
        """Hand-authored object that suppresses this artifact, if any"""
        return self._explicit.get((artifact.kind.object_kind, artifact.name.lower()))

    def target_path(self, artifact: SqlArtifact) -> str:
        return os.path.join(self.output_dir, artifact.file_name)

    def status_for(self, artifact: SqlArtifact) -> ArtifactStatus:
        if self.explicit_definition(artifact) is not None:
            return ArtifactStatus.SKIPPED_EXPLICIT
        if os.path.exists(self.target_path(artifact)) and not self.force:
            return ArtifactStatus.SKIPPED_EXISTS
        return ArtifactStatus.GENERATED

    def write_all(self, artifacts: Iterable[SqlArtifact], dry_run: bool = False) -> GenerationReport:
        """
        Write every artifact that is neither explicit nor already on disk.

        With ``dry_run`` the report is the same but nothing is written.
        """
        report = GenerationReport()
        for artifact in artifacts:
            status = self.status_for(artifact)

            if status == ArtifactStatus.SKIPPED_EXPLICIT:
                source_file = self.explicit_definition(artifact).source_file
                source = source_file or "source tree"
                logger.info(f"Skipped {artifact.name}: explicit definition in {source}")
                report.skipped_explicit.append(artifact.name)
                report.diagnostics.append(Diagnostic.warning(
                    DiagnosticCode.GENERATION_SKIPPED_EXPLICIT,
                    f"{artifact.name}: explicit definition in {source}, not generated",
                    SourceLocation(source_file) if source_file else None,
                ))
                continue

            if status == ArtifactStatus.SKIPPED_EXISTS:
                logger.debug(f"Skipped {artifact.name}: already exists (use --force to regenerate)")
                report.skipped_existing.append(artifact.name)
                report.diagnostics.append(Diagnostic.warning(
                    DiagnosticCode.GENERATION_SKIPPED_EXISTS,
                    f"{artifact.name}: already exists, not regenerated",
                    SourceLocation(self.target_path(artifact)),
                ))
                continue

            if dry_run:
                logger.info(f"Would generate: {artifact.file_name}")
            else:
                self._write(artifact)
                logger.info(f"Generated: {artifact.file_name}")
            report.generated.append(artifact.name)

        return report

    def _write(self, artifact: SqlArtifact) -> None:
        path = self.target_path(artifact)
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            with open(path, 'w', encoding='utf-8', newline='\n') as f:
                f.write(artifact.sql)
        except OSError as e:
            raise GenerationError(
                f"Could not write {path}: {e}",
                artifact=artifact.name,
                context=ErrorContext(table_name=artifact.table, file_path=path),
                original_error=e,
            ) from e
