"""
T-SQL Generation

Soft-delete triggers, the purge procedure and active-record views, plus
the writer that applies the explicit-wins and idempotency rules.
"""
from .base import (
    ArtifactKind,
    ArtifactStatus,
    ArtifactWriter,
    GenerationReport,
    SqlArtifact,
)
from .sql import GENERATED_MARKER
from .triggers import TriggerGenerator, trigger_name
from .procedures import PurgeProcedureGenerator
from .views import ViewGenerator

__all__ = [
    "ArtifactKind",
    "ArtifactStatus",
    "ArtifactWriter",
    "GenerationReport",
    "SqlArtifact",
    "GENERATED_MARKER",
    "TriggerGenerator",
    "trigger_name",
    "PurgeProcedureGenerator",
    "ViewGenerator",
]
