"""
Schema Tools Pipeline
Runs analysis, validation and generation over one descriptor document

Stages:
1. Analysis - history marking, pattern detection, dependency graph
2. Validation - accumulated errors and warnings
3. Generation - triggers, purge procedure and views written to disk
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Generator, List, Optional

from .analysis import AnalysisResult, SchemaAnalyzer
from .config import SchemaToolsConfig
from .generation import (
    ArtifactWriter,
    GenerationReport,
    PurgeProcedureGenerator,
    SqlArtifact,
    TriggerGenerator,
    ViewGenerator,
)
from .loader import discover_existing_objects, merge_existing_objects
from .models import ExistingObject, SchemaDocument
from .utils import (
    Diagnostic,
    OperationResult,
    SchemaToolsError,
    get_logger,
    log_context,
    log_operation,
    new_run_id,
)
from .validation import SchemaValidator, ValidationReport

logger = get_logger(__name__)


@dataclass
class PipelineConfig:
    """Options for one pipeline run"""
    output_dir: str = "Generated"
    force: bool = False
    dry_run: bool = False
    source_dir: Optional[str] = None  # scanned for hand-authored objects
    generate_on_invalid: bool = False
    triggers_dir: str = "Triggers"
    procedures_dir: str = "Procedures"
    views_dir: str = "Views"


@dataclass
class PipelineResult:
    """Everything one run produced"""
    run_id: str
    analysis: AnalysisResult
    validation: ValidationReport
    generation: GenerationReport = field(default_factory=GenerationReport)
    artifacts: List[SqlArtifact] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    generation_skipped: bool = False
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def is_valid(self) -> bool:
        return self.validation.is_valid

    @property
    def duration_ms(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds() * 1000

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "is_valid": self.is_valid,
            "statistics": self.analysis.statistics.to_dict(),
            "validation": self.validation.to_dict(),
            "generation": self.generation.to_dict(),
            "generation_skipped": self.generation_skipped,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
            "duration_ms": round(self.duration_ms, 2),
        }


class SchemaToolsPipeline:
    """
    Main pipeline for schema analysis and T-SQL generation

    Usage:
        config = load_config("schema-tools.yaml")
        pipeline = SchemaToolsPipeline(config, PipelineConfig(output_dir="Schema/Generated"))
        result = pipeline.run(load_document("schema.json"))
        if not result.is_valid:
            ...
    """

    def __init__(
        self,
        config: Optional[SchemaToolsConfig] = None,
        pipeline_config: Optional[PipelineConfig] = None,
    ):
        self.config = config or SchemaToolsConfig()
        self.pipeline_config = pipeline_config or PipelineConfig()

        self.analyzer = SchemaAnalyzer(self.config)
        self.validator = SchemaValidator(self.config)
        self.trigger_generator = TriggerGenerator(self.config)
        self.procedure_generator = PurgeProcedureGenerator(self.config)
        self.view_generator = ViewGenerator(self.config)

    def run(self, document: SchemaDocument) -> PipelineResult:
        """
        Process a descriptor document through every stage.

        Hard failures (duplicate tables, unwritable output) propagate as
        SchemaToolsError subclasses; everything else lands in the result.
        """
        run_id = new_run_id()
        started_at = datetime.utcnow()

        with log_context(run_id=run_id):
            with log_operation(logger, "schema_pipeline", tables=len(document.tables)):
                logger.info("Stage 1: Analysing schema")
                with self._stage(run_id, "analysis"):
                    analysis = self.analyzer.analyze(document.tables)

                logger.info("Stage 2: Validating schema")
                with self._stage(run_id, "validation"):
                    validation = self.validator.validate(analysis)

                result = PipelineResult(
                    run_id=run_id,
                    analysis=analysis,
                    validation=validation,
                    started_at=started_at,
                )

                if validation.blocks_generation and not self.pipeline_config.generate_on_invalid:
                    logger.warning("Validation failed, skipping generation")
                    result.generation_skipped = True
                else:
                    logger.info("Stage 3: Generating SQL")
                    with self._stage(run_id, "generation"):
                        self._generate(document, result)

        result.completed_at = datetime.utcnow()
        return result

    @contextmanager
    def _stage(self, run_id: str, stage: str) -> Generator[None, None, None]:
        """Stage log context; hard failures leave it tagged with run and stage"""
        with log_context(stage=stage):
            try:
                yield
            except SchemaToolsError as e:
                e.context.run_id = e.context.run_id or run_id
                e.context.stage = e.context.stage or stage
                raise

    def existing_objects(self, document: SchemaDocument) -> OperationResult[List[ExistingObject]]:
        """Objects from the document plus any discovered in the source tree"""
        declared = list(document.existing_objects)
        if not self.pipeline_config.source_dir:
            return OperationResult.success(declared)

        discovered = discover_existing_objects(
            self.pipeline_config.source_dir,
            default_schema=self.config.default_schema,
        )
        return discovered.map(lambda found: merge_existing_objects(declared, found))

    def _generate(self, document: SchemaDocument, result: PipelineResult) -> None:
        analysis = result.analysis
        options = self.pipeline_config
        discovery = self.existing_objects(document)
        existing = discovery.value
        result.diagnostics.extend(discovery.diagnostics)

        with log_operation(logger, "generate_triggers") as ctx:
            triggers = self.trigger_generator.generate(analysis)
            result.diagnostics.extend(triggers.diagnostics)
            report = self._writer(options.triggers_dir, existing).write_all(triggers.value, options.dry_run)
            ctx['generated'] = len(report.generated)

        with log_operation(logger, "generate_purge_procedure"):
            procedure = self.procedure_generator.generate(analysis)
            result.diagnostics.extend(procedure.diagnostics)
            procedures = [procedure.value] if procedure.value else []
            report = report.merge(
                self._writer(options.procedures_dir, existing).write_all(procedures, options.dry_run)
            )

        with log_operation(logger, "generate_views"):
            views = self.view_generator.generate(analysis)
            report = report.merge(
                self._writer(options.views_dir, existing).write_all(views, options.dry_run)
            )

        result.generation = report
        result.artifacts = list(triggers.value) + procedures + views
        analysis.statistics = replace(analysis.statistics, triggers_to_generate=len(triggers.value))

        logger.info(
            f"Generation complete: {len(report.generated)} written, "
            f"{len(report.skipped_explicit)} explicit, "
            f"{len(report.skipped_existing)} already present"
        )

    def _writer(self, subdir: str, existing: List[ExistingObject]) -> ArtifactWriter:
        return ArtifactWriter(
            os.path.join(self.pipeline_config.output_dir, subdir),
            existing_objects=existing,
            force=self.pipeline_config.force,
        )
