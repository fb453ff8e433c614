"""
Schema Tools
============

Schema analysis and T-SQL generation for SQL Server databases that use
soft delete on top of system-versioned temporal tables.

Features:
- Pattern detection (soft delete, temporal, append-only, polymorphic)
- Foreign-key dependency graph with children-first ordering
- Cascade / restrict soft-delete triggers and reactivation guards
- Purge procedure for rows past their grace period
- Active-record views
- Accumulating schema validation

Quick Start:
------------

    from schema_tools import SchemaToolsPipeline, PipelineConfig, load_config, load_document

    config = load_config("schema-tools.yaml")
    pipeline = SchemaToolsPipeline(config, PipelineConfig(output_dir="Schema/Generated"))

    result = pipeline.run(load_document("schema.json"))
    for message in result.validation.errors:
        print(message)

Per-table configuration:
------------------------

    overrides:
      audit_log:
        features: {softDeleteMode: Ignore}
      "category:reference":
        validation: {validateAuditColumns: false}
      "temp_*":
        features: {enableSoftDelete: false}
"""

__version__ = "1.0.0"
__author__ = "Schema Tools Team"

# Configuration
from .config import (
    SoftDeleteMode,
    SqlServerVersion,
    FeatureConfig,
    ValidationConfig,
    ColumnConfig,
    PurgeConfig,
    ViewConfig,
    TableOverride,
    SchemaToolsConfig,
    load_config,
    resolve_for_table,
)

# Descriptors
from .models import (
    ColumnDescriptor,
    ForeignKeyRef,
    TableDescriptor,
    ExistingObject,
    SchemaDocument,
    SchemaStatistics,
)

# Analysis
from .analysis import (
    AnalysisResult,
    DependencyGraph,
    PatternDetector,
    SchemaAnalyzer,
)

# Generation
from .generation import (
    ArtifactWriter,
    GenerationReport,
    PurgeProcedureGenerator,
    SqlArtifact,
    TriggerGenerator,
    ViewGenerator,
)

# Validation
from .validation import SchemaValidator, ValidationReport

# Loading and orchestration
from .loader import discover_existing_objects, load_document
from .pipeline import PipelineConfig, PipelineResult, SchemaToolsPipeline

# Utilities
from .utils import (
    setup_logging,
    get_logger,
    Diagnostic,
    DiagnosticCode,
    OperationResult,
    SchemaToolsError,
    InputError,
    ConfigurationError,
    DialectError,
    GenerationError,
)

__all__ = [
    "__version__",
    # Configuration
    "SoftDeleteMode",
    "SqlServerVersion",
    "FeatureConfig",
    "ValidationConfig",
    "ColumnConfig",
    "PurgeConfig",
    "ViewConfig",
    "TableOverride",
    "SchemaToolsConfig",
    "load_config",
    "resolve_for_table",
    # Descriptors
    "ColumnDescriptor",
    "ForeignKeyRef",
    "TableDescriptor",
    "ExistingObject",
    "SchemaDocument",
    "SchemaStatistics",
    # Analysis
    "AnalysisResult",
    "DependencyGraph",
    "PatternDetector",
    "SchemaAnalyzer",
    # Generation
    "ArtifactWriter",
    "GenerationReport",
    "PurgeProcedureGenerator",
    "SqlArtifact",
    "TriggerGenerator",
    "ViewGenerator",
    # Validation
    "SchemaValidator",
    "ValidationReport",
    # Pipeline
    "discover_existing_objects",
    "load_document",
    "PipelineConfig",
    "PipelineResult",
    "SchemaToolsPipeline",
    # Utilities
    "setup_logging",
    "get_logger",
    "Diagnostic",
    "DiagnosticCode",
    "OperationResult",
    "SchemaToolsError",
    "InputError",
    "ConfigurationError",
    "DialectError",
    "GenerationError",
]
