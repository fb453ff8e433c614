"""
Command-line entry point

    schema-tools schema.json --config schema-tools.yaml --output Schema/Generated

Exit codes: 0 valid, 1 validation errors, 2 hard failure.
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from . import __version__
from .config import load_config
from .loader import load_document
from .models import SchemaDocument
from .pipeline import PipelineConfig, PipelineResult, SchemaToolsPipeline
from .utils import SchemaToolsError, format_error, get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_FAILURE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema-tools",
        description="Analyse SQL Server table descriptors and generate soft-delete triggers, "
                    "the purge procedure and active-record views.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  schema-tools schema.json\n"
            "  schema-tools schema.yaml --config schema-tools.yaml --output Schema/Generated\n"
            "  schema-tools schema.json --dry-run --analysis-out analysis.json\n"
        ),
    )
    parser.add_argument("input", help="Descriptor document (JSON or YAML)")
    parser.add_argument("--config", "-c", help="Configuration file (JSON or YAML)")
    parser.add_argument("--output", "-o", default="Generated", help="Output directory (default: Generated)")
    parser.add_argument("--source-dir", help="Directory scanned for hand-authored triggers, views and procedures")
    parser.add_argument("--force", action="store_true", help="Overwrite generated files that already exist")
    parser.add_argument("--dry-run", action="store_true", help="Report what would be written without writing")
    parser.add_argument("--generate-on-invalid", action="store_true",
                        help="Generate even when validation reports errors")
    parser.add_argument("--analysis-out", help="Write the enriched descriptors to this file")
    parser.add_argument("--log-level", default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    parser.add_argument("--json-logs", action="store_true", help="Emit structured JSON logs")
    parser.add_argument("--log-file", help="Also write JSON logs to this file")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def print_report(result: PipelineResult) -> None:
    validation = result.validation
    for message in validation.errors:
        print(f"ERROR: {message}", file=sys.stderr)
    for message in validation.warnings:
        print(f"WARNING: {message}", file=sys.stderr)
    for diagnostic in result.diagnostics:
        print(str(diagnostic), file=sys.stderr)

    stats = result.analysis.statistics
    print(
        f"{stats.total_tables} tables, {stats.soft_delete_tables} soft-delete, "
        f"{stats.history_tables} history; "
        f"{len(validation.errors)} error(s), {len(validation.warnings)} warning(s)"
    )
    if result.generation_skipped:
        print("Generation skipped: schema is invalid")
    else:
        report = result.generation
        print(
            f"Generated {len(report.generated)}, "
            f"skipped {len(report.skipped_explicit)} explicit, "
            f"{len(report.skipped_existing)} existing"
        )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(level=args.log_level, json_format=args.json_logs, log_file=args.log_file)

    try:
        config = load_config(args.config)
        document = load_document(args.input)

        pipeline = SchemaToolsPipeline(
            config,
            PipelineConfig(
                output_dir=args.output,
                force=args.force,
                dry_run=args.dry_run,
                source_dir=args.source_dir,
                generate_on_invalid=args.generate_on_invalid,
            ),
        )
        result = pipeline.run(document)

        if args.analysis_out:
            SchemaDocument(
                tables=result.analysis.tables,
                existing_objects=document.existing_objects,
                statistics=result.analysis.statistics,
            ).save(args.analysis_out)
            logger.info(f"Wrote analysis to {args.analysis_out}")
    except SchemaToolsError as e:
        logger.error(format_error(e))
        return EXIT_FAILURE
    except OSError as e:
        logger.error(f"Could not write analysis output: {e}")
        return EXIT_FAILURE

    print_report(result)
    return EXIT_OK if result.is_valid else EXIT_INVALID


if __name__ == "__main__":
    sys.exit(main())
