#!/usr/bin/env python3
"""
Basic Usage Example for Schema Tools

This example demonstrates:
1. Describing soft-delete tables in code
2. Running analysis, validation and generation
3. Reading the report
"""
import sys
import os
import tempfile

# Add src to path for local development
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema_tools import (
    ColumnDescriptor,
    ForeignKeyRef,
    PipelineConfig,
    SchemaDocument,
    SchemaToolsPipeline,
    TableDescriptor,
    setup_logging,
)
from schema_tools.config import config_from_dict
from schema_tools.models import GeneratedAlways


def soft_delete_table(name, extra_columns=(), foreign_keys=()):
    columns = (
        ColumnDescriptor("id", "INT", nullable=False, is_primary_key=True),
        *[ColumnDescriptor(c, "INT") for c in extra_columns],
        ColumnDescriptor("record_active", "BIT", nullable=False, default_value="1"),
        ColumnDescriptor("record_created_by", "UNIQUEIDENTIFIER", nullable=False),
        ColumnDescriptor("record_updated_by", "UNIQUEIDENTIFIER", nullable=False),
        ColumnDescriptor("record_valid_from", "DATETIME2", nullable=False,
                         generated_always=GeneratedAlways.ROW_START),
        ColumnDescriptor("record_valid_until", "DATETIME2", nullable=False,
                         generated_always=GeneratedAlways.ROW_END),
    )
    return TableDescriptor(
        name=name,
        columns=columns,
        primary_key_columns=("id",),
        primary_key_name=f"pk_{name}",
        foreign_keys=tuple(foreign_keys),
        history_table=f"[dbo].[{name}_history]",
        has_temporal_versioning=True,
    )


def main():
    # Setup logging
    setup_logging(level="WARNING")

    print("=" * 60)
    print("Schema Tools - Basic Usage Example")
    print("=" * 60)

    print("\n1. Describing tables...")
    tables = [
        soft_delete_table("customers"),
        soft_delete_table(
            "invoices",
            extra_columns=["customer_id"],
            foreign_keys=[ForeignKeyRef(
                referenced_table="customers",
                columns=("customer_id",),
                referenced_columns=("id",),
                name="fk_invoices_customers",
            )],
        ),
    ]
    # History companions carry the same columns but no key
    tables += [
        TableDescriptor(name=f"{t.name}_history", columns=t.columns)
        for t in list(tables)
    ]
    print(f"   {len(tables)} tables")

    print("\n2. Running the pipeline...")
    config = config_from_dict({
        "sqlServerVersion": "Sql160",
        "views": {"includeDeletedViews": True},
        "purge": {"defaultGracePeriodDays": 30},
    })
    output_dir = tempfile.mkdtemp(prefix="schema-tools-")
    pipeline = SchemaToolsPipeline(config, PipelineConfig(output_dir=output_dir))
    result = pipeline.run(SchemaDocument(tables=tables))

    print("\n3. Results")
    stats = result.analysis.statistics
    print(f"   Valid: {result.is_valid}")
    print(f"   Soft-delete tables: {stats.soft_delete_tables}")
    print(f"   Deletion order: {[t.name for t in pipeline.procedure_generator.deletion_order(result.analysis).value]}")
    for message in result.validation.warnings:
        print(f"   WARNING: {message}")

    print(f"\n   Written to {output_dir}:")
    for name in result.generation.generated:
        print(f"   - {name}")

    cascade = next(a for a in result.artifacts if a.name == "trg_customers_cascade_soft_delete")
    print("\n" + cascade.sql)


if __name__ == "__main__":
    main()
