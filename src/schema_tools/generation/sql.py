"""
T-SQL rendering helpers shared by the generators
"""
from __future__ import annotations

import re
from typing import List, Optional, Sequence

from ..config import SqlServerVersion
from ..models import strip_brackets

GENERATED_MARKER = "AUTO-GENERATED by schema-tools"

_NUMERIC = re.compile(r"^-?\d+(\.\d+)?$")


def quote(name: str) -> str:
    """Bracket-quote an identifier"""
    return "[" + name.replace("]", "]]") + "]"


def qualified(schema: str, name: str) -> str:
    return f"{quote(schema)}.{quote(name)}"


def qualify_reference(reference: str, default_schema: str) -> str:
    """
    Normalise '[dbo].[x]', 'dbo.x' or 'x' to a bracketed two-part name.
    """
    parts = [p for p in strip_brackets(reference).split(".") if p]
    if len(parts) >= 2:
        return qualified(parts[-2], parts[-1])
    return qualified(default_schema, parts[0] if parts else reference)


def literal(value: str) -> str:
    """Render a configured column value; numbers stay bare"""
    if _NUMERIC.match(value.strip()):
        return value.strip()
    return "N'" + value.replace("'", "''") + "'"


def string_literal(text: str) -> str:
    return "N'" + text.replace("'", "''") + "'"


def column_equalities(
    left_alias: str,
    left_columns: Sequence[str],
    right_alias: str,
    right_columns: Optional[Sequence[str]] = None,
) -> str:
    """
    Join predicate between two aliases.

    One column gives ``i.[id] = d.[id]``; several give an AND-chain such as
    ``i.[tenant_id] = d.[tenant_id] AND i.[entity_id] = d.[entity_id]``.
    """
    right_columns = right_columns or left_columns
    if len(left_columns) != len(right_columns):
        raise ValueError(
            f"Cannot join {len(left_columns)} column(s) to {len(right_columns)} column(s)"
        )
    return " AND ".join(
        f"{left_alias}.{quote(left)} = {right_alias}.{quote(right)}"
        for left, right in zip(left_columns, right_columns)
    )


def create_keyword(version: SqlServerVersion) -> str:
    return "CREATE OR ALTER" if version.supports_create_or_alter else "CREATE"


def raise_error(version: SqlServerVersion, number: int, message: str, indent: str) -> List[str]:
    """
    Statements that abort the current trigger with an error.

    THROW needs SQL Server 2012 (110); older targets fall back to RAISERROR
    followed by an explicit rollback.
    """
    if version.level >= 110:
        return [
            f"{indent}ROLLBACK TRANSACTION;",
            f"{indent}THROW {number}, {string_literal(message)}, 1;",
        ]
    return [
        f"{indent}RAISERROR({string_literal(message)}, 16, 1);",
        f"{indent}ROLLBACK TRANSACTION;",
        f"{indent}RETURN;",
    ]


def header(title: str, details: Sequence[str] = ()) -> str:
    """Comment banner written at the top of every generated file"""
    rule = "-- " + "=" * 77
    lines = [rule, f"-- {title}", f"-- {GENERATED_MARKER}"]
    if details:
        lines.append("--")
        lines.extend(f"-- {line}".rstrip() for line in details)
    lines.append("--")
    lines.append("-- DO NOT EDIT MANUALLY - regenerate with --force")
    lines.append(rule)
    return "\n".join(lines)
