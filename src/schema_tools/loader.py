"""
Input Loading

Reads the descriptor document produced by the metadata front end and
discovers hand-authored SQL objects (triggers, views, procedures) that
take precedence over generated ones.
"""
from __future__ import annotations

import json
import os
import re
from typing import Any, Dict, List, Optional, Tuple

import sqlparse
import yaml

from .generation.sql import GENERATED_MARKER
from .models import ExistingObject, ObjectKind, SchemaDocument, strip_brackets
from .utils.diagnostics import Diagnostic, DiagnosticCode, OperationResult, SourceLocation
from .utils.errors import InputError
from .utils.logging import get_logger

logger = get_logger(__name__)

_NAME = r"(?:\[[^\]]+\]|[\w#]+)"
_QUALIFIED = rf"((?:{_NAME}\s*\.\s*)?{_NAME})"

_CREATE_OBJECT = re.compile(
    rf"\bCREATE\s+(?:OR\s+ALTER\s+)?(TRIGGER|VIEW|PROCEDURE|PROC)\s+{_QUALIFIED}"
    rf"(?:\s+ON\s+{_QUALIFIED})?",
    re.IGNORECASE,
)

_MENTIONS_OBJECT = re.compile(
    r"\b(?:CREATE|ALTER)\s+(?:OR\s+ALTER\s+)?(?:TRIGGER|VIEW|PROC|PROCEDURE)\b",
    re.IGNORECASE,
)

_KINDS = {
    "TRIGGER": ObjectKind.TRIGGER,
    "VIEW": ObjectKind.VIEW,
    "PROCEDURE": ObjectKind.PROCEDURE,
    "PROC": ObjectKind.PROCEDURE,
}


def read_structured_file(path: str) -> Any:
    """Parse a JSON or YAML file, chosen by extension"""
    if not os.path.exists(path):
        raise InputError(f"Input file not found: {path}", file_path=path)

    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.endswith(('.yaml', '.yml')):
                return yaml.safe_load(f)
            return json.load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise InputError(
            f"Could not parse {path}: {e}",
            file_path=path,
            original_error=e,
        ) from e


def load_document(path: str) -> SchemaDocument:
    """
    Load a descriptor document ``{"tables": [...], "existing_objects": [...]}``.

    Raises:
        InputError: file missing, unparseable, malformed or without tables
    """
    data = read_structured_file(path)
    document = document_from_dict(data, source=path)
    logger.info(
        f"Loaded {len(document.tables)} tables and "
        f"{len(document.existing_objects)} existing objects from {path}"
    )
    return document


def document_from_dict(data: Any, source: Optional[str] = None) -> SchemaDocument:
    if not isinstance(data, dict):
        raise InputError("Descriptor document root must be a mapping", file_path=source)

    tables = data.get("tables")
    if not tables:
        raise InputError("Descriptor document contains no tables", file_path=source)

    try:
        return SchemaDocument.from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise InputError(
            f"Malformed descriptor document: {e!r}",
            file_path=source,
            original_error=e,
        ) from e


def _parse_name(raw: str, default_schema: str) -> Tuple[str, str]:
    parts = [p.strip() for p in strip_brackets(raw).split(".")]
    if len(parts) >= 2:
        return parts[-2], parts[-1]
    return default_schema, parts[0]


def parse_existing_objects(
    sql: str,
    source_file: Optional[str] = None,
    default_schema: str = "dbo",
) -> List[ExistingObject]:
    """
    Extract every CREATE TRIGGER/VIEW/PROCEDURE definition from a script.

    Objects in a file carrying the generated marker are flagged so they
    never count as explicit definitions.
    """
    is_generated = GENERATED_MARKER in sql
    code = sqlparse.format(sql, strip_comments=True)

    objects: List[ExistingObject] = []
    for statement in sqlparse.split(code):
        for match in _CREATE_OBJECT.finditer(statement):
            kind = _KINDS[match.group(1).upper()]
            schema, name = _parse_name(match.group(2), default_schema)
            target = None
            if kind == ObjectKind.TRIGGER and match.group(3):
                target = _parse_name(match.group(3), default_schema)[1]
            objects.append(ExistingObject(
                name=name,
                kind=kind,
                schema=schema,
                target_table=target,
                source_file=source_file,
                is_generated=is_generated,
            ))
    return objects


def discover_existing_objects(
    directory: str,
    default_schema: str = "dbo",
) -> OperationResult[List[ExistingObject]]:
    """
    Walk ``directory`` for .sql files and collect the objects they define.

    Files that cannot be read, or that define nothing recognisable, are
    reported as warnings rather than failing the run.
    """
    if not os.path.isdir(directory):
        return OperationResult.with_warnings([], [
            Diagnostic.warning(
                DiagnosticCode.INPUT_NOT_FOUND,
                f"Source directory not found: {directory}",
            )
        ])

    objects: List[ExistingObject] = []
    diagnostics: List[Diagnostic] = []

    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for file_name in sorted(files):
            if not file_name.lower().endswith(".sql"):
                continue
            path = os.path.join(root, file_name)
            try:
                with open(path, 'r', encoding='utf-8-sig') as f:
                    text = f.read()
            except (OSError, UnicodeDecodeError) as e:
                diagnostics.append(Diagnostic.warning(
                    DiagnosticCode.INPUT_UNPARSEABLE,
                    f"Could not read {file_name}: {e}",
                    SourceLocation(path),
                ))
                continue

            found = parse_existing_objects(text, source_file=path, default_schema=default_schema)
            # table scripts define none of these and are expected
            if not found and _MENTIONS_OBJECT.search(text):
                diagnostics.append(Diagnostic.warning(
                    DiagnosticCode.DISCOVERY_UNRECOGNISED,
                    f"No trigger, view or procedure definition recognised in {file_name}",
                    SourceLocation(path),
                ))
            objects.extend(found)

    logger.info(f"Discovered {len(objects)} existing object(s) under {directory}")
    return OperationResult.with_warnings(objects, diagnostics)


def merge_existing_objects(*groups: List[ExistingObject]) -> List[ExistingObject]:
    """Concatenate object lists, keeping the first of each (kind, name)"""
    seen: Dict[Tuple[ObjectKind, str], ExistingObject] = {}
    for group in groups:
        for obj in group:
            seen.setdefault((obj.kind, obj.name.lower()), obj)
    return list(seen.values())
