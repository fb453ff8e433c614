"""
Error Handling Module for Schema Tools
Defines the hard-failure exception hierarchy raised by the pipeline
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorSeverity(str, Enum):
    """Error severity levels"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCategory(str, Enum):
    """Error categories for classification"""
    INPUT = "input"
    CONFIGURATION = "configuration"
    DIALECT = "dialect"
    GENERATION = "generation"
    INTERNAL = "internal"


@dataclass
class ErrorContext:
    """Additional context for errors"""
    run_id: Optional[str] = None
    stage: Optional[str] = None
    table_name: Optional[str] = None
    file_path: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "stage": self.stage,
            "table_name": self.table_name,
            "file_path": self.file_path,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }


class SchemaToolsError(Exception):
    """Base exception for Schema Tools"""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.INTERNAL,
        severity: ErrorSeverity = ErrorSeverity.HIGH,
        context: Optional[ErrorContext] = None,
        suggestions: Optional[List[str]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.suggestions = suggestions or []
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "suggestions": self.suggestions,
            "context": self.context.to_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }

    def __str__(self) -> str:
        return f"[{self.category.value}] {self.message}"


class InputError(SchemaToolsError):
    """Missing, unreadable or inconsistent input facts"""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        context = context or ErrorContext()
        if file_path:
            context.file_path = file_path

        suggestions = ["Check that the input document exists and is valid JSON or YAML"]
        if file_path:
            suggestions.append(f"Verify the contents of '{file_path}'")

        super().__init__(
            message=message,
            category=ErrorCategory.INPUT,
            severity=ErrorSeverity.HIGH,
            context=context,
            suggestions=suggestions,
            original_error=original_error
        )
        self.file_path = file_path


class ConfigurationError(SchemaToolsError):
    """Configuration errors"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        suggestions = ["Review configuration settings"]
        if config_key:
            suggestions.append(f"Check configuration for key: {config_key}")

        super().__init__(
            message=message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.HIGH,
            context=context,
            suggestions=suggestions,
            original_error=original_error
        )
        self.config_key = config_key


class DialectError(ConfigurationError):
    """Unresolvable SQL Server version selection"""

    def __init__(
        self,
        message: str,
        requested_version: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(
            message=message,
            config_key="sql_server_version",
            context=context,
            original_error=original_error
        )
        self.category = ErrorCategory.DIALECT
        self.suggestions.append("Use one of Sql100, Sql110, Sql120, Sql130, Sql140, Sql150, Sql160, Sql170")
        self.requested_version = requested_version


class GenerationError(SchemaToolsError):
    """Artifact could not be produced or written"""

    def __init__(
        self,
        message: str,
        artifact: Optional[str] = None,
        context: Optional[ErrorContext] = None,
        original_error: Optional[Exception] = None
    ):
        suggestions = ["Check that the output directory is writable"]
        if artifact:
            suggestions.append(f"Review generation of '{artifact}'")

        super().__init__(
            message=message,
            category=ErrorCategory.GENERATION,
            severity=ErrorSeverity.HIGH,
            context=context,
            suggestions=suggestions,
            original_error=original_error
        )
        self.artifact = artifact


def format_error(error: SchemaToolsError) -> str:
    """Format error for console output"""
    lines = [
        f"Error Type: {error.__class__.__name__}",
        f"Category: {error.category.value}",
        f"Message: {error.message}",
    ]

    if error.suggestions:
        lines.append("Suggestions:")
        for suggestion in error.suggestions:
            lines.append(f"  - {suggestion}")

    if error.original_error:
        lines.append(f"Original Error: {str(error.original_error)}")

    return "\n".join(lines)
