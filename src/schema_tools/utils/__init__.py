"""
Utilities Package for Schema Tools
"""
from .logging import (
    setup_logging,
    get_logger,
    new_run_id,
    get_run_id,
    clear_context,
    log_context,
    log_operation,
)

from .errors import (
    ErrorSeverity,
    ErrorCategory,
    ErrorContext,
    SchemaToolsError,
    InputError,
    ConfigurationError,
    DialectError,
    GenerationError,
    format_error,
)

from .diagnostics import (
    Severity,
    DiagnosticCode,
    SourceLocation,
    Diagnostic,
    OperationResult,
)

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "new_run_id",
    "get_run_id",
    "clear_context",
    "log_context",
    "log_operation",
    # Errors
    "ErrorSeverity",
    "ErrorCategory",
    "ErrorContext",
    "SchemaToolsError",
    "InputError",
    "ConfigurationError",
    "DialectError",
    "GenerationError",
    "format_error",
    # Diagnostics
    "Severity",
    "DiagnosticCode",
    "SourceLocation",
    "Diagnostic",
    "OperationResult",
]
