"""
Diagnostics for Schema Tools

Accumulative (non-fatal) reporting. Hard failures are raised as
exceptions from ``utils.errors``; everything else is collected as a
``Diagnostic`` and carried next to a value in an ``OperationResult`` so one
run reports every problem it finds.

Codes are grouped by category:
- ST1xxx: author annotations such as table categories
- ST2xxx: schema validation
- ST3xxx: code generation
- ST4xxx: metadata extraction / input loading
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class Severity(str, Enum):
    """Diagnostic severity"""
    WARNING = "warning"
    ERROR = "error"


class DiagnosticCode:
    """Well-known diagnostic codes"""
    # Annotations
    ANNOTATION_UNKNOWN = "ST1001"

    # Validation
    MISSING_PRIMARY_KEY = "ST2001"
    CIRCULAR_FOREIGN_KEY = "ST2002"
    FOREIGN_KEY_TARGET = "ST2003"
    POLYMORPHIC_STRUCTURE = "ST2004"
    TEMPORAL_STRUCTURE = "ST2005"
    AUDIT_COLUMNS = "ST2006"
    NAMING_CONVENTION = "ST2007"
    SOFT_DELETE_CONSISTENCY = "ST2008"
    UNIQUE_CONSTRAINT = "ST2009"

    # Generation
    GENERATION_SKIPPED_EXPLICIT = "ST3001"
    GENERATION_SKIPPED_EXISTS = "ST3002"
    GENERATION_CYCLE = "ST3003"
    GENERATION_NO_PRIMARY_KEY = "ST3004"
    GENERATION_FK_MISMATCH = "ST3005"

    # Extraction / input
    INPUT_NOT_FOUND = "ST4001"
    INPUT_UNPARSEABLE = "ST4002"
    DISCOVERY_UNRECOGNISED = "ST4003"


@dataclass(frozen=True)
class SourceLocation:
    """Position in a source file"""
    file: str
    line: Optional[int] = None
    column: Optional[int] = None

    def __str__(self) -> str:
        if self.line is None:
            return self.file
        if self.column is None:
            return f"{self.file}:{self.line}"
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Diagnostic:
    """A single reported issue"""
    severity: Severity
    code: str
    message: str
    location: Optional[SourceLocation] = None

    @classmethod
    def error(cls, code: str, message: str, location: Optional[SourceLocation] = None) -> "Diagnostic":
        return cls(Severity.ERROR, code, message, location)

    @classmethod
    def warning(cls, code: str, message: str, location: Optional[SourceLocation] = None) -> "Diagnostic":
        return cls(Severity.WARNING, code, message, location)

    @property
    def is_error(self) -> bool:
        return self.severity == Severity.ERROR

    def to_dict(self) -> Dict[str, Any]:
        return {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
            "location": str(self.location) if self.location else None,
        }

    def __str__(self) -> str:
        where = f"{self.location}: " if self.location else ""
        return f"{where}{self.severity.value} {self.code}: {self.message}"


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """
    A value (possibly partial) together with the diagnostics produced
    while computing it.

    ``has_value`` is False only for results built with ``fail`` and no
    partial value. ``is_success`` additionally requires no error
    diagnostics, so success and warnings coexist.
    """
    _value: Optional[T] = None
    diagnostics: Tuple[Diagnostic, ...] = field(default_factory=tuple)
    has_value: bool = False

    @classmethod
    def success(cls, value: T) -> "OperationResult[T]":
        return cls(value, (), True)

    @classmethod
    def with_warnings(cls, value: T, diagnostics: Iterable[Diagnostic]) -> "OperationResult[T]":
        return cls(value, tuple(diagnostics), True)

    @classmethod
    def fail(cls, diagnostics: Iterable[Diagnostic], partial: Optional[T] = None) -> "OperationResult[T]":
        return cls(partial, tuple(diagnostics), partial is not None)

    @property
    def has_errors(self) -> bool:
        return any(d.is_error for d in self.diagnostics)

    @property
    def has_warnings(self) -> bool:
        return any(not d.is_error for d in self.diagnostics)

    @property
    def is_success(self) -> bool:
        return self.has_value and not self.has_errors

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_error]

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if not d.is_error]

    @property
    def value(self) -> T:
        if not self.has_value:
            raise ValueError(
                "Cannot access value on a failed OperationResult; check has_value first"
            )
        return self._value  # type: ignore[return-value]

    def map(self, func: Callable[[T], U]) -> "OperationResult[U]":
        if not self.has_value:
            return OperationResult(None, self.diagnostics, False)
        return OperationResult(func(self.value), self.diagnostics, True)

    def bind(self, func: Callable[[T], "OperationResult[U]"]) -> "OperationResult[U]":
        if not self.has_value:
            return OperationResult(None, self.diagnostics, False)
        following = func(self.value)
        return OperationResult(
            following._value,
            self.diagnostics + following.diagnostics,
            following.has_value,
        )

    def with_diagnostics(self, diagnostics: Iterable[Diagnostic]) -> "OperationResult[T]":
        return OperationResult(self._value, self.diagnostics + tuple(diagnostics), self.has_value)

    @staticmethod
    def combine(
        first: "OperationResult[T]",
        second: "OperationResult[U]",
    ) -> "OperationResult[Tuple[Optional[T], Optional[U]]]":
        """Pair two results; diagnostics from both sides are kept in order"""
        diagnostics = first.diagnostics + second.diagnostics
        pair = (first._value, second._value)
        return OperationResult(pair, diagnostics, first.has_value and second.has_value)

    @staticmethod
    def accumulate(results: Iterable["OperationResult[T]"]) -> "OperationResult[List[T]]":
        """Collect every value that has one and every diagnostic"""
        values: List[T] = []
        diagnostics: List[Diagnostic] = []
        for result in results:
            diagnostics.extend(result.diagnostics)
            if result.has_value:
                values.append(result.value)
        return OperationResult(values, tuple(diagnostics), True)
