"""
Unit Tests for Diagnostics and Error Types
"""
import pytest
import sys
import os

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

from schema_tools.utils.diagnostics import (
    Diagnostic,
    DiagnosticCode,
    OperationResult,
    Severity,
    SourceLocation,
)
from schema_tools.utils.errors import (
    ConfigurationError,
    DialectError,
    ErrorCategory,
    GenerationError,
    InputError,
    format_error,
)

WARNING = Diagnostic.warning(DiagnosticCode.GENERATION_CYCLE, "cycle")
ERROR = Diagnostic.error(DiagnosticCode.INPUT_UNPARSEABLE, "bad input")


class TestDiagnostic:
    """Tests for single diagnostics"""

    def test_str_with_location(self):
        """Test file:line prefix"""
        diagnostic = Diagnostic.error("ST2001", "no key", SourceLocation("users.sql", 3))
        assert str(diagnostic) == "users.sql:3: error ST2001: no key"

    def test_to_dict(self):
        """Test serialization"""
        assert WARNING.to_dict() == {
            "severity": "warning",
            "code": "ST3003",
            "message": "cycle",
            "location": None,
        }

    def test_is_error(self):
        """Test severity helpers"""
        assert ERROR.is_error
        assert not WARNING.is_error
        assert ERROR.severity == Severity.ERROR


class TestOperationResult:
    """Tests for value + diagnostics results"""

    def test_success(self):
        """Test a plain success"""
        result = OperationResult.success(5)
        assert result.is_success
        assert result.value == 5
        assert not result.has_warnings

    def test_warnings_still_succeed(self):
        """Test success and warnings coexist"""
        result = OperationResult.with_warnings([1], [WARNING])
        assert result.is_success
        assert result.has_warnings
        assert result.warnings == [WARNING]

    def test_fail_without_value(self):
        """Test accessing the value of a failure raises"""
        result = OperationResult.fail([ERROR])
        assert not result.has_value
        assert not result.is_success
        with pytest.raises(ValueError):
            result.value

    def test_fail_with_partial(self):
        """Test a partial value survives a failure"""
        result = OperationResult.fail([ERROR], partial=[1, 2])
        assert result.has_value
        assert not result.is_success
        assert result.errors == [ERROR]

    def test_map(self):
        """Test map keeps diagnostics"""
        result = OperationResult.with_warnings(2, [WARNING]).map(lambda x: x * 10)
        assert result.value == 20
        assert result.diagnostics == (WARNING,)

    def test_map_on_failure(self):
        """Test map never calls the function on a failure"""
        result = OperationResult.fail([ERROR]).map(lambda x: pytest.fail("called"))
        assert not result.has_value

    def test_bind_concatenates_diagnostics(self):
        """Test bind chains diagnostics in order"""
        result = OperationResult.with_warnings(1, [WARNING]).bind(
            lambda x: OperationResult.fail([ERROR], partial=x + 1)
        )
        assert result.value == 2
        assert result.diagnostics == (WARNING, ERROR)

    def test_combine(self):
        """Test combine pairs values and keeps both sides' diagnostics"""
        result = OperationResult.combine(
            OperationResult.with_warnings("a", [WARNING]),
            OperationResult.success("b"),
        )
        assert result.value == ("a", "b")
        assert result.has_warnings

    def test_combine_with_failure(self):
        """Test combine has no value when either side has none"""
        result = OperationResult.combine(OperationResult.success("a"), OperationResult.fail([ERROR]))
        assert not result.has_value

    def test_accumulate(self):
        """Test accumulate keeps every value and diagnostic"""
        result = OperationResult.accumulate([
            OperationResult.success(1),
            OperationResult.fail([ERROR]),
            OperationResult.with_warnings(3, [WARNING]),
        ])
        assert result.value == [1, 3]
        assert result.diagnostics == (ERROR, WARNING)
        assert result.has_errors


class TestErrors:
    """Tests for the exception hierarchy"""

    def test_input_error(self):
        """Test InputError carries the file path"""
        error = InputError("missing", file_path="schema.json")
        assert error.category == ErrorCategory.INPUT
        assert error.context.file_path == "schema.json"
        assert str(error) == "[input] missing"

    def test_configuration_error(self):
        """Test ConfigurationError suggests the key"""
        error = ConfigurationError("bad value", config_key="purge.batchSize")
        assert "Check configuration for key: purge.batchSize" in error.suggestions

    def test_dialect_error_is_configuration_error(self):
        """Test DialectError specializes ConfigurationError"""
        error = DialectError("unknown version", requested_version="Sql999")
        assert isinstance(error, ConfigurationError)
        assert error.category == ErrorCategory.DIALECT
        assert error.requested_version == "Sql999"

    def test_to_dict(self):
        """Test serialization"""
        original = OSError("disk full")
        data = GenerationError("write failed", artifact="trg_users", original_error=original).to_dict()
        assert data["error_type"] == "GenerationError"
        assert data["category"] == "generation"
        assert data["original_error"] == "disk full"

    def test_format_error(self):
        """Test console formatting"""
        text = format_error(InputError("missing", file_path="schema.json"))
        assert "Error Type: InputError" in text
        assert "Message: missing" in text
        assert "  - Verify the contents of 'schema.json'" in text
