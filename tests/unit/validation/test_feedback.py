"""
Unit tests for feedback text rendering.
"""

from extraction_layer.models.enums import (
    ProviderErrorCode,
    RetryStrategyHint,
    ValidationErrorCode,
)
from extraction_layer.models.errors import ProviderError, ValidationError, ValidationIssue
from extraction_layer.validation.feedback import (
    CRITICAL_PREFIX,
    FINAL_ATTEMPT_WARNING,
    IMPORTANT_PREFIX,
    JSON_STANDARD_INSTRUCTION,
    JSON_STRICT_INSTRUCTION,
    SCHEMA_STRICT_DIRECTIVE,
    SEPARATOR,
    extract_field_errors,
    format_validation_feedback,
    format_validation_issues,
    get_urgency_prefix,
)

AGE_ISSUE = ValidationIssue(
    path=["age"], code="invalid_type", message="Expected integer", expected="integer", received="string"
)
NAME_ISSUE = ValidationIssue(
    path=["name"], code="too_small", message="Too short", value_type="string", minimum=1
)


def schema_error(issues=(AGE_ISSUE,)) -> ValidationError:
    return ValidationError(
        code=ValidationErrorCode.SCHEMA_MISMATCH,
        message="Schema validation failed",
        issues=list(issues),
        retry_strategy=RetryStrategyHint.ADD_EXAMPLES,
    )


def json_error() -> ValidationError:
    return ValidationError(
        code=ValidationErrorCode.INVALID_JSON,
        message="Failed to parse LLM response as JSON: Expecting value",
        retry_strategy=RetryStrategyHint.DEMAND_JSON_FORMAT,
    )


class TestUrgencyPrefix:

    def test_levels(self):
        assert get_urgency_prefix(1) == ""
        assert get_urgency_prefix(2) == "⚠️ IMPORTANT: "
        assert get_urgency_prefix(3) == "🚨 CRITICAL: "
        assert get_urgency_prefix(7) == CRITICAL_PREFIX
        assert get_urgency_prefix(100) == "🚨 CRITICAL: "


class TestIssueLines:

    def test_one_line_per_issue_in_order(self):
        assert format_validation_issues([AGE_ISSUE, NAME_ISSUE]) == [
            "age: Expected integer",
            "name: Too short",
        ]

    def test_field_errors_fill_defaults(self):
        [field] = extract_field_errors([NAME_ISSUE])

        assert field == {
            "path": "name",
            "expected": "valid value",
            "received": "invalid value",
            "message": "Too short",
        }


class TestSchemaFeedback:

    def test_first_attempt(self):
        text = format_validation_feedback(schema_error(), attempt=1, max_attempts=4)

        assert text.startswith("Schema Validation Failed (Attempt 1):")
        assert SEPARATOR not in text
        assert "  • age: Expected integer" in text
        assert "Specific Corrections Needed:" in text
        assert 'Field "age": Change from string to integer' in text
        assert "General Suggestions:" in text
        assert "STRUCTURED GUIDANCE" not in text
        assert FINAL_ATTEMPT_WARNING not in text

    def test_second_attempt_adds_separator_and_guidance(self):
        text = format_validation_feedback(schema_error([AGE_ISSUE, NAME_ISSUE]), attempt=2, max_attempts=4)

        lines = text.split("\n")
        assert lines[0] == f"{IMPORTANT_PREFIX}Schema Validation Failed (Attempt 2):"
        assert lines[1] == SEPARATOR
        assert "📋 STRUCTURED GUIDANCE:" in text
        assert "Required Corrections:" in text
        assert '  1. Field "age": Change from string to integer' in text
        assert '  2. Field "name": Increase text length to at least 1 characters' in text
        assert SCHEMA_STRICT_DIRECTIVE not in text

    def test_third_attempt_adds_directive(self):
        text = format_validation_feedback(schema_error(), attempt=3, max_attempts=4)

        assert text.startswith(CRITICAL_PREFIX)
        assert SCHEMA_STRICT_DIRECTIVE in text

    def test_final_attempt_warning(self):
        text = format_validation_feedback(schema_error(), attempt=4, max_attempts=4)

        assert text.endswith(FINAL_ATTEMPT_WARNING)

    def test_byte_identical_for_identical_inputs(self):
        error = schema_error([AGE_ISSUE, NAME_ISSUE])

        assert format_validation_feedback(error, 2, 3) == format_validation_feedback(error, 2, 3)


class TestJSONFeedback:

    def test_standard_instruction(self):
        text = format_validation_feedback(json_error(), attempt=1, max_attempts=3)

        assert text == (
            "JSON Parsing Error: Failed to parse LLM response as JSON: Expecting value\n\n"
            + JSON_STANDARD_INSTRUCTION
        )

    def test_strict_instruction_from_third_attempt(self):
        text = format_validation_feedback(json_error(), attempt=3, max_attempts=5)

        assert text.startswith(CRITICAL_PREFIX + "JSON Parsing Error:")
        assert JSON_STRICT_INSTRUCTION in text

    def test_final_attempt(self):
        assert format_validation_feedback(json_error(), 2, 2).endswith(FINAL_ATTEMPT_WARNING)


class TestOtherFeedback:

    def test_other_validation_code(self):
        error = ValidationError(
            code=ValidationErrorCode.CONTEXT_CONFUSION,
            message="Model lost track",
            retry_strategy=RetryStrategyHint.SESSION_RESET,
        )

        text = format_validation_feedback(error, attempt=3, max_attempts=5)

        assert text.startswith(f"{CRITICAL_PREFIX}Validation Error (Attempt 3): Model lost track")
        assert "Please follow the corrections exactly to produce valid output." in text

    def test_schema_code_without_issues_uses_generic_text(self):
        text = format_validation_feedback(schema_error(issues=[]), attempt=1, max_attempts=3)

        assert text == "Validation Error (Attempt 1): Schema validation failed"

    def test_provider_error(self):
        error = ProviderError(
            code=ProviderErrorCode.PROVIDER_CALL_FAILED, message="Network error", provider="ollama"
        )

        text = format_validation_feedback(error, attempt=2, max_attempts=2)

        assert text.startswith(f"{IMPORTANT_PREFIX}Previous request failed (Attempt 2): Network error")
        assert "valid JSON" in text
        assert text.endswith(FINAL_ATTEMPT_WARNING)
