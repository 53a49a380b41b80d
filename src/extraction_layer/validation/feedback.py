"""
Feedback formatting for re-prompting.

Renders a failed attempt's error as the text appended to the next prompt.
Urgency escalates with the attempt number only, so the same error and
attempt number always render byte-identically.
"""

from typing import Sequence, Union

from extraction_layer.models.enums import ValidationErrorCode
from extraction_layer.models.errors import (
    ProviderError,
    StructuredFeedback,
    ValidationError,
    ValidationIssue,
)
from extraction_layer.validation.suggestions import (
    format_path,
    generate_corrections,
    generate_validation_suggestions,
)

IMPORTANT_PREFIX = "⚠️ IMPORTANT: "
CRITICAL_PREFIX = "🚨 CRITICAL: "
SEPARATOR = "─" * 60

FINAL_ATTEMPT_WARNING = (
    "🚨 CRITICAL: This is your final attempt. Please follow the corrections exactly."
)
JSON_STRICT_INSTRUCTION = (
    'Your response MUST start with "{" and end with "}". '
    "No explanatory text before or after the JSON object."
)
JSON_STANDARD_INSTRUCTION = (
    "The response must be valid JSON. "
    "Please ensure proper syntax with matching brackets, quotes, and commas."
)
SCHEMA_STRICT_DIRECTIVE = (
    "Return ONLY the corrected JSON object. Fix every field listed above."
)
GENERIC_STRICT_DIRECTIVE = "Please follow the corrections exactly to produce valid output."
PROVIDER_RETRY_REMINDER = "Please respond again with valid JSON matching the schema."

JSON_FAILURE_CODES = (ValidationErrorCode.INVALID_JSON, ValidationErrorCode.EMPTY_RESPONSE)
SCHEMA_FAILURE_CODES = (ValidationErrorCode.SCHEMA_MISMATCH, ValidationErrorCode.VALIDATION_FAILED)

# Attempt number from which hard directives are added
STRICT_ATTEMPT = 3


def get_urgency_prefix(attempt: int) -> str:
    if attempt >= STRICT_ATTEMPT:
        return CRITICAL_PREFIX
    if attempt == 2:
        return IMPORTANT_PREFIX
    return ""


def format_validation_issues(issues: Sequence[ValidationIssue]) -> list[str]:
    """One ``path: message`` line per issue, in input order."""
    return [f"{format_path(issue.path)}: {issue.message}" for issue in issues]


def extract_field_errors(issues: Sequence[ValidationIssue]) -> list[dict[str, str]]:
    field_errors = []
    for issue in issues:
        field_errors.append(
            {
                "path": format_path(issue.path),
                "expected": issue.expected or "valid value",
                "received": issue.received or "invalid value",
                "message": issue.message,
            }
        )
    return field_errors


def build_structured_feedback(issues: Sequence[ValidationIssue]) -> StructuredFeedback:
    count = len(issues)
    noun = "issue" if count == 1 else "issues"
    return StructuredFeedback(
        problem_summary=f"Output failed schema validation with {count} {noun}",
        specific_issues=format_validation_issues(issues),
        correction_instructions=generate_corrections(issues),
    )


def _structured_guidance(feedback: StructuredFeedback) -> list[str]:
    lines = ["", "📋 STRUCTURED GUIDANCE:", f"Problem: {feedback.problem_summary}"]
    if feedback.specific_issues:
        lines.append("\nSpecific Issues:")
        lines.extend(f"  ⚠️  {issue}" for issue in feedback.specific_issues)
    if feedback.correction_instructions:
        lines.append("\nRequired Corrections:")
        lines.extend(
            f"  {index}. {instruction}"
            for index, instruction in enumerate(feedback.correction_instructions, start=1)
        )
    return lines


def format_schema_feedback(
    issues: Sequence[ValidationIssue],
    attempt: int,
    max_attempts: int,
    structured: StructuredFeedback | None = None,
) -> str:
    """Full feedback text for a schema validation failure."""
    lines = [f"{get_urgency_prefix(attempt)}Schema Validation Failed (Attempt {attempt}):"]
    if attempt >= 2:
        lines.append(SEPARATOR)

    lines.extend(f"  • {line}" for line in format_validation_issues(issues))

    corrections = generate_corrections(issues)
    if corrections:
        lines.append("\nSpecific Corrections Needed:")
        lines.extend(f"  • {correction}" for correction in corrections)

    suggestions = generate_validation_suggestions(issues)
    if suggestions:
        lines.append("\nGeneral Suggestions:")
        lines.extend(f"  • {suggestion}" for suggestion in suggestions)

    if attempt >= 2:
        lines.extend(_structured_guidance(structured or build_structured_feedback(issues)))

    if attempt >= STRICT_ATTEMPT:
        lines.append("")
        lines.append(SCHEMA_STRICT_DIRECTIVE)

    if attempt >= max_attempts:
        lines.append("")
        lines.append(FINAL_ATTEMPT_WARNING)

    return "\n".join(lines)


def format_json_feedback(message: str, attempt: int, max_attempts: int) -> str:
    instruction = JSON_STRICT_INSTRUCTION if attempt >= STRICT_ATTEMPT else JSON_STANDARD_INSTRUCTION
    text = f"{get_urgency_prefix(attempt)}JSON Parsing Error: {message}\n\n{instruction}"
    if attempt >= max_attempts:
        text += f"\n\n{FINAL_ATTEMPT_WARNING}"
    return text


def format_validation_feedback(
    error: Union[ValidationError, ProviderError],
    attempt: int,
    max_attempts: int,
) -> str:
    """
    Render the previous attempt's error as feedback for ``attempt``.

    Args:
        error: Error produced by the previous attempt
        attempt: Number of the attempt the feedback is written for
        max_attempts: Total attempts allowed for the run

    Returns:
        Feedback text ready to be merged into the next prompt
    """
    prefix = get_urgency_prefix(attempt)

    if isinstance(error, ProviderError):
        text = f"{prefix}Previous request failed (Attempt {attempt}): {error.message}\n\n{PROVIDER_RETRY_REMINDER}"
    elif error.code in JSON_FAILURE_CODES:
        return format_json_feedback(error.message, attempt, max_attempts)
    elif error.code in SCHEMA_FAILURE_CODES and error.issues:
        return format_schema_feedback(error.issues, attempt, max_attempts, error.structured_feedback)
    else:
        text = f"{prefix}Validation Error (Attempt {attempt}): {error.message}"
        if attempt >= STRICT_ATTEMPT:
            text += f"\n\n{GENERIC_STRICT_DIRECTIVE}"

    if attempt >= max_attempts:
        text += f"\n\n{FINAL_ATTEMPT_WARNING}"
    return text
