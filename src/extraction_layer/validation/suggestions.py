"""
Issue-level suggestion and correction generation.

Turns schema issues into the sentences the model reads on its next
attempt. The wording here is what the model self-corrects against, so
templates are fixed strings and every function is pure.
"""

import difflib
import re
from typing import Any, Optional, Sequence

from extraction_layer.models.enums import IssueCode, SuggestionPriority
from extraction_layer.models.errors import ValidationIssue, ValidationSuggestion

GENERAL_SUGGESTIONS = (
    "Ensure all required fields are present and have the correct data types.",
    "Double-check field names for typos or incorrect casing.",
    "Verify that the JSON structure matches the expected schema exactly.",
)

_PRIORITIES = {
    IssueCode.INVALID_TYPE.value: SuggestionPriority.CRITICAL,
    IssueCode.INVALID_ENUM_VALUE.value: SuggestionPriority.HIGH,
    IssueCode.INVALID_UNION.value: SuggestionPriority.HIGH,
    IssueCode.UNRECOGNIZED_KEYS.value: SuggestionPriority.HIGH,
    IssueCode.TOO_SMALL.value: SuggestionPriority.MEDIUM,
    IssueCode.TOO_BIG.value: SuggestionPriority.MEDIUM,
    IssueCode.INVALID_STRING.value: SuggestionPriority.MEDIUM,
}

_FORMAT_MESSAGES = {
    "email": "Must be a valid email address.",
    "url": "Must be a valid URL.",
    "uuid": "Must be a valid UUID.",
}

_RECEIVED_PATTERN = re.compile(r"received (\w+)", re.IGNORECASE)

# difflib ratio above which an enum option counts as a likely typo target
CLOSE_MATCH_CUTOFF = 0.6
MAX_CLOSE_MATCHES = 3


def format_path(path: Sequence[Any]) -> str:
    """Dotted path for display; the empty path is ``root``."""
    if not path:
        return "root"
    return ".".join(str(segment) for segment in path)


def _format_bound(value: Optional[float]) -> str:
    if value is None:
        return "unknown"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _received(issue: ValidationIssue) -> str:
    if issue.received:
        return issue.received
    match = _RECEIVED_PATTERN.search(issue.message or "")
    return match.group(1) if match else "unknown"


def _format_options(options: Optional[list[Any]]) -> str:
    if not options:
        return "the allowed values"
    return ", ".join(str(option) for option in options)


def find_close_matches(value: Any, options: Optional[list[Any]]) -> list[str]:
    """Enum options that look like what the model probably meant."""
    if value is None or not options:
        return []
    candidates = [str(option) for option in options]
    lowered = {candidate.lower(): candidate for candidate in candidates}
    matches = difflib.get_close_matches(
        str(value).lower(), list(lowered), n=MAX_CLOSE_MATCHES, cutoff=CLOSE_MATCH_CUTOFF
    )
    return [lowered[match] for match in matches]


def _size_suggestion(issue: ValidationIssue, field: str, too_small: bool) -> str:
    bound = _format_bound(issue.minimum if too_small else issue.maximum)
    kind = issue.value_type
    if too_small:
        if kind == "string":
            return f"{field}: String is too short. Minimum length is {bound}."
        if kind == "number":
            return f"{field}: Number is too small. Minimum value is {bound}."
        if kind == "array":
            return f"{field}: Array has too few items. Minimum length is {bound}."
        return f"{field}: Value is too small. Minimum is {bound}."
    if kind == "string":
        return f"{field}: String is too long. Maximum length is {bound}."
    if kind == "number":
        return f"{field}: Number is too large. Maximum value is {bound}."
    if kind == "array":
        return f"{field}: Array has too many items. Maximum length is {bound}."
    return f"{field}: Value is too large. Maximum is {bound}."


def suggestions_for_issue(issue: ValidationIssue) -> list[str]:
    """Suggestion lines for a single issue (usually one, two for near-miss enums)."""
    path = format_path(issue.path)
    field = f'Field "{path}"'
    code = issue.code

    if code == IssueCode.INVALID_TYPE:
        expected = issue.expected or "valid value"
        return [
            f"{field}: Expected {expected}, but got {_received(issue)}. "
            "Please ensure this field contains the correct data type."
        ]
    if code == IssueCode.TOO_SMALL:
        return [_size_suggestion(issue, field, too_small=True)]
    if code == IssueCode.TOO_BIG:
        return [_size_suggestion(issue, field, too_small=False)]
    if code == IssueCode.INVALID_ENUM_VALUE:
        lines = [f"{field}: Must be one of: {_format_options(issue.options)}."]
        close = find_close_matches(issue.value, issue.options)
        if close:
            lines.append(f"{field}: Did you mean {' or '.join(close)}?")
        return lines
    if code == IssueCode.INVALID_UNION:
        return [f"{field}: Value doesn't match any of the expected types in the union."]
    if code == IssueCode.UNRECOGNIZED_KEYS:
        keys = ", ".join(issue.keys) if issue.keys else "unknown keys"
        return [
            f"Unexpected fields found: {keys}. "
            "Please remove these fields or check if they're misspelled."
        ]
    if code == IssueCode.INVALID_STRING:
        detail = _FORMAT_MESSAGES.get(issue.validation or "", "String format is invalid.")
        return [f"{field}: {detail}"]
    return [f"{field}: {issue.message}"]


def generate_validation_suggestions(issues: Sequence[ValidationIssue]) -> list[str]:
    """Flat suggestion list for all issues, followed by the general checklist."""
    suggestions: list[str] = []
    for issue in issues:
        suggestions.extend(suggestions_for_issue(issue))
    if issues:
        suggestions.extend(GENERAL_SUGGESTIONS)
    return suggestions


def correction_for_issue(issue: ValidationIssue) -> Optional[str]:
    """Imperative fix for one issue, or ``None`` when there is nothing concrete to say."""
    path = format_path(issue.path)
    field = f'Field "{path}"'
    code = issue.code

    if code == IssueCode.INVALID_TYPE:
        expected = issue.expected or "valid value"
        return f"{field}: Change from {_received(issue)} to {expected}"
    if code == IssueCode.TOO_SMALL:
        bound = _format_bound(issue.minimum)
        if issue.value_type == "string":
            return f"{field}: Increase text length to at least {bound} characters"
        if issue.value_type == "array":
            return f"{field}: Add at least {bound} items to the array"
        return f"{field}: Increase value to at least {bound}"
    if code == IssueCode.TOO_BIG:
        bound = _format_bound(issue.maximum)
        if issue.value_type == "string":
            return f"{field}: Reduce text length to at most {bound} characters"
        if issue.value_type == "array":
            return f"{field}: Remove items so the array has at most {bound} items"
        return f"{field}: Decrease value to at most {bound}"
    if code == IssueCode.UNRECOGNIZED_KEYS:
        keys = ", ".join(issue.keys) if issue.keys else "unknown keys"
        return f"Remove unexpected fields: {keys}"
    if code in (IssueCode.INVALID_ENUM_VALUE, IssueCode.INVALID_UNION, IssueCode.INVALID_STRING):
        return None
    return f"{field}: {issue.message or 'Invalid value'}"


def generate_corrections(issues: Sequence[ValidationIssue]) -> list[str]:
    corrections = []
    for issue in issues:
        correction = correction_for_issue(issue)
        if correction:
            corrections.append(correction)
    return corrections


def get_priority(code: str) -> SuggestionPriority:
    return _PRIORITIES.get(getattr(code, "value", code), SuggestionPriority.LOW)


def create_structured_suggestions(issues: Sequence[ValidationIssue]) -> list[ValidationSuggestion]:
    """Typed suggestions carrying path and priority, one per suggestion line."""
    structured = []
    for issue in issues:
        path = format_path(issue.path)
        for line in suggestions_for_issue(issue):
            structured.append(
                ValidationSuggestion(
                    path=path,
                    issue_type=getattr(issue.code, "value", issue.code),
                    suggestion=line,
                    priority=get_priority(issue.code),
                )
            )
    return structured
