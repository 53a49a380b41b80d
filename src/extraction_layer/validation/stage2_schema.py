"""
Stage 2: Schema Validation.

Defines the schema capability consumed by the retry engine and the two
adapters shipped with the package:

- ``PydanticSchema`` wraps a pydantic model class
- ``JSONSchema`` wraps a JSON Schema document (Draft 7, via jsonschema)

Both translate library-specific errors into ``ValidationIssue`` records in
the shared issue taxonomy, which is what the feedback generator understands.
"""

import json
import re
import types
import typing
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Protocol, Union, runtime_checkable

import structlog
from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError as JSONSchemaValidationError
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from extraction_layer.models.enums import IssueCode
from extraction_layer.models.errors import ValidationIssue

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SchemaCheck:
    """Result of ``SchemaAdapter.validate``: a value on success, issues otherwise."""

    success: bool
    value: Any = None
    issues: list[ValidationIssue] = field(default_factory=list)


@runtime_checkable
class SchemaAdapter(Protocol):
    """Capability every output schema must provide."""

    def validate(self, raw: Any) -> SchemaCheck:
        ...

    def describe(self) -> str:
        ...

    def json_schema(self) -> Optional[dict[str, Any]]:
        ...


def json_type_name(value: Any) -> str:
    """JSON type name of a decoded value, as it would be described to the model."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, (list, tuple)):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


# =============================================================================
# Pydantic adapter
# =============================================================================

_PYDANTIC_TYPE_ERRORS = {
    "string_type": "string",
    "int_type": "integer",
    "int_parsing": "integer",
    "int_from_float": "integer",
    "float_type": "number",
    "float_parsing": "number",
    "bool_type": "boolean",
    "bool_parsing": "boolean",
    "list_type": "array",
    "tuple_type": "array",
    "set_type": "array",
    "dict_type": "object",
    "model_type": "object",
    "model_attributes_type": "object",
    "none_required": "null",
}

# error type -> (value type or None to infer from input, ctx key holding the bound)
_PYDANTIC_TOO_SMALL = {
    "string_too_short": ("string", "min_length"),
    "too_short": (None, "min_length"),
    "greater_than_equal": ("number", "ge"),
    "greater_than": ("number", "gt"),
}
_PYDANTIC_TOO_BIG = {
    "string_too_long": ("string", "max_length"),
    "too_long": (None, "max_length"),
    "less_than_equal": ("number", "le"),
    "less_than": ("number", "lt"),
}
_PYDANTIC_FORMATS = {
    "url_parsing": "url",
    "url_type": "url",
    "url_scheme": "url",
    "url_syntax_violation": "url",
    "uuid_parsing": "uuid",
    "uuid_type": "uuid",
    "uuid_version": "uuid",
    "string_pattern_mismatch": "regex",
}

_QUOTED = re.compile(r"'((?:[^'\\]|\\.)*)'")


def _parse_expected_options(expected: str) -> list[str]:
    """Split pydantic's ``"'a', 'b' or 'c'"`` enum description into options."""
    quoted = _QUOTED.findall(expected)
    if quoted:
        return quoted
    return [part.strip() for part in re.split(r",| or ", expected) if part.strip()]


def _unwrap_optional(annotation: Any) -> Any:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _annotation_label(annotation: Any) -> str:
    annotation = _unwrap_optional(annotation)
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        return " | ".join(_annotation_label(arg) for arg in typing.get_args(annotation))
    if origin is Literal:
        return "one of " + ", ".join(str(arg) for arg in typing.get_args(annotation))
    if origin in (list, tuple, set, frozenset):
        return "array"
    if origin is dict:
        return "object"
    simple = {str: "string", int: "integer", float: "number", bool: "boolean", list: "array", dict: "object"}
    if annotation in simple:
        return simple[annotation]
    if isinstance(annotation, type) and issubclass(annotation, BaseModel):
        return "object"
    return getattr(annotation, "__name__", "value")


def _expected_for_missing(model: type[BaseModel], loc: tuple) -> str:
    """Resolve the declared type of a missing field by walking the model."""
    annotation: Any = model
    for segment in loc:
        annotation = _unwrap_optional(annotation)
        if isinstance(segment, int):
            args = typing.get_args(annotation)
            if not args:
                return "value"
            annotation = args[0]
        elif isinstance(annotation, type) and issubclass(annotation, BaseModel):
            model_field = annotation.model_fields.get(segment)
            if model_field is None:
                return "value"
            annotation = model_field.annotation
        else:
            return "value"
    return _annotation_label(annotation)


def issues_from_pydantic(
    exc: PydanticValidationError, model: type[BaseModel]
) -> list[ValidationIssue]:
    """Translate a pydantic ValidationError into taxonomy issues, preserving order."""
    errors = exc.errors(include_url=False)
    issues: list[ValidationIssue] = []

    # Extra keys under one parent object are reported as a single issue
    extra_keys: dict[tuple, list[str]] = {}
    for err in errors:
        if err["type"] == "extra_forbidden":
            loc = tuple(err.get("loc", ()))
            extra_keys.setdefault(loc[:-1], []).append(str(loc[-1]))
    reported_parents: set[tuple] = set()

    for err in errors:
        error_type = err["type"]
        loc = tuple(err.get("loc", ()))
        message = err.get("msg", "Invalid value")
        ctx = err.get("ctx") or {}
        value = err.get("input")

        if error_type == "extra_forbidden":
            parent = loc[:-1]
            if parent not in reported_parents:
                reported_parents.add(parent)
                issues.append(
                    ValidationIssue(
                        path=list(parent),
                        code=IssueCode.UNRECOGNIZED_KEYS.value,
                        message="Unrecognized key(s) in object",
                        keys=extra_keys[parent],
                    )
                )
        elif error_type == "missing":
            issues.append(
                ValidationIssue(
                    path=list(loc),
                    code=IssueCode.INVALID_TYPE.value,
                    message=message,
                    expected=_expected_for_missing(model, loc),
                    received="missing",
                )
            )
        elif error_type in _PYDANTIC_TYPE_ERRORS:
            issues.append(
                ValidationIssue(
                    path=list(loc),
                    code=IssueCode.INVALID_TYPE.value,
                    message=message,
                    expected=_PYDANTIC_TYPE_ERRORS[error_type],
                    received=json_type_name(value),
                    value=value,
                )
            )
        elif error_type in _PYDANTIC_TOO_SMALL or error_type in _PYDANTIC_TOO_BIG:
            too_small = error_type in _PYDANTIC_TOO_SMALL
            value_type, bound_key = (_PYDANTIC_TOO_SMALL if too_small else _PYDANTIC_TOO_BIG)[error_type]
            bound = ctx.get(bound_key)
            issues.append(
                ValidationIssue(
                    path=list(loc),
                    code=(IssueCode.TOO_SMALL if too_small else IssueCode.TOO_BIG).value,
                    message=message,
                    value_type=value_type or json_type_name(value),
                    minimum=bound if too_small else None,
                    maximum=None if too_small else bound,
                    value=value,
                )
            )
        elif error_type in ("literal_error", "enum"):
            issues.append(
                ValidationIssue(
                    path=list(loc),
                    code=IssueCode.INVALID_ENUM_VALUE.value,
                    message=message,
                    options=_parse_expected_options(str(ctx.get("expected", ""))),
                    received=str(value),
                    value=value,
                )
            )
        elif error_type in _PYDANTIC_FORMATS or (error_type == "value_error" and "email" in message):
            issues.append(
                ValidationIssue(
                    path=list(loc),
                    code=IssueCode.INVALID_STRING.value,
                    message=message,
                    validation=_PYDANTIC_FORMATS.get(error_type, "email"),
                    value=value,
                )
            )
        else:
            issues.append(ValidationIssue(path=list(loc), code=error_type, message=message, value=value))

    return issues


class PydanticSchema:
    """
    Schema adapter over a pydantic model class.

    On success the validated model instance is returned as the value.
    """

    def __init__(self, model: type[BaseModel]):
        self.model = model
        self.name = model.__name__

    def validate(self, raw: Any) -> SchemaCheck:
        try:
            value = self.model.model_validate(raw)
        except PydanticValidationError as e:
            return SchemaCheck(success=False, issues=issues_from_pydantic(e, self.model))
        return SchemaCheck(success=True, value=value)

    def json_schema(self) -> dict[str, Any]:
        return self.model.model_json_schema()

    def describe(self) -> str:
        return json.dumps(self.json_schema(), indent=2)

    def __repr__(self) -> str:
        return f"PydanticSchema(model={self.name})"


# =============================================================================
# JSON Schema adapter
# =============================================================================

_SIZE_VALIDATORS = {
    "minLength": (IssueCode.TOO_SMALL, "string"),
    "minItems": (IssueCode.TOO_SMALL, "array"),
    "minProperties": (IssueCode.TOO_SMALL, "object"),
    "minimum": (IssueCode.TOO_SMALL, "number"),
    "exclusiveMinimum": (IssueCode.TOO_SMALL, "number"),
    "maxLength": (IssueCode.TOO_BIG, "string"),
    "maxItems": (IssueCode.TOO_BIG, "array"),
    "maxProperties": (IssueCode.TOO_BIG, "object"),
    "maximum": (IssueCode.TOO_BIG, "number"),
    "exclusiveMaximum": (IssueCode.TOO_BIG, "number"),
}
_FORMAT_NAMES = {"email": "email", "idn-email": "email", "uri": "url", "iri": "url", "uuid": "uuid"}
_REQUIRED_PATTERN = re.compile(r"'(.+?)' is a required property")


def _type_label(schema_type: Any) -> str:
    if isinstance(schema_type, list):
        return " | ".join(str(item) for item in schema_type)
    return str(schema_type) if schema_type else "value"


def issue_from_jsonschema(error: JSONSchemaValidationError) -> ValidationIssue:
    """Translate a single jsonschema error into a taxonomy issue."""
    path = list(error.absolute_path)
    validator = error.validator
    expected_value = error.validator_value
    instance = error.instance

    if validator == "type":
        return ValidationIssue(
            path=path,
            code=IssueCode.INVALID_TYPE.value,
            message=error.message,
            expected=_type_label(expected_value),
            received=json_type_name(instance),
            value=instance,
        )
    if validator == "required":
        match = _REQUIRED_PATTERN.search(error.message)
        name = match.group(1) if match else None
        property_schema = (error.schema.get("properties") or {}).get(name) or {}
        return ValidationIssue(
            path=path + [name] if name else path,
            code=IssueCode.INVALID_TYPE.value,
            message=error.message,
            expected=_type_label(property_schema.get("type")),
            received="missing",
        )
    if validator in _SIZE_VALIDATORS:
        code, value_type = _SIZE_VALIDATORS[validator]
        return ValidationIssue(
            path=path,
            code=code.value,
            message=error.message,
            value_type=value_type,
            minimum=expected_value if code == IssueCode.TOO_SMALL else None,
            maximum=expected_value if code == IssueCode.TOO_BIG else None,
            value=instance,
        )
    if validator in ("enum", "const"):
        options = list(expected_value) if validator == "enum" else [expected_value]
        return ValidationIssue(
            path=path,
            code=IssueCode.INVALID_ENUM_VALUE.value,
            message=error.message,
            options=options,
            received=json.dumps(instance),
            value=instance,
        )
    if validator in ("anyOf", "oneOf"):
        return ValidationIssue(
            path=path,
            code=IssueCode.INVALID_UNION.value,
            message=error.message,
            value=instance,
        )
    if validator == "additionalProperties" and isinstance(instance, dict):
        declared = error.schema.get("properties") or {}
        return ValidationIssue(
            path=path,
            code=IssueCode.UNRECOGNIZED_KEYS.value,
            message=error.message,
            keys=[key for key in instance if key not in declared],
        )
    if validator in ("format", "pattern"):
        validation = "regex" if validator == "pattern" else _FORMAT_NAMES.get(expected_value, expected_value)
        return ValidationIssue(
            path=path,
            code=IssueCode.INVALID_STRING.value,
            message=error.message,
            validation=validation,
            value=instance,
        )
    return ValidationIssue(path=path, code=str(validator), message=error.message, value=instance)


class JSONSchema:
    """
    Schema adapter over a JSON Schema document, validated with Draft 7.

    On success the raw decoded value is returned unchanged.

    Raises:
        jsonschema.exceptions.SchemaError: If the document itself is not a
            valid Draft 7 schema
    """

    def __init__(self, schema: dict[str, Any], name: Optional[str] = None):
        Draft7Validator.check_schema(schema)
        self.schema = schema
        self.name = name or schema.get("title", "JSONSchema")
        self._validator = Draft7Validator(schema, format_checker=Draft7Validator.FORMAT_CHECKER)

    def validate(self, raw: Any) -> SchemaCheck:
        errors = list(self._validator.iter_errors(raw))
        if errors:
            return SchemaCheck(success=False, issues=[issue_from_jsonschema(e) for e in errors])
        return SchemaCheck(success=True, value=raw)

    def json_schema(self) -> dict[str, Any]:
        return self.schema

    def describe(self) -> str:
        return json.dumps(self.schema, indent=2)

    def __repr__(self) -> str:
        return f"JSONSchema(name={self.name!r})"


def as_schema(schema: Any) -> SchemaAdapter:
    """
    Normalize a user-supplied schema into a ``SchemaAdapter``.

    Accepts a pydantic model class, a JSON Schema dict, or an object that
    already implements the adapter protocol.

    Raises:
        TypeError: If the object cannot be used as a schema
    """
    if isinstance(schema, type) and issubclass(schema, BaseModel):
        return PydanticSchema(schema)
    if isinstance(schema, dict):
        return JSONSchema(schema)
    if isinstance(schema, SchemaAdapter):
        return schema
    raise TypeError(
        f"Unsupported schema type {type(schema).__name__}: expected a pydantic model class, "
        "a JSON Schema dict, or an object with validate/describe/json_schema"
    )
