"""
Unit tests for Stage 2: schema adapters.
"""

import jsonschema
import pytest

from extraction_layer.models.enums import IssueCode
from extraction_layer.validation.stage2_schema import (
    JSONSchema,
    PydanticSchema,
    SchemaAdapter,
    as_schema,
    json_type_name,
)


class TestPydanticSchema:
    """Pydantic errors are mapped onto issue codes."""

    def test_valid_value_returns_model_instance(self, person_model, valid_person):
        check = PydanticSchema(person_model).validate(valid_person)

        assert check.success is True
        assert isinstance(check.value, person_model)
        assert check.value.name == "Ada"
        assert check.issues == []

    def test_wrong_type(self, person_model):
        check = PydanticSchema(person_model).validate({"name": "Ada", "age": "old"})

        assert check.success is False
        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_TYPE
        assert issue.path == ["age"]
        assert issue.expected == "integer"
        assert issue.received == "string"

    def test_missing_field_is_invalid_type(self, person_model):
        check = PydanticSchema(person_model).validate({"name": "Ada"})

        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_TYPE
        assert issue.path == ["age"]
        assert issue.expected == "integer"
        assert issue.received == "missing"

    def test_extra_keys_reported_once_per_object(self, person_model):
        check = PydanticSchema(person_model).validate({"name": "Ada", "age": 1, "foo": 1, "bar": 2})

        [issue] = check.issues
        assert issue.code == IssueCode.UNRECOGNIZED_KEYS
        assert issue.path == []
        assert issue.keys == ["foo", "bar"]

    def test_literal_becomes_enum_issue(self, person_model):
        check = PydanticSchema(person_model).validate({"name": "Ada", "age": 1, "role": "admn"})

        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_ENUM_VALUE
        assert issue.options == ["admin", "editor", "viewer"]
        assert issue.value == "admn"

    def test_string_too_short(self, person_model):
        check = PydanticSchema(person_model).validate({"name": "", "age": 1})

        [issue] = check.issues
        assert issue.code == IssueCode.TOO_SMALL
        assert issue.value_type == "string"
        assert issue.minimum == 1

    def test_number_too_big(self, person_model):
        check = PydanticSchema(person_model).validate({"name": "Ada", "age": 200})

        [issue] = check.issues
        assert issue.code == IssueCode.TOO_BIG
        assert issue.value_type == "number"
        assert issue.maximum == 150

    def test_root_type_mismatch_has_empty_path(self, person_model):
        check = PydanticSchema(person_model).validate("just a string")

        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_TYPE
        assert issue.path == []

    def test_issue_order_follows_fields(self, person_model):
        check = PydanticSchema(person_model).validate({"name": 5, "age": "x"})

        assert [issue.path for issue in check.issues] == [["name"], ["age"]]

    def test_json_schema_and_describe(self, person_model):
        adapter = PydanticSchema(person_model)

        assert adapter.json_schema()["title"] == "Person"
        assert '"age"' in adapter.describe()


class TestJSONSchema:
    """jsonschema validators are mapped onto issue codes."""

    def test_valid_value_returned_unchanged(self, person_json_schema):
        value = {"name": "Ada", "age": 36}

        check = JSONSchema(person_json_schema).validate(value)

        assert check.success is True
        assert check.value is value

    def test_required_property(self, person_json_schema):
        check = JSONSchema(person_json_schema).validate({"name": "Ada"})

        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_TYPE
        assert issue.path == ["age"]
        assert issue.expected == "integer"
        assert issue.received == "missing"

    def test_type_error(self, person_json_schema):
        check = JSONSchema(person_json_schema).validate({"name": "Ada", "age": "x"})

        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_TYPE
        assert issue.expected == "integer"
        assert issue.received == "string"

    def test_additional_properties(self, person_json_schema):
        check = JSONSchema(person_json_schema).validate({"name": "Ada", "age": 1, "extra": True})

        [issue] = check.issues
        assert issue.code == IssueCode.UNRECOGNIZED_KEYS
        assert issue.keys == ["extra"]

    def test_enum(self, person_json_schema):
        check = JSONSchema(person_json_schema).validate({"name": "Ada", "age": 1, "role": "boss"})

        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_ENUM_VALUE
        assert issue.options == ["admin", "editor", "viewer"]

    def test_minimum(self, person_json_schema):
        check = JSONSchema(person_json_schema).validate({"name": "Ada", "age": -1})

        [issue] = check.issues
        assert issue.code == IssueCode.TOO_SMALL
        assert issue.minimum == 0
        assert issue.value_type == "number"

    def test_email_format(self, person_json_schema):
        check = JSONSchema(person_json_schema).validate({"name": "Ada", "age": 1, "email": "nope"})

        [issue] = check.issues
        assert issue.code == IssueCode.INVALID_STRING
        assert issue.validation == "email"

    def test_name_defaults_to_title(self, person_json_schema):
        assert JSONSchema(person_json_schema).name == "Person"

    def test_invalid_schema_document_rejected(self):
        with pytest.raises(jsonschema.exceptions.SchemaError):
            JSONSchema({"type": 12})


class TestAsSchema:

    def test_model_class(self, person_model):
        assert isinstance(as_schema(person_model), PydanticSchema)

    def test_dict(self, person_json_schema):
        assert isinstance(as_schema(person_json_schema), JSONSchema)

    def test_existing_adapter_passes_through(self, person_model):
        adapter = PydanticSchema(person_model)

        assert as_schema(adapter) is adapter
        assert isinstance(adapter, SchemaAdapter)

    def test_unsupported_object(self):
        with pytest.raises(TypeError, match="Unsupported schema type int"):
            as_schema(42)


@pytest.mark.parametrize(
    "value,expected",
    [(None, "null"), (True, "boolean"), (3, "number"), ("x", "string"), ([], "array"), ({}, "object")],
)
def test_json_type_name(value, expected):
    assert json_type_name(value) == expected
