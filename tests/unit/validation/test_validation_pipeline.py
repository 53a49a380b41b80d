"""
Unit tests for the two-stage validation pipeline and error construction.
"""

import json

import pytest
from prometheus_client import REGISTRY

from extraction_layer.models.enums import RetryStrategyHint, ValidationErrorCode
from extraction_layer.models.errors import ValidationIssue
from extraction_layer.validation.error_factory import (
    JSON_FORMAT_SUGGESTIONS,
    create_json_error,
    create_schema_error,
    select_retry_strategy,
)
from extraction_layer.validation.pipeline import ValidationPipeline, validate_response
from extraction_layer.validation.stage2_schema import JSONSchema, PydanticSchema

FIELD_ISSUE = ValidationIssue(path=["age"], code="invalid_type", message="bad", expected="integer")
ROOT_ISSUE = ValidationIssue(path=[], code="invalid_type", message="bad", expected="object")


class TestSelectRetryStrategy:

    @pytest.mark.parametrize("code", [ValidationErrorCode.INVALID_JSON, ValidationErrorCode.EMPTY_RESPONSE])
    def test_json_failures_always_demand_json(self, code):
        assert select_retry_strategy(code, [], attempt=5, supports_session=True) == (
            RetryStrategyHint.DEMAND_JSON_FORMAT
        )

    def test_field_mismatch_adds_examples(self):
        assert select_retry_strategy(
            ValidationErrorCode.SCHEMA_MISMATCH, [FIELD_ISSUE], attempt=1, supports_session=False
        ) == RetryStrategyHint.ADD_EXAMPLES

    def test_root_mismatch_demands_json(self):
        assert select_retry_strategy(
            ValidationErrorCode.SCHEMA_MISMATCH, [ROOT_ISSUE], attempt=2, supports_session=False
        ) == RetryStrategyHint.DEMAND_JSON_FORMAT

    def test_persistent_with_sessions_resets(self):
        assert select_retry_strategy(
            ValidationErrorCode.SCHEMA_MISMATCH, [FIELD_ISSUE], attempt=3, supports_session=True
        ) == RetryStrategyHint.SESSION_RESET

    def test_persistent_without_sessions_changes_configuration(self):
        assert select_retry_strategy(
            ValidationErrorCode.SCHEMA_MISMATCH, [ROOT_ISSUE], attempt=3, supports_session=False
        ) == RetryStrategyHint.CONFIGURATION_CHANGE

    def test_custom_threshold(self):
        assert select_retry_strategy(
            ValidationErrorCode.SCHEMA_MISMATCH, [FIELD_ISSUE], attempt=2, supports_session=True, threshold=2
        ) == RetryStrategyHint.SESSION_RESET


class TestErrorFactory:

    def test_json_error(self):
        error = create_json_error(ValidationErrorCode.INVALID_JSON, "bad json", "{", parse_error="line 1")

        assert error.type == "validation"
        assert error.retry_strategy == RetryStrategyHint.DEMAND_JSON_FORMAT
        assert error.failure_mode == ValidationErrorCode.FORMAT_CONFUSION
        assert error.suggestions == list(JSON_FORMAT_SUGGESTIONS)
        assert error.details == {"parse_error": "line 1"}
        assert error.raw_value == "{"
        assert error.retryable is True

    def test_schema_error(self):
        error = create_schema_error([FIELD_ISSUE], raw_value="{}", attempt=1, supports_session=False, schema_name="Person")

        assert error.code == ValidationErrorCode.SCHEMA_MISMATCH
        assert error.message == "Schema validation failed with 1 issue"
        assert error.failure_mode == ValidationErrorCode.SCHEMA_MISMATCH
        assert error.structured_feedback.specific_issues == ["age: bad"]
        assert error.suggestions
        assert error.details == {"issue_count": 1, "attempt": 1, "schema": "Person"}

    def test_schema_error_escalates_failure_mode(self):
        error = create_schema_error([FIELD_ISSUE, ROOT_ISSUE], raw_value="{}", attempt=3, supports_session=True)

        assert error.message == "Schema validation failed with 2 issues"
        assert error.retry_strategy == RetryStrategyHint.SESSION_RESET
        assert error.failure_mode == ValidationErrorCode.CONTEXT_CONFUSION


class TestValidationPipeline:

    def test_success_returns_model_instance(self, person_model, valid_person):
        outcome = ValidationPipeline().validate(
            json.dumps(valid_person), PydanticSchema(person_model), attempt=1, supports_session=False
        )

        assert outcome.success is True
        assert isinstance(outcome.value, person_model)
        assert outcome.value.name == "Ada"
        assert outcome.error is None

    def test_success_returns_raw_value_for_json_schema(self, person_json_schema):
        outcome = validate_response('{"name": "Ada", "age": 3}', JSONSchema(person_json_schema))

        assert outcome.success is True
        assert outcome.value == {"name": "Ada", "age": 3}

    def test_stage1_failure(self, person_model):
        outcome = validate_response("not json", PydanticSchema(person_model))

        assert outcome.success is False
        assert outcome.error.code == ValidationErrorCode.INVALID_JSON
        assert outcome.error.raw_value == "not json"

    def test_empty_response(self, person_model):
        outcome = validate_response("   ", PydanticSchema(person_model))

        assert outcome.error.code == ValidationErrorCode.EMPTY_RESPONSE

    def test_stage2_failure(self, person_model):
        outcome = validate_response('{"name": "Ada", "age": "old"}', PydanticSchema(person_model), attempt=2)

        assert outcome.success is False
        assert outcome.error.code == ValidationErrorCode.SCHEMA_MISMATCH
        assert outcome.error.issues[0].path == ["age"]
        assert outcome.error.details["schema"] == "Person"
        assert outcome.error.details["attempt"] == 2

    def test_threshold_is_configurable(self, person_model):
        pipeline = ValidationPipeline(persistent_failure_threshold=1)

        outcome = pipeline.validate('{"name": ""}', PydanticSchema(person_model), attempt=1, supports_session=False)

        assert outcome.error.retry_strategy == RetryStrategyHint.CONFIGURATION_CHANGE

    def test_stage1_failure_counted_once(self, person_model):
        labels = {"stage": "stage1", "error_type": "invalid_json"}
        before = REGISTRY.get_sample_value("extraction_validation_failures_total", labels) or 0.0

        validate_response("not json", PydanticSchema(person_model))

        assert REGISTRY.get_sample_value("extraction_validation_failures_total", labels) == before + 1
