"""
Unit tests for Stage 1: JSON Parse.
"""

from extraction_layer.models.enums import ValidationErrorCode
from extraction_layer.validation.stage1_json_parse import Stage1JSONParse, strip_code_fence


class TestStage1JSONParse:
    """Test suite for Stage 1 JSON parsing."""

    def setup_method(self):
        """Setup test fixtures."""
        self.stage1 = Stage1JSONParse()

    def test_valid_json_object(self):
        result = self.stage1.validate('{"name": "Ada", "age": 36}')

        assert result.success is True
        assert result.value == {"name": "Ada", "age": 36}
        assert result.code is None

    def test_json_null_is_a_value(self):
        result = self.stage1.validate("null")

        assert result.success is True
        assert result.value is None

    def test_top_level_array(self):
        result = self.stage1.validate("[1, 2, 3]")

        assert result.success is True
        assert result.value == [1, 2, 3]

    def test_empty_string_is_empty_response(self):
        result = self.stage1.validate("")

        assert result.success is False
        assert result.code == ValidationErrorCode.EMPTY_RESPONSE
        assert "empty or whitespace-only" in result.message

    def test_whitespace_only_is_empty_response(self):
        result = self.stage1.validate("   \n\t  ")

        assert result.code == ValidationErrorCode.EMPTY_RESPONSE

    def test_none_is_empty_response(self):
        assert self.stage1.validate(None).code == ValidationErrorCode.EMPTY_RESPONSE

    def test_plain_text_is_invalid_json(self):
        result = self.stage1.validate("not json")

        assert result.success is False
        assert result.code == ValidationErrorCode.INVALID_JSON
        assert result.message.startswith("Failed to parse LLM response as JSON:")
        assert "line 1" in result.parse_error

    def test_trailing_comma_is_invalid_json(self):
        assert self.stage1.validate('{"a": 1,}').code == ValidationErrorCode.INVALID_JSON

    def test_code_fenced_json_is_unwrapped(self):
        content = '```json\n{"name": "Ada"}\n```'

        result = self.stage1.validate(content)

        assert result.success is True
        assert result.value == {"name": "Ada"}

    def test_fence_without_language_tag(self):
        assert strip_code_fence('```\n[1]\n```') == "[1]"

    def test_unfenced_content_unchanged(self):
        assert strip_code_fence('{"a": 1}') == '{"a": 1}'
