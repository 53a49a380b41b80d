"""Unit tests for PromptBuilder."""

import json

import pytest

from extraction_layer.llm.prompt_builder import (
    DEFAULT_EXAMPLES,
    JSON_INSTRUCTIONS,
    PromptBuilder,
    PromptParts,
    augment_prompt_with_errors,
    combine_prompt_parts,
    get_urgency_level,
)


@pytest.fixture
def builder():
    return PromptBuilder()


class TestPromptBuilder:

    def test_builder_initialization(self, builder):
        assert builder.system_template is not None
        assert builder.user_template is not None

    def test_first_attempt_uses_standard_instructions(self, builder, make_config):
        parts = builder.build_prompt(make_config(), attempt=1)

        assert "STANDARD REQUIREMENTS:" in parts.system_prompt
        assert JSON_INSTRUCTIONS[1] in parts.system_prompt
        assert "Ensure proper JSON escaping" in parts.system_prompt
        assert "Previous attempts failed" not in parts.system_prompt

    def test_instructions_escalate(self, builder, make_config):
        second = builder.build_prompt(make_config(), attempt=2).system_prompt
        third = builder.build_prompt(make_config(), attempt=3).system_prompt
        fifth = builder.build_prompt(make_config(), attempt=5).system_prompt

        assert "⚠️ IMPORTANT REQUIREMENTS:" in second
        assert "Do not include any explanatory text" in second
        assert "🚨 CRITICAL REQUIREMENTS:" in third
        assert "Previous attempts failed - follow the schema exactly" in third
        assert JSON_INSTRUCTIONS[3] in fifth

    def test_schema_description_included(self, builder, make_config):
        parts = builder.build_prompt(make_config(), attempt=1)

        assert "SCHEMA REQUIREMENTS:" in parts.system_prompt
        assert '"title": "Person"' in parts.system_prompt

    def test_context_and_lens(self, builder, make_config):
        parts = builder.build_prompt(make_config(context="HR records", lens="auditor"), attempt=1)

        assert "CONTEXT:\nHR records" in parts.system_prompt
        assert "Process the input from this perspective: auditor" in parts.system_prompt
        assert parts.additional_context == "HR records"

    def test_no_context_sections_when_absent(self, builder, make_config):
        parts = builder.build_prompt(make_config(), attempt=1)

        assert "CONTEXT:" not in parts.system_prompt
        assert "PERSPECTIVE:" not in parts.system_prompt

    def test_example_output_replaces_default_examples(self, builder, make_config):
        example = {"name": "Grace", "age": 85}

        parts = builder.build_prompt(make_config(example_output=example), attempt=1)

        assert parts.examples == [f"EXAMPLE OUTPUT FORMAT:\n{json.dumps(example, indent=2)}"]
        assert "EXAMPLE OUTPUT FORMAT:" in parts.system_prompt

    def test_default_examples(self, builder, make_config):
        parts = builder.build_prompt(make_config(), attempt=1)

        assert parts.examples == list(DEFAULT_EXAMPLES)

    def test_string_input_passed_verbatim(self, builder, make_config):
        parts = builder.build_prompt(make_config(input="raw text here"), attempt=1)

        assert "INPUT DATA:\nraw text here" in parts.user_prompt

    def test_structured_input_serialized(self, builder, make_config):
        parts = builder.build_prompt(make_config(input={"text": "Ada, 36"}), attempt=1)

        assert '"text": "Ada, 36"' in parts.user_prompt

    def test_same_inputs_same_prompt(self, builder, make_config):
        config = make_config(context="ctx")

        assert builder.build_prompt(config, 2) == builder.build_prompt(config, 2)

    def test_preload_prompt(self, builder):
        prompt = builder.build_preload_prompt({"staff": ["Ada"]}, context="Staff directory", lens="HR")

        assert "CONTEXT:\nStaff directory" in prompt
        assert "Read the material from this perspective: HR" in prompt
        assert '"staff": [' in prompt
        assert "Do not analyze or transform the material yet." in prompt

    def test_preload_prompt_without_optional_sections(self, builder):
        prompt = builder.build_preload_prompt("plain notes")

        assert "MATERIAL:\nplain notes" in prompt
        assert "CONTEXT:" not in prompt
        assert "PERSPECTIVE:" not in prompt


class TestUrgency:

    @pytest.mark.parametrize(
        "attempt,expected",
        [(1, ("STANDARD", "")), (2, ("IMPORTANT", "⚠️ ")), (3, ("CRITICAL", "🚨 ")), (9, ("CRITICAL", "🚨 "))],
    )
    def test_levels(self, attempt, expected):
        assert get_urgency_level(attempt) == expected


class TestCombine:

    def test_combine_order(self):
        parts = PromptParts(system_prompt="SYS", user_prompt="USER", examples=["EX"], error_context="ERR")

        combined = combine_prompt_parts(parts)

        assert combined.index("SYS") < combined.index("EXAMPLES:") < combined.index(
            "PREVIOUS VALIDATION ERRORS:\nERR"
        ) < combined.index("USER")

    def test_combine_without_optional_sections(self):
        combined = combine_prompt_parts(PromptParts(system_prompt="SYS", user_prompt="USER"))

        assert combined == "SYS\n\nUSER"

    def test_augment_keeps_original_parts(self):
        parts = PromptParts(system_prompt="SYS", user_prompt="USER")

        augmented = augment_prompt_with_errors(parts, "age: Expected integer")

        assert parts.error_context is None
        assert augmented.error_context == "age: Expected integer"
        assert augmented.user_prompt.startswith("USER\n\nPREVIOUS ATTEMPT FAILED VALIDATION:\nage: Expected integer")
        assert augmented.system_prompt == "SYS"
