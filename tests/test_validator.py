"""
Unit tests for per-provider tool call validation.
"""

import pytest

from agentic_toolchain.tools.base import ToolCall
from agentic_toolchain.tools.validator import (
    ArgumentEncoding,
    ProviderProfile,
    ToolCallValidator
)


class TestToolCallValidator:
    """Test cases for the ToolCallValidator class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.validator = ToolCallValidator()

    def test_openai_call_missing_id(self):
        """A call without an id is reported for OpenAI."""
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name="x", arguments={})], "openai")

        assert result.valid is False
        assert result.errors == ["OpenAI tool call missing required id: x"]

    def test_openai_valid_call(self):
        calls = [ToolCall(name="web-search", arguments={"query": "python"}, id="call_1")]
        result = self.validator.validate_tool_calls_for_provider(calls, "openai")

        assert result.valid is True
        assert result.errors == []

    def test_mistral_requires_id(self):
        result = self.validator.validate([ToolCall(name="lookup")], "mistral")

        assert result.errors == ["Mistral tool call missing required id: lookup"]

    def test_anthropic_does_not_require_id(self):
        result = self.validator.validate([ToolCall(name="lookup", arguments={"q": 1})], "anthropic")

        assert result.valid is True

    def test_object_only_provider_rejects_string_arguments(self):
        calls = [ToolCall(name="lookup", arguments='{"q": 1}', id="1")]
        result = self.validator.validate_tool_calls_for_provider(calls, "openai")

        assert result.errors == ["OpenAI tool call arguments must be object: lookup"]

    def test_ollama_accepts_json_string_arguments(self):
        calls = [ToolCall(name="lookup", arguments='{"q": "weather"}')]
        result = self.validator.validate_tool_calls_for_provider(calls, "ollama")

        assert result.valid is True

    @pytest.mark.parametrize("arguments", ["{not json", "[1, 2, 3]", '"just a string"'])
    def test_ollama_rejects_strings_that_are_not_json_objects(self, arguments):
        calls = [ToolCall(name="lookup", arguments=arguments)]
        result = self.validator.validate_tool_calls_for_provider(calls, "ollama")

        assert result.errors == ["Ollama tool call has invalid JSON arguments: lookup"]

    def test_name_too_long(self):
        name = "a" * 65
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name=name, id="1")], "openai")

        assert result.errors == [f"Tool name too long (65 > 64): {name}"]

    def test_name_at_limit_is_valid(self):
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name="a" * 64, id="1")], "openai")

        assert result.valid is True

    def test_ollama_has_no_name_length_limit(self):
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name="a" * 100)], "ollama")

        assert result.valid is True

    @pytest.mark.parametrize("provider, call_id", [("deepseek", "1"), ("gemini", None), ("lmstudio", None)])
    def test_providers_without_name_length_limit(self, provider, call_id):
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name="a" * 100, id=call_id)], provider)

        assert result.valid is True

    def test_name_with_invalid_characters(self):
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name="web search!")], "anthropic")

        assert result.errors == [
            "Tool name contains invalid characters (allowed: A-Z, a-z, 0-9, _ and -): web search!"
        ]

    def test_missing_name_skips_other_name_checks(self):
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name="")], "anthropic")

        assert result.errors == ["Tool call missing name"]

    def test_errors_accumulate_in_call_order(self):
        calls = [
            ToolCall(name="first", arguments="oops"),
            ToolCall(name="bad name", arguments={}, id="2"),
            ToolCall(name="", arguments={}, id="3")
        ]
        result = self.validator.validate_tool_calls_for_provider(calls, "openai")

        assert result.valid is False
        assert result.errors == [
            "OpenAI tool call missing required id: first",
            "OpenAI tool call arguments must be object: first",
            "Tool name contains invalid characters (allowed: A-Z, a-z, 0-9, _ and -): bad name",
            "Tool call missing name"
        ]

    def test_provider_id_is_case_insensitive(self):
        result = self.validator.validate_tool_calls_for_provider([ToolCall(name="x")], "OpenAI")

        assert result.errors == ["OpenAI tool call missing required id: x"]

    def test_unknown_provider_uses_permissive_profile(self):
        calls = [ToolCall(name="lookup", arguments='{"q": 1}')]
        result = self.validator.validate_tool_calls_for_provider(calls, "acme-llm")

        assert result.valid is True

    def test_unknown_provider_still_checks_json_strings(self):
        calls = [ToolCall(name="lookup", arguments="nope")]
        result = self.validator.validate_tool_calls_for_provider(calls, "acme-llm")

        assert result.errors == ["acme-llm tool call has invalid JSON arguments: lookup"]

    def test_custom_profiles(self):
        validator = ToolCallValidator(profiles={
            "strict": ProviderProfile("strict", "Strict", requires_id=True,
                                      argument_encoding=ArgumentEncoding.OBJECT, max_tool_name_length=5)
        })
        result = validator.validate_tool_calls_for_provider([ToolCall(name="toolong")], "strict")

        assert result.errors == [
            "Strict tool call missing required id: toolong",
            "Tool name too long (7 > 5): toolong"
        ]

    def test_empty_batch_is_valid(self):
        result = self.validator.validate_tool_calls_for_provider([], "openai")

        assert result.valid is True
        assert result.to_dict() == {"valid": True, "errors": []}
