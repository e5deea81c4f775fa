"""
Per-provider structural validation of proposed tool calls.

Each LLM provider has its own tool-calling convention: whether calls carry
an id, whether arguments arrive as an object or a JSON string, and how long
a tool name may be. The validator checks a batch against those rules and
reports every violation. It never blocks execution.
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping, Optional

from .base import ToolCall, ValidationResult


TOOL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
DEFAULT_MAX_TOOL_NAME_LENGTH = 64


class ArgumentEncoding(Enum):
    """How a provider encodes tool-call arguments."""
    OBJECT = "object"            # Arguments must be a native mapping
    OBJECT_OR_JSON = "object_or_json"  # A JSON-encoded object string is also accepted


@dataclass(frozen=True)
class ProviderProfile:
    """
    Tool-calling conventions of one provider.

    Attributes:
        provider_id: Provider identifier ("openai", "anthropic", ...)
        display_name: Name used in error messages
        requires_id: Whether every tool call must carry an id
        argument_encoding: Accepted argument encoding
        max_tool_name_length: Maximum tool name length, None for no limit
    """
    provider_id: str
    display_name: str
    requires_id: bool = False
    argument_encoding: ArgumentEncoding = ArgumentEncoding.OBJECT
    max_tool_name_length: Optional[int] = DEFAULT_MAX_TOOL_NAME_LENGTH


DEFAULT_PROVIDER_PROFILES: Dict[str, ProviderProfile] = {
    "openai": ProviderProfile("openai", "OpenAI", requires_id=True),
    "mistral": ProviderProfile("mistral", "Mistral", requires_id=True),
    "deepseek": ProviderProfile("deepseek", "DeepSeek", requires_id=True, max_tool_name_length=None),
    "openrouter": ProviderProfile("openrouter", "OpenRouter", requires_id=True),
    "anthropic": ProviderProfile("anthropic", "Anthropic"),
    "gemini": ProviderProfile("gemini", "Gemini", max_tool_name_length=None),
    "ollama": ProviderProfile(
        "ollama", "Ollama",
        argument_encoding=ArgumentEncoding.OBJECT_OR_JSON,
        max_tool_name_length=None
    ),
    "lmstudio": ProviderProfile(
        "lmstudio", "LM Studio",
        argument_encoding=ArgumentEncoding.OBJECT_OR_JSON,
        max_tool_name_length=None
    ),
}


class ToolCallValidator:
    """
    Validates batches of tool calls against provider conventions.

    Every rule is applied to every call and all violations are collected,
    so a caller sees the full list of problems in one pass.
    """

    def __init__(self, profiles: Optional[Dict[str, ProviderProfile]] = None):
        """
        Initialize the validator.

        Args:
            profiles: Provider profiles keyed by provider id (defaults to the built-ins)
        """
        self.profiles = dict(profiles or DEFAULT_PROVIDER_PROFILES)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def get_profile(self, provider_id: Optional[str]) -> ProviderProfile:
        """
        Get the profile for a provider.

        Unknown providers get a permissive profile: no id requirement,
        object or JSON-string arguments and the default name length limit.
        """
        key = (provider_id or "").strip().lower()
        profile = self.profiles.get(key)
        if profile is not None:
            return profile
        return ProviderProfile(
            provider_id=key or "generic",
            display_name=provider_id or "Generic",
            argument_encoding=ArgumentEncoding.OBJECT_OR_JSON
        )

    def validate_tool_calls_for_provider(self, calls: List[ToolCall],
                                         provider_id: Optional[str]) -> ValidationResult:
        """
        Validate a batch of tool calls for a provider.

        Args:
            calls: Proposed tool calls
            provider_id: Provider whose conventions apply

        Returns:
            ValidationResult: valid flag and every violation found
        """
        profile = self.get_profile(provider_id)
        errors: List[str] = []

        for call in calls:
            errors.extend(self._validate_call(call, profile))

        if errors:
            self.logger.warning(
                f"{len(errors)} validation issue(s) in {len(calls)} {profile.display_name} tool call(s)"
            )

        return ValidationResult(valid=not errors, errors=errors)

    # Alias matching the short operation name.
    validate = validate_tool_calls_for_provider

    def _validate_call(self, call: ToolCall, profile: ProviderProfile) -> List[str]:
        errors = []
        name = call.name or ""

        if profile.requires_id and not call.id:
            errors.append(f"{profile.display_name} tool call missing required id: {name}")

        errors.extend(self._validate_arguments(call, profile))

        if not name:
            errors.append("Tool call missing name")
            return errors

        if profile.max_tool_name_length is not None and len(name) > profile.max_tool_name_length:
            errors.append(
                f"Tool name too long ({len(name)} > {profile.max_tool_name_length}): {name}"
            )

        if not TOOL_NAME_PATTERN.match(name):
            errors.append(
                f"Tool name contains invalid characters (allowed: A-Z, a-z, 0-9, _ and -): {name}"
            )

        return errors

    def _validate_arguments(self, call: ToolCall, profile: ProviderProfile) -> List[str]:
        arguments = call.arguments

        if isinstance(arguments, Mapping):
            return []

        if isinstance(arguments, str) and profile.argument_encoding == ArgumentEncoding.OBJECT_OR_JSON:
            try:
                decoded = json.loads(arguments)
            except ValueError:
                decoded = None
            if isinstance(decoded, dict):
                return []
            return [f"{profile.display_name} tool call has invalid JSON arguments: {call.name}"]

        return [f"{profile.display_name} tool call arguments must be object: {call.name}"]
