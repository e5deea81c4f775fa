"""
Error categorization for failed tool calls.

Raw backend and connection errors are mapped to a small set of user-facing
categories so that a failed ToolResult carries a message a model (or a
person) can act on. Patterns are checked in order and the first match wins.
"""

import json
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Pattern, Tuple


class ErrorCategory(Enum):
    """User-visible error classes for failed tool calls."""
    NETWORK = "network"
    TOOL_UNAVAILABLE = "tool_unavailable"
    AUTHENTICATION = "authentication"
    RATE_LIMIT = "rate_limit"
    INVALID_ARGUMENTS = "invalid_arguments"
    SERVICE_UNAVAILABLE = "service_unavailable"
    MALFORMED_RESPONSE = "malformed_response"
    TIMEOUT = "timeout"
    GENERIC = "generic"


def _compile(*patterns: str) -> List[Pattern]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


# Order matters: first match wins.
ERROR_PATTERNS: List[Tuple[ErrorCategory, List[Pattern]]] = [
    (ErrorCategory.NETWORK, _compile(
        r"econnrefused", r"econnreset", r"enotfound", r"connection (refused|reset|closed|error|failed)",
        r"not connected", r"network", r"cannot connect", r"dns", r"socket"
    )),
    (ErrorCategory.TOOL_UNAVAILABLE, _compile(
        r"tool not found", r"unknown tool", r"no such tool", r"method not found", r"unknown method",
        r"not available", r"\b404\b", r"not found"
    )),
    (ErrorCategory.AUTHENTICATION, _compile(
        r"unauthori[sz]ed", r"\b401\b", r"\b403\b", r"forbidden", r"authentication",
        r"api key", r"permission denied", r"access denied"
    )),
    (ErrorCategory.RATE_LIMIT, _compile(
        r"rate limit", r"\b429\b", r"too many requests", r"quota"
    )),
    (ErrorCategory.INVALID_ARGUMENTS, _compile(
        r"invalid param", r"invalid argument", r"parameter validation", r"validation error",
        r"missing required", r"bad request", r"\b400\b"
    )),
    (ErrorCategory.SERVICE_UNAVAILABLE, _compile(
        r"unavailable", r"\b50[0-4]\b", r"server error", r"internal error", r"overloaded", r"bad gateway"
    )),
    (ErrorCategory.MALFORMED_RESPONSE, _compile(
        r"json", r"unexpected token", r"parse error", r"malformed", r"invalid response", r"decode"
    )),
    (ErrorCategory.TIMEOUT, _compile(
        r"timeout", r"timed out", r"etimedout", r"deadline exceeded"
    )),
]


class ErrorCategorizer:
    """
    Maps raw tool errors to categorized, user-facing messages.

    Every message names the tool and keeps the raw error text, so the
    original cause stays visible after categorization.
    """

    def __init__(self, patterns: Optional[List[Tuple[ErrorCategory, List[Pattern]]]] = None):
        self.patterns = patterns or ERROR_PATTERNS

    def classify(self, raw_error: Any) -> ErrorCategory:
        """
        Determine the category of a raw error.

        Args:
            raw_error: Exception or error text

        Returns:
            ErrorCategory: The first matching category, GENERIC if none match
        """
        message = self._error_text(raw_error)
        for category, category_patterns in self.patterns:
            if any(pattern.search(message) for pattern in category_patterns):
                return category
        return ErrorCategory.GENERIC

    def categorize_error(self, tool_name: str, raw_error: Any,
                         args: Optional[Dict[str, Any]] = None) -> str:
        """
        Build the user-facing message for a failed tool call.

        Args:
            tool_name: Name of the failed tool
            raw_error: Exception or error text reported for the call
            args: Arguments the tool was called with

        Returns:
            str: Categorized error message
        """
        message = self._error_text(raw_error)
        category = self.classify(message)

        if category == ErrorCategory.NETWORK:
            return (f"🔌 Connection Error: Unable to reach the service behind {tool_name}. "
                    f"Check that the tool server is running. Details: {message}")
        if category == ErrorCategory.TOOL_UNAVAILABLE:
            return (f"🔧 Tool Unavailable: The {tool_name} tool is not currently available. "
                    f"Details: {message}")
        if category == ErrorCategory.AUTHENTICATION:
            return (f"🔑 Authentication Error: {tool_name} was refused access. "
                    f"Check the API key or permissions. Details: {message}")
        if category == ErrorCategory.RATE_LIMIT:
            return (f"⏳ Rate Limit: {tool_name} is being rate limited. "
                    f"Try again shortly. Details: {message}")
        if category == ErrorCategory.INVALID_ARGUMENTS:
            return (f"📝 Parameter Error: Invalid parameters for {tool_name}. "
                    f"{self._describe_args(args)} Details: {message}")
        if category == ErrorCategory.SERVICE_UNAVAILABLE:
            return (f"🚫 Service Unavailable: The service behind {tool_name} is temporarily unavailable. "
                    f"Details: {message}")
        if category == ErrorCategory.MALFORMED_RESPONSE:
            return (f"📄 Response Error: {tool_name} returned a malformed response. "
                    f"Details: {message}")
        if category == ErrorCategory.TIMEOUT:
            return (f"⏱️ Timeout: {tool_name} did not respond in time. "
                    f"Details: {message}")
        return f"❌ Tool Error: {tool_name} execution failed. Details: {message}"

    @staticmethod
    def _error_text(raw_error: Any) -> str:
        if raw_error is None:
            return "Unknown error"
        if isinstance(raw_error, BaseException):
            text = getattr(raw_error, "message", None) or str(raw_error)
            return text or raw_error.__class__.__name__
        return str(raw_error) or "Unknown error"

    @staticmethod
    def _describe_args(args: Optional[Dict[str, Any]]) -> str:
        if not args:
            return "No arguments provided."
        try:
            return f"Provided: {json.dumps(args, sort_keys=True, default=str)}."
        except (TypeError, ValueError):
            return f"Provided: {args!r}."


def categorize_error(tool_name: str, raw_error: Any, args: Optional[Dict[str, Any]] = None) -> str:
    """
    Convenience function to categorize an error with the default patterns.

    Args:
        tool_name: Name of the failed tool
        raw_error: Exception or error text
        args: Arguments the tool was called with

    Returns:
        str: Categorized error message
    """
    categorizer = ErrorCategorizer()
    return categorizer.categorize_error(tool_name, raw_error, args)
