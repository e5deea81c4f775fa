"""
Tool-specific exception classes for error handling.

This module defines the exception hierarchy for tool-related errors,
separating failures of a single tool call from failures of the tool
backend as a whole.
"""


class ToolError(Exception):
    """
    Base exception for tool-related errors.

    This is the base class for all tool-specific exceptions. It provides
    common functionality for error handling and reporting.

    Attributes:
        message: Human-readable error message
        tool_name: Name of the tool that caused the error
        context: Additional context information about the error
    """

    def __init__(self, message: str, tool_name: str = None, context: dict = None):
        super().__init__(message)
        self.message = message
        self.tool_name = tool_name
        self.context = context or {}

    def __str__(self) -> str:
        """Return a formatted error message."""
        if self.tool_name:
            return f"[{self.tool_name}] {self.message}"
        return self.message

    def to_dict(self) -> dict:
        """Convert the exception to a dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "tool_name": self.tool_name,
            "context": self.context
        }


class ToolBackendError(ToolError):
    """
    Raised by a tool backend when a single tool call fails.

    Attributes:
        status_code: HTTP status reported by the backend (if any)
    """

    def __init__(self, message: str, tool_name: str = None, context: dict = None,
                 status_code: int = None):
        super().__init__(message, tool_name, context)
        self.status_code = status_code

    def to_dict(self) -> dict:
        """Convert the exception to a dictionary for serialization."""
        result = super().to_dict()
        result["status_code"] = self.status_code
        return result


class ToolBackendUnavailableError(ToolBackendError):
    """
    Raised when the tool backend as a whole cannot serve a request.

    This is a systemic failure (connection refused, bridge down, 5xx on a
    batch endpoint) as opposed to one tool failing inside a healthy backend.
    """
    pass


class BackendProtocolError(ToolBackendUnavailableError):
    """
    Raised when a backend reply does not have the expected shape.

    Attributes:
        expected: Description of what was expected
        received: Description of what was received
    """

    def __init__(self, message: str, tool_name: str = None, context: dict = None,
                 expected: str = None, received: str = None):
        super().__init__(message, tool_name, context)
        self.expected = expected
        self.received = received

    def to_dict(self) -> dict:
        """Convert the exception to a dictionary for serialization."""
        result = super().to_dict()
        result.update({
            "expected": self.expected,
            "received": self.received
        })
        return result


class MemoryToolError(ToolBackendError):
    """Raised by the in-process memory tools for invalid requests."""
    pass
