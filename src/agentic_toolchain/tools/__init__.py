"""
Tool execution core for the agentic toolchain.

This package validates model-proposed tool calls, runs them concurrently
against a tool backend, proposes chained follow-up calls and renders the
results for a model or a person.
"""

from .base import (
    ToolCall,
    ToolResult,
    ToolDescriptor,
    ToolBackend,
    ValidationResult,
    IterationRecord,
    WorkflowTrace,
    available_tool_names
)
from .exceptions import (
    ToolError,
    ToolBackendError,
    ToolBackendUnavailableError,
    BackendProtocolError,
    MemoryToolError
)
from .errors import ErrorCategory, ErrorCategorizer, categorize_error
from .validator import ToolCallValidator, ProviderProfile, ArgumentEncoding, DEFAULT_PROVIDER_PROFILES
from .executor import ParallelToolExecutor, BatchOutcome, ExecutionStats
from .formatter import ResultFormatter, ToolType, identify_tool_type
from .chaining import ToolChainAnalyzer
from .memory import MemoryStore, MemoryEntry, MEMORY_TOOLS, is_memory_tool
from .backends import (
    ConnectionPool,
    HttpToolBackend,
    MemoryToolBackend,
    RoutingToolBackend,
    create_backend
)

__all__ = [
    "ToolCall",
    "ToolResult",
    "ToolDescriptor",
    "ToolBackend",
    "ValidationResult",
    "IterationRecord",
    "WorkflowTrace",
    "available_tool_names",
    "ToolError",
    "ToolBackendError",
    "ToolBackendUnavailableError",
    "BackendProtocolError",
    "MemoryToolError",
    "ErrorCategory",
    "ErrorCategorizer",
    "categorize_error",
    "ToolCallValidator",
    "ProviderProfile",
    "ArgumentEncoding",
    "DEFAULT_PROVIDER_PROFILES",
    "ParallelToolExecutor",
    "BatchOutcome",
    "ExecutionStats",
    "ResultFormatter",
    "ToolType",
    "identify_tool_type",
    "ToolChainAnalyzer",
    "MemoryStore",
    "MemoryEntry",
    "MEMORY_TOOLS",
    "is_memory_tool",
    "ConnectionPool",
    "HttpToolBackend",
    "MemoryToolBackend",
    "RoutingToolBackend",
    "create_backend"
]
