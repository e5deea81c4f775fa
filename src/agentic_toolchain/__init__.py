# Agentic Toolchain Package
from .version import __version__
from .models import (
    BackendConfig, WorkflowConfig, FormatterConfig, LoggingConfig, SystemConfig
)
from .config import ConfigurationLoader, ConfigurationError, load_config, validate_config
from .tools import (
    ToolCall, ToolResult, ToolDescriptor, ToolBackend, ValidationResult,
    IterationRecord, WorkflowTrace,
    ToolError, ToolBackendError, ToolBackendUnavailableError,
    ErrorCategorizer, ToolCallValidator, ParallelToolExecutor,
    ResultFormatter, ToolType, identify_tool_type, ToolChainAnalyzer,
    HttpToolBackend, MemoryToolBackend, RoutingToolBackend
)
from .orchestrator import (
    AgenticWorkflowOrchestrator, ToolWorkflowEngine, WorkflowPhase, WorkflowError,
    create_engine_from_config, create_engine_from_file
)

__all__ = [
    "__version__",
    # Configuration
    "BackendConfig", "WorkflowConfig", "FormatterConfig", "LoggingConfig", "SystemConfig",
    "ConfigurationLoader", "ConfigurationError", "load_config", "validate_config",
    # Tool data model
    "ToolCall", "ToolResult", "ToolDescriptor", "ToolBackend", "ValidationResult",
    "IterationRecord", "WorkflowTrace",
    # Errors
    "ToolError", "ToolBackendError", "ToolBackendUnavailableError",
    # Engine components
    "ErrorCategorizer", "ToolCallValidator", "ParallelToolExecutor",
    "ResultFormatter", "ToolType", "identify_tool_type", "ToolChainAnalyzer",
    "HttpToolBackend", "MemoryToolBackend", "RoutingToolBackend",
    # Orchestration
    "AgenticWorkflowOrchestrator", "ToolWorkflowEngine", "WorkflowPhase", "WorkflowError",
    "create_engine_from_config", "create_engine_from_file"
]
