"""
Configuration models for the agentic toolchain.

This module contains the configuration sections used to build a tool
workflow engine: the tool backend connection, workflow limits, result
formatting and logging.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List
import json


@dataclass
class BackendConfig:
    """
    Configuration for the tool backend.

    Attributes:
        base_url: Base URL of the HTTP tool bus (empty for in-process memory tools only)
        connection_pool_size: Maximum number of pooled HTTP connections
        connection_timeout: Connection timeout in seconds
        read_timeout: Total request timeout in seconds
        headers: Extra HTTP headers sent with every request
        enable_memory_tools: Whether the in-process memory tools are exposed
    """
    base_url: str = ""
    connection_pool_size: int = 100
    connection_timeout: float = 10.0
    read_timeout: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)
    enable_memory_tools: bool = True

    def validate(self) -> List[str]:
        """Validate the backend configuration and return any error messages."""
        errors = []

        if self.base_url and not self.base_url.startswith(("http://", "https://")):
            errors.append("Base URL must start with http:// or https://")

        if self.connection_pool_size <= 0:
            errors.append("Connection pool size must be greater than 0")

        if self.connection_timeout <= 0:
            errors.append("Connection timeout must be greater than 0")

        if self.read_timeout <= 0:
            errors.append("Read timeout must be greater than 0")

        if not isinstance(self.headers, dict):
            errors.append("Headers must be a mapping")

        if not self.base_url and not self.enable_memory_tools:
            errors.append("At least one tool source is required: set a base URL or enable memory tools")

        return errors

    def is_valid(self) -> bool:
        """Check if the backend configuration is valid."""
        return len(self.validate()) == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert backend config to dictionary for serialization."""
        return {
            "base_url": self.base_url,
            "connection_pool_size": self.connection_pool_size,
            "connection_timeout": self.connection_timeout,
            "read_timeout": self.read_timeout,
            "headers": self.headers,
            "enable_memory_tools": self.enable_memory_tools
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BackendConfig":
        """Create backend config from dictionary."""
        return cls(
            base_url=data.get("base_url") or "",
            connection_pool_size=data.get("connection_pool_size", 100),
            connection_timeout=data.get("connection_timeout", 10.0),
            read_timeout=data.get("read_timeout", 30.0),
            headers=data.get("headers") or {},
            enable_memory_tools=data.get("enable_memory_tools", True)
        )


@dataclass
class WorkflowConfig:
    """
    Configuration for agentic workflow behavior.

    Attributes:
        max_iterations: Maximum number of execute/analyze rounds
        max_chain_suggestions: Maximum number of chained calls proposed per round
        recover_failures: Whether failed calls are retried against alternative tools
        max_alternatives: Maximum number of alternative tools considered per failure
    """
    max_iterations: int = 3
    max_chain_suggestions: int = 5
    recover_failures: bool = False
    max_alternatives: int = 3

    def validate(self) -> List[str]:
        """Validate the workflow configuration and return any error messages."""
        errors = []

        if self.max_iterations <= 0:
            errors.append("Max iterations must be greater than 0")

        if self.max_chain_suggestions < 0:
            errors.append("Max chain suggestions cannot be negative")

        if self.max_alternatives < 0:
            errors.append("Max alternatives cannot be negative")

        return errors

    def is_valid(self) -> bool:
        """Check if the workflow configuration is valid."""
        return len(self.validate()) == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert workflow config to dictionary for serialization."""
        return {
            "max_iterations": self.max_iterations,
            "max_chain_suggestions": self.max_chain_suggestions,
            "recover_failures": self.recover_failures,
            "max_alternatives": self.max_alternatives
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowConfig":
        """Create workflow config from dictionary."""
        return cls(
            max_iterations=data.get("max_iterations", 3),
            max_chain_suggestions=data.get("max_chain_suggestions", 5),
            recover_failures=data.get("recover_failures", False),
            max_alternatives=data.get("max_alternatives", 3)
        )


@dataclass
class FormatterConfig:
    """
    Configuration for tool result formatting.

    Attributes:
        search_result_limit: Number of search hits shown per search result
        file_truncate_chars: File content length shown before truncation
        memory_content_chars: Memory content length shown per memory
        model_result_max_chars: Maximum length of one formatted result in the model summary
    """
    search_result_limit: int = 5
    file_truncate_chars: int = 500
    memory_content_chars: int = 150
    model_result_max_chars: int = 2000

    def validate(self) -> List[str]:
        """Validate the formatter configuration and return any error messages."""
        errors = []

        if self.search_result_limit <= 0:
            errors.append("Search result limit must be greater than 0")

        if self.file_truncate_chars <= 0:
            errors.append("File truncate chars must be greater than 0")

        if self.memory_content_chars <= 0:
            errors.append("Memory content chars must be greater than 0")

        if self.model_result_max_chars <= 0:
            errors.append("Model result max chars must be greater than 0")

        return errors

    def is_valid(self) -> bool:
        """Check if the formatter configuration is valid."""
        return len(self.validate()) == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert formatter config to dictionary for serialization."""
        return {
            "search_result_limit": self.search_result_limit,
            "file_truncate_chars": self.file_truncate_chars,
            "memory_content_chars": self.memory_content_chars,
            "model_result_max_chars": self.model_result_max_chars
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormatterConfig":
        """Create formatter config from dictionary."""
        return cls(
            search_result_limit=data.get("search_result_limit", 5),
            file_truncate_chars=data.get("file_truncate_chars", 500),
            memory_content_chars=data.get("memory_content_chars", 150),
            model_result_max_chars=data.get("model_result_max_chars", 2000)
        )


@dataclass
class LoggingConfig:
    """
    Configuration for logging.

    Attributes:
        log_level: Logging level ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
    """
    log_level: str = "INFO"

    def validate(self) -> List[str]:
        """Validate the logging configuration and return any error messages."""
        errors = []

        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level not in valid_log_levels:
            errors.append(f"Log level must be one of: {', '.join(valid_log_levels)}")

        return errors

    def is_valid(self) -> bool:
        """Check if the logging configuration is valid."""
        return len(self.validate()) == 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert logging config to dictionary for serialization."""
        return {"log_level": self.log_level}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingConfig":
        """Create logging config from dictionary."""
        return cls(log_level=data.get("log_level", "INFO"))


@dataclass
class SystemConfig:
    """
    Complete system configuration combining all configuration sections.

    Every section is optional in the configuration file and falls back
    to its defaults.
    """
    backend: BackendConfig = field(default_factory=BackendConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    formatter: FormatterConfig = field(default_factory=FormatterConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> List[str]:
        """Validate the complete system configuration and return any error messages."""
        errors = []

        errors.extend([f"Backend: {error}" for error in self.backend.validate()])
        errors.extend([f"Workflow: {error}" for error in self.workflow.validate()])
        errors.extend([f"Formatter: {error}" for error in self.formatter.validate()])
        errors.extend([f"Logging: {error}" for error in self.logging.validate()])

        return errors

    def is_valid(self) -> bool:
        """Check if the complete system configuration is valid."""
        return len(self.validate()) == 0

    def get_validation_summary(self) -> Dict[str, Any]:
        """Get a detailed validation summary."""
        errors = self.validate()
        return {
            "is_valid": len(errors) == 0,
            "error_count": len(errors),
            "errors": errors,
            "sections": {
                "backend": self.backend.is_valid(),
                "workflow": self.workflow.is_valid(),
                "formatter": self.formatter.is_valid(),
                "logging": self.logging.is_valid()
            }
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert system config to dictionary for serialization."""
        return {
            "backend": self.backend.to_dict(),
            "workflow": self.workflow.to_dict(),
            "formatter": self.formatter.to_dict(),
            "logging": self.logging.to_dict()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SystemConfig":
        """Create system config from dictionary."""
        return cls(
            backend=BackendConfig.from_dict(data.get("backend") or {}),
            workflow=WorkflowConfig.from_dict(data.get("workflow") or {}),
            formatter=FormatterConfig.from_dict(data.get("formatter") or {}),
            logging=LoggingConfig.from_dict(data.get("logging") or {})
        )

    def to_json(self) -> str:
        """Convert system config to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_json(cls, json_str: str) -> "SystemConfig":
        """Create system config from JSON string."""
        return cls.from_dict(json.loads(json_str))
