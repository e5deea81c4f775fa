"""
Loading of toolchain configuration files.

A configuration file is YAML with four optional sections (backend,
workflow, formatter, logging). String values may reference environment
variables as ${NAME} or ${NAME:fallback}; substituted values are converted
to the type of the field they land in before the result is validated.
"""

import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict, Union
from .models import SystemConfig, BackendConfig, WorkflowConfig, FormatterConfig, LoggingConfig


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or holds invalid values."""
    pass


ENV_REFERENCE = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')

_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def expand_env(value: Any) -> Any:
    """
    Replace ${NAME} and ${NAME:fallback} references in every string of a
    nested structure. A reference to an unset variable without a fallback
    is kept as written.
    """
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    if not isinstance(value, str):
        return value

    def lookup(match):
        name, fallback = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        return fallback if fallback is not None else match.group(0)

    return ENV_REFERENCE.sub(lookup, value)


class ConfigurationLoader:
    """
    Builds a validated SystemConfig from a YAML file or a dictionary.

    Missing sections and keys fall back to the dataclass defaults.
    """

    KNOWN_SECTIONS = ("backend", "workflow", "formatter", "logging")

    def load_from_file(self, config_path: Union[str, Path]) -> SystemConfig:
        """
        Read, expand and validate a configuration file.

        Args:
            config_path: Path to the YAML file

        Returns:
            SystemConfig: The validated configuration

        Raises:
            ConfigurationError: If the file is missing, unreadable, not a YAML
                mapping or describes an invalid configuration
        """
        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {path}")
        if not path.is_file():
            raise ConfigurationError(f"Configuration path is not a file: {path}")

        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {e}")

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a YAML object/dictionary")

        return self._build(expand_env(data))

    def load_from_dict(self, config_dict: Dict[str, Any]) -> SystemConfig:
        """
        Expand and validate an in-memory configuration.

        Raises:
            ConfigurationError: If the configuration is invalid
        """
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a dictionary")
        return self._build(expand_env(config_dict))

    def validate_config_file(self, config_path: Union[str, Path]) -> Dict[str, Any]:
        """
        Check a configuration file and report problems instead of raising.

        Returns:
            Dict with ``is_valid``, ``errors`` and ``warnings``
        """
        try:
            config = self.load_from_file(config_path)
        except ConfigurationError as e:
            return {"is_valid": False, "errors": [str(e)], "warnings": []}

        warnings = []
        if not config.backend.base_url:
            warnings.append("No backend base_url configured; only the in-process memory tools are available")

        summary = config.get_validation_summary()
        return {"is_valid": summary["is_valid"], "errors": summary["errors"], "warnings": warnings}

    def _build(self, data: Dict[str, Any]) -> SystemConfig:
        for section in self.KNOWN_SECTIONS:
            value = data.get(section)
            if value is not None and not isinstance(value, dict):
                raise ConfigurationError(f"'{section}' section must be a dictionary")

        config = SystemConfig(
            backend=self._backend(data.get("backend") or {}),
            workflow=self._workflow(data.get("workflow") or {}),
            formatter=self._formatter(data.get("formatter") or {}),
            logging=LoggingConfig(log_level=str((data.get("logging") or {}).get("log_level", "INFO")).upper())
        )

        errors = config.validate()
        if errors:
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(f"  - {error}" for error in errors)
            )
        return config

    def _backend(self, section: Dict[str, Any]) -> BackendConfig:
        base_url = str(section.get("base_url") or "")
        if ENV_REFERENCE.search(base_url):
            raise ConfigurationError(f"Unresolved environment variable in backend base_url: {base_url}")

        headers = section.get("headers") or {}
        if not isinstance(headers, dict):
            raise ConfigurationError("'backend.headers' must be a dictionary")

        return BackendConfig(
            base_url=base_url,
            connection_pool_size=_number(section, "backend", "connection_pool_size", int, 100),
            connection_timeout=_number(section, "backend", "connection_timeout", float, 10.0),
            read_timeout=_number(section, "backend", "read_timeout", float, 30.0),
            headers={str(key): str(value) for key, value in headers.items()},
            enable_memory_tools=_flag(section, "backend", "enable_memory_tools", True)
        )

    def _workflow(self, section: Dict[str, Any]) -> WorkflowConfig:
        return WorkflowConfig(
            max_iterations=_number(section, "workflow", "max_iterations", int, 3),
            max_chain_suggestions=_number(section, "workflow", "max_chain_suggestions", int, 5),
            recover_failures=_flag(section, "workflow", "recover_failures", False),
            max_alternatives=_number(section, "workflow", "max_alternatives", int, 3)
        )

    def _formatter(self, section: Dict[str, Any]) -> FormatterConfig:
        return FormatterConfig(
            search_result_limit=_number(section, "formatter", "search_result_limit", int, 5),
            file_truncate_chars=_number(section, "formatter", "file_truncate_chars", int, 500),
            memory_content_chars=_number(section, "formatter", "memory_content_chars", int, 150),
            model_result_max_chars=_number(section, "formatter", "model_result_max_chars", int, 2000)
        )


def _number(section: Dict[str, Any], section_name: str, key: str, kind: type, default: Any) -> Any:
    value = section.get(key, default)
    # Booleans are rejected even though bool subclasses int.
    if not isinstance(value, bool):
        try:
            return kind(value)
        except (TypeError, ValueError):
            pass
    raise ConfigurationError(f"'{section_name}.{key}' must be a number, got {value!r}")


def _flag(section: Dict[str, Any], section_name: str, key: str, default: bool) -> bool:
    value = section.get(key, default)
    if isinstance(value, bool):
        return value
    text = value.strip().lower() if isinstance(value, str) else None
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    raise ConfigurationError(f"'{section_name}.{key}' must be a boolean, got {value!r}")


def load_config(config_path: Union[str, Path]) -> SystemConfig:
    """Load and validate a configuration file."""
    return ConfigurationLoader().load_from_file(config_path)


def validate_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """Validate a configuration file without raising."""
    return ConfigurationLoader().validate_config_file(config_path)
