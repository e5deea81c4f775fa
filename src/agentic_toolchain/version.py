"""Version information for the agentic toolchain."""

__version__ = "0.1.0"
