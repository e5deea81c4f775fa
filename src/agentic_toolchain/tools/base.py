"""
Base classes and data models for the tool system.

This module defines the records exchanged between the validator, the
parallel executor, the chain analyzer and the result formatter, together
with the abstract ToolBackend contract that actually runs tools.
"""

import asyncio
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union


@dataclass
class ToolCall:
    """
    A proposed tool invocation requested by a language model.

    Attributes:
        name: Name of the tool to invoke
        arguments: Argument map, or a JSON-encoded string for providers that send one
        id: Call identifier (required by some provider conventions)
        chained_from: Name of the tool whose result triggered this call
    """
    name: str
    arguments: Union[Dict[str, Any], str] = field(default_factory=dict)
    id: Optional[str] = None
    chained_from: Optional[str] = None

    def argument_map(self) -> Dict[str, Any]:
        """
        Get the arguments as a dictionary.

        JSON-string arguments are decoded; a string that does not decode to a
        JSON object yields an empty dictionary.
        """
        if isinstance(self.arguments, Mapping):
            return dict(self.arguments)
        if isinstance(self.arguments, str):
            try:
                decoded = json.loads(self.arguments)
            except ValueError:
                return {}
            return decoded if isinstance(decoded, dict) else {}
        return {}

    def to_backend_payload(self) -> Dict[str, Any]:
        """Convert the call to the shape the tool backend expects."""
        return {"id": self.id, "name": self.name, "args": self.argument_map()}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the call to a dictionary for serialization."""
        data = {"id": self.id, "name": self.name, "arguments": self.arguments}
        if self.chained_from:
            data["chained_from"] = self.chained_from
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolCall":
        """
        Create a ToolCall from a dictionary.

        Accepts both the flat form ``{"id", "name", "arguments"}`` and the
        OpenAI-style nested form ``{"id", "function": {"name", "arguments"}}``.
        """
        function = data.get("function")
        if isinstance(function, dict):
            name = function.get("name", "")
            arguments = function.get("arguments", {})
        else:
            name = data.get("name", "")
            arguments = data.get("arguments", data.get("args", {}))
        return cls(
            name=name,
            arguments=arguments if arguments is not None else {},
            id=data.get("id"),
            chained_from=data.get("chained_from", data.get("chainedFrom"))
        )


@dataclass(frozen=True)
class ToolResult:
    """
    Outcome of a single ToolCall.

    Results are created by the executor once a call settles and are not
    modified afterwards.

    Attributes:
        name: Name of the tool that produced this result
        result: Serialized payload on success, categorized error message on failure
        success: Whether the tool call succeeded
        execution_time: Wall-clock execution time in milliseconds
        id: Identifier of the originating call
        chained_from: Name of the tool whose result triggered the call
    """
    name: str
    result: str
    success: bool
    execution_time: float = 0.0
    id: Optional[str] = None
    chained_from: Optional[str] = None

    def get_summary(self) -> str:
        """Get a brief summary of the result."""
        status = "SUCCESS" if self.success else "FAILED"
        return f"[{self.name}] {status} - {len(self.result)} chars, {self.execution_time:.0f}ms"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "result": self.result,
            "success": self.success,
            "execution_time": self.execution_time,
            "chained_from": self.chained_from
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolResult":
        """Create a ToolResult from a dictionary."""
        return cls(
            name=data["name"],
            result=data.get("result", ""),
            success=data["success"],
            execution_time=data.get("execution_time", data.get("executionTime", 0.0)),
            id=data.get("id"),
            chained_from=data.get("chained_from", data.get("chainedFrom"))
        )


@dataclass
class ToolDescriptor:
    """
    Metadata about a tool the model is allowed to call.

    Attributes:
        name: Unique tool name
        description: Human-readable description
        input_schema: JSON schema of the tool arguments
    """
    name: str
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the descriptor to an MCP-style dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolDescriptor":
        """
        Create a descriptor from a provider or MCP tool definition.

        Understands ``{"type": "function", "function": {...}}`` (OpenAI),
        ``{"name", "input_schema"}`` (Anthropic) and ``{"name", "inputSchema"}`` (MCP).
        """
        source = data.get("function") if isinstance(data.get("function"), dict) else data
        schema = (
            source.get("parameters")
            or source.get("input_schema")
            or source.get("inputSchema")
            or {}
        )
        return cls(
            name=source.get("name", ""),
            description=source.get("description", ""),
            input_schema=schema
        )

    @classmethod
    def coerce(cls, tool: Union["ToolDescriptor", Dict[str, Any], str]) -> "ToolDescriptor":
        """Convert a descriptor, a tool definition dict or a bare name into a descriptor."""
        if isinstance(tool, ToolDescriptor):
            return tool
        if isinstance(tool, str):
            return cls(name=tool)
        return cls.from_dict(tool)


def available_tool_names(available_tools: List[Any]) -> List[str]:
    """Get the names of the available tools, preserving order."""
    names = []
    for tool in available_tools or []:
        name = ToolDescriptor.coerce(tool).name
        if name and name not in names:
            names.append(name)
    return names


@dataclass
class ValidationResult:
    """
    Outcome of validating a batch of tool calls for one provider.

    Attributes:
        valid: True when no rule was violated
        errors: Every violation, in call order
    """
    valid: bool
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the validation result to a dictionary."""
        return {"valid": self.valid, "errors": list(self.errors)}


@dataclass
class IterationRecord:
    """
    One round of an agentic workflow.

    Attributes:
        iteration: 1-based round number
        tool_calls: Calls executed in this round
        results: Results of those calls, in call order
        chained_tools: Follow-up calls proposed after this round
        duration_ms: Wall-clock duration of the execution step
    """
    iteration: int
    tool_calls: List[ToolCall] = field(default_factory=list)
    results: List[ToolResult] = field(default_factory=list)
    chained_tools: List[ToolCall] = field(default_factory=list)
    duration_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert the record to a dictionary for serialization."""
        return {
            "iteration": self.iteration,
            "tool_calls": [call.to_dict() for call in self.tool_calls],
            "results": [result.to_dict() for result in self.results],
            "chained_tools": [call.to_dict() for call in self.chained_tools],
            "duration_ms": self.duration_ms
        }


@dataclass
class WorkflowTrace:
    """
    Full trace of an agentic workflow.

    Attributes:
        workflow: Iteration records in execution order
        results: Flattened results of every round
        summary: Model-consumable summary of all results
    """
    workflow: List[IterationRecord] = field(default_factory=list)
    results: List[ToolResult] = field(default_factory=list)
    summary: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert the trace to a dictionary for serialization."""
        return {
            "workflow": [record.to_dict() for record in self.workflow],
            "results": [result.to_dict() for result in self.results],
            "summary": self.summary
        }


class ToolBackend(ABC):
    """
    Abstract base class for the service that actually executes tools.

    Concrete backends must implement ``call_tool`` and ``list_tools``. The
    default ``call_tools_optimized`` runs every call concurrently through
    ``call_tool`` and converts individual failures into error entries, so it
    only raises when something outside a single call goes wrong. Backends
    with a native batch entry point override it.
    """

    @abstractmethod
    async def call_tool(self, name: str, args: Dict[str, Any]) -> Any:
        """
        Execute one tool.

        Args:
            name: Tool name
            args: Tool arguments

        Returns:
            The tool's raw result

        Raises:
            ToolBackendError: If the tool call fails
        """
        pass

    @abstractmethod
    async def list_tools(self) -> List[ToolDescriptor]:
        """
        Get the tools this backend can execute.

        Returns:
            List[ToolDescriptor]: Available tools
        """
        pass

    async def call_tools_optimized(self, calls: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Execute a batch of tools concurrently in one round trip.

        Args:
            calls: ``{"id", "name", "args"}`` entries

        Returns:
            ``{"id", "name", "success", "result" | "error", "executionTime"}``
            entries in call order
        """
        async def run(call: Dict[str, Any]) -> Dict[str, Any]:
            start_time = time.perf_counter()
            try:
                result = await self.call_tool(call["name"], call.get("args") or {})
            except Exception as e:
                return {
                    "id": call.get("id"),
                    "name": call["name"],
                    "result": None,
                    "success": False,
                    "error": getattr(e, "message", None) or str(e),
                    "executionTime": elapsed_ms(start_time)
                }
            return {
                "id": call.get("id"),
                "name": call["name"],
                "result": result,
                "success": True,
                "executionTime": elapsed_ms(start_time)
            }

        results = await asyncio.gather(*(run(call) for call in calls))
        return list(results)

    async def close(self) -> None:
        """Release backend resources."""
        pass


def elapsed_ms(start_time: float) -> float:
    """Milliseconds elapsed since a ``time.perf_counter()`` reading."""
    return round((time.perf_counter() - start_time) * 1000.0, 2)
