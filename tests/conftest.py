"""
Shared test fixtures for the agentic toolchain tests.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional

import pytest

from agentic_toolchain.tools.base import ToolBackend, ToolDescriptor, ToolResult
from agentic_toolchain.tools.exceptions import ToolBackendError, ToolBackendUnavailableError


class ScriptedBackend(ToolBackend):
    """
    Tool backend whose tools return scripted responses.

    A response is either a value, an exception instance (raised) or a
    callable taking the arguments. The batch entry point can be made to
    fail as a whole with ``batch_error``.
    """

    def __init__(self, responses: Dict[str, Any], batch_error: Optional[Exception] = None,
                 delays: Optional[Dict[str, float]] = None):
        self.responses = responses
        self.batch_error = batch_error
        self.delays = delays or {}
        self.calls: List[Dict[str, Any]] = []
        self.batches: List[List[Dict[str, Any]]] = []

    async def list_tools(self) -> List[ToolDescriptor]:
        return [ToolDescriptor(name=name, description=f"Scripted {name}") for name in self.responses]

    async def call_tool(self, name: str, args: Dict[str, Any]) -> Any:
        self.calls.append({"name": name, "args": args})
        if self.delays.get(name):
            await asyncio.sleep(self.delays[name])
        if name not in self.responses:
            raise ToolBackendError(f"Tool not found: {name}", tool_name=name)
        response = self.responses[name]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(args)
        return response

    async def call_tools_optimized(self, calls: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.batches.append(calls)
        if self.batch_error is not None:
            raise self.batch_error
        return await super().call_tools_optimized(calls)

    def called_names(self) -> List[str]:
        return [call["name"] for call in self.calls]


@pytest.fixture
def search_payload():
    """A search tool payload with two hits."""
    return {
        "results": [
            {"title": "Important Finding", "url": "https://example.com", "content": "Critical information about AI"},
            {"title": "Another Result", "url": "https://example2.com", "content": "More content"}
        ]
    }


@pytest.fixture
def scripted_backend_factory():
    """Build ScriptedBackend instances."""
    return ScriptedBackend


@pytest.fixture
def make_result():
    """Build ToolResults with JSON-serialized payloads."""
    def _make(name: str, payload: Any, success: bool = True, execution_time: float = 100.0,
              result_id: Optional[str] = None) -> ToolResult:
        text = payload if isinstance(payload, str) else json.dumps(payload)
        return ToolResult(name=name, result=text, success=success,
                          execution_time=execution_time, id=result_id)
    return _make


@pytest.fixture
def unavailable_error():
    """A systemic backend failure."""
    return ToolBackendUnavailableError("Connection error: ECONNREFUSED 127.0.0.1:8765")
