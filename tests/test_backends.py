"""
Unit tests for the tool backends and the in-process memory store.
"""

import asyncio
import json
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest

from agentic_toolchain.models import BackendConfig
from agentic_toolchain.tools.backends import (
    ConnectionPool,
    HttpToolBackend,
    MemoryToolBackend,
    RoutingToolBackend,
    create_backend
)
from agentic_toolchain.tools.exceptions import (
    BackendProtocolError,
    MemoryToolError,
    ToolBackendError,
    ToolBackendUnavailableError
)
from agentic_toolchain.tools.memory import MEMORY_TOOL_NAMES, MemoryStore, is_memory_tool


class FakeResponse:
    def __init__(self, status=200, body=None, text="", content_type="application/json"):
        self.status = status
        self.body = body
        self._text = text
        self.content_type = content_type

    async def json(self, content_type=None):
        if isinstance(self.body, Exception):
            raise self.body
        return self.body

    async def text(self):
        return self._text


class FakeRequest:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self.response

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """Stands in for an aiohttp session; replies are consumed in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.requests = []

    def request(self, method, url, json=None):
        self.requests.append({"method": method, "url": url, "json": json})
        reply = self.replies.pop(0)
        if isinstance(reply, BaseException):
            return FakeRequest(error=reply)
        return FakeRequest(response=reply)


def http_backend(*replies):
    session = FakeSession(*replies)
    pool = Mock()
    pool.get_session = AsyncMock(return_value=session)
    pool.close = AsyncMock()
    backend = HttpToolBackend(BackendConfig(base_url="http://localhost:8765/"), pool=pool)
    return backend, session, pool


class TestMemoryStore:
    """Test cases for the MemoryStore class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.store = MemoryStore()

    def add(self, title, content, **extra):
        args = {"type": "general", "title": title, "content": content}
        args.update(extra)
        return self.store.store(args)["id"]

    def test_store(self):
        reply = self.store.store({
            "type": "user_preference", "title": "Theme", "content": "User likes dark mode",
            "tags": ["ui"], "projectId": "p1"
        })

        assert reply["success"] is True
        assert reply["id"].startswith("mem_")
        assert reply["stored"]["title"] == "Theme"
        assert reply["stored"]["project_id"] == "p1"
        assert len(self.store) == 1

    def test_store_rejects_unknown_type(self):
        with pytest.raises(MemoryToolError) as exc_info:
            self.store.store({"type": "secret", "title": "t", "content": "c"})

        assert "Invalid memory type 'secret'" in str(exc_info.value)

    @pytest.mark.parametrize("args", [
        {"type": "general", "content": "c"},
        {"type": "general", "title": "t", "content": "   "},
    ])
    def test_store_requires_title_and_content(self, args):
        with pytest.raises(MemoryToolError, match="Missing required parameter"):
            self.store.store(args)

    def test_store_accepts_comma_separated_tags(self):
        reply = self.store.store({"title": "t", "content": "c", "tags": "a, b,,c"})

        assert reply["stored"]["tags"] == ["a", "b", "c"]
        assert reply["stored"]["type"] == "general"

    def test_search_by_text_newest_first(self):
        self.add("Python tips", "Use list comprehensions")
        self.add("Cooking", "Salt the pasta water")
        self.add("More Python", "Type hints help")

        reply = self.store.search({"text": "python"})

        assert reply["total"] == 2
        assert [memory["title"] for memory in reply["memories"]] == ["More Python", "Python tips"]
        assert reply["memories"][0]["matched_fields"] == ["title"]

    def test_search_filters(self):
        self.add("A", "alpha", tags=["x"], projectId="p1")
        self.add("B", "beta", tags=["y"], projectId="p1", conversationId="c1")
        self.store.store({"type": "solution", "title": "C", "content": "gamma", "tags": ["x"]})

        assert self.store.search({"tags": ["x"]})["total"] == 2
        assert self.store.search({"type": "solution"})["total"] == 1
        assert self.store.search({"projectId": "p1"})["total"] == 2
        assert self.store.search({"conversationId": "c1"})["memories"][0]["title"] == "B"

    def test_search_without_terms_has_no_matched_fields(self):
        self.add("A", "alpha")

        memory = self.store.search({})["memories"][0]

        assert "matched_fields" not in memory

    def test_search_pagination(self):
        for i in range(5):
            self.add(f"Note {i}", "content")

        reply = self.store.search({"limit": 2, "offset": 1})

        assert reply["total"] == 5
        assert [memory["title"] for memory in reply["memories"]] == ["Note 3", "Note 2"]

    def test_negative_search_limit_returns_newest(self):
        for i in range(3):
            self.add(f"Note {i}", "content")

        reply = self.store.search({"limit": -2})

        assert reply["total"] == 3
        assert [memory["title"] for memory in reply["memories"]] == ["Note 2"]

    def test_retrieve_counts_access(self):
        memory_id = self.add("A", "alpha")

        self.store.retrieve({"id": memory_id})
        reply = self.store.retrieve({"id": memory_id})

        assert reply["memory"]["access_count"] == 2

    def test_update(self):
        memory_id = self.add("A", "alpha", tags=["old"])

        reply = self.store.update({"id": memory_id, "content": "updated", "tags": ["new"]})

        assert reply["id"] == memory_id
        assert reply["updated"]["title"] == "A"
        assert reply["updated"]["content"] == "updated"
        assert reply["updated"]["tags"] == ["new"]

    def test_delete(self):
        memory_id = self.add("A", "alpha")

        reply = self.store.delete({"id": memory_id})

        assert reply["message"] == f"Memory entry {memory_id} deleted successfully"
        assert len(self.store) == 0

    @pytest.mark.parametrize("operation", ["retrieve", "update", "delete"])
    def test_unknown_id(self, operation):
        with pytest.raises(MemoryToolError) as exc_info:
            getattr(self.store, operation)({"id": "mem_missing"})

        assert exc_info.value.status_code == 404
        assert "not found" in exc_info.value.message

    def test_missing_id(self):
        with pytest.raises(MemoryToolError, match="Missing required parameter: id"):
            self.store.retrieve({})


class TestMemoryToolBackend:
    """Test cases for the MemoryToolBackend class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.backend = MemoryToolBackend()

    @pytest.mark.asyncio
    async def test_list_tools(self):
        tools = await self.backend.list_tools()

        assert [tool.name for tool in tools] == MEMORY_TOOL_NAMES
        assert tools[0].input_schema["required"] == ["type", "title", "content"]
        assert is_memory_tool("memory-search")
        assert not is_memory_tool("web-search")

    @pytest.mark.asyncio
    async def test_store_then_search(self):
        await self.backend.call_tool("memory-store", {"type": "general", "title": "Fact", "content": "Sky is blue"})

        reply = await self.backend.call_tool("memory-search", {"query": "blue"})

        assert reply["total"] == 1
        assert reply["memories"][0]["title"] == "Fact"

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        with pytest.raises(ToolBackendError, match="Unknown memory tool: memory-explode"):
            await self.backend.call_tool("memory-explode", {})

    @pytest.mark.asyncio
    async def test_batch_reports_failures_as_entries(self):
        results = await self.backend.call_tools_optimized([
            {"id": "1", "name": "memory-store", "args": {"title": "t", "content": "c"}},
            {"id": "2", "name": "memory-retrieve", "args": {"id": "mem_missing"}}
        ])

        assert results[0]["success"] is True
        assert results[1]["success"] is False
        assert results[1]["error"] == "Memory entry with ID mem_missing not found"
        assert results[1]["id"] == "2"


class TestRoutingToolBackend:
    """Test cases for the RoutingToolBackend class."""

    @pytest.mark.asyncio
    async def test_list_tools_merges_sources(self, scripted_backend_factory):
        primary = scripted_backend_factory({"web-search": {}, "memory-store": {}})
        router = RoutingToolBackend(primary, MemoryToolBackend())

        names = [tool.name for tool in await router.list_tools()]

        assert names == MEMORY_TOOL_NAMES + ["web-search"]

    @pytest.mark.asyncio
    async def test_call_tool_routes_by_name(self, scripted_backend_factory):
        primary = scripted_backend_factory({"web-search": {"results": []}})
        router = RoutingToolBackend(primary, MemoryToolBackend())

        search = await router.call_tool("web-search", {"query": "x"})
        stored = await router.call_tool("memory-store", {"title": "t", "content": "c"})

        assert search == {"results": []}
        assert stored["success"] is True
        assert primary.called_names() == ["web-search"]

    @pytest.mark.asyncio
    async def test_batch_keeps_call_order(self, scripted_backend_factory):
        primary = scripted_backend_factory({"web-search": {"results": [1]}, "calculator": 4})
        router = RoutingToolBackend(primary, MemoryToolBackend())
        calls = [
            {"id": "a", "name": "web-search", "args": {}},
            {"id": "b", "name": "memory-store", "args": {"title": "t", "content": "c"}},
            {"id": "c", "name": "calculator", "args": {}},
            {"id": "d", "name": "memory-search", "args": {}}
        ]

        results = await router.call_tools_optimized(calls)

        assert [result["id"] for result in results] == ["a", "b", "c", "d"]
        assert all(result["success"] for result in results)
        assert primary.batches == [[calls[0], calls[2]]]

    @pytest.mark.asyncio
    async def test_without_primary(self):
        router = RoutingToolBackend(None)

        results = await router.call_tools_optimized([
            {"id": "1", "name": "web-search", "args": {}},
            {"id": "2", "name": "memory-search", "args": {}}
        ])

        assert results[0]["success"] is False
        assert results[0]["error"] == "Unknown tool: web-search"
        assert results[1]["success"] is True
        with pytest.raises(ToolBackendError, match="Unknown tool: web-search"):
            await router.call_tool("web-search", {})

    @pytest.mark.asyncio
    async def test_primary_failure_propagates(self, scripted_backend_factory, unavailable_error):
        primary = scripted_backend_factory({"web-search": {}}, batch_error=unavailable_error)
        router = RoutingToolBackend(primary, MemoryToolBackend())

        with pytest.raises(ToolBackendUnavailableError):
            await router.call_tools_optimized([{"name": "web-search", "args": {}}])

    @pytest.mark.asyncio
    async def test_short_sub_batch_reply(self):
        primary = Mock()
        primary.call_tools_optimized = AsyncMock(return_value=[])
        router = RoutingToolBackend(primary, MemoryToolBackend())

        with pytest.raises(BackendProtocolError):
            await router.call_tools_optimized([{"name": "web-search", "args": {}}])

    @pytest.mark.asyncio
    async def test_close_closes_both(self):
        primary = Mock()
        primary.close = AsyncMock()
        local = MemoryToolBackend()
        router = RoutingToolBackend(primary, local)

        await router.close()

        primary.close.assert_awaited_once()


class TestHttpToolBackend:
    """Test cases for the HttpToolBackend class."""

    def test_requires_base_url(self):
        with pytest.raises(ValueError):
            HttpToolBackend(BackendConfig())

    @pytest.mark.asyncio
    async def test_list_tools(self):
        backend, session, _ = http_backend(FakeResponse(body={"tools": [
            {"name": "web-search", "description": "Search the web", "inputSchema": {"type": "object"}}
        ]}))

        tools = await backend.list_tools()

        assert tools[0].name == "web-search"
        assert tools[0].input_schema == {"type": "object"}
        assert session.requests[0]["method"] == "GET"
        assert session.requests[0]["url"] == "http://localhost:8765/tools"

    @pytest.mark.asyncio
    async def test_call_tool(self):
        backend, session, _ = http_backend(FakeResponse(body={"success": True, "result": {"answer": 42}}))

        result = await backend.call_tool("calculator", {"expression": "6*7"})

        assert result == {"answer": 42}
        assert session.requests[0]["url"] == "http://localhost:8765/tools/call"
        assert session.requests[0]["json"] == {"name": "calculator", "args": {"expression": "6*7"}}

    @pytest.mark.asyncio
    async def test_call_tool_plain_reply(self):
        backend, _, _ = http_backend(FakeResponse(body=["a", "b"]))

        assert await backend.call_tool("lister", {}) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_call_tool_reported_failure(self):
        backend, _, _ = http_backend(FakeResponse(body={"success": False, "error": "Rate limit exceeded"}))

        with pytest.raises(ToolBackendError) as exc_info:
            await backend.call_tool("web-search", {})

        assert exc_info.value.message == "Rate limit exceeded"
        assert not isinstance(exc_info.value, ToolBackendUnavailableError)

    @pytest.mark.asyncio
    async def test_client_error_status_is_a_tool_failure(self):
        backend, _, _ = http_backend(FakeResponse(status=404, text="Tool not found: nope"))

        with pytest.raises(ToolBackendError) as exc_info:
            await backend.call_tool("nope", {})

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "HTTP 404: Tool not found: nope"
        assert not isinstance(exc_info.value, ToolBackendUnavailableError)

    @pytest.mark.asyncio
    async def test_server_error_status_is_systemic(self):
        backend, _, _ = http_backend(FakeResponse(status=503, text="bridge restarting"))

        with pytest.raises(ToolBackendUnavailableError, match="HTTP 503"):
            await backend.call_tools_optimized([{"name": "web-search", "args": {}}])

    @pytest.mark.asyncio
    async def test_batch(self):
        entries = [{"id": "1", "name": "web-search", "success": True, "result": {}, "executionTime": 12}]
        backend, session, _ = http_backend(FakeResponse(body={"results": entries}))

        results = await backend.call_tools_optimized([{"id": "1", "name": "web-search", "args": {}}])

        assert results == entries
        assert session.requests[0]["url"] == "http://localhost:8765/tools/call-batch"
        assert session.requests[0]["json"] == {"calls": [{"id": "1", "name": "web-search", "args": {}}]}

    @pytest.mark.asyncio
    async def test_batch_with_unexpected_shape(self):
        backend, _, _ = http_backend(FakeResponse(body={"status": "ok"}))

        with pytest.raises(BackendProtocolError):
            await backend.call_tools_optimized([{"name": "web-search", "args": {}}])

    @pytest.mark.asyncio
    async def test_malformed_json(self):
        backend, _, _ = http_backend(FakeResponse(body=json.JSONDecodeError("Expecting value", "<html>", 0),
                                                  content_type="text/html"))

        with pytest.raises(BackendProtocolError, match="Malformed JSON response"):
            await backend.call_tools_optimized([])

    @pytest.mark.asyncio
    async def test_connection_error(self):
        backend, _, _ = http_backend(aiohttp.ClientConnectionError("Cannot connect to host localhost:8765"))

        with pytest.raises(ToolBackendUnavailableError, match="Connection error"):
            await backend.call_tool("web-search", {})

    @pytest.mark.asyncio
    async def test_timeout(self):
        backend, _, _ = http_backend(asyncio.TimeoutError())

        with pytest.raises(ToolBackendUnavailableError, match="timed out"):
            await backend.list_tools()

    @pytest.mark.asyncio
    async def test_close_closes_pool(self):
        backend, _, pool = http_backend()

        await backend.close()

        pool.close.assert_awaited_once()


class TestConnectionPool:
    """Test cases for the ConnectionPool class."""

    @pytest.mark.asyncio
    async def test_session_is_reused_and_recreated(self):
        pool = ConnectionPool(BackendConfig(base_url="http://localhost:8765", headers={"X-Token": "t"}))

        session = await pool.get_session()
        assert await pool.get_session() is session

        await pool.close()
        assert session.closed

        new_session = await pool.get_session()
        assert new_session is not session
        await pool.close()

    @pytest.mark.asyncio
    async def test_read_timeout_bounds_socket_reads(self):
        pool = ConnectionPool(BackendConfig(base_url="http://localhost:8765",
                                            connection_timeout=2.0, read_timeout=7.0))

        session = await pool.get_session()

        assert session.timeout.sock_read == 7.0
        assert session.timeout.connect == 2.0
        assert session.timeout.total is None
        await pool.close()


class TestCreateBackend:
    """Test cases for create_backend."""

    def test_memory_only(self):
        assert isinstance(create_backend(BackendConfig()), MemoryToolBackend)

    def test_http_with_memory(self):
        backend = create_backend(BackendConfig(base_url="http://localhost:8765"))

        assert isinstance(backend, RoutingToolBackend)
        assert isinstance(backend.primary, HttpToolBackend)
        assert isinstance(backend.local, MemoryToolBackend)

    def test_http_only(self):
        backend = create_backend(BackendConfig(base_url="http://localhost:8765", enable_memory_tools=False))

        assert isinstance(backend, HttpToolBackend)

    def test_nothing_configured(self):
        with pytest.raises(ValueError, match="No tool backend configured"):
            create_backend(BackendConfig(enable_memory_tools=False))
