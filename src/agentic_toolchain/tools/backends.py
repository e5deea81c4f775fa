"""
Concrete tool backends.

This module provides the backends that actually run tools:

- HttpToolBackend talks to a tool-bus bridge over HTTP using a pooled
  aiohttp session (``GET /tools``, ``POST /tools/call`` and
  ``POST /tools/call-batch``).
- MemoryToolBackend serves the memory tools from an in-process MemoryStore.
- RoutingToolBackend sends memory tools to a local backend and every
  other tool to a primary backend, keeping batch order.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

import aiohttp

from ..models import BackendConfig
from .base import ToolBackend, ToolDescriptor
from .exceptions import BackendProtocolError, ToolBackendError, ToolBackendUnavailableError
from .memory import MEMORY_TOOLS, MemoryStore


class ConnectionPool:
    """
    HTTP connection pool for the tool bus.

    The aiohttp session is created lazily on first use and recreated if it
    has been closed.
    """

    def __init__(self, config: BackendConfig):
        self.config = config
        self.session: Optional[aiohttp.ClientSession] = None
        self.logger = logging.getLogger(f"{__name__}.ConnectionPool")

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the HTTP session."""
        if self.session is None or self.session.closed:
            connector = aiohttp.TCPConnector(
                limit=self.config.connection_pool_size,
                ttl_dns_cache=300,
                use_dns_cache=True,
            )

            timeout = aiohttp.ClientTimeout(
                sock_read=self.config.read_timeout,
                connect=self.config.connection_timeout
            )

            headers = {"User-Agent": "AgenticToolchain/1.0"}
            headers.update(self.config.headers or {})

            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                headers=headers
            )

            self.logger.info("Created new HTTP session with connection pool")

        return self.session

    async def close(self):
        """Close the connection pool."""
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.info("Closed HTTP session and connection pool")


class HttpToolBackend(ToolBackend):
    """
    Tool backend that forwards calls to a tool-bus bridge over HTTP.

    The batch endpoint is a single round trip for a whole batch. Any
    transport failure or unexpected reply from it raises, so callers can
    fall back to per-call execution.
    """

    def __init__(self, config: BackendConfig, pool: Optional[ConnectionPool] = None):
        """
        Initialize the HTTP backend.

        Args:
            config: Backend configuration (base_url must be set)
            pool: Connection pool to use (created from config if omitted)
        """
        if not config.base_url:
            raise ValueError("HttpToolBackend requires a base_url")
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self.pool = pool or ConnectionPool(config)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def list_tools(self) -> List[ToolDescriptor]:
        data = await self._request("GET", "/tools")
        tools = data.get("tools") if isinstance(data, dict) else data
        if not isinstance(tools, list):
            raise BackendProtocolError(
                "Tool list reply is not a list",
                expected="list of tool definitions",
                received=type(tools).__name__
            )
        return [ToolDescriptor.coerce(tool) for tool in tools]

    async def call_tool(self, name: str, args: Dict[str, Any]) -> Any:
        data = await self._request("POST", "/tools/call", {"name": name, "args": args}, tool_name=name)
        if not isinstance(data, dict) or "success" not in data:
            return data
        if not data["success"]:
            raise ToolBackendError(str(data.get("error") or "Unknown error"), tool_name=name)
        return data.get("result")

    async def call_tools_optimized(self, calls: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        data = await self._request("POST", "/tools/call-batch", {"calls": calls})
        results = data.get("results") if isinstance(data, dict) else data
        if not isinstance(results, list):
            raise BackendProtocolError(
                "Batch reply is not a list",
                expected="list of tool results",
                received=type(results).__name__
            )
        return results

    async def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                       tool_name: Optional[str] = None) -> Any:
        """
        Send a request to the tool bus and decode the JSON reply.

        A per-tool request that the bus rejects raises ToolBackendError;
        anything that means the bus itself is unusable raises
        ToolBackendUnavailableError.
        """
        url = f"{self.base_url}{path}"
        session = await self.pool.get_session()
        try:
            async with session.request(method, url, json=payload) as response:
                if response.status >= 400:
                    text = await response.text()
                    message = f"HTTP {response.status}: {text[:500]}"
                    if tool_name and response.status < 500:
                        raise ToolBackendError(message, tool_name=tool_name, status_code=response.status)
                    raise ToolBackendUnavailableError(message, tool_name=tool_name,
                                                      status_code=response.status)
                try:
                    return await response.json(content_type=None)
                except ValueError as e:
                    raise BackendProtocolError(
                        f"Malformed JSON response from {path}: {e}",
                        tool_name=tool_name,
                        expected="JSON",
                        received=response.content_type
                    )
        except aiohttp.ClientError as e:
            raise ToolBackendUnavailableError(f"Connection error: {e}", tool_name=tool_name)
        except asyncio.TimeoutError:
            raise ToolBackendUnavailableError(
                f"Request to {path} timed out after {self.config.read_timeout}s",
                tool_name=tool_name
            )

    async def close(self) -> None:
        await self.pool.close()


class MemoryToolBackend(ToolBackend):
    """Serves the memory tools from an in-process MemoryStore."""

    def __init__(self, store: Optional[MemoryStore] = None):
        self.store = store if store is not None else MemoryStore()
        self._handlers = {
            "memory-store": self.store.store,
            "memory-search": self.store.search,
            "memory-retrieve": self.store.retrieve,
            "memory-update": self.store.update,
            "memory-delete": self.store.delete,
        }
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def list_tools(self) -> List[ToolDescriptor]:
        return list(MEMORY_TOOLS)

    async def call_tool(self, name: str, args: Dict[str, Any]) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolBackendError(f"Unknown memory tool: {name}", tool_name=name, status_code=404)
        self.logger.debug(f"Executing memory tool {name}")
        return handler(args or {})


class RoutingToolBackend(ToolBackend):
    """
    Routes each call to the local backend or the primary backend.

    Tools listed by the local backend run locally; everything else goes to
    the primary backend. A batch is split in two sub-batches that run
    concurrently and the results are put back in call order.
    """

    def __init__(self, primary: Optional[ToolBackend], local: Optional[ToolBackend] = None):
        """
        Initialize the router.

        Args:
            primary: Backend for non-local tools (None if only local tools exist)
            local: Backend for local tools (defaults to a MemoryToolBackend)
        """
        self.primary = primary
        self.local = local if local is not None else MemoryToolBackend()
        self._local_names: Optional[set] = None
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _local_tools(self) -> set:
        if self._local_names is None:
            self._local_names = {tool.name for tool in await self.local.list_tools()}
        return self._local_names

    async def list_tools(self) -> List[ToolDescriptor]:
        tools = list(await self.local.list_tools())
        if self.primary is not None:
            local_names = await self._local_tools()
            tools.extend(tool for tool in await self.primary.list_tools() if tool.name not in local_names)
        return tools

    async def call_tool(self, name: str, args: Dict[str, Any]) -> Any:
        if name in await self._local_tools():
            return await self.local.call_tool(name, args)
        if self.primary is None:
            raise ToolBackendError(f"Unknown tool: {name}", tool_name=name, status_code=404)
        return await self.primary.call_tool(name, args)

    async def call_tools_optimized(self, calls: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        local_names = await self._local_tools()
        local_indexes = [i for i, call in enumerate(calls) if call["name"] in local_names]
        remote_indexes = [i for i, call in enumerate(calls) if call["name"] not in local_names]

        async def run_local() -> List[Dict[str, Any]]:
            if not local_indexes:
                return []
            return await self.local.call_tools_optimized([calls[i] for i in local_indexes])

        async def run_remote() -> List[Dict[str, Any]]:
            if not remote_indexes:
                return []
            remote_calls = [calls[i] for i in remote_indexes]
            if self.primary is None:
                return [
                    {
                        "id": call.get("id"),
                        "name": call["name"],
                        "result": None,
                        "success": False,
                        "error": f"Unknown tool: {call['name']}",
                        "executionTime": 0.0
                    }
                    for call in remote_calls
                ]
            return await self.primary.call_tools_optimized(remote_calls)

        local_results, remote_results = await asyncio.gather(run_local(), run_remote())

        for indexes, sub_results, label in ((local_indexes, local_results, "local"),
                                            (remote_indexes, remote_results, "primary")):
            if len(sub_results) != len(indexes):
                raise BackendProtocolError(
                    f"The {label} backend returned {len(sub_results)} results for {len(indexes)} calls",
                    expected=str(len(indexes)),
                    received=str(len(sub_results))
                )

        merged: List[Optional[Dict[str, Any]]] = [None] * len(calls)
        for i, result in zip(local_indexes, local_results):
            merged[i] = result
        for i, result in zip(remote_indexes, remote_results):
            merged[i] = result
        return merged

    async def close(self) -> None:
        await self.local.close()
        if self.primary is not None:
            await self.primary.close()


def create_backend(config: BackendConfig) -> ToolBackend:
    """
    Build the tool backend described by a configuration.

    Args:
        config: Backend configuration

    Returns:
        ToolBackend: HTTP, memory or routing backend
    """
    primary = HttpToolBackend(config) if config.base_url else None
    if not config.enable_memory_tools:
        if primary is None:
            raise ValueError("No tool backend configured")
        return primary
    if primary is None:
        return MemoryToolBackend()
    return RoutingToolBackend(primary, MemoryToolBackend())
