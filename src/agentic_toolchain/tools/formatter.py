"""
Rendering of tool results for a model and for people.

Two outputs are produced from the same list of ToolResults: a compact
``[TOOL_RESULTS]`` block meant to be fed back into a model's context, and a
verbose report for debugging. Payloads are formatted according to the
kind of tool that produced them, which is guessed from the tool name.
Formatting never raises.
"""

import json
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..models import FormatterConfig
from .base import ToolResult


class ToolType(Enum):
    """Kinds of tools that get dedicated result formatting."""
    SEARCH = "search"
    MEMORY = "memory"
    FILE = "file"
    API = "api"
    DATETIME = "datetime"
    WEATHER = "weather"
    GENERIC = "generic"


# Checked in order. MEMORY comes before SEARCH so "memory-search" is a memory tool.
TOOL_TYPE_KEYWORDS: List[Tuple[ToolType, Tuple[str, ...]]] = [
    (ToolType.MEMORY, ("memory",)),
    (ToolType.SEARCH, ("search", "web")),
    (ToolType.FILE, ("file", "read", "write")),
    (ToolType.API, ("api", "http", "fetch")),
    (ToolType.DATETIME, ("datetime", "date", "time")),
    (ToolType.WEATHER, ("weather",)),
]


def identify_tool_type(tool_name: str) -> ToolType:
    """
    Guess the kind of a tool from its name.

    Args:
        tool_name: Tool name

    Returns:
        ToolType: The first kind whose keywords appear in the name, GENERIC otherwise
    """
    name = (tool_name or "").lower()
    for tool_type, keywords in TOOL_TYPE_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return tool_type
    return ToolType.GENERIC


def parse_payload(text: Any) -> Tuple[Any, bool]:
    """
    Decode a serialized tool result.

    Returns:
        Tuple of (payload, decoded). When the text is not JSON, payload is
        the text with surrounding whitespace and quotes stripped.
    """
    if not isinstance(text, str):
        return text, True
    try:
        return json.loads(text), True
    except ValueError:
        return text.strip().strip('"').strip("'"), False


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:max(limit - 3, 0)] + "..."


def _pretty(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


def _duration(execution_time: Any) -> str:
    try:
        return f"{float(execution_time):.0f}ms"
    except (TypeError, ValueError):
        return "?ms"


class ResultFormatter:
    """
    Formats ToolResults for model context and for human display.

    The formatter is stateless apart from its configuration; calling either
    output method twice on the same input yields the same text.
    """

    def __init__(self, config: Optional[FormatterConfig] = None):
        self.config = config or FormatterConfig()
        self._formatters: Dict[ToolType, Callable[[Any], str]] = {
            ToolType.SEARCH: self.format_search,
            ToolType.MEMORY: self.format_memory,
            ToolType.FILE: self.format_file,
            ToolType.API: self.format_api,
            ToolType.DATETIME: self.format_datetime,
            ToolType.WEATHER: self.format_weather,
            ToolType.GENERIC: self.format_generic,
        }

    def summarize_tool_results_for_model(self, results: List[ToolResult]) -> str:
        """
        Build the compact block that is fed back into a model's context.

        Only successful results are formatted; failed tools are listed
        afterwards with their error messages.

        Args:
            results: Tool results in execution order

        Returns:
            str: A single ``[TOOL_RESULTS] ... [/TOOL_RESULTS]`` block
        """
        lines = ["[TOOL_RESULTS]"]
        if not results:
            lines.append("No tools were executed.")
            lines.append("[/TOOL_RESULTS]")
            return "\n".join(lines)

        successful = [result for result in results if result.success]
        failed = [result for result in results if not result.success]

        for result in successful:
            formatted = _truncate(self.format_result(result), self.config.model_result_max_chars)
            lines.append(f"{result.name}:")
            lines.append(formatted)
            lines.append("")

        if failed:
            lines.append("Failed tools:")
            for result in failed:
                lines.append(f"- {result.name}: {self._error_text(result)}")

        while lines[-1] == "":
            lines.pop()
        lines.append("[/TOOL_RESULTS]")
        return "\n".join(lines)

    def aggregate_tool_results(self, results: List[ToolResult]) -> str:
        """
        Build a verbose report of a batch for debugging and display.

        Args:
            results: Tool results in execution order

        Returns:
            str: Report with counts, success rate and a section per tool
        """
        successful = [result for result in results if result.success]
        failed = [result for result in results if not result.success]

        lines = [
            "🔧 Multi-Tool Execution Results",
            "=" * 40,
            f"Tools executed: {len(results)} | Successful: {len(successful)} | Failed: {len(failed)}",
            f"Success Rate: {success_rate(len(successful), len(results))}%",
        ]

        if successful:
            lines.append("")
            lines.append("✅ Successful Results")
            for result in successful:
                lines.append("")
                lines.append(f"### {result.name} ({_duration(result.execution_time)})")
                lines.append(self.format_result(result))

        if failed:
            lines.append("")
            lines.append("❌ Failed Results")
            for result in failed:
                lines.append("")
                lines.append(f"### {result.name} ({_duration(result.execution_time)})")
                lines.append(self._error_text(result))

        return "\n".join(lines)

    def format_result(self, result: ToolResult) -> str:
        """Format one successful result according to its tool type."""
        payload, decoded = parse_payload(result.result)
        if not decoded:
            return payload
        formatter = self._formatters[identify_tool_type(result.name)]
        try:
            return formatter(payload)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError):
            return self.format_generic(payload)

    def format_search(self, payload: Any) -> str:
        hits = payload.get("results") if isinstance(payload, dict) else payload
        if not isinstance(hits, list):
            return self.format_generic(payload)
        if not hits:
            return "No search results found."

        entries = []
        for i, hit in enumerate(hits[:self.config.search_result_limit], 1):
            if not isinstance(hit, dict):
                entries.append(f"{i}. {hit}")
                continue
            title = str(hit.get("title") or "Untitled").strip()
            url = str(hit.get("url") or hit.get("link") or "").strip()
            snippet = str(hit.get("content") or hit.get("snippet") or hit.get("description") or "").strip()

            entry = f"{i}. **{title}**"
            if snippet:
                entry += f"\n   {_truncate(snippet, 200)}"
            if url:
                entry += f"\n   Source: {url}"
            entries.append(entry)

        return f"Found {len(hits)} search results:\n\n" + "\n\n".join(entries)

    def format_memory(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            return self.format_generic(payload)

        memories = payload.get("memories")
        if isinstance(memories, list):
            if not memories:
                return "No memories found."
            lines = [f"Found {payload.get('total', len(memories))} memories:"]
            for memory in memories:
                if not isinstance(memory, dict):
                    lines.append(f"- {memory}")
                    continue
                title = memory.get("title") or "Untitled"
                content = _truncate(str(memory.get("content") or ""), self.config.memory_content_chars)
                lines.append(f"- **{title}**: {content}")
            return "\n".join(lines)

        if "memory" in payload and isinstance(payload["memory"], dict):
            memory = payload["memory"]
            return f"🧠 **{memory.get('title', 'Untitled')}** ({memory.get('type', 'general')})\n{memory.get('content', '')}"

        if payload.get("id"):
            message = payload.get("message")
            if message:
                return f"✅ {message}"
            return f"✅ Memory saved (id: {payload['id']})"

        return self.format_generic(payload)

    def format_file(self, payload: Any) -> str:
        if isinstance(payload, dict):
            content = payload.get("content", payload.get("data"))
            path = payload.get("path") or payload.get("filename")
        else:
            content, path = payload, None
        if content is None:
            return self.format_generic(payload)
        if not isinstance(content, str):
            content = _pretty(content)

        limit = self.config.file_truncate_chars
        if len(content) > limit:
            content = content[:limit] + f"\n... [truncated, {len(content) - limit} more characters]"

        header = f"📄 {path}\n" if path else ""
        return f"{header}```\n{content}\n```"

    def format_api(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            return self.format_generic(payload)
        status = payload.get("status", payload.get("statusCode", payload.get("status_code")))
        body = payload.get("data", payload.get("body", payload))
        lines = []
        if status is not None:
            lines.append(f"Status: {status}")
        lines.append(f"```json\n{_pretty(body)}\n```")
        return "\n".join(lines)

    def format_datetime(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            return f"🕐 {payload}"
        value = (payload.get("datetime") or payload.get("formatted")
                 or " ".join(str(payload[key]) for key in ("date", "time") if payload.get(key)))
        if not value:
            return self.format_generic(payload)
        timezone = payload.get("timezone")
        return f"🕐 {value} ({timezone})" if timezone else f"🕐 {value}"

    def format_weather(self, payload: Any) -> str:
        if not isinstance(payload, dict):
            return self.format_generic(payload)
        location = payload.get("location") or payload.get("city") or "Unknown location"
        lines = [f"🌤️ Weather for {location}"]
        temperature = payload.get("temperature", payload.get("temp"))
        if temperature is not None:
            lines.append(f"Temperature: {temperature}")
        conditions = payload.get("conditions") or payload.get("description")
        if conditions:
            lines.append(f"Conditions: {conditions}")
        if payload.get("humidity") is not None:
            lines.append(f"Humidity: {payload['humidity']}")
        wind = payload.get("wind", payload.get("wind_speed"))
        if wind is not None:
            lines.append(f"Wind: {wind}")
        return "\n".join(lines)

    def format_generic(self, payload: Any) -> str:
        return _pretty(payload)

    @staticmethod
    def _error_text(result: ToolResult) -> str:
        payload, decoded = parse_payload(result.result)
        if decoded and isinstance(payload, dict) and payload.get("error"):
            return str(payload["error"])
        if decoded and not isinstance(payload, str):
            return _pretty(payload)
        return payload or "Unknown error"


def success_rate(successful: int, total: int) -> int:
    """Success rate in whole percent, rounded half up."""
    if total <= 0:
        return 0
    return int(100.0 * successful / total + 0.5)
