"""
Tool chaining and alternative-tool lookup.

After a round of tool calls, the chain analyzer looks at the decoded result
payloads and proposes follow-up calls: search findings are stored in
memory, and recalled memories are refreshed with a live search. It also
finds same-kind substitutes for a tool that failed.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from .base import ToolCall, ToolResult, available_tool_names
from .formatter import ToolType, identify_tool_type, parse_payload


MAX_QUERY_WORDS = 15
MAX_DIGEST_RESULTS = 3
DIGEST_SNIPPET_CHARS = 200


class ToolChainAnalyzer:
    """
    Proposes follow-up tool calls from the results of a round.

    Only tools present in the available tool list are ever proposed, and no
    more than ``max_suggestions`` calls are returned for one round.
    """

    def __init__(self, max_suggestions: int = 5, max_alternatives: int = 3):
        """
        Initialize the analyzer.

        Args:
            max_suggestions: Maximum number of chained calls proposed per round
            max_alternatives: Maximum number of alternatives returned per failed tool
        """
        self.max_suggestions = max_suggestions
        self.max_alternatives = max_alternatives
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def analyze_for_tool_chaining(self, results: List[ToolResult],
                                  available_tools: List[Any]) -> List[ToolCall]:
        """
        Propose chained calls for a round of results.

        Args:
            results: Results of the latest round
            available_tools: Tools the model may call (descriptors, definitions or names)

        Returns:
            List[ToolCall]: Proposed calls, each with ``chained_from`` set
        """
        names = available_tool_names(available_tools)
        store_tool = self._find_memory_store_tool(names)
        search_tool = self._find_search_tool(names)

        proposals: List[ToolCall] = []
        seen = set()

        for index, result in enumerate(results):
            if len(proposals) >= self.max_suggestions:
                break
            if not result.success:
                continue

            payload, decoded = parse_payload(result.result)
            if not decoded or not isinstance(payload, dict):
                continue

            call = None
            if store_tool and self._is_search_payload(payload):
                call = self._build_store_call(index, result, payload, store_tool)
            elif search_tool and self._is_memory_payload(payload):
                call = self._build_search_call(index, result, payload, search_tool)

            if call is None:
                continue

            key = (call.name, json.dumps(call.arguments, sort_keys=True, default=str))
            if key in seen:
                continue
            seen.add(key)
            proposals.append(call)

        if proposals:
            self.logger.info(f"Proposed {len(proposals)} chained tool call(s)")
        return proposals

    def find_alternative_tools(self, failed_tool: str, available_tools: List[Any]) -> List[str]:
        """
        Find tools of the same kind as a failed tool.

        Args:
            failed_tool: Name of the tool that failed
            available_tools: Tools the model may call

        Returns:
            List[str]: Up to ``max_alternatives`` other tool names, in availability order
        """
        tool_type = identify_tool_type(failed_tool)
        if tool_type == ToolType.GENERIC:
            return []

        alternatives = [
            name for name in available_tool_names(available_tools)
            if name != failed_tool and identify_tool_type(name) == tool_type
        ]
        return alternatives[:self.max_alternatives]

    @staticmethod
    def _is_search_payload(payload: Dict[str, Any]) -> bool:
        hits = payload.get("results")
        return isinstance(hits, list) and bool(hits)

    @staticmethod
    def _is_memory_payload(payload: Dict[str, Any]) -> bool:
        memories = payload.get("memories")
        return isinstance(memories, list) and bool(memories)

    @staticmethod
    def _find_memory_store_tool(names: List[str]) -> Optional[str]:
        if "memory-store" in names:
            return "memory-store"
        for name in names:
            if identify_tool_type(name) == ToolType.MEMORY and "store" in name.lower():
                return name
        return None

    @staticmethod
    def _find_search_tool(names: List[str]) -> Optional[str]:
        for name in names:
            if identify_tool_type(name) == ToolType.SEARCH:
                return name
        return None

    def _build_store_call(self, index: int, result: ToolResult,
                          payload: Dict[str, Any], tool_name: str) -> ToolCall:
        hits = [hit for hit in payload["results"] if isinstance(hit, dict)]
        top = hits[0] if hits else {}
        top_title = str(top.get("title") or "Untitled result").strip()

        digest = []
        for hit in hits[:MAX_DIGEST_RESULTS]:
            title = str(hit.get("title") or "Untitled").strip()
            snippet = str(hit.get("content") or hit.get("snippet") or "").strip()[:DIGEST_SNIPPET_CHARS]
            url = str(hit.get("url") or "").strip()
            line = f"{title}: {snippet}" if snippet else title
            if url:
                line += f" ({url})"
            digest.append(line)

        arguments = {
            "type": "search_result",
            "title": f"Search findings: {top_title}",
            "content": "\n".join(digest) or top_title,
            "tags": ["search", result.name],
            "source": result.name
        }
        query = payload.get("query")
        if query:
            arguments["tags"].append(str(query)[:50])

        return ToolCall(
            name=tool_name,
            arguments=arguments,
            id=f"chain_{index}_{tool_name}",
            chained_from=result.name
        )

    def _build_search_call(self, index: int, result: ToolResult,
                           payload: Dict[str, Any], tool_name: str) -> Optional[ToolCall]:
        top = payload["memories"][0]
        if isinstance(top, dict):
            text = str(top.get("content") or top.get("title") or "")
        else:
            text = str(top)

        query = build_query(text)
        if not query:
            return None

        return ToolCall(
            name=tool_name,
            arguments={"query": query},
            id=f"chain_{index}_{tool_name}",
            chained_from=result.name
        )


def build_query(text: str, max_words: int = MAX_QUERY_WORDS) -> str:
    """Build a search query from free text: duplicate words dropped, length capped."""
    seen = set()
    words = []
    for word in text.split():
        word = word.strip(".,;:!?\"'()[]{}")
        if not word or word.lower() in seen:
            continue
        seen.add(word.lower())
        words.append(word)
        if len(words) >= max_words:
            break
    return " ".join(words)
