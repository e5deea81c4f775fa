"""
In-process memory store behind the memory tools.

Memories are kept for the lifetime of the store and can be stored,
searched, retrieved, updated and deleted through the five memory tools
described by MEMORY_TOOLS.
"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base import ToolDescriptor
from .exceptions import MemoryToolError


MEMORY_TYPES = [
    "user_preference",
    "conversation_context",
    "project_knowledge",
    "code_snippet",
    "solution",
    "search_result",
    "general",
]

DEFAULT_SEARCH_LIMIT = 10

_TYPE_SCHEMA = {
    "type": "string",
    "enum": MEMORY_TYPES,
    "description": "The type of memory"
}

MEMORY_TOOLS: List[ToolDescriptor] = [
    ToolDescriptor(
        name="memory-store",
        description=(
            "Store information in memory for future reference, such as user preferences, "
            "project details, successful solutions or search findings."
        ),
        input_schema={
            "type": "object",
            "properties": {
                "type": _TYPE_SCHEMA,
                "title": {"type": "string", "description": "A descriptive title for this memory entry"},
                "content": {"type": "string", "description": "The detailed content to store"},
                "tags": {"type": "array", "items": {"type": "string"},
                         "description": "Optional tags used to categorize and find this memory"},
                "projectId": {"type": "string", "description": "Optional project identifier"},
                "conversationId": {"type": "string", "description": "Optional conversation identifier"},
                "source": {"type": "string", "description": "Optional source of the information"}
            },
            "required": ["type", "title", "content"]
        }
    ),
    ToolDescriptor(
        name="memory-search",
        description="Search stored memories by text, type, tags, project or conversation.",
        input_schema={
            "type": "object",
            "properties": {
                "text": {"type": "string", "description": "Text to search for in titles, content and tags"},
                "type": _TYPE_SCHEMA,
                "tags": {"type": "array", "items": {"type": "string"}, "description": "Filter by tags"},
                "projectId": {"type": "string", "description": "Filter by project identifier"},
                "conversationId": {"type": "string", "description": "Filter by conversation identifier"},
                "limit": {"type": "number", "description": "Maximum number of results (default: 10)",
                          "default": DEFAULT_SEARCH_LIMIT},
                "offset": {"type": "number", "description": "Number of results to skip (default: 0)",
                           "default": 0}
            }
        }
    ),
    ToolDescriptor(
        name="memory-retrieve",
        description="Retrieve a specific memory entry by its id.",
        input_schema={
            "type": "object",
            "properties": {"id": {"type": "string", "description": "Memory entry id"}},
            "required": ["id"]
        }
    ),
    ToolDescriptor(
        name="memory-update",
        description="Update an existing memory entry.",
        input_schema={
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "Memory entry id"},
                "title": {"type": "string", "description": "New title"},
                "content": {"type": "string", "description": "New content"},
                "tags": {"type": "array", "items": {"type": "string"}, "description": "New tags"},
                "type": _TYPE_SCHEMA
            },
            "required": ["id"]
        }
    ),
    ToolDescriptor(
        name="memory-delete",
        description="Delete a memory entry permanently.",
        input_schema={
            "type": "object",
            "properties": {"id": {"type": "string", "description": "Memory entry id"}},
            "required": ["id"]
        }
    ),
]

MEMORY_TOOL_NAMES = [tool.name for tool in MEMORY_TOOLS]


def is_memory_tool(tool_name: str) -> bool:
    """Check whether a tool is one of the in-process memory tools."""
    return tool_name in MEMORY_TOOL_NAMES


@dataclass
class MemoryEntry:
    """
    A single stored memory.

    Attributes:
        id: Unique memory identifier
        type: Memory type (one of MEMORY_TYPES)
        title: Short descriptive title
        content: Stored content
        tags: Tags used for filtering and search
        source: Where the information came from
        project_id: Optional project identifier
        conversation_id: Optional conversation identifier
        created_at: Creation time
        updated_at: Time of the last update
        access_count: Number of retrievals
    """
    id: str
    type: str
    title: str
    content: str
    tags: List[str] = field(default_factory=list)
    source: Optional[str] = None
    project_id: Optional[str] = None
    conversation_id: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    access_count: int = 0

    @property
    def searchable_text(self) -> str:
        """Lower-cased title, content and tags."""
        return " ".join([self.title, self.content] + list(self.tags)).lower()

    def matched_fields(self, terms: List[str]) -> List[str]:
        """Get the fields that contain any of the search terms."""
        fields = []
        if any(term in self.title.lower() for term in terms):
            fields.append("title")
        if any(term in self.content.lower() for term in terms):
            fields.append("content")
        tag_text = " ".join(self.tags).lower()
        if any(term in tag_text for term in terms):
            fields.append("tags")
        return fields

    def to_dict(self) -> Dict[str, Any]:
        """Convert the memory to a dictionary for serialization."""
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "tags": list(self.tags),
            "source": self.source,
            "project_id": self.project_id,
            "conversation_id": self.conversation_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "access_count": self.access_count
        }


class MemoryStore:
    """
    Keeps memories in process, newest first in search results.
    """

    def __init__(self):
        self._entries: Dict[str, MemoryEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def store(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Store a new memory."""
        memory_type = args.get("type") or "general"
        title = str(args.get("title") or "").strip()
        content = str(args.get("content") or "").strip()

        if memory_type not in MEMORY_TYPES:
            raise MemoryToolError(
                f"Invalid memory type '{memory_type}'. Must be one of: {', '.join(MEMORY_TYPES)}",
                tool_name="memory-store"
            )
        if not title:
            raise MemoryToolError("Missing required parameter: title", tool_name="memory-store")
        if not content:
            raise MemoryToolError("Missing required parameter: content", tool_name="memory-store")

        entry = MemoryEntry(
            id=self._generate_id(),
            type=memory_type,
            title=title,
            content=content,
            tags=self._tag_list(args.get("tags")),
            source=args.get("source"),
            project_id=args.get("projectId", args.get("project_id")),
            conversation_id=args.get("conversationId", args.get("conversation_id"))
        )
        self._entries[entry.id] = entry
        return {"success": True, "id": entry.id, "stored": entry.to_dict()}

    def search(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Search memories; every given filter must match."""
        entries = list(self._entries.values())

        memory_type = args.get("type")
        if memory_type:
            entries = [entry for entry in entries if entry.type == memory_type]

        tags = self._tag_list(args.get("tags"))
        if tags:
            entries = [entry for entry in entries if any(tag in entry.tags for tag in tags)]

        project_id = args.get("projectId", args.get("project_id"))
        if project_id:
            entries = [entry for entry in entries if entry.project_id == project_id]

        conversation_id = args.get("conversationId", args.get("conversation_id"))
        if conversation_id:
            entries = [entry for entry in entries if entry.conversation_id == conversation_id]

        terms = str(args.get("text") or args.get("query") or "").lower().split()
        if terms:
            entries = [entry for entry in entries
                       if any(term in entry.searchable_text for term in terms)]

        # Dict order is insertion order, so reversing gives newest first.
        entries.reverse()

        offset = max(int(args.get("offset") or 0), 0)
        limit = max(int(args.get("limit") or DEFAULT_SEARCH_LIMIT), 1)
        page = entries[offset:offset + limit]

        memories = []
        for entry in page:
            memory = entry.to_dict()
            if terms:
                memory["matched_fields"] = entry.matched_fields(terms)
            memories.append(memory)

        return {"success": True, "memories": memories, "total": len(entries)}

    def retrieve(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Retrieve one memory by id."""
        entry = self._get(args, "memory-retrieve")
        entry.access_count += 1
        return {"success": True, "memory": entry.to_dict()}

    def update(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Update the given fields of a memory."""
        entry = self._get(args, "memory-update")

        memory_type = args.get("type")
        if memory_type and memory_type not in MEMORY_TYPES:
            raise MemoryToolError(
                f"Invalid memory type '{memory_type}'. Must be one of: {', '.join(MEMORY_TYPES)}",
                tool_name="memory-update"
            )

        entry.title = args.get("title") or entry.title
        entry.content = args.get("content") or entry.content
        entry.type = memory_type or entry.type
        if args.get("tags") is not None:
            entry.tags = self._tag_list(args.get("tags"))
        entry.updated_at = datetime.now()
        return {"success": True, "id": entry.id, "updated": entry.to_dict()}

    def delete(self, args: Dict[str, Any]) -> Dict[str, Any]:
        """Delete a memory by id."""
        entry = self._get(args, "memory-delete")
        del self._entries[entry.id]
        return {
            "success": True,
            "id": entry.id,
            "message": f"Memory entry {entry.id} deleted successfully"
        }

    def _get(self, args: Dict[str, Any], tool_name: str) -> MemoryEntry:
        memory_id = args.get("id")
        if not memory_id:
            raise MemoryToolError("Missing required parameter: id", tool_name=tool_name)
        entry = self._entries.get(memory_id)
        if entry is None:
            raise MemoryToolError(f"Memory entry with ID {memory_id} not found", tool_name=tool_name,
                                  status_code=404)
        return entry

    @staticmethod
    def _tag_list(tags: Any) -> List[str]:
        if not tags:
            return []
        if isinstance(tags, str):
            return [tag.strip() for tag in tags.split(",") if tag.strip()]
        return [str(tag) for tag in tags]

    @staticmethod
    def _generate_id() -> str:
        return f"mem_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
