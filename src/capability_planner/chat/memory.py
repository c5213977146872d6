from __future__ import annotations

from collections import deque
from typing import Iterator, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from capability_planner.models.enums import Capability


class ContextEntry(BaseModel):
    """One prior exchange entry kept in a session's rolling context."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    role: Literal["user", "assistant", "system"] = "assistant"
    content: str
    step_id: Optional[str] = Field(
        default=None, description="Plan step that produced this entry, if any."
    )
    capability: Optional[Capability] = None

    def as_message(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class RollingContext:
    """Bounded, ordered history for one conversation session.

    Appending past the cap evicts the oldest entries. Instances are never
    shared between sessions.
    """

    def __init__(self, max_entries: int = 10):
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.max_entries = max_entries
        self._entries: deque[ContextEntry] = deque(maxlen=max_entries)

    def append(self, entry: ContextEntry) -> None:
        self._entries.append(entry)

    def add(self, role: str, content: str, **kwargs) -> ContextEntry:
        entry = ContextEntry(role=role, content=content, **kwargs)
        self.append(entry)
        return entry

    def entries(self) -> list[ContextEntry]:
        return list(self._entries)

    def recent(self, limit: int) -> list[ContextEntry]:
        """The last `limit` entries, oldest first."""
        if limit <= 0:
            return []
        return list(self._entries)[-limit:]

    def as_messages(self, limit: Optional[int] = None) -> list[dict[str, str]]:
        entries = self.entries() if limit is None else self.recent(limit)
        return [e.as_message() for e in entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ContextEntry]:
        return iter(list(self._entries))


def build_history_block(
    context: RollingContext,
    limit: int = 10,
    preview_chars: int = 200,
) -> str:
    """Renders the most relevant history first (newest entry on top)."""
    recent = context.recent(limit)
    if not recent:
        return ""

    lines: list[str] = []
    for entry in reversed(recent):
        content = entry.content
        if len(content) > preview_chars:
            content = content[:preview_chars] + "..."
        tag = entry.role
        if entry.capability is not None:
            tag = f"{entry.role}/{entry.capability.value}"
        lines.append(f"[{tag}]: {content}")
    return "\n".join(lines)
