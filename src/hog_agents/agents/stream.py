"""Parsing of the agent's ``stream-json`` output."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Literal

StreamEventType = Literal["tool_use", "result", "text", "system", "error", "unknown"]


@dataclass(slots=True, frozen=True)
class StreamEvent:
    type: StreamEventType
    tool_name: str | None = None
    session_id: str | None = None
    text: str | None = None


def _str_or_none(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _assistant_event(message: Any) -> StreamEvent:
    content = message.get("content") if isinstance(message, dict) else None
    blocks = [block for block in content if isinstance(block, dict)] if isinstance(content, list) else []

    for block in blocks:
        if block.get("type") == "tool_use":
            return StreamEvent(type="tool_use", tool_name=_str_or_none(block.get("name")))
    for block in blocks:
        if block.get("type") == "text":
            return StreamEvent(type="text", text=_str_or_none(block.get("text")))
    return StreamEvent(type="text")


def parse_stream_line(line: str) -> StreamEvent | None:
    """Decode one line of agent stdout; blank or malformed lines yield None."""

    if not line.strip():
        return None
    try:
        parsed = json.loads(line)
    except ValueError:
        return None
    if parsed is None:
        return None
    if not isinstance(parsed, dict):
        return StreamEvent(type="unknown")

    kind = parsed.get("type")
    if kind == "system":
        return StreamEvent(type="system", session_id=_str_or_none(parsed.get("session_id")))
    if kind == "assistant" and parsed.get("message"):
        return _assistant_event(parsed["message"])
    if kind == "result":
        return StreamEvent(type="result", session_id=_str_or_none(parsed.get("session_id")))
    if kind == "error":
        error = parsed.get("error")
        message = _str_or_none(error.get("message")) if isinstance(error, dict) else None
        return StreamEvent(type="error", text=message if message is not None else "Unknown error")
    return StreamEvent(type="unknown")


__all__ = ["StreamEvent", "StreamEventType", "parse_stream_line"]
