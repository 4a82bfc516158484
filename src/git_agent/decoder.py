"""
Stream decoder: chat-state channel frames -> semantic stream events.

A frame is UTF-8 JSON of the form::

    {"type": "chat_message", "message": {"entry": {"Message": {...}}}}

where the entry is either ``Message`` or ``Completion``. Anything that fails
to decode becomes a single DECODE_ERROR event; the decoder never raises.
"""

import json
import logging
from typing import Any, Optional

from pydantic import ValidationError

from git_agent.models.envelope import ChatEntryBody, ChatFrame, ContentBlock
from git_agent.models.events import END_TURN, FrameType, Role, StreamEventType

logger = logging.getLogger(__name__)

ENTRY_KINDS = ("Message", "Completion")


class StreamEvent:
    __slots__ = ("type", "text", "tool_name", "tool_args", "stop_reason")

    def __init__(self, type: str, text: str = "", tool_name: Optional[str] = None,
                 tool_args: Optional[list[str]] = None, stop_reason: Optional[str] = None):
        self.type = type
        self.text = text
        self.tool_name = tool_name
        self.tool_args = tool_args
        self.stop_reason = stop_reason

    def __repr__(self) -> str:
        return f"StreamEvent(type={self.type!r}, text={self.text!r}, tool_name={self.tool_name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StreamEvent):
            return NotImplemented
        return all(getattr(self, name) == getattr(other, name) for name in self.__slots__)


def stringify_tool_arg(value: Any) -> str:
    if isinstance(value, str):
        return value
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def _first_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                return block.get("text") or ""
    return ""


def _select_entry(entry: Any) -> Optional[ChatEntryBody]:
    if entry is None:
        return None
    if not isinstance(entry, dict):
        raise ValueError(f"chat entry is not an object: {entry!r}")
    for kind in ENTRY_KINDS:
        if kind in entry:
            return ChatEntryBody.model_validate(entry[kind])
    return None


def _assistant_events(body: ChatEntryBody) -> list[StreamEvent]:
    events: list[StreamEvent] = []
    content = body.content

    if isinstance(content, str):
        if content.strip():
            events.append(StreamEvent(StreamEventType.ASSISTANT_TEXT, text=content))
    elif isinstance(content, list):
        buffer = ""
        for raw_block in content:
            if not isinstance(raw_block, dict) or not isinstance(raw_block.get("type"), str):
                continue
            block = ContentBlock.model_validate(raw_block)
            if block.type == "text":
                buffer += block.text or ""
                if buffer.strip():
                    events.append(StreamEvent(StreamEventType.ASSISTANT_TEXT, text=buffer))
            elif block.type == "tool_use":
                args = [stringify_tool_arg(v) for v in (block.input or {}).values()]
                events.append(StreamEvent(StreamEventType.TOOL_USE, tool_name=block.name or "unknown",
                                          tool_args=args))

    if body.stop_reason == END_TURN:
        events.append(StreamEvent(StreamEventType.TURN_END, stop_reason=body.stop_reason))
    elif body.stop_reason is not None:
        events.append(StreamEvent(StreamEventType.TURN_CONTINUE, stop_reason=body.stop_reason))
    return events


def decode_frame(data: Any) -> list[StreamEvent]:
    """Decode one raw frame into zero or more stream events."""
    try:
        if isinstance(data, (list, tuple)):
            data = bytes(data)
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else str(data)
        frame = ChatFrame.model_validate(json.loads(text))

        if frame.type != FrameType.CHAT_MESSAGE or not frame.message:
            return []

        body = _select_entry(frame.message.get("entry"))
        if body is None:
            return []

        if body.role == Role.USER:
            echo = _first_text(body.content)
            return [StreamEvent(StreamEventType.USER_ECHO, text=echo)] if echo.strip() else []
        return _assistant_events(body)
    except (ValueError, TypeError, ValidationError) as e:
        # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
        logger.warning("Dropping undecodable frame: %s", e)
        return [StreamEvent(StreamEventType.DECODE_ERROR, text=f"Error: could not decode stream message: {e}")]
