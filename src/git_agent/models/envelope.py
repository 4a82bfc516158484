"""
Wire shapes exchanged with the git assistant actor.

Control requests go out through ``ActorHandle.request_json``; chat frames come
back over the chat-state channel as JSON bytes.
"""

from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict


class ControlResponseModel(BaseModel):
    """Response to a control request: ``{"type": "Success"}`` and friends."""
    model_config = ConfigDict(extra="allow")

    type: str
    actor_id: Optional[str] = None
    message: Optional[str] = None


class ContentBlock(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    text: Optional[str] = None
    name: Optional[str] = None      # tool_use
    input: Optional[dict[str, Any]] = None  # tool_use


class ChatEntryBody(BaseModel):
    """Body of a ``Message`` or ``Completion`` entry."""
    model_config = ConfigDict(extra="allow")

    role: Optional[str] = None
    content: Union[str, list[Any], None] = None
    stop_reason: Optional[str] = None


class ChatFrame(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str
    message: Optional[dict[str, Any]] = None
