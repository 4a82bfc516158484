"""
Transcript message model.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

MessageRole = Literal["user", "assistant", "system", "tool", "error"]
Status = Literal["pending", "complete"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    role: MessageRole
    content: str = ""
    status: Status = "complete"
    timestamp: datetime = Field(default_factory=_now)
    tool_name: Optional[str] = None
    tool_args: Optional[list[str]] = None

    @model_validator(mode="after")
    def _tool_fields_only_on_tool(self) -> "Message":
        if self.role != "tool" and (self.tool_name is not None or self.tool_args is not None):
            raise ValueError("tool_name/tool_args are only valid on tool messages")
        return self

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"
