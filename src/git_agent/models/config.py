"""
Actor and client configuration models.
"""

import json
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Workflow = Literal["commit", "review", "rebase", "chat"]
ToolDisplayMode = Literal["hidden", "minimal", "full"]

DEFAULT_SERVER = "127.0.0.1:9000"


class ModelConfig(BaseModel):
    model: str
    provider: str


class InitialState(BaseModel):
    """Initial state blob handed to the git assistant actor on start."""
    current_directory: str
    workflow: Optional[Workflow] = None  # omitted for free-form chat
    auto_exit_on_completion: bool = False
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    model_settings: Optional[ModelConfig] = Field(default=None, alias="model_config")

    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    def to_bytes(self) -> bytes:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True)).encode("utf-8")


class ActorConfig(BaseModel):
    manifest_path: str
    initial_state: InitialState
    mode: Literal["workflow", "chat"] = "workflow"


class AgentSettings(BaseModel):
    """Contents of ``~/.git-agent/config.json``."""
    server: str = DEFAULT_SERVER
    manifest_path: Optional[str] = None
    tool_display: ToolDisplayMode = "minimal"
