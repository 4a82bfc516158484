"""
Workflow presets and actor configuration.

Each workflow runs the same git assistant actor with different sampling
settings and model. ``chat`` is free-form and never auto-exits.
"""

from typing import Any

from git_agent.models.config import ActorConfig, InitialState, ModelConfig, Workflow
from git_agent.models.events import SessionMode

WORKFLOWS: tuple[str, ...] = ("commit", "review", "rebase", "chat")

WORKFLOW_PRESETS: dict[str, dict[str, Any]] = {
    "commit": {
        "temperature": 0.3,
        "max_tokens": 4096,
        "title": "Git Commit Assistant",
        "description": "Automated git commit workflow assistant",
        "model_settings": ModelConfig(model="gemini-2.0-flash", provider="google"),
    },
    "review": {
        "temperature": 0.5,
        "max_tokens": 8192,
        "title": "Git Review Assistant",
        "description": "Code review workflow assistant",
        "model_settings": ModelConfig(model="claude-sonnet-4-20250514", provider="anthropic"),
    },
    "rebase": {
        "temperature": 0.4,
        "max_tokens": 6144,
        "title": "Git Rebase Assistant",
        "description": "Interactive rebase workflow assistant",
        "model_settings": ModelConfig(model="claude-sonnet-4-20250514", provider="anthropic"),
    },
    "chat": {
        "temperature": 0.7,
        "max_tokens": 8192,
        "title": "Git Assistant",
        "description": "General git workflow assistant",
        "model_settings": ModelConfig(model="claude-sonnet-4-20250514", provider="anthropic"),
    },
}


def build_actor_config(
    workflow: Workflow,
    repo_path: str,
    manifest_path: str,
    mode: str = SessionMode.WORKFLOW,
) -> ActorConfig:
    """Build the actor configuration for ``workflow`` on ``repo_path``."""
    if workflow not in WORKFLOW_PRESETS:
        raise ValueError(f"Unknown workflow: {workflow}")
    if workflow == "chat":
        mode = SessionMode.CHAT
    initial_state = InitialState(
        current_directory=repo_path,
        workflow=None if workflow == "chat" else workflow,
        auto_exit_on_completion=mode == SessionMode.WORKFLOW,
        **WORKFLOW_PRESETS[workflow],
    )
    return ActorConfig(manifest_path=manifest_path, initial_state=initial_state, mode=mode)
