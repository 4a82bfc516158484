import json

import pytest

from git_agent.models.config import InitialState
from git_agent.workflows import WORKFLOW_PRESETS, WORKFLOWS, build_actor_config


def test_every_workflow_has_a_preset():
    assert set(WORKFLOWS) == set(WORKFLOW_PRESETS)


class TestBuildActorConfig:
    def test_commit_workflow(self):
        config = build_actor_config("commit", "/work/repo", "/actors/git.toml")
        assert config.manifest_path == "/actors/git.toml"
        assert config.mode == "workflow"
        state = json.loads(config.initial_state.to_bytes())
        assert state["current_directory"] == "/work/repo"
        assert state["workflow"] == "commit"
        assert state["auto_exit_on_completion"] is True
        assert state["model_config"] == {"model": "gemini-2.0-flash", "provider": "google"}
        assert state["temperature"] == 0.3

    def test_chat_never_auto_exits(self):
        config = build_actor_config("chat", "/work/repo", "m.toml", mode="workflow")
        assert config.mode == "chat"
        state = json.loads(config.initial_state.to_bytes())
        assert "workflow" not in state
        assert state["auto_exit_on_completion"] is False

    def test_interactive_workflow_keeps_actor_alive(self):
        config = build_actor_config("review", "/r", "m.toml", mode="chat")
        assert config.initial_state.workflow == "review"
        assert config.initial_state.auto_exit_on_completion is False

    def test_unknown_workflow(self):
        with pytest.raises(ValueError):
            build_actor_config("bisect", "/r", "m.toml")


def test_initial_state_accepts_wire_name():
    state = InitialState.model_validate({
        "current_directory": "/r",
        "model_config": {"model": "m", "provider": "p"},
    })
    assert state.model_settings.provider == "p"
