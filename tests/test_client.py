import asyncio

import pytest

from git_agent.client import AsyncGitAgent, SetupStatus
from git_agent.errors import SetupError, WorkflowError
from git_agent.workflows import build_actor_config


def commit_config():
    return build_actor_config("commit", "/work/repo", "git.toml")


class TestAsyncGitAgent:
    @pytest.mark.asyncio
    async def test_start_runs_full_setup(self, transport):
        statuses = []
        async with AsyncGitAgent(transport=transport, grace_delay=0) as agent:
            session = await agent.start(commit_config(), on_status=lambda s, _m: statuses.append(s))
            assert session.stream is transport.stream
            assert session.generating is True
            assert [r["type"] for r in transport.actor.requests] == ["GetChatStateActorId", "StartChat"]
        assert statuses == [
            SetupStatus.CONNECTING, SetupStatus.OPENING_CHANNEL, SetupStatus.LOADING_ACTOR, SetupStatus.READY,
        ]
        assert session.stopped

    @pytest.mark.asyncio
    async def test_workflow_failure_tears_down(self, transport):
        transport.responses["StartChat"] = {"type": "Error", "message": "no changes to commit"}
        statuses = []
        agent = AsyncGitAgent(transport=transport, grace_delay=0)
        with pytest.raises(WorkflowError, match="no changes to commit"):
            await agent.start(commit_config(), on_status=lambda s, _m: statuses.append(s))
        assert statuses[-1] == SetupStatus.ERROR
        assert transport.actor.stop_calls == 1
        assert agent.session.stopped

    @pytest.mark.asyncio
    async def test_start_failure_reports_error_status(self, transport):
        transport.start_error = OSError("connection refused")
        statuses = []
        agent = AsyncGitAgent(transport=transport)
        with pytest.raises(SetupError):
            await agent.start(commit_config(), on_status=lambda s, _m: statuses.append(s))
        assert statuses == [SetupStatus.CONNECTING, SetupStatus.ERROR]

    @pytest.mark.asyncio
    async def test_send_before_start(self, transport):
        agent = AsyncGitAgent(transport=transport)
        assert await agent.send("hello") is False

    @pytest.mark.asyncio
    async def test_chat_round_trip(self, transport):
        agent = AsyncGitAgent(transport=transport, grace_delay=0)
        session = await agent.start(build_actor_config("chat", "/work/repo", "git.toml"))
        assert session.generating is False
        assert await agent.send("what changed?")
        transport.stream.push({"type": "chat_message", "message": {"entry": {"Message": {
            "role": "assistant", "content": [{"type": "text", "text": "Two files."}], "stop_reason": "end_turn",
        }}}})
        await agent.wait_idle()
        assert [m.content for m in session.messages] == ["Two files."]
        await agent.stop()

    @pytest.mark.asyncio
    async def test_cancel_during_workflow_start_stops_actor(self, transport):
        transport.responses["StartChat"] = asyncio.get_running_loop().create_future()
        statuses = []
        agent = AsyncGitAgent(transport=transport, grace_delay=0)
        task = asyncio.ensure_future(agent.start(commit_config(), on_status=lambda s, _m: statuses.append(s)))
        while transport.actor is None or {"type": "StartChat"} not in transport.actor.requests:
            await asyncio.sleep(0)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert transport.actor.stop_calls == 1
        assert transport.stream.close_calls == 1
        assert statuses[-1] == SetupStatus.ERROR
