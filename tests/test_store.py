import random

import pytest
from pydantic import ValidationError

from git_agent.models.message import Message
from git_agent.store import MessageStore


def roles(store):
    return [m.role for m in store.messages]


def pending_assistants(store):
    return [m for m in store.messages if m.role == "assistant" and m.status == "pending"]


class TestAppend:
    def test_append_complete(self):
        store = MessageStore()
        message = store.append("system", "hello")
        assert store.messages == [message]
        assert message.status == "complete"
        assert store.pending is None

    def test_append_pending_tracks_handle(self):
        store = MessageStore()
        pending = store.append_pending("assistant", "")
        assert store.pending is pending
        assert pending.is_pending

    def test_second_pending_completes_first(self):
        store = MessageStore()
        first = store.append_pending()
        second = store.append_pending()
        assert first.status == "complete"
        assert store.pending is second
        assert len(pending_assistants(store)) == 1

    def test_append_with_pending_status_routes_through_append_pending(self):
        store = MessageStore()
        store.append_pending()
        store.append("assistant", "x", status="pending")
        assert len(pending_assistants(store)) == 1


class TestPendingMutation:
    def test_update_pending(self):
        store = MessageStore()
        store.append_pending()
        assert store.update_pending("partial")
        assert store.pending.content == "partial"
        assert store.update_pending("done", status="complete")
        assert store.pending is None
        assert store.messages[0].content == "done"
        assert store.messages[0].status == "complete"

    def test_update_without_pending_is_noop(self):
        store = MessageStore()
        store.append("user", "hi")
        assert store.update_pending("x") is False
        assert store.messages[0].content == "hi"

    def test_upsert_opens_then_updates(self):
        store = MessageStore()
        first = store.upsert_pending("a")
        second = store.upsert_pending("ab")
        assert first is second
        assert len(store) == 1
        assert store.pending.content == "ab"

    def test_complete_pending(self):
        store = MessageStore()
        assert store.complete_pending() is None
        store.upsert_pending("x")
        done = store.complete_pending()
        assert done.status == "complete"
        assert store.pending is None

    def test_completed_message_is_never_updated_again(self):
        store = MessageStore()
        store.upsert_pending("turn one")
        store.complete_pending()
        store.upsert_pending("turn two")
        assert [m.content for m in store.messages] == ["turn one", "turn two"]


class TestToolInsertion:
    def test_tool_goes_before_pending_assistant(self):
        store = MessageStore()
        store.append("user", "q")
        store.upsert_pending("a")
        tool = store.add_tool_message("git_diff", ["--staged"])
        assert roles(store) == ["user", "tool", "assistant"]
        assert tool.tool_name == "git_diff"
        assert tool.tool_args == ["--staged"]

    def test_tool_appends_without_pending(self):
        store = MessageStore()
        store.append("assistant", "done")
        store.add_tool_message("git_status")
        assert roles(store) == ["assistant", "tool"]

    def test_several_tools_keep_call_order(self):
        store = MessageStore()
        store.upsert_pending("a")
        store.add_tool_message("one")
        store.add_tool_message("two")
        assert [m.tool_name for m in store.messages[:2]] == ["one", "two"]
        assert store.messages[2].role == "assistant"

    def test_timestamps_stay_ordered(self):
        store = MessageStore()
        store.append("user", "q")
        store.upsert_pending("a")
        store.add_tool_message("t")
        stamps = [m.timestamp for m in store.messages]
        assert stamps == sorted(stamps)


class TestSubscription:
    def test_listener_called_on_every_change(self):
        store = MessageStore()
        calls = []
        remove = store.subscribe(lambda s: calls.append(len(s)))
        store.append("user", "hi")
        store.upsert_pending("a")
        store.add_tool_message("t")
        store.complete_pending()
        assert calls == [1, 2, 3, 3]
        remove()
        store.clear()
        assert calls == [1, 2, 3, 3]

    def test_failing_listener_does_not_break_store(self):
        store = MessageStore()

        def boom(_store):
            raise RuntimeError("render failed")
        store.subscribe(boom)
        store.append("user", "hi")
        assert len(store) == 1

    def test_clear_resets_pending(self):
        store = MessageStore()
        store.upsert_pending("a")
        store.clear()
        assert store.messages == []
        assert store.pending is None


class TestMessageModel:
    def test_tool_fields_rejected_on_other_roles(self):
        with pytest.raises(ValidationError):
            Message(role="assistant", content="x", tool_name="git")

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            Message(role="robot", content="x")


OPERATIONS = ["append", "append_pending", "update", "update_complete", "upsert", "tool", "complete", "clear"]


@pytest.mark.parametrize("seed", range(25))
def test_single_pending_invariant_over_random_operations(seed):
    rng = random.Random(seed)
    store = MessageStore()
    for step in range(200):
        op = rng.choice(OPERATIONS)
        if op == "append":
            store.append(rng.choice(["user", "system", "error", "assistant"]), f"m{step}")
        elif op == "append_pending":
            store.append_pending("assistant", "")
        elif op == "update":
            store.update_pending(f"u{step}")
        elif op == "update_complete":
            store.update_pending(f"c{step}", status="complete")
        elif op == "upsert":
            store.upsert_pending(f"s{step}")
        elif op == "tool":
            store.add_tool_message(f"t{step}", [str(step)])
        elif op == "complete":
            store.complete_pending()
        elif op == "clear" and rng.random() < 0.1:
            store.clear()

        pending = [m for m in store.messages if m.is_pending]
        assert len(pending) <= 1
        if pending:
            assert store.pending is pending[0]
        else:
            assert store.pending is None
        stamps = [m.timestamp for m in store.messages]
        assert stamps == sorted(stamps)
