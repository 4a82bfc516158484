import asyncio
import json
from typing import Any, Optional

import pytest

from git_agent.transport.base import ActorHandle, ActorTransport, StreamHandle


class FakeStream(StreamHandle):
    def __init__(self, target: dict[str, str]):
        self.target = target
        self.handlers = []
        self.close_calls = 0
        self.close_error: Optional[Exception] = None

    def on_message(self, handler) -> None:
        self.handlers.append(handler)

    def push(self, frame: Any) -> None:
        data = frame if isinstance(frame, bytes) else json.dumps(frame).encode("utf-8")
        for handler in self.handlers:
            handler(data)

    async def close(self) -> None:
        self.close_calls += 1
        if self.close_error is not None:
            raise self.close_error


class FakeActor(ActorHandle):
    def __init__(self, responses: dict[str, Any]):
        self.responses = responses
        self.requests: list[dict[str, Any]] = []
        self.stop_calls = 0
        self.stop_error: Optional[Exception] = None

    @property
    def id(self) -> str:
        return "domain-actor-1"

    async def request_json(self, obj: dict[str, Any]) -> Any:
        self.requests.append(obj)
        response = self.responses.get(obj["type"])
        if isinstance(response, asyncio.Future):
            # held open by the test
            response = await response
        if isinstance(response, Exception):
            raise response
        return response

    async def stop(self) -> None:
        self.stop_calls += 1
        if self.stop_error is not None:
            raise self.stop_error


class FakeTransport(ActorTransport):
    """In-memory actor transport. Lifecycle callbacks are fired by the test."""

    def __init__(self):
        self.responses: dict[str, Any] = {
            "GetChatStateActorId": {"type": "ChatStateActorId", "actor_id": "chat-actor-1"},
            "StartChat": {"type": "Success"},
            "AddMessage": {"type": "Success"},
        }
        self.start_error: Optional[Exception] = None
        self.channel_error: Optional[Exception] = None
        self.actor: Optional[FakeActor] = None
        self.stream: Optional[FakeStream] = None
        self.manifest: Optional[str] = None
        self.initial_state: Optional[bytes] = None
        self.callbacks: dict[str, Any] = {}

    async def start_actor(self, manifest, initial_state, *, on_event=None, on_error=None, on_actor_result=None):
        if self.start_error is not None:
            raise self.start_error
        self.manifest = manifest
        self.initial_state = initial_state
        self.callbacks = {"event": on_event, "error": on_error, "result": on_actor_result}
        self.actor = FakeActor(self.responses)
        return self.actor

    async def open_channel(self, target):
        if self.channel_error is not None:
            raise self.channel_error
        self.stream = FakeStream(target)
        return self.stream

    def emit_event(self, event: Any) -> None:
        self.callbacks["event"](event)

    def emit_error(self, error: Any) -> None:
        self.callbacks["error"](error)

    def emit_result(self, result: Any) -> None:
        self.callbacks["result"](result)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()
