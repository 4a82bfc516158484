"""
Actor transport contract.

The session layer only talks to actors through these three interfaces, so any
actor runtime client can be plugged in (tests use an in-memory fake).
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

FrameHandler = Callable[[bytes], None]
EventCallback = Callable[[Any], None]


class StreamHandle(ABC):
    """A streaming channel to an actor. Frames are raw bytes."""

    @abstractmethod
    def on_message(self, handler: FrameHandler) -> None:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...


class ActorHandle(ABC):
    @property
    @abstractmethod
    def id(self) -> str:
        ...

    @abstractmethod
    async def request_json(self, obj: dict[str, Any]) -> Any:
        """Send a JSON request to the actor and return its decoded JSON reply."""

    @abstractmethod
    async def stop(self) -> None:
        ...


class ActorTransport(ABC):
    @abstractmethod
    async def start_actor(
        self,
        manifest: str,
        initial_state: bytes,
        *,
        on_event: Optional[EventCallback] = None,
        on_error: Optional[EventCallback] = None,
        on_actor_result: Optional[EventCallback] = None,
    ) -> ActorHandle:
        """Start an actor. Callbacks fire out of band for the actor's lifetime."""

    @abstractmethod
    async def open_channel(self, target: dict[str, str]) -> StreamHandle:
        """Open a channel, e.g. ``{"Actor": actor_id}``."""

    async def close(self) -> None:
        return None
