"""
Theater server client.

Connection: TCP to ``host:port``; every message is a JSON document prefixed
with its 4-byte big-endian length. Commands and responses are externally
tagged, e.g. ``{"StartActor": {...}}`` -> ``{"ActorStarted": {"id": ...}}``.
Byte payloads travel as arrays of integers.

Each actor and each channel gets its own connection, so lifecycle pushes
(``ActorEvent``, ``ActorError``, ``ActorResult``, ``ChannelMessage``) can be
routed without correlating ids across sessions.
"""

import asyncio
import json
import logging
import struct
from typing import Any, Callable, Optional

from git_agent.errors import TransportError
from git_agent.transport.base import ActorHandle, ActorTransport, EventCallback, FrameHandler, StreamHandle

logger = logging.getLogger(__name__)

FRAME_HEADER = struct.Struct(">I")
MAX_FRAME_SIZE = 32 * 1024 * 1024
DEFAULT_PORT = 9000
STOP_TIMEOUT_S = 5.0

ACTOR_PUSHES = {"ActorEvent", "ActorError", "ActorResult"}
CHANNEL_PUSHES = {"ChannelMessage", "ChannelClosed"}

PushHandler = Callable[[str, Any], None]


def parse_address(address: str) -> tuple[str, int]:
    host, _, port = address.partition(":")
    try:
        return host or "127.0.0.1", int(port) if port else DEFAULT_PORT
    except ValueError:
        raise TransportError(f"Invalid server address: {address}")


def encode_frame(obj: Any) -> bytes:
    payload = json.dumps(obj).encode("utf-8")
    return FRAME_HEADER.pack(len(payload)) + payload


def _tagged(message: Any) -> tuple[str, Any]:
    """Split ``{"Tag": body}`` into ``("Tag", body)``. Bare strings are unit variants."""
    if isinstance(message, str):
        return message, None
    if isinstance(message, dict) and len(message) == 1:
        (tag, body), = message.items()
        return tag, body
    raise TransportError(f"Unexpected message from server: {message!r}")


def _result_kind(body: Any) -> tuple[str, Any]:
    """``{"Success": {...}}`` -> ``("Success", {...})``; anything else is ``Unknown``."""
    if isinstance(body, str) or (isinstance(body, dict) and len(body) == 1):
        return _tagged(body)
    return "Unknown", body


class _Connection:
    """One framed connection with a single in-flight request at a time."""

    def __init__(
        self,
        host: str,
        port: int,
        push_kinds: set[str],
        on_push: Optional[PushHandler] = None,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        request_timeout: Optional[float] = None,
    ):
        self._host = host
        self._port = port
        self._push_kinds = push_kinds
        self._on_push = on_push
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._request_timeout = request_timeout
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._read_task: Optional[asyncio.Task] = None
        self._waiter: Optional[asyncio.Future] = None
        self._lock = asyncio.Lock()
        self._closing = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def begin_close(self, reason: str) -> None:
        """Fail any request still waiting for a reply and silence the lost-connection push."""
        self._closing = True
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_exception(TransportError(reason))

    async def open(self) -> None:
        last_error: Optional[Exception] = None
        for attempt in range(1, self._retry_attempts + 1):
            try:
                self._reader, self._writer = await asyncio.open_connection(self._host, self._port)
                break
            except OSError as e:
                last_error = e
                logger.info("Connect to %s:%d failed (attempt %d/%d): %s",
                            self._host, self._port, attempt, self._retry_attempts, e)
                if attempt < self._retry_attempts:
                    await asyncio.sleep(self._retry_delay)
        else:
            raise TransportError(f"Could not connect to Theater server at {self._host}:{self._port}: {last_error}")
        self._read_task = asyncio.get_running_loop().create_task(self._read_loop())

    async def send(self, command: dict[str, Any]) -> None:
        if self._writer is None or self._closed or (self._read_task is not None and self._read_task.done()):
            raise TransportError("Connection is closed")
        self._writer.write(encode_frame(command))
        await self._writer.drain()

    async def request(self, command: dict[str, Any]) -> tuple[str, Any]:
        async with self._lock:
            loop = asyncio.get_running_loop()
            self._waiter = loop.create_future()
            try:
                await self.send(command)
                if self._request_timeout:
                    message = await asyncio.wait_for(self._waiter, timeout=self._request_timeout)
                else:
                    message = await self._waiter
            except asyncio.TimeoutError:
                raise TransportError(f"Timed out waiting for response to {next(iter(command))}")
            finally:
                self._waiter = None
        tag, body = _tagged(message)
        if tag == "Error":
            error = body.get("error", body) if isinstance(body, dict) else body
            raise TransportError(f"Theater server error: {error}", details={"actor_error": error})
        return tag, body

    async def _read_frame(self) -> Any:
        assert self._reader is not None
        header = await self._reader.readexactly(FRAME_HEADER.size)
        (length,) = FRAME_HEADER.unpack(header)
        if length > MAX_FRAME_SIZE:
            raise TransportError(f"Frame of {length} bytes exceeds limit")
        payload = await self._reader.readexactly(length)
        return json.loads(payload.decode("utf-8"))

    async def _read_loop(self) -> None:
        error: Exception = TransportError("Connection closed by server")
        try:
            while True:
                message = await self._read_frame()
                tag, body = _tagged(message)
                if tag in self._push_kinds:
                    if self._on_push is not None:
                        self._on_push(tag, body)
                elif self._waiter is not None and not self._waiter.done():
                    self._waiter.set_result(message)
                else:
                    logger.debug("Unsolicited message from server: %s", tag)
        except asyncio.IncompleteReadError:
            pass
        except asyncio.CancelledError:
            raise
        except (OSError, ValueError, TransportError) as e:
            error = TransportError(f"Connection failed: {e}")
            logger.info("Theater connection read failed: %s", e)
        finally:
            if self._waiter is not None and not self._waiter.done():
                self._waiter.set_exception(error)
            if not (self._closed or self._closing) and self._on_push is not None:
                self._on_push("ConnectionClosed", None)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._read_task is not None:
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass
        if self._writer is not None:
            self._writer.close()
            try:
                await self._writer.wait_closed()
            except OSError:
                pass


class TheaterActor(ActorHandle):
    def __init__(self, actor_id: str, conn: _Connection):
        self._id = actor_id
        self._conn = conn

    @property
    def id(self) -> str:
        return self._id

    async def request_json(self, obj: dict[str, Any]) -> Any:
        data = list(json.dumps(obj).encode("utf-8"))
        tag, body = await self._conn.request({"RequestActorMessage": {"id": self._id, "data": data}})
        if tag != "RequestedMessage" or not isinstance(body, dict):
            raise TransportError(f"Unexpected response to actor request: {tag}")
        try:
            return json.loads(bytes(body.get("message") or []).decode("utf-8"))
        except (TypeError, ValueError) as e:
            raise TransportError(f"Actor replied with undecodable data: {e}")

    async def stop(self) -> None:
        # an outstanding request would otherwise hold the lock until the actor answers
        self._conn.begin_close("Actor is stopping")
        try:
            tag, _ = await asyncio.wait_for(self._conn.request({"StopActor": {"id": self._id}}),
                                            timeout=STOP_TIMEOUT_S)
            if tag != "ActorStopped":
                logger.debug("Unexpected response to StopActor: %s", tag)
        except asyncio.TimeoutError:
            logger.info("No reply to StopActor for %s; closing connection", self._id)
        finally:
            await self._conn.close()


class TheaterChannel(StreamHandle):
    def __init__(self, channel_id: str, conn: _Connection):
        self.channel_id = channel_id
        self._conn = conn
        self._handlers: list[FrameHandler] = []
        self._backlog: list[bytes] = []
        self._closed = False

    def on_message(self, handler: FrameHandler) -> None:
        self._handlers.append(handler)
        backlog, self._backlog = self._backlog, []
        for frame in backlog:
            handler(frame)

    def _deliver(self, tag: str, body: Any) -> None:
        if tag == "ChannelMessage" and isinstance(body, dict):
            frame = bytes(body.get("message") or [])
            if not self._handlers:
                self._backlog.append(frame)
            for handler in list(self._handlers):
                handler(frame)
        elif tag in ("ChannelClosed", "ConnectionClosed"):
            logger.info("Channel %s closed", self.channel_id)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            if not self._conn.closed:
                await self._conn.send({"CloseChannel": {"channel_id": self.channel_id}})
        finally:
            await self._conn.close()


class TheaterTransport(ActorTransport):
    def __init__(
        self,
        address: str = "127.0.0.1:9000",
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
        request_timeout: Optional[float] = None,
    ):
        self._host, self._port = parse_address(address)
        self._retry_attempts = retry_attempts
        self._retry_delay = retry_delay
        self._request_timeout = request_timeout

    def _connection(self, push_kinds: set[str], on_push: Optional[PushHandler]) -> _Connection:
        return _Connection(
            self._host, self._port, push_kinds, on_push,
            retry_attempts=self._retry_attempts,
            retry_delay=self._retry_delay,
            request_timeout=self._request_timeout,
        )

    async def start_actor(
        self,
        manifest: str,
        initial_state: bytes,
        *,
        on_event: Optional[EventCallback] = None,
        on_error: Optional[EventCallback] = None,
        on_actor_result: Optional[EventCallback] = None,
    ) -> ActorHandle:
        def on_push(tag: str, body: Any) -> None:
            if tag == "ActorEvent" and on_event is not None:
                on_event(body.get("event") if isinstance(body, dict) else body)
            elif tag == "ActorError" and on_error is not None:
                on_error(body.get("error") if isinstance(body, dict) else body)
            elif tag == "ConnectionClosed" and on_error is not None:
                on_error(TransportError("Connection to Theater server lost"))
            elif tag == "ActorResult":
                kind, inner = _result_kind(body)
                if kind == "Error":
                    if on_error is not None:
                        on_error(inner.get("error", inner) if isinstance(inner, dict) else inner)
                elif on_actor_result is not None:
                    result = {"type": kind}
                    if isinstance(inner, dict):
                        result.update(inner)
                    on_actor_result(result)

        conn = self._connection(ACTOR_PUSHES, on_push)
        await conn.open()
        try:
            tag, body = await conn.request({"StartActor": {
                "manifest": manifest,
                "initial_state": list(initial_state),
                "parent": True,
                "subscribe": True,
            }})
            if tag != "ActorStarted" or not isinstance(body, dict) or "id" not in body:
                raise TransportError(f"Unexpected response to StartActor: {tag}")
        except BaseException:
            await conn.close()
            raise
        logger.info("Started actor %s from %s", body["id"], manifest)
        return TheaterActor(str(body["id"]), conn)

    async def open_channel(self, target: dict[str, str]) -> StreamHandle:
        channel: Optional[TheaterChannel] = None
        early: list[tuple[str, Any]] = []

        def on_push(tag: str, body: Any) -> None:
            if channel is None:
                early.append((tag, body))
            else:
                channel._deliver(tag, body)

        conn = self._connection(CHANNEL_PUSHES, on_push)
        await conn.open()
        try:
            tag, body = await conn.request({"OpenChannel": {"actor_id": target, "initial_message": []}})
            if tag != "ChannelOpened" or not isinstance(body, dict):
                raise TransportError(f"Unexpected response to OpenChannel: {tag}")
        except BaseException:
            await conn.close()
            raise
        channel = TheaterChannel(str(body.get("channel_id")), conn)
        for tag, pushed in early:
            channel._deliver(tag, pushed)
        return channel
