"""
Session lifecycle manager.

Sequence: start actor -> resolve chat-state actor id -> open channel ->
StartChat -> (user turns) -> stop.

Everything the transport delivers out of band (channel frames and actor
lifecycle callbacks) is put on the session's inbox and applied by a single
pump task, strictly in arrival order. Local notices (send failures) go
through the same inbox so they land after any frame that arrived first.
"""

import asyncio
import json
import logging
from typing import Any, Callable, Optional, Union

from git_agent.decoder import decode_frame
from git_agent.error_parser import classify_error
from git_agent.errors import ProtocolError, RejectedError, SetupError, WorkflowError
from git_agent.models.config import InitialState
from git_agent.models.events import (
    ControlRequest,
    ControlResponse,
    InboxItemType,
    Role,
    SessionMode,
    StreamEventType,
    TerminalState,
)
from git_agent.store import MessageStore
from git_agent.transport.base import ActorHandle, ActorTransport, StreamHandle
from git_agent.transport.envelope import build_add_message, build_request, parse_response

logger = logging.getLogger(__name__)

DEFAULT_GRACE_DELAY_S = 1.5

EXIT_NOTICE = "Git assistant has shut down."
WORKFLOW_COMPLETE_NOTICE = "Workflow complete."

ActorObserver = Callable[[Any], None]
TerminateCallback = Callable[[int], None]


class InboxItem:
    __slots__ = ("type", "payload")

    def __init__(self, type: str, payload: Any = None):
        self.type = type
        self.payload = payload

    def __repr__(self) -> str:
        return f"InboxItem(type={self.type!r})"


class Session:
    """One engagement with a remote git assistant actor."""

    def __init__(self, mode: str = SessionMode.WORKFLOW, observer: Optional[ActorObserver] = None):
        self.mode = mode
        self.observer = observer
        self.actor: Optional[ActorHandle] = None
        self.stream_id: Optional[str] = None
        self.stream: Optional[StreamHandle] = None
        self.generating = False
        self.terminal_state = TerminalState.ACTIVE
        self.exit_code: Optional[int] = None
        self.store = MessageStore()
        self._inbox: asyncio.Queue[Optional[InboxItem]] = asyncio.Queue()
        self._inbox_closed = False
        self._pump_task: Optional[asyncio.Task] = None
        self._shutdown_task: Optional[asyncio.Task] = None
        self._stopped = False

    @property
    def messages(self):
        return self.store.messages

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def accepting_input(self) -> bool:
        return (self.terminal_state == TerminalState.ACTIVE and not self._stopped
                and self.actor is not None)

    def post(self, type: str, payload: Any = None) -> None:
        if self._inbox_closed:
            logger.debug("Dropping %s delivered after session stop", type)
            return
        self._inbox.put_nowait(InboxItem(type, payload))

    def _close_inbox(self) -> None:
        if not self._inbox_closed:
            self._inbox_closed = True
            self._inbox.put_nowait(None)


def _is_success(result: Any) -> bool:
    if isinstance(result, dict):
        return result.get("type") == ControlResponse.SUCCESS or (
            len(result) == 1 and ControlResponse.SUCCESS in result)
    return result == ControlResponse.SUCCESS


def _encode_initial_state(initial_state: Union[InitialState, dict[str, Any], bytes, None]) -> bytes:
    if initial_state is None:
        return b"{}"
    if isinstance(initial_state, bytes):
        return initial_state
    if isinstance(initial_state, InitialState):
        return initial_state.to_bytes()
    return json.dumps(initial_state).encode("utf-8")


class SessionManager:
    def __init__(
        self,
        transport: ActorTransport,
        *,
        mode: str = SessionMode.WORKFLOW,
        grace_delay: float = DEFAULT_GRACE_DELAY_S,
        on_terminate: Optional[TerminateCallback] = None,
    ):
        self._transport = transport
        self._mode = mode
        self._grace_delay = grace_delay
        self._on_terminate = on_terminate

    # -- setup ---------------------------------------------------------------

    async def start_session(
        self,
        manifest_ref: str,
        initial_state: Union[InitialState, dict[str, Any], bytes, None] = None,
        observer: Optional[ActorObserver] = None,
        mode: Optional[str] = None,
    ) -> Session:
        """Start the domain actor and resolve its chat-state actor id."""
        session = Session(mode=mode or self._mode, observer=observer)

        try:
            session.actor = await self._transport.start_actor(
                manifest_ref,
                _encode_initial_state(initial_state),
                on_event=lambda event: session.post(InboxItemType.ACTOR_EVENT, event),
                on_error=lambda error: session.post(InboxItemType.ACTOR_ERROR, error),
                on_actor_result=lambda result: session.post(InboxItemType.ACTOR_EXIT, result),
            )
        except Exception as e:
            report = classify_error(e)
            raise SetupError(f"Failed to start git assistant: {report.human_message}",
                             details={"kind": report.kind.value})

        try:
            response = await session.actor.request_json(build_request(ControlRequest.GET_CHAT_STATE_ACTOR_ID))
        except asyncio.CancelledError:
            await self._abandon(session)
            raise
        except Exception as e:
            await self._abandon(session)
            raise SetupError(f"Failed to resolve chat actor: {classify_error(e).human_message}")

        parsed = parse_response(response)
        if parsed is None or parsed.type != ControlResponse.CHAT_STATE_ACTOR_ID or not parsed.actor_id:
            await self._abandon(session)
            raise SetupError(f"Invalid response from git-chat-assistant: {json.dumps(response, default=str)}",
                             details={"response": response})

        session.stream_id = parsed.actor_id
        session._pump_task = asyncio.get_running_loop().create_task(self._pump(session))
        logger.info("Session started: actor=%s chat=%s", session.actor.id, session.stream_id)
        return session

    async def open_stream(self, session: Session) -> StreamHandle:
        if session.stream_id is None:
            raise SetupError("Session has no chat actor id")
        try:
            stream = await self._transport.open_channel({"Actor": session.stream_id})
        except Exception as e:
            raise SetupError(f"Failed to open chat channel: {classify_error(e).human_message}")
        stream.on_message(lambda data: session.post(InboxItemType.FRAME, data))
        session.stream = stream
        return stream

    async def start_workflow(self, session: Session) -> None:
        if session.stream is None:
            raise SetupError("open_stream() must be called before start_workflow()")
        try:
            response = await session.actor.request_json(build_request(ControlRequest.START_CHAT))
        except Exception as e:
            message = f"Failed to start git workflow: {classify_error(e).human_message}"
            self._notice(session, Role.ERROR, message)
            raise WorkflowError(message)

        parsed = parse_response(response)
        if parsed is not None and parsed.type == ControlResponse.SUCCESS:
            if session.mode == SessionMode.WORKFLOW:
                # the actor starts working on its task right away
                session.generating = True
            return
        if parsed is not None and parsed.type == ControlResponse.ERROR:
            detail = parsed.message if parsed.message is not None else json.dumps(response, default=str)
            message = f"Failed to start git workflow: {detail}"
            self._notice(session, Role.ERROR, message)
            raise WorkflowError(message, details={"response": response})
        raise ProtocolError(f"Invalid response from git-chat-assistant: {json.dumps(response, default=str)}",
                            details={"response": response})

    # -- user turns ----------------------------------------------------------

    async def send_user_message(self, session: Session, text: str) -> bool:
        """Send a user turn. Returns False if the session cannot take it now.

        No local echo is created; the user message comes back over the channel.
        """
        text = text.strip()
        if not text or session.generating or not session.accepting_input:
            logger.info("Rejected send: generating=%s state=%s", session.generating, session.terminal_state)
            return False

        session.generating = True
        try:
            response = await session.actor.request_json(build_add_message(text))
        except Exception as e:
            session.generating = False
            self._notice(session, Role.ERROR, f"Error sending message: {classify_error(e).human_message}")
            return False

        parsed = parse_response(response)
        if parsed is None or parsed.type != ControlResponse.SUCCESS:
            session.generating = False
            error = RejectedError(f"Git assistant rejected message: {json.dumps(response, default=str)}",
                                  details={"response": response})
            self._notice(session, Role.ERROR, str(error))
            return False
        return True

    # -- teardown ------------------------------------------------------------

    async def stop_session(self, session: Session) -> None:
        """Close the channel and stop the actor. Safe to call any number of times."""
        if session._stopped:
            return
        session._stopped = True
        session.generating = False

        if session.stream is not None:
            try:
                await session.stream.close()
            except Exception as e:
                logger.debug("Ignoring error while closing channel: %s", e)
        if session.actor is not None:
            try:
                await session.actor.stop()
            except Exception as e:
                logger.debug("Ignoring error while stopping actor: %s", e)
        session._close_inbox()
        logger.info("Session stopped")

    async def wait_idle(self, session: Session) -> None:
        """Wait until everything delivered so far has been applied."""
        await session._inbox.join()

    async def wait_shutdown(self, session: Session) -> Optional[int]:
        """Wait for a scheduled shutdown, if any, and return its exit code."""
        if session._shutdown_task is not None:
            await session._shutdown_task
        return session.exit_code

    async def _abandon(self, session: Session) -> None:
        try:
            await session.actor.stop()
        except Exception as e:
            logger.debug("Ignoring error while stopping actor after failed setup: %s", e)
        session._stopped = True
        session._inbox_closed = True

    # -- inbox ---------------------------------------------------------------

    def _notice(self, session: Session, role: str, text: str) -> None:
        session.post(InboxItemType.NOTICE, (role, text))

    async def _pump(self, session: Session) -> None:
        while True:
            item = await session._inbox.get()
            try:
                if item is None:
                    return
                self._apply(session, item)
            except Exception:
                logger.exception("Failed to apply %r", item)
            finally:
                session._inbox.task_done()

    def _apply(self, session: Session, item: InboxItem) -> None:
        if item.type == InboxItemType.FRAME:
            self._apply_frame(session, item.payload)
        elif item.type == InboxItemType.ACTOR_EVENT:
            logger.debug("Actor event: %s", item.payload)
            if session.observer is not None:
                session.observer(item.payload)
        elif item.type == InboxItemType.ACTOR_ERROR:
            self._on_actor_error(session, item.payload)
        elif item.type == InboxItemType.ACTOR_EXIT:
            self._on_actor_exit(session, item.payload)
        elif item.type == InboxItemType.NOTICE:
            role, text = item.payload
            session.store.append(role, text)

    def _apply_frame(self, session: Session, data: Any) -> None:
        store = session.store
        for event in decode_frame(data):
            if event.type == StreamEventType.ASSISTANT_TEXT:
                store.upsert_pending(event.text)
            elif event.type == StreamEventType.TOOL_USE:
                store.add_tool_message(event.tool_name, event.tool_args)
            elif event.type == StreamEventType.USER_ECHO:
                store.complete_pending()
                store.append(Role.USER, event.text)
            elif event.type == StreamEventType.TURN_END:
                store.complete_pending()
                session.generating = False
            elif event.type == StreamEventType.TURN_CONTINUE:
                # next assistant text opens a fresh pending message
                store.complete_pending()
            elif event.type == StreamEventType.DECODE_ERROR:
                store.append(Role.ERROR, event.text)

    def _on_actor_exit(self, session: Session, result: Any) -> None:
        if session.terminal_state != TerminalState.ACTIVE or session._stopped:
            return
        logger.info("Actor exited: %s", result)
        session.terminal_state = TerminalState.EXITED
        session.generating = False
        session.store.complete_pending()
        if session.mode == SessionMode.WORKFLOW and _is_success(result):
            session.store.append(Role.SYSTEM, WORKFLOW_COMPLETE_NOTICE)
        else:
            session.store.append(Role.SYSTEM, EXIT_NOTICE)
        self._schedule_shutdown(session, 0)

    def _on_actor_error(self, session: Session, error: Any) -> None:
        if session.terminal_state != TerminalState.ACTIVE or session._stopped:
            return
        report = classify_error(error)
        logger.error("Actor error (%s): %s", report.kind.value, report.raw_detail)
        session.terminal_state = TerminalState.ERRORED
        session.generating = False
        session.store.complete_pending()
        session.store.append(Role.ERROR, report.human_message)
        self._schedule_shutdown(session, 1)

    def _schedule_shutdown(self, session: Session, exit_code: int) -> None:
        if session._shutdown_task is not None:
            return
        session.exit_code = exit_code
        session._shutdown_task = asyncio.get_running_loop().create_task(
            self._shutdown_after(session, exit_code))

    async def _shutdown_after(self, session: Session, exit_code: int) -> None:
        # give the UI time to render the final state
        await asyncio.sleep(self._grace_delay)
        await self.stop_session(session)
        if self._on_terminate is not None:
            self._on_terminate(exit_code)
