"""
AsyncGitAgent: wires a transport and the session manager together and runs
the full setup sequence for one workflow.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from git_agent.models.config import ActorConfig, DEFAULT_SERVER
from git_agent.session import DEFAULT_GRACE_DELAY_S, Session, SessionManager, TerminateCallback
from git_agent.transport.base import ActorTransport
from git_agent.transport.theater import TheaterTransport

logger = logging.getLogger(__name__)

# connecting -> opening_channel -> loading_actor -> ready | error
SetupStatusCallback = Callable[[str, str], None]


class SetupStatus:
    CONNECTING = "connecting"
    OPENING_CHANNEL = "opening_channel"
    LOADING_ACTOR = "loading_actor"
    READY = "ready"
    ERROR = "error"


class AsyncGitAgent:
    """Async git assistant client (primary)."""

    def __init__(
        self,
        server: str = DEFAULT_SERVER,
        transport: Optional[ActorTransport] = None,
        grace_delay: float = DEFAULT_GRACE_DELAY_S,
        on_terminate: Optional[TerminateCallback] = None,
        retry_attempts: int = 3,
        retry_delay: float = 1.0,
    ):
        # no request timeout: interactive sessions can idle indefinitely
        self.transport = transport or TheaterTransport(server, retry_attempts=retry_attempts,
                                                       retry_delay=retry_delay)
        self._grace_delay = grace_delay
        self._on_terminate = on_terminate
        self._manager: Optional[SessionManager] = None
        self.session: Optional[Session] = None

    @property
    def manager(self) -> SessionManager:
        if self._manager is None:
            raise RuntimeError("No session started. Call start() first.")
        return self._manager

    async def start(
        self,
        config: ActorConfig,
        on_status: Optional[SetupStatusCallback] = None,
        observer: Optional[Callable[[Any], None]] = None,
    ) -> Session:
        """Start the actor, open its chat channel and kick off the workflow."""
        workflow = config.initial_state.workflow or "chat"

        def status(state: str, message: str) -> None:
            logger.info("Setup %s: %s", state, message)
            if on_status is not None:
                on_status(state, message)

        self._manager = SessionManager(
            self.transport, mode=config.mode, grace_delay=self._grace_delay, on_terminate=self._on_terminate,
        )
        status(SetupStatus.CONNECTING, "Connecting to Theater...")
        try:
            session = await self._manager.start_session(
                config.manifest_path, config.initial_state, observer=observer,
            )
        except Exception as e:
            status(SetupStatus.ERROR, f"Error: {e}")
            raise
        self.session = session
        try:
            status(SetupStatus.OPENING_CHANNEL, "Opening communication channel...")
            await self._manager.open_stream(session)
            status(SetupStatus.LOADING_ACTOR, f"Starting {workflow} workflow...")
            await self._manager.start_workflow(session)
        except asyncio.CancelledError:
            status(SetupStatus.ERROR, "Setup interrupted")
            await self._manager.stop_session(session)
            raise
        except Exception as e:
            status(SetupStatus.ERROR, f"Error: {e}")
            await self._manager.stop_session(session)
            raise
        status(SetupStatus.READY, f"{workflow.capitalize()} workflow ready!")
        return session

    async def send(self, text: str) -> bool:
        if self.session is None:
            return False
        return await self.manager.send_user_message(self.session, text)

    async def stop(self) -> None:
        if self.session is not None:
            await self.manager.stop_session(self.session)
        await self.transport.close()

    async def wait_idle(self) -> None:
        if self.session is not None:
            await self.manager.wait_idle(self.session)

    async def __aenter__(self) -> "AsyncGitAgent":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await asyncio.shield(self.stop())
