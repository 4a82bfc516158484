"""
Message store: the ordered chat transcript.

The transcript only grows at the end, with two exceptions: the single pending
assistant message can be edited in place, and tool messages are inserted
immediately before it. The pending message is tracked by reference rather
than found by scanning, so a stale pending entry can never be picked up.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from git_agent.models.events import MessageStatus, Role
from git_agent.models.message import Message

logger = logging.getLogger(__name__)

Listener = Callable[["MessageStore"], None]


class MessageStore:
    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._pending: Optional[Message] = None
        self._listeners: list[Listener] = []
        self._last_ts: Optional[datetime] = None

    @property
    def messages(self) -> list[Message]:
        """Snapshot of the transcript in display order."""
        return list(self._messages)

    @property
    def pending(self) -> Optional[Message]:
        return self._pending

    def __len__(self) -> int:
        return len(self._messages)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that removes it."""
        self._listeners.append(listener)

        def remove() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass
        return remove

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Message store listener failed")

    def _timestamp(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_ts is not None and now < self._last_ts:
            now = self._last_ts
        self._last_ts = now
        return now

    def append(
        self,
        role: str,
        content: str,
        status: str = MessageStatus.COMPLETE,
        tool_name: Optional[str] = None,
        tool_args: Optional[list[str]] = None,
    ) -> Message:
        if status == MessageStatus.PENDING:
            return self.append_pending(role, content)
        message = Message(role=role, content=content, status=status, timestamp=self._timestamp(),
                          tool_name=tool_name, tool_args=tool_args)
        self._messages.append(message)
        self._notify()
        return message

    def append_pending(self, role: str = Role.ASSISTANT, content: str = "") -> Message:
        """Open a new pending message, completing any previous one first."""
        if self._pending is not None:
            self._pending.status = MessageStatus.COMPLETE
        message = Message(role=role, content=content, status=MessageStatus.PENDING, timestamp=self._timestamp())
        self._messages.append(message)
        self._pending = message
        self._notify()
        return message

    def update_pending(self, content: str, status: str = MessageStatus.PENDING) -> bool:
        """Replace the pending message's content. Returns False if nothing is pending."""
        message = self._pending
        if message is None:
            return False
        message.content = content
        message.status = status
        if status == MessageStatus.COMPLETE:
            self._pending = None
        self._notify()
        return True

    def upsert_pending(self, content: str) -> Message:
        """Update the pending assistant message, opening one if none exists."""
        if self._pending is None:
            return self.append_pending(Role.ASSISTANT, content)
        self.update_pending(content)
        return self._pending

    def complete_pending(self) -> Optional[Message]:
        message = self._pending
        if message is None:
            return None
        message.status = MessageStatus.COMPLETE
        self._pending = None
        self._notify()
        return message

    def insert_before_pending(self, message: Message) -> Message:
        """Insert ``message`` right before the pending message, or append if none."""
        if self._pending is None:
            message.timestamp = self._timestamp()
            self._messages.append(message)
        else:
            index = self._index_of(self._pending)
            # takes the pending message's slot, so it shares its timestamp
            message.timestamp = self._pending.timestamp
            self._messages.insert(index, message)
        self._notify()
        return message

    def add_tool_message(self, tool_name: str, tool_args: Optional[list[str]] = None) -> Message:
        return self.insert_before_pending(Message(
            role=Role.TOOL, content="", status=MessageStatus.COMPLETE,
            tool_name=tool_name, tool_args=list(tool_args or []),
        ))

    def clear(self) -> None:
        self._messages.clear()
        self._pending = None
        self._notify()

    def _index_of(self, target: Message) -> int:
        for i, message in enumerate(self._messages):
            if message is target:
                return i
        raise LookupError("pending message is not in the transcript")
