"""Transcript printing for the terminal."""

from typing import Optional

from rich.console import Console
from rich.markup import escape

from git_agent.models.message import Message
from git_agent.repository import RepositoryInfo
from git_agent.store import MessageStore

TOOL_DISPLAY_MODES = ("hidden", "minimal", "full")

ROLE_STYLE = {
    "user": ("gray50", "You: "),
    "assistant": ("white", "Assistant: "),
    "system": ("gray50", "git: "),
    "error": ("red", "Error: "),
    "tool": ("magenta", "tool "),
}


def render_message(message: Message, tool_display: str = "minimal") -> Optional[str]:
    """Rich markup for one message, or None if it should not be shown."""
    color, prefix = ROLE_STYLE.get(message.role, ("white", ""))

    if message.role == "tool":
        args = escape(" ".join(message.tool_args or []))
        name = escape(message.tool_name or "unknown")
        if tool_display == "minimal":
            return f"[{color} dim]{prefix}{name}: {args}[/]"
        if tool_display == "full":
            return f"[{color}]{prefix}{name}[/]\n[{color} dim]  Args: {args}[/]"
        return None

    if not message.content.strip():
        return None

    lines = message.content.split("\n")
    body = [f"{prefix}{escape(lines[0])}"]
    body.extend(f"   {escape(line)}" for line in lines[1:])
    return f"[{color}]" + "\n".join(body) + "[/]"


def render_header(repo: RepositoryInfo, workflow: str) -> str:
    header = f"[cyan]Git {workflow.capitalize()} Assistant[/cyan]\n[gray50]{escape(repo.name)} | {escape(repo.current_branch)}[/]"
    if repo.has_uncommitted_changes:
        header += " | [yellow]Changes pending[/yellow]"
    return header


class TranscriptPrinter:
    """Prints completed messages once, in transcript order.

    Tool messages are only ever inserted before the pending message, which has
    not been printed yet, so a single cursor into the transcript suffices.
    """

    def __init__(self, console: Console, tool_display: str = "minimal"):
        self._console = console
        self.tool_display = tool_display
        self._printed = 0
        self._unsubscribe = None

    def attach(self, store: MessageStore) -> None:
        self._unsubscribe = store.subscribe(self.on_change)
        self.on_change(store)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def cycle_tool_display(self) -> str:
        index = TOOL_DISPLAY_MODES.index(self.tool_display)
        self.tool_display = TOOL_DISPLAY_MODES[(index + 1) % len(TOOL_DISPLAY_MODES)]
        return self.tool_display

    def on_change(self, store: MessageStore) -> None:
        messages = store.messages
        if len(messages) < self._printed:
            # transcript was cleared
            self._printed = 0
        while self._printed < len(messages):
            message = messages[self._printed]
            if message.is_pending:
                break
            markup = render_message(message, self.tool_display)
            if markup is not None:
                self._console.print(markup)
            self._printed += 1
