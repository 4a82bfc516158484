"""CLI: git-agent commit|review|rebase|chat"""

import asyncio
import signal
import sys
import threading
from typing import Optional

import click
from rich.console import Console

from git_agent.client import AsyncGitAgent
from git_agent.cli.render import TranscriptPrinter, render_header
from git_agent.errors import GitAgentError
from git_agent.models.events import SessionMode
from git_agent.repository import analyze_repository, detect_git_repository, validate_git_repository
from git_agent.session import Session
from git_agent.workflows import build_actor_config

console = Console()

HELP_TEXT = "Commands: /quit (exit), /clear (clear transcript), /tools (cycle tool display), /help"


def _load_settings():
    from git_agent.cli.main import _load_settings
    return _load_settings()


def _setup_logging(verbose: bool) -> None:
    from git_agent.cli.main import _setup_logging
    _setup_logging(verbose)


def _run(coro):
    from git_agent.cli.main import _run
    return _run(coro)


class _LineReader:
    """Reads stdin on a daemon thread so a pending prompt never blocks exit."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._lines: asyncio.Queue[Optional[str]] = asyncio.Queue()
        self._thread = threading.Thread(target=self._read, daemon=True)
        self._thread.start()

    def _read(self) -> None:
        for line in sys.stdin:
            self._loop.call_soon_threadsafe(self._lines.put_nowait, line.rstrip("\n"))
        self._loop.call_soon_threadsafe(self._lines.put_nowait, None)

    async def readline(self) -> Optional[str]:
        return await self._lines.get()


async def _input_loop(agent: AsyncGitAgent, session: Session, printer: TranscriptPrinter,
                      done: asyncio.Future) -> None:
    reader = _LineReader(asyncio.get_running_loop())
    while not done.done():
        if session.generating or not session.accepting_input:
            await asyncio.sleep(0.1)
            continue
        console.print("[bold]>[/bold] ", end="")
        line = await reader.readline()
        if line is None:
            break
        command = line.strip().lower()
        if command in ("/quit", "/exit"):
            break
        if command == "/clear":
            session.store.clear()
        elif command == "/tools":
            console.print(f"[dim]Tool display: {printer.cycle_tool_display()}[/dim]")
        elif command == "/help":
            console.print(f"[cyan]{HELP_TEXT}[/cyan]")
        elif command:
            if await agent.send(line):
                console.print("[yellow]Working on it...[/yellow]")
    if not done.done():
        done.set_result(0)


async def _run_workflow(workflow: str, directory: Optional[str], server: Optional[str],
                        manifest: Optional[str], interactive: bool) -> int:
    settings = _load_settings()
    manifest_path = manifest or settings.manifest_path
    if not manifest_path:
        console.print("[red]No actor manifest configured. Pass --manifest or run "
                      "`git-agent config set manifest_path <path>`.[/red]")
        return 1

    try:
        repo_root = detect_git_repository(directory)
        if repo_root is None:
            console.print(f"[red]Not inside a git repository: {directory or '.'}[/red]")
            return 1
        validate_git_repository(repo_root)
        repo = analyze_repository(repo_root)
    except GitAgentError as e:
        console.print(f"[red]{e}[/red]")
        return 1

    mode = SessionMode.CHAT if interactive else SessionMode.WORKFLOW
    config = build_actor_config(workflow, str(repo_root), manifest_path, mode=mode)

    loop = asyncio.get_running_loop()
    done: asyncio.Future = loop.create_future()

    def finish(code: int) -> None:
        if not done.done():
            done.set_result(code)

    agent = AsyncGitAgent(server=server or settings.server, on_terminate=finish)
    console.print(render_header(repo, workflow))

    # installed before setup so an interrupt during start still tears the actor down
    signals = _install_signal_handlers(loop, finish)
    printer = TranscriptPrinter(console, settings.tool_display)
    input_task: Optional[asyncio.Task] = None
    try:
        with console.status("Connecting to Theater...") as status:
            start = loop.create_task(agent.start(config, on_status=lambda _state, message: status.update(message)))
            await asyncio.wait({start, done}, return_when=asyncio.FIRST_COMPLETED)
            if not start.done():
                start.cancel()
            try:
                session = await start
            except asyncio.CancelledError:
                if not done.done():
                    raise
                console.print("[yellow]Setup interrupted.[/yellow]")
                return done.result()
            except GitAgentError as e:
                console.print(f"[red]Error: {e}[/red]")
                return 1

        printer.attach(session.store)
        console.print(f"[dim]{HELP_TEXT}[/dim]\n")
        input_task = loop.create_task(_input_loop(agent, session, printer, done))
        return await done
    finally:
        if input_task is not None:
            input_task.cancel()
            try:
                await input_task
            except asyncio.CancelledError:
                pass
        await agent.stop()
        await agent.wait_idle()
        printer.detach()
        for sig in signals:
            loop.remove_signal_handler(sig)


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, finish) -> list[int]:
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, finish, 130)
        except (NotImplementedError, RuntimeError):
            # no signal support on this loop (Windows, or not the main thread)
            continue
        installed.append(sig)
    return installed


def _workflow_command(workflow: str, help_text: str):
    @click.command(workflow, help=help_text)
    @click.option("-d", "--directory", default=None, help="Repository path (default: current directory)")
    @click.option("-s", "--server", default=None, help="Theater server address host:port")
    @click.option("-m", "--manifest", default=None, help="Path to the git assistant actor manifest")
    @click.option("-i", "--interactive", is_flag=True, help="Keep chatting after the workflow finishes")
    @click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
    def command(directory: Optional[str], server: Optional[str], manifest: Optional[str],
                interactive: bool, verbose: bool):
        _setup_logging(verbose)
        raise SystemExit(_run(_run_workflow(workflow, directory, server, manifest,
                                            interactive or workflow == "chat")))

    return command


commit_cmd = _workflow_command("commit", "Draft and create a commit for the current changes.")
review_cmd = _workflow_command("review", "Review the current changes.")
rebase_cmd = _workflow_command("rebase", "Plan and run an interactive rebase.")
chat_cmd = _workflow_command("chat", "Free-form chat about the repository.")
