"""
git-agent CLI: `git-agent` command.

Commands:
  git-agent commit           Draft and create a commit for the current changes
  git-agent review           Review the current changes
  git-agent rebase           Plan and run an interactive rebase
  git-agent chat             Free-form chat about the repository
  git-agent config <cmd>     Show or change saved settings
"""

import asyncio
import json
import logging
from pathlib import Path

import click
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from git_agent import __version__
from git_agent.models.config import AgentSettings

console = Console()
CONFIG_FILE = Path.home() / ".git-agent" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _load_settings() -> AgentSettings:
    try:
        return AgentSettings.model_validate(_load_config())
    except ValidationError as e:
        console.print(f"[yellow]Ignoring invalid settings in {CONFIG_FILE}: {e.error_count()} error(s)[/yellow]")
        return AgentSettings()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.ERROR,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option(__version__)
def main():
    """git-agent: git workflows driven by a remote git assistant actor."""


# Register subcommands from separate modules
from git_agent.cli.chat import chat_cmd, commit_cmd, rebase_cmd, review_cmd  # noqa: E402
from git_agent.cli.config import config  # noqa: E402

main.add_command(commit_cmd)
main.add_command(review_cmd)
main.add_command(rebase_cmd)
main.add_command(chat_cmd)
main.add_command(config)


if __name__ == "__main__":
    main()
