"""CLI: git-agent config show|set|reset"""

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from git_agent.models.config import AgentSettings

console = Console()


def _load_config() -> dict:
    from git_agent.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from git_agent.cli.main import _save_config
    _save_config(cfg)


def _load_settings() -> AgentSettings:
    from git_agent.cli.main import _load_settings
    return _load_settings()


@click.group()
def config():
    """Saved settings (~/.git-agent/config.json)."""


@config.command("show")
def config_show():
    """Show effective settings."""
    cfg = _load_config()
    settings = _load_settings()
    table = Table(title="git-agent settings")
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_column("Source", style="dim")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value) if value is not None else "-", "file" if key in cfg else "default")
    console.print(table)


@config.command("set")
@click.argument("key", type=click.Choice(sorted(AgentSettings.model_fields)))
@click.argument("value")
def config_set(key: str, value: str):
    """Save a setting."""
    cfg = {**_load_config(), key: value}
    try:
        AgentSettings.model_validate(cfg)
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}: {e.errors()[0]['msg']}[/red]")
        raise SystemExit(1)
    _save_config(cfg)
    console.print(f"[green]{key} = {value}[/green]")


@config.command("reset")
def config_reset():
    """Clear saved settings."""
    _save_config({})
    console.print("[green]Settings cleared.[/green]")
