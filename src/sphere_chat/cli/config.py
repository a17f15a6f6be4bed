"""CLI: sphere config show|set"""

import json

import click
from pydantic import ValidationError
from rich.console import Console

from sphere_chat.config import Settings, config_path, load_config, save_config

console = Console()


@click.group()
def config():
    """Configuration commands."""


@config.command("show")
def config_show():
    """Show effective settings."""
    cfg = load_config()
    values = {k: v for k, v in cfg.items() if k in Settings.model_fields}
    try:
        settings = Settings(**values)
    except ValidationError as e:
        console.print(f"[red]Invalid config in {config_path()}:[/red] {e}")
        raise SystemExit(1)
    click.echo(json.dumps(settings.model_dump(mode="json"), indent=2))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str):
    """Set KEY to VALUE in the config file."""
    if key not in Settings.model_fields:
        console.print(f"[red]Unknown setting: {key}[/red]")
        raise SystemExit(1)
    cfg = load_config()
    candidate = {**{k: v for k, v in cfg.items() if k in Settings.model_fields}, key: value}
    try:
        Settings(**candidate)
    except ValidationError as e:
        console.print(f"[red]Invalid value for {key}:[/red] {e.errors()[0]['msg']}")
        raise SystemExit(1)
    save_config({**cfg, key: value})
    console.print(f"[green]{key} = {value}[/green]")
