"""
sphere-chat CLI: `sphere` command.

Commands:
  sphere chat --user NAME      Interactive REPL chat
  sphere history --user NAME   Print recent messages
  sphere stats --user NAME     Usage statistics for loaded messages
  sphere config show|set       Inspect or edit ~/.sphere/config.json
"""

import asyncio

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install sphere-chat[cli]")

from sphere_chat.client import AsyncSphereChat
from sphere_chat.config import Settings, load_settings
from sphere_chat.errors import ConfigError
from sphere_chat.logging_setup import setup_logging

console = Console()


def _get_settings(**overrides) -> Settings:
    try:
        return load_settings(**overrides)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        raise SystemExit(1)


def _get_client(**overrides) -> AsyncSphereChat:
    return AsyncSphereChat(_get_settings(**overrides))


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", count=True, help="-v for INFO, -vv for DEBUG logs")
def main(verbose: int):
    """sphere-chat CLI: chat with people and an assistant, with live analysis."""
    level = {0: None, 1: "INFO"}.get(verbose, "DEBUG")
    if level is None:
        try:
            level = load_settings().log_level
        except ConfigError:
            # the subcommand reports the invalid setting
            level = "WARNING"
    setup_logging(level)


# Register subcommands from separate modules
from sphere_chat.cli.chat import chat_cmd, history_cmd, stats_cmd
from sphere_chat.cli.config import config

main.add_command(chat_cmd)
main.add_command(history_cmd)
main.add_command(stats_cmd)
main.add_command(config)


if __name__ == "__main__":
    main()
