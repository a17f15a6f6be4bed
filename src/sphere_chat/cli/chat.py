"""CLI: sphere chat, sphere history, sphere stats"""

import asyncio
import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from sphere_chat.analytics import usage_stats
from sphere_chat.errors import ConnectionError
from sphere_chat.models.ledger import LedgerState
from sphere_chat.models.events import LedgerEvent, StoreAddedPushed, StoreModifiedPushed
from sphere_chat.models.message import Message, Sender
from sphere_chat.notifications import Notice, NoticeLevel
from sphere_chat.session import ChatSession

console = Console()

NOTICE_STYLES = {NoticeLevel.INFO: "blue", NoticeLevel.WARNING: "yellow", NoticeLevel.ERROR: "red"}


def _get_client(**overrides):
    from sphere_chat.cli.main import _get_client
    return _get_client(**overrides)


def _run(coro):
    from sphere_chat.cli.main import _run
    return _run(coro)


def _render(m: Message, index: Optional[int] = None) -> None:
    who = "[green]Assistant[/green]" if m.sender is Sender.RESPONDER else f"[cyan]{m.author}[/cyan]"
    prefix = f"[dim]{index:>3}[/dim] " if index is not None else ""
    console.print(f"{prefix}{who}: {m.text}")
    if m.sentiment is not None:
        console.print(f"      [dim]sentiment {m.sentiment.score} ({m.sentiment.magnitude})[/dim]")
    if m.entities:
        console.print(f"      [dim]entities {', '.join(e.name for e in m.entities)}[/dim]")
    if m.translation:
        console.print(f"      [dim]translation {m.translation}[/dim]")


def _print_notice(notice: Notice) -> None:
    style = NOTICE_STYLES.get(notice.level, "white")
    console.print(f"[{style}]{notice.text}[/{style}]")


async def _open(user: str) -> tuple:
    client = _get_client()
    chat = client.session(user)
    chat.add_notice_handler(_print_notice)
    try:
        await chat.open()
    except ConnectionError:
        await client.close()
        raise SystemExit(1)
    return client, chat


def _on_change(prev: LedgerState, nxt: LedgerState, event: LedgerEvent) -> None:
    if isinstance(event, StoreAddedPushed):
        m = event.message
        # own sends show once confirmed, at the index /analyze expects
        confirmed = m.nonce in prev.pending and prev.index_of(m.id) is None
        if confirmed or len(nxt.messages) > len(prev.messages):
            _render(m, nxt.index_of(m.id))
    elif isinstance(event, StoreModifiedPushed):
        current = nxt.get(event.message.id)
        if current is not None:
            _render(current, nxt.index_of(current.id))
    if nxt.is_responder_composing and not prev.is_responder_composing:
        console.print("[dim]Assistant is typing...[/dim]")


async def _handle_command(chat: ChatSession, line: str) -> bool:
    """Run a /command. Returns False when the REPL should stop."""
    cmd, _, arg = line.partition(" ")
    if cmd in ("/quit", "/exit"):
        return False
    if cmd == "/more":
        before = len(chat.messages)
        if await chat.load_older():
            added = len(chat.messages) - before
            for i, m in enumerate(chat.messages[:added]):
                _render(m, i)
        elif not chat.state.has_more_older:
            console.print("[dim]No older messages.[/dim]")
    elif cmd == "/analyze":
        try:
            m = chat.messages[int(arg)]
        except (ValueError, IndexError):
            console.print("[yellow]Usage: /analyze <index>[/yellow]")
            return True
        if not await chat.analyze(m.id):
            console.print("[dim]Analysis not started.[/dim]")
    elif cmd == "/stats":
        _print_stats(chat)
    else:
        console.print("[yellow]Commands: /more, /analyze N, /stats, /quit[/yellow]")
    return True


def _print_stats(chat: ChatSession) -> None:
    stats = usage_stats(chat.messages)
    table = Table(title="Usage (loaded messages)")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    for key, value in stats.model_dump().items():
        table.add_row(key.replace("_", " "), str(value))
    console.print(table)


@click.command("chat")
@click.option("-u", "--user", required=True, help="Your display identity")
def chat_cmd(user: str):
    """Interactive chat."""

    async def _chat():
        client, chat = await _open(user)
        for i, m in enumerate(chat.messages):
            _render(m, i)
        chat.add_state_listener(_on_change)
        console.print("[cyan]Type your message (/more, /analyze N, /stats, /quit)[/cyan]\n")
        try:
            while True:
                line = await asyncio.to_thread(click.prompt, "You", prompt_suffix=": ")
                if line.startswith("/"):
                    if not await _handle_command(chat, line.strip()):
                        break
                    continue
                await chat.send(line)
        except (KeyboardInterrupt, EOFError, click.Abort):
            pass
        finally:
            await chat.close()
            await client.close()

    _run(_chat())


@click.command("history")
@click.option("-u", "--user", required=True)
@click.option("--pages", default=1, type=int, help="Number of pages to load")
@click.option("--json-output", "--json", is_flag=True)
def history_cmd(user: str, pages: int, json_output: bool):
    """Print recent messages."""

    async def _history():
        client, chat = await _open(user)
        try:
            for _ in range(pages - 1):
                if not await chat.load_older():
                    break
            if json_output:
                click.echo(json.dumps([m.model_dump(mode="json") for m in chat.messages], indent=2))
                return
            for i, m in enumerate(chat.messages):
                _render(m, i)
            if chat.state.has_more_older:
                console.print("[dim]More history available (--pages).[/dim]")
        finally:
            await chat.close()
            await client.close()

    _run(_history())


@click.command("stats")
@click.option("-u", "--user", required=True)
@click.option("--pages", default=1, type=int)
def stats_cmd(user: str, pages: int):
    """Usage statistics over the loaded history."""

    async def _stats():
        client, chat = await _open(user)
        try:
            for _ in range(pages - 1):
                if not await chat.load_older():
                    break
            _print_stats(chat)
        finally:
            await chat.close()
            await client.close()

    _run(_stats())
