"""CLI: chatsync watch, chatsync send, chatsync react"""

import asyncio
from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

from chatsync.models.chat import ChatState, Message

console = Console()


def _get_client():
    from chatsync.cli.main import _get_client
    return _get_client()


def _run(coro):
    from chatsync.cli.main import _run
    return _run(coro)


async def _sign_in(client):
    from chatsync.cli.main import _sign_in_from_config
    await _sign_in_from_config(client)


def _format_reactions(message: Message) -> str:
    counts: dict[str, int] = {}
    for reaction in message.reactions:
        counts[reaction.emoji] = counts.get(reaction.emoji, 0) + 1
    return " ".join(f"{emoji}{n if n > 1 else ''}" for emoji, n in counts.items())


def render_state(state: ChatState, limit: int) -> Table:
    table = Table(title=f"messages ({state.status})", show_lines=False)
    table.add_column("id", style="dim", no_wrap=True)
    table.add_column("time", style="dim")
    table.add_column("author")
    table.add_column("text")
    table.add_column("reactions")
    # Newest-first in state; print oldest at the top like a chat log.
    for message in reversed(state.messages[:limit]):
        author = message.author_name or message.author_id
        style = "bold green" if message.is_self else "cyan"
        sent = datetime.fromtimestamp(message.created_at / 1000).strftime("%H:%M:%S")
        table.add_row(message.id, sent, f"[{style}]{author}[/{style}]", message.text, _format_reactions(message))
    return table


@click.command("watch")
@click.option("-n", "--limit", default=20, show_default=True, help="Messages to show")
def watch_cmd(limit: int):
    """Print the message list every time it changes (Ctrl+C to exit)."""

    async def _watch():
        client = _get_client()
        await client.start()
        await _sign_in(client)
        try:
            async for state in client.observe_state():
                console.clear()
                console.print(render_state(state, limit))
        except (KeyboardInterrupt, asyncio.CancelledError):
            pass
        finally:
            await client.disconnect()

    _run(_watch())


@click.command("send")
@click.argument("message")
def send_cmd(message: str):
    """Send a one-shot message."""

    async def _send():
        client = _get_client()
        await client.start()
        await _sign_in(client)
        client.send_message(message)
        await client.disconnect()
        console.print("[green]Sent.[/green]")

    _run(_send())


@click.command("react")
@click.argument("emoji")
@click.argument("message_id")
def react_cmd(emoji: str, message_id: str):
    """Add EMOJI to a message, or remove it if already there."""

    async def _react():
        client = _get_client()
        await client.start()
        await _sign_in(client)
        if client.engine.state.message(message_id) is None:
            console.print(f"[yellow]No message {message_id}[/yellow]")
        client.toggle_reaction(emoji, message_id)
        await client.disconnect()

    _run(_react())
