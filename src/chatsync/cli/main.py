"""
chatsync CLI — `chatsync` command.

Commands:
  chatsync auth login          Store server URL, token and identity
  chatsync watch               Live message list
  chatsync send <message>      Send one message
  chatsync react <emoji> <id>  Toggle a reaction on a message
"""

import asyncio
import json
import logging
from pathlib import Path

try:
    import click
    from rich.console import Console
except ImportError:
    raise SystemExit("CLI requires extras: pip install chatsync[cli]")

from chatsync.client import AsyncChatClient
from chatsync.models.identity import is_signed_in
from chatsync.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".chatsync" / "config.json"


def _load_config() -> dict:
    try:
        return json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        return {}


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _get_client() -> AsyncChatClient:
    cfg = _load_config()
    return AsyncChatClient(
        access_token=cfg.get("access_token"),
        base_url=cfg.get("base_url", DEFAULT_BASE_URL),
    )


async def _sign_in_from_config(client: AsyncChatClient) -> None:
    cfg = _load_config()
    if not cfg.get("user_id"):
        console.print("[red]Not logged in. Run `chatsync auth login` first.[/red]")
        raise SystemExit(1)
    await client.sign_in(cfg["user_id"], cfg.get("display_name"), cfg.get("avatar_url"))
    async for state in client.observe_state():
        if is_signed_in(state.identity):
            break


def _run(coro):
    return asyncio.run(coro)


@click.group()
@click.version_option("0.1.0")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
def main(verbose: bool):
    """chatsync CLI — realtime chat from the terminal."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


# Register subcommands from separate modules
from chatsync.cli.auth import auth
from chatsync.cli.chat import react_cmd, send_cmd, watch_cmd

main.add_command(auth)
main.add_command(watch_cmd)
main.add_command(send_cmd)
main.add_command(react_cmd)


if __name__ == "__main__":
    main()
