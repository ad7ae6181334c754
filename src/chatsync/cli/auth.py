"""CLI: chatsync auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

console = Console()


def _load_config() -> dict:
    from chatsync.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from chatsync.cli.main import _save_config
    _save_config(cfg)


@click.group()
def auth():
    """Identity commands."""


@auth.command("login")
@click.option("--base-url", default=None, help="Database server URL")
@click.option("--token", default=None, help="Access token issued by the identity provider")
@click.option("--user-id", default=None, help="User id issued by the identity provider")
@click.option("--display-name", default=None)
@click.option("--avatar-url", default=None)
def auth_login(
    base_url: Optional[str], token: Optional[str], user_id: Optional[str],
    display_name: Optional[str], avatar_url: Optional[str],
):
    """Save the identity the other commands sign in with."""
    from chatsync.transport.http import DEFAULT_BASE_URL

    cfg = _load_config()
    url = base_url or cfg.get("base_url", DEFAULT_BASE_URL)
    user_id = user_id or click.prompt("User id")
    token = token or click.prompt("Access token", default="", show_default=False)
    _save_config({
        **cfg,
        "base_url": url,
        "access_token": token or None,
        "user_id": user_id,
        "display_name": display_name,
        "avatar_url": avatar_url,
    })
    console.print(f"[green]Logged in as {display_name or user_id}[/green]")


@auth.command("status")
def auth_status():
    """Show current identity."""
    cfg = _load_config()
    if cfg.get("user_id"):
        name = cfg.get("display_name") or "unknown"
        console.print(f"[green]Logged in[/green] as {name} (ID: {cfg['user_id']}) on {cfg.get('base_url')}")
    else:
        console.print("[yellow]Not logged in. Run `chatsync auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved identity."""
    _save_config({})
    console.print("[green]Logged out.[/green]")
