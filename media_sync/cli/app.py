"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import uuid
from pathlib import Path

import typer
from rich.logging import RichHandler

from media_sync import __version__
from media_sync.api.client import MediaServerClient
from media_sync.core.orchestrator import MediaSync
from media_sync.exceptions import MediaSyncError
from media_sync.media.downloader import Downloader, close_connection_pool
from media_sync.storage.config_manager import ConfigManager
from media_sync.storage.local_store import LocalAssetManager
from media_sync.utils.structured_logger import create_structured_logger

from .formatters import (
    console,
    format_error_with_suggestions,
    print_config,
    print_status_table,
    print_summary_panel,
)

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("media_sync")

app = typer.Typer(
    name="media-sync",
    help="Synchronize a media server's offline items to this device.",
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "media-sync"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
):
    """Media Sync CLI"""
    if version:
        console.print(f"[bold]media-sync[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "DEBUG" if verbose >= 2 else "INFO"
    logging.getLogger("media_sync").setLevel(log_level)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    server_url: str = typer.Argument(..., help="Base URL of the media server."),
    server_id: str = typer.Argument(..., help="Id of the media server."),
    access_token: str = typer.Argument(..., help="Access token for this device."),
    device_id: str | None = typer.Option(
        None, "--device-id", help="Device id (generated if omitted)."
    ),
    users: list[str] = typer.Option(  # noqa: B008
        [],
        "--user",
        "-u",
        help="Offline user as ID or ID:NAME. Repeat for several users.",
    ),
    data_dir: Path | None = typer.Option(  # noqa: B008
        None, "--data-dir", help="Where synced media and the database are kept."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Write the configuration for a server/device pair."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        "server_url": server_url,
        "server_id": server_id,
        "access_token": access_token,
        "device_id": device_id or uuid.uuid4().hex,
        "offline_users": ",".join(users),
        "data_dir": str(data_dir or CONFIG_DIR / "data"),
    }
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except MediaSyncError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to sync! Try: [cyan]media-sync sync[/cyan]")


@app.command(name="sync")
def sync_command(
    data_dir: Path | None = typer.Option(  # noqa: B008
        None, "--data-dir", help="Override the configured data directory."
    ),
    json_log: bool | None = typer.Option(
        None, "--json-log/--no-json-log", help="Write a JSONL event log."
    ),
):
    """Run one sync against the configured server."""
    cli_options = {
        key: value
        for key, value in {
            "data_dir": str(data_dir) if data_dir else None,
            "json_log": json_log,
        }.items()
        if value is not None
    }

    async def _sync_async() -> MediaSync:
        config = ConfigManager(CONFIG_FILE).load_config(cli_options)
        data_path = Path(config.data_dir).expanduser()

        base_logger, events = create_structured_logger(
            log_dir=data_path / "logs", enable_json=config.json_log
        )
        base_logger.set_session_context(
            server_id=config.server_id, device_id=config.device_id
        )
        client = MediaServerClient(
            config.server_url,
            config.access_token,
            config.device_id,
            timeout=config.request_timeout,
        )
        store = LocalAssetManager(
            data_path, Downloader(max_attempts=config.download_attempts)
        )
        engine = MediaSync(client, store, events)

        console.print(
            f"[bold cyan]Syncing with {config.server_name or config.server_url}"
            "...[/bold cyan]"
        )
        try:
            await engine.sync(config.target())
        finally:
            await client.close()
            await close_connection_pool()
            base_logger.close()
        return engine

    try:
        engine = asyncio.run(_sync_async())
    except MediaSyncError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e

    print_summary_panel(engine.stats)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
    except MediaSyncError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
    print_config(CONFIG_FILE, config)
    console.print("[green]✓ Configuration is valid.[/green]")


@app.command()
def status():
    """Show what is stored locally."""

    async def _status():
        config = ConfigManager(CONFIG_FILE).load_config()
        store = LocalAssetManager(Path(config.data_dir).expanduser())
        return await store.get_stats()

    try:
        stats_data = asyncio.run(_status())
    except MediaSyncError as e:
        console.print(format_error_with_suggestions(e))
        raise typer.Exit(code=1) from e
    print_status_table(stats_data)
