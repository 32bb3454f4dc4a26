"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from media_sync.models.config import SyncConfig, format_offline_users
from media_sync.models.stats import SyncStats

console = Console()


def format_size(size_bytes: float) -> str:
    for unit in ("B", "KB", "MB", "GB"):
        if size_bytes < 1024:
            return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024
    return f"{size_bytes:.1f} TB"


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "AuthenticationError": [
            "• The access token may have been revoked on the server.",
            "• Run `media-sync init --force` with a fresh token.",
        ],
        "ConfigurationError": [
            "• Run `media-sync validate` to see which setting is invalid.",
            "• Run `media-sync init --force` to rewrite the configuration.",
        ],
        "SyncError": [
            "• The server may be unreachable. Check the server URL.",
            "• Run the command with -vv for detailed logs.",
            "• Queued offline actions are kept and will be reported next run.",
        ],
        "LocalStoreError": [
            "• Check free space and permissions of the data directory.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_summary_panel(stats: SyncStats) -> None:
    """Prints the end-of-run summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold")
    table.add_column(justify="right")

    table.add_row("Offline actions reported", str(stats.actions_reported))
    table.add_row("Items removed", str(stats.items_removed))
    if stats.items_remove_failed:
        table.add_row("[red]Removals failed[/red]", str(stats.items_remove_failed))
    table.add_row("Access lists updated", str(stats.access_updated))
    table.add_row("Items transferred", str(stats.job_items_transferred))
    if stats.job_items_failed:
        table.add_row("[red]Transfers failed[/red]", str(stats.job_items_failed))
    table.add_row(
        "Images downloaded / present",
        f"{stats.images_downloaded} / {stats.images_present}",
    )
    table.add_row("Subtitles downloaded", str(stats.subtitles_downloaded))
    table.add_row("Data transferred", format_size(stats.bytes_downloaded))
    table.add_row("Duration", f"{stats.duration_s:.1f}s")

    console.print(
        Panel(
            table,
            title="[bold green]Sync Complete[/bold green]",
            border_style="green",
            expand=False,
        )
    )


def print_config(config_file: Path, config: SyncConfig) -> None:
    """Displays the effective configuration, with the token masked."""
    table = Table(title=f"Configuration: {config_file}", box=box.ROUNDED)
    table.add_column("Key", style="cyan")
    table.add_column("Value")

    for key, value in config.model_dump(exclude={"config_path"}).items():
        if key == "access_token":
            value = f"{value[:4]}…" if value else "[red]missing[/red]"
        elif key == "offline_users":
            value = format_offline_users(config.offline_users) or "[dim]none[/dim]"
        table.add_row(key, str(value))

    console.print(table)


def print_status_table(stats_data: dict[str, Any]) -> None:
    """Displays the local inventory per server."""
    table = Table(title="Local Inventory", box=box.ROUNDED)
    table.add_column("Server", style="cyan")
    table.add_column("Items", justify="right")
    table.add_column("Queued actions", justify="right")

    servers = set(stats_data["items_by_server"]) | set(
        stats_data["queued_actions_by_server"]
    )
    for server_id in sorted(servers):
        table.add_row(
            server_id,
            str(stats_data["items_by_server"].get(server_id, 0)),
            str(stats_data["queued_actions_by_server"].get(server_id, 0)),
        )

    console.print(table)
    console.print(f"[dim]Images stored: {stats_data['images']}[/dim]")
