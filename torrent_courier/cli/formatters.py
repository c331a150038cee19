"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Iterable

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from torrent_courier.models.config import CourierConfig
from torrent_courier.models.subject import Subject
from torrent_courier.models.torrent import DaemonTorrent, SessionStats, Torrent, TorrentStatus
from torrent_courier.utils.formatting import (
    format_duration,
    format_eta,
    format_percent,
    format_size,
    format_speed,
)


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `torrent-courier validate` to see which setting is wrong.",
            "• Run `torrent-courier init --force` to write a fresh config file.",
        ],
        "SessionError": [
            "• Check that `daemon_url` points at the Transmission web port.",
            "• A reverse proxy may be stripping the session header.",
        ],
        "SessionExhaustedError": [
            "• The daemon kept rejecting the session token.",
            "• Another client may be restarting the daemon. Try again shortly.",
        ],
        "RPCError": [
            "• Check that the Transmission daemon is running and reachable.",
            "• A 401 status means `daemon_username`/`daemon_password` are wrong.",
        ],
        "ProtocolError": [
            "• The daemon refused the request. The message above is its reason.",
            "• For torrent-add, check that the magnet link is valid.",
        ],
        "InvalidMagnetLinkError": [
            "• Magnet links must start with `magnet:?` and carry a `dn` name.",
            "• Pass `--name` when adding a link without a display name.",
        ],
        "UnknownCategoryError": [
            "• Run `torrent-courier add --help` to see the known categories.",
        ],
        "StoreError": [
            "• Check that `database_path` is writable.",
            "• Another process may be holding a lock on the database.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key == "daemon_password" and value:
            value = "[hidden]"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip(),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: CourierConfig, subject_count: int):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    auth = "Basic auth" if config.daemon_username else "None"
    table.add_row("Daemon:", f"[green]{config.daemon_url}[/green] ({auth})")
    table.add_row("Daemon Download Dir:", f"[dim]{config.download_dir}[/dim]")
    table.add_row("Local Download Dir:", f"[dim]{config.local_download_dir}[/dim]")
    table.add_row(
        "Feed Scan:",
        f"every {format_duration(config.rss_period)}, {subject_count} subject(s)",
    )
    table.add_row(
        "Scrape Period:",
        f"{format_duration(config.scrape_min_period)} to "
        f"{format_duration(config.scrape_max_period)}",
    )
    table.add_row("Private Channel TTL:", format_duration(config.private_channel_ttl))
    table.add_row("Database:", f"[dim]{config.database_path}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_subjects_table(subjects: Iterable[Subject]):
    console = Console()
    table = Table(title="Subjects", box=box.SIMPLE_HEAVY)
    table.add_column("Name", style="cyan")
    table.add_column("Agent", style="magenta")
    table.add_column("Pattern")
    table.add_column("Feed URL", style="dim", overflow="fold")
    for subject in subjects:
        table.add_row(
            subject.name, subject.agent.name, subject.pattern or "[dim]any[/dim]", subject.url
        )
    console.print(table)


def print_daemon_torrents_table(torrents: Iterable[DaemonTorrent], title: str):
    """Displays torrents as the daemon reports them, with progress and ETA."""
    console = Console()
    table = Table(title=title, box=box.SIMPLE_HEAVY)
    table.add_column("ID", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    table.add_column("Status")
    table.add_column("Done", justify="right", style="green")
    table.add_column("Size", justify="right")
    table.add_column("Speed", justify="right")
    table.add_column("ETA", justify="right")

    for tx in torrents:
        try:
            status = TorrentStatus(tx.status).label
        except ValueError:
            status = str(tx.status)
        table.add_row(
            str(tx.id),
            tx.name,
            status,
            format_percent(tx.percent_done),
            format_size(tx.total_size),
            format_speed(tx.rate_download),
            format_eta(tx),
        )
    console.print(table)


def print_torrent_added(torrent: Torrent):
    console = Console()
    categories = ", ".join(torrent.metadata.categories) if torrent.metadata else ""
    console.print(
        f"[green]✓ Added[/green] [bold]{torrent.display_name}[/bold] "
        f"[dim](id {torrent.id}{', ' + categories if categories else ''})[/dim]"
    )
    console.print(f"  {torrent}")


def print_stats_table(stats: SessionStats):
    """Displays the daemon's session statistics."""
    console = Console()
    console.print(
        f"\n[bold]Torrents:[/] [green]{stats.torrent_count}[/green] "
        f"([cyan]{stats.active_torrent_count}[/cyan] active, "
        f"[yellow]{stats.paused_torrent_count}[/yellow] paused)"
    )
    console.print(
        f"[bold]Speed:[/] ↓ {format_speed(stats.download_speed)}  "
        f"↑ {format_speed(stats.upload_speed)}\n"
    )

    table = Table(title="Transfer Totals")
    table.add_column("", style="bold cyan")
    table.add_column("Downloaded", justify="right", style="green")
    table.add_column("Uploaded", justify="right")
    table.add_column("Files Added", justify="right")
    table.add_column("Active For", justify="right", style="dim")
    for label, block in (("Current session", stats.current), ("All time", stats.cumulative)):
        table.add_row(
            label,
            format_size(block.downloaded_bytes),
            format_size(block.uploaded_bytes),
            str(block.files_added),
            format_duration(block.seconds_active),
        )
    console.print(table)
