"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import signal
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from torrent_courier import __version__
from torrent_courier.api.client import TransmissionClient
from torrent_courier.api.torrents import completed
from torrent_courier.commands.torrents import AddTorrentCommand
from torrent_courier.core.service import CourierService
from torrent_courier.exceptions import CourierError
from torrent_courier.models.config import CATEGORIES, CourierConfig
from torrent_courier.models.subject import Agent
from torrent_courier.storage.config_manager import ConfigManager
from torrent_courier.storage.store import SQLiteStore

from .formatters import (
    print_config,
    print_daemon_torrents_table,
    print_stats_table,
    print_subjects_table,
    print_torrent_added,
    print_validation_table,
)

console = Console()

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
log = logging.getLogger("torrent_courier")

app = typer.Typer(
    name="torrent-courier",
    help=(
        "Watches feeds, hands magnet links to Transmission and tells people when"
        " their downloads finish. Use 'torrent-courier <command> --help' for more"
        " info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "torrent-courier"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"

DEFAULT_AGENTS = [Agent(name="nyaa", base_url="https://nyaa.si/?page=rss&q={query}")]


def _load_config() -> tuple[ConfigManager, CourierConfig]:
    config_manager = ConfigManager(CONFIG_FILE)
    return config_manager, config_manager.load_config()


def _make_client(config: CourierConfig) -> TransmissionClient:
    return TransmissionClient(
        config.daemon_url,
        download_dir=config.download_dir,
        timeout=config.rpc_timeout,
        max_session_retries=config.max_session_retries,
        username=config.daemon_username,
        password=config.daemon_password,
    )


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
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Torrent Courier"""
    if version:
        console.print(
            f"[bold]torrent-courier[/bold] version [cyan]{__version__}[/cyan]"
        )
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("torrent_courier").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]torrent-courier init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config_manager = ConfigManager(CONFIG_FILE)
        config_manager.load_config()
        print_config(CONFIG_FILE, config_manager._get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    daemon_url: str = typer.Option(
        "http://localhost:9091", "--daemon-url", help="Base URL of the Transmission daemon."
    ),
    download_dir: str = typer.Option(
        "/downloads/complete",
        "--download-dir",
        help="Directory the daemon saves downloads into.",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing config without asking."
    ),
):
    """Write a default configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    config_manager = ConfigManager(CONFIG_FILE)
    config_manager.save_new_config(
        {"daemon_url": daemon_url, "download_dir": download_dir},
        agents=DEFAULT_AGENTS,
    )
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print(
        "Add [cyan]\\[subject:<name>][/cyan] sections to watch feeds, then try: "
        "[cyan]torrent-courier run[/cyan]"
    )


@app.command()
def run():
    """Run the feed scanner, scrape loop and notifications until interrupted."""
    config_manager, config = _load_config()

    async def _run_async():
        service = CourierService(config, config_manager)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, service.stop)
            except NotImplementedError:
                # Windows event loops have no signal handlers.
                pass
        await service.run()

    asyncio.run(_run_async())


@app.command()
def add(
    link: str = typer.Argument(..., help="Magnet link or .torrent URL to add."),
    name: str = typer.Option(
        "", "--name", "-n", help="Friendly name. Defaults to the magnet's display name."
    ),
    category: str = typer.Option(
        "",
        "--category",
        "-c",
        help=f"One of: {', '.join(c.title() for c in CATEGORIES)}.",
    ),
):
    """Add a torrent to the daemon and start tracking it."""
    _, config = _load_config()

    async def _add_async():
        async with _make_client(config) as client:
            store = SQLiteStore(Path(config.database_path))
            command = AddTorrentCommand(client, store)
            torrent = await command.add(link, name=name, category=category)
        print_torrent_added(torrent)

    asyncio.run(_add_async())


@app.command(name="list")
def list_command(
    show_all: bool = typer.Option(
        False, "--all", "-a", help="Include stopped and finished torrents."
    ),
    show_completed: bool = typer.Option(
        False, "--completed", help="Show only finished torrents."
    ),
):
    """List the daemon's torrents."""
    _, config = _load_config()

    async def _list_async():
        async with _make_client(config) as client:
            if show_all:
                torrents = await client.list_torrents()
                title = "All Torrents"
            elif show_completed:
                torrents = completed(await client.list_torrents())
                title = "Completed"
            else:
                torrents = list((await client.get_downloading()).values())
                title = "Downloading"
        if not torrents:
            console.print("[dim]No torrents to show.[/dim]")
            return
        print_daemon_torrents_table(torrents, title)

    asyncio.run(_list_async())


@app.command()
def stats():
    """Show the daemon's transfer statistics."""
    _, config = _load_config()

    async def _get_stats():
        async with _make_client(config) as client:
            session_stats = await client.session_stats()
        print_stats_table(session_stats)

    asyncio.run(_get_stats())


@app.command()
def subjects():
    """Show the configured subjects and the feed URLs they resolve to."""
    config_manager = ConfigManager(CONFIG_FILE)
    loaded = config_manager.load_subjects()
    if not loaded:
        console.print(
            "[yellow]No subjects configured.[/yellow] Add [cyan]\\[subject:<name>][/cyan]"
            f" sections to [dim]{CONFIG_FILE}[/dim]."
        )
        return
    print_subjects_table(loaded)


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager, config = _load_config()
        subject_count = len(config_manager.load_subjects())
        print_validation_table(config, subject_count)
    except CourierError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
