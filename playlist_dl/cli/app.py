"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import signal
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from playlist_dl import __version__
from playlist_dl.api.source import YtDlpPlaylistSource
from playlist_dl.core.download_manager import DownloadSession
from playlist_dl.exceptions import PlaylistDlError
from playlist_dl.media.converter import YtDlpConverter
from playlist_dl.storage.config_manager import ConfigManager
from playlist_dl.storage.ledger import CompletionLedger
from playlist_dl.utils.path import parse_playlist_id

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_ledger_stats,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
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
log = logging.getLogger("playlist_dl")
log.setLevel("INFO")

app = typer.Typer(
    name="playlist-dl",
    help=(
        "Download every track of a playlist as audio files, a few at a time."
        " Use 'playlist-dl <command> --help' for more info."
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
    return base_dir.expanduser() / "playlist-dl"


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
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Playlist Downloader CLI"""
    if version:
        console.print(f"[bold]playlist-dl[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    log.setLevel(log_level)
    if verbose >= 1:
        # Surface yt-dlp and library warnings too.
        logging.getLogger().setLevel("INFO" if verbose == 1 else "DEBUG")

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[yellow]No config file found; built-in defaults are in use.[/]"
                " Run [cyan]playlist-dl init[/cyan] to create one."
            )
            raise typer.Exit()
        config_manager = ConfigManager(CONFIG_FILE)
        print_config(CONFIG_FILE, config_manager.get_config_as_dict())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Default folder for downloaded tracks."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Default number of simultaneous downloads."
    ),
    audio_format: str | None = typer.Option(
        None, "-f", "--format", help="Default audio format (mp3, m4a, opus, ...)."
    ),
    force: bool = typer.Option(
        False, "--force", help="Overwrite an existing config file without asking."
    ),
):
    """Write a configuration file with default settings."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {
        key: value
        for key, value in {
            "output_dir": output_dir,
            "max_workers": workers,
            "audio_format": audio_format,
        }.items()
        if value is not None
    }
    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except PlaylistDlError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print("Ready to download! Try: [cyan]playlist-dl download <URL>[/cyan]")


def _install_stop_handler(session: DownloadSession) -> bool:
    """
    Routes Ctrl-C to the session: the first press stops gracefully, the
    second aborts the conversions in progress.
    """
    loop = asyncio.get_running_loop()

    def _on_sigint() -> None:
        if session.cancel_token.stop_requested:
            console.print("[yellow]⚠️  Aborting downloads in progress...[/yellow]")
            session.stop(abort_in_flight=True)
        else:
            session.stop()

    try:
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
    except (NotImplementedError, RuntimeError):
        return False
    return True


def _remove_stop_handler() -> None:
    try:
        asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)
    except (NotImplementedError, RuntimeError):
        pass


@app.command(name="download")
def download_command(
    url: str = typer.Argument(..., help="Playlist URL or playlist ID."),
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Folder to save tracks into."
    ),
    workers: int | None = typer.Option(
        None, "-w", "--workers", help="Number of simultaneous downloads."
    ),
    batch_size: int | None = typer.Option(
        None, "-b", "--batch-size", help="Playlist entries fetched per page."
    ),
    mode: str | None = typer.Option(
        None,
        "--mode",
        help="'bulk' lists the whole playlist first; 'interleaved' downloads page by page.",
    ),
    strategy: str | None = typer.Option(
        None,
        "--strategy",
        help="'sweep' waits for each batch; 'pipelined' refills slots immediately.",
    ),
    audio_format: str | None = typer.Option(
        None, "-f", "--format", help="Audio format to convert to."
    ),
    reconcile: bool | None = typer.Option(
        None,
        "--reconcile/--no-reconcile",
        help="Treat matching files already in the folder as downloaded.",
    ),
    m3u: bool | None = typer.Option(
        None, "--m3u/--no-m3u", help="Write a .m3u playlist file after the run."
    ),
):
    """Download every track of a playlist."""
    if parse_playlist_id(url) is None and "://" not in url:
        console.print(f"[red]✗ Not a playlist URL or ID:[/red] {url}")
        raise typer.Exit(code=1)

    cli_options = {
        key: value
        for key, value in {
            "output_dir": output_dir,
            "max_workers": workers,
            "batch_size": batch_size,
            "mode": mode,
            "strategy": strategy,
            "audio_format": audio_format,
            "reconcile_existing": reconcile,
            "no_m3u": None if m3u is None else not m3u,
        }.items()
        if value is not None
    }

    async def _download_async():
        session = None
        duration = 0.0
        progress_stats = None

        async with ProgressManager(console=console) as progress_manager:
            try:
                config = ConfigManager(CONFIG_FILE).load_config(cli_options)
                session = DownloadSession(
                    config,
                    source=YtDlpPlaylistSource(),
                    converter=YtDlpConverter(
                        config.audio_format,
                        config.audio_quality,
                        config.ffmpeg_location,
                    ),
                    reporter=progress_manager,
                )
                console.print("[bold cyan]🎵 Starting download session...[/bold cyan]")
                if _install_stop_handler(session):
                    console.print("[dim]Press Ctrl-C to stop after current downloads.[/dim]")

                start_time = time.monotonic()
                try:
                    await session.start(url)
                finally:
                    _remove_stop_handler()
                    duration = time.monotonic() - start_time
                    progress_stats = progress_manager.get_statistics()
            except PlaylistDlError as e:
                console.print(format_error_with_suggestions(e))
                raise typer.Exit(code=1) from e

        if session:
            print_summary_panel(session.stats, duration, progress_stats)
            session.save_session_stats(CONFIG_DIR)

    asyncio.run(_download_async())


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_validation_table(config)
    except PlaylistDlError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e


def _ledger_for(directory: Path | None) -> CompletionLedger:
    config = ConfigManager(CONFIG_FILE).load_config()
    folder = Path(directory).expanduser() if directory else Path(config.output_dir)
    return CompletionLedger.in_folder(folder, config.ledger_filename)


@app.command(name="ledger")
def ledger_command(
    directory: Path | None = typer.Argument(
        None, help="Output folder whose ledger to inspect (defaults to config)."
    ),
):
    """Show how many tracks the completion ledger of a folder holds."""
    try:
        ledger = _ledger_for(directory)
        print_ledger_stats(ledger.path, ledger.load())
    except PlaylistDlError as e:
        console.print(f"[red]✗ Error reading ledger: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command(name="clear-ledger")
def clear_ledger(
    directory: Path | None = typer.Argument(
        None, help="Output folder whose ledger to clear (defaults to config)."
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Bypass the confirmation prompt.",
    ),
):
    """Forget every completed track recorded for a folder."""
    try:
        ledger = _ledger_for(directory)
    except PlaylistDlError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    if not ledger.path.is_file():
        console.print(f"[yellow]No ledger found at '{ledger.path}'.[/yellow]")
        raise typer.Exit()

    if not force and not typer.confirm(
        f"Clear the completion ledger at '{ledger.path}'? "
        "Every track in this folder will be downloaded again."
    ):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    try:
        ledger.clear()
    except PlaylistDlError as e:
        console.print(f"[red]✗ Failed to clear ledger: {e}[/red]")
        raise typer.Exit(code=1) from e
    console.print("[green]✓ Completion ledger cleared successfully.[/green]")
