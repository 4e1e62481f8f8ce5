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

from playlist_dl.models.config import AUDIO_FORMATS, DownloadConfig
from playlist_dl.models.stats import DownloadStats
from playlist_dl.utils.formatting import format_duration, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `playlist-dl init --force` to write a fresh default config.",
            "• Run `playlist-dl validate` to see the effective settings.",
        ],
        "MetadataSourceError": [
            "• Make sure the playlist URL is correct and the playlist is public.",
            "• Check your internet connection.",
            "• Updating yt-dlp often fixes extraction problems.",
        ],
        "StorageError": [
            "• Make sure the output folder is writable.",
            "• Check that the disk is not full.",
        ],
        "ConversionError": [
            "• Make sure FFmpeg is installed and on your PATH.",
            "• Set `ffmpeg_location` in the config if FFmpeg lives elsewhere.",
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
    """Displays the current configuration."""
    console = Console()
    content = ""
    for key, value in sorted(config_data.items()):
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            content.strip() or "[dim](empty)[/dim]",
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def _enabled(flag: bool) -> str:
    return "✓ Enabled" if flag else "✗ Disabled"


def print_validation_table(config: DownloadConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    format_name = AUDIO_FORMATS.get(config.audio_format, config.audio_format)

    table.add_row("Output Folder:", f"[dim]{config.output_dir}[/dim]")
    table.add_row("Audio Format:", f"{format_name}, quality {config.audio_quality}")
    table.add_row("Max Workers:", str(config.max_workers))
    table.add_row("Batch Size:", str(config.batch_size))
    table.add_row("Mode:", config.mode)
    table.add_row("Strategy:", config.strategy)
    table.add_row("Reconcile Existing:", _enabled(config.reconcile_existing))
    table.add_row("M3U Playlist:", _enabled(not config.no_m3u))
    table.add_row("Ledger File:", f"[dim]{config.ledger_filename}[/dim]")
    if config.ffmpeg_location:
        table.add_row("FFmpeg:", f"[dim]{config.ffmpeg_location}[/dim]")

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_ledger_stats(ledger_path: Path, track_ids: set[str]):
    """Displays the contents summary of a completion ledger."""
    console = Console()
    console.print(
        f"\n[bold]Ledger:[/] [dim]{ledger_path}[/dim]\n"
        f"[bold]Completed Tracks:[/] [green]{len(track_ids)}[/green]\n"
    )
    if not track_ids:
        console.print("[dim]No completed tracks recorded yet.[/dim]")
        return

    table = Table(title="Track IDs (first 10, sorted)", box=box.ROUNDED)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Track ID", style="cyan")
    for i, track_id in enumerate(sorted(track_ids)[:10], 1):
        table.add_row(str(i), track_id)
    console.print(table)


def print_summary_panel(
    stats: DownloadStats, duration_s: float, progress_stats: dict | None = None
):
    """Displays a final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.tracks_downloaded}[/bold green]"
    )

    skip_sections = []
    if stats.tracks_skipped_ledger > 0:
        skip_sections.append(f"[yellow]{stats.tracks_skipped_ledger} (ledger)[/yellow]")
    if stats.tracks_skipped_exists > 0:
        skip_sections.append(f"[yellow]{stats.tracks_skipped_exists} (exists)[/yellow]")
    if skip_sections:
        stats_table.add_row("○ Skipped:", " + ".join(skip_sections))

    if stats.tracks_failed > 0:
        stats_table.add_row("✗ Failed:", f"[bold red]{stats.tracks_failed}[/bold red]")

    stats_table.add_row("", "")  # Spacer

    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")
    stats_table.add_row("Sweeps:", str(stats.sweeps))
    stats_table.add_row("Peak Concurrent:", f"[green]{stats.peak_active}[/green]")

    if stats.tracks_downloaded > 0 and duration_s > 0:
        tracks_per_minute = (stats.tracks_downloaded / duration_s) * 60
        stats_table.add_row(
            "Throughput:", f"[cyan]{tracks_per_minute:.1f} tracks/min[/cyan]"
        )

    if progress_stats and progress_stats.get("last_error"):
        stats_table.add_row("", "")
        stats_table.add_row("Last Message:", f"[red]{progress_stats['last_error']}[/red]")

    if stats.stopped:
        title = "⏹ [bold]Download Stopped[/bold]"
        border_color = "yellow"
    else:
        title = "🎵 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()
