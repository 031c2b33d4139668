"""Command-line interface for the Spotify liked-tracks sync."""

import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from ..config import Config
from ..core.spotify import SpotifyClient
from ..core.sync import LikedTracksReconciler
from ..database import DatabaseService, SyncRun, SyncStatus
from ..utils.logging_config import (
    configure_third_party_loggers,
    set_log_level,
    setup_logging,
)

console = Console()
logger = logging.getLogger(__name__)


def _format_duration(run: SyncRun) -> str:
    duration = run.duration_seconds
    return "-" if duration is None else f"{duration:.1f}s"


def display_sync_run(run: SyncRun) -> None:
    """Print the outcome of a single sync run."""
    if run.status == SyncStatus.COMPLETED.value:
        console.print("\n[bold green]✅ Sync completed successfully![/bold green]\n")
    else:
        console.print(f"\n[bold red]❌ Sync failed:[/bold red] {run.error_message}")
        if run.failure_kind:
            console.print(f"[dim]Failure kind: {run.failure_kind}[/dim]\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan", width=24)
    table.add_column("Value", style="green", justify="right")

    table.add_row("Tracks Added", str(run.tracks_added))
    table.add_row("Tracks Updated", str(run.tracks_updated))
    table.add_row("Tracks Removed", str(run.tracks_removed))
    table.add_row("Tracks Skipped", str(run.tracks_skipped))
    table.add_row("Total Processed", str(run.total_tracks_processed))
    table.add_row("Duration", _format_duration(run))

    console.print(table)


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Set logging level",
)
@click.option("--log-file", type=click.Path(), help="Log to file")
@click.pass_context
def cli(ctx: Any, log_level: str, log_file: Optional[str]) -> None:
    """Spotify Liked Tracks Sync.

    Keeps a local snapshot of your Spotify liked tracks up to date.
    """
    config = Config()
    log_path = Path(log_file) if log_file else config.log_file
    setup_logging(log_level=log_level, log_file=log_path)
    configure_third_party_loggers()
    ctx.obj = config


@cli.command("sync")
@click.option(
    "--token",
    help="Spotify access token (defaults to the configured one)",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Log level for this sync only (application loggers)",
)
@click.pass_obj
def sync_command(
    config: Config, token: Optional[str], log_level: Optional[str]
) -> None:
    """Sync liked tracks from Spotify."""
    if log_level:
        set_log_level(log_level)

    access_token = token or config.access_token
    if not access_token:
        console.print(
            "[red]No Spotify access token configured. "
            "Set SPOTIFY_LIKED_SYNC_ACCESS_TOKEN or pass --token.[/red]"
        )
        sys.exit(2)

    console.print("[bold blue]🎧 Starting Spotify liked tracks sync...[/bold blue]")

    db_service = DatabaseService(config.database_path)
    client = SpotifyClient(
        access_token, base_url=config.api_base_url, timeout=config.request_timeout
    )
    reconciler = LikedTracksReconciler(
        page_size=config.page_size,
        retract_on_empty=config.retract_on_empty,
        stale_after=timedelta(minutes=config.stale_run_minutes),
    )

    try:
        run = reconciler.reconcile(client, db_service)
    finally:
        client.close()
        db_service.close()

    display_sync_run(run)
    if run.status != SyncStatus.COMPLETED.value:
        sys.exit(1)


@cli.command("history")
@click.option("--limit", "-n", default=5, show_default=True, help="Runs to show")
@click.pass_obj
def history_command(config: Config, limit: int) -> None:
    """Show recent sync runs."""
    db_service = DatabaseService(config.database_path)
    try:
        runs = db_service.get_recent_sync_runs(limit=limit)
        stats = db_service.get_statistics()
    finally:
        db_service.close()

    if not runs:
        console.print("[dim]No sync runs recorded yet[/dim]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Started", style="cyan")
    table.add_column("Status")
    table.add_column("Added", justify="right")
    table.add_column("Updated", justify="right")
    table.add_column("Removed", justify="right")
    table.add_column("Processed", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Error", style="red")

    status_styles = {
        SyncStatus.COMPLETED.value: "green",
        SyncStatus.FAILED.value: "red",
        SyncStatus.PENDING.value: "yellow",
    }
    for run in runs:
        style = status_styles.get(run.status, "white")
        table.add_row(
            run.started_at.strftime("%Y-%m-%d %H:%M:%S"),
            f"[{style}]{run.status}[/{style}]",
            str(run.tracks_added),
            str(run.tracks_updated),
            str(run.tracks_removed),
            str(run.total_tracks_processed),
            _format_duration(run),
            run.error_message or "",
        )

    console.print(table)
    console.print(
        f"[dim]{stats['liked_tracks']} liked tracks, "
        f"{stats['unliked_tracks']} no longer liked[/dim]"
    )


if __name__ == "__main__":
    cli()
