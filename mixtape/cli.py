"""Command-line interface for Mixtape."""

import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Configure logging BEFORE any imports - default to WARNING for normal runs
logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("mixtape")

# Suppress noisy third-party loggers
logging.getLogger("urllib3").setLevel(logging.WARNING)
logging.getLogger("requests").setLevel(logging.WARNING)
logging.getLogger("spotipy").setLevel(logging.WARNING)

import typer
import yaml
from rich.console import Console
from rich.table import Table

from mixtape import Mixtape, __version__
from mixtape.exceptions import MixtapeError, SyncInProgress
from mixtape.models import CanonicalSong, Platform

app = typer.Typer(help="Mixtape - Group playlist sync for Spotify and Apple Music")
console = Console()

CONFIG_OPTION = typer.Option(
    "mixtape.yaml",
    "--config",
    "-c",
    help="Path to config file",
)


def debug_callback(value: bool):
    """Enable debug mode."""
    if value:
        logging.getLogger("mixtape").setLevel(logging.DEBUG)
        logging.getLogger("urllib3").setLevel(logging.INFO)
        console.print("[dim]Debug mode enabled[/dim]")


@app.callback()
def common_options(
    debug: bool = typer.Option(
        False,
        "--debug",
        "-d",
        help="Enable debug logging",
        callback=debug_callback,
        is_eager=True,
    ),
):
    """Mixtape - Group playlist sync for Spotify and Apple Music."""
    pass


def _parse_platform(value: str) -> Platform:
    try:
        return Platform(value.strip().lower())
    except ValueError:
        choices = ", ".join(p.value for p in Platform)
        raise typer.BadParameter(f"Unknown platform '{value}' (choose from {choices})")


def _parse_platforms(values: Optional[List[str]]) -> Optional[List[Platform]]:
    if not values:
        return None
    return [_parse_platform(v) for v in values]


def load_songs(path: Path) -> List[CanonicalSong]:
    """Load songs from a YAML or JSON file holding a list (or a `songs` list)."""
    with open(path, "r") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)
    if isinstance(data, dict):
        data = data.get("songs", [])
    if not isinstance(data, list):
        raise ValueError(f"Expected a list of songs in {path}")
    return [CanonicalSong(**entry) for entry in data]


@app.command()
def version() -> None:
    """Show version information."""
    console.print(f"[bold]Mixtape[/bold] v{__version__}")
    console.print("Group playlist sync for Spotify and Apple Music")


@app.command()
def match(
    title: str = typer.Argument(..., help="Song title"),
    artist: str = typer.Argument(..., help="Song artist"),
    platform: str = typer.Option("spotify", "--platform", "-p", help="Target platform"),
    album: Optional[str] = typer.Option(None, "--album", help="Album name"),
    duration: Optional[int] = typer.Option(None, "--duration", help="Duration in seconds"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Find the best track for one song on a platform."""
    target = _parse_platform(platform)
    try:
        mixtape = Mixtape.from_file(config_path)
        song = CanonicalSong(
            title=title,
            artist=artist,
            album=album,
            duration_ms=duration * 1000 if duration else None,
        )
        result = mixtape.match_one(song, target)
    except MixtapeError as e:
        console.print(f"[red]✗[/red] Match failed: {e}")
        sys.exit(1)
    except FileNotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    table = Table(title=f"Candidates for {song} on {target.value}")
    table.add_column("#", style="dim")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Confidence", justify="right")
    for i, scored in enumerate(result.candidates, 1):
        c = scored.candidate
        table.add_row(str(i), c.title, c.artist, c.album or "", f"{scored.confidence:.2f}")
    console.print(table)

    if result.best_match:
        console.print(
            f"[green]✓[/green] Best match: {result.best_match} "
            f"({result.best_match.native_track_id}, confidence {result.confidence:.2f})"
        )
    else:
        console.print(f"[yellow]![/yellow] No match ({result.reason.value if result.reason else 'unknown'})")


@app.command("bulk-match")
def bulk_match(
    songs_file: Path = typer.Argument(..., help="YAML or JSON file with songs", exists=True),
    platforms: Optional[List[str]] = typer.Option(None, "--platform", "-p", help="Target platform(s)"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the full report as JSON"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Match many songs across platforms and print statistics."""
    targets = _parse_platforms(platforms)
    try:
        songs = load_songs(songs_file)
        mixtape = Mixtape.from_file(config_path)
        console.print(f"[bold]Matching {len(songs)} songs...[/bold]")
        report = mixtape.bulk_match(songs, targets)
    except (MixtapeError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗[/red] Bulk match failed: {e}")
        sys.exit(1)

    table = Table(title="Per-platform statistics")
    table.add_column("Platform")
    table.add_column("Matches", justify="right")
    table.add_column("Songs with matches", justify="right")
    table.add_column("Avg / song", justify="right")
    for platform, stats in report.per_platform_stats.items():
        table.add_row(
            platform.value,
            str(stats.total_matches),
            str(stats.songs_with_matches),
            f"{stats.average_matches_per_song:.2f}",
        )
    console.print(table)

    overall = report.overall_stats
    console.print(f"Songs: {overall.total_songs}")
    console.print(f"Matched: {overall.successful_matches}")
    console.print(f"High confidence: {overall.high_confidence_matches}")
    console.print(f"Average confidence: {overall.average_confidence:.2f}")

    if output:
        output.write_text(report.model_dump_json(indent=2))
        console.print(f"[green]✓[/green] Report written to {output}")


@app.command()
def submit(
    group_id: str = typer.Argument(..., help="Group ID"),
    title: str = typer.Argument(..., help="Song title"),
    artist: str = typer.Argument(..., help="Song artist"),
    album: Optional[str] = typer.Option(None, "--album", help="Album name"),
    duration: Optional[int] = typer.Option(None, "--duration", help="Duration in seconds"),
    group_name: Optional[str] = typer.Option(None, "--group-name", help="Set the group's display name"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Add an accepted song submission to a group."""
    try:
        mixtape = Mixtape.from_file(config_path)
        if group_name:
            mixtape.catalog.set_group_name(group_id, group_name)
        song = mixtape.catalog.add_submission(
            group_id,
            CanonicalSong(
                title=title,
                artist=artist,
                album=album,
                duration_ms=duration * 1000 if duration else None,
            ),
        )
    except (MixtapeError, FileNotFoundError) as e:
        console.print(f"[red]✗[/red] Submit failed: {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Submitted {song} to group {group_id} (id {song.id})")


@app.command()
def sync(
    group_id: str = typer.Argument(..., help="Group ID"),
    platforms: Optional[List[str]] = typer.Option(None, "--platform", "-p", help="Platform(s) to sync"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Sync a group's playlist on one or more platforms."""
    try:
        mixtape = Mixtape.from_file(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    targets = _parse_platforms(platforms) or list(mixtape.clients)
    if not targets:
        console.print("[red]✗[/red] No platforms configured")
        sys.exit(1)

    failed = False
    for platform in targets:
        try:
            result = mixtape.sync_group_playlist(group_id, platform)
        except SyncInProgress as e:
            console.print(f"[yellow]![/yellow] {e}")
            failed = True
            continue
        except MixtapeError as e:
            console.print(f"[red]✗[/red] {platform.value} sync failed: {e}")
            failed = True
            continue

        verb = "Created" if result.created else "Updated"
        console.print(
            f"[green]✓[/green] {verb} '{result.playlist.name}' on {platform.value}: "
            f"{len(result.added_track_ids)} added, {len(result.playlist.track_ids)} total"
        )
        for unresolved in result.unresolved:
            console.print(f"  [dim]unresolved: {unresolved.song} ({unresolved.reason.value})[/dim]")

    if failed:
        sys.exit(1)


@app.command()
def rename(
    group_id: str = typer.Argument(..., help="Group ID"),
    platform: str = typer.Argument(..., help="Platform"),
    name: str = typer.Argument(..., help="New playlist name"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Rename a group's playlist on one platform."""
    target = _parse_platform(platform)
    try:
        mixtape = Mixtape.from_file(config_path)
        playlist = mixtape.rename_group_playlist(group_id, target, name)
    except (MixtapeError, FileNotFoundError, ValueError) as e:
        console.print(f"[red]✗[/red] Rename failed: {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Renamed playlist on {target.value} to '{playlist.name}'")


@app.command("rename-all")
def rename_all(
    group_id: str = typer.Argument(..., help="Group ID"),
    group_name: str = typer.Argument(..., help="New group name"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Rename every platform playlist after a group name change."""
    try:
        mixtape = Mixtape.from_file(config_path)
        results = mixtape.rename_all_group_playlists(group_id, group_name)
    except (MixtapeError, FileNotFoundError) as e:
        console.print(f"[red]✗[/red] Rename failed: {e}")
        sys.exit(1)
    for platform, error in results.items():
        if error:
            console.print(f"[yellow]![/yellow] {platform.value}: {error}")
        else:
            console.print(f"[green]✓[/green] {platform.value} renamed")


@app.command()
def deactivate(
    group_id: str = typer.Argument(..., help="Group ID"),
    platform: Optional[str] = typer.Option(None, "--platform", "-p", help="Only this platform"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Mark a group's playlists inactive."""
    target = _parse_platform(platform) if platform else None
    try:
        mixtape = Mixtape.from_file(config_path)
        count = mixtape.deactivate_group_playlists(group_id, target)
    except (MixtapeError, FileNotFoundError) as e:
        console.print(f"[red]✗[/red] Deactivate failed: {e}")
        sys.exit(1)
    console.print(f"[green]✓[/green] Deactivated {count} playlist(s)")


@app.command("sweep-leases")
def sweep_leases(config_path: str = CONFIG_OPTION) -> None:
    """Delete expired sync leases."""
    try:
        mixtape = Mixtape.from_file(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)
    removed = mixtape.leases.sweep_expired()
    console.print(f"[green]✓[/green] Removed {removed} expired lease(s)")


@app.command()
def status(
    group_id: str = typer.Argument(..., help="Group ID"),
    config_path: str = CONFIG_OPTION,
) -> None:
    """Show a group's playlists and any sync in progress."""
    try:
        mixtape = Mixtape.from_file(config_path)
    except FileNotFoundError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    table = Table(title=f"Playlists for group {group_id}")
    table.add_column("Platform")
    table.add_column("Name")
    table.add_column("Playlist ID")
    table.add_column("Tracks", justify="right")
    table.add_column("Last synced")
    table.add_column("Active")
    table.add_column("Lease")
    for playlist in mixtape.store.list_for_group(group_id, include_inactive=True):
        lease = mixtape.leases.current(group_id, playlist.platform)
        table.add_row(
            playlist.platform.value,
            playlist.name,
            playlist.native_playlist_id,
            str(len(playlist.track_ids)),
            playlist.last_synced_at.isoformat(timespec="seconds") if playlist.last_synced_at else "never",
            "yes" if playlist.is_active else "no",
            f"held until {lease.expires_at.isoformat(timespec='seconds')}" if lease else "",
        )
    console.print(table)


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
