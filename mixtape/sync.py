"""Keep one persistent playlist per (group, platform) in step with submissions."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from mixtape.catalog import SubmissionCatalog
from mixtape.core.bulk import BulkMatcher
from mixtape.core.leases import LeaseManager
from mixtape.core.store import PlaylistStore
from mixtape.exceptions import (
    CatalogError,
    MixtapeError,
    PlatformError,
    PlatformUnavailable,
    PlaylistNotFound,
    SyncDeadlineExceeded,
    SyncInProgress,
)
from mixtape.models import (
    CanonicalSong,
    GroupPlaylist,
    Platform,
    SyncResult,
    SyncState,
    UnresolvedReason,
    UnresolvedSong,
)
from mixtape.platforms.base import PlatformClient

logger = logging.getLogger("mixtape.sync")

DEFAULT_NAME_TEMPLATE = "{group} mixtape"
DEFAULT_DESCRIPTION = "Automatically updated with fresh submissions from your group"


def _chunks(items: List[str], size: int) -> Iterable[List[str]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


class GroupPlaylistSynchronizer:
    """Resolve a group's submissions and push new tracks to its playlists.

    Playlists only ever grow: tracks added by an earlier sync stay even if
    the submission behind them is later withdrawn.  Every mutation of a
    pair happens while holding that pair's lease.
    """

    def __init__(
        self,
        leases: LeaseManager,
        store: PlaylistStore,
        catalog: SubmissionCatalog,
        matcher: BulkMatcher,
        clients: Mapping[Platform, PlatformClient],
        lease_ttl: timedelta = timedelta(minutes=5),
        deadline_margin: timedelta = timedelta(seconds=30),
        name_template: str = DEFAULT_NAME_TEMPLATE,
        description: str = DEFAULT_DESCRIPTION,
        add_batch_size: int = 100,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        if deadline_margin >= lease_ttl:
            raise ValueError("deadline_margin must be shorter than lease_ttl")
        self.leases = leases
        self.store = store
        self.catalog = catalog
        self.matcher = matcher
        self.clients = dict(clients)
        self.lease_ttl = lease_ttl
        self.deadline_margin = deadline_margin
        self.name_template = name_template
        self.description = description
        self.add_batch_size = add_batch_size
        self._monotonic = monotonic
        self._states: Dict[Tuple[str, Platform], SyncState] = {}
        self._state_lock = threading.Lock()

    def state(self, group_id: str, platform: Platform) -> SyncState:
        with self._state_lock:
            return self._states.get((group_id, Platform(platform)), SyncState.UNINITIALIZED)

    def _set_state(self, group_id: str, platform: Platform, state: SyncState) -> None:
        with self._state_lock:
            self._states[(group_id, platform)] = state

    def _client(self, platform: Platform) -> PlatformClient:
        try:
            return self.clients[platform]
        except KeyError:
            raise PlatformUnavailable(platform, f"{platform} is not connected") from None

    def playlist_name(self, group_id: str, group_name: Optional[str] = None) -> str:
        name = group_name or self.catalog.group_name(group_id) or group_id
        return self.name_template.format(group=name.strip().lower())

    def _check_deadline(self, deadline: float, step: str) -> None:
        if self._monotonic() >= deadline:
            raise SyncDeadlineExceeded(f"Sync deadline passed before {step}")

    def sync_playlist(self, group_id: str, platform: Platform) -> SyncResult:
        """Bring the (group, platform) playlist up to date.

        Raises:
            SyncInProgress: another sync or rename holds the lease
        """
        platform = Platform(platform)
        lease = self.leases.acquire(group_id, platform, ttl=self.lease_ttl)
        if lease is None:
            raise SyncInProgress(group_id, platform)

        deadline = self._monotonic() + (self.lease_ttl - self.deadline_margin).total_seconds()
        self._set_state(group_id, platform, SyncState.SYNCING)
        try:
            result = self._sync(group_id, platform, deadline)
        except Exception as e:
            self._set_state(group_id, platform, SyncState.FAILED)
            logger.error(f"Sync of group {group_id} on {platform} failed: {e}")
            raise
        finally:
            self.leases.release(lease)

        self._set_state(group_id, platform, SyncState.SYNCED)
        return result

    def _sync(self, group_id: str, platform: Platform, deadline: float) -> SyncResult:
        client = self._client(platform)
        songs = self.catalog.get_accepted_submissions(group_id)
        logger.info(f"Syncing {len(songs)} submissions for group {group_id} on {platform}")

        target: List[str] = []
        unresolved: List[UnresolvedSong] = []
        to_match: List[CanonicalSong] = []
        for song in songs:
            track_id = song.platform_id(platform)
            if track_id:
                target.append(track_id)
            else:
                to_match.append(song)

        if to_match:
            self._check_deadline(deadline, "matching")
            report = self.matcher.bulk_match(to_match, [platform])
            for entry in report.per_song_results:
                result = entry.platform_results[platform]
                if result.best_match is not None:
                    target.append(result.best_match.native_track_id)
                    self._remember(entry.song, platform, result.best_match.native_track_id)
                else:
                    unresolved.append(
                        UnresolvedSong(
                            song=entry.song,
                            reason=result.reason or UnresolvedReason.NO_MATCH,
                            confidence=result.confidence,
                        )
                    )

        self._check_deadline(deadline, "playlist update")
        playlist, created = self._ensure_playlist(group_id, platform, client)

        existing = set(playlist.track_ids)
        to_add: List[str] = []
        for track_id in target:
            if track_id not in existing:
                existing.add(track_id)
                to_add.append(track_id)

        added: List[str] = []
        batch_size = max(1, min(self.add_batch_size, client.max_tracks_per_request))
        for batch in _chunks(to_add, batch_size):
            self._check_deadline(deadline, "adding tracks")
            client.add_tracks(playlist.native_playlist_id, batch)
            added.extend(batch)
            # Persist after every batch so an aborted run keeps what it added
            playlist = self.store.save(
                playlist.model_copy(update={"track_ids": playlist.track_ids + batch})
            )

        playlist = self.store.save(
            playlist.model_copy(update={"last_synced_at": datetime.now(timezone.utc)})
        )

        logger.info(
            f"Group {group_id} {platform} playlist synced: {len(added)} added, "
            f"{len(playlist.track_ids)} total, {len(unresolved)} unresolved"
        )
        for item in unresolved:
            logger.warning(f'  - "{item.song.title}" by {item.song.artist}: {item.reason.value}')

        return SyncResult(playlist=playlist, added_track_ids=added, created=created, unresolved=unresolved)

    def _ensure_playlist(
        self, group_id: str, platform: Platform, client: PlatformClient
    ) -> Tuple[GroupPlaylist, bool]:
        """Return the active playlist, creating it when missing.

        A playlist deleted on the platform is replaced by a fresh, empty one
        and the old row is deactivated. This is the one case where the
        stored track list starts over; the next add step refills it.
        """
        playlist = self.store.get_active(group_id, platform)
        if playlist is not None and not client.playlist_exists(playlist.native_playlist_id):
            logger.warning(
                f"Playlist {playlist.native_playlist_id} no longer exists on {platform}, recreating"
            )
            self.store.deactivate(group_id, platform)
            playlist = None

        if playlist is not None:
            return playlist, False

        name = self.playlist_name(group_id)
        native_id = client.create_playlist(name, self.description)
        logger.info(f'Created {platform} playlist "{name}" for group {group_id}')
        playlist = self.store.save(
            GroupPlaylist(group_id=group_id, platform=platform, native_playlist_id=native_id, name=name)
        )
        return playlist, True

    def _remember(self, song: CanonicalSong, platform: Platform, track_id: str) -> None:
        if not song.id:
            return
        try:
            self.catalog.record_resolved_platform_id(song.id, platform, track_id)
        except CatalogError as e:
            logger.warning(f"Failed to save {platform} id for song {song.id}: {e}")

    def rename_playlist(self, group_id: str, platform: Platform, new_name: str) -> GroupPlaylist:
        """Rename the pair's playlist on the platform and in the store.

        Raises:
            SyncInProgress: a sync or another rename holds the lease
            PlaylistNotFound: the pair has no active playlist
        """
        platform = Platform(platform)
        new_name = (new_name or "").strip()
        if not new_name:
            raise ValueError("Playlist name must not be empty")

        with self.leases.hold(group_id, platform, ttl=self.lease_ttl):
            playlist = self.store.get_active(group_id, platform)
            if playlist is None:
                raise PlaylistNotFound(f"No active {platform} playlist for group {group_id}")
            self._client(platform).rename_playlist(playlist.native_playlist_id, new_name)
            playlist = self.store.save(playlist.model_copy(update={"name": new_name}))

        logger.info(f'Renamed group {group_id} {platform} playlist to "{new_name}"')
        return playlist

    def rename_all_playlists(self, group_id: str, group_name: str) -> Dict[Platform, Optional[str]]:
        """Rename every active playlist of a group after the group was renamed.

        Returns:
            Platform -> None when renamed, or the error message when it failed

        Raises:
            MixtapeError: when every platform failed
        """
        new_name = self.playlist_name(group_id, group_name)
        outcomes: Dict[Platform, Optional[str]] = {}
        for playlist in self.store.list_for_group(group_id):
            try:
                self.rename_playlist(group_id, playlist.platform, new_name)
                outcomes[playlist.platform] = None
            except (PlatformError, SyncInProgress, PlaylistNotFound) as e:
                logger.error(f"Failed to update {playlist.platform} playlist name: {e}")
                outcomes[playlist.platform] = str(e)

        failures = {p: msg for p, msg in outcomes.items() if msg is not None}
        if failures and len(failures) == len(outcomes):
            messages = ", ".join(f"{p}: {msg}" for p, msg in failures.items())
            raise MixtapeError(f"Failed to update playlists on all platforms: {messages}")
        return outcomes

    def deactivate_playlists(self, group_id: str, platform: Optional[Platform] = None) -> int:
        """Soft-delete playlists when a group disbands or a platform is disconnected."""
        if platform is not None:
            platforms = [Platform(platform)]
        else:
            platforms = [p.platform for p in self.store.list_for_group(group_id)]

        changed = 0
        for target in platforms:
            with self.leases.hold(group_id, target, ttl=self.lease_ttl):
                changed += self.store.deactivate(group_id, target)
        return changed
