"""Main Mixtape application class."""

import logging
from typing import Dict, Iterable, Mapping, Optional, Sequence

from mixtape.catalog import SqliteCatalog, SubmissionCatalog
from mixtape.config import MixtapeConfig
from mixtape.core.bulk import BulkMatcher
from mixtape.core.leases import LeaseManager
from mixtape.core.resolver import MatchResolver
from mixtape.core.store import PlaylistStore
from mixtape.models import (
    BulkMatchReport,
    CanonicalSong,
    GroupPlaylist,
    MatchResult,
    Platform,
    SyncResult,
    SyncState,
)
from mixtape.platforms import PlatformClient, create_clients
from mixtape.sync import GroupPlaylistSynchronizer

logger = logging.getLogger("mixtape")


class Mixtape:
    """Wires the matcher, lease manager and synchronizer together."""

    def __init__(
        self,
        config: Optional[MixtapeConfig] = None,
        clients: Optional[Mapping[Platform, PlatformClient]] = None,
        catalog: Optional[SubmissionCatalog] = None,
    ):
        """Initialize Mixtape.

        Args:
            config: Loaded configuration, defaults when omitted
            clients: Platform clients; built from the config when omitted
            catalog: Submission catalog; the bundled SQLite one when omitted
        """
        self.config = config or MixtapeConfig()
        self.clients: Dict[Platform, PlatformClient] = (
            dict(clients) if clients is not None else create_clients(self.config)
        )

        db_path = self.config.store.db_path
        self.catalog = catalog or SqliteCatalog(db_path)
        self.leases = LeaseManager(db_path)
        self.store = PlaylistStore(db_path)

        self.resolver = MatchResolver(self.clients, self.config.matching)
        self.matcher = BulkMatcher(
            self.resolver,
            concurrency_per_platform=self.config.bulk.concurrency_per_platform,
            retry_policy=self.config.bulk.retry,
            unavailable_retries=self.config.bulk.unavailable_retries,
        )
        sync_config = self.config.sync
        self.synchronizer = GroupPlaylistSynchronizer(
            self.leases,
            self.store,
            self.catalog,
            self.matcher,
            self.clients,
            lease_ttl=sync_config.lease_ttl_delta,
            deadline_margin=sync_config.deadline_margin_delta,
            name_template=sync_config.playlist_name_template,
            description=sync_config.playlist_description,
            add_batch_size=sync_config.add_batch_size,
        )
        logger.debug(f"Mixtape ready with platforms: {', '.join(p.value for p in self.clients) or 'none'}")

    @classmethod
    def from_file(cls, config_path: str = "mixtape.yaml", **kwargs) -> "Mixtape":
        return cls(MixtapeConfig.from_file(config_path), **kwargs)

    def start(self) -> None:
        """Start background lease eviction."""
        self.leases.start_sweeper(self.config.sync.sweep_interval)

    def shutdown(self) -> None:
        self.leases.stop_sweeper()
        logger.info("Mixtape shutdown complete")

    def match_one(self, song: CanonicalSong, target_platform: Platform) -> MatchResult:
        return self.resolver.resolve(song, Platform(target_platform))

    def bulk_match(
        self, songs: Sequence[CanonicalSong], target_platforms: Optional[Iterable[Platform]] = None
    ) -> BulkMatchReport:
        return self.matcher.bulk_match(songs, target_platforms)

    def sync_group_playlist(self, group_id: str, platform: Platform) -> SyncResult:
        return self.synchronizer.sync_playlist(group_id, platform)

    def rename_group_playlist(self, group_id: str, platform: Platform, name: str) -> GroupPlaylist:
        return self.synchronizer.rename_playlist(group_id, platform, name)

    def rename_all_group_playlists(self, group_id: str, group_name: str) -> Dict[Platform, Optional[str]]:
        return self.synchronizer.rename_all_playlists(group_id, group_name)

    def deactivate_group_playlists(self, group_id: str, platform: Optional[Platform] = None) -> int:
        return self.synchronizer.deactivate_playlists(group_id, platform)

    def sync_state(self, group_id: str, platform: Platform) -> SyncState:
        return self.synchronizer.state(group_id, platform)
