"""In-memory stand-ins for platform clients and the submission catalog."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from mixtape.catalog import SubmissionCatalog
from mixtape.core.normalize import normalize, tokenize
from mixtape.exceptions import CatalogError, PlatformUnavailable
from mixtape.models import CanonicalSong, Candidate, Platform
from mixtape.platforms.base import PlatformClient


def track(platform, track_id, title, artist, album=None, duration_ms=None):
    return Candidate(
        native_track_id=track_id,
        title=title,
        artist=artist,
        album=album,
        duration_ms=duration_ms,
        platform=platform,
    )


def song(title, artist, song_id=None, album=None, duration_ms=None, **platform_ids):
    ids = {}
    if "spotify" in platform_ids:
        ids[Platform.SPOTIFY] = platform_ids["spotify"]
    if "apple_music" in platform_ids:
        ids[Platform.APPLE_MUSIC] = platform_ids["apple_music"]
    return CanonicalSong(
        id=song_id, title=title, artist=artist, album=album, duration_ms=duration_ms, platform_ids=ids
    )


class FakeClock:
    """Settable UTC clock for lease tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakePlatformClient(PlatformClient):
    """Platform whose catalog is a list of Candidates.

    A search returns every track whose normalized title words all appear in
    the query.  ``search_errors`` are raised (in order) before normal
    behaviour resumes; ``fail_with`` is raised on every search.
    """

    def __init__(self, platform: Platform, tracks=(), max_tracks_per_request: int = 100):
        self.platform = platform
        self.tracks: List[Candidate] = list(tracks)
        self.max_tracks_per_request = max_tracks_per_request
        self.search_calls: List[tuple] = []
        self.search_errors: List[Exception] = []
        self.fail_with: Optional[Exception] = None
        self.on_search = None
        self.playlists: Dict[str, Dict] = {}
        self.add_calls: List[List[str]] = []
        self.rename_calls: List[tuple] = []
        self.rename_error: Optional[Exception] = None
        self.fail_add_after: Optional[int] = None
        self._lock = threading.Lock()
        self._next_id = 0

    def search(self, query: str, limit: int = 10, timeout: float = 10.0) -> List[Candidate]:
        with self._lock:
            self.search_calls.append((query, limit, timeout))
            error = self.search_errors.pop(0) if self.search_errors else None
        if self.on_search:
            self.on_search(query)
        if error:
            raise error
        if self.fail_with:
            raise self.fail_with
        query_tokens = set(query.split())
        return [t for t in self.tracks if tokenize(normalize(t.title)) <= query_tokens][:limit]

    def create_playlist(self, name: str, description: str = "") -> str:
        with self._lock:
            self._next_id += 1
            playlist_id = f"{self.platform.value}-pl-{self._next_id}"
        self.playlists[playlist_id] = {"name": name, "description": description, "tracks": []}
        return playlist_id

    def add_tracks(self, playlist_id: str, track_ids) -> None:
        if self.fail_add_after is not None and len(self.add_calls) >= self.fail_add_after:
            raise PlatformUnavailable(self.platform, "add failed")
        self.add_calls.append(list(track_ids))
        self.playlists[playlist_id]["tracks"].extend(track_ids)

    def rename_playlist(self, playlist_id: str, name: str) -> None:
        if self.rename_error:
            raise self.rename_error
        self.rename_calls.append((playlist_id, name))
        self.playlists[playlist_id]["name"] = name

    def playlist_exists(self, playlist_id: str) -> bool:
        return playlist_id in self.playlists


class InMemoryCatalog(SubmissionCatalog):
    def __init__(self):
        self.songs: Dict[str, List[CanonicalSong]] = {}
        self.names: Dict[str, str] = {}
        self.recorded: List[tuple] = []
        self.fail_record = False
        self._next_id = 0

    def add(self, group_id: str, entry: CanonicalSong) -> CanonicalSong:
        if entry.id is None:
            self._next_id += 1
            entry = entry.model_copy(update={"id": f"s{self._next_id}"})
        self.songs.setdefault(group_id, []).append(entry)
        return entry

    def remove(self, group_id: str, song_id: str) -> None:
        self.songs[group_id] = [s for s in self.songs.get(group_id, []) if s.id != song_id]

    def get_accepted_submissions(self, group_id: str) -> List[CanonicalSong]:
        return list(self.songs.get(group_id, []))

    def record_resolved_platform_id(self, song_id: str, platform: Platform, track_id: str) -> None:
        if self.fail_record:
            raise CatalogError("catalog offline")
        self.recorded.append((song_id, platform, track_id))
        for group in self.songs.values():
            for i, entry in enumerate(group):
                if entry.id == song_id and not entry.platform_id(platform):
                    ids = dict(entry.platform_ids)
                    ids[platform] = track_id
                    group[i] = entry.model_copy(update={"platform_ids": ids})

    def group_name(self, group_id: str) -> Optional[str]:
        return self.names.get(group_id)
