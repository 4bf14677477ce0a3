"""Data models for Mixtape."""

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Platform(str, Enum):
    """Streaming platforms a group playlist can live on."""

    SPOTIFY = "spotify"
    APPLE_MUSIC = "apple-music"

    def __str__(self) -> str:
        return self.value


class CanonicalSong(BaseModel):
    """Platform-agnostic record of a submitted song.

    ``platform_ids`` is the only part that changes over time; it grows as
    resolutions are recorded.
    """

    id: Optional[str] = None
    title: str
    artist: str
    album: Optional[str] = None
    duration_ms: Optional[int] = None
    platform_ids: Dict[Platform, str] = Field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}"

    def platform_id(self, platform: Platform) -> Optional[str]:
        """Return the native track id for ``platform`` if resolved."""
        value = self.platform_ids.get(platform)
        if value and value.strip():
            return value.strip()
        return None


class Candidate(BaseModel):
    """One search result returned by a platform."""

    native_track_id: str
    title: str
    artist: str
    album: Optional[str] = None
    duration_ms: Optional[int] = None
    platform: Platform

    def __str__(self) -> str:
        return f"{self.artist} - {self.title}"


class ScoredCandidate(BaseModel):
    candidate: Candidate
    confidence: float


class UnresolvedReason(str, Enum):
    """Why a (song, platform) pair ended without a best match."""

    NO_CANDIDATES = "no_candidates"
    NO_MATCH = "no_match"
    RATE_LIMITED = "rate_limited"
    PLATFORM_UNAVAILABLE = "platform_unavailable"
    AUTH_EXPIRED = "auth_expired"


class MatchResult(BaseModel):
    """Outcome of resolving one song against one platform."""

    song: CanonicalSong
    platform: Platform
    candidates: List[ScoredCandidate] = Field(default_factory=list)
    best_match: Optional[Candidate] = None
    confidence: float = 0.0
    reason: Optional[UnresolvedReason] = None
    already_resolved: bool = False

    @property
    def resolved(self) -> bool:
        return self.best_match is not None


class SongMatchReport(BaseModel):
    """All platform results for a single input song of a bulk match."""

    song: CanonicalSong
    platform_results: Dict[Platform, MatchResult] = Field(default_factory=dict)

    @property
    def best_match(self) -> Optional[Candidate]:
        best = self._best_result()
        return best.best_match if best else None

    @property
    def confidence(self) -> float:
        return max((r.confidence for r in self.platform_results.values()), default=0.0)

    def _best_result(self) -> Optional[MatchResult]:
        matched = [r for r in self.platform_results.values() if r.best_match is not None]
        if not matched:
            return None
        return max(matched, key=lambda r: r.confidence)


class PlatformStats(BaseModel):
    total_matches: int = 0
    songs_with_matches: int = 0
    average_matches_per_song: float = 0.0


class OverallStats(BaseModel):
    total_songs: int = 0
    successful_matches: int = 0
    high_confidence_matches: int = 0
    average_confidence: float = 0.0


class BulkMatchReport(BaseModel):
    """Transient report produced by one bulk match invocation."""

    per_song_results: List[SongMatchReport] = Field(default_factory=list)
    per_platform_stats: Dict[Platform, PlatformStats] = Field(default_factory=dict)
    overall_stats: OverallStats = Field(default_factory=OverallStats)


class GroupPlaylist(BaseModel):
    """Persistent state of one (group, platform) playlist."""

    group_id: str
    platform: Platform
    native_playlist_id: str
    name: str
    track_ids: List[str] = Field(default_factory=list)
    last_synced_at: Optional[datetime] = None
    is_active: bool = True

    def __str__(self) -> str:
        return f"{self.name} ({self.platform}, {len(self.track_ids)} tracks)"


class SyncLease(BaseModel):
    """Time-boxed exclusive right to mutate one (group, platform) playlist."""

    model_config = ConfigDict(frozen=True)

    group_id: str
    platform: Platform
    holder: str
    acquired_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class SyncState(str, Enum):
    UNINITIALIZED = "uninitialized"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


class UnresolvedSong(BaseModel):
    song: CanonicalSong
    reason: UnresolvedReason
    confidence: float = 0.0


class SyncResult(BaseModel):
    """What a playlist sync did, including the songs it could not place."""

    playlist: GroupPlaylist
    added_track_ids: List[str] = Field(default_factory=list)
    created: bool = False
    unresolved: List[UnresolvedSong] = Field(default_factory=list)

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved)


class MatchOptions(BaseModel):
    """Recognized per-request matching options."""

    limit: int = Field(default=10, ge=1, le=50)
    target_platforms: List[Platform] = Field(
        default_factory=lambda: [Platform.SPOTIFY, Platform.APPLE_MUSIC]
    )
    respect_duration_hint: bool = True
    acceptance_threshold: float = Field(default=0.55, ge=0.0, le=1.0)
    high_confidence_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    qualifier_penalty: float = Field(default=0.0, ge=0.0, le=1.0)
    search_timeout: float = Field(default=10.0, gt=0.0)
