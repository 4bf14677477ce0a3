"""Bulk matching of many songs across several platforms."""

import logging
import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import ExitStack
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mixtape.core.resolver import MatchResolver
from mixtape.exceptions import AuthExpired, PlatformUnavailable, RateLimited
from mixtape.models import (
    BulkMatchReport,
    CanonicalSong,
    Candidate,
    MatchResult,
    OverallStats,
    Platform,
    PlatformStats,
    ScoredCandidate,
    SongMatchReport,
    UnresolvedReason,
)

logger = logging.getLogger("mixtape.bulk")


class RetryPolicy(BaseModel):
    """Exponential backoff with jitter for rate-limited searches.

    Args:
        base_delay: Delay in seconds before the first retry
        max_delay: Ceiling for the exponential growth
        max_retries: Retries after the initial attempt
        jitter: Jitter as fraction of delay (0.15 = ±15% randomization)
    """

    model_config = ConfigDict(frozen=True)

    base_delay: float = Field(default=0.5, ge=0.0)
    max_delay: float = Field(default=8.0, ge=0.0)
    max_retries: int = Field(default=5, ge=0)
    jitter: float = Field(default=0.15, ge=0.0, le=1.0)

    @field_validator("max_delay")
    @classmethod
    def validate_max_delay(cls, v: float, info) -> float:
        """Ensure max_delay >= base_delay."""
        base = info.data.get("base_delay", 0.5)
        if v < base:
            raise ValueError("max_delay must be >= base_delay")
        return v

    def compute_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-indexed)."""
        delay = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        if self.jitter > 0:
            spread = delay * self.jitter
            delay += random.uniform(-spread, spread)
        return max(0.0, min(self.max_delay, delay))


class _PlatformGate:
    """Shared pause for every worker of one platform's pool."""

    def __init__(self, sleep: Callable[[float], None], clock: Callable[[], float]):
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._resume_at = 0.0

    def pause(self, seconds: float) -> None:
        with self._lock:
            self._resume_at = max(self._resume_at, self._clock() + seconds)

    def wait(self) -> None:
        with self._lock:
            remaining = self._resume_at - self._clock()
        if remaining > 0:
            self._sleep(remaining)


def _already_resolved(song: CanonicalSong, platform: Platform, track_id: str) -> MatchResult:
    candidate = Candidate(
        native_track_id=track_id,
        title=song.title,
        artist=song.artist,
        album=song.album,
        duration_ms=song.duration_ms,
        platform=platform,
    )
    return MatchResult(
        song=song,
        platform=platform,
        candidates=[ScoredCandidate(candidate=candidate, confidence=1.0)],
        best_match=candidate,
        confidence=1.0,
        already_resolved=True,
    )


class BulkMatcher:
    """Fan songs out to per-platform worker pools and aggregate the results.

    Every platform gets its own pool and its own backoff gate, so a rate
    limited or failing platform never holds up work for another one.
    """

    def __init__(
        self,
        resolver: MatchResolver,
        concurrency_per_platform: int = 4,
        retry_policy: Optional[RetryPolicy] = None,
        unavailable_retries: int = 2,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if concurrency_per_platform < 1:
            raise ValueError("concurrency_per_platform must be at least 1")
        self.resolver = resolver
        self.concurrency_per_platform = concurrency_per_platform
        self.retry_policy = retry_policy or RetryPolicy()
        self.unavailable_retries = unavailable_retries
        self._sleep = sleep
        self._clock = clock

    @property
    def options(self):
        return self.resolver.options

    def bulk_match(
        self,
        songs: Sequence[CanonicalSong],
        target_platforms: Optional[Iterable[Platform]] = None,
    ) -> BulkMatchReport:
        """Resolve every unresolved (song, platform) pair.

        Results come back in input order whatever order the work finishes in.
        Only a missing ``target_platforms`` falls back to the configured
        defaults; an empty collection matches against no platform.
        """
        songs = list(songs)
        if target_platforms is None:
            target_platforms = self.options.target_platforms
        platforms: List[Platform] = []
        for platform in target_platforms:
            platform = Platform(platform)
            if platform not in platforms:
                platforms.append(platform)

        results: List[Dict[Platform, MatchResult]] = [{} for _ in songs]
        pending: Dict[Platform, List[int]] = {platform: [] for platform in platforms}
        for index, song in enumerate(songs):
            for platform in platforms:
                track_id = song.platform_id(platform)
                if track_id:
                    results[index][platform] = _already_resolved(song, platform, track_id)
                else:
                    pending[platform].append(index)

        scheduled = sum(len(indexes) for indexes in pending.values())
        logger.info(
            f"Bulk matching {len(songs)} songs across {len(platforms)} platforms "
            f"({scheduled} searches scheduled)"
        )

        with ExitStack() as stack:
            futures = {}
            for platform, indexes in pending.items():
                if not indexes:
                    continue
                pool = stack.enter_context(
                    ThreadPoolExecutor(
                        max_workers=self.concurrency_per_platform,
                        thread_name_prefix=f"mixtape-{platform.value}",
                    )
                )
                gate = _PlatformGate(self._sleep, self._clock)
                for index in indexes:
                    future = pool.submit(self._resolve_with_retry, songs[index], platform, gate)
                    futures[future] = (index, platform)

            for future in as_completed(futures):
                index, platform = futures[future]
                results[index][platform] = future.result()

        reports = [
            SongMatchReport(song=song, platform_results={p: results[i][p] for p in platforms})
            for i, song in enumerate(songs)
        ]
        return BulkMatchReport(
            per_song_results=reports,
            per_platform_stats={p: self._platform_stats(reports, p) for p in platforms},
            overall_stats=self._overall_stats(reports),
        )

    def _resolve_with_retry(self, song: CanonicalSong, platform: Platform, gate: _PlatformGate) -> MatchResult:
        rate_limited_retries = 0
        unavailable_retries = 0
        if platform not in self.resolver.clients:
            logger.warning(f"{platform} is not connected, skipping {song}")
            return MatchResult(song=song, platform=platform, reason=UnresolvedReason.PLATFORM_UNAVAILABLE)
        while True:
            gate.wait()
            try:
                return self.resolver.resolve(song, platform)
            except RateLimited as e:
                if rate_limited_retries >= self.retry_policy.max_retries:
                    logger.warning(
                        f"Giving up on {song} for {platform} after {rate_limited_retries} rate-limited retries"
                    )
                    return MatchResult(song=song, platform=platform, reason=UnresolvedReason.RATE_LIMITED)
                rate_limited_retries += 1
                if e.retry_after is not None:
                    # Server hints are capped at max_delay
                    delay = max(0.0, min(self.retry_policy.max_delay, e.retry_after))
                else:
                    delay = self.retry_policy.compute_delay(rate_limited_retries)
                logger.warning(
                    f"{platform} rate limit hit (retry {rate_limited_retries}/{self.retry_policy.max_retries}), "
                    f"pausing pool for {delay:.2f}s"
                )
                gate.pause(delay)
            except PlatformUnavailable as e:
                if unavailable_retries >= self.unavailable_retries:
                    logger.warning(f"{platform} unavailable for {song}: {e}")
                    return MatchResult(song=song, platform=platform, reason=UnresolvedReason.PLATFORM_UNAVAILABLE)
                unavailable_retries += 1
                self._sleep(self.retry_policy.compute_delay(unavailable_retries))
            except AuthExpired as e:
                logger.warning(f"{platform} credentials rejected while matching {song}: {e}")
                return MatchResult(song=song, platform=platform, reason=UnresolvedReason.AUTH_EXPIRED)

    def _platform_stats(self, reports: List[SongMatchReport], platform: Platform) -> PlatformStats:
        threshold = self.options.acceptance_threshold
        results = [report.platform_results[platform] for report in reports]
        total_matches = sum(1 for r in results if r.best_match is not None)
        songs_with_matches = sum(
            1 for r in results if any(sc.confidence >= threshold for sc in r.candidates)
        )
        return PlatformStats(
            total_matches=total_matches,
            songs_with_matches=songs_with_matches,
            average_matches_per_song=total_matches / len(results) if results else 0.0,
        )

    def _overall_stats(self, reports: List[SongMatchReport]) -> OverallStats:
        confidences = [report.confidence for report in reports]
        return OverallStats(
            total_songs=len(reports),
            successful_matches=sum(1 for r in reports if r.best_match is not None),
            high_confidence_matches=sum(
                1 for c in confidences if c > self.options.high_confidence_threshold
            ),
            average_confidence=sum(confidences) / len(confidences) if confidences else 0.0,
        )
