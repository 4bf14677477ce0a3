"""Resolve one canonical song to a track on a target platform."""

import logging
from typing import Mapping, Optional

from mixtape.core.matching import score
from mixtape.core.normalize import normalize
from mixtape.exceptions import PlatformUnavailable
from mixtape.models import (
    CanonicalSong,
    MatchOptions,
    MatchResult,
    Platform,
    ScoredCandidate,
    UnresolvedReason,
)
from mixtape.platforms.base import PlatformClient

logger = logging.getLogger("mixtape.matching")


def build_query(song: CanonicalSong) -> str:
    """Search text for a song: normalized title followed by normalized artist."""
    return " ".join(part for part in (normalize(song.title), normalize(song.artist)) if part)


class MatchResolver:
    """Query-and-score resolution of songs against platform search.

    ``RateLimited`` and ``PlatformUnavailable`` raised by a client propagate
    to the caller; backoff is the bulk orchestrator's job.
    """

    def __init__(self, clients: Mapping[Platform, PlatformClient], options: Optional[MatchOptions] = None):
        self.clients = dict(clients)
        self.options = options or MatchOptions()

    def client_for(self, platform: Platform) -> PlatformClient:
        try:
            return self.clients[platform]
        except KeyError:
            raise PlatformUnavailable(platform, f"{platform} is not connected") from None

    def resolve(self, song: CanonicalSong, platform: Platform) -> MatchResult:
        """Search ``platform`` for ``song`` and rank every candidate."""
        platform = Platform(platform)
        client = self.client_for(platform)
        query = build_query(song)
        if not query:
            logger.debug(f"Empty query for {song!r}, skipping search")
            return MatchResult(song=song, platform=platform, reason=UnresolvedReason.NO_CANDIDATES)

        try:
            candidates = client.search(query, limit=self.options.limit, timeout=self.options.search_timeout)
        except TimeoutError as e:
            raise PlatformUnavailable(platform, f"{platform} search timed out: {e}") from e

        scored = [
            ScoredCandidate(
                candidate=candidate,
                confidence=score(
                    song,
                    candidate,
                    respect_duration_hint=self.options.respect_duration_hint,
                    qualifier_penalty=self.options.qualifier_penalty,
                ),
            )
            for candidate in candidates[: self.options.limit]
        ]
        # sorted() is stable, so ties keep the platform's relevance order
        scored = sorted(scored, key=lambda sc: sc.confidence, reverse=True)

        if not scored:
            logger.debug(f'No {platform} candidates for "{query}"')
            return MatchResult(song=song, platform=platform, reason=UnresolvedReason.NO_CANDIDATES)

        top = scored[0]
        if top.confidence >= self.options.acceptance_threshold:
            logger.debug(f"Matched {song} on {platform} -> {top.candidate} ({top.confidence:.3f})")
            return MatchResult(
                song=song,
                platform=platform,
                candidates=scored,
                best_match=top.candidate,
                confidence=top.confidence,
            )

        logger.debug(f"Best {platform} candidate for {song} below threshold ({top.confidence:.3f})")
        return MatchResult(
            song=song,
            platform=platform,
            candidates=scored,
            confidence=top.confidence,
            reason=UnresolvedReason.NO_MATCH,
        )
