"""Similarity scoring between a canonical song and a platform candidate."""

from dataclasses import dataclass, field
from typing import Dict, Optional

from mixtape.core.normalize import normalize_with_qualifiers, tokenize
from mixtape.models import CanonicalSong, Candidate

TITLE_WEIGHT = 0.5
ARTIST_WEIGHT = 0.35
ALBUM_WEIGHT = 0.15

CONTAINMENT_BONUS = 0.1
DURATION_WINDOW_SECONDS = 15.0
DURATION_FLOOR = 0.85


@dataclass
class MatchScore:
    """Match score result with breakdown."""

    similarity: float
    details: Dict[str, float] = field(default_factory=dict)


def token_set_similarity(source: str, target: str) -> float:
    """Jaccard similarity of word tokens with a containment bonus.

    Both arguments are expected to be normalized already.  When one string
    is contained in the other on word boundaries (``"song"`` vs
    ``"song radio edit"``) up to ``CONTAINMENT_BONUS`` is added.
    """
    source_tokens = tokenize(source)
    target_tokens = tokenize(target)
    if not source_tokens or not target_tokens:
        return 0.0

    union = source_tokens | target_tokens
    similarity = len(source_tokens & target_tokens) / len(union)

    if similarity < 1.0:
        shorter, longer = sorted((source, target), key=len)
        if f" {shorter} " in f" {longer} ":
            similarity += CONTAINMENT_BONUS

    return min(1.0, similarity)


def duration_factor(song_ms: Optional[int], candidate_ms: Optional[int]) -> float:
    """Multiplier in [0.85, 1.0] for how close two durations are.

    Linear over a 0-15 second delta, flat 0.85 beyond.  Unknown durations
    leave the score untouched.
    """
    if not song_ms or not candidate_ms:
        return 1.0
    delta = abs(song_ms - candidate_ms) / 1000.0
    if delta >= DURATION_WINDOW_SECONDS:
        return DURATION_FLOOR
    return 1.0 - (1.0 - DURATION_FLOOR) * (delta / DURATION_WINDOW_SECONDS)


def _weights(has_album: bool) -> Dict[str, float]:
    if has_album:
        return {"title": TITLE_WEIGHT, "artist": ARTIST_WEIGHT, "album": ALBUM_WEIGHT}
    total = TITLE_WEIGHT + ARTIST_WEIGHT
    return {"title": TITLE_WEIGHT / total, "artist": ARTIST_WEIGHT / total}


def score_breakdown(
    song: CanonicalSong,
    candidate: Candidate,
    respect_duration_hint: bool = True,
    qualifier_penalty: float = 0.0,
) -> MatchScore:
    """Score ``candidate`` against ``song`` and keep the per-field details."""
    song_title = normalize_with_qualifiers(song.title)
    cand_title = normalize_with_qualifiers(candidate.title)
    song_album = normalize_with_qualifiers(song.album).text
    cand_album = normalize_with_qualifiers(candidate.album).text

    has_album = bool(song_album and cand_album)
    weights = _weights(has_album)

    details = {
        "title": token_set_similarity(song_title.text, cand_title.text),
        "artist": token_set_similarity(
            normalize_with_qualifiers(song.artist).text,
            normalize_with_qualifiers(candidate.artist).text,
        ),
    }
    if has_album:
        details["album"] = token_set_similarity(song_album, cand_album)

    combined = sum(weights[name] * details[name] for name in weights)

    if qualifier_penalty and set(song_title.qualifiers) != set(cand_title.qualifiers):
        combined *= 1.0 - qualifier_penalty
        details["qualifier_penalty"] = qualifier_penalty

    if respect_duration_hint:
        factor = duration_factor(song.duration_ms, candidate.duration_ms)
        details["duration_factor"] = factor
        combined *= factor

    return MatchScore(similarity=max(0.0, min(1.0, combined)), details=details)


def score(
    song: CanonicalSong,
    candidate: Candidate,
    respect_duration_hint: bool = True,
    qualifier_penalty: float = 0.0,
) -> float:
    """Return the confidence in [0, 1] that ``candidate`` is ``song``."""
    return score_breakdown(
        song,
        candidate,
        respect_duration_hint=respect_duration_hint,
        qualifier_penalty=qualifier_penalty,
    ).similarity
