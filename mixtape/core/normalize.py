"""Text canonicalization for song comparison."""

import re
import unicodedata
from typing import NamedTuple, Optional, Set, Tuple

_BRACKETED_RE = re.compile(r"[\(\[\{]([^\)\]\}]*)[\)\]\}]")
_FEATURING_RE = re.compile(r"\s*\b((?:feat\.?|featuring)\s+.*)$")
# "ft." alone is too ambiguous ("Ft. Lauderdale") unless a separator precedes it
_FT_RE = re.compile(r"\s*[,;/|&]\s*(ft\.?\s+.*)$")
_DASH_SUFFIX_RE = re.compile(
    r"\s+[-–—]\s+("
    r"[^-–—]*\b(?:remaster(?:ed)?|version|edit|mix|live|mono|stereo|deluxe|edition|demo|acoustic|instrumental|bonus track)\b[^-–—]*"
    r")$"
)
_APOSTROPHES_RE = re.compile(r"['’‘`´]")
_NON_WORD_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")


class NormalizedText(NamedTuple):
    """Canonical text plus the qualifiers that were split off it."""

    text: str
    qualifiers: Tuple[str, ...] = ()


def strip_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def _clean(text: str) -> str:
    text = _APOSTROPHES_RE.sub("", text)
    text = text.replace("&", " and ")
    text = _NON_WORD_RE.sub(" ", text)
    text = text.replace("_", " ")
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_with_qualifiers(text: Optional[str]) -> NormalizedText:
    """Canonicalize ``text`` and return the removed qualifiers separately.

    Pipeline:
    - strip diacritics and lowercase
    - move bracketed/parenthetical segments, e.g. ``(Remastered 2011)``, to qualifiers
    - move trailing featuring clauses (feat./featuring ..., or ft. ... after a separator) to qualifiers
    - move dash suffixes such as ``- Single Version`` to qualifiers
    - drop punctuation and collapse whitespace
    """
    if not text:
        return NormalizedText("")

    working = strip_diacritics(text).lower().strip()
    qualifiers = []

    for segment in _BRACKETED_RE.findall(working):
        qualifiers.append(segment)
    stripped = _BRACKETED_RE.sub(" ", working)
    # A string made only of brackets keeps its content as text
    if not _clean(stripped):
        stripped = " ".join(qualifiers) if qualifiers else working
        qualifiers = []
    working = stripped

    for pattern in (_FEATURING_RE, _FT_RE):
        match = pattern.search(working)
        if match and match.start() > 0:
            qualifiers.append(match.group(1))
            working = working[: match.start()]
            break

    match = _DASH_SUFFIX_RE.search(working)
    if match:
        qualifiers.append(match.group(1))
        working = working[: match.start()]

    cleaned_qualifiers = tuple(q for q in (_clean(q) for q in qualifiers) if q)
    return NormalizedText(_clean(working), cleaned_qualifiers)


def normalize(text: Optional[str]) -> str:
    """Return the canonical comparison form of ``text``.

    Empty input gives empty output.
    """
    return normalize_with_qualifiers(text).text


def tokenize(text: str) -> Set[str]:
    """Split already-normalized text into its word tokens."""
    return set(text.split()) if text else set()
