"""Tests for candidate scoring."""

import unittest

from mixtape.core.matching import (
    DURATION_FLOOR,
    duration_factor,
    score,
    score_breakdown,
    token_set_similarity,
)
from mixtape.models import CanonicalSong, Platform
from tests.fakes import track


class TestScore(unittest.TestCase):
    """Similarity between a canonical song and a platform candidate."""

    def setUp(self):
        self.yesterday = CanonicalSong(title="Yesterday", artist="The Beatles", duration_ms=125000)

    def test_remastered_version_scores_high(self):
        candidate = track(
            Platform.SPOTIFY, "sp1", "Yesterday - Remastered 2009", "The Beatles", "Help!", 125000
        )
        self.assertGreaterEqual(score(self.yesterday, candidate), 0.75)

    def test_album_qualifiers_ignored(self):
        song = CanonicalSong(title="Yesterday", artist="The Beatles", album="Help!", duration_ms=125000)
        candidate = track(
            Platform.SPOTIFY, "sp1", "Yesterday - Remastered 2009", "The Beatles", "Help! (Remastered)", 127000
        )
        self.assertGreaterEqual(score(song, candidate), 0.75)

    def test_case_and_diacritics_do_not_matter(self):
        candidate = track(Platform.SPOTIFY, "sp1", "Café del Mar", "Energy 52")
        plain = CanonicalSong(title="Cafe Del Mar", artist="energy 52")
        accented = CanonicalSong(title="CAFÉ DEL MAR", artist="Energy 52")
        self.assertAlmostEqual(score(plain, candidate), score(accented, candidate))

    def test_exact_match_is_one(self):
        candidate = track(Platform.SPOTIFY, "sp1", "Yesterday", "The Beatles", duration_ms=125000)
        self.assertAlmostEqual(score(self.yesterday, candidate), 1.0)

    def test_wrong_artist_scores_lower(self):
        right = track(Platform.SPOTIFY, "a", "Yesterday", "The Beatles")
        wrong = track(Platform.SPOTIFY, "b", "Yesterday", "Boyz II Men")
        self.assertGreater(score(self.yesterday, right), score(self.yesterday, wrong))

    def test_score_in_unit_interval(self):
        pairs = [
            (CanonicalSong(title="", artist=""), track(Platform.SPOTIFY, "x", "Song", "Artist")),
            (CanonicalSong(title="A", artist="B", duration_ms=1), track(Platform.SPOTIFY, "x", "A", "B", duration_ms=10**9)),
            (CanonicalSong(title="Title", artist="Artist", album="Album"), track(Platform.APPLE_MUSIC, "x", "Other", "Person", "LP")),
            (self.yesterday, track(Platform.SPOTIFY, "x", "Yesterday (Live)", "The Beatles", "Anthology 2", 140000)),
        ]
        for song, candidate in pairs:
            value = score(song, candidate, qualifier_penalty=0.5)
            self.assertGreaterEqual(value, 0.0)
            self.assertLessEqual(value, 1.0)

    def test_duration_penalty_applied(self):
        close = track(Platform.SPOTIFY, "a", "Yesterday", "The Beatles", duration_ms=125000)
        far = track(Platform.SPOTIFY, "b", "Yesterday", "The Beatles", duration_ms=185000)
        self.assertAlmostEqual(score(self.yesterday, far), DURATION_FLOOR)
        self.assertGreater(score(self.yesterday, close), score(self.yesterday, far))

    def test_duration_hint_can_be_ignored(self):
        far = track(Platform.SPOTIFY, "b", "Yesterday", "The Beatles", duration_ms=185000)
        self.assertAlmostEqual(score(self.yesterday, far, respect_duration_hint=False), 1.0)

    def test_qualifier_penalty(self):
        live = CanonicalSong(title="Song (Live)", artist="Band")
        studio = track(Platform.SPOTIFY, "a", "Song", "Band")
        self.assertAlmostEqual(score(live, studio), 1.0)
        self.assertAlmostEqual(score(live, studio, qualifier_penalty=0.2), 0.8)

    def test_album_weighted_when_both_present(self):
        song = CanonicalSong(title="Song", artist="Band", album="First Album")
        candidate = track(Platform.SPOTIFY, "a", "Song", "Band", "Greatest Hits")
        breakdown = score_breakdown(song, candidate)
        self.assertEqual(breakdown.details["album"], 0.0)
        self.assertAlmostEqual(breakdown.similarity, 0.85)


class TestHelpers(unittest.TestCase):
    def test_token_set_similarity(self):
        self.assertEqual(token_set_similarity("a b", "a b"), 1.0)
        self.assertEqual(token_set_similarity("", "a"), 0.0)
        self.assertAlmostEqual(token_set_similarity("song", "song radio edit"), 1 / 3 + 0.1)

    def test_containment_bonus_needs_word_boundary(self):
        self.assertAlmostEqual(token_set_similarity("love", "lovely day"), 0.0)

    def test_duration_factor(self):
        self.assertEqual(duration_factor(None, 1000), 1.0)
        self.assertEqual(duration_factor(200000, 200000), 1.0)
        self.assertAlmostEqual(duration_factor(200000, 207500), 0.925)
        self.assertAlmostEqual(duration_factor(200000, 215000), DURATION_FLOOR)
        self.assertAlmostEqual(duration_factor(200000, 400000), DURATION_FLOOR)


if __name__ == "__main__":
    unittest.main()
