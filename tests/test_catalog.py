import os
import tempfile
import unittest

from mixtape.catalog import SqliteCatalog
from mixtape.exceptions import CatalogError
from mixtape.models import CanonicalSong, Platform


class SqliteCatalogTests(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.catalog = SqliteCatalog(os.path.join(self.tempdir.name, "catalog.db"))

    def tearDown(self):
        self.tempdir.cleanup()

    def test_accepted_submissions_in_order(self):
        first = self.catalog.add_submission("g1", CanonicalSong(title="One", artist="A"))
        self.catalog.add_submission("g1", CanonicalSong(title="Rejected", artist="B"), accepted=False)
        self.catalog.add_submission("g2", CanonicalSong(title="Other group", artist="C"))
        third = self.catalog.add_submission("g1", CanonicalSong(title="Three", artist="D", duration_ms=1000))

        songs = self.catalog.get_accepted_submissions("g1")
        self.assertEqual([s.id for s in songs], [first.id, third.id])
        self.assertEqual(songs[1].duration_ms, 1000)

    def test_platform_ids_round_trip(self):
        song = CanonicalSong(title="One", artist="A", platform_ids={Platform.SPOTIFY: "sp1"})
        self.catalog.add_submission("g1", song)
        loaded = self.catalog.get_accepted_submissions("g1")[0]
        self.assertEqual(loaded.platform_id(Platform.SPOTIFY), "sp1")

    def test_record_only_adds(self):
        song = self.catalog.add_submission("g1", CanonicalSong(title="One", artist="A"))
        self.catalog.record_resolved_platform_id(song.id, Platform.APPLE_MUSIC, "am1")
        self.catalog.record_resolved_platform_id(song.id, Platform.APPLE_MUSIC, "am2")

        loaded = self.catalog.get_accepted_submissions("g1")[0]
        self.assertEqual(loaded.platform_id(Platform.APPLE_MUSIC), "am1")

    def test_record_unknown_song(self):
        with self.assertRaises(CatalogError):
            self.catalog.record_resolved_platform_id("missing", Platform.SPOTIFY, "x")

    def test_group_name(self):
        self.assertIsNone(self.catalog.group_name("g1"))
        self.catalog.set_group_name("g1", "Road Trip")
        self.catalog.set_group_name("g1", "Summer Trip")
        self.assertEqual(self.catalog.group_name("g1"), "Summer Trip")


if __name__ == "__main__":
    unittest.main()
