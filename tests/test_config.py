"""Tests for configuration loading."""

import os
import tempfile
import unittest
from datetime import timedelta

import pytest
from pydantic import ValidationError

from mixtape.config import MixtapeConfig, SyncConfig, get_config_value
from mixtape.models import Platform


class TestMixtapeConfig(unittest.TestCase):
    def setUp(self):
        self.tempdir = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tempdir.name, "mixtape.yaml")

    def tearDown(self):
        self.tempdir.cleanup()

    def test_defaults(self):
        config = MixtapeConfig()
        self.assertEqual(config.matching.limit, 10)
        self.assertEqual(config.matching.acceptance_threshold, 0.55)
        self.assertEqual(config.matching.target_platforms, [Platform.SPOTIFY, Platform.APPLE_MUSIC])
        self.assertEqual(config.bulk.retry.max_retries, 5)
        self.assertEqual(config.sync.lease_ttl_delta, timedelta(minutes=5))
        self.assertEqual(config.store.db_path, "mixtape.db")
        self.assertFalse(config.spotify.configured)
        self.assertFalse(config.apple_music.configured)

    def test_from_file(self):
        with open(self.path, "w") as f:
            f.write(
                "spotify:\n"
                "  access_token: abc\n"
                "apple_music:\n"
                "  developer_token: dev\n"
                "  storefront: gb\n"
                "matching:\n"
                "  limit: 5\n"
                "  target_platforms: [apple-music]\n"
                "bulk:\n"
                "  concurrency_per_platform: 2\n"
                "  retry:\n"
                "    base_delay: 1.0\n"
                "sync:\n"
                "  lease_ttl: 120\n"
            )
        config = MixtapeConfig.from_file(self.path)

        self.assertTrue(config.spotify.configured)
        self.assertEqual(config.apple_music.storefront, "gb")
        self.assertEqual(config.matching.limit, 5)
        self.assertEqual(config.matching.target_platforms, [Platform.APPLE_MUSIC])
        self.assertEqual(config.bulk.concurrency_per_platform, 2)
        self.assertEqual(config.bulk.retry.base_delay, 1.0)
        self.assertEqual(config.sync.lease_ttl_delta, timedelta(minutes=2))

    def test_empty_file_gives_defaults(self):
        open(self.path, "w").close()
        config = MixtapeConfig.from_file(self.path)
        self.assertEqual(config.sync.sweep_interval, 60.0)

    def test_missing_file(self):
        with self.assertRaises(FileNotFoundError):
            MixtapeConfig.from_file(os.path.join(self.tempdir.name, "nope.yaml"))

    def test_save_and_reload(self):
        config = MixtapeConfig()
        config.store.db_path = "/tmp/other.db"
        config.save(self.path)

        loaded = MixtapeConfig.from_file(self.path)
        self.assertEqual(loaded.store.db_path, "/tmp/other.db")
        self.assertEqual(loaded.matching.target_platforms, config.matching.target_platforms)


def test_get_config_value():
    config = MixtapeConfig()
    assert get_config_value(config, "bulk.retry.max_delay") == 8.0
    assert get_config_value(config, "sync.missing", "fallback") == "fallback"


def test_batch_size_bounds():
    with pytest.raises(ValidationError):
        SyncConfig(add_batch_size=101)
    with pytest.raises(ValidationError):
        SyncConfig(add_batch_size=0)


if __name__ == "__main__":
    unittest.main()
