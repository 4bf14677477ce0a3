"""Unit tests for the Spotify platform client."""

import os
import unittest
from unittest.mock import Mock, patch

import requests
from spotipy.exceptions import SpotifyException

from mixtape.exceptions import AuthExpired, PlatformUnavailable, RateLimited
from mixtape.models import Platform
from mixtape.platforms.spotify import SpotifyClient, candidate_from_item, track_uri


def item(track_id, name, artist="Artist", album="Album", duration_ms=200000, **extra):
    data = {
        "id": track_id,
        "name": name,
        "artists": [{"name": artist}, {"name": "Someone Else"}],
        "album": {"name": album},
        "duration_ms": duration_ms,
    }
    data.update(extra)
    return data


class TestSpotifyClient(unittest.TestCase):
    def setUp(self):
        self.sp = Mock()
        self.client = SpotifyClient(sp=self.sp, market="US")

    def test_search_builds_candidates(self):
        self.sp.search.return_value = {
            "tracks": {
                "items": [
                    item("t1", "Yesterday - Remastered 2009", "The Beatles", "Help!", 125000),
                    item("t2", "Unplayable", is_playable=False),
                    None,
                    item("t3", "Yesterday", "Boyz II Men"),
                ]
            }
        }

        candidates = self.client.search("yesterday the beatles", limit=80)

        self.sp.search.assert_called_once_with(q="yesterday the beatles", type="track", limit=50, market="US")
        self.assertEqual([c.native_track_id for c in candidates], ["t1", "t3"])
        first = candidates[0]
        self.assertEqual(first.artist, "The Beatles")
        self.assertEqual(first.album, "Help!")
        self.assertEqual(first.duration_ms, 125000)
        self.assertEqual(first.platform, Platform.SPOTIFY)

    def test_search_empty_response(self):
        self.sp.search.return_value = None
        self.assertEqual(self.client.search("anything"), [])

    def test_rate_limit_translated(self):
        self.sp.search.side_effect = SpotifyException(429, -1, "too many", headers={"Retry-After": "3"})
        with self.assertRaises(RateLimited) as ctx:
            self.client.search("q")
        self.assertEqual(ctx.exception.retry_after, 3.0)
        self.assertEqual(ctx.exception.platform, Platform.SPOTIFY)

    def test_auth_error_translated(self):
        self.sp.search.side_effect = SpotifyException(401, -1, "expired")
        with self.assertRaises(AuthExpired):
            self.client.search("q")

    def test_server_error_translated(self):
        self.sp.search.side_effect = SpotifyException(502, -1, "bad gateway")
        with self.assertRaises(PlatformUnavailable):
            self.client.search("q")

    def test_timeout_translated(self):
        self.sp.search.side_effect = requests.exceptions.ReadTimeout("slow")
        with self.assertRaises(PlatformUnavailable):
            self.client.search("q")

    def test_create_playlist(self):
        self.sp.current_user.return_value = {"id": "user1"}
        self.sp.user_playlist_create.return_value = {"id": "pl1"}

        self.assertEqual(self.client.create_playlist("road trip mixtape", "desc"), "pl1")
        self.client.create_playlist("another", "desc")

        self.sp.current_user.assert_called_once()
        self.sp.user_playlist_create.assert_called_with("user1", "another", public=False, description="desc")

    def test_add_tracks_in_chunks(self):
        ids = [f"id{i}" for i in range(250)]
        self.client.add_tracks("pl1", ids)

        calls = self.sp.playlist_add_items.call_args_list
        self.assertEqual([len(call.args[1]) for call in calls], [100, 100, 50])
        self.assertEqual(calls[0].args[1][0], "spotify:track:id0")

    def test_rename_playlist(self):
        self.client.rename_playlist("pl1", "new name")
        self.sp.playlist_change_details.assert_called_once_with("pl1", name="new name")

    def test_playlist_exists(self):
        self.sp.playlist.return_value = {"id": "pl1"}
        self.assertTrue(self.client.playlist_exists("pl1"))

        self.sp.playlist.side_effect = SpotifyException(404, -1, "not found")
        self.assertFalse(self.client.playlist_exists("pl1"))
        self.assertFalse(self.client.playlist_exists(""))

    def test_search_bounded_by_client_timeout(self):
        client = SpotifyClient(access_token="token", requests_timeout=4.0)
        self.assertEqual(client.sp.requests_timeout, 4.0)

        self.sp.search.return_value = {"tracks": {"items": []}}
        self.client.search("q", timeout=1.0)
        self.assertNotIn("timeout", self.sp.search.call_args.kwargs)

    def test_missing_credentials(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(AuthExpired):
                SpotifyClient()


def test_candidate_requires_id_and_name():
    assert candidate_from_item({"name": "x"}) is None
    assert candidate_from_item({"id": "x", "name": "Song", "artists": []}).artist == ""


def test_track_uri():
    assert track_uri("abc") == "spotify:track:abc"
    assert track_uri("spotify:track:abc") == "spotify:track:abc"


if __name__ == "__main__":
    unittest.main()
