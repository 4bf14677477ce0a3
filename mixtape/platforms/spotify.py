"""Spotify search and playlist client built on spotipy."""

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import requests
import spotipy
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyClientCredentials

from mixtape.exceptions import AuthExpired, PlatformUnavailable, RateLimited
from mixtape.models import Candidate, Platform
from mixtape.platforms.base import PlatformClient

logger = logging.getLogger("mixtape.platforms.spotify")


def _retry_after(headers: Optional[Dict[str, str]]) -> Optional[float]:
    if not headers:
        return None
    value = headers.get("Retry-After") or headers.get("retry-after")
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid Retry-After header: {value}")
        return None


def translate_error(exc: Exception) -> Exception:
    """Map spotipy/requests failures onto the Mixtape error taxonomy."""
    platform = Platform.SPOTIFY
    if isinstance(exc, SpotifyException):
        if exc.http_status == 429:
            return RateLimited(platform, retry_after=_retry_after(exc.headers))
        if exc.http_status in (401, 403):
            return AuthExpired(platform, f"Spotify token expired or invalid: {exc.msg}")
        return PlatformUnavailable(platform, f"Spotify request failed ({exc.http_status}): {exc.msg}")
    if isinstance(exc, requests.exceptions.Timeout):
        return PlatformUnavailable(platform, f"Spotify request timed out: {exc}")
    return PlatformUnavailable(platform, f"Spotify request failed: {exc}")


def _is_playable(item: Dict[str, Any]) -> bool:
    if item.get("is_playable") is False:
        return False
    if item.get("restrictions", {}).get("reason") == "unavailable":
        return False
    if item.get("available_markets") == []:
        return False
    return True


def candidate_from_item(item: Dict[str, Any]) -> Optional[Candidate]:
    """Build a Candidate from a Spotify track object."""
    track_id = item.get("id")
    title = item.get("name")
    if not track_id or not title:
        return None
    artists = item.get("artists") or []
    artist = artists[0].get("name", "") if artists else ""
    album = (item.get("album") or {}).get("name")
    return Candidate(
        native_track_id=track_id,
        title=title.strip(),
        artist=artist.strip(),
        album=album.strip() if album else None,
        duration_ms=item.get("duration_ms"),
        platform=Platform.SPOTIFY,
    )


def track_uri(track_id: str) -> str:
    track_id = track_id.strip()
    if track_id.startswith("spotify:track:"):
        return track_id
    return f"spotify:track:{track_id}"


class SpotifyClient(PlatformClient):
    """Spotify catalog search plus playlist writes for one account."""

    platform = Platform.SPOTIFY
    max_tracks_per_request = 100

    def __init__(
        self,
        access_token: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        market: Optional[str] = None,
        requests_timeout: float = 10.0,
        sp: Optional[spotipy.Spotify] = None,
    ):
        self.market = market
        self._user_id: Optional[str] = None
        if sp is not None:
            self.sp = sp
            return

        if access_token:
            auth_kwargs: Dict[str, Any] = {"auth": access_token}
        else:
            cred_client_id = client_id or os.getenv("SPOTIPY_CLIENT_ID")
            cred_client_secret = client_secret or os.getenv("SPOTIPY_CLIENT_SECRET")
            if not cred_client_id or not cred_client_secret:
                raise AuthExpired(Platform.SPOTIFY, "No Spotify token or client credentials configured")
            auth_kwargs = {
                "auth_manager": SpotifyClientCredentials(
                    client_id=cred_client_id, client_secret=cred_client_secret
                )
            }
        # Backoff is handled by the bulk matcher, not by spotipy
        self.sp = spotipy.Spotify(
            requests_timeout=requests_timeout, retries=0, status_retries=0, **auth_kwargs
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "SpotifyClient":
        return cls(
            access_token=config.get("access_token"),
            client_id=config.get("client_id"),
            client_secret=config.get("client_secret"),
            market=config.get("market"),
            requests_timeout=config.get("requests_timeout", 10.0),
        )

    def _call(self, method, *args, **kwargs):
        try:
            return method(*args, **kwargs)
        except (SpotifyException, requests.exceptions.RequestException) as e:
            raise translate_error(e) from e

    def search(self, query: str, limit: int = 10, timeout: float = 10.0) -> List[Candidate]:
        """Search Spotify tracks.

        ``timeout`` is not used here: spotipy takes one timeout per client, so
        every Spotify call is bounded by ``spotify.requests_timeout`` instead.
        """
        results = self._call(self.sp.search, q=query, type="track", limit=min(limit, 50), market=self.market)
        items = (results or {}).get("tracks", {}).get("items", [])
        candidates = []
        for item in items:
            if not item or not _is_playable(item):
                continue
            candidate = candidate_from_item(item)
            if candidate:
                candidates.append(candidate)
        logger.debug(f'Spotify search "{query}" returned {len(candidates)} candidates')
        return candidates[:limit]

    def _current_user_id(self) -> str:
        if self._user_id is None:
            user = self._call(self.sp.current_user) or {}
            user_id = user.get("id")
            if not user_id:
                raise AuthExpired(Platform.SPOTIFY, "Spotify user ID not available")
            self._user_id = user_id
        return self._user_id

    def create_playlist(self, name: str, description: str = "") -> str:
        created = self._call(
            self.sp.user_playlist_create,
            self._current_user_id(),
            name,
            public=False,
            description=description,
        )
        playlist_id = (created or {}).get("id")
        if not playlist_id:
            raise PlatformUnavailable(Platform.SPOTIFY, "Spotify did not return a playlist id")
        return playlist_id

    def add_tracks(self, playlist_id: str, track_ids: Sequence[str]) -> None:
        uris = [track_uri(t) for t in track_ids if t and t.strip()]
        for i in range(0, len(uris), self.max_tracks_per_request):
            self._call(self.sp.playlist_add_items, playlist_id, uris[i : i + self.max_tracks_per_request])

    def rename_playlist(self, playlist_id: str, name: str) -> None:
        self._call(self.sp.playlist_change_details, playlist_id, name=name)

    def playlist_exists(self, playlist_id: str) -> bool:
        if not playlist_id:
            return False
        try:
            self.sp.playlist(playlist_id, fields="id")
        except SpotifyException as e:
            if e.http_status == 404:
                return False
            raise translate_error(e) from e
        except requests.exceptions.RequestException as e:
            raise translate_error(e) from e
        return True
