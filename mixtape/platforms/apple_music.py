"""Apple Music search and library playlist client."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from mixtape.exceptions import AuthExpired, PlatformUnavailable, RateLimited
from mixtape.models import Candidate, Platform
from mixtape.platforms.base import PlatformClient

logger = logging.getLogger("mixtape.platforms.apple_music")

API_BASE = "https://api.music.apple.com/v1"
# Catalog search caps songs per page
MAX_SEARCH_LIMIT = 25


def candidate_from_resource(resource: Dict[str, Any]) -> Optional[Candidate]:
    """Build a Candidate from an Apple Music song resource."""
    attributes = resource.get("attributes") or {}
    song_id = resource.get("id")
    title = attributes.get("name")
    if not song_id or not title:
        return None
    album = attributes.get("albumName")
    return Candidate(
        native_track_id=str(song_id),
        title=title.strip(),
        artist=(attributes.get("artistName") or "").strip(),
        album=album.strip() if album else None,
        duration_ms=attributes.get("durationInMillis"),
        platform=Platform.APPLE_MUSIC,
    )


class AppleMusicClient(PlatformClient):
    """Apple Music catalog search and library playlist writes.

    Catalog search only needs the developer token; playlist calls also need
    the member's Music-User-Token.
    """

    platform = Platform.APPLE_MUSIC
    max_tracks_per_request = 100

    def __init__(
        self,
        developer_token: str,
        music_user_token: Optional[str] = None,
        storefront: str = "us",
        requests_timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        if not developer_token:
            raise AuthExpired(Platform.APPLE_MUSIC, "No Apple Music developer token configured")
        self.developer_token = developer_token
        self.music_user_token = music_user_token
        self.storefront = storefront
        self.requests_timeout = requests_timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AppleMusicClient":
        return cls(
            developer_token=config.get("developer_token"),
            music_user_token=config.get("music_user_token"),
            storefront=config.get("storefront") or "us",
            requests_timeout=config.get("requests_timeout", 10.0),
        )

    def _headers(self, user: bool) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.developer_token}"}
        if user:
            if not self.music_user_token:
                raise AuthExpired(Platform.APPLE_MUSIC, "Apple Music user token is missing")
            headers["Music-User-Token"] = self.music_user_token
        return headers

    def _request(
        self,
        method: str,
        path: str,
        user: bool = False,
        timeout: Optional[float] = None,
        allow_status: tuple = (),
        **kwargs,
    ) -> requests.Response:
        platform = Platform.APPLE_MUSIC
        try:
            response = self.session.request(
                method,
                f"{API_BASE}{path}",
                headers=self._headers(user),
                timeout=timeout or self.requests_timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout as e:
            raise PlatformUnavailable(platform, f"Apple Music request timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            raise PlatformUnavailable(platform, f"Apple Music request failed: {e}") from e

        if response.status_code in allow_status:
            return response
        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            try:
                seconds = float(retry_after) if retry_after is not None else None
            except ValueError:
                logger.warning(f"Invalid Retry-After header: {retry_after}")
                seconds = None
            raise RateLimited(platform, retry_after=seconds)
        if response.status_code in (401, 403):
            raise AuthExpired(platform, f"Apple Music token expired or invalid ({response.status_code})")
        if response.status_code >= 400:
            raise PlatformUnavailable(
                platform, f"Apple Music {method} {path} failed with status {response.status_code}"
            )
        return response

    def search(self, query: str, limit: int = 10, timeout: float = 10.0) -> List[Candidate]:
        response = self._request(
            "GET",
            f"/catalog/{self.storefront}/search",
            params={"term": query, "types": "songs", "limit": min(limit, MAX_SEARCH_LIMIT)},
            timeout=timeout,
        )
        data = response.json() if response.content else {}
        resources = data.get("results", {}).get("songs", {}).get("data", [])
        candidates = [c for c in (candidate_from_resource(r) for r in resources) if c]
        logger.debug(f'Apple Music search "{query}" returned {len(candidates)} candidates')
        return candidates[:limit]

    def create_playlist(self, name: str, description: str = "") -> str:
        response = self._request(
            "POST",
            "/me/library/playlists",
            user=True,
            json={"attributes": {"name": name, "description": description}},
        )
        data = response.json().get("data") or []
        if not data or not data[0].get("id"):
            raise PlatformUnavailable(Platform.APPLE_MUSIC, "Apple Music did not return a playlist id")
        return data[0]["id"]

    def add_tracks(self, playlist_id: str, track_ids: Sequence[str]) -> None:
        ids = [t.strip() for t in track_ids if t and t.strip()]
        for i in range(0, len(ids), self.max_tracks_per_request):
            batch = ids[i : i + self.max_tracks_per_request]
            self._request(
                "POST",
                f"/me/library/playlists/{playlist_id}/tracks",
                user=True,
                json={"data": [{"id": song_id, "type": "songs"} for song_id in batch]},
            )

    def rename_playlist(self, playlist_id: str, name: str) -> None:
        # The Apple Music API has no endpoint for renaming library playlists
        logger.warning(
            f"Apple Music does not support renaming playlist {playlist_id}; only the stored name changes"
        )

    def playlist_exists(self, playlist_id: str) -> bool:
        if not playlist_id:
            return False
        response = self._request(
            "GET", f"/me/library/playlists/{playlist_id}", user=True, allow_status=(404,)
        )
        return response.status_code != 404
