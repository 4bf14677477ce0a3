"""Abstract base class for streaming platform clients."""

from abc import ABC, abstractmethod
from typing import List, Sequence

from mixtape.models import Candidate, Platform


class PlatformClient(ABC):
    """Search and playlist capability of one streaming platform.

    Implementations raise ``RateLimited``, ``PlatformUnavailable`` or
    ``AuthExpired`` from :mod:`mixtape.exceptions`; nothing else should
    escape a call.
    """

    platform: Platform
    # Most tracks a single add call accepts
    max_tracks_per_request: int = 100

    @abstractmethod
    def search(self, query: str, limit: int = 10, timeout: float = 10.0) -> List[Candidate]:
        """Search the catalog and return candidates in platform relevance order.

        Args:
            query: Free text query
            limit: Maximum number of candidates
            timeout: Seconds before the call counts as unavailable

        Returns:
            List of Candidate objects
        """

    @abstractmethod
    def create_playlist(self, name: str, description: str = "") -> str:
        """Create a playlist and return its native id."""

    @abstractmethod
    def add_tracks(self, playlist_id: str, track_ids: Sequence[str]) -> None:
        """Append tracks to a playlist."""

    @abstractmethod
    def rename_playlist(self, playlist_id: str, name: str) -> None:
        """Change the display name of a playlist."""

    def playlist_exists(self, playlist_id: str) -> bool:
        """Check the playlist is still present on the platform."""
        return bool(playlist_id)
