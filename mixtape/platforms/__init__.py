"""Streaming platform clients for Mixtape.

Each client wraps one platform's catalog search and playlist API behind
:class:`~mixtape.platforms.base.PlatformClient`.
"""

import logging
from typing import Dict

from mixtape.exceptions import MixtapeError
from mixtape.models import Platform
from mixtape.platforms.apple_music import AppleMusicClient
from mixtape.platforms.base import PlatformClient
from mixtape.platforms.spotify import SpotifyClient

logger = logging.getLogger("mixtape.platforms")


def create_clients(config) -> Dict[Platform, PlatformClient]:
    """Build a client for every platform that has credentials configured."""
    clients: Dict[Platform, PlatformClient] = {}

    if config.spotify.configured:
        try:
            clients[Platform.SPOTIFY] = SpotifyClient.from_config(config.spotify.model_dump())
        except MixtapeError as e:
            logger.warning(f"Spotify client unavailable: {e}")
    else:
        logger.debug("Spotify not configured")

    if config.apple_music.configured:
        try:
            clients[Platform.APPLE_MUSIC] = AppleMusicClient.from_config(config.apple_music.model_dump())
        except MixtapeError as e:
            logger.warning(f"Apple Music client unavailable: {e}")
    else:
        logger.debug("Apple Music not configured")

    return clients


__all__ = [
    "AppleMusicClient",
    "PlatformClient",
    "SpotifyClient",
    "create_clients",
]
