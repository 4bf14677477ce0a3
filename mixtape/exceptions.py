"""Exceptions raised by Mixtape."""

from typing import Optional


class MixtapeError(Exception):
    """Base exception for Mixtape."""


class PlatformError(MixtapeError):
    """A streaming platform call failed."""

    def __init__(self, platform, message: Optional[str] = None):
        self.platform = platform
        super().__init__(message or f"{platform} request failed")


class RateLimited(PlatformError):
    """The platform rejected the call because of its rate limit."""

    def __init__(self, platform, retry_after: Optional[float] = None, message: Optional[str] = None):
        self.retry_after = retry_after
        if message is None:
            message = f"{platform} rate limit exceeded"
            if retry_after is not None:
                message += f". Retry after {retry_after} seconds."
        super().__init__(platform, message)


class PlatformUnavailable(PlatformError):
    """The platform could not be reached or answered with a server error."""


class AuthExpired(PlatformError):
    """The user token for the platform is missing, invalid or expired."""


class SyncInProgress(MixtapeError):
    """Another sync or rename currently holds the lease for this playlist."""

    def __init__(self, group_id: str, platform):
        self.group_id = group_id
        self.platform = platform
        super().__init__(f"Sync already in progress for group {group_id} on {platform}")


class SyncDeadlineExceeded(MixtapeError):
    """A sync ran past the deadline derived from its lease."""


class CatalogError(MixtapeError):
    """The submission catalog could not be read or written."""


class PlaylistNotFound(MixtapeError):
    """No active group playlist exists for the requested pair."""
