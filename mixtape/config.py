"""Configuration management for Mixtape."""

from typing import Optional, Dict, Any
from datetime import timedelta
from pathlib import Path
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict
import yaml
import logging

from mixtape.core.bulk import RetryPolicy
from mixtape.models import MatchOptions

logger = logging.getLogger(__name__)


class SpotifyConfig(BaseModel):
    """Spotify connection. Tokens come from the OAuth service."""

    access_token: Optional[str] = None
    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    market: Optional[str] = None
    requests_timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.access_token or (self.client_id and self.client_secret))


class AppleMusicConfig(BaseModel):
    """Apple Music connection."""

    developer_token: Optional[str] = None
    music_user_token: Optional[str] = None
    storefront: str = "us"
    requests_timeout: float = 10.0

    @property
    def configured(self) -> bool:
        return bool(self.developer_token)


class BulkConfig(BaseModel):
    """Bulk matching concurrency and retry options."""

    concurrency_per_platform: int = Field(default=4, ge=1)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    unavailable_retries: int = Field(default=2, ge=0)


class SyncConfig(BaseModel):
    """Playlist sync options."""

    lease_ttl: float = Field(default=300.0, gt=0)  # seconds
    sweep_interval: float = Field(default=60.0, gt=0)
    deadline_margin: float = Field(default=30.0, ge=0)
    playlist_name_template: str = "{group} mixtape"
    playlist_description: str = "Automatically updated with fresh submissions from your group"
    add_batch_size: int = Field(default=100, ge=1, le=100)

    @property
    def lease_ttl_delta(self) -> timedelta:
        return timedelta(seconds=self.lease_ttl)

    @property
    def deadline_margin_delta(self) -> timedelta:
        return timedelta(seconds=self.deadline_margin)


class StoreConfig(BaseModel):
    """Where sync state and the bundled catalog live."""

    db_path: str = "mixtape.db"


class MixtapeConfig(BaseSettings):
    """Main Mixtape configuration."""

    model_config = SettingsConfigDict(env_ignore_empty=True)

    spotify: SpotifyConfig = Field(default_factory=SpotifyConfig)
    apple_music: AppleMusicConfig = Field(default_factory=AppleMusicConfig)
    matching: MatchOptions = Field(default_factory=MatchOptions)
    bulk: BulkConfig = Field(default_factory=BulkConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def from_file(cls, config_path: str | Path = "mixtape.yaml") -> "MixtapeConfig":
        """Load configuration from YAML file."""
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path, "r") as f:
            config_dict = yaml.safe_load(f) or {}

        return cls(
            spotify=SpotifyConfig(**(config_dict.get("spotify") or {})),
            apple_music=AppleMusicConfig(**(config_dict.get("apple_music") or {})),
            matching=MatchOptions(**(config_dict.get("matching") or {})),
            bulk=BulkConfig(**(config_dict.get("bulk") or {})),
            sync=SyncConfig(**(config_dict.get("sync") or {})),
            store=StoreConfig(**(config_dict.get("store") or {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            "spotify": self.spotify.model_dump(),
            "apple_music": self.apple_music.model_dump(),
            "matching": self.matching.model_dump(mode="json"),
            "bulk": self.bulk.model_dump(),
            "sync": self.sync.model_dump(),
            "store": self.store.model_dump(),
        }

    def to_yaml(self) -> str:
        """Convert configuration to YAML string."""
        return yaml.dump(self.to_dict(), default_flow_style=False)

    def save(self, path: str | Path = "mixtape.yaml") -> None:
        """Save configuration to YAML file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            f.write(self.to_yaml())

        logger.info(f"Configuration saved to {path}")


def get_config_value(config: MixtapeConfig, path: str, default: Any = None) -> Any:
    """Get a nested config value using dot notation."""
    keys = path.split(".")
    current = config.model_dump(mode="json")

    for key in keys:
        if isinstance(current, dict) and key in current:
            current = current[key]
        else:
            return default

    return current
