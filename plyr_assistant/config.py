"""
Configuration and settings for Plyr Assistant.
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field


def get_default_data_dir() -> Path:
    """Get the default directory for persisted assistant data."""
    return Path(os.environ.get("PLYR_ASSISTANT_DATA_DIR", Path.home() / ".local" / "share" / "plyr-assistant"))


class CatalogConfig(BaseModel):
    """Catalog search service configuration."""

    base_url: str = Field(
        default_factory=lambda: os.environ.get("PLYR_ASSISTANT_CATALOG_URL", "https://api.spotify.com/v1")
    )
    access_token: str | None = Field(
        default_factory=lambda: os.environ.get("PLYR_ASSISTANT_CATALOG_TOKEN")
    )
    timeout: float = Field(default=10.0)


class VideoLookupConfig(BaseModel):
    """Video lookup service configuration."""

    base_url: str = Field(
        default_factory=lambda: os.environ.get(
            "PLYR_ASSISTANT_VIDEO_URL", "https://www.googleapis.com/youtube/v3"
        )
    )
    api_key: str | None = Field(
        default_factory=lambda: os.environ.get("PLYR_ASSISTANT_VIDEO_API_KEY")
    )
    timeout: float = Field(default=10.0)


class StorageConfig(BaseModel):
    """Conversation log configuration."""

    history_file: str = Field(default="assistant_chat.json")


class Config(BaseModel):
    """Main configuration."""

    locale: str = Field(
        default_factory=lambda: os.environ.get("PLYR_ASSISTANT_LOCALE", "en")
    )
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    video: VideoLookupConfig = Field(default_factory=VideoLookupConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    data_dir: Path = Field(default_factory=get_default_data_dir)

    @property
    def history_path(self) -> Path:
        """Full path of the persisted conversation log."""
        return self.data_dir / self.storage.history_file


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration."""
    global _config
    _config = config
