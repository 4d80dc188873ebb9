"""
Interfaces of the external collaborators the assistant drives.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol


class ServiceError(RuntimeError):
    """A remote service failed (transport error or unexpected HTTP status)."""


@dataclass
class Track:
    """A playable track handed to the playback controller."""

    local_id: str
    playlist_id: str
    name: str
    artists: str = ""  # Comma separated, may be blank
    catalog_track_id: str = ""
    video_id: Optional[str] = None
    audio_url: Optional[str] = None
    position: int = 0
    last_sync_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "local_id": self.local_id,
            "playlist_id": self.playlist_id,
            "name": self.name,
            "artists": self.artists,
            "catalog_track_id": self.catalog_track_id,
            "video_id": self.video_id,
            "audio_url": self.audio_url,
            "position": self.position,
            "last_sync_time": self.last_sync_time.isoformat(),
        }


@dataclass(frozen=True)
class CatalogTrack:
    """Canonical track returned by the catalog search."""

    id: str
    name: str
    artists: tuple[str, ...] = ()

    @property
    def artist_names(self) -> str:
        return ", ".join(self.artists)


class PlaybackController(ABC):
    """Media-playback controller (transport, queue, current track)."""

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass

    @abstractmethod
    def next(self) -> None:
        pass

    @abstractmethod
    def previous(self) -> None:
        pass

    @abstractmethod
    def cycle_repeat_mode(self) -> None:
        pass

    @abstractmethod
    def current_track(self) -> Optional[Track]:
        pass

    @abstractmethod
    def initialize(self) -> None:
        """Prepare the underlying player before a new playlist is set."""
        pass

    @abstractmethod
    def set_playlist(self, tracks: list[Track], start_index: int = 0) -> None:
        pass

    @abstractmethod
    def load_track(self, track: Track) -> bool:
        """Load a track for playback. Returns False if it cannot be played."""
        pass

    @abstractmethod
    def enqueue(self, track: Track) -> None:
        pass

    def current_playlist(self) -> list[Track]:
        """Tracks of the current playlist (empty if unknown)."""
        return []


class CatalogSearchService(ABC):
    """Resolves free text to a canonical track."""

    @abstractmethod
    def search_best_match(self, query: str) -> Optional[CatalogTrack]:
        pass


class VideoLookupService(ABC):
    """Resolves "title artist" text to a playable media identifier."""

    @abstractmethod
    def find_playable_id(self, query: str) -> Optional[str]:
        pass


class SpeechListener(Protocol):
    """Callbacks delivered by a SpeechCaptureService."""

    def on_partial(self, text: str) -> None: ...

    def on_result(self, text: str) -> None: ...

    def on_error(self, code: int) -> None: ...

    def on_ready(self) -> None: ...


class SpeechCaptureService(ABC):
    """Live speech recognition producing partial and final transcripts."""

    def __init__(self):
        self._listener: Optional[SpeechListener] = None

    def set_listener(self, listener: Optional[SpeechListener]) -> None:
        self._listener = listener

    def is_available(self) -> bool:
        """Whether a recognizer exists on this system."""
        return True

    def has_permission(self) -> bool:
        """Whether the user granted microphone access."""
        return True

    @abstractmethod
    def start(self, locale: Optional[str] = None) -> None:
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def cancel(self) -> None:
        pass


class SpeechOutputService(ABC):
    """Text-to-speech playback with flush semantics."""

    @abstractmethod
    def speak(self, text: str) -> None:
        """Speak text, replacing anything currently being spoken."""
        pass

    @abstractmethod
    def stop(self) -> None:
        pass

    @abstractmethod
    def is_speaking(self) -> bool:
        pass
