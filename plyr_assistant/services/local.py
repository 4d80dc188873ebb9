"""
Local, dependency-free implementations of the playback and speech services.

Used by the CLI and handy for driving the assistant without a real player.
"""

import logging
import threading
from enum import Enum
from typing import Optional

from rich.console import Console
from rich.markup import escape

from plyr_assistant.services.base import PlaybackController, SpeechOutputService, Track

logger = logging.getLogger(__name__)


class RepeatMode(Enum):
    """Repeat modes, in cycling order."""

    OFF = "off"
    ALL = "all"
    ONE = "one"


class InMemoryPlaybackController(PlaybackController):
    """
    Playback controller that only keeps state.

    Every operation takes the same lock, so it is safe to call from the
    assistant worker and a UI thread at once.
    """

    def __init__(self, tracks: Optional[list[Track]] = None):
        self._lock = threading.Lock()
        self.playlist: list[Track] = list(tracks or [])
        self.index = 0
        self.is_playing = False
        self.repeat_mode = RepeatMode.OFF
        self.queue: list[Track] = []
        self._loaded: Optional[Track] = None

    def initialize(self) -> None:
        with self._lock:
            self.is_playing = False
            self._loaded = None

    def play(self) -> None:
        with self._lock:
            if self._current() is not None:
                self.is_playing = True

    def pause(self) -> None:
        with self._lock:
            self.is_playing = False

    def next(self) -> None:
        with self._lock:
            if self.queue:
                self._loaded = self.queue.pop(0)
                return
            self._loaded = None
            if self.playlist and self.index < len(self.playlist) - 1:
                self.index += 1
            elif self.playlist and self.repeat_mode is RepeatMode.ALL:
                self.index = 0

    def previous(self) -> None:
        with self._lock:
            self._loaded = None
            if self.index > 0:
                self.index -= 1

    def cycle_repeat_mode(self) -> None:
        with self._lock:
            modes = list(RepeatMode)
            self.repeat_mode = modes[(modes.index(self.repeat_mode) + 1) % len(modes)]
            logger.debug("Repeat mode: %s", self.repeat_mode.value)

    def current_track(self) -> Optional[Track]:
        with self._lock:
            return self._current()

    def current_playlist(self) -> list[Track]:
        with self._lock:
            return list(self.playlist)

    def set_playlist(self, tracks: list[Track], start_index: int = 0) -> None:
        with self._lock:
            self.playlist = list(tracks)
            self.index = max(0, min(start_index, len(self.playlist) - 1)) if self.playlist else 0
            self._loaded = None

    def load_track(self, track: Track) -> bool:
        if not track.video_id and not track.audio_url:
            return False
        with self._lock:
            self._loaded = track
            self.is_playing = True
        return True

    def enqueue(self, track: Track) -> None:
        with self._lock:
            self.queue.append(track)

    def _current(self) -> Optional[Track]:
        if self._loaded is not None:
            return self._loaded
        if 0 <= self.index < len(self.playlist):
            return self.playlist[self.index]
        return None


class ConsoleSpeechOutput(SpeechOutputService):
    """Prints replies to the terminal instead of speaking them."""

    def __init__(self, console: Optional[Console] = None, style: str = "bold green"):
        self.console = console or Console()
        self.style = style
        self._speaking = False

    def speak(self, text: str) -> None:
        self._speaking = True
        try:
            self.console.print(f"[{self.style}]Assistant:[/{self.style}] {escape(text)}")
        finally:
            self._speaking = False

    def stop(self) -> None:
        self._speaking = False

    def is_speaking(self) -> bool:
        return self._speaking
