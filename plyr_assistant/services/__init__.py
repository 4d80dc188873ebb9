"""
External collaborators: playback, catalog search, video lookup and speech.
"""

from plyr_assistant.services.base import (
    CatalogSearchService,
    CatalogTrack,
    PlaybackController,
    ServiceError,
    SpeechCaptureService,
    SpeechListener,
    SpeechOutputService,
    Track,
    VideoLookupService,
)
from plyr_assistant.services.local import ConsoleSpeechOutput, InMemoryPlaybackController, RepeatMode
from plyr_assistant.services.remote import HttpCatalogSearch, HttpVideoLookup

__all__ = [
    "CatalogSearchService",
    "CatalogTrack",
    "ConsoleSpeechOutput",
    "HttpCatalogSearch",
    "HttpVideoLookup",
    "InMemoryPlaybackController",
    "PlaybackController",
    "RepeatMode",
    "ServiceError",
    "SpeechCaptureService",
    "SpeechListener",
    "SpeechOutputService",
    "Track",
    "VideoLookupService",
]
