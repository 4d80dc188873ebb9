"""
Action dispatcher - executes a classified intent and produces the reply.
"""

import logging
import random
import time
from concurrent.futures import Executor
from datetime import datetime
from typing import Callable, Optional

from plyr_assistant.assistant.timers import SleepTimer, duration_minutes
from plyr_assistant.nlu.base import Intent, IntentResult
from plyr_assistant.nlu.lexicon import StringTable
from plyr_assistant.services.base import (
    CatalogSearchService,
    CatalogTrack,
    PlaybackController,
    Track,
    VideoLookupService,
)

logger = logging.getLogger(__name__)

# Commands listed by the help reply, as (cmd_*, desc_*) string keys
HELP_COMMANDS = (
    "play",
    "pause",
    "next",
    "previous",
    "play_song",
    "search",
    "add_queue",
    "repeat",
    "whats_playing",
    "who_sings",
    "shuffle",
    "sleep_timer",
    "help",
)

QUEUE_PLAYLIST_ID = "assistant_queue"

# Intents that map to a single controller call and a fixed reply
_TRANSPORT = {
    Intent.PLAY: ("play", "playing"),
    Intent.PAUSE: ("pause", "paused"),
    Intent.NEXT: ("next", "next"),
    Intent.PREVIOUS: ("previous", "previous"),
    Intent.REPEAT: ("cycle_repeat_mode", "repeat_changed"),
}


class ActionDispatcher:
    """
    Executes intents against the playback controller and the lookup services.

    ``perform`` never raises: any failure becomes the generic error reply.

    Usage:
        dispatcher = ActionDispatcher(strings, catalog, video)
        reply = dispatcher.perform(IntentResult("next"), controller)
    """

    def __init__(
        self,
        strings: StringTable,
        catalog: Optional[CatalogSearchService] = None,
        video: Optional[VideoLookupService] = None,
        controller_executor: Optional[Executor] = None,
        sleep_timer: Optional[SleepTimer] = None,
        clock: Callable[[], float] = time.time,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            strings: Localized replies
            catalog: Catalog search (None skips canonicalization)
            video: Video lookup used to find something playable
            controller_executor: Executor owning the controller's thread.
                Controller calls run inline when None.
            sleep_timer: Timer used by the sleep timer intents
            clock: Wall clock in seconds, used for track ids and absolute times
            rng: Random source for shuffling
        """
        self.strings = strings
        self.catalog = catalog
        self.video = video
        self.controller_executor = controller_executor
        self.sleep_timer = sleep_timer or SleepTimer()
        self.clock = clock
        self.rng = rng or random.Random()
        self.last_intent: Optional[str] = None

    def perform(self, result: IntentResult, controller: PlaybackController) -> str:
        """Execute an intent and return the reply text."""
        self.last_intent = result.intent
        try:
            return self._dispatch(result, controller)
        except Exception:
            logger.exception("Failed to perform intent %s", result.intent)
            return self.strings.t("error")

    def _dispatch(self, result: IntentResult, controller: PlaybackController) -> str:
        intent = result.intent
        t = self.strings.t

        if intent == Intent.HELP:
            return self.help_text()

        if intent in _TRANSPORT:
            method, reply = _TRANSPORT[intent]
            self._call(getattr(controller, method))
            return t(reply)

        if intent == Intent.WHATS_PLAYING:
            track = self._call(controller.current_track)
            if track is None:
                return t("nothing_playing")
            return t("now_playing", title=track.name, artists=track.artists or t("unknown_artist"))

        if intent == Intent.WHO_SINGS:
            track = self._call(controller.current_track)
            if track is None:
                return t("nothing_playing")
            return t("artist_info", artists=track.artists or t("unknown_artist"))

        if intent == Intent.SETTINGS:
            return t("open_settings")

        if intent == Intent.PLAY_SEARCH:
            return self._play_search(result.query, controller)

        if intent == Intent.ADD_QUEUE:
            return self._add_queue(result.query, controller)

        if intent == Intent.SEARCH:
            return self._search(result.query)

        if intent == Intent.SHUFFLE:
            return self._shuffle(controller)

        if intent == Intent.SLEEP_TIMER:
            return self._sleep_timer(result, controller)

        if intent == Intent.CANCEL_TIMER:
            self.sleep_timer.cancel()
            return t("timer_cancelled")

        return t("not_understand")

    def help_text(self) -> str:
        t = self.strings.t
        return "\n".join(f"{t('cmd_' + name)} - {t('desc_' + name)}" for name in HELP_COMMANDS)

    def _call(self, fn: Callable, *args):
        """Run a controller call on the controller's execution context."""
        if self.controller_executor is None:
            return fn(*args)
        return self.controller_executor.submit(fn, *args).result()

    def _resolve(self, query: str) -> tuple[Optional[CatalogTrack], Optional[str]]:
        """Look a query up in the catalog, then find a playable id for it."""
        catalog_track = self.catalog.search_best_match(query) if self.catalog else None
        if catalog_track is not None:
            lookup = " ".join([catalog_track.name, *catalog_track.artists]).strip() or query
        else:
            lookup = query
        video_id = self.video.find_playable_id(lookup) if self.video else None
        logger.debug("Resolved %r -> catalog=%s video=%s", query, catalog_track, video_id)
        return catalog_track, video_id

    def _build_track(
        self,
        query: str,
        catalog_track: Optional[CatalogTrack],
        video_id: str,
        millis: int,
        playlist_id: str,
    ) -> Track:
        return Track(
            local_id=f"assistant_{video_id}_{millis}",
            playlist_id=playlist_id,
            name=catalog_track.name if catalog_track else query,
            artists=catalog_track.artist_names if catalog_track else "",
            catalog_track_id=catalog_track.id if catalog_track else "",
            video_id=video_id,
        )

    def _play_search(self, query: str, controller: PlaybackController) -> str:
        t = self.strings.t
        if not query.strip():
            return t("what_play")

        catalog_track, video_id = self._resolve(query)
        if not video_id:
            return t("no_results", query=query)

        millis = int(self.clock() * 1000)
        track = self._build_track(query, catalog_track, video_id, millis, f"assistant_{millis}")

        self._call(controller.initialize)
        self._call(controller.set_playlist, [track], 0)
        try:
            loaded = self._call(controller.load_track, track)
        except Exception as e:
            logger.warning("Could not load %s: %s", track.local_id, e)
            loaded = False
        if not loaded:
            return t("error_play", query=query)

        if track.artists:
            return t("playing_song", title=track.name, artists=track.artists)
        return t("playing_song_no_artist", title=track.name)

    def _add_queue(self, query: str, controller: PlaybackController) -> str:
        t = self.strings.t
        if not query.strip():
            return t("what_add")

        catalog_track, video_id = self._resolve(query)
        if not video_id:
            return t("no_results", query=query)

        millis = int(self.clock() * 1000)
        track = self._build_track(query, catalog_track, video_id, millis, QUEUE_PLAYLIST_ID)
        self._call(controller.enqueue, track)

        if track.artists:
            return t("added_queue", title=track.name, artists=track.artists)
        return t("added_queue_no_artist", title=track.name)

    def _search(self, query: str) -> str:
        t = self.strings.t
        if not query.strip():
            return t("what_search")

        catalog_track = self.catalog.search_best_match(query) if self.catalog else None
        if catalog_track is None:
            return t("no_results", query=query)
        return t(
            "found",
            title=catalog_track.name,
            artists=catalog_track.artist_names or t("unknown_artist"),
        )

    def _shuffle(self, controller: PlaybackController) -> str:
        tracks = self._call(controller.current_playlist)
        if not tracks:
            return self.strings.t("nothing_playing")
        tracks = list(tracks)
        self.rng.shuffle(tracks)
        self._call(controller.set_playlist, tracks, 0)
        return self.strings.t("shuffled")

    def _sleep_timer(self, result: IntentResult, controller: PlaybackController) -> str:
        value = result.entities.get("value")
        unit = result.entities.get("unit", "minutes")
        if not value:
            return self.strings.t("what_time")

        now = datetime.fromtimestamp(self.clock())
        minutes = duration_minutes(int(value), unit, now)
        if minutes <= 0:
            return self.strings.t("what_time")

        self.sleep_timer.start(minutes, lambda: self._call(controller.pause))
        return self.strings.t("sleep_timer_set", minutes=minutes)
