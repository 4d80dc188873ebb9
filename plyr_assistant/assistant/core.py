"""
Voice assistant core - session state machine and command pipeline.

This ties together:
- Gesture activation
- Speech capture (partial and final transcripts)
- Intent classification
- Action dispatch against the player
- Conversation log and spoken replies
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, fields
from enum import Enum, IntEnum
from pathlib import Path
from typing import Callable, Optional

from plyr_assistant.assistant.activation import ActivationConfig, ActivationEvent, ActivationOutcome
from plyr_assistant.assistant.dispatcher import ActionDispatcher
from plyr_assistant.assistant.storage import ConversationHistory, JsonConversationStore, Role
from plyr_assistant.config import Config, get_config
from plyr_assistant.nlu.classifier import IntentClassifier
from plyr_assistant.nlu.lexicon import StringTable
from plyr_assistant.services.base import (
    CatalogSearchService,
    PlaybackController,
    SpeechCaptureService,
    SpeechOutputService,
    VideoLookupService,
)

logger = logging.getLogger(__name__)


class SessionPhase(Enum):
    """Voice session state machine states."""

    IDLE = "idle"  # Waiting for activation
    PULLING = "pulling"  # Activation gesture in progress
    LISTENING = "listening"  # Capturing speech
    PROCESSING = "processing"  # Classify -> dispatch
    SPEAKING = "speaking"  # Speaking the reply


class CaptureError(IntEnum):
    """Error codes reported through ``on_error`` besides the recognizer's own."""

    CLIENT = 5  # Capture or pipeline failure
    INSUFFICIENT_PERMISSIONS = 9
    NOT_AVAILABLE = 100


@dataclass
class VoiceSession:
    """One activation-to-reply cycle."""

    attempt_id: int
    phase: SessionPhase = SessionPhase.LISTENING
    partial_text: str = ""
    cancelled: bool = False


_CALLBACKS = ("on_partial", "on_response", "on_error", "on_open_conversation", "on_phase_change")


@dataclass
class AssistantConfig:
    """Configuration for the voice assistant."""

    # NLU
    locale: Optional[str] = None  # None uses the global config locale
    intent_model_path: Optional[str] = None  # ONNX model, rules only when unset
    fuzzy_matching: bool = False
    neural_timeout_s: float = 0.5

    # Behavior
    speak_replies: bool = True
    preempt_active_session: bool = False  # Cancel the running session on a new start
    history_file: Optional[str] = None  # None uses <data_dir>/assistant_chat.json
    verbose: bool = False

    # Activation gesture
    activation_threshold: float = 120.0
    max_pull: float = 200.0
    base_resistance: float = 0.6
    min_resistance: float = 0.15
    hold_duration_s: float = 0.6

    # Callbacks
    on_partial: Optional[Callable[[str], None]] = None
    on_response: Optional[Callable[[str], None]] = None
    on_error: Optional[Callable[[int], None]] = None
    on_open_conversation: Optional[Callable[[], None]] = None
    on_phase_change: Optional[Callable[[SessionPhase], None]] = None

    @classmethod
    def from_yaml(cls, path: str) -> dict:
        """Load config values from a YAML file.

        Returns a dict of config keys -> values (not an AssistantConfig instance).
        Caller merges it with CLI overrides before constructing.
        Unknown keys and callback names are ignored.
        """
        import yaml

        yaml_path = Path(path).expanduser()
        with open(yaml_path) as f:
            raw = yaml.safe_load(f) or {}

        valid_keys = {f.name for f in fields(cls) if f.name not in _CALLBACKS}
        return {k: v for k, v in raw.items() if k in valid_keys}

    def activation_config(self) -> ActivationConfig:
        return ActivationConfig(
            activation_threshold=self.activation_threshold,
            max_pull=self.max_pull,
            base_resistance=self.base_resistance,
            min_resistance=self.min_resistance,
            hold_duration_s=self.hold_duration_s,
        )


class _CaptureListener:
    """Forwards capture callbacks tagged with the attempt they belong to."""

    def __init__(self, owner: "VoiceSessionController", attempt_id: int):
        self._owner = owner
        self._attempt_id = attempt_id

    def on_partial(self, text: str) -> None:
        self._owner._on_partial(self._attempt_id, text)

    def on_result(self, text: str) -> None:
        self._owner._on_result(self._attempt_id, text)

    def on_error(self, code: int) -> None:
        self._owner._on_capture_error(self._attempt_id, code)

    def on_ready(self) -> None:
        logger.debug("Speech capture ready (attempt %d)", self._attempt_id)


class VoiceSessionController:
    """
    Runs voice sessions: capture -> classify -> dispatch -> log -> speak.

    At most one session is active. A second ``start()`` is rejected unless
    ``preempt_active_session`` is set, in which case the running session is
    cancelled first.

    Usage:
        assistant = VoiceSessionController.create(
            AssistantConfig(locale="en"),
            controller=my_player,
            capture=my_recognizer,
            speech_output=my_tts,
        )
        assistant.start()            # Begin listening
        assistant.submit_text("next")  # Typed command, returns the reply
    """

    def __init__(
        self,
        config: AssistantConfig,
        classifier: IntentClassifier,
        dispatcher: ActionDispatcher,
        controller: PlaybackController,
        history: ConversationHistory,
        capture: Optional[SpeechCaptureService] = None,
        speech_output: Optional[SpeechOutputService] = None,
        locale: Optional[str] = None,
    ):
        self.config = config
        self.classifier = classifier
        self.dispatcher = dispatcher
        self.controller = controller
        self.history = history
        self.capture = capture
        self.speech_output = speech_output
        self.locale = locale or config.locale or get_config().locale

        self._lock = threading.Lock()
        self._phase = SessionPhase.IDLE
        self._session: Optional[VoiceSession] = None
        self._next_attempt = 0

        # Classification, lookups and dispatch run off the caller's thread
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="assistant")

        self._activation_events: Optional[queue.Queue] = None
        self._activation_thread: Optional[threading.Thread] = None

        # HTTP clients built by create(), closed on shutdown
        self._owned_services: list = []

    @classmethod
    def create(
        cls,
        config: Optional[AssistantConfig] = None,
        controller: Optional[PlaybackController] = None,
        capture: Optional[SpeechCaptureService] = None,
        speech_output: Optional[SpeechOutputService] = None,
        catalog: Optional[CatalogSearchService] = None,
        video: Optional[VideoLookupService] = None,
        history: Optional[ConversationHistory] = None,
        settings: Optional[Config] = None,
        remote_services: bool = True,
    ) -> "VoiceSessionController":
        """
        Build an assistant with default collaborators.

        Args:
            config: Assistant configuration
            controller: Playback controller (in-memory player if None)
            capture: Speech capture service (voice sessions unavailable if None)
            speech_output: Speech output service (replies are not spoken if None)
            catalog: Catalog search (HTTP client from settings if None)
            video: Video lookup (HTTP client from settings if None)
            history: Conversation log (JSON file from settings if None)
            settings: Global settings (``get_config()`` if None)
            remote_services: Create HTTP lookup clients for missing catalog/video
        """
        from plyr_assistant.services.local import InMemoryPlaybackController
        from plyr_assistant.services.remote import HttpCatalogSearch, HttpVideoLookup

        config = config or AssistantConfig()
        settings = settings or get_config()
        locale = config.locale or settings.locale

        strings = StringTable.load(locale)
        classifier = IntentClassifier.create(
            locale=strings.locale,
            model_path=config.intent_model_path,
            fuzzy_matching=config.fuzzy_matching,
            neural_timeout_s=config.neural_timeout_s,
            strings=strings,
        )
        owned = []
        if remote_services:
            if catalog is None:
                catalog = HttpCatalogSearch(settings.catalog)
                owned.append(catalog)
            if video is None:
                video = HttpVideoLookup(settings.video)
                owned.append(video)
        dispatcher = ActionDispatcher(strings, catalog=catalog, video=video)
        if history is None:
            history_path = Path(config.history_file).expanduser() if config.history_file else settings.history_path
            history = ConversationHistory(JsonConversationStore(history_path))

        assistant = cls(
            config,
            classifier,
            dispatcher,
            controller or InMemoryPlaybackController(),
            history,
            capture=capture,
            speech_output=speech_output,
            locale=strings.locale,
        )
        assistant._owned_services.extend(owned)
        return assistant

    # ── State ──

    @property
    def phase(self) -> SessionPhase:
        with self._lock:
            return self._phase

    @property
    def session(self) -> Optional[VoiceSession]:
        with self._lock:
            return self._session

    def is_active(self) -> bool:
        with self._lock:
            return self._session is not None

    def _set_phase(self, new_phase: SessionPhase, session: Optional[VoiceSession] = None) -> None:
        """Set the phase (ignored for a session that is no longer current)."""
        with self._lock:
            if session is not None and session is not self._session:
                return
            old_phase = self._phase
            self._phase = new_phase
            if self._session is not None:
                self._session.phase = new_phase
        if old_phase != new_phase:
            logger.debug("Phase: %s -> %s", old_phase.value, new_phase.value)
            if self.config.on_phase_change:
                self.config.on_phase_change(new_phase)

    def _finish(self, session: VoiceSession) -> None:
        """Return to IDLE if the session is still current."""
        with self._lock:
            if session is not self._session:
                return
            self._session = None
        self._set_phase(SessionPhase.IDLE)

    # ── Voice sessions ──

    def start(self) -> bool:
        """
        Start listening.

        Returns:
            True if capture started, False if unavailable, not permitted or
            another session is active.
        """
        if self.capture is None or not self.capture.is_available():
            logger.warning("Speech capture is not available")
            self._notify_error(CaptureError.NOT_AVAILABLE)
            return False
        if not self.capture.has_permission():
            logger.warning("Microphone permission not granted")
            self._notify_error(CaptureError.INSUFFICIENT_PERMISSIONS)
            return False

        if self.is_active():
            if not self.config.preempt_active_session:
                logger.info("A voice session is already active, ignoring start")
                return False
            logger.info("Pre-empting the active voice session")
            self.cancel()

        session = self._begin_session()
        if session is None:
            return False

        self.capture.set_listener(_CaptureListener(self, session.attempt_id))
        self._set_phase(SessionPhase.LISTENING, session)
        try:
            self.capture.start(self.locale)
        except Exception:
            logger.exception("Failed to start speech capture")
            self._finish(session)
            self._notify_error(CaptureError.CLIENT)
            return False

        logger.info("Listening...")
        return True

    def cancel(self) -> None:
        """Cancel the current session in any phase."""
        with self._lock:
            session = self._session
            self._session = None
            if session is not None:
                session.cancelled = True

        if session is not None:
            logger.debug("Cancelling session %d", session.attempt_id)
            if self.capture is not None:
                try:
                    self.capture.cancel()
                except Exception as e:
                    logger.warning("Speech capture cancel failed: %s", e)
            if self.speech_output is not None:
                try:
                    self.speech_output.stop()
                except Exception as e:
                    logger.warning("Speech output stop failed: %s", e)

        self._set_phase(SessionPhase.IDLE)

    def submit_text(self, text: str) -> Optional[str]:
        """
        Run a typed utterance through the pipeline and wait for the reply.

        Returns:
            Reply text, or None if the text is blank, another session is
            active or the session was cancelled.
        """
        if not text or not text.strip():
            return None

        if self.is_active():
            if not self.config.preempt_active_session:
                logger.info("A voice session is already active, ignoring typed command")
                return None
            self.cancel()

        session = self._begin_session(SessionPhase.PROCESSING)
        if session is None:
            return None
        return self._executor.submit(self._run_pipeline, session, text.strip()).result()

    def _begin_session(self, phase: SessionPhase = SessionPhase.LISTENING) -> Optional[VoiceSession]:
        with self._lock:
            if self._session is not None:
                return None
            self._next_attempt += 1
            self._session = VoiceSession(self._next_attempt, phase=phase)
            return self._session

    def _current(self, attempt_id: int) -> Optional[VoiceSession]:
        """The active session if it matches the attempt and was not cancelled."""
        with self._lock:
            session = self._session
            if session is None or session.attempt_id != attempt_id or session.cancelled:
                return None
            return session

    def _on_partial(self, attempt_id: int, text: str) -> None:
        session = self._current(attempt_id)
        if session is None or session.phase is not SessionPhase.LISTENING:
            return
        session.partial_text = text
        if self.config.on_partial:
            self.config.on_partial(text)

    def _on_result(self, attempt_id: int, text: str) -> None:
        session = self._current(attempt_id)
        if session is None or session.phase is not SessionPhase.LISTENING:
            return

        text = (text or "").strip()
        if not text:
            logger.debug("(no speech detected)")
            self._finish(session)
            return

        logger.info("You: %s", text)
        self._set_phase(SessionPhase.PROCESSING, session)
        self._executor.submit(self._run_pipeline, session, text)

    def _on_capture_error(self, attempt_id: int, code: int) -> None:
        session = self._current(attempt_id)
        if session is None:
            return
        logger.warning("Speech capture error %d", code)
        session.partial_text = ""
        self._finish(session)
        self._notify_error(code)

    def _run_pipeline(self, session: VoiceSession, text: str) -> Optional[str]:
        """Process a final utterance: log -> classify -> dispatch -> log -> speak."""
        try:
            if session.cancelled:
                return None
            self.history.append(Role.USER, text)
            self._set_phase(SessionPhase.PROCESSING, session)

            if session.cancelled:
                return None
            result = self.classifier.classify(text)
            if self.config.verbose:
                logger.debug("Intent: %s (%.2f) %s", result.intent, result.confidence, result.entities)

            if session.cancelled:
                return None
            reply = self.dispatcher.perform(result, self.controller)

            if session.cancelled:
                return None
            self.history.append(Role.ASSISTANT, reply)
            logger.info("Assistant: %s", reply)

            if self.config.on_response:
                self.config.on_response(reply)

            if self.config.speak_replies and self.speech_output is not None:
                if session.cancelled:
                    return reply
                self._set_phase(SessionPhase.SPEAKING, session)
                self.speech_output.speak(reply)

            self._finish(session)
            return reply

        except Exception:
            logger.exception("Error processing utterance")
            self._finish(session)
            self._notify_error(CaptureError.CLIENT)
            return None

    def _notify_error(self, code: int) -> None:
        if self.config.on_error:
            self.config.on_error(int(code))

    # ── Activation ──

    def begin_pull(self) -> None:
        """Mark an activation gesture in progress (only while idle)."""
        with self._lock:
            if self._session is not None or self._phase is not SessionPhase.IDLE:
                return
        self._set_phase(SessionPhase.PULLING)

    def handle_activation(self, event: ActivationEvent) -> None:
        """React to an activation gesture outcome."""
        if self.phase is SessionPhase.PULLING:
            self._set_phase(SessionPhase.IDLE)

        if event.outcome is ActivationOutcome.QUICK_RELEASE:
            self.start()
        elif event.outcome is ActivationOutcome.HOLD:
            if self.config.on_open_conversation:
                self.config.on_open_conversation()

    def consume_activation_events(self, events: queue.Queue) -> threading.Thread:
        """
        Handle activation events from a queue in a background thread.

        The thread stops when ``shutdown()`` is called.
        """
        self._activation_events = events

        def _consume():
            while True:
                event = events.get()
                if event is None:
                    break
                try:
                    self.handle_activation(event)
                except Exception:
                    logger.exception("Activation handling error")

        thread = threading.Thread(target=_consume, daemon=True, name="ActivationEvents")
        thread.start()
        self._activation_thread = thread
        return thread

    def shutdown(self) -> None:
        """Cancel any session and release resources."""
        self.cancel()
        self.dispatcher.sleep_timer.cancel()
        if self._activation_events is not None:
            self._activation_events.put(None)
            self._activation_events = None
        self._executor.shutdown(wait=False)
        self.classifier.close()
        for service in self._owned_services:
            try:
                service.close()
            except Exception as e:
                logger.warning("Failed to close %s: %s", type(service).__name__, e)
        self._owned_services = []
