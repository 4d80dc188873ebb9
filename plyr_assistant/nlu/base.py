"""
Intent model shared by the classifiers and the action dispatcher.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class Intent:
    """Closed set of intent tags."""

    NONE = "none"
    UNKNOWN = "unknown"
    HELP = "help"
    WHATS_PLAYING = "whats_playing"
    PLAY = "play"
    PAUSE = "pause"
    NEXT = "next"
    PREVIOUS = "previous"
    REPEAT = "repeat"
    SETTINGS = "settings"
    PLAY_SEARCH = "play_search"
    ADD_QUEUE = "add_queue"
    SEARCH = "search"
    WHO_SINGS = "who_sings"
    SHUFFLE = "shuffle"
    SLEEP_TIMER = "sleep_timer"
    CANCEL_TIMER = "cancel_timer"

    ALL = frozenset({
        NONE, UNKNOWN, HELP, WHATS_PLAYING, PLAY, PAUSE, NEXT, PREVIOUS,
        REPEAT, SETTINGS, PLAY_SEARCH, ADD_QUEUE, SEARCH, WHO_SINGS,
        SHUFFLE, SLEEP_TIMER, CANCEL_TIMER,
    })

    # Intents whose result carries a free-text "query" entity
    QUERY_INTENTS = frozenset({PLAY_SEARCH, ADD_QUEUE, SEARCH})


@dataclass(frozen=True)
class IntentResult:
    """Result of classifying one utterance."""

    intent: str
    confidence: float = 1.0  # Always within 0.0 - 1.0
    entities: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        clamped = min(1.0, max(0.0, float(self.confidence)))
        object.__setattr__(self, "confidence", clamped)

    @property
    def query(self) -> str:
        """The "query" entity, or an empty string."""
        return self.entities.get("query", "")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "entities": dict(self.entities),
        }


class ClassifierBackend(ABC):
    """Abstract base class for intent classification strategies."""

    name: str = "base"

    @abstractmethod
    def classify(self, text: str) -> IntentResult | None:
        """
        Classify a trimmed, non-empty utterance.

        Args:
            text: Utterance text

        Returns:
            IntentResult, or None when this strategy has no answer
        """
        pass

    def close(self) -> None:
        """Release any resources held by the backend."""
        pass
