"""
Rule-based intent classification: trigger matching plus text extraction.
"""

import logging
import re
from typing import Iterable

from rapidfuzz.distance import Levenshtein

from plyr_assistant.nlu.base import ClassifierBackend, Intent, IntentResult
from plyr_assistant.nlu.lexicon import CATEGORY_PRIORITY, DEFAULT_LOCALE, TriggerLexicon

logger = logging.getLogger(__name__)

_QUOTED = re.compile(r'"(.*?)"')
_WORD_SPLIT = re.compile(r"[\s,.?!]+")

_MINUTES = re.compile(r"(\d+)\s*(?:minuto|minute|min)")
_HOURS = re.compile(r"(\d+)\s*(?:hora|hour|h)")
_AT_TIME = re.compile(r"(\d{1,2})(?:[:.](\d{2}))?")
_AT_MARKERS = ("at ", "a las ")

# Categories whose result is a plain intent with the same tag
_PLAIN_CATEGORIES = {
    "help": Intent.HELP,
    "whats_playing": Intent.WHATS_PLAYING,
    "next": Intent.NEXT,
    "previous": Intent.PREVIOUS,
    "pause": Intent.PAUSE,
    "repeat": Intent.REPEAT,
    "settings": Intent.SETTINGS,
    "who_sings": Intent.WHO_SINGS,
    "shuffle": Intent.SHUFFLE,
    "cancel_timer": Intent.CANCEL_TIMER,
}

# Where to look for the query of each query-bearing intent
_QUERY_CATEGORY = {
    Intent.PLAY_SEARCH: "play",
    Intent.ADD_QUEUE: "add_queue",
    Intent.SEARCH: "search",
}


def parse_sleep_duration(lower: str) -> tuple[int, str] | None:
    """
    Parse a sleep-timer duration from lower-cased text.

    Returns:
        (value, unit) where unit is "minutes", "hours" or "absolute"
        (value is then minutes after midnight), or None
    """
    match = _MINUTES.search(lower)
    if match:
        return int(match.group(1)), "minutes"
    match = _HOURS.search(lower)
    if match:
        return int(match.group(1)), "hours"
    if any(marker in lower for marker in _AT_MARKERS):
        match = _AT_TIME.search(lower)
        if match:
            hour = int(match.group(1))
            minute = int(match.group(2) or 0)
            if hour < 24 and minute < 60:
                return hour * 60 + minute, "absolute"
    return None


class RuleBasedClassifier(ClassifierBackend):
    """
    Classifies utterances by locale-specific trigger phrases.

    Categories are tested in ``CATEGORY_PRIORITY`` order and the first one
    with a trigger contained in the text wins. Pure function of the text,
    the lexicon and the locale.
    """

    name = "rules"

    FUZZY_THRESHOLD = 0.7
    FUZZY_MIN_WORD = 3

    def __init__(
        self,
        lexicon: TriggerLexicon,
        locale: str = DEFAULT_LOCALE,
        fuzzy_matching: bool = False,
        filler_words: Iterable[str] = (),
    ):
        """
        Initialize the classifier.

        Args:
            lexicon: Trigger phrases per locale and category
            locale: Locale whose triggers are used
            fuzzy_matching: Also accept near-miss trigger words
            filler_words: Words trimmed from both ends of a play query
        """
        self.lexicon = lexicon
        self.locale = locale
        self.fuzzy_matching = fuzzy_matching
        self._fillers = sorted(
            {w.strip().lower() for w in filler_words if w.strip()},
            key=len,
            reverse=True,
        )

    def classify(self, text: str) -> IntentResult:
        text = text.strip()
        if not text:
            return IntentResult(Intent.NONE, 1.0)

        lower = text.lower()
        quoted = self._find_quoted(text)

        category = self.match_category(lower)
        if category is None:
            if quoted:
                return IntentResult(Intent.PLAY_SEARCH, 0.9, {"query": quoted})
            return IntentResult(Intent.UNKNOWN)

        return self._build_result(category, text, lower, quoted)

    def match_category(self, lower: str) -> str | None:
        """Return the first category whose triggers occur in the text."""
        for category in CATEGORY_PRIORITY:
            triggers = self._triggers(category)
            if any(t in lower for t in triggers):
                return category

        if not self.fuzzy_matching:
            return None

        for category in CATEGORY_PRIORITY:
            score = self._fuzzy_score(lower, self._triggers(category))
            if score >= self.FUZZY_THRESHOLD:
                logger.debug("Fuzzy match for %s with score %.2f", category, score)
                return category
        return None

    def extract_entities(self, intent: str, text: str) -> dict[str, str]:
        """
        Extract the entities a given intent carries, regardless of how the
        intent label was obtained.
        """
        text = text.strip()
        lower = text.lower()
        if intent in _QUERY_CATEGORY:
            query = self.extract_after(_QUERY_CATEGORY[intent], text, lower) or self._find_quoted(text)
            if query and intent == Intent.PLAY_SEARCH:
                query = self.clean_query(query)
            return {"query": query} if query else {}
        if intent == Intent.SLEEP_TIMER:
            duration = parse_sleep_duration(lower)
            if duration is not None:
                return {"value": str(duration[0]), "unit": duration[1]}
        return {}

    def extract_after(self, category: str, text: str, lower: str | None = None) -> str | None:
        """
        Text following the first trigger phrase of a category.

        Longer phrases are tried first so "search for x" yields "x" rather
        than "for x". Surrounding quotes are stripped.
        """
        if lower is None:
            lower = text.lower()
        source = text if len(text) == len(lower) else lower
        for phrase in sorted(self._triggers(category), key=len, reverse=True):
            key = phrase + " "
            idx = lower.find(key)
            if idx >= 0:
                after = source[idx + len(key):].strip().strip("\"'").strip()
                return after or None
        return None

    def clean_query(self, query: str) -> str:
        """Trim filler words from both ends of a query, keeping its case."""
        cleaned = query.strip()
        changed = True
        while changed and cleaned:
            changed = False
            lower = cleaned.lower()
            for filler in self._fillers:
                if lower == filler:
                    return ""
                if lower.startswith(filler + " "):
                    cleaned = cleaned[len(filler) + 1:].strip()
                    changed = True
                    break
                if lower.endswith(" " + filler):
                    cleaned = cleaned[: -(len(filler) + 1)].strip()
                    changed = True
                    break
        return cleaned

    def _build_result(self, category: str, text: str, lower: str, quoted: str | None) -> IntentResult:
        if category in _PLAIN_CATEGORIES:
            return IntentResult(_PLAIN_CATEGORIES[category])

        if category == "add_queue":
            query = self.extract_after(category, text, lower) or quoted
            if query:
                return IntentResult(Intent.ADD_QUEUE, 0.9, {"query": query})
            return IntentResult(Intent.ADD_QUEUE)

        if category == "play":
            query = self.extract_after(category, text, lower) or quoted
            if query:
                cleaned = self.clean_query(query)
                if cleaned:
                    return IntentResult(Intent.PLAY_SEARCH, 0.9, {"query": cleaned})
            return IntentResult(Intent.PLAY, 0.9)

        if category == "resume":
            return IntentResult(Intent.PLAY)

        if category == "search":
            query = self.extract_after(category, text, lower) or quoted
            if query:
                return IntentResult(Intent.SEARCH, 0.95, {"query": query})
            return IntentResult(Intent.SEARCH, 0.6)

        if category == "sleep_timer":
            duration = parse_sleep_duration(lower)
            if duration is not None:
                return IntentResult(
                    Intent.SLEEP_TIMER, 0.9, {"value": str(duration[0]), "unit": duration[1]}
                )
            return IntentResult(Intent.SLEEP_TIMER, 0.6)

        return IntentResult(Intent.UNKNOWN)

    def _triggers(self, category: str) -> list[str]:
        return self.lexicon.triggers(self.locale, category)

    def _fuzzy_score(self, lower: str, triggers: list[str]) -> float:
        words = [w for w in _WORD_SPLIT.split(lower) if len(w) >= self.FUZZY_MIN_WORD]
        best = 0.0
        for trigger in triggers:
            trigger_words = trigger.split()
            for word in words:
                for tw in trigger_words:
                    if len(tw) < self.FUZZY_MIN_WORD:
                        continue
                    best = max(best, Levenshtein.normalized_similarity(word, tw))
            if len(trigger_words) > 1:
                best = max(best, Levenshtein.normalized_similarity(lower, trigger))
        return best

    @staticmethod
    def _find_quoted(text: str) -> str | None:
        match = _QUOTED.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip()
        return None
