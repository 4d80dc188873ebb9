"""
Intent classifier facade.

The strategy is chosen once, at construction, from an explicit capability
probe of the neural model. Classification itself never raises.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

from plyr_assistant.nlu.base import Intent, IntentResult
from plyr_assistant.nlu.lexicon import DEFAULT_LOCALE, StringTable, TriggerLexicon, split_phrases
from plyr_assistant.nlu.neural import NeuralClassifier
from plyr_assistant.nlu.rules import RuleBasedClassifier

logger = logging.getLogger(__name__)


class ClassifierStrategy(Enum):
    """Classification strategies."""

    RULE_BASED = "rule_based"
    NEURAL = "neural"  # Neural label, rule-based entities, rules as fallback


class IntentClassifier:
    """
    Turns an utterance into an IntentResult.

    Usage:
        classifier = IntentClassifier.create(locale="en")
        result = classifier.classify('play "Bohemian Rhapsody"')
        # IntentResult(intent="play_search", confidence=0.9,
        #              entities={"query": "Bohemian Rhapsody"})
    """

    def __init__(self, rules: RuleBasedClassifier, neural: Optional[NeuralClassifier] = None):
        self.rules = rules
        self.neural = neural if neural is not None and neural.is_loaded() else None
        self.strategy = ClassifierStrategy.NEURAL if self.neural else ClassifierStrategy.RULE_BASED
        logger.debug("Intent classifier strategy: %s", self.strategy.value)

    @classmethod
    def create(
        cls,
        locale: str = DEFAULT_LOCALE,
        model_path: Optional[str | Path] = None,
        fuzzy_matching: bool = False,
        neural_timeout_s: float = 0.5,
        strings: Optional[StringTable] = None,
    ) -> "IntentClassifier":
        """
        Build a classifier for a locale.

        Args:
            locale: Locale of the trigger lexicon
            model_path: Optional ONNX intent model; probed once here
            fuzzy_matching: Accept near-miss trigger words
            neural_timeout_s: Maximum time for one model inference
            strings: String table to take triggers from (loaded if None)
        """
        if strings is None:
            strings = StringTable.load(locale)
        lexicon = TriggerLexicon.from_strings(strings)
        rules = RuleBasedClassifier(
            lexicon,
            locale=strings.locale,
            fuzzy_matching=fuzzy_matching,
            filler_words=split_phrases(strings.get("query_filler")),
        )

        neural = None
        if model_path:
            candidate = NeuralClassifier(model_path, timeout_s=neural_timeout_s)
            if candidate.probe():
                neural = candidate
        return cls(rules, neural)

    def classify(self, utterance: str) -> IntentResult:
        """Classify an utterance. Never raises."""
        text = (utterance or "").strip()
        if not text:
            return IntentResult(Intent.NONE, 1.0)

        if self.strategy is ClassifierStrategy.NEURAL:
            result = None
            try:
                result = self.neural.classify(text)
            except Exception as e:
                logger.info("Neural intent inference failed: %s", e)
            if result is not None:
                entities = self.rules.extract_entities(result.intent, text)
                return IntentResult(result.intent, result.confidence, entities)

        try:
            return self.rules.classify(text)
        except Exception:
            logger.exception("Rule-based classification failed for %r", text)
            return IntentResult(Intent.UNKNOWN)

    def close(self) -> None:
        if self.neural is not None:
            self.neural.close()
