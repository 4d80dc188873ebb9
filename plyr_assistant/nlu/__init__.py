"""
Natural-language understanding: trigger lexicon and intent classifiers.
"""

from plyr_assistant.nlu.base import ClassifierBackend, Intent, IntentResult
from plyr_assistant.nlu.classifier import ClassifierStrategy, IntentClassifier
from plyr_assistant.nlu.lexicon import StringTable, TriggerLexicon
from plyr_assistant.nlu.neural import NeuralClassifier
from plyr_assistant.nlu.rules import RuleBasedClassifier

__all__ = [
    "ClassifierBackend",
    "ClassifierStrategy",
    "Intent",
    "IntentClassifier",
    "IntentResult",
    "NeuralClassifier",
    "RuleBasedClassifier",
    "StringTable",
    "TriggerLexicon",
]
