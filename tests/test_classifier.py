"""
Tests for intent classification (rule-based, neural fallback, facade).
"""

from unittest.mock import MagicMock

import numpy as np
import pytest

from plyr_assistant.nlu import (
    ClassifierStrategy,
    Intent,
    IntentClassifier,
    IntentResult,
    NeuralClassifier,
    RuleBasedClassifier,
    TriggerLexicon,
)
from plyr_assistant.nlu.lexicon import CATEGORY_PRIORITY
from plyr_assistant.nlu.rules import parse_sleep_duration


@pytest.fixture(scope="module")
def classifier():
    return IntentClassifier.create(locale="en")


@pytest.fixture(scope="module")
def spanish():
    return IntentClassifier.create(locale="es")


class TestIntentResult:
    def test_confidence_is_clamped(self):
        assert IntentResult(Intent.PLAY, 1.7).confidence == 1.0
        assert IntentResult(Intent.PLAY, -0.3).confidence == 0.0

    def test_query_defaults_to_empty(self):
        assert IntentResult(Intent.NEXT).query == ""
        assert IntentResult(Intent.SEARCH, 0.95, {"query": "x"}).query == "x"

    def test_to_dict(self):
        result = IntentResult(Intent.SEARCH, 0.95, {"query": "jazz"})
        assert result.to_dict() == {"intent": "search", "confidence": 0.95, "entities": {"query": "jazz"}}


class TestRuleBasedClassification:
    """Behaviour of the English rule set."""

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_blank_is_none(self, classifier, text):
        result = classifier.classify(text)
        assert result.intent == Intent.NONE
        assert result.confidence == 1.0

    def test_quoted_play_keeps_case(self, classifier):
        result = classifier.classify('play "Bohemian Rhapsody"')
        assert result.intent == Intent.PLAY_SEARCH
        assert result.confidence == pytest.approx(0.9)
        assert result.entities == {"query": "Bohemian Rhapsody"}

    def test_search_uses_longest_trigger(self, classifier):
        result = classifier.classify("search for some obscure song")
        assert result.intent == Intent.SEARCH
        assert result.confidence == pytest.approx(0.95)
        assert result.query == "some obscure song"

    def test_search_without_query(self, classifier):
        result = classifier.classify("search")
        assert result.intent == Intent.SEARCH
        assert result.confidence == pytest.approx(0.6)
        assert result.entities == {}

    def test_add_queue_with_query(self, classifier):
        result = classifier.classify("add to queue Under Pressure")
        assert result.intent == Intent.ADD_QUEUE
        assert result.confidence == pytest.approx(0.9)
        assert result.query == "Under Pressure"

    def test_add_queue_without_query(self, classifier):
        result = classifier.classify("add to queue")
        assert result.intent == Intent.ADD_QUEUE
        assert result.confidence == 1.0
        assert result.entities == {}

    def test_play_without_query(self, classifier):
        result = classifier.classify("play")
        assert result.intent == Intent.PLAY
        assert result.confidence == pytest.approx(0.9)

    @pytest.mark.parametrize("text", ["resume", "Continue please", "keep going"])
    def test_resume_maps_to_play(self, classifier, text):
        result = classifier.classify(text)
        assert result.intent == Intent.PLAY
        assert result.confidence == 1.0

    def test_play_query_drops_filler_words(self, classifier):
        result = classifier.classify("play something by Queen please")
        assert result.intent == Intent.PLAY_SEARCH
        assert result.query == "Queen"

    def test_play_only_filler_is_plain_play(self, classifier):
        result = classifier.classify("play something by")
        assert result.intent == Intent.PLAY

    def test_alternative_play_trigger(self, classifier):
        result = classifier.classify("I want to hear Blue in Green")
        assert result.intent == Intent.PLAY_SEARCH
        assert result.query == "Blue in Green"

    @pytest.mark.parametrize(
        "text,intent",
        [
            ("help", Intent.HELP),
            ("what can you do", Intent.HELP),
            ("what's playing", Intent.WHATS_PLAYING),
            ("skip", Intent.NEXT),
            ("next song please", Intent.NEXT),
            ("go back", Intent.PREVIOUS),
            ("pause", Intent.PAUSE),
            ("stop the music", Intent.PAUSE),
            ("repeat", Intent.REPEAT),
            ("open settings", Intent.SETTINGS),
            ("who sings this", Intent.WHO_SINGS),
            ("shuffle", Intent.SHUFFLE),
            ("cancel the sleep timer", Intent.CANCEL_TIMER),
        ],
    )
    def test_plain_intents(self, classifier, text, intent):
        result = classifier.classify(text)
        assert result.intent == intent
        assert result.confidence == 1.0
        assert result.entities == {}

    def test_whats_playing_beats_play(self, classifier):
        # "what's playing" contains "play", priority order decides
        assert classifier.classify("what's playing right now").intent == Intent.WHATS_PLAYING

    @pytest.mark.parametrize(
        "text,intent",
        [
            ("which artist is playing", Intent.WHO_SINGS),
            ("shuffle the playlist", Intent.SHUFFLE),
            ("cancel the timer", Intent.CANCEL_TIMER),
        ],
    )
    def test_contextual_intents_beat_play(self, classifier, text, intent):
        assert classifier.classify(text).intent == intent

    def test_quoted_fallback(self, classifier):
        result = classifier.classify('I love "Yesterday"')
        assert result.intent == Intent.PLAY_SEARCH
        assert result.confidence == pytest.approx(0.9)
        assert result.query == "Yesterday"

    def test_unknown(self, classifier):
        result = classifier.classify("tell me a joke")
        assert result.intent == Intent.UNKNOWN
        assert result.entities == {}

    def test_case_insensitive(self, classifier):
        assert classifier.classify("NEXT").intent == Intent.NEXT
        assert classifier.classify("Pause").intent == Intent.PAUSE

    def test_sleep_timer_minutes(self, classifier):
        result = classifier.classify("sleep timer 30 minutes")
        assert result.intent == Intent.SLEEP_TIMER
        assert result.confidence == pytest.approx(0.9)
        assert result.entities == {"value": "30", "unit": "minutes"}

    def test_sleep_timer_without_duration(self, classifier):
        result = classifier.classify("set a sleep timer")
        assert result.intent == Intent.SLEEP_TIMER
        assert result.confidence == pytest.approx(0.6)
        assert result.entities == {}

    def test_deterministic(self, classifier):
        first = classifier.classify("search for blue train")
        assert all(classifier.classify("search for blue train") == first for _ in range(5))

    @pytest.mark.parametrize(
        "text",
        ["play x", "search", "add to queue", "", "what", '"quoted"', "shuffle", "sleep timer 5 min"],
    )
    def test_confidence_in_range(self, classifier, text):
        assert 0.0 <= classifier.classify(text).confidence <= 1.0


class TestSpanishRules:
    def test_play_with_fillers(self, spanish):
        result = spanish.classify("pon algo de Shakira por favor")
        assert result.intent == Intent.PLAY_SEARCH
        assert result.query == "Shakira"

    def test_next(self, spanish):
        assert spanish.classify("siguiente canción").intent == Intent.NEXT

    def test_add_queue_beats_play(self, spanish):
        result = spanish.classify("añade a la cola Despacito")
        assert result.intent == Intent.ADD_QUEUE
        assert result.query == "Despacito"

    def test_sleep_timer_hours(self, spanish):
        result = spanish.classify("temporizador de 2 horas")
        assert result.intent == Intent.SLEEP_TIMER
        assert result.entities == {"value": "2", "unit": "hours"}

    def test_sleep_timer_beats_play(self, spanish):
        result = spanish.classify("pon un temporizador de 30 minutos")
        assert result.intent == Intent.SLEEP_TIMER
        assert result.entities == {"value": "30", "unit": "minutes"}


class TestLexiconInjection:
    """The classifier only knows what the injected lexicon tells it."""

    def test_custom_lexicon(self):
        lexicon = TriggerLexicon({"xx": {"next": ["zork"], "play": ["blorp"]}})
        rules = RuleBasedClassifier(lexicon, locale="xx")
        assert rules.classify("ZORK now").intent == Intent.NEXT
        result = rules.classify("blorp Some Song")
        assert result.intent == Intent.PLAY_SEARCH
        assert result.query == "Some Song"

    def test_empty_lexicon_is_unknown(self):
        rules = RuleBasedClassifier(TriggerLexicon({}), locale="en")
        assert rules.classify("next").intent == Intent.UNKNOWN


class TestFuzzyMatching:
    @pytest.fixture(scope="class")
    def fuzzy(self):
        return IntentClassifier.create(locale="en", fuzzy_matching=True)

    def test_disabled_by_default(self, classifier):
        assert classifier.classify("nxt").intent == Intent.UNKNOWN

    def test_near_miss_word(self, fuzzy):
        assert fuzzy.classify("nxt").intent == Intent.NEXT
        assert fuzzy.classify("pauze").intent == Intent.PAUSE

    def test_exact_match_unchanged(self, classifier, fuzzy):
        for text in ["search for blue train", "play Queen", "repeat", "what's playing"]:
            assert fuzzy.classify(text) == classifier.classify(text)

    def test_short_words_ignored(self, fuzzy):
        assert fuzzy.classify("ok").intent == Intent.UNKNOWN


# Intent produced by a bare trigger phrase of each category
_CATEGORY_INTENT = {
    "help": Intent.HELP,
    "who_sings": Intent.WHO_SINGS,
    "cancel_timer": Intent.CANCEL_TIMER,
    "sleep_timer": Intent.SLEEP_TIMER,
    "shuffle": Intent.SHUFFLE,
    "whats_playing": Intent.WHATS_PLAYING,
    "next": Intent.NEXT,
    "previous": Intent.PREVIOUS,
    "pause": Intent.PAUSE,
    "repeat": Intent.REPEAT,
    "add_queue": Intent.ADD_QUEUE,
    "play": Intent.PLAY,
    "resume": Intent.PLAY,
    "search": Intent.SEARCH,
    "settings": Intent.SETTINGS,
}


def _trigger_cases():
    cases = []
    for locale in ("en", "es"):
        lexicon = TriggerLexicon.load(locale)
        for rank, category in enumerate(CATEGORY_PRIORITY):
            higher = [t for c in CATEGORY_PRIORITY[:rank] for t in lexicon.triggers(locale, c)]
            for phrase in lexicon.triggers(locale, category):
                if not any(t in phrase for t in higher):
                    cases.append(pytest.param(locale, category, phrase, id=f"{locale}-{category}-{phrase}"))
    return cases


class TestTriggerCoverage:
    """Every trigger phrase, said alone, selects its own category."""

    @pytest.fixture(scope="class")
    def classifiers(self):
        return {locale: IntentClassifier.create(locale=locale) for locale in ("en", "es")}

    def test_every_category_is_mapped(self):
        assert set(_CATEGORY_INTENT) == set(CATEGORY_PRIORITY)

    @pytest.mark.parametrize("locale,category,phrase", _trigger_cases())
    def test_phrase_selects_category(self, classifiers, locale, category, phrase):
        assert classifiers[locale].classify(phrase).intent == _CATEGORY_INTENT[category]


class TestTextHelpers:
    def test_fuzzy_score(self):
        rules = RuleBasedClassifier(TriggerLexicon({}))
        assert rules._fuzzy_score("nxt", ["next"]) == pytest.approx(0.75)
        assert rules._fuzzy_score("pauze please", ["pause"]) == pytest.approx(0.8)
        assert rules._fuzzy_score("ok", ["ok"]) == 0.0  # words under three letters are skipped

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("in 15 minutes", (15, "minutes")),
            ("10 min", (10, "minutes")),
            ("en 20 minutos", (20, "minutes")),
            ("for 2 hours", (2, "hours")),
            ("at 23:30", (23 * 60 + 30, "absolute")),
            ("a las 7", (7 * 60, "absolute")),
            ("whenever", None),
        ],
    )
    def test_parse_sleep_duration(self, text, expected):
        assert parse_sleep_duration(text) == expected


def _fake_neural(label=None, error=None):
    neural = MagicMock(spec=NeuralClassifier)
    neural.is_loaded.return_value = True
    if error is not None:
        neural.classify.side_effect = error
    else:
        neural.classify.return_value = IntentResult(label, 0.95) if label else None
    return neural


class TestNeuralStrategy:
    @pytest.fixture(scope="class")
    def rules(self):
        return IntentClassifier.create(locale="en").rules

    def test_rule_based_without_model(self, classifier):
        assert classifier.strategy is ClassifierStrategy.RULE_BASED

    def test_missing_model_falls_back_to_rules(self, tmp_path):
        classifier = IntentClassifier.create(locale="en", model_path=tmp_path / "missing.onnx")
        assert classifier.strategy is ClassifierStrategy.RULE_BASED
        assert classifier.classify("next").intent == Intent.NEXT

    def test_unloaded_model_not_selected(self, rules):
        neural = _fake_neural("next")
        neural.is_loaded.return_value = False
        assert IntentClassifier(rules, neural).strategy is ClassifierStrategy.RULE_BASED

    def test_neural_label_used(self, rules):
        classifier = IntentClassifier(rules, _fake_neural(Intent.NEXT))
        assert classifier.strategy is ClassifierStrategy.NEURAL
        result = classifier.classify("could you move on")
        assert result.intent == Intent.NEXT
        assert result.confidence == pytest.approx(0.95)

    def test_neural_label_gets_entities(self, rules):
        classifier = IntentClassifier(rules, _fake_neural(Intent.PLAY_SEARCH))
        result = classifier.classify('play "Hey Jude"')
        assert result.intent == Intent.PLAY_SEARCH
        assert result.confidence == pytest.approx(0.95)
        assert result.query == "Hey Jude"

    def test_neural_sleep_timer_gets_duration(self, rules):
        classifier = IntentClassifier(rules, _fake_neural(Intent.SLEEP_TIMER))
        result = classifier.classify("stop the music in 20 minutes")
        assert result.entities == {"value": "20", "unit": "minutes"}

    def test_neural_error_falls_back(self, rules):
        classifier = IntentClassifier(rules, _fake_neural(error=RuntimeError("boom")))
        result = classifier.classify("search for blue train")
        assert result.intent == Intent.SEARCH
        assert result.confidence == pytest.approx(0.95)

    def test_neural_timeout_falls_back(self, rules):
        classifier = IntentClassifier(rules, _fake_neural(error=TimeoutError("slow")))
        assert classifier.classify("skip").intent == Intent.NEXT

    def test_neural_no_answer_falls_back(self, rules):
        classifier = IntentClassifier(rules, _fake_neural(None))
        result = classifier.classify("pause")
        assert result.intent == Intent.PAUSE
        assert result.confidence == 1.0

    def test_blank_skips_neural(self, rules):
        neural = _fake_neural(Intent.NEXT)
        classifier = IntentClassifier(rules, neural)
        assert classifier.classify("  ").intent == Intent.NONE
        neural.classify.assert_not_called()

    def test_close_releases_model(self, rules):
        neural = _fake_neural(Intent.NEXT)
        IntentClassifier(rules, neural).close()
        neural.close.assert_called_once()


class TestNeuralClassifier:
    def test_probe_without_path(self):
        assert NeuralClassifier(None).probe() is False

    def test_probe_missing_file(self, tmp_path):
        neural = NeuralClassifier(tmp_path / "nope.onnx")
        assert neural.probe() is False
        assert not neural.is_loaded()

    def test_classify_when_not_loaded(self):
        assert NeuralClassifier(None).classify("next") is None

    @pytest.mark.parametrize(
        "value,expected",
        [
            (np.array(["next"], dtype=object), "next"),
            (np.array([[b"pause"]], dtype=object), "pause"),
            (["search"], "search"),
            ("  play ", "play"),
            (np.array([], dtype=object), None),
            ([], None),
            (np.array([3.5]), None),
        ],
    )
    def test_decode_label(self, value, expected):
        assert NeuralClassifier._decode_label(value) == expected

    def test_out_of_set_label_ignored(self):
        neural = NeuralClassifier(None)
        neural._session = MagicMock()
        neural._input_name = "text"
        neural._session.run.return_value = [np.array(["dance"], dtype=object)]
        from concurrent.futures import ThreadPoolExecutor

        neural._executor = ThreadPoolExecutor(max_workers=1)
        try:
            assert neural.classify("dance for me") is None
            neural._session.run.return_value = [np.array(["next"], dtype=object)]
            result = neural.classify("move on")
            assert result == IntentResult(Intent.NEXT, 0.95)
        finally:
            neural.close()
