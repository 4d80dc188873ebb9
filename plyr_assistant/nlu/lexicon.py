"""
Localized string table and the trigger lexicon built from it.

Strings live in ``plyr_assistant/resources/strings/<locale>.yaml``. Trigger
phrases are stored as pipe-delimited entries named ``triggers_<category>``,
e.g.::

    triggers_next: "next|skip"

The classifier never reads the string table directly; it receives a
``TriggerLexicon``, which is plain data (locale -> category -> phrases).
"""

import logging
from pathlib import Path
from typing import Iterable, Mapping

import yaml

logger = logging.getLogger(__name__)

STRINGS_DIR = Path(__file__).resolve().parent.parent / "resources" / "strings"
DEFAULT_LOCALE = "en"
TRIGGER_PREFIX = "triggers_"

# Categories in the order the rule-based classifier tests them.
# The first category with a matching trigger wins. Contextual and timer
# categories precede the transport ones, whose triggers ("play") are shorter.
CATEGORY_PRIORITY: tuple[str, ...] = (
    "help",
    "who_sings",
    "cancel_timer",
    "sleep_timer",
    "shuffle",
    "whats_playing",
    "next",
    "previous",
    "pause",
    "repeat",
    "add_queue",
    "play",
    "resume",
    "search",
    "settings",
)


def available_locales() -> list[str]:
    """List locales that ship a string file."""
    return sorted(p.stem for p in STRINGS_DIR.glob("*.yaml"))


def split_phrases(raw: str) -> list[str]:
    """Split a pipe-delimited entry into trimmed, lower-cased phrases."""
    return [p.strip().lower() for p in raw.split("|") if p.strip()]


class StringTable:
    """Translation lookup keyed by token."""

    def __init__(
        self,
        locale: str,
        strings: Mapping[str, str],
        fallback: "StringTable | None" = None,
    ):
        self.locale = locale
        self._strings = dict(strings)
        self._fallback = fallback

    @classmethod
    def load(cls, locale: str = DEFAULT_LOCALE, strings_dir: Path | None = None) -> "StringTable":
        """
        Load the string table for a locale.

        Unknown locales fall back to English. Keys missing from a non-English
        table resolve through the English table.
        """
        directory = strings_dir or STRINGS_DIR
        path = directory / f"{locale}.yaml"
        if not path.exists():
            logger.warning("No strings for locale '%s', falling back to '%s'", locale, DEFAULT_LOCALE)
            locale = DEFAULT_LOCALE
            path = directory / f"{DEFAULT_LOCALE}.yaml"

        fallback = None
        if locale != DEFAULT_LOCALE:
            fallback = cls.load(DEFAULT_LOCALE, strings_dir=directory)

        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        return cls(locale, {str(k): str(v) for k, v in raw.items()}, fallback)

    def get(self, key: str) -> str:
        """Get the raw string for a token (the token itself if missing)."""
        if key in self._strings:
            return self._strings[key]
        if self._fallback is not None:
            return self._fallback.get(key)
        logger.debug("Missing string '%s' for locale '%s'", key, self.locale)
        return key

    def t(self, key: str, **kwargs) -> str:
        """Get a string and fill its ``{placeholders}``."""
        text = self.get(key)
        if not kwargs:
            return text
        try:
            return text.format(**kwargs)
        except (KeyError, IndexError, ValueError):
            logger.warning("Bad format string for '%s': %r", key, text)
            return text

    def keys(self) -> Iterable[str]:
        return self._strings.keys()

    def __contains__(self, key: str) -> bool:
        return key in self._strings


class TriggerLexicon:
    """Per-locale trigger phrases for each intent category."""

    def __init__(self, phrases: Mapping[str, Mapping[str, Iterable[str]]]):
        self._phrases: dict[str, dict[str, list[str]]] = {}
        for locale, categories in phrases.items():
            self._phrases[locale] = {
                category: [p.strip().lower() for p in items if p and p.strip()]
                for category, items in categories.items()
            }

    @classmethod
    def from_strings(cls, *tables: StringTable) -> "TriggerLexicon":
        """Build a lexicon from the ``triggers_*`` entries of string tables."""
        phrases: dict[str, dict[str, list[str]]] = {}
        for table in tables:
            categories = {}
            for key in table.keys():
                if key.startswith(TRIGGER_PREFIX):
                    categories[key[len(TRIGGER_PREFIX):]] = split_phrases(table.get(key))
            phrases[table.locale] = categories
        return cls(phrases)

    @classmethod
    def load(cls, locale: str = DEFAULT_LOCALE) -> "TriggerLexicon":
        """Load the lexicon for one locale from the shipped string files."""
        return cls.from_strings(StringTable.load(locale))

    @property
    def locales(self) -> list[str]:
        return list(self._phrases)

    def triggers(self, locale: str, category: str) -> list[str]:
        """Trigger phrases for a category (empty if unknown)."""
        return list(self._phrases.get(locale, {}).get(category, []))

    def categories(self, locale: str) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._phrases.get(locale, {}).items()}
