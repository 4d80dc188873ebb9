"""
Persistent conversation log.

Messages are stored as a JSON list, oldest first::

    [{"role": "user", "text": "play jazz", "timestamp": "2024-05-01T10:00:00+00:00"}, ...]
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Role(Enum):
    """Author of a chat message."""

    USER = "user"
    ASSISTANT = "assistant"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Any) -> datetime:
    # Older logs stored epoch milliseconds
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class ChatMessage:
    """One utterance or reply in the conversation."""

    role: Role
    text: str
    timestamp: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ChatMessage":
        """
        Build a message from its stored form.

        Raises:
            KeyError, ValueError: the entry is malformed
        """
        role = data["role"]
        if isinstance(role, str):
            role = role.lower()
        return cls(
            role=Role(role),
            text=str(data["text"]),
            timestamp=_parse_timestamp(data["timestamp"]),
        )


class ConversationStore(ABC):
    """Abstract storage for the ordered conversation log."""

    @abstractmethod
    def load(self) -> list[ChatMessage]:
        """Load all messages, oldest first."""
        pass

    @abstractmethod
    def save(self, messages: list[ChatMessage]) -> None:
        """Replace the stored log with the given messages."""
        pass


class JsonConversationStore(ConversationStore):
    """Conversation log kept in a single JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def load(self) -> list[ChatMessage]:
        if not self.path.exists():
            return []

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning("Could not read conversation log %s: %s", self.path, e)
            return []

        if not isinstance(data, list):
            logger.warning("Conversation log %s is not a list, ignoring it", self.path)
            return []

        messages = []
        for entry in data:
            try:
                messages.append(ChatMessage.from_dict(entry))
            except (KeyError, ValueError, TypeError) as e:
                logger.warning("Could not read conversation log %s: %s", self.path, e)
                return []
        return messages

    def save(self, messages: list[ChatMessage]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps([m.to_dict() for m in messages], indent=2, ensure_ascii=False)

        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


class ConversationHistory:
    """
    In-memory conversation log backed by a store.

    The whole log is rewritten after every append.

    Usage:
        history = ConversationHistory(JsonConversationStore("~/chat.json"))
        history.append(Role.USER, "play jazz")
    """

    def __init__(self, store: ConversationStore, messages: Optional[list[ChatMessage]] = None):
        self.store = store
        self._lock = threading.Lock()
        self._messages: list[ChatMessage] = list(messages) if messages is not None else store.load()

    def append(self, role: Role, text: str) -> ChatMessage:
        """Append a message and persist the log."""
        message = ChatMessage(role, text)
        with self._lock:
            self._messages.append(message)
            snapshot = list(self._messages)
            self.store.save(snapshot)
        return message

    @property
    def messages(self) -> list[ChatMessage]:
        with self._lock:
            return list(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()
            self.store.save([])

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
