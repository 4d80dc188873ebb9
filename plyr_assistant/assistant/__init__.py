"""
Voice assistant: activation, session control, dispatch and conversation log.

Usage:
    from plyr_assistant.assistant import AssistantConfig, VoiceSessionController

    assistant = VoiceSessionController.create(AssistantConfig(locale="en"))
    print(assistant.submit_text("what's playing"))
"""

from plyr_assistant.assistant.activation import (
    ActivationConfig,
    ActivationEvent,
    ActivationOutcome,
    ActivationState,
    ActivationStateMachine,
)
from plyr_assistant.assistant.core import (
    AssistantConfig,
    CaptureError,
    SessionPhase,
    VoiceSession,
    VoiceSessionController,
)
from plyr_assistant.assistant.dispatcher import ActionDispatcher
from plyr_assistant.assistant.storage import (
    ChatMessage,
    ConversationHistory,
    ConversationStore,
    JsonConversationStore,
    Role,
)
from plyr_assistant.assistant.timers import SleepTimer

__all__ = [
    "ActionDispatcher",
    "ActivationConfig",
    "ActivationEvent",
    "ActivationOutcome",
    "ActivationState",
    "ActivationStateMachine",
    "AssistantConfig",
    "CaptureError",
    "ChatMessage",
    "ConversationHistory",
    "ConversationStore",
    "JsonConversationStore",
    "Role",
    "SessionPhase",
    "SleepTimer",
    "VoiceSession",
    "VoiceSessionController",
]
