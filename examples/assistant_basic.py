#!/usr/bin/env python3
"""
Basic Assistant Example

This example drives the assistant with typed commands and an in-memory
player, then simulates a pull gesture.

Requirements:
    pip install plyr-assistant

Usage:
    python assistant_basic.py
"""

import queue
import time

from plyr_assistant.assistant import (
    ActivationStateMachine,
    AssistantConfig,
    VoiceSessionController,
)
from plyr_assistant.services import InMemoryPlaybackController, Track


def main():
    player = InMemoryPlaybackController([
        Track(local_id="1", playlist_id="demo", name="Clair de Lune", artists="Claude Debussy", video_id="abc"),
        Track(local_id="2", playlist_id="demo", name="Gymnopedie No.1", artists="Erik Satie", video_id="def"),
    ])

    config = AssistantConfig(
        locale="en",
        speak_replies=False,
        history_file="/tmp/plyr_assistant_demo.json",
        on_open_conversation=lambda: print("(conversation view opened)"),
    )

    # No catalog/video clients: play requests answer "no results"
    assistant = VoiceSessionController.create(config, controller=player, remote_services=False)

    print("\n" + "=" * 50)
    print("Plyr Assistant Ready!")
    print("=" * 50 + "\n")

    for command in ["help", "what's playing", "next", "who sings", "shuffle", "sleep timer 30 minutes"]:
        print(f"You: {command}")
        print(f"Assistant: {assistant.submit_text(command)}\n")

    # Long pull past the threshold opens the conversation view
    events = queue.Queue()
    machine = ActivationStateMachine(config.activation_config(), events)
    assistant.consume_activation_events(events)

    machine.on_drag_start(200, 300)
    machine.on_drag(400)
    time.sleep(config.hold_duration_s + 0.2)

    assistant.shutdown()
    print("Goodbye!")


if __name__ == "__main__":
    main()
