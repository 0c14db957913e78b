"""
NarrationLib - Story narration playback

This module provides the narration state machine, the cancellation tokens
its sessions use and the pygame based audio playback backend.
"""

from DB_Libs.NarrationLib.cancellation import CancellationToken, SessionCancelled
from DB_Libs.NarrationLib.audio_backend import (
    AudioBackend,
    AudioHandle,
    PygameAudioBackend,
    PygameAudioHandle,
)
from DB_Libs.NarrationLib.narration_orchestrator import (
    TRANSITIONS,
    InvalidTransitionError,
    NarrationEvent,
    NarrationOrchestrator,
    NarrationOutcome,
    NarrationSession,
    NarrationState,
    next_transition,
)

__all__ = [
    "CancellationToken",
    "SessionCancelled",
    "AudioBackend",
    "AudioHandle",
    "PygameAudioBackend",
    "PygameAudioHandle",
    "TRANSITIONS",
    "InvalidTransitionError",
    "NarrationEvent",
    "NarrationOrchestrator",
    "NarrationOutcome",
    "NarrationSession",
    "NarrationState",
    "next_transition",
]
