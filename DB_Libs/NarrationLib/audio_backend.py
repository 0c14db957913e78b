"""
Audio playback backend.

The narration orchestrator only talks to the two small protocols defined
here, so tests can drive it with in-memory fakes. The concrete backend
plays clips through ``pygame.mixer``: each loaded clip is a ``Sound`` and
playing it claims a free ``Channel``.

Classes:
    AudioHandle: Protocol for one loaded clip
    AudioBackend: Protocol for loading clips
    PygameAudioHandle: AudioHandle on a pygame Sound
    PygameAudioBackend: AudioBackend on pygame.mixer
"""

import asyncio
import io
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

import pygame

from DB_Libs.constants import AUDIO_POLL_INTERVAL
from DB_Libs.errors import AudioPlaybackError

logger = logging.getLogger(__name__)


class AudioHandle(Protocol):
    """A loaded audio clip that can be played at most once at a time."""

    def play(self, loop: bool = False) -> None:
        ...

    def stop(self) -> None:
        ...

    def release(self) -> None:
        ...

    def set_volume(self, volume: float) -> None:
        ...

    async def wait_finished(self) -> None:
        ...


class AudioBackend(Protocol):
    """Factory for audio handles."""

    def load_bytes(self, data: bytes) -> AudioHandle:
        ...

    def load_file(self, path: Union[str, Path]) -> AudioHandle:
        ...


class PygameAudioHandle:
    """AudioHandle backed by a ``pygame.mixer.Sound``."""

    def __init__(self, sound: "pygame.mixer.Sound", poll_interval: float = AUDIO_POLL_INTERVAL):
        self._sound: Optional["pygame.mixer.Sound"] = sound
        self._channel: Optional["pygame.mixer.Channel"] = None
        self._volume = 1.0
        self._poll_interval = poll_interval

    def play(self, loop: bool = False) -> None:
        if self._sound is None:
            raise AudioPlaybackError("Audio clip has already been released.")
        try:
            self._sound.set_volume(self._volume)
            self._channel = self._sound.play(loops=-1 if loop else 0)
        except pygame.error as exc:
            raise AudioPlaybackError(f"Could not play audio: {exc}") from exc
        if self._channel is None:
            raise AudioPlaybackError("No free audio channel to play on.")

    def stop(self) -> None:
        if self._sound is not None:
            self._sound.stop()
        self._channel = None

    def release(self) -> None:
        self.stop()
        self._sound = None

    def set_volume(self, volume: float) -> None:
        self._volume = max(0.0, min(1.0, float(volume)))
        if self._sound is not None:
            self._sound.set_volume(self._volume)

    @property
    def is_playing(self) -> bool:
        return self._channel is not None and self._channel.get_busy()

    async def wait_finished(self) -> None:
        """Return once the clip is no longer playing."""
        while self.is_playing:
            await asyncio.sleep(self._poll_interval)


class PygameAudioBackend:
    """
    AudioBackend on ``pygame.mixer``.

    The mixer is initialised on first use so that constructing the backend
    never touches the audio device.
    """

    def __init__(self, poll_interval: float = AUDIO_POLL_INTERVAL):
        self._poll_interval = poll_interval

    def _ensure_mixer(self) -> None:
        if pygame.mixer.get_init():
            return
        try:
            pygame.mixer.init()
        except pygame.error as exc:
            raise AudioPlaybackError(f"Audio output is not available: {exc}") from exc
        logger.debug("Initialised pygame mixer")

    def load_bytes(self, data: bytes) -> PygameAudioHandle:
        """
        Load an encoded clip (mp3, ogg, wav) from memory.

        Raises:
            AudioPlaybackError: If the data cannot be decoded
        """
        if not data:
            raise AudioPlaybackError("Audio data is empty.")
        self._ensure_mixer()
        try:
            sound = pygame.mixer.Sound(file=io.BytesIO(data))
        except pygame.error as exc:
            raise AudioPlaybackError(f"Could not decode audio: {exc}") from exc
        return PygameAudioHandle(sound, self._poll_interval)

    def load_file(self, path: Union[str, Path]) -> PygameAudioHandle:
        """
        Load a clip from disk.

        Raises:
            AudioPlaybackError: If the file is missing or cannot be decoded
        """
        path = Path(path)
        if not path.is_file():
            raise AudioPlaybackError(f"Audio file not found: {path}")
        self._ensure_mixer()
        try:
            sound = pygame.mixer.Sound(str(path))
        except pygame.error as exc:
            raise AudioPlaybackError(f"Could not decode audio file {path}: {exc}") from exc
        return PygameAudioHandle(sound, self._poll_interval)
