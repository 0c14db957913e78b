"""
Tests for the pygame audio handle and backend.

Handles are driven with fake Sound and Channel objects so no audio device
is needed.
"""

import asyncio
import unittest

import pygame

from DB_Libs.NarrationLib import PygameAudioBackend, PygameAudioHandle
from DB_Libs.errors import AudioPlaybackError


class FakeChannel:
    def __init__(self, busy_polls=0):
        self.busy_polls = busy_polls

    def get_busy(self):
        if self.busy_polls > 0:
            self.busy_polls -= 1
            return True
        return False


class FakeSound:
    def __init__(self, channel=None, error=None):
        self.channel = channel
        self.error = error
        self.volume = None
        self.loops = None
        self.stopped = 0

    def set_volume(self, volume):
        self.volume = volume

    def play(self, loops=0):
        if self.error is not None:
            raise self.error
        self.loops = loops
        return self.channel

    def stop(self):
        self.stopped += 1


class TestPygameAudioHandle(unittest.IsolatedAsyncioTestCase):
    """Tests for PygameAudioHandle."""

    async def test_play_once_then_finish(self):
        sound = FakeSound(FakeChannel(busy_polls=3))
        handle = PygameAudioHandle(sound, poll_interval=0.001)
        handle.set_volume(0.4)

        handle.play()
        await handle.wait_finished()

        self.assertEqual(sound.loops, 0)
        self.assertEqual(sound.volume, 0.4)
        self.assertFalse(handle.is_playing)

    def test_loop_plays_forever(self):
        sound = FakeSound(FakeChannel(busy_polls=1))
        PygameAudioHandle(sound).play(loop=True)
        self.assertEqual(sound.loops, -1)

    def test_volume_is_clamped(self):
        sound = FakeSound()
        handle = PygameAudioHandle(sound)

        handle.set_volume(3)
        self.assertEqual(sound.volume, 1.0)
        handle.set_volume(-1)
        self.assertEqual(sound.volume, 0.0)

    def test_no_free_channel_raises(self):
        with self.assertRaises(AudioPlaybackError):
            PygameAudioHandle(FakeSound(channel=None)).play()

    def test_pygame_error_is_wrapped(self):
        with self.assertRaises(AudioPlaybackError):
            PygameAudioHandle(FakeSound(error=pygame.error("device lost"))).play()

    def test_released_handle_cannot_play(self):
        sound = FakeSound(FakeChannel())
        handle = PygameAudioHandle(sound)

        handle.release()

        self.assertEqual(sound.stopped, 1)
        with self.assertRaises(AudioPlaybackError):
            handle.play()

    async def test_wait_on_stopped_handle_returns(self):
        handle = PygameAudioHandle(FakeSound(FakeChannel(busy_polls=100)))
        handle.play()
        handle.stop()

        await asyncio.wait_for(handle.wait_finished(), timeout=1)


class TestPygameAudioBackend(unittest.TestCase):
    """Tests for input validation that needs no audio device."""

    def test_empty_bytes_rejected(self):
        with self.assertRaises(AudioPlaybackError):
            PygameAudioBackend().load_bytes(b"")

    def test_missing_file_rejected(self):
        with self.assertRaises(AudioPlaybackError) as ctx:
            PygameAudioBackend().load_file("no/such/sound.mp3")
        self.assertIn("not found", ctx.exception.user_message)


if __name__ == "__main__":
    unittest.main()
