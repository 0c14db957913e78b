"""
Unit tests for the narration orchestrator and its cancellation tokens.

Audio playback and narration synthesis are replaced with in-memory fakes so
that every teardown path can be driven deterministically.
"""

import asyncio
import threading
import unittest

from DB_Libs.NarrationLib import (
    TRANSITIONS,
    CancellationToken,
    InvalidTransitionError,
    NarrationEvent,
    NarrationOrchestrator,
    NarrationOutcome,
    NarrationState,
    SessionCancelled,
    next_transition,
)
from DB_Libs.ServicesLib import NarratorRegistry
from DB_Libs.errors import AudioPlaybackError, ExternalServiceError


class FakeHandle:
    def __init__(self, data):
        self.data = data
        self.playing = False
        self.released = False
        self.loop = None
        self.volume = None
        self.done = False
        self.fail_on_finish = False

    def play(self, loop=False):
        if self.released:
            raise AudioPlaybackError("released")
        self.playing = True
        self.loop = loop

    def stop(self):
        self.playing = False

    def release(self):
        self.playing = False
        self.released = True

    def set_volume(self, volume):
        self.volume = volume

    async def wait_finished(self):
        while not self.done:
            await asyncio.sleep(0.005)
        self.playing = False
        if self.fail_on_finish:
            raise AudioPlaybackError("decoder crashed")

    def finish(self):
        self.done = True


class FakeBackend:
    def __init__(self):
        self.narration_handles = []
        self.ambient_handles = []
        self.fail_bytes = False
        self.fail_file = False

    def load_bytes(self, data):
        if self.fail_bytes:
            raise AudioPlaybackError("cannot decode")
        handle = FakeHandle(data)
        self.narration_handles.append(handle)
        return handle

    def load_file(self, path):
        if self.fail_file:
            raise AudioPlaybackError("missing")
        handle = FakeHandle(str(path))
        self.ambient_handles.append(handle)
        return handle

    def live(self, handles):
        return [handle for handle in handles if not handle.released]


class EchoNarrator:
    def synthesize(self, text):
        return f"audio:{text}".encode()


class GatedNarrator:
    """Blocks synthesis until the test opens the gate."""

    def __init__(self):
        self.started = threading.Event()
        self.gate = threading.Event()

    def synthesize(self, text):
        self.started.set()
        self.gate.wait(timeout=5)
        return f"late:{text}".encode()


class FailingNarrator:
    def synthesize(self, text):
        raise ExternalServiceError("service down")


async def wait_until(predicate, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


class TestTransitionTable(unittest.TestCase):
    """Tests for the static transition table."""

    def test_undefined_pair_raises(self):
        with self.assertRaises(InvalidTransitionError):
            next_transition(NarrationState.IDLE, NarrationEvent.AUDIO_READY)
        with self.assertRaises(InvalidTransitionError):
            next_transition(NarrationState.COMPLETED, NarrationEvent.FAILURE)

    def test_every_pair_is_defined_or_rejected(self):
        for state in NarrationState:
            for event in NarrationEvent:
                if (state, event) in TRANSITIONS:
                    self.assertIsInstance(next_transition(state, event)[0], NarrationState)
                else:
                    with self.assertRaises(InvalidTransitionError):
                        next_transition(state, event)

    def test_leaving_an_active_state_runs_teardown(self):
        for (state, event), (next_state, teardown) in TRANSITIONS.items():
            if state is not NarrationState.IDLE and next_state in (NarrationState.IDLE, NarrationState.PREPARING):
                self.assertTrue(teardown, f"{state.name} --{event.name}--> {next_state.name}")

    def test_cancel_is_accepted_everywhere(self):
        for state in NarrationState:
            self.assertIs(next_transition(state, NarrationEvent.CANCEL)[0], NarrationState.IDLE)


class TestCancellationToken(unittest.IsolatedAsyncioTestCase):
    """Tests for guarded awaits."""

    async def test_guard_returns_result(self):
        token = CancellationToken()

        async def work():
            return 42

        self.assertEqual(await token.guard(work()), 42)

    async def test_guard_raises_when_cancelled_midway(self):
        token = CancellationToken()
        never = asyncio.get_running_loop().create_future()

        async def cancel_soon():
            await asyncio.sleep(0.01)
            token.cancel("superseded")

        asyncio.create_task(cancel_soon())
        with self.assertRaises(SessionCancelled) as ctx:
            await token.guard(never)

        self.assertEqual(ctx.exception.reason, "superseded")
        self.assertTrue(never.cancelled())

    async def test_guard_on_cancelled_token_raises_immediately(self):
        token = CancellationToken()
        token.cancel("gone")

        async def work():
            return 1

        with self.assertRaises(SessionCancelled):
            await token.guard(work())

    async def test_cancel_is_one_shot(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        self.assertEqual(token.reason, "first")
        self.assertTrue(token.is_cancelled)


class OrchestratorTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.backend = FakeBackend()
        self.registry = NarratorRegistry()
        self.registry.register("echo", EchoNarrator())
        self.registry.register("failing", FailingNarrator())
        self.gated = GatedNarrator()
        self.registry.register("gated", self.gated)
        self.celebrations = 0
        self.errors = []
        self.visibility = []
        self.selected_story_image = None
        self.orchestrator = NarrationOrchestrator(
            self.registry,
            self.backend,
            ambient_track="sounds/ambient.mp3",
            story_image_source=lambda: self.selected_story_image,
            on_celebrate=self._celebrate,
            on_error=self.errors.append,
            on_visibility_change=self.visibility.append,
            show_delay=0.01,
            first_hold=0.04,
            toggle_period=0.04,
        )

    def tearDown(self):
        self.gated.gate.set()

    def _celebrate(self):
        self.celebrations += 1

    async def start(self, text="a brave turtle", provider="echo", story_image=None):
        loaded = len(self.backend.narration_handles)
        task = asyncio.create_task(self.orchestrator.read_story(text, provider, story_image))
        await wait_until(lambda: len(self.backend.narration_handles) > loaded or task.done())
        return task

    async def assert_all_released(self):
        await wait_until(lambda: not self.backend.live(self.backend.ambient_handles))
        self.assertEqual(self.backend.live(self.backend.narration_handles), [])
        self.assertIs(self.orchestrator.state, NarrationState.IDLE)
        self.assertFalse(self.orchestrator.is_image_visible)
        session = self.orchestrator.session
        self.assertIsNone(session.narration_handle)
        self.assertIsNone(session.ambient_handle)
        self.assertIsNone(session.visibility_task)


class TestNarrationLifecycle(OrchestratorTestCase):
    """Tests for the natural completion path."""

    async def test_natural_completion(self):
        task = await self.start(story_image="img")
        handle = self.backend.narration_handles[0]
        self.assertTrue(handle.playing)
        self.assertEqual(handle.volume, 1.0)

        handle.finish()
        outcome = await task

        self.assertIs(outcome, NarrationOutcome.COMPLETED)
        self.assertEqual(self.celebrations, 1)
        self.assertEqual(self.orchestrator.last_narration_audio, b"audio:a brave turtle")
        await self.assert_all_released()

    async def test_ambient_loops_quietly(self):
        task = await self.start()
        await wait_until(lambda: self.backend.ambient_handles and self.backend.ambient_handles[0].playing)

        ambient = self.backend.ambient_handles[0]
        self.assertTrue(ambient.loop)
        self.assertAlmostEqual(ambient.volume, 0.1)

        self.backend.narration_handles[0].finish()
        await task
        await self.assert_all_released()

    async def test_missing_ambient_track_is_not_fatal(self):
        self.backend.fail_file = True
        task = await self.start()

        self.backend.narration_handles[0].finish()

        self.assertIs(await task, NarrationOutcome.COMPLETED)
        self.assertEqual(self.errors, [])

    async def test_visibility_cycle(self):
        task = await self.start(story_image="img")

        await wait_until(lambda: len(self.visibility) >= 3)
        self.assertEqual(self.visibility[:3], [True, False, True])

        self.backend.narration_handles[0].finish()
        await task
        self.assertFalse(self.orchestrator.is_image_visible)
        self.assertIsNone(self.orchestrator.session.visibility_task)

    async def test_story_image_from_selected_record(self):
        self.selected_story_image = "stored-image"
        task = await self.start()

        self.assertIsNotNone(self.orchestrator.session.visibility_task)

        self.backend.narration_handles[0].finish()
        await task

    async def test_no_story_image_no_visibility_cycle(self):
        task = await self.start()

        self.assertIsNone(self.orchestrator.session.visibility_task)
        await asyncio.sleep(0.05)
        self.assertEqual(self.visibility, [])

        self.backend.narration_handles[0].finish()
        await task


class TestNarrationTeardownPaths(OrchestratorTestCase):
    """Tests that every exit path releases all resources."""

    async def test_synthesis_failure(self):
        outcome = await self.orchestrator.read_story("story", "failing")

        self.assertIs(outcome, NarrationOutcome.FAILED)
        self.assertEqual(self.errors, ["Could not generate audio for the story using failing."])
        self.assertEqual(self.backend.narration_handles, [])
        self.assertEqual(self.celebrations, 0)
        await self.assert_all_released()

    async def test_unknown_provider_fails(self):
        outcome = await self.orchestrator.read_story("story", "nobody")

        self.assertIs(outcome, NarrationOutcome.FAILED)
        self.assertEqual(self.errors, ["Could not generate audio for the story using nobody."])

    async def test_undecodable_audio(self):
        self.backend.fail_bytes = True

        outcome = await self.orchestrator.read_story("story", "echo")

        self.assertIs(outcome, NarrationOutcome.FAILED)
        self.assertEqual(self.errors, ["Could not play the story audio."])
        await self.assert_all_released()

    async def test_playback_error(self):
        task = await self.start(story_image="img")
        handle = self.backend.narration_handles[0]
        handle.fail_on_finish = True

        handle.finish()

        self.assertIs(await task, NarrationOutcome.FAILED)
        self.assertEqual(self.errors, ["Could not play the story audio."])
        self.assertTrue(handle.released)
        await self.assert_all_released()

    async def test_external_cancel(self):
        task = await self.start(story_image="img")
        await wait_until(lambda: self.orchestrator.is_image_visible)

        await self.orchestrator.cancel()

        self.assertIs(await task, NarrationOutcome.CANCELLED)
        self.assertEqual(self.visibility[-1], False)
        await self.assert_all_released()

    async def test_cancel_when_idle_is_noop(self):
        await self.orchestrator.cancel()
        self.assertIs(self.orchestrator.state, NarrationState.IDLE)

    async def test_awaiting_task_cancelled(self):
        task = await self.start()

        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        await self.assert_all_released()


class TestNarrationSupersede(OrchestratorTestCase):
    """Tests for a second request replacing the first."""

    async def test_late_audio_of_superseded_session_is_discarded(self):
        first = asyncio.create_task(self.orchestrator.read_story("first", "gated"))
        await wait_until(self.gated.started.is_set)

        second = await self.start("second", "echo")
        self.assertIs(await first, NarrationOutcome.SUPERSEDED)

        self.gated.gate.set()
        await asyncio.sleep(0.05)

        self.assertEqual([handle.data for handle in self.backend.narration_handles], [b"audio:second"])
        self.assertEqual(self.orchestrator.last_narration_audio, b"audio:second")

        self.backend.narration_handles[0].finish()
        self.assertIs(await second, NarrationOutcome.COMPLETED)

    async def test_exactly_one_narration_and_ambient_after_supersede(self):
        first = await self.start("first", "echo")
        await wait_until(lambda: self.backend.live(self.backend.ambient_handles))

        second = await self.start("second", "echo")
        await wait_until(lambda: len(self.backend.live(self.backend.ambient_handles)) == 1)

        self.assertIs(await first, NarrationOutcome.SUPERSEDED)
        live_narration = self.backend.live(self.backend.narration_handles)
        self.assertEqual([handle.data for handle in live_narration], [b"audio:second"])
        self.assertEqual(len(self.backend.live(self.backend.ambient_handles)), 1)
        self.assertTrue(self.backend.narration_handles[0].released)

        live_narration[0].finish()
        self.assertIs(await second, NarrationOutcome.COMPLETED)
        await self.assert_all_released()


if __name__ == "__main__":
    unittest.main()
