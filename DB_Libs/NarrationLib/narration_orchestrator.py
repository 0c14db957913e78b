"""
Narration Orchestrator.

Plays a synthesized story narration over a looping ambient track while the
story image fades in and out, and guarantees that at most one narration
and one ambient clip are ever alive.

The orchestrator is a small table-driven state machine:

    IDLE --REQUEST--> PREPARING --AUDIO_READY--> PLAYING
    PLAYING --PLAYBACK_ENDED--> COMPLETED --SETTLE--> IDLE
    PREPARING/PLAYING --FAILURE--> FAILED --SETTLE--> IDLE
    any --CANCEL--> IDLE
    PREPARING/PLAYING/COMPLETED/FAILED --REQUEST--> PREPARING (supersede)

Every transition marked with teardown runs the same routine: cancel the
session token, stop the visibility cycle and the ambient loader, stop and
release both audio handles, and hide the story image. Late results of a
torn-down session are discarded at its next await.

Classes:
    NarrationState: Orchestrator states
    NarrationEvent: Events that drive transitions
    NarrationOutcome: How a read_story call ended
    NarrationSession: Resources owned by one narration attempt
    InvalidTransitionError: Raised for an event with no transition
    NarrationOrchestrator: The state machine itself

Functions:
    next_transition: Look up (next_state, runs_teardown) for an event
"""

import asyncio
import itertools
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

from DB_Libs.NarrationLib.audio_backend import AudioBackend, AudioHandle
from DB_Libs.NarrationLib.cancellation import CancellationToken, SessionCancelled
from DB_Libs.constants import (
    AMBIENT_VOLUME,
    DEFAULT_NARRATION_PROVIDER,
    NARRATION_VOLUME,
    VISIBILITY_FIRST_HOLD,
    VISIBILITY_SHOW_DELAY,
    VISIBILITY_TOGGLE_PERIOD,
)
from DB_Libs.errors import AudioPlaybackError, DrawingBookError

logger = logging.getLogger(__name__)

PLAYBACK_ERROR_MESSAGE = "Could not play the story audio."
SYNTHESIS_ERROR_TEMPLATE = "Could not generate audio for the story using {provider}."

_REASON_SUPERSEDED = "superseded"
_REASON_CANCELLED = "cancelled"
_REASON_FINISHED = "finished"


class NarrationState(Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    PLAYING = "playing"
    COMPLETED = "completed"
    FAILED = "failed"


class NarrationEvent(Enum):
    REQUEST = "request"
    AUDIO_READY = "audio_ready"
    PLAYBACK_ENDED = "playback_ended"
    FAILURE = "failure"
    SETTLE = "settle"
    CANCEL = "cancel"


class NarrationOutcome(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    SUPERSEDED = "superseded"
    CANCELLED = "cancelled"


_S = NarrationState
_E = NarrationEvent

# (state, event) -> (next state, runs teardown)
TRANSITIONS: Dict[Tuple[NarrationState, NarrationEvent], Tuple[NarrationState, bool]] = {
    (_S.IDLE, _E.REQUEST): (_S.PREPARING, False),
    (_S.PREPARING, _E.REQUEST): (_S.PREPARING, True),
    (_S.PLAYING, _E.REQUEST): (_S.PREPARING, True),
    (_S.COMPLETED, _E.REQUEST): (_S.PREPARING, True),
    (_S.FAILED, _E.REQUEST): (_S.PREPARING, True),
    (_S.PREPARING, _E.AUDIO_READY): (_S.PLAYING, False),
    (_S.PLAYING, _E.PLAYBACK_ENDED): (_S.COMPLETED, False),
    (_S.PREPARING, _E.FAILURE): (_S.FAILED, False),
    (_S.PLAYING, _E.FAILURE): (_S.FAILED, False),
    (_S.COMPLETED, _E.SETTLE): (_S.IDLE, True),
    (_S.FAILED, _E.SETTLE): (_S.IDLE, True),
    (_S.IDLE, _E.CANCEL): (_S.IDLE, False),
    (_S.PREPARING, _E.CANCEL): (_S.IDLE, True),
    (_S.PLAYING, _E.CANCEL): (_S.IDLE, True),
    (_S.COMPLETED, _E.CANCEL): (_S.IDLE, True),
    (_S.FAILED, _E.CANCEL): (_S.IDLE, True),
}


class InvalidTransitionError(RuntimeError):
    """An event arrived in a state that has no transition for it."""

    def __init__(self, state: NarrationState, event: NarrationEvent):
        super().__init__(f"No transition for {event.name} in state {state.name}")
        self.state = state
        self.event = event


def next_transition(state: NarrationState, event: NarrationEvent) -> Tuple[NarrationState, bool]:
    """
    Look up the transition for ``event`` in ``state``.

    Raises:
        InvalidTransitionError: If the pair is not in the table
    """
    try:
        return TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(state, event) from None


@dataclass
class NarrationSession:
    """Resources owned by a single narration attempt."""
    session_id: int
    token: CancellationToken = field(default_factory=CancellationToken)
    narration_handle: Optional[AudioHandle] = None
    ambient_handle: Optional[AudioHandle] = None
    visibility_task: Optional["asyncio.Task[None]"] = None
    ambient_task: Optional["asyncio.Task[None]"] = None
    is_image_visible: bool = False
    is_active: bool = True


class NarrationOrchestrator:
    """
    Coordinates narration synthesis, playback, ambient audio and the
    story image visibility cycle.

    Args:
        narrators: Lookup with ``get(provider)`` returning an object whose
            ``synthesize(text) -> bytes`` produces the narration audio
        audio_backend: Loads audio handles from bytes or files
        ambient_track: Path of the looping background track (None = no ambient)
        story_image_source: Returns the selected record's story image, used
            when ``read_story`` gets no image
        on_celebrate: Called after a narration finishes naturally
        on_error: Called with the user-facing message after a failure
        on_visibility_change: Called with the new story image visibility

    Example:
        >>> orchestrator = NarrationOrchestrator(registry, PygameAudioBackend(), Path("sounds/pianoSound.mp3"))
        >>> outcome = await orchestrator.read_story("a brave little turtle")
    """

    def __init__(
        self,
        narrators,
        audio_backend: AudioBackend,
        ambient_track: Optional[Union[str, Path]] = None,
        story_image_source: Optional[Callable[[], Optional[str]]] = None,
        on_celebrate: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[str], None]] = None,
        on_visibility_change: Optional[Callable[[bool], None]] = None,
        show_delay: float = VISIBILITY_SHOW_DELAY,
        first_hold: float = VISIBILITY_FIRST_HOLD,
        toggle_period: float = VISIBILITY_TOGGLE_PERIOD,
        narration_volume: float = NARRATION_VOLUME,
        ambient_volume: float = AMBIENT_VOLUME,
    ):
        self._narrators = narrators
        self._audio_backend = audio_backend
        self._ambient_track = Path(ambient_track) if ambient_track else None
        self._story_image_source = story_image_source
        self._on_celebrate = on_celebrate
        self._on_error = on_error
        self._on_visibility_change = on_visibility_change
        self._show_delay = show_delay
        self._first_hold = first_hold
        self._toggle_period = toggle_period
        self._narration_volume = narration_volume
        self._ambient_volume = ambient_volume

        self._state = NarrationState.IDLE
        self._session: Optional[NarrationSession] = None
        self._session_ids = itertools.count(1)
        self.last_narration_audio: Optional[bytes] = None

    # ========================================================================
    # Public state
    # ========================================================================

    @property
    def state(self) -> NarrationState:
        return self._state

    @property
    def session(self) -> Optional[NarrationSession]:
        return self._session

    @property
    def is_image_visible(self) -> bool:
        return self._session is not None and self._session.is_image_visible

    # ========================================================================
    # State machine
    # ========================================================================

    def _dispatch(self, event: NarrationEvent, reason: str = _REASON_FINISHED) -> NarrationState:
        previous = self._state
        next_state, runs_teardown = next_transition(previous, event)
        if runs_teardown and self._session is not None:
            self._teardown(self._session, reason)
        self._state = next_state
        logger.debug(f"Narration {previous.name} --{event.name}--> {next_state.name}")
        return next_state

    def _teardown(self, session: NarrationSession, reason: str) -> None:
        """Release everything ``session`` owns. Safe to call more than once."""
        session.token.cancel(reason)
        session.is_active = False

        current = asyncio.current_task()
        for task in (session.visibility_task, session.ambient_task):
            if task is not None and task is not current and not task.done():
                task.cancel()
        session.visibility_task = None
        session.ambient_task = None

        for handle in (session.narration_handle, session.ambient_handle):
            if handle is not None:
                handle.stop()
                handle.release()
        session.narration_handle = None
        session.ambient_handle = None

        if session.is_image_visible:
            session.is_image_visible = False
            self._notify_visibility(False)

        logger.debug(f"Tore down narration session {session.session_id} ({reason})")

    def _notify_visibility(self, visible: bool) -> None:
        if self._on_visibility_change is not None:
            self._on_visibility_change(visible)

    # ========================================================================
    # Background tasks
    # ========================================================================

    async def _start_ambient(self, session: NarrationSession) -> None:
        if self._ambient_track is None:
            return

        loading = asyncio.ensure_future(asyncio.to_thread(self._audio_backend.load_file, self._ambient_track))
        try:
            handle = await asyncio.shield(loading)
        except asyncio.CancelledError:
            loading.add_done_callback(_release_orphaned_handle)
            raise
        except AudioPlaybackError as exc:
            logger.warning(f"Ambient track unavailable: {exc.user_message}")
            return

        if not session.is_active or self._session is not session:
            handle.release()
            return

        session.ambient_handle = handle
        try:
            handle.set_volume(self._ambient_volume)
            handle.play(loop=True)
        except AudioPlaybackError as exc:
            logger.warning(f"Ambient track failed to play: {exc.user_message}")
            handle.release()
            session.ambient_handle = None

    async def _run_visibility(self, session: NarrationSession) -> None:
        await asyncio.sleep(self._show_delay)
        self._set_visible(session, True)
        await asyncio.sleep(self._first_hold)
        while session.is_active:
            self._set_visible(session, not session.is_image_visible)
            await asyncio.sleep(self._toggle_period)

    def _set_visible(self, session: NarrationSession, visible: bool) -> None:
        if not session.is_active or session.is_image_visible == visible:
            return
        session.is_image_visible = visible
        self._notify_visibility(visible)

    # ========================================================================
    # Public operations
    # ========================================================================

    def _resolve_story_image(self, story_image: Optional[str]) -> Optional[str]:
        if story_image:
            return story_image
        if self._story_image_source is not None:
            return self._story_image_source()
        return None

    def _fail(self, session: NarrationSession, message: str, exc: BaseException) -> NarrationOutcome:
        logger.error(f"Narration session {session.session_id} failed: {exc}")
        self._dispatch(NarrationEvent.FAILURE)
        self._dispatch(NarrationEvent.SETTLE)
        if self._on_error is not None:
            self._on_error(message)
        return NarrationOutcome.FAILED

    async def read_story(
        self,
        story_text: str,
        provider: str = DEFAULT_NARRATION_PROVIDER,
        story_image: Optional[str] = None,
    ) -> NarrationOutcome:
        """
        Narrate ``story_text`` with the named provider.

        Any narration already in progress is torn down first. The call
        returns when this narration has finished, failed, or been
        superseded or cancelled.

        Args:
            story_text: The story to narrate
            provider: Name of the narrator to synthesize with
            story_image: Base64 story image to cycle; defaults to the
                selected record's image

        Returns:
            How the narration ended
        """
        self._dispatch(NarrationEvent.REQUEST, _REASON_SUPERSEDED)
        session = NarrationSession(session_id=next(self._session_ids))
        self._session = session
        token = session.token
        logger.info(f"Narration session {session.session_id} started with provider '{provider}'")

        session.ambient_task = asyncio.create_task(self._start_ambient(session))
        try:
            try:
                narrator = self._narrators.get(provider)
                audio = await token.guard(asyncio.to_thread(narrator.synthesize, story_text))
            except (DrawingBookError, KeyError) as exc:
                return self._fail(session, SYNTHESIS_ERROR_TEMPLATE.format(provider=provider), exc)

            self.last_narration_audio = audio
            try:
                handle = self._audio_backend.load_bytes(audio)
                session.narration_handle = handle
                handle.set_volume(self._narration_volume)
                handle.play()
            except AudioPlaybackError as exc:
                return self._fail(session, PLAYBACK_ERROR_MESSAGE, exc)

            self._dispatch(NarrationEvent.AUDIO_READY)
            if self._resolve_story_image(story_image):
                session.visibility_task = asyncio.create_task(self._run_visibility(session))

            try:
                await token.guard(handle.wait_finished())
            except AudioPlaybackError as exc:
                return self._fail(session, PLAYBACK_ERROR_MESSAGE, exc)

            self._dispatch(NarrationEvent.PLAYBACK_ENDED)
            logger.info(f"Narration session {session.session_id} completed")
            if self._on_celebrate is not None:
                self._on_celebrate()
            self._dispatch(NarrationEvent.SETTLE)
            return NarrationOutcome.COMPLETED
        except SessionCancelled as exc:
            logger.info(f"Narration session {session.session_id} ended early ({exc.reason})")
            if exc.reason == _REASON_SUPERSEDED:
                return NarrationOutcome.SUPERSEDED
            return NarrationOutcome.CANCELLED
        finally:
            if self._session is session and session.is_active:
                self._dispatch(NarrationEvent.CANCEL, _REASON_CANCELLED)

    async def cancel(self) -> None:
        """Stop any narration in progress and return to IDLE."""
        session = self._session
        self._dispatch(NarrationEvent.CANCEL, _REASON_CANCELLED)
        if session is None:
            return
        # Give cancelled background tasks a chance to unwind.
        await asyncio.sleep(0)


def _release_orphaned_handle(loading: "asyncio.Future[AudioHandle]") -> None:
    """Release an ambient handle whose session was torn down mid-load."""
    if loading.cancelled():
        return
    if loading.exception() is not None:
        return
    loading.result().release()
