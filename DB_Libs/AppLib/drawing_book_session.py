"""
Drawing book workflow controller.

DrawingBookSession owns the sketch pad, the coloring page, the history
ring and the narration orchestrator, and implements each user action on
top of them. Every async action catches DrawingBookError, stores its user
message in ``error`` and leaves the session consistent; anything else
propagates.

History writes that complete after an await always go through a RecordRef
captured when the action started, so a completion never lands on a record
that was evicted or shifted in the meantime.

Classes:
    DrawingBookSession: The application workflow
"""

import asyncio
import logging
import math
import time
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from DB_Libs.CanvasLib import (
    ImageSurface,
    decode_png_base64,
    encode_png_base64,
    flood_fill,
    hex_to_rgba,
    image_bytes_to_base64_png,
    is_blank,
    read_pixels,
    resize_encoded_image,
    stamp_dot,
    stroke_segment,
    write_pixels,
)
from DB_Libs.CaptureLib import WebcamCapture, capture_still_frame
from DB_Libs.HistoryLib import CreationRecord, HistoryStore, JsonFileStorage, RecordRef
from DB_Libs.NarrationLib import AudioBackend, AudioHandle, NarrationOrchestrator, NarrationOutcome, PygameAudioBackend
from DB_Libs.ServicesLib import (
    GeminiDescriptionService,
    PollinationsImageService,
    build_default_narrators,
    prompts,
)
from DB_Libs.VideoLib import MoviepyVideoEncoder, compose_and_export, compose_frame, estimate_audio_duration
from DB_Libs.config import AppSettings
from DB_Libs.constants import (
    DEFAULT_BRUSH_SIZE,
    DEFAULT_CANVAS_HEIGHT,
    DEFAULT_CANVAS_WIDTH,
    DEFAULT_FILL_COLOR,
    DEFAULT_NARRATION_PROVIDER,
    PHOTO_PROMPT_LABEL,
    VIDEO_FILE_PREFIX,
    WIN_SOUND_VOLUME,
)
from DB_Libs.errors import (
    AudioPlaybackError,
    DrawingBookError,
    ExternalServiceError,
    InputPreconditionError,
    ServiceFailureCategory,
    story_failure_message,
)

logger = logging.getLogger(__name__)

BLANK_SKETCH_MESSAGE = "Please draw something on the canvas first!"
NO_DRAWING_TO_COLOR_MESSAGE = "Please generate a drawing first to color!"
NO_DRAWING_FOR_STORY_MESSAGE = "Please generate a drawing first!"
NO_SELECTION_MESSAGE = "Please select a drawing from your gallery first."
NO_NARRATION_MESSAGE = "Please generate and play the story audio first."
MISSING_IMAGES_MESSAGE = "Missing required images for video generation."
GEMINI_NOT_CONFIGURED_MESSAGE = "Gemini API key not configured. Please add GEMINI_API_KEY to your .env file."


class DrawingBookSession:
    """
    One user's drawing book.

    Args:
        settings: Resolved runtime settings
        history: History ring (rehydrated by the caller)
        description_service: Recognition, ideas and stories
        image_service: Outline and story image generation
        narrators: Narrator registry for the orchestrator
        audio_backend: Audio playback backend
        encoder: Video encoder (default MoviepyVideoEncoder)
        canvas_size: Width and height of both drawing surfaces

    Example:
        >>> session = DrawingBookSession.from_settings(AppSettings.from_env())
        >>> await session.enhance_drawing()
        >>> session.press_coloring(120, 80)
    """

    def __init__(
        self,
        settings: AppSettings,
        history: HistoryStore,
        description_service: GeminiDescriptionService,
        image_service: PollinationsImageService,
        narrators,
        audio_backend: AudioBackend,
        encoder: Optional[MoviepyVideoEncoder] = None,
        canvas_size: Tuple[int, int] = (DEFAULT_CANVAS_WIDTH, DEFAULT_CANVAS_HEIGHT),
    ):
        self.settings = settings
        self.history = history
        self.description_service = description_service
        self.image_service = image_service
        self.audio_backend = audio_backend
        self.encoder = encoder or MoviepyVideoEncoder()

        self.sketch_surface = ImageSurface(*canvas_size)
        self.coloring_surface = ImageSurface(*canvas_size)

        self.error: Optional[str] = None
        self.current_prompt = ""
        self.recognized_description = ""
        self.story = ""
        self.story_image: Optional[str] = None
        self.has_generated_content = False
        self.selected_color = DEFAULT_FILL_COLOR
        self.brush_size = DEFAULT_BRUSH_SIZE
        self.pen_mode = False

        self._stroke_ref: Optional[RecordRef] = None
        self._stroke_last: Optional[Tuple[float, float]] = None
        self._stroke_active = False
        self._win_handle: Optional[AudioHandle] = None

        self.narration = NarrationOrchestrator(
            narrators,
            audio_backend,
            ambient_track=settings.ambient_track,
            story_image_source=self._selected_story_image,
            on_celebrate=self.celebrate,
            on_error=self._set_error,
        )

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "DrawingBookSession":
        """Build a session with the real services, file storage and pygame audio."""
        history = HistoryStore(JsonFileStorage(settings.storage_path))
        return cls(
            settings=settings,
            history=history,
            description_service=GeminiDescriptionService(
                settings.gemini_api_key, settings.gemini_model, timeout=settings.request_timeout
            ),
            image_service=PollinationsImageService(timeout=settings.request_timeout),
            narrators=build_default_narrators(settings),
            audio_backend=PygameAudioBackend(),
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    def _set_error(self, message: str) -> None:
        self.error = message

    def _report(self, exc: DrawingBookError) -> None:
        logger.warning(f"{type(exc).__name__}: {exc.user_message}")
        self.error = exc.user_message

    def _selected_story_image(self) -> Optional[str]:
        record = self.history.selected()
        return record.story_image if record is not None else None

    @property
    def brush_radius(self) -> float:
        return self.brush_size / 2

    @property
    def is_image_visible(self) -> bool:
        return self.narration.is_image_visible

    def celebrate(self) -> None:
        """Play the win sound. Missing or broken sound files are only logged."""
        if self._win_handle is not None:
            self._win_handle.release()
            self._win_handle = None
        try:
            handle = self.audio_backend.load_file(self.settings.win_sound)
            handle.set_volume(WIN_SOUND_VOLUME)
            handle.play()
        except AudioPlaybackError as exc:
            logger.warning(f"Win sound unavailable: {exc.user_message}")
            return
        self._win_handle = handle

    async def _generate_image(self, prompt: str) -> str:
        data = await asyncio.to_thread(self.image_service.generate_outline, prompt)
        try:
            return image_bytes_to_base64_png(data)
        except ValueError as exc:
            raise ExternalServiceError(
                "Failed to load generated image for coloring.",
                category=ServiceFailureCategory.DECODE,
            ) from exc

    def _show_generated(self, generated: str) -> None:
        self.coloring_surface.draw_encoded(generated)
        self.has_generated_content = True

    # ========================================================================
    # Ideas and outlines
    # ========================================================================

    async def get_drawing_idea(self) -> Optional[str]:
        """Ask the description service for something to draw."""
        self.error = None
        try:
            idea = await asyncio.to_thread(self.description_service.suggest_idea)
        except DrawingBookError as exc:
            self._report(exc)
            return None
        self.current_prompt = idea
        return idea

    async def enhance_drawing(self) -> Optional[int]:
        """
        Turn the sketch into a coloring outline.

        When the selected record holds this exact sketch its outline is
        regenerated in place; otherwise the sketch is recognized and a new
        record is appended and selected.

        Returns:
            Index of the updated or new record, or None on failure
        """
        self.error = None
        try:
            if is_blank(self.sketch_surface):
                raise InputPreconditionError(BLANK_SKETCH_MESSAGE)

            snapshot = self.sketch_surface.snapshot_on_white()
            ref = self.history.selected_ref()
            if ref is not None and self.history[ref.index].sketch == snapshot:
                return await self._regenerate_outline(ref)
            return await self._create_outline(snapshot)
        except DrawingBookError as exc:
            self._report(exc)
            return None

    async def _regenerate_outline(self, ref: RecordRef) -> Optional[int]:
        description = self.history[ref.index].recognized_description
        generated = await self._generate_image(prompts.reuse_outline_prompt(description))

        if not self.history.update_ref(ref, {"generated": generated}):
            return None
        self.recognized_description = description
        self._show_generated(generated)
        self.celebrate()
        index = self.history.index_of(ref.record_id)
        self.history.select(index)
        logger.info(f"Regenerated outline for history record {index}")
        return index

    async def _create_outline(self, snapshot: str) -> int:
        description = await asyncio.to_thread(self.description_service.recognize_sketch, snapshot)
        self.recognized_description = description
        generated = await self._generate_image(prompts.outline_prompt(description))

        self._show_generated(generated)
        self.celebrate()
        record = CreationRecord(
            sketch=snapshot,
            generated=generated,
            recognized_description=description,
            prompt=self.current_prompt,
        )
        index = self.history.append(record)
        self.history.select(index)
        self.story = ""
        self.story_image = None
        logger.info(f"Added history record {index} for '{description}'")
        return index

    async def capture_photo(self, webcam: Optional[WebcamCapture] = None) -> Optional[int]:
        """
        Capture a webcam photo and turn it into a coloring outline.

        Args:
            webcam: An already opened camera (default: open, grab, release)

        Returns:
            Index of the new record, or None on failure
        """
        self.error = None
        try:
            if webcam is not None:
                frame = await asyncio.to_thread(webcam.capture_frame)
            else:
                frame = await asyncio.to_thread(capture_still_frame)

            self.sketch_surface.draw_image(frame)
            photo = resize_encoded_image(encode_png_base64(frame))
            description = await asyncio.to_thread(self.description_service.recognize_photo, photo)
            self.recognized_description = description
            generated = await self._generate_image(prompts.photo_outline_prompt(description))
        except DrawingBookError as exc:
            self._report(exc)
            return None

        self._show_generated(generated)
        self.celebrate()
        record = CreationRecord(
            sketch=photo,
            generated=generated,
            recognized_description=description,
            prompt=PHOTO_PROMPT_LABEL,
        )
        index = self.history.append(record)
        self.history.select(index)
        self.story = ""
        self.story_image = None
        return index

    # ========================================================================
    # Coloring
    # ========================================================================

    def select_color(self, color: str) -> None:
        hex_to_rgba(color)
        self.selected_color = color

    def toggle_pen_mode(self) -> bool:
        self.pen_mode = not self.pen_mode
        return self.pen_mode

    def _commit_coloring(self, ref: Optional[RecordRef]) -> None:
        if ref is None:
            return
        self.history.update_ref(ref, {"generated": self.coloring_surface.to_base64_png()})

    def press_coloring(self, x: float, y: float) -> bool:
        """
        Start coloring at (x, y): flood fill, or the first dot of a pen stroke.

        Returns:
            False if there is no outline to color yet
        """
        if not self.has_generated_content:
            self.error = NO_DRAWING_TO_COLOR_MESSAGE
            return False
        self.error = None

        color = hex_to_rgba(self.selected_color)
        ref = self.history.selected_ref()
        buffer = read_pixels(self.coloring_surface)

        if self.pen_mode:
            write_pixels(self.coloring_surface, stamp_dot(buffer, (x, y), color, self.brush_radius))
            self._stroke_ref = ref
            self._stroke_last = (x, y)
            self._stroke_active = True
            return True

        write_pixels(self.coloring_surface, flood_fill(buffer, math.floor(x), math.floor(y), color))
        self._commit_coloring(ref)
        return True

    def drag_coloring(self, x: float, y: float) -> None:
        """Continue the current pen stroke to (x, y)."""
        if not self._stroke_active or not self.pen_mode or self._stroke_last is None:
            return
        color = hex_to_rgba(self.selected_color)
        buffer = read_pixels(self.coloring_surface)
        write_pixels(
            self.coloring_surface,
            stroke_segment(buffer, self._stroke_last, (x, y), color, self.brush_radius),
        )
        self._stroke_last = (x, y)

    def release_coloring(self) -> None:
        """End the pen stroke and save the coloring to its record."""
        if not self._stroke_active:
            return
        self._stroke_active = False
        self._stroke_last = None
        ref, self._stroke_ref = self._stroke_ref, None
        self._commit_coloring(ref)

    # ========================================================================
    # Story, narration and video
    # ========================================================================

    async def generate_story(self) -> Optional[str]:
        """
        Produce the story for the current creation.

        A story already stored on the selected record is reused as-is.
        Otherwise the story text and then its illustration are generated
        and written to the record selected when the request started.
        """
        record = self.history.selected()
        if record is not None and record.story.strip():
            self.story = record.story
            self.story_image = record.story_image
            return self.story

        self.error = None
        if not self.recognized_description:
            self._report(InputPreconditionError(NO_DRAWING_FOR_STORY_MESSAGE))
            return None
        if not self.description_service.has_credentials():
            self._report(InputPreconditionError(GEMINI_NOT_CONFIGURED_MESSAGE))
            return None

        ref = self.history.selected_ref()
        try:
            story = await asyncio.to_thread(self.description_service.generate_story, self.recognized_description)
            self.story = story
            story_image = await self._generate_image(prompts.story_image_prompt(story))
        except DrawingBookError as exc:
            logger.error(f"Story generation failed: {exc.user_message}")
            self.error = story_failure_message(exc)
            self.story = ""
            self.story_image = None
            return None

        self.story_image = story_image
        self.history.update_ref(ref, {"story": story, "story_image": story_image})
        return story

    async def read_story(self, provider: str = DEFAULT_NARRATION_PROVIDER) -> Optional[NarrationOutcome]:
        """Narrate the current story; returns None when there is no story."""
        if not self.story:
            return None
        self.error = None
        return await self.narration.read_story(self.story, provider, self.story_image)

    async def export_video(self, output_path: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """
        Export the selected creation and the last narration as an MP4.

        Args:
            output_path: Destination (default: ai-story-<millis>.mp4 in the cwd)

        Returns:
            Path of the video, or None on failure
        """
        self.error = None
        try:
            self.encoder.ensure_available()
            record = self.history.selected()
            if record is None:
                raise InputPreconditionError(NO_SELECTION_MESSAGE)
            narration_audio = self.narration.last_narration_audio
            if not narration_audio:
                raise InputPreconditionError(NO_NARRATION_MESSAGE)
            if not record.sketch or not record.generated:
                raise InputPreconditionError(MISSING_IMAGES_MESSAGE)

            try:
                sketch = decode_png_base64(record.sketch)
                generated = decode_png_base64(record.generated)
            except ValueError as exc:
                logger.error(f"Stored creation images are unreadable: {exc}")
                raise InputPreconditionError(MISSING_IMAGES_MESSAGE) from exc

            frame = compose_frame(_decode_optional(record.story_image), sketch, generated)
            duration = await asyncio.to_thread(estimate_audio_duration, narration_audio)
            if output_path is None:
                output_path = Path.cwd() / f"{VIDEO_FILE_PREFIX}{int(time.time() * 1000)}.mp4"
            path = await asyncio.to_thread(
                compose_and_export,
                frame,
                narration_audio,
                self._read_ambient_track(),
                duration,
                output_path,
                self.encoder,
            )
        except DrawingBookError as exc:
            self._report(exc)
            return None

        self.celebrate()
        logger.info(f"Exported story video to {path}")
        return path

    def _read_ambient_track(self) -> Optional[bytes]:
        try:
            return Path(self.settings.ambient_track).read_bytes()
        except OSError as exc:
            logger.warning(f"Ambient track not included in video: {exc}")
            return None

    # ========================================================================
    # History
    # ========================================================================

    def select_history(self, index: int) -> bool:
        """Select a past creation and load it onto both surfaces."""
        if not self.history.select(index):
            return False
        record = self.history[index]
        self.recognized_description = record.recognized_description
        self.current_prompt = record.prompt
        self.story = record.story
        self.story_image = record.story_image
        self.has_generated_content = True
        self.sketch_surface.draw_encoded(record.sketch)
        if record.generated:
            self.coloring_surface.draw_encoded(record.generated)
        return True

    def delete_history(self, index: int) -> bool:
        """Delete a creation; deleting the selected one also clears the surfaces."""
        was_selected = self.history.selected_index == index
        if self.history.remove(index) is None:
            return False
        if was_selected:
            self.clear_all()
        return True

    def clear_all(self) -> None:
        self.sketch_surface.clear()
        self.coloring_surface.clear()
        self.has_generated_content = False
        self.current_prompt = ""
        self.story = ""
        self.story_image = None
        self.recognized_description = ""
        self.error = None

    async def close(self) -> None:
        """Stop narration and release audio."""
        await self.narration.cancel()
        if self._win_handle is not None:
            self._win_handle.release()
            self._win_handle = None


def _decode_optional(encoded: Optional[str]) -> Optional[Any]:
    if not encoded:
        return None
    try:
        return decode_png_base64(encoded)
    except ValueError as exc:
        logger.warning(f"Ignoring unreadable story image: {exc}")
        return None
