"""
Video Compositor.

Builds the single still frame of a story video (story image, sketch and
colored outline side by side) and hands it to the encoder together with
the narration and the ambient track.

Frame layout (1280x720):

    +--------------------------------------------------------------+
    | pad | Story Image | gap |   Sketch    | gap | Generated | pad |
    +--------------------------------------------------------------+

Each pane is filled, outlined in its own color, and shows its image fitted
inside a 12 px inner padding with aspect ratio preserved and centered, or
a centered placeholder label when the image is missing.

Classes:
    MoviepyVideoEncoder: Still frame + mixed audio -> H.264/AAC MP4

Functions:
    pane_boxes: Pixel boxes of the three panes
    compose_frame: Render the three-pane frame
    estimate_audio_duration: Duration of encoded audio, with a size-based fallback
    compose_and_export: Encode a composed frame and its audio to a file
"""

import logging
import os
import tempfile
from contextlib import ExitStack
from pathlib import Path
from typing import Any, List, Optional, Tuple, Union

import imageio_ffmpeg
import numpy as np
from moviepy import AudioFileClip, CompositeAudioClip, ImageClip, afx

from DB_Libs.constants import (
    AMBIENT_VOLUME,
    AUDIO_BYTES_PER_SECOND_ESTIMATE,
    DEFAULT_AUDIO_DURATION,
    FRAME_BACKGROUND_COLOR,
    FRAME_GAP,
    FRAME_HEIGHT,
    FRAME_PADDING,
    FRAME_PANE_COUNT,
    FRAME_WIDTH,
    GENERATED_PANE_BORDER_COLOR,
    GENERATED_PANE_LABEL,
    NARRATION_VOLUME,
    PANE_BACKGROUND_COLOR,
    PANE_BORDER_WIDTH,
    PANE_INNER_PADDING,
    PLACEHOLDER_FONT_SIZE,
    PLACEHOLDER_TEXT_COLOR,
    SKETCH_PANE_BORDER_COLOR,
    SKETCH_PANE_LABEL,
    STORY_PANE_BORDER_COLOR,
    STORY_PANE_LABEL,
    VIDEO_AUDIO_CODEC,
    VIDEO_CODEC,
    VIDEO_FPS,
    VIDEO_PIXEL_FORMAT,
)
from DB_Libs.errors import ResourceUnavailableError
from DB_Libs.pillow_compat import Image, ImageDraw, ImageFont, LANCZOS

logger = logging.getLogger(__name__)

VIDEO_FAILED_MESSAGE = "Failed to generate video. Please try again."

Box = Tuple[int, int, int, int]

_PANES = (
    (STORY_PANE_BORDER_COLOR, STORY_PANE_LABEL),
    (SKETCH_PANE_BORDER_COLOR, SKETCH_PANE_LABEL),
    (GENERATED_PANE_BORDER_COLOR, GENERATED_PANE_LABEL),
)


def pane_boxes() -> List[Box]:
    """(x, y, width, height) of each pane, left to right."""
    content_width = FRAME_WIDTH - FRAME_PADDING * 2
    pane_width = (content_width - FRAME_GAP * (FRAME_PANE_COUNT - 1)) // FRAME_PANE_COUNT
    pane_height = FRAME_HEIGHT - FRAME_PADDING * 2
    return [
        (FRAME_PADDING + index * (pane_width + FRAME_GAP), FRAME_PADDING, pane_width, pane_height)
        for index in range(FRAME_PANE_COUNT)
    ]


def _load_font(size: int) -> Any:
    try:
        return ImageFont.truetype("DejaVuSans.ttf", size)
    except OSError:
        return ImageFont.load_default()


def _fit_box(image_size: Tuple[int, int], box: Box) -> Box:
    """Largest aspect-preserving box for ``image_size`` centered in ``box``."""
    x, y, width, height = box
    img_w, img_h = image_size
    if img_w * height > img_h * width:
        draw_w = width
        draw_h = max(1, round(width * img_h / img_w))
    else:
        draw_h = height
        draw_w = max(1, round(height * img_w / img_h))
    return x + (width - draw_w) // 2, y + (height - draw_h) // 2, draw_w, draw_h


def _draw_pane(frame: Any, draw: Any, box: Box, border_color: str, label: str, image: Optional[Any], font: Any) -> None:
    x, y, width, height = box
    draw.rectangle(
        [x, y, x + width - 1, y + height - 1],
        fill=PANE_BACKGROUND_COLOR,
        outline=border_color,
        width=PANE_BORDER_WIDTH,
    )

    if image is None:
        draw.text((x + width / 2, y + height / 2), label, fill=PLACEHOLDER_TEXT_COLOR, font=font, anchor="mm")
        return

    inner = (
        x + PANE_INNER_PADDING,
        y + PANE_INNER_PADDING,
        width - PANE_INNER_PADDING * 2,
        height - PANE_INNER_PADDING * 2,
    )
    draw_x, draw_y, draw_w, draw_h = _fit_box(image.size, inner)
    fitted = image.convert("RGBA").resize((draw_w, draw_h), LANCZOS)
    frame.paste(fitted, (draw_x, draw_y), fitted)


def compose_frame(story_image: Optional[Any], sketch_image: Optional[Any], generated_image: Optional[Any]) -> Any:
    """
    Render the three-pane video frame.

    Args:
        story_image: Pillow image for the left pane (None = placeholder)
        sketch_image: Pillow image for the middle pane (None = placeholder)
        generated_image: Pillow image for the right pane (None = placeholder)

    Returns:
        1280x720 RGB Pillow image
    """
    frame = Image.new("RGB", (FRAME_WIDTH, FRAME_HEIGHT), FRAME_BACKGROUND_COLOR)
    draw = ImageDraw.Draw(frame)
    font = _load_font(PLACEHOLDER_FONT_SIZE)

    images = (story_image, sketch_image, generated_image)
    for box, (border_color, label), image in zip(pane_boxes(), _PANES, images):
        _draw_pane(frame, draw, box, border_color, label, image, font)
    return frame


def _write_temp(data: bytes, suffix: str, stack: ExitStack) -> str:
    fd, path = tempfile.mkstemp(suffix=suffix)
    with os.fdopen(fd, "wb") as handle:
        handle.write(data)
    stack.callback(os.unlink, path)
    return path


def estimate_audio_duration(audio: bytes) -> float:
    """
    Duration in seconds of encoded audio.

    When the audio cannot be decoded the duration is estimated from its
    size, never shorter than the default duration.
    """
    with ExitStack() as stack:
        path = _write_temp(audio, ".mp3", stack)
        try:
            clip = AudioFileClip(path)
        except (OSError, KeyError, ValueError) as exc:
            logger.warning(f"Could not measure audio duration, estimating from size: {exc}")
            return max(DEFAULT_AUDIO_DURATION, len(audio) / AUDIO_BYTES_PER_SECOND_ESTIMATE)
        stack.callback(clip.close)
        if not clip.duration:
            return max(DEFAULT_AUDIO_DURATION, len(audio) / AUDIO_BYTES_PER_SECOND_ESTIMATE)
        return float(clip.duration)


class MoviepyVideoEncoder:
    """
    Encodes a still frame with a narration and a looping ambient bed.

    The narration plays at full volume, the ambient track loops under it
    at AMBIENT_VOLUME, and the video ends with the shorter of the narration
    and the requested duration.
    """

    def __init__(self, fps: int = VIDEO_FPS):
        self.fps = fps

    def ensure_available(self) -> str:
        """
        Locate the ffmpeg binary.

        Raises:
            ResourceUnavailableError: If no ffmpeg executable can be found
        """
        try:
            return imageio_ffmpeg.get_ffmpeg_exe()
        except RuntimeError as exc:
            raise ResourceUnavailableError("Video encoder is not ready. Please try again.") from exc

    def encode(
        self,
        frame: Any,
        narration_audio: bytes,
        ambient_audio: Optional[bytes],
        duration_seconds: float,
        output_path: Union[str, Path],
    ) -> Path:
        """
        Write the video to ``output_path``.

        Raises:
            ResourceUnavailableError: If ffmpeg is not available or encoding fails
            ValueError: If the duration is not positive
        """
        if duration_seconds <= 0:
            raise ValueError(f"duration_seconds must be > 0, got {duration_seconds}")
        self.ensure_available()
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._write_video(frame, narration_audio, ambient_audio, duration_seconds, output_path)
        except (OSError, KeyError, ValueError, RuntimeError) as exc:
            logger.error(f"Video encoding failed: {exc}")
            raise ResourceUnavailableError(VIDEO_FAILED_MESSAGE) from exc
        return output_path

    def _write_video(
        self,
        frame: Any,
        narration_audio: bytes,
        ambient_audio: Optional[bytes],
        duration_seconds: float,
        output_path: Path,
    ) -> None:
        with ExitStack() as stack:
            narration = AudioFileClip(_write_temp(narration_audio, ".mp3", stack))
            stack.callback(narration.close)
            final_duration = min(float(narration.duration or duration_seconds), float(duration_seconds))

            tracks = [narration.subclipped(0, final_duration).with_volume_scaled(NARRATION_VOLUME)]
            if ambient_audio:
                ambient = AudioFileClip(_write_temp(ambient_audio, ".mp3", stack))
                stack.callback(ambient.close)
                looped = ambient.with_effects([afx.AudioLoop(duration=final_duration)])
                tracks.append(looped.with_volume_scaled(AMBIENT_VOLUME))

            mix = CompositeAudioClip(tracks).with_duration(final_duration)
            video = ImageClip(np.asarray(frame.convert("RGB"))).with_duration(final_duration).with_audio(mix)
            stack.callback(video.close)

            logger.info(f"Encoding {final_duration:.1f}s story video to {output_path}")
            video.write_videofile(
                str(output_path),
                fps=self.fps,
                codec=VIDEO_CODEC,
                audio_codec=VIDEO_AUDIO_CODEC,
                ffmpeg_params=["-pix_fmt", VIDEO_PIXEL_FORMAT],
                logger=None,
            )


def compose_and_export(
    frame: Any,
    narration_audio: bytes,
    ambient_audio: Optional[bytes],
    duration_seconds: float,
    output_path: Union[str, Path],
    encoder: Optional[MoviepyVideoEncoder] = None,
) -> Path:
    """
    Encode a composed frame and its audio into a video file.

    Args:
        frame: Image from compose_frame
        narration_audio: Encoded narration bytes
        ambient_audio: Encoded ambient track bytes (None = narration only)
        duration_seconds: Target video length
        output_path: Destination .mp4 path
        encoder: Encoder to use (default MoviepyVideoEncoder)

    Returns:
        Path of the written video
    """
    encoder = encoder or MoviepyVideoEncoder()
    return encoder.encode(frame, narration_audio, ambient_audio, duration_seconds, output_path)
