"""
VideoLib - Story video composition

This module renders the three-pane story frame and encodes it with the
narration and ambient audio into an MP4 video.
"""

from DB_Libs.VideoLib.video_compositor import (
    MoviepyVideoEncoder,
    compose_and_export,
    compose_frame,
    estimate_audio_duration,
    pane_boxes,
)

__all__ = [
    "MoviepyVideoEncoder",
    "compose_and_export",
    "compose_frame",
    "estimate_audio_duration",
    "pane_boxes",
]
