"""
Tests for frame composition and the video encoder.

The moviepy clip classes are replaced with light fakes so that encoding
can be checked without running ffmpeg.
"""

import copy
from pathlib import Path
from types import SimpleNamespace

import pytest

from DB_Libs.VideoLib import video_compositor
from DB_Libs.VideoLib.video_compositor import (
    MoviepyVideoEncoder,
    compose_and_export,
    compose_frame,
    estimate_audio_duration,
    pane_boxes,
)
from DB_Libs.errors import ResourceUnavailableError
from DB_Libs.pillow_compat import Image

BACKGROUND = (31, 41, 55)
PANE_FILL = (55, 65, 81)
STORY_BORDER = (59, 130, 246)


class FakeClip:
    """Immutable-style clip that records how it was derived."""

    def __init__(self, source, duration=None, log=None):
        self.source = source
        self.duration = duration
        self.log = log if log is not None else []
        self.ops = []
        self.audio = None

    def _derive(self, op, duration=None):
        clone = copy.copy(self)
        clone.ops = self.ops + [op]
        if duration is not None:
            clone.duration = duration
        return clone

    def subclipped(self, start, end):
        return self._derive(("subclipped", start, end), duration=end - start)

    def with_volume_scaled(self, factor):
        return self._derive(("volume", factor))

    def with_effects(self, effects):
        return self._derive(("loop", effects[0].duration), duration=effects[0].duration)

    def with_duration(self, duration):
        return self._derive(("duration", duration), duration=duration)

    def with_audio(self, audio):
        clone = self._derive(("audio",))
        clone.audio = audio
        return clone

    def write_videofile(self, path, **kwargs):
        self.log.append(("write", path, kwargs, self))

    def close(self):
        self.log.append(("close", self.source))


@pytest.fixture
def fake_moviepy(monkeypatch):
    log = []
    durations = {b"narration": 8.0, b"ambient": 3.0}

    def audio_file_clip(path):
        data = Path(path).read_bytes()
        return FakeClip(data, durations.get(data), log)

    def composite(tracks):
        clip = FakeClip("mix", None, log)
        clip.tracks = tracks
        return clip

    monkeypatch.setattr(video_compositor, "AudioFileClip", audio_file_clip)
    monkeypatch.setattr(video_compositor, "CompositeAudioClip", composite)
    monkeypatch.setattr(video_compositor, "ImageClip", lambda array: FakeClip(("image", array.shape), None, log))
    monkeypatch.setattr(
        video_compositor, "afx", SimpleNamespace(AudioLoop=lambda duration: SimpleNamespace(duration=duration))
    )
    monkeypatch.setattr(video_compositor.imageio_ffmpeg, "get_ffmpeg_exe", lambda: "/usr/bin/ffmpeg")
    return log


class TestComposeFrame:
    """Tests for the three-pane frame layout."""

    def test_pane_boxes(self):
        assert pane_boxes() == [(20, 20, 400, 680), (440, 20, 400, 680), (860, 20, 400, 680)]

    def test_frame_size_and_background(self):
        frame = compose_frame(None, None, None)

        assert frame.size == (1280, 720)
        assert frame.mode == "RGB"
        assert frame.getpixel((5, 5)) == BACKGROUND
        assert frame.getpixel((430, 360)) == BACKGROUND

    def test_pane_fill_and_border(self):
        frame = compose_frame(None, None, None)

        assert frame.getpixel((60, 60)) == PANE_FILL
        assert frame.getpixel((21, 300)) == STORY_BORDER

    def test_missing_image_draws_placeholder(self):
        frame = compose_frame(None, None, None)

        x, y, width, height = pane_boxes()[0]
        cx, cy = x + width // 2, y + height // 2
        around_center = frame.crop((cx - 120, cy - 30, cx + 120, cy + 30))
        colors = {color for _, color in around_center.getcolors(maxcolors=100000)}

        assert len(colors) > 1

    def test_image_is_fitted_and_centered(self):
        red = Image.new("RGBA", (100, 100), (255, 0, 0, 255))

        frame = compose_frame(None, red, None)

        # 376 px square centered in the 376x656 inner area of the sketch pane
        assert frame.getpixel((640, 360)) == (255, 0, 0)
        assert frame.getpixel((640, 173)) == (255, 0, 0)
        assert frame.getpixel((640, 100)) == PANE_FILL
        assert frame.getpixel((500, 600)) == PANE_FILL

    def test_transparent_pixels_show_pane(self):
        clear = Image.new("RGBA", (50, 50), (0, 0, 0, 0))

        frame = compose_frame(clear, None, None)

        assert frame.getpixel((220, 360)) == PANE_FILL


class TestEstimateAudioDuration:
    """Tests for measuring narration length."""

    def test_uses_decoded_duration(self, fake_moviepy):
        assert estimate_audio_duration(b"narration") == 8.0
        assert ("close", b"narration") in fake_moviepy

    def test_zero_duration_falls_back(self, fake_moviepy):
        assert estimate_audio_duration(b"silent") == 10.0

    def test_undecodable_audio_estimates_from_size(self, monkeypatch):
        def broken(path):
            raise OSError("not audio")

        monkeypatch.setattr(video_compositor, "AudioFileClip", broken)

        assert estimate_audio_duration(b"x" * 320000) == 20.0
        assert estimate_audio_duration(b"x" * 100) == 10.0


class TestMoviepyVideoEncoder:
    """Tests for encoder availability and the audio mix."""

    def test_missing_ffmpeg_raises(self, monkeypatch):
        def missing():
            raise RuntimeError("no ffmpeg")

        monkeypatch.setattr(video_compositor.imageio_ffmpeg, "get_ffmpeg_exe", missing)

        with pytest.raises(ResourceUnavailableError) as exc_info:
            MoviepyVideoEncoder().ensure_available()

        assert exc_info.value.user_message == "Video encoder is not ready. Please try again."

    def test_non_positive_duration_raises(self, fake_moviepy, tmp_path):
        with pytest.raises(ValueError):
            MoviepyVideoEncoder().encode(compose_frame(None, None, None), b"narration", None, 0, tmp_path / "v.mp4")

    def test_encode_mixes_narration_and_looped_ambient(self, fake_moviepy, tmp_path):
        output = tmp_path / "out" / "story.mp4"

        result = compose_and_export(compose_frame(None, None, None), b"narration", b"ambient", 12.0, output)

        assert result == output
        assert output.parent.is_dir()
        writes = [entry for entry in fake_moviepy if entry[0] == "write"]
        assert len(writes) == 1
        _, path, kwargs, video = writes[0]
        assert path == str(output)
        assert kwargs["codec"] == "libx264"
        assert kwargs["audio_codec"] == "aac"
        assert kwargs["ffmpeg_params"] == ["-pix_fmt", "yuv420p"]
        assert kwargs["fps"] == 24
        assert video.duration == 8.0
        assert video.source == ("image", (720, 1280, 3))

        narration, ambient = video.audio.tracks
        assert narration.ops == [("subclipped", 0, 8.0), ("volume", 1.0)]
        assert ambient.ops == [("loop", 8.0), ("volume", 0.1)]
        assert video.audio.duration == 8.0

    def test_requested_duration_caps_video(self, fake_moviepy, tmp_path):
        MoviepyVideoEncoder(fps=12).encode(compose_frame(None, None, None), b"narration", None, 5.0, tmp_path / "v.mp4")

        _, _, kwargs, video = [entry for entry in fake_moviepy if entry[0] == "write"][0]
        assert kwargs["fps"] == 12
        assert video.duration == 5.0
        assert len(video.audio.tracks) == 1

    def test_temporary_audio_files_removed(self, fake_moviepy, tmp_path, monkeypatch):
        created = []
        real_write_temp = video_compositor._write_temp

        def tracking_write_temp(data, suffix, stack):
            path = real_write_temp(data, suffix, stack)
            created.append(path)
            return path

        monkeypatch.setattr(video_compositor, "_write_temp", tracking_write_temp)

        compose_and_export(compose_frame(None, None, None), b"narration", b"ambient", 12.0, tmp_path / "v.mp4")

        assert len(created) == 2
        assert not any(Path(path).exists() for path in created)

    def test_undecodable_narration_raises_resource_error(self, fake_moviepy, tmp_path, monkeypatch):
        def broken(path):
            raise OSError("Invalid data found when processing input")

        monkeypatch.setattr(video_compositor, "AudioFileClip", broken)

        with pytest.raises(ResourceUnavailableError) as exc_info:
            MoviepyVideoEncoder().encode(compose_frame(None, None, None), b"<html>", None, 10.0, tmp_path / "v.mp4")

        assert exc_info.value.user_message == "Failed to generate video. Please try again."
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_write_failure_raises_resource_error(self, fake_moviepy, tmp_path, monkeypatch):
        def failing_write(self, path, **kwargs):
            raise BrokenPipeError("ffmpeg exited")

        monkeypatch.setattr(FakeClip, "write_videofile", failing_write)

        with pytest.raises(ResourceUnavailableError):
            compose_and_export(compose_frame(None, None, None), b"narration", None, 5.0, tmp_path / "v.mp4")
