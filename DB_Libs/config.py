"""
Runtime settings for the AI Drawing Book.

Fixed values live in ``constants.py``; everything a user may want to change
per machine (API keys, data directory, sound files) is read from the
environment, optionally seeded from a ``.env`` file via python-dotenv.

Classes:
    AppSettings: Resolved runtime settings
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from DB_Libs.constants import (
    DEFAULT_AMBIENT_TRACK,
    DEFAULT_DATA_DIR_NAME,
    DEFAULT_ELEVENLABS_VOICE_ID,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_WIN_SOUND,
    ENV_AMBIENT_TRACK,
    ENV_DATA_DIR,
    ENV_ELEVENLABS_API_KEY,
    ENV_ELEVENLABS_VOICE_ID,
    ENV_GEMINI_API_KEY,
    ENV_GEMINI_MODEL,
    ENV_POLLINATIONS_API_KEY,
    ENV_REQUEST_TIMEOUT,
    ENV_WIN_SOUND,
    STORAGE_FILE_NAME,
)


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass
class AppSettings:
    """Runtime settings resolved from the environment.

    Attributes:
        gemini_api_key: Key for the description/story service (None = not configured)
        gemini_model: Gemini model name
        pollinations_api_key: Token for the Pollinations narration endpoint
        elevenlabs_api_key: Key for the ElevenLabs narration provider
        elevenlabs_voice_id: ElevenLabs voice to synthesize with
        data_dir: Directory holding the persisted history
        ambient_track: Looping background music played under narration
        win_sound: Short celebration sound
        request_timeout: Optional timeout in seconds for service requests (None = no timeout)
    """
    gemini_api_key: Optional[str] = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    pollinations_api_key: Optional[str] = None
    elevenlabs_api_key: Optional[str] = None
    elevenlabs_voice_id: str = DEFAULT_ELEVENLABS_VOICE_ID
    data_dir: Path = Path.home() / DEFAULT_DATA_DIR_NAME
    ambient_track: Path = Path(DEFAULT_AMBIENT_TRACK)
    win_sound: Path = Path(DEFAULT_WIN_SOUND)
    request_timeout: Optional[float] = None

    @property
    def storage_path(self) -> Path:
        """Path of the JSON file backing the history ring."""
        return self.data_dir / STORAGE_FILE_NAME

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "AppSettings":
        """
        Build settings from environment variables.

        Args:
            env_file: Optional .env file to load first (default: search from cwd)

        Returns:
            AppSettings with unset variables falling back to defaults

        Raises:
            ValueError: If the request timeout is not a positive number
        """
        if env_file is not None:
            load_dotenv(env_file)
        else:
            load_dotenv()

        defaults = cls()

        timeout_value = _optional(os.getenv(ENV_REQUEST_TIMEOUT))
        request_timeout = None
        if timeout_value is not None:
            request_timeout = float(timeout_value)
            if request_timeout <= 0:
                raise ValueError(f"{ENV_REQUEST_TIMEOUT} must be > 0, got {timeout_value}")

        data_dir = _optional(os.getenv(ENV_DATA_DIR))
        ambient_track = _optional(os.getenv(ENV_AMBIENT_TRACK))
        win_sound = _optional(os.getenv(ENV_WIN_SOUND))

        return cls(
            gemini_api_key=_optional(os.getenv(ENV_GEMINI_API_KEY)),
            gemini_model=_optional(os.getenv(ENV_GEMINI_MODEL)) or defaults.gemini_model,
            pollinations_api_key=_optional(os.getenv(ENV_POLLINATIONS_API_KEY)),
            elevenlabs_api_key=_optional(os.getenv(ENV_ELEVENLABS_API_KEY)),
            elevenlabs_voice_id=_optional(os.getenv(ENV_ELEVENLABS_VOICE_ID)) or defaults.elevenlabs_voice_id,
            data_dir=Path(data_dir).expanduser() if data_dir else defaults.data_dir,
            ambient_track=Path(ambient_track).expanduser() if ambient_track else defaults.ambient_track,
            win_sound=Path(win_sound).expanduser() if win_sound else defaults.win_sound,
            request_timeout=request_timeout,
        )
