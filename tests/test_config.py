"""
Tests for AppSettings resolution from the environment and .env files.
"""

from pathlib import Path

import pytest

from DB_Libs.config import AppSettings
from DB_Libs.constants import (
    DEFAULT_GEMINI_MODEL,
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

ALL_VARIABLES = [
    ENV_AMBIENT_TRACK,
    ENV_DATA_DIR,
    ENV_ELEVENLABS_API_KEY,
    ENV_ELEVENLABS_VOICE_ID,
    ENV_GEMINI_API_KEY,
    ENV_GEMINI_MODEL,
    ENV_POLLINATIONS_API_KEY,
    ENV_REQUEST_TIMEOUT,
    ENV_WIN_SOUND,
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ALL_VARIABLES:
        monkeypatch.delenv(name, raising=False)
    # an empty .env keeps load_dotenv from picking up a developer's file
    env_file = tmp_path / ".env"
    env_file.write_text("", encoding="utf-8")
    return env_file


class TestAppSettings:
    """Tests for AppSettings.from_env."""

    def test_defaults(self, clean_env):
        settings = AppSettings.from_env(clean_env)

        assert settings.gemini_api_key is None
        assert settings.gemini_model == DEFAULT_GEMINI_MODEL
        assert settings.request_timeout is None
        assert settings.storage_path.name == STORAGE_FILE_NAME

    def test_reads_environment(self, clean_env, monkeypatch, tmp_path):
        monkeypatch.setenv(ENV_GEMINI_API_KEY, "gem")
        monkeypatch.setenv(ENV_DATA_DIR, str(tmp_path / "data"))
        monkeypatch.setenv(ENV_REQUEST_TIMEOUT, "12.5")

        settings = AppSettings.from_env(clean_env)

        assert settings.gemini_api_key == "gem"
        assert settings.storage_path == tmp_path / "data" / STORAGE_FILE_NAME
        assert settings.request_timeout == 12.5

    def test_blank_values_count_as_unset(self, clean_env, monkeypatch):
        monkeypatch.setenv(ENV_POLLINATIONS_API_KEY, "   ")
        monkeypatch.setenv(ENV_GEMINI_MODEL, "")

        settings = AppSettings.from_env(clean_env)

        assert settings.pollinations_api_key is None
        assert settings.gemini_model == DEFAULT_GEMINI_MODEL

    def test_env_file_is_loaded(self, clean_env):
        clean_env.write_text(
            f"{ENV_ELEVENLABS_API_KEY}=eleven\n{ENV_WIN_SOUND}=sounds/yay.mp3\n",
            encoding="utf-8",
        )

        settings = AppSettings.from_env(clean_env)

        assert settings.elevenlabs_api_key == "eleven"
        assert settings.win_sound == Path("sounds/yay.mp3")

    def test_environment_wins_over_env_file(self, clean_env, monkeypatch):
        clean_env.write_text(f"{ENV_GEMINI_API_KEY}=from-file\n", encoding="utf-8")
        monkeypatch.setenv(ENV_GEMINI_API_KEY, "from-env")

        assert AppSettings.from_env(clean_env).gemini_api_key == "from-env"

    @pytest.mark.parametrize("value", ["0", "-3", "soon"])
    def test_bad_timeout_raises(self, clean_env, monkeypatch, value):
        monkeypatch.setenv(ENV_REQUEST_TIMEOUT, value)

        with pytest.raises(ValueError):
            AppSettings.from_env(clean_env)
