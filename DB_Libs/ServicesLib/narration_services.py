"""
Narration service clients and the provider registry.

Each narrator turns story text into encoded audio bytes. The orchestrator
looks narrators up by provider name through a NarratorRegistry, so new
providers can be added without touching the playback code.

Classes:
    Narrator: Protocol implemented by every narration provider
    PollinationsNarrator: Pollinations text endpoint with the openai-audio model
    ElevenLabsNarrator: ElevenLabs text-to-speech
    NarratorRegistry: Provider name -> narrator lookup

Functions:
    build_default_narrators: Registry with both providers configured from settings
"""

import logging
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

import requests

from DB_Libs.ServicesLib.prompts import NARRATION_PREFIX, narration_text
from DB_Libs.constants import (
    ELEVENLABS_MODEL,
    ELEVENLABS_TTS_URL,
    DEFAULT_ELEVENLABS_VOICE_ID,
    POLLINATIONS_AUDIO_MODEL,
    POLLINATIONS_TEXT_URL,
    POLLINATIONS_VOICE,
    PROVIDER_ELEVENLABS,
    PROVIDER_POLLINATIONS,
)
from DB_Libs.errors import ExternalServiceError, ServiceFailureCategory, service_error_from_exception

logger = logging.getLogger(__name__)


class Narrator(Protocol):
    def synthesize(self, text: str) -> bytes:
        ...


def _require_audio(service_name: str, response: requests.Response) -> bytes:
    data = response.content
    if not data:
        raise ExternalServiceError(
            f"{service_name} returned no audio.",
            category=ServiceFailureCategory.DECODE,
        )
    return data


class PollinationsNarrator:
    """
    Narration through the Pollinations text endpoint.

    The story is embedded in the request path after a fixed instruction and
    the ``openai-audio`` model answers with spoken audio.
    """

    SERVICE_NAME = "Pollinations AI"

    def __init__(
        self,
        api_key: Optional[str],
        voice: str = POLLINATIONS_VOICE,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.voice = voice
        self.timeout = timeout
        self._session = session or requests.Session()

    def build_url(self, story: str) -> str:
        prompt = f"'{NARRATION_PREFIX.lower()} '{story}"
        return POLLINATIONS_TEXT_URL.format(prompt=quote(prompt, safe="'"))

    def synthesize(self, text: str) -> bytes:
        """
        Raises:
            ExternalServiceError: If no API key is configured or the request fails
        """
        if not self.api_key:
            raise ExternalServiceError(
                "Pollinations AI API key not configured. Please add POLLINATIONS_API_KEY to your .env file.",
                category=ServiceFailureCategory.CREDENTIAL,
            )

        params = {"model": POLLINATIONS_AUDIO_MODEL, "voice": self.voice, "token": self.api_key}
        try:
            response = self._session.get(self.build_url(text), params=params, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error(f"Failed to generate audio from {self.SERVICE_NAME}: {exc}")
            raise service_error_from_exception(self.SERVICE_NAME, exc) from exc

        logger.info(f"Generated narration using {self.SERVICE_NAME}")
        return _require_audio(self.SERVICE_NAME, response)


class ElevenLabsNarrator:
    """Narration through the ElevenLabs text-to-speech API."""

    SERVICE_NAME = "ElevenLabs"

    def __init__(
        self,
        api_key: Optional[str],
        voice_id: str = DEFAULT_ELEVENLABS_VOICE_ID,
        model_id: str = ELEVENLABS_MODEL,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.voice_id = voice_id
        self.model_id = model_id
        self.timeout = timeout
        self._session = session or requests.Session()

    def synthesize(self, text: str) -> bytes:
        if not self.api_key:
            raise ExternalServiceError(
                "ElevenLabs API key not configured. Please add ELEVENLABS_API_KEY to your .env file.",
                category=ServiceFailureCategory.CREDENTIAL,
            )

        url = ELEVENLABS_TTS_URL.format(voice_id=self.voice_id)
        headers = {"xi-api-key": self.api_key, "Accept": "audio/mpeg"}
        payload = {"text": narration_text(text), "model_id": self.model_id}
        try:
            response = self._session.post(url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error(f"Failed to generate audio from {self.SERVICE_NAME}: {exc}")
            raise service_error_from_exception(self.SERVICE_NAME, exc) from exc

        logger.info(f"Generated narration using {self.SERVICE_NAME}")
        return _require_audio(self.SERVICE_NAME, response)


class NarratorRegistry:
    """
    Registry of narration providers.

    Example:
        >>> registry = NarratorRegistry()
        >>> registry.register("pollinations", PollinationsNarrator(api_key="..."))
        >>> audio = registry.get("pollinations").synthesize("a brave turtle")
    """

    def __init__(self):
        self._narrators: Dict[str, Narrator] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}

    def register(self, provider: str, narrator: Narrator, description: str = "") -> None:
        """
        Register a narrator under ``provider``.

        Raises:
            ValueError: If provider is empty or narrator has no synthesize()
            RuntimeError: If provider is already registered
        """
        provider = str(provider).strip()

        if not provider:
            raise ValueError("provider cannot be empty")

        if not callable(getattr(narrator, "synthesize", None)):
            raise ValueError(f"narrator must provide synthesize(), got {type(narrator)}")

        if provider in self._narrators:
            raise RuntimeError(
                f"Provider '{provider}' is already registered. "
                f"Use unregister() first to replace it."
            )

        self._narrators[provider] = narrator
        self._metadata[provider] = {"description": str(description)}
        logger.debug(f"Registered narrator for provider: {provider}")

    def unregister(self, provider: str) -> bool:
        provider = str(provider).strip()
        if provider in self._narrators:
            del self._narrators[provider]
            del self._metadata[provider]
            logger.debug(f"Unregistered narrator for provider: {provider}")
            return True
        return False

    def get(self, provider: str) -> Narrator:
        """
        Raises:
            KeyError: If provider is not registered
        """
        provider = str(provider).strip()
        if provider not in self._narrators:
            available = ", ".join(self.list_providers())
            raise KeyError(f"No narrator registered for provider '{provider}'. Available providers: {available}")
        return self._narrators[provider]

    def has(self, provider: str) -> bool:
        return str(provider).strip() in self._narrators

    def get_metadata(self, provider: str) -> Dict[str, Any]:
        provider = str(provider).strip()
        if provider not in self._metadata:
            raise KeyError(f"No metadata for provider '{provider}'")
        return dict(self._metadata[provider])

    def list_providers(self) -> List[str]:
        return sorted(self._narrators)

    def __len__(self) -> int:
        return len(self._narrators)


def build_default_narrators(settings, session: Optional[requests.Session] = None) -> NarratorRegistry:
    """
    Create a registry with the Pollinations and ElevenLabs narrators.

    Args:
        settings: AppSettings providing keys, voice and timeout
        session: Optional shared requests session
    """
    registry = NarratorRegistry()
    registry.register(
        PROVIDER_POLLINATIONS,
        PollinationsNarrator(settings.pollinations_api_key, timeout=settings.request_timeout, session=session),
        description="Pollinations openai-audio narration",
    )
    registry.register(
        PROVIDER_ELEVENLABS,
        ElevenLabsNarrator(
            settings.elevenlabs_api_key,
            voice_id=settings.elevenlabs_voice_id,
            timeout=settings.request_timeout,
            session=session,
        ),
        description="ElevenLabs text-to-speech",
    )
    return registry
