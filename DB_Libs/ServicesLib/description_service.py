"""
Description service client (Gemini ``generateContent`` REST API).

Recognizes what a sketch or photo shows, suggests drawing ideas and writes
the short story for a creation. All calls are blocking; the workflow runs
them off the event loop.

Classes:
    GeminiDescriptionService: requests based Gemini client
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from DB_Libs.ServicesLib import prompts
from DB_Libs.constants import DEFAULT_GEMINI_MODEL, GEMINI_API_URL
from DB_Libs.errors import ExternalServiceError, ServiceFailureCategory, service_error_from_exception

logger = logging.getLogger(__name__)

SERVICE_NAME = "Gemini"


class GeminiDescriptionService:
    """
    Text and vision requests against the Gemini REST API.

    Args:
        api_key: Gemini API key (None = not configured)
        model: Model name placed in the request URL
        timeout: Request timeout in seconds (None = wait indefinitely)
        session: Optional requests session to reuse connections

    Example:
        >>> service = GeminiDescriptionService(api_key="...")
        >>> service.recognize_sketch(snapshot_b64)
        'a smiling sun'
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str = DEFAULT_GEMINI_MODEL,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self._session = session or requests.Session()

    def has_credentials(self) -> bool:
        return bool(self.api_key)

    def _generate(self, parts: List[Dict[str, Any]]) -> str:
        if not self.api_key:
            raise ExternalServiceError(
                "Gemini API key not configured. Please add GEMINI_API_KEY to your .env file.",
                category=ServiceFailureCategory.CREDENTIAL,
            )

        url = GEMINI_API_URL.format(model=self.model)
        payload = {"contents": [{"parts": parts}]}
        try:
            response = self._session.post(url, params={"key": self.api_key}, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error(f"{SERVICE_NAME} request failed: {exc}")
            raise service_error_from_exception(SERVICE_NAME, exc) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ExternalServiceError(
                f"{SERVICE_NAME} returned a response that is not JSON.",
                category=ServiceFailureCategory.DECODE,
            ) from exc

        text = _extract_text(body)
        if not text:
            raise ExternalServiceError(
                f"{SERVICE_NAME} returned an empty response.",
                category=ServiceFailureCategory.DECODE,
            )
        return text

    def _describe_image(self, instruction: str, image_b64: str) -> str:
        if image_b64.startswith("data:"):
            image_b64 = image_b64.split(",", 1)[-1]
        parts = [
            {"text": instruction},
            {"inline_data": {"mime_type": "image/png", "data": image_b64}},
        ]
        return self._generate(parts)

    def recognize_sketch(self, image_b64: str) -> str:
        """Describe what a (white-flattened, downsized) sketch shows."""
        description = self._describe_image(prompts.SKETCH_RECOGNITION_INSTRUCTION, image_b64)
        logger.info(f"Recognized sketch as '{description}'")
        return description

    def recognize_photo(self, image_b64: str) -> str:
        """Describe the main subject of a captured photo."""
        description = self._describe_image(prompts.PHOTO_RECOGNITION_INSTRUCTION, image_b64)
        logger.info(f"Recognized photo as '{description}'")
        return description

    def suggest_idea(self) -> str:
        return self._generate([{"text": prompts.DRAWING_IDEA_INSTRUCTION}])

    def generate_story(self, description: str) -> str:
        """Write a short moral story about ``description``."""
        return self._generate([{"text": prompts.story_instruction(description)}])


def _extract_text(body: Any) -> str:
    """Join the text parts of the first candidate of a generateContent reply."""
    if not isinstance(body, dict):
        return ""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
        return ""
    content = candidates[0].get("content")
    if not isinstance(content, dict):
        return ""
    texts = [str(part.get("text") or "") for part in content.get("parts") or [] if isinstance(part, dict)]
    return "".join(texts).strip()
