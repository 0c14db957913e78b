"""
Image generation service client (Pollinations image endpoint).

Classes:
    PollinationsImageService: Turns a text prompt into image bytes
"""

import io
import logging
from typing import Optional
from urllib.parse import quote

import requests

from DB_Libs.constants import POLLINATIONS_IMAGE_URL
from DB_Libs.errors import ExternalServiceError, ServiceFailureCategory, service_error_from_exception
from DB_Libs.pillow_compat import Image

logger = logging.getLogger(__name__)

SERVICE_NAME = "Pollinations"


class PollinationsImageService:
    """
    Fetches generated images from Pollinations.

    Args:
        timeout: Request timeout in seconds (None = wait indefinitely)
        session: Optional requests session to reuse connections
    """

    def __init__(self, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self._session = session or requests.Session()

    def generate_outline(self, prompt: str) -> bytes:
        """
        Generate an image for ``prompt``.

        Args:
            prompt: Full text prompt (see ServicesLib.prompts)

        Returns:
            Encoded image bytes that Pillow can decode

        Raises:
            ExternalServiceError: On request failure or undecodable data
        """
        url = POLLINATIONS_IMAGE_URL.format(prompt=quote(prompt, safe=""))
        try:
            response = self._session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error(f"Image generation failed: {exc}")
            raise service_error_from_exception(SERVICE_NAME, exc) from exc

        data = response.content
        try:
            with Image.open(io.BytesIO(data)) as image:
                image.verify()
        except (OSError, SyntaxError) as exc:
            raise ExternalServiceError(
                "Failed to load generated image for coloring.",
                category=ServiceFailureCategory.DECODE,
            ) from exc

        logger.debug(f"Generated image of {len(data)} bytes")
        return data
