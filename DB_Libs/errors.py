"""
Error taxonomy for the AI Drawing Book.

Every error raised by the library carries a ``user_message`` that the
workflow controller can show as-is. The four families are:

- InputPreconditionError: the user asked for something the current state
  cannot satisfy (blank canvas, no selection). Nothing is mutated.
- ExternalServiceError: a description, image or narration service failed.
  Carries a ServiceFailureCategory used to pick the message.
- ResourceUnavailableError: a local capability is missing (webcam denied,
  video encoder not available).
- AudioPlaybackError: an audio clip could not be decoded or played.

Functions:
    classify_request_exception: Map a requests exception to a category
    service_error_from_exception: Wrap a requests exception as ExternalServiceError
    story_failure_message: User-facing text for a failed story request
"""

from enum import Enum
from typing import Optional

import requests


class ServiceFailureCategory(Enum):
    """Why an external service call failed."""

    NETWORK = "network"
    CREDENTIAL = "credential"
    QUOTA = "quota"
    DECODE = "decode"
    UNKNOWN = "unknown"


class DrawingBookError(Exception):
    """Base class for all drawing book errors."""

    def __init__(self, user_message: str):
        super().__init__(user_message)
        self.user_message = user_message


class InputPreconditionError(DrawingBookError):
    """The operation's input preconditions are not met."""


class ExternalServiceError(DrawingBookError):
    """An external generative service failed."""

    def __init__(
        self,
        user_message: str,
        category: ServiceFailureCategory = ServiceFailureCategory.UNKNOWN,
        status_code: Optional[int] = None,
    ):
        super().__init__(user_message)
        self.category = category
        self.status_code = status_code


class ResourceUnavailableError(DrawingBookError):
    """A local device or tool is not available."""


class AudioPlaybackError(DrawingBookError):
    """An audio clip could not be loaded or played."""


def classify_request_exception(exc: BaseException) -> ServiceFailureCategory:
    """
    Map a requests exception to a failure category.

    Args:
        exc: Exception raised by a requests call

    Returns:
        The matching ServiceFailureCategory
    """
    if isinstance(exc, (requests.ConnectionError, requests.Timeout)):
        return ServiceFailureCategory.NETWORK

    if isinstance(exc, requests.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        if status in (401, 403):
            return ServiceFailureCategory.CREDENTIAL
        if status == 429:
            return ServiceFailureCategory.QUOTA
        body = (exc.response.text or "").lower()
        if "quota" in body:
            return ServiceFailureCategory.QUOTA
        if "api key" in body:
            return ServiceFailureCategory.CREDENTIAL

    return ServiceFailureCategory.UNKNOWN


def service_error_from_exception(service_name: str, exc: BaseException) -> ExternalServiceError:
    """
    Wrap a requests exception in an ExternalServiceError.

    Args:
        service_name: Human-readable name of the failing service
        exc: The original exception

    Returns:
        ExternalServiceError with category and status code filled in
    """
    category = classify_request_exception(exc)
    status_code = None
    response = getattr(exc, "response", None)
    if response is not None:
        status_code = response.status_code

    if category is ServiceFailureCategory.NETWORK:
        message = f"Failed to fetch from {service_name}. Please check your internet connection."
    elif category is ServiceFailureCategory.CREDENTIAL:
        message = f"Invalid API key for {service_name}."
    elif category is ServiceFailureCategory.QUOTA:
        message = f"API quota exceeded for {service_name}."
    elif status_code is not None:
        message = f"{service_name} request failed with status {status_code}."
    else:
        message = f"{service_name} request failed: {exc}"

    return ExternalServiceError(message, category=category, status_code=status_code)


def story_failure_message(exc: BaseException) -> str:
    """
    Build the message shown when story generation fails.

    Args:
        exc: The exception raised while generating the story

    Returns:
        A friendly, category-specific message
    """
    if isinstance(exc, ExternalServiceError):
        if exc.category is ServiceFailureCategory.NETWORK:
            return (
                "Unable to connect to the story generator. Please check your internet "
                "connection and API key configuration."
            )
        if exc.category is ServiceFailureCategory.CREDENTIAL:
            return "Invalid API key. Please check your GEMINI_API_KEY setting."
        if exc.category is ServiceFailureCategory.QUOTA:
            return "API quota exceeded. Please check your Gemini API usage limits."

    if isinstance(exc, DrawingBookError) and exc.user_message:
        return exc.user_message

    return "The storyteller seems to be napping! Please try again."
