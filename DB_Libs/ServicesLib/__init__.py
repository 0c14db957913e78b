"""
ServicesLib - External generative service clients

This module provides the description (recognition, ideas, stories), image
generation and narration service clients, plus the fixed prompt templates.
"""

from DB_Libs.ServicesLib import prompts
from DB_Libs.ServicesLib.description_service import GeminiDescriptionService
from DB_Libs.ServicesLib.image_generation_service import PollinationsImageService
from DB_Libs.ServicesLib.narration_services import (
    ElevenLabsNarrator,
    Narrator,
    NarratorRegistry,
    PollinationsNarrator,
    build_default_narrators,
)

__all__ = [
    "prompts",
    "GeminiDescriptionService",
    "PollinationsImageService",
    "ElevenLabsNarrator",
    "Narrator",
    "NarratorRegistry",
    "PollinationsNarrator",
    "build_default_narrators",
]
