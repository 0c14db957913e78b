"""
Pytest configuration and shared fixtures for AI Drawing Book tests.

This module provides shared test fixtures and configuration
used across multiple test modules.
"""

import base64
import io

import pytest

from DB_Libs.HistoryLib import CreationRecord, HistoryStore, MemoryStorage
from DB_Libs.pillow_compat import Image


def make_png_base64(width=8, height=8, color=(255, 255, 255, 255)):
    """Encode a solid-color RGBA image as base64 PNG text."""
    output = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(output, format="PNG")
    return base64.b64encode(output.getvalue()).decode("ascii")


def make_png_bytes(width=8, height=8, color=(255, 255, 255, 255)):
    output = io.BytesIO()
    Image.new("RGBA", (width, height), color).save(output, format="PNG")
    return output.getvalue()


def make_record(tag):
    """Creation record whose fields are all derived from ``tag``."""
    return CreationRecord(
        sketch=f"sketch-{tag}",
        generated=f"generated-{tag}",
        recognized_description=f"description {tag}",
        prompt=f"prompt {tag}",
    )


@pytest.fixture
def temp_data_dir(tmp_path):
    """
    Provide a temporary directory for persisted history.

    Args:
        tmp_path: Pytest's built-in temporary directory fixture

    Returns:
        Path object pointing to a temporary directory
    """
    return tmp_path


@pytest.fixture
def sample_rgba_colors():
    """
    Provide a list of sample RGBA color tuples for testing.

    Returns:
        List of (R, G, B, A) tuples with common test colors
    """
    return [
        (255, 0, 0, 255),    # Red
        (0, 255, 0, 255),    # Green
        (0, 0, 255, 255),    # Blue
        (255, 255, 255, 255),  # White
        (0, 0, 0, 255),      # Black
        (128, 128, 128, 255),  # Gray
    ]


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def history(memory_storage):
    """Empty history store backed by in-memory storage."""
    return HistoryStore(memory_storage)


@pytest.fixture
def full_history(memory_storage):
    """History store holding five records tagged 0..4."""
    store = HistoryStore(memory_storage)
    for tag in range(5):
        store.append(make_record(tag))
    return store
