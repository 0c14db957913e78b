"""
Flood Fill Engine.

Recolors the 4-connected region of exactly-matching pixels around a seed
point. Growth uses an explicit stack instead of recursion so that large
regions cannot hit Python's recursion limit.

Matching is exact on all four channels. Anti-aliased outline pixels are
therefore not part of a region: a fill stops at any feathered pixel, and a
one-pixel gap in an outline lets the fill escape. No tolerance is applied.

Example:
    >>> buffer = PixelBuffer.filled(5, 5, (0, 0, 0, 255))
    >>> filled = flood_fill(buffer, 2, 2, (0, 0, 255, 255))

Functions:
    flood_fill: Fill a region and return the new buffer
    flood_fill_with_count: Same, also returning the number of recolored pixels
"""

from typing import List, Tuple

import numpy as np

from DB_Libs.CanvasLib.canvas_models import PixelBuffer, RgbaColor, colors_match


def _pack(color: RgbaColor) -> np.uint32:
    """Pack an RGBA color the same way a uint32 view of the buffer sees it."""
    return np.frombuffer(bytes(color), dtype=np.uint32)[0]


def flood_fill_with_count(
    buffer: PixelBuffer,
    start_x: int,
    start_y: int,
    fill_color: RgbaColor,
) -> Tuple[PixelBuffer, int]:
    """
    Flood fill the region containing (start_x, start_y).

    The input buffer is never modified; the result is a new buffer.

    Args:
        buffer: Source pixels
        start_x: Seed column
        start_y: Seed row
        fill_color: Replacement RGBA color

    Returns:
        Tuple of (filled buffer, number of pixels recolored)
    """
    width, height = buffer.width, buffer.height
    result = buffer.copy()

    if not buffer.in_bounds(start_x, start_y):
        return result, 0

    if colors_match(buffer.get_pixel(start_x, start_y), fill_color):
        return result, 0

    # One uint32 per pixel: comparing words is comparing all four channels
    pixels = np.frombuffer(result.data, dtype=np.uint32)
    target = pixels[start_y * width + start_x]
    replacement = _pack(fill_color)

    limit = width * height * 4
    recolored = 0
    stack: List[Tuple[int, int]] = [(start_x, start_y)]

    while stack and recolored < limit:
        x, y = stack.pop()

        if x < 0 or x >= width or y < 0 or y >= height:
            continue

        index = y * width + x
        if pixels[index] != target:
            continue

        pixels[index] = replacement
        recolored += 1

        stack.append((x + 1, y))
        stack.append((x - 1, y))
        stack.append((x, y + 1))
        stack.append((x, y - 1))

    return result, recolored


def flood_fill(
    buffer: PixelBuffer,
    start_x: int,
    start_y: int,
    fill_color: RgbaColor,
) -> PixelBuffer:
    """
    Flood fill the region containing (start_x, start_y).

    Filling with the color already under the seed returns an unchanged copy.
    Out-of-bounds seeds are ignored.

    Returns:
        The filled buffer
    """
    filled, _ = flood_fill_with_count(buffer, start_x, start_y, fill_color)
    return filled
