"""
Canvas data models for the AI Drawing Book.

This module defines the raster data structures shared by the flood fill
engine and the brush compositor.

Classes:
    PixelBuffer: Flat row-major RGBA byte buffer with its dimensions

Type Aliases:
    RgbaColor: A tuple of 4 integers representing RGBA color values (0-255)
    Point: An (x, y) canvas coordinate, fractional values allowed

Functions:
    hex_to_rgba: Parse a "#RRGGBB" / "#RRGGBBAA" string into an RgbaColor
    colors_match: Exact channel-by-channel color comparison
"""

from dataclasses import dataclass
from typing import Tuple

RgbaColor = Tuple[int, int, int, int]
Point = Tuple[float, float]

CHANNELS = 4


@dataclass
class PixelBuffer:
    """RGBA pixels of a drawing surface.

    Attributes:
        width: Buffer width in pixels
        height: Buffer height in pixels
        data: width * height * 4 bytes, row-major, R G B A per pixel
    """
    width: int
    height: int
    data: bytearray

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Buffer dimensions must be >= 0, got {self.width}x{self.height}")
        expected = self.width * self.height * CHANNELS
        if len(self.data) != expected:
            raise ValueError(
                f"Buffer of {self.width}x{self.height} needs {expected} bytes, got {len(self.data)}"
            )
        if not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)

    @classmethod
    def filled(cls, width: int, height: int, color: RgbaColor) -> "PixelBuffer":
        """Create a buffer with every pixel set to ``color``."""
        return cls(width, height, bytearray(bytes(color) * (width * height)))

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, bytearray(self.data))

    def in_bounds(self, x: int, y: int) -> bool:
        return 0 <= x < self.width and 0 <= y < self.height

    def get_pixel(self, x: int, y: int) -> RgbaColor:
        """
        Read one pixel.

        Raises:
            IndexError: If (x, y) lies outside the buffer
        """
        if not self.in_bounds(x, y):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        offset = (y * self.width + x) * CHANNELS
        r, g, b, a = self.data[offset:offset + CHANNELS]
        return (r, g, b, a)

    def set_pixel(self, x: int, y: int, color: RgbaColor) -> None:
        """
        Write one pixel in place.

        Raises:
            IndexError: If (x, y) lies outside the buffer
        """
        if not self.in_bounds(x, y):
            raise IndexError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} buffer")
        offset = (y * self.width + x) * CHANNELS
        self.data[offset:offset + CHANNELS] = bytes(color)


def hex_to_rgba(value: str) -> RgbaColor:
    """
    Convert a hex color string to an RGBA tuple.

    Args:
        value: "#RRGGBB" or "#RRGGBBAA" (leading '#' optional)

    Returns:
        RgbaColor, alpha defaults to 255

    Raises:
        ValueError: If the string is not a 6 or 8 digit hex color
    """
    text = value.strip().lstrip("#")
    if len(text) not in (6, 8):
        raise ValueError(f"Expected #RRGGBB or #RRGGBBAA, got {value!r}")
    try:
        channels = [int(text[i:i + 2], 16) for i in range(0, len(text), 2)]
    except ValueError:
        raise ValueError(f"Invalid hex color: {value!r}") from None
    if len(channels) == 3:
        channels.append(255)
    return (channels[0], channels[1], channels[2], channels[3])


def colors_match(first: RgbaColor, second: RgbaColor) -> bool:
    """Exact match on all four channels, no tolerance."""
    return tuple(first) == tuple(second)
