"""
Pixel buffer access for drawing surfaces.

A drawing surface owns an RGBA Pillow image of fixed size. Fill and brush
operations read a PixelBuffer copy, work on it, and write the result back
in a single replace, so no other operation ever sees a half-painted buffer.

Classes:
    ImageSurface: Pillow-backed drawing surface (sketch pad or coloring page)

Functions:
    read_pixels: Materialize a surface's current contents as a PixelBuffer
    write_pixels: Replace a surface's contents with a PixelBuffer
    is_blank: True when every byte of the surface is zero
    encode_png_base64: Encode a Pillow image as base64 PNG text
    decode_png_base64: Decode base64 PNG text into an RGBA Pillow image
    image_bytes_to_base64_png: Re-encode raw image bytes as base64 PNG text
    resize_encoded_image: Shrink an encoded image to a maximum side length
"""

import base64
import binascii
import io
from typing import Any

from DB_Libs.CanvasLib.canvas_models import PixelBuffer
from DB_Libs.constants import SKETCH_BACKGROUND_COLOR, SKETCH_SNAPSHOT_MAX_SIZE
from DB_Libs.pillow_compat import Image, LANCZOS

TRANSPARENT = (0, 0, 0, 0)


class ImageSurface:
    """
    Drawing surface backed by a Pillow RGBA image.

    A freshly created surface is fully transparent (all bytes zero), which
    is what ``is_blank`` tests for.

    Example:
        >>> surface = ImageSurface(200, 100)
        >>> buffer = read_pixels(surface)
        >>> write_pixels(surface, buffer)
    """

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self._image = Image.new("RGBA", (width, height), TRANSPARENT)

    @property
    def width(self) -> int:
        return self._image.width

    @property
    def height(self) -> int:
        return self._image.height

    @property
    def image(self) -> Any:
        """A copy of the current contents as a Pillow image."""
        return self._image.copy()

    def replace_image(self, image: Any) -> None:
        """
        Replace the surface contents with ``image``.

        Raises:
            ValueError: If the image size differs from the surface size
        """
        if image.size != self._image.size:
            raise ValueError(f"Image size {image.size} does not match surface size {self._image.size}")
        self._image = image.convert("RGBA")

    def clear(self) -> None:
        self._image = Image.new("RGBA", self._image.size, TRANSPARENT)

    def draw_image(self, image: Any) -> None:
        """Clear the surface and stretch ``image`` over all of it."""
        stretched = image.convert("RGBA").resize(self._image.size, LANCZOS)
        self.replace_image(stretched)

    def draw_encoded(self, encoded: str) -> None:
        """Clear the surface and stretch a base64 PNG over all of it."""
        self.draw_image(decode_png_base64(encoded))

    def to_base64_png(self) -> str:
        """Encode the full-size surface contents as base64 PNG."""
        return encode_png_base64(self._image)

    def snapshot_on_white(self, max_size: int = SKETCH_SNAPSHOT_MAX_SIZE) -> str:
        """
        Flatten the surface onto a white background and encode it.

        Transparent areas of a sketch would otherwise read as black to the
        recognizer.

        Args:
            max_size: Longest side of the encoded snapshot in pixels

        Returns:
            Base64 PNG text
        """
        background = Image.new("RGBA", self._image.size, SKETCH_BACKGROUND_COLOR)
        flattened = Image.alpha_composite(background, self._image)
        return resize_encoded_image(encode_png_base64(flattened), max_size)


def read_pixels(surface: ImageSurface) -> PixelBuffer:
    """
    Read the current raster contents of a surface.

    Args:
        surface: The drawing surface to read

    Returns:
        A PixelBuffer the caller owns exclusively
    """
    image = surface.image
    return PixelBuffer(image.width, image.height, bytearray(image.tobytes()))


def write_pixels(surface: ImageSurface, buffer: PixelBuffer) -> None:
    """
    Replace a surface's visible contents with ``buffer`` in one paint.

    Raises:
        ValueError: If the buffer size does not match the surface
    """
    if (buffer.width, buffer.height) != (surface.width, surface.height):
        raise ValueError(
            f"Buffer {buffer.width}x{buffer.height} does not match surface "
            f"{surface.width}x{surface.height}"
        )
    image = Image.frombytes("RGBA", (buffer.width, buffer.height), bytes(buffer.data))
    surface.replace_image(image)


def is_blank(surface: ImageSurface) -> bool:
    """True when nothing has been drawn: every sample is exactly zero."""
    return not any(read_pixels(surface).data)


def encode_png_base64(image: Any) -> str:
    """Encode a Pillow image as base64 PNG text (no data URL prefix)."""
    output = io.BytesIO()
    image.save(output, format="PNG")
    return base64.b64encode(output.getvalue()).decode("ascii")


def decode_png_base64(encoded: str) -> Any:
    """
    Decode base64 image text into an RGBA Pillow image.

    Accepts plain base64 or a ``data:image/...;base64,`` URL.

    Raises:
        ValueError: If the text is not valid base64 image data
    """
    if encoded.startswith("data:"):
        encoded = encoded.split(",", 1)[-1]
    try:
        raw = base64.b64decode(encoded, validate=True)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, OSError) as exc:
        raise ValueError(f"Could not decode image data: {exc}") from exc
    return image.convert("RGBA")


def image_bytes_to_base64_png(data: bytes) -> str:
    """
    Re-encode image bytes in any Pillow-readable format as base64 PNG.

    Raises:
        ValueError: If the bytes are not a readable image
    """
    try:
        image = Image.open(io.BytesIO(data))
        image.load()
    except OSError as exc:
        raise ValueError(f"Could not decode image data: {exc}") from exc
    return encode_png_base64(image.convert("RGBA"))


def resize_encoded_image(encoded: str, max_size: int = SKETCH_SNAPSHOT_MAX_SIZE) -> str:
    """
    Shrink an encoded image so its longest side is at most ``max_size``.

    Images already within the limit are re-encoded unchanged in size.
    """
    image = decode_png_base64(encoded)
    image.thumbnail((max_size, max_size), LANCZOS)
    return encode_png_base64(image)
