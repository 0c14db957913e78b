"""
CanvasLib - Raster coloring engine

This module provides pixel buffer access for drawing surfaces, the
exact-match flood fill engine and the glossy brush compositor.
"""

from DB_Libs.CanvasLib.canvas_models import (
    PixelBuffer,
    Point,
    RgbaColor,
    colors_match,
    hex_to_rgba,
)
from DB_Libs.CanvasLib.pixel_surface import (
    ImageSurface,
    read_pixels,
    write_pixels,
    is_blank,
    encode_png_base64,
    decode_png_base64,
    image_bytes_to_base64_png,
    resize_encoded_image,
)
from DB_Libs.CanvasLib.flood_fill import flood_fill, flood_fill_with_count
from DB_Libs.CanvasLib.brush_compositor import stroke_segment, stamp_dot

__all__ = [
    "PixelBuffer",
    "Point",
    "RgbaColor",
    "colors_match",
    "hex_to_rgba",
    "ImageSurface",
    "read_pixels",
    "write_pixels",
    "is_blank",
    "encode_png_base64",
    "decode_png_base64",
    "image_bytes_to_base64_png",
    "resize_encoded_image",
    "flood_fill",
    "flood_fill_with_count",
    "stroke_segment",
    "stamp_dot",
]
