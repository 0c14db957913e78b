"""
Brush Compositor.

Renders the glossy marker used in pen mode: a round-capped stroke whose
color is fully opaque on the centerline and fades linearly to transparent
at ``radius`` pixels from it. New paint is composited over existing pixels
with ordinary source-over blending.

Pixel centers sit at (x + 0.5, y + 0.5). Anything outside the buffer is
clipped, never an error.

Functions:
    stroke_segment: Paint one segment of a freehand stroke
    stamp_dot: Paint a single disc (the touch-down point of a stroke)
"""

from typing import Optional, Tuple

import numpy as np

from DB_Libs.CanvasLib.canvas_models import CHANNELS, PixelBuffer, Point, RgbaColor


def _bounding_box(start: Point, end: Point, radius: float, width: int, height: int) -> Optional[Tuple[int, int, int, int]]:
    x_lo = max(0, int(np.floor(min(start[0], end[0]) - radius)))
    y_lo = max(0, int(np.floor(min(start[1], end[1]) - radius)))
    x_hi = min(width, int(np.ceil(max(start[0], end[0]) + radius)) + 1)
    y_hi = min(height, int(np.ceil(max(start[1], end[1]) + radius)) + 1)
    if x_lo >= x_hi or y_lo >= y_hi:
        return None
    return x_lo, y_lo, x_hi, y_hi


def _segment_distance(xx: np.ndarray, yy: np.ndarray, start: Point, end: Point) -> np.ndarray:
    """Distance from each (xx, yy) to the closed segment start-end."""
    sx, sy = float(start[0]), float(start[1])
    dx, dy = float(end[0]) - sx, float(end[1]) - sy
    length_sq = dx * dx + dy * dy
    if length_sq == 0.0:
        return np.hypot(xx - sx, yy - sy)
    t = np.clip(((xx - sx) * dx + (yy - sy) * dy) / length_sq, 0.0, 1.0)
    return np.hypot(xx - (sx + t * dx), yy - (sy + t * dy))


def _composite_over(region: np.ndarray, color: RgbaColor, coverage: np.ndarray) -> np.ndarray:
    """Source-over blend ``color`` at per-pixel ``coverage`` onto an RGBA region."""
    dst = region.astype(np.float32) / 255.0
    src_rgb = np.array(color[:3], dtype=np.float32) / 255.0
    src_a = (color[3] / 255.0) * coverage

    dst_a = dst[..., 3]
    out_a = src_a + dst_a * (1.0 - src_a)

    weight_src = src_a[..., np.newaxis]
    weight_dst = (dst_a * (1.0 - src_a))[..., np.newaxis]
    safe_a = np.where(out_a > 0.0, out_a, 1.0)[..., np.newaxis]
    out_rgb = (src_rgb * weight_src + dst[..., :3] * weight_dst) / safe_a
    out_rgb = np.where(out_a[..., np.newaxis] > 0.0, out_rgb, 0.0)

    blended = np.empty_like(dst)
    blended[..., :3] = out_rgb
    blended[..., 3] = out_a
    return np.clip(np.rint(blended * 255.0), 0, 255).astype(np.uint8)


def stroke_segment(
    buffer: PixelBuffer,
    start: Point,
    end: Point,
    color: RgbaColor,
    radius: float,
) -> PixelBuffer:
    """
    Paint a round-capped, radially faded segment from ``start`` to ``end``.

    Args:
        buffer: Source pixels (not modified)
        start: Segment start point
        end: Segment end point
        color: Stroke RGBA color at the centerline
        radius: Distance at which the stroke becomes fully transparent

    Returns:
        New buffer with the stroke composited on top

    Raises:
        ValueError: If radius is not positive
    """
    if radius <= 0:
        raise ValueError(f"radius must be > 0, got {radius}")

    result = buffer.copy()
    box = _bounding_box(start, end, radius, buffer.width, buffer.height)
    if box is None:
        return result

    x_lo, y_lo, x_hi, y_hi = box
    ys = np.arange(y_lo, y_hi, dtype=np.float32) + 0.5
    xs = np.arange(x_lo, x_hi, dtype=np.float32) + 0.5
    xx, yy = np.meshgrid(xs, ys)

    distance = _segment_distance(xx, yy, start, end)
    coverage = np.clip(1.0 - distance / float(radius), 0.0, 1.0)
    if not np.any(coverage > 0.0):
        return result

    pixels = np.frombuffer(result.data, dtype=np.uint8).reshape(buffer.height, buffer.width, CHANNELS)
    region = pixels[y_lo:y_hi, x_lo:x_hi]
    painted = coverage > 0.0
    blended = _composite_over(region, color, coverage)
    region[painted] = blended[painted]
    return result


def stamp_dot(
    buffer: PixelBuffer,
    at: Point,
    color: RgbaColor,
    radius: float,
) -> PixelBuffer:
    """
    Paint a single faded disc centered on ``at``.

    Used for the touch-down point so a tap without a drag still paints.
    """
    return stroke_segment(buffer, at, at, color, radius)
