"""Color difference scoring and point/region color queries.

All queries scan in row-major order and report the first qualifying pixel, so
the coordinate returned for a region is deterministic.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from screen_matching.constants import COLOR_CHANNELS, COLOR_SCAN_CHUNK_PIXELS
from screen_matching.errors import InvalidBufferShape
from screen_matching.models import Color, LocateResult

if TYPE_CHECKING:
    from screen_matching.models import PixelBuffer, Region


def difference(a: Color, b: Color) -> int:
    """Return the Manhattan distance between two colors (0..765)."""
    return abs(a.r - b.r) + abs(a.g - b.g) + abs(a.b - b.b)


def _require_color(buffer: PixelBuffer) -> None:
    if buffer.channels != COLOR_CHANNELS:
        msg = f"Color queries need a 3-channel buffer, got {buffer.channels}"
        raise InvalidBufferShape(msg)


def _row_differences(rows: np.ndarray, target: Color) -> np.ndarray:
    """Per-pixel difference for an ``(n, 3)`` block of BGR samples."""
    target_bgr = np.array([target.b, target.g, target.r], dtype=np.int16)
    return np.abs(rows.astype(np.int16) - target_bgr).sum(axis=-1)


def first_matching_pixel(
    buffer: PixelBuffer,
    target: Color,
    tolerance: int,
) -> tuple[int, int] | None:
    """Return ``(row, col)`` of the first pixel within tolerance, or None.

    Contiguous buffers are scored in fixed-size vectorized chunks of the flat
    pixel run; strided views are walked row by row. Both stop at the first
    chunk or row holding a hit and report the same pixel.
    """
    _require_color(buffer)
    pixels = buffer.pixels
    if buffer.is_contiguous:
        flat = pixels.reshape(-1, COLOR_CHANNELS)
        for start in range(0, flat.shape[0], COLOR_SCAN_CHUNK_PIXELS):
            chunk = flat[start : start + COLOR_SCAN_CHUNK_PIXELS]
            hits = np.flatnonzero(_row_differences(chunk, target) <= tolerance)
            if hits.size:
                row, col = divmod(start + int(hits[0]), buffer.width)
                return (row, col)
        return None

    for row_index in range(buffer.height):
        hits = np.flatnonzero(_row_differences(pixels[row_index], target) <= tolerance)
        if hits.size:
            return (row_index, int(hits[0]))
    return None


def point_matches(buffer: PixelBuffer, target: Color, tolerance: int) -> bool:
    """Compare the single pixel of a 1x1 buffer against ``target``."""
    if buffer.size != (1, 1):
        msg = f"Point queries expect a 1x1 buffer, got {buffer.width}x{buffer.height}"
        raise InvalidBufferShape(msg)
    _require_color(buffer)
    b, g, r = (int(v) for v in buffer.pixels[0, 0])
    return difference(Color(r, g, b), target) <= tolerance


def region_contains_color(buffer: PixelBuffer, target: Color, tolerance: int) -> bool:
    """Return True when any pixel lies within ``tolerance`` of ``target``."""
    return first_matching_pixel(buffer, target, tolerance) is not None


def region_find_color(
    buffer: PixelBuffer,
    region: Region,
    target: Color,
    tolerance: int,
) -> LocateResult:
    """Return the absolute coordinate of the first matching pixel."""
    hit = first_matching_pixel(buffer, target, tolerance)
    if hit is None:
        return LocateResult.missing()
    row, col = hit
    return LocateResult(found=True, x=region.x + col, y=region.y + row)


def region_find_color_coord(
    buffer: PixelBuffer,
    region: Region,
    target: Color,
    tolerance: int,
) -> tuple[int, int]:
    """Compatibility form of ``region_find_color``: ``(0, 0)`` when not found."""
    return region_find_color(buffer, region, target, tolerance).as_legacy()
