"""Value types shared by the matching components.

Channel conventions:
    * ``Color`` is always ``(r, g, b)``.
    * ``PixelBuffer`` samples are stored in OpenCV order, i.e. BGR for color
      buffers and a single luma plane for grayscale ones.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field

import cv2
import numpy as np

from screen_matching.constants import COLOR_CHANNELS, GRAY_CHANNELS, NOT_FOUND_SENTINEL
from screen_matching.errors import InvalidBufferShape


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (12.5 -> 13)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


@dataclass(frozen=True)
class Color:
    """An 8-bit RGB color."""

    r: int
    g: int
    b: int

    def __post_init__(self) -> None:
        """Reject channel values outside 0..255."""
        for name, value in (("r", self.r), ("g", self.g), ("b", self.b)):
            if not 0 <= value <= 255:
                msg = f"Color channel {name}={value} is outside 0..255"
                raise ValueError(msg)

    @classmethod
    def from_tuple(cls, rgb: Sequence[int]) -> Color:
        """Build a color from an ``(r, g, b)`` sequence."""
        r, g, b = rgb
        return cls(int(r), int(g), int(b))

    def to_tuple(self) -> tuple[int, int, int]:
        """Return the ``(r, g, b)`` tuple."""
        return (self.r, self.g, self.b)


@dataclass(frozen=True)
class Point:
    """A 2D coordinate; integer for pixels, float for unrounded centers."""

    x: float
    y: float


@dataclass(frozen=True)
class Region:
    """An absolute screen rectangle: top-left corner plus size."""

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        """Reject empty regions."""
        if self.width < 1 or self.height < 1:
            msg = f"Region size must be at least 1x1, got {self.width}x{self.height}"
            raise ValueError(msg)

    def to_absolute(self, local_x: float, local_y: float) -> tuple[float, float]:
        """Translate buffer-local coordinates into absolute screen coordinates."""
        return (self.x + local_x, self.y + local_y)

    def as_tuple(self) -> tuple[int, int, int, int]:
        """Return ``(x, y, width, height)``."""
        return (self.x, self.y, self.width, self.height)


@dataclass(frozen=True, eq=False)
class PixelBuffer:
    """A rectangular grid of uint8 samples, 1 (gray) or 3 (BGR) channels.

    Every construction path validates the shape, so a malformed buffer fails
    here instead of deep inside a scan. ``from_array`` additionally accepts
    an ``(h, w, 1)`` array and ``from_bytes`` packed samples.
    """

    pixels: np.ndarray = field(repr=False)

    def __post_init__(self) -> None:
        """Reject arrays that are not ``(h, w)`` or ``(h, w, 3)`` uint8 with area."""
        arr = self.pixels
        if not isinstance(arr, np.ndarray):
            msg = f"Pixel samples must be a numpy array, got {type(arr).__name__}"
            raise InvalidBufferShape(msg)
        if arr.dtype != np.uint8:
            msg = f"Pixel samples must be uint8, got {arr.dtype}"
            raise InvalidBufferShape(msg)
        if arr.ndim != 2 and (arr.ndim != 3 or arr.shape[2] != COLOR_CHANNELS):
            msg = f"Unsupported pixel array shape {arr.shape}"
            raise InvalidBufferShape(msg)
        if arr.shape[0] == 0 or arr.shape[1] == 0:
            msg = f"Pixel buffer has no area: {arr.shape}"
            raise InvalidBufferShape(msg)

    @classmethod
    def from_array(cls, array: np.ndarray) -> PixelBuffer:
        """Wrap an ``(h, w)``, ``(h, w, 1)`` or ``(h, w, 3)`` uint8 array without copying."""
        arr = np.asarray(array)
        if arr.ndim == 3 and arr.shape[2] == GRAY_CHANNELS:
            arr = arr[:, :, 0]
        return cls(arr)

    @classmethod
    def from_bytes(
        cls,
        width: int,
        height: int,
        channels: int,
        data: bytes | bytearray | Sequence[int],
    ) -> PixelBuffer:
        """Build a buffer from tightly packed, row-major samples."""
        if channels not in (GRAY_CHANNELS, COLOR_CHANNELS):
            msg = f"Unsupported channel count {channels}"
            raise InvalidBufferShape(msg)
        expected = width * height * channels
        flat = np.frombuffer(bytes(data), dtype=np.uint8)
        if width < 1 or height < 1 or flat.size != expected:
            msg = (
                f"Expected {expected} samples for {width}x{height}x{channels}, "
                f"got {flat.size}"
            )
            raise InvalidBufferShape(msg)
        shape = (height, width) if channels == GRAY_CHANNELS else (height, width, channels)
        return cls(flat.reshape(shape))

    @property
    def width(self) -> int:
        """Number of columns."""
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        """Number of rows."""
        return int(self.pixels.shape[0])

    @property
    def channels(self) -> int:
        """1 for grayscale, 3 for BGR."""
        return GRAY_CHANNELS if self.pixels.ndim == 2 else COLOR_CHANNELS

    @property
    def size(self) -> tuple[int, int]:
        """``(width, height)``."""
        return (self.width, self.height)

    @property
    def is_contiguous(self) -> bool:
        """Whether samples are laid out as one C-contiguous block."""
        return bool(self.pixels.flags.c_contiguous)

    def to_grayscale(self) -> PixelBuffer:
        """Return the luma plane, or ``self`` when already single-channel."""
        if self.channels == GRAY_CHANNELS:
            return self
        gray = cv2.cvtColor(np.ascontiguousarray(self.pixels), cv2.COLOR_BGR2GRAY)
        return PixelBuffer(gray)


@dataclass(frozen=True)
class MatchCandidate:
    """One confidence-map cell at or above the threshold.

    ``rectangle`` holds the corners in the order top-left, bottom-left,
    top-right, bottom-right. ``center`` is left unrounded.
    """

    confidence: float
    top_left: Point
    rectangle: tuple[Point, Point, Point, Point]
    center: Point

    @classmethod
    def from_cell(
        cls,
        row: int,
        col: int,
        confidence: float,
        template_width: int,
        template_height: int,
    ) -> MatchCandidate:
        """Build the candidate for map cell ``(row, col)``."""
        return cls(
            confidence=confidence,
            top_left=Point(col, row),
            rectangle=(
                Point(col, row),
                Point(col, row + template_height),
                Point(col + template_width, row),
                Point(col + template_width, row + template_height),
            ),
            center=Point(col + template_width / 2.0, row + template_height / 2.0),
        )

    def rounded_center(self) -> tuple[int, int]:
        """Center in whole pixels, halves rounded away from zero."""
        return (round_half_away(self.center.x), round_half_away(self.center.y))


@dataclass(frozen=True)
class LocateResult:
    """A coordinate lookup outcome that keeps "not found" explicit."""

    found: bool
    x: int = 0
    y: int = 0

    @classmethod
    def missing(cls) -> LocateResult:
        """Return the not-found result."""
        return cls(found=False)

    def as_legacy(self) -> tuple[int, int]:
        """Return ``(x, y)``, or the ``(0, 0)`` sentinel when nothing matched.

        Compatibility form only: a real match at the screen origin is
        indistinguishable from a miss.
        """
        return (self.x, self.y) if self.found else NOT_FOUND_SENTINEL


@dataclass
class PerfStat:
    """Store performance metrics for a specific matching stage."""

    name: str
    duration_ms: float
    items_found: int
