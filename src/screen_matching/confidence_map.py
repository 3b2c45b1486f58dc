"""Slide a template over a source buffer and score every alignment.

Scores come from OpenCV's normalized correlation coefficient
(``TM_CCOEFF_NORMED``): 1.0 is a perfect match, values are never clamped or
rescaled here. Callers apply thresholds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import cv2
import numpy as np

from screen_matching.constants import COLOR_CHANNELS
from screen_matching.errors import InvalidBufferShape, TemplateLargerThanSource
from screen_matching.models import PixelBuffer

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ConfidenceMap:
    """Per-alignment similarity scores plus the size of the template used.

    ``scores[row, col]`` is the score of the template placed with its
    top-left corner at ``(col, row)`` in the source.
    """

    scores: np.ndarray = field(repr=False)
    template_width: int
    template_height: int

    @property
    def rows(self) -> int:
        """Number of vertical alignments."""
        return int(self.scores.shape[0])

    @property
    def cols(self) -> int:
        """Number of horizontal alignments."""
        return int(self.scores.shape[1])

    @property
    def is_contiguous(self) -> bool:
        """Whether the score grid is one C-contiguous block."""
        return bool(self.scores.flags.c_contiguous)

    def max_score(self) -> float:
        """Return the best score in the map."""
        return float(self.scores.max())


def _check_fits(source: PixelBuffer, template: PixelBuffer) -> None:
    if template.width > source.width or template.height > source.height:
        raise TemplateLargerThanSource(template.size, source.size)


def prepare_pair(
    source: PixelBuffer,
    template: PixelBuffer,
    *,
    rgb: bool,
) -> tuple[PixelBuffer, PixelBuffer]:
    """Bring source and template into the working format for the chosen mode.

    Color mode keeps both BGR and requires 3 channels on each side. Grayscale
    mode converts to luma, skipping buffers that are already single-channel.
    """
    if rgb:
        if source.channels != COLOR_CHANNELS or template.channels != COLOR_CHANNELS:
            msg = (
                "Color matching needs 3-channel source and template, got "
                f"{source.channels} and {template.channels}"
            )
            raise InvalidBufferShape(msg)
        return source, template
    return source.to_grayscale(), template.to_grayscale()


def build_confidence_map(
    source: PixelBuffer,
    template: PixelBuffer,
    *,
    rgb: bool = True,
) -> ConfidenceMap:
    """Correlate ``template`` against every valid alignment inside ``source``.

    Raises:
        TemplateLargerThanSource: the template does not fit in the source.
        InvalidBufferShape: color mode was requested for a gray buffer.

    """
    _check_fits(source, template)
    src, tpl = prepare_pair(source, template, rgb=rgb)

    # OpenCV needs plain C-ordered arrays; views are copied, contiguous data is not.
    scores = cv2.matchTemplate(
        np.ascontiguousarray(src.pixels),
        np.ascontiguousarray(tpl.pixels),
        cv2.TM_CCOEFF_NORMED,
    )
    logger.debug(
        "Confidence map %dx%d built (%s mode)",
        scores.shape[1],
        scores.shape[0],
        "color" if rgb else "gray",
    )
    return ConfidenceMap(scores, template.width, template.height)
