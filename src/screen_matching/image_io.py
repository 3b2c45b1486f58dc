"""Decode template images from disk and persist captured buffers."""

from __future__ import annotations

import logging
from pathlib import Path

import cv2
import numpy as np

from screen_matching.errors import TemplateUnreadable
from screen_matching.models import PixelBuffer

logger = logging.getLogger(__name__)


def read_image(path: Path | str, *, grayscale: bool = False) -> PixelBuffer:
    """Load an image from disk as BGR (or luma). Raise TemplateUnreadable if missing."""
    flag = cv2.IMREAD_GRAYSCALE if grayscale else cv2.IMREAD_COLOR
    img = cv2.imread(str(path), flag)
    if img is None or img.size == 0:
        raise TemplateUnreadable(path)
    return PixelBuffer.from_array(img)


def save_image(buffer: PixelBuffer, path: Path | str) -> Path:
    """Write ``buffer`` to ``path``; the format follows the file extension."""
    out = Path(path)
    if not cv2.imwrite(str(out), np.ascontiguousarray(buffer.pixels)):
        msg = f"Failed to write image to {out}"
        raise OSError(msg)
    logger.debug("Saved %dx%d image to %s", buffer.width, buffer.height, out)
    return out
