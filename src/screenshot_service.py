"""Service for capturing screen regions as pixel buffers for the matching engine."""

from __future__ import annotations

import logging

import cv2
import numpy as np
from PIL import Image

from screen_matching.errors import CaptureUnavailable
from screen_matching.models import PixelBuffer, Region

logger = logging.getLogger(__name__)


class ScreenshotService:
    """Capture rectangular screen regions through pyautogui."""

    def capture(self, region: Region, *, grayscale: bool = False) -> PixelBuffer:
        """Capture ``region`` and convert it to the engine's working format.

        Workflow:
            1. Grab the region as an RGB(A) Pillow image.
            2. Convert straight to BGR, or straight to luma when ``grayscale``
               is set, so no intermediate color buffer is built.
        """
        image = self._grab(region)
        rgb = np.asarray(image.convert("RGB"))
        code = cv2.COLOR_RGB2GRAY if grayscale else cv2.COLOR_RGB2BGR
        return PixelBuffer.from_array(cv2.cvtColor(rgb, code))

    def capture_pixel(self, x: int, y: int) -> PixelBuffer:
        """Capture the single pixel at ``(x, y)`` as a 1x1 BGR buffer."""
        return self.capture(Region(x, y, 1, 1))

    def _grab(self, region: Region) -> Image.Image:
        """Return a Pillow image of ``region``. Raise CaptureUnavailable on failure.

        pyautogui is imported here: on a headless machine the import itself
        fails, and that must surface as a capture error, not an import error.
        Only the import is guarded broadly, since the X11 backend connects to
        the display at import time and its connection errors derive straight
        from ``Exception``. The grab itself maps the backend's own errors only.
        """
        try:
            import pyautogui
            from pyscreeze import PyScreezeException
        except Exception as e:
            msg = f"No capture backend for region {region.as_tuple()}: {e}"
            raise CaptureUnavailable(msg) from e

        try:
            image = pyautogui.screenshot(region=region.as_tuple())
        except (
            OSError,
            NotImplementedError,
            PyScreezeException,
            pyautogui.PyAutoGUIException,
        ) as e:
            msg = f"No capturable surface for region {region.as_tuple()}: {e}"
            raise CaptureUnavailable(msg) from e
        if image is None or image.size[0] == 0 or image.size[1] == 0:
            msg = f"Empty capture for region {region.as_tuple()}"
            raise CaptureUnavailable(msg)
        logger.debug("Captured region %s", region.as_tuple())
        return image
