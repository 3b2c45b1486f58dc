"""Pytest configuration and shared fixtures for the matching engine tests.

Nothing here needs a display: screens are synthetic numpy arrays served by
``FakeCapture`` and template/glyph files are written into ``tmp_path``.
"""

import logging
from pathlib import Path

import cv2
import numpy as np
import pytest

from screen_matching.digits import clear_glyph_cache

from _helpers import embed, glyph_images, textured, write_image

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)


@pytest.fixture(autouse=True)
def _fresh_glyph_cache():
    clear_glyph_cache()
    yield
    clear_glyph_cache()


@pytest.fixture
def glyphs() -> dict[int, np.ndarray]:
    return glyph_images()


@pytest.fixture
def glyph_dir(tmp_path, glyphs) -> Path:
    """A complete 0-9 glyph library stored as PNG files."""
    library = tmp_path / "glyphs"
    library.mkdir()
    for digit, img in glyphs.items():
        write_image(library / f"{digit}.png", img)
    return library


@pytest.fixture
def digit_screen(glyphs):
    """Build a BGR screen with glyphs pasted at the given absolute positions."""

    def _build(layout: list[tuple[int, int, int]], size=(120, 60)) -> np.ndarray:
        w, h = size
        screen = textured(h, w, seed=7, channels=1)
        for digit, x, y in layout:
            screen = embed(screen, glyphs[digit], x, y)
        return cv2.cvtColor(screen, cv2.COLOR_GRAY2BGR)

    return _build
