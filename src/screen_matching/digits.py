"""Digit-string recognition against a 0-9 glyph library.

Summary
-------
- ``DigitGlyphLibrary`` lazily loads ``<library>/<digit><ext>`` templates and
  keeps them for reuse; a missing glyph only means that digit is never read.
- ``get_glyph_library`` hands out one library per path for the whole process,
  until ``clear_glyph_cache`` is called.
- ``DigitRecognizer`` scans one captured buffer for every glyph in parallel
  (one task per digit), then merges all hits and orders them left to right.
"""

from __future__ import annotations

import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from screen_matching.candidates import find_all_template
from screen_matching.constants import DEFAULT_GLYPH_EXTENSIONS, DIGITS, MAX_DIGIT_WORKERS
from screen_matching.errors import TemplateUnreadable
from screen_matching.image_io import read_image

if TYPE_CHECKING:
    from collections.abc import Iterable

    from screen_matching.models import PixelBuffer, Region

logger = logging.getLogger(__name__)


class DigitGlyphLibrary:
    """Templates for the digits 0-9 found under one directory.

    Glyphs are decoded on first request and cached as luma buffers. Lookups
    read the cache without locking; population takes a lock so a glyph is
    decoded at most once even when several workers ask for it together.
    """

    def __init__(
        self,
        path: Path | str,
        extensions: Iterable[str] = DEFAULT_GLYPH_EXTENSIONS,
    ) -> None:
        """Point the library at ``path``; nothing is read yet."""
        self.path = Path(path)
        self.extensions = tuple(extensions)
        self._glyphs: dict[int, PixelBuffer] = {}
        self._lock = threading.Lock()

    def get(self, digit: int) -> PixelBuffer | None:
        """Return the glyph for ``digit``, or None when it cannot be loaded."""
        glyph = self._glyphs.get(digit)
        if glyph is not None:
            return glyph
        with self._lock:
            glyph = self._glyphs.get(digit)
            if glyph is None:
                glyph = self._load(digit)
                if glyph is not None:
                    self._glyphs[digit] = glyph
        return glyph

    def load_all(self) -> dict[int, PixelBuffer]:
        """Return every loadable glyph keyed by digit, in digit order."""
        glyphs = {}
        for digit in DIGITS:
            glyph = self.get(digit)
            if glyph is not None:
                glyphs[digit] = glyph
        return glyphs

    def _load(self, digit: int) -> PixelBuffer | None:
        for ext in self.extensions:
            glyph_path = self.path / f"{digit}{ext}"
            if not glyph_path.is_file():
                continue
            try:
                return read_image(glyph_path).to_grayscale()
            except TemplateUnreadable:
                logger.debug("Glyph %s is unreadable, skipping", glyph_path)
        logger.debug("No usable glyph for digit %d in %s", digit, self.path)
        return None


# Process-wide libraries, keyed by resolved path and extension order.
_LIBRARIES: dict[tuple[Path, tuple[str, ...]], DigitGlyphLibrary] = {}
_LIBRARIES_LOCK = threading.Lock()


def get_glyph_library(
    path: Path | str,
    extensions: Iterable[str] = DEFAULT_GLYPH_EXTENSIONS,
) -> DigitGlyphLibrary:
    """Return the shared library for ``path``, creating it on first use."""
    key = (Path(path).resolve(), tuple(extensions))
    library = _LIBRARIES.get(key)
    if library is not None:
        return library
    with _LIBRARIES_LOCK:
        library = _LIBRARIES.get(key)
        if library is None:
            library = DigitGlyphLibrary(key[0], key[1])
            _LIBRARIES[key] = library
    return library


def clear_glyph_cache() -> None:
    """Forget every cached library; the next call reloads glyphs from disk."""
    with _LIBRARIES_LOCK:
        _LIBRARIES.clear()


@dataclass(frozen=True)
class DigitHit:
    """One glyph match: absolute center x and the digit it stands for."""

    x: float
    digit: int


class DigitRecognizer:
    """Read left-to-right digit strings with a bounded fan-out over glyphs."""

    def __init__(self, max_workers: int = MAX_DIGIT_WORKERS) -> None:
        """Cap the worker pool; there is never more than one task per digit."""
        self.max_workers = max(1, min(max_workers, MAX_DIGIT_WORKERS))

    def locate_digits(
        self,
        buffer: PixelBuffer,
        library: DigitGlyphLibrary,
        threshold: float,
        region: Region | None = None,
        timeout: float | None = None,
    ) -> list[DigitHit]:
        """Return every glyph hit sorted by absolute x.

        The buffer is converted to luma once and shared read-only by all
        tasks. Results are merged in digit order and then stable-sorted, so
        the output does not depend on which task finished first.

        Args:
            buffer: Captured region, color or gray.
            library: Glyph templates to look for.
            threshold: Minimum correlation score for a glyph hit.
            region: Where ``buffer`` was captured; x offsets default to 0.
            timeout: Seconds to wait at the join. None waits for all tasks.

        Raises:
            TimeoutError: ``timeout`` elapsed; unfinished results are dropped.

        """
        glyphs = library.load_all()
        if not glyphs:
            logger.warning("No digit glyphs available under %s", library.path)
            return []

        gray = buffer.to_grayscale()
        offset_x = region.x if region else 0
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(glyphs)),
            thread_name_prefix="digit-scan",
        )
        abandoned = False
        try:
            futures = {
                digit: executor.submit(
                    self._scan_digit, gray, glyph, digit, threshold, offset_x
                )
                for digit, glyph in glyphs.items()
            }
            _, pending = concurrent.futures.wait(futures.values(), timeout=timeout)
            if pending:
                abandoned = True
                msg = f"Digit recognition did not finish within {timeout}s"
                raise TimeoutError(msg)

            merged: list[DigitHit] = []
            for digit in sorted(futures):
                merged.extend(futures[digit].result())
        finally:
            executor.shutdown(wait=not abandoned, cancel_futures=abandoned)

        merged.sort(key=lambda hit: hit.x)
        return merged

    def recognize(
        self,
        buffer: PixelBuffer,
        library: DigitGlyphLibrary,
        threshold: float,
        region: Region | None = None,
        timeout: float | None = None,
    ) -> str:
        """Return the digits found in ``buffer`` as a left-to-right string."""
        hits = self.locate_digits(buffer, library, threshold, region, timeout)
        return render_digits(hits)

    @staticmethod
    def _scan_digit(
        gray: PixelBuffer,
        glyph: PixelBuffer,
        digit: int,
        threshold: float,
        offset_x: int,
    ) -> list[DigitHit]:
        matches = find_all_template(gray, glyph, threshold, rgb=False)
        return [DigitHit(offset_x + m.center.x, digit) for m in matches]


def render_digits(hits: Iterable[DigitHit]) -> str:
    """Concatenate the digits of already ordered hits."""
    return "".join(str(hit.digit) for hit in hits)
