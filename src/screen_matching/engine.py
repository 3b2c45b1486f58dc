"""MatchingEngine.

Locates colors, template images and digit strings inside captured screen
regions.

Summary / Quickstart
--------------------
- ``MatchingEngine(capture=ScreenshotService())`` is the public surface; every
  region-level call captures once and then runs the pure matching components.
- Coordinate lookups return ``LocateResult`` (``found`` + absolute x/y). The
  ``*_coord`` methods are compatibility shims returning ``(0, 0)`` on a miss.
- Threshold/tolerance/mode arguments left as None fall back to
  ``MatchSettings``.
- ``perf_stats`` holds one ``PerfStat`` per stage of the last call.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, ParamSpec, Protocol, TypeVar

from screenshot_service import ScreenshotService

from screen_matching import candidates as extractor
from screen_matching import color_metric
from screen_matching.config import MatchSettings
from screen_matching.confidence_map import build_confidence_map
from screen_matching.dedup import suppress_duplicates
from screen_matching.digits import DigitRecognizer, get_glyph_library
from screen_matching.image_io import read_image, save_image
from screen_matching.models import Color, LocateResult, PerfStat, Region

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from screen_matching.models import MatchCandidate, PixelBuffer

P = ParamSpec("P")
R = TypeVar("R")

logger = logging.getLogger(__name__)

type ColorLike = Color | tuple[int, int, int]


class CaptureService(Protocol):
    """Anything that can turn a screen region into a pixel buffer."""

    def capture(self, region: Region, *, grayscale: bool = False) -> PixelBuffer:
        """Capture ``region`` as BGR, or luma when ``grayscale`` is set."""
        ...


def _as_color(color: ColorLike) -> Color:
    return color if isinstance(color, Color) else Color.from_tuple(color)


class MatchingEngine:
    """Run color, template and digit searches over captured screen regions.

    The engine holds no matching state between calls; the only shared state
    is the process-wide glyph cache used by ``recognize_digits``.
    """

    def __init__(
        self,
        capture: CaptureService | None = None,
        settings: MatchSettings | None = None,
    ) -> None:
        """Initialize the engine with a capture service and default settings.

        Args:
            capture: Region capture collaborator. Defaults to the pyautogui
                backed ``ScreenshotService``.
            settings: Default thresholds. Defaults to ``MatchSettings()``.

        """
        self.capture = capture if capture is not None else ScreenshotService()
        self.settings = settings or MatchSettings()
        self.recognizer = DigitRecognizer(self.settings.max_workers)

        # Perf stats collected from timed wrappers for each stage.
        self.perf_stats: list[PerfStat] = []

    # -------------------
    # Color queries
    # -------------------
    def point_color_matches(
        self,
        x: int,
        y: int,
        color: ColorLike,
        tolerance: int | None = None,
    ) -> bool:
        """Return True when the screen pixel at ``(x, y)`` is within tolerance."""
        self.perf_stats = []
        pixel = self._capture(Region(x, y, 1, 1), grayscale=False)
        return color_metric.point_matches(
            pixel, _as_color(color), self._tolerance(tolerance)
        )

    def region_contains_color(
        self,
        region: Region,
        color: ColorLike,
        tolerance: int | None = None,
    ) -> bool:
        """Return True when any pixel of ``region`` is within tolerance."""
        self.perf_stats = []
        buffer = self._capture(region, grayscale=False)
        return self._timed(
            "Color Scan",
            color_metric.region_contains_color,
            buffer,
            _as_color(color),
            self._tolerance(tolerance),
        )

    def find_color(
        self,
        region: Region,
        color: ColorLike,
        tolerance: int | None = None,
    ) -> LocateResult:
        """Return the absolute coordinate of the first matching pixel in ``region``."""
        self.perf_stats = []
        buffer = self._capture(region, grayscale=False)
        return self._timed(
            "Color Scan",
            color_metric.region_find_color,
            buffer,
            region,
            _as_color(color),
            self._tolerance(tolerance),
        )

    def find_color_coord(
        self,
        region: Region,
        color: ColorLike,
        tolerance: int | None = None,
    ) -> tuple[int, int]:
        """Compatibility form of ``find_color``: ``(0, 0)`` when not found."""
        return self.find_color(region, color, tolerance).as_legacy()

    # -------------------
    # Template queries
    # -------------------
    def template_exists(
        self,
        region: Region,
        template_path: Path | str,
        confidence: float | None = None,
        *,
        rgb: bool | None = None,
    ) -> bool:
        """Return True when ``template_path`` scores at least ``confidence`` in ``region``.

        The template is read before the capture so the screen is grabbed as
        late as possible.
        """
        self.perf_stats = []
        use_rgb = self._rgb(rgb)
        template = self._timed("Template Load", read_image, template_path)
        buffer = self._capture(region, grayscale=not use_rgb)
        conf_map = self._timed(
            "Match", build_confidence_map, buffer, template, rgb=use_rgb
        )
        return extractor.template_exists(conf_map, self._confidence(confidence))

    def find_template(
        self,
        region: Region,
        template_path: Path | str,
        confidence: float | None = None,
        *,
        rgb: bool | None = None,
    ) -> LocateResult:
        """Return the rounded absolute center of the first qualifying alignment.

        "First" is row-major scan order, not best score; use
        ``find_best_template`` for the highest-confidence match.
        """
        self.perf_stats = []
        use_rgb = self._rgb(rgb)
        template = self._timed("Template Load", read_image, template_path)
        buffer = self._capture(region, grayscale=not use_rgb)
        conf_map = self._timed(
            "Match", build_confidence_map, buffer, template, rgb=use_rgb
        )
        return extractor.first_hit_center(conf_map, self._confidence(confidence), region)

    def find_template_coord(
        self,
        region: Region,
        template_path: Path | str,
        confidence: float | None = None,
        *,
        rgb: bool | None = None,
    ) -> tuple[int, int]:
        """Compatibility form of ``find_template``: ``(0, 0)`` when not found."""
        return self.find_template(region, template_path, confidence, rgb=rgb).as_legacy()

    def find_best_template(
        self,
        region: Region,
        template_path: Path | str,
        confidence: float | None = None,
        *,
        rgb: bool | None = None,
    ) -> LocateResult:
        """Return the rounded absolute center of the highest-confidence match."""
        self.perf_stats = []
        use_rgb = self._rgb(rgb)
        template = self._timed("Template Load", read_image, template_path)
        buffer = self._capture(region, grayscale=not use_rgb)
        matches = self._timed(
            "Match",
            extractor.find_all_template,
            buffer,
            template,
            self._confidence(confidence),
            rgb=use_rgb,
        )
        return extractor.best_center(matches, region)

    def find_templates_coords(
        self,
        region: Region,
        template_paths: Sequence[Path | str],
        confidence: float | None = None,
        *,
        rgb: bool | None = None,
    ) -> list[tuple[int, int]]:
        """Return deduplicated absolute centers for several templates.

        One capture is shared by every template. Duplicates are suppressed per
        template only; results keep the order of ``template_paths``.
        """
        self.perf_stats = []
        if not template_paths:
            return []
        use_rgb = self._rgb(rgb)
        threshold = self._confidence(confidence)
        buffer = self._capture(region, grayscale=not use_rgb)

        all_coords: list[tuple[int, int]] = []
        for path in template_paths:
            template = self._timed(f"Load {Path(path).name}", read_image, path)
            matches = self._timed(
                f"Match {Path(path).name}",
                extractor.find_all_template,
                buffer,
                template,
                threshold,
                rgb=use_rgb,
            )
            kept = suppress_duplicates(matches, region, template.width, template.height)
            logger.debug(
                "%s: %d raw matches, %d after suppression",
                path,
                len(matches),
                len(kept),
            )
            all_coords.extend(kept)
        return all_coords

    def find_all_template(
        self,
        source: PixelBuffer,
        template: PixelBuffer,
        confidence: float | None = None,
        *,
        rgb: bool | None = None,
    ) -> list[MatchCandidate]:
        """Return every candidate above ``confidence``, best first (no capture)."""
        return extractor.find_all_template(
            source, template, self._confidence(confidence), rgb=self._rgb(rgb)
        )

    # -------------------
    # Digits
    # -------------------
    def recognize_digits(
        self,
        region: Region,
        library_path: Path | str,
        confidence: float | None = None,
        timeout: float | None = None,
    ) -> str:
        """Read the digit string shown in ``region`` using the glyphs in ``library_path``."""
        self.perf_stats = []
        threshold = (
            self.settings.digit_confidence if confidence is None else confidence
        )
        library = get_glyph_library(library_path, self.settings.glyph_extensions)
        buffer = self._capture(region, grayscale=True)
        return self._timed(
            "Digit Scan",
            self.recognizer.recognize,
            buffer,
            library,
            threshold,
            region,
            timeout,
        )

    # -------------------
    # Persistence
    # -------------------
    def capture_to_file(
        self,
        region: Region,
        path: Path | str,
        *,
        grayscale: bool = False,
    ) -> Path:
        """Capture ``region`` and write it to ``path``."""
        self.perf_stats = []
        return save_image(self._capture(region, grayscale=grayscale), path)

    # -------------------
    # Helpers
    # -------------------
    def _capture(self, region: Region, *, grayscale: bool) -> PixelBuffer:
        return self._timed("Capture", self.capture.capture, region, grayscale=grayscale)

    def _confidence(self, confidence: float | None) -> float:
        return self.settings.template_confidence if confidence is None else confidence

    def _tolerance(self, tolerance: int | None) -> int:
        return self.settings.color_tolerance if tolerance is None else tolerance

    def _rgb(self, rgb: bool | None) -> bool:
        return self.settings.rgb if rgb is None else rgb

    def _timed(
        self,
        name: str,
        func: Callable[P, R],
        *args: P.args,
        **kwargs: P.kwargs,
    ) -> R:
        """Wrap a function call to measure its execution time and record a PerfStat."""
        t0 = time.perf_counter()
        res = func(*args, **kwargs)
        elapsed = (time.perf_counter() - t0) * 1000
        if isinstance(res, list | str):
            items = len(res)
        elif isinstance(res, LocateResult):
            items = int(res.found)
        else:
            items = int(bool(res))
        self.perf_stats.append(PerfStat(name, elapsed, items))
        logger.debug("%s took %.1fms (%d items)", name, elapsed, items)
        return res
