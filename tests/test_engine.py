import cv2
import numpy as np
import pytest

from screen_matching import candidates as extractor
from screen_matching.config import MatchSettings
from screen_matching.engine import MatchingEngine
from screen_matching.errors import (
    CaptureUnavailable,
    TemplateLargerThanSource,
    TemplateUnreadable,
)
from screen_matching.models import Color, LocateResult, PixelBuffer, Region
from screenshot_service import ScreenshotService

from _helpers import FakeCapture, embed, textured, write_image

SCREEN_H, SCREEN_W = 200, 300
TEMPLATE_AT = (40, 50)  # absolute top-left of the 11x9 template
REGION = Region(5, 7, 100, 80)


@pytest.fixture
def screen() -> np.ndarray:
    return textured(SCREEN_H, SCREEN_W, seed=42)


@pytest.fixture
def template_path(tmp_path, screen):
    x, y = TEMPLATE_AT
    return write_image(tmp_path / "button.png", screen[y : y + 9, x : x + 11])


@pytest.fixture
def engine(screen) -> MatchingEngine:
    return MatchingEngine(capture=FakeCapture(screen))


def blob(size: int = 21, sigma: float = 5.0) -> np.ndarray:
    """A smooth bright spot: neighbouring alignments score almost as high as the peak."""
    axis = np.arange(size) - size // 2
    xx, yy = np.meshgrid(axis, axis)
    spot = (255 * np.exp(-(xx**2 + yy**2) / (2 * sigma**2))).astype(np.uint8)
    return cv2.cvtColor(spot, cv2.COLOR_GRAY2BGR)


def test_default_capture_is_screenshot_service():
    assert isinstance(MatchingEngine().capture, ScreenshotService)


# -------------------
# Template queries
# -------------------
def test_template_exists(engine, template_path, tmp_path):
    assert engine.template_exists(REGION, template_path)
    other = write_image(tmp_path / "other.png", textured(9, 11, seed=5))
    assert not engine.template_exists(REGION, other)


def test_find_template_returns_rounded_absolute_center(engine, template_path):
    # local top-left (35, 43); center (40.5, 47.5) -> (41, 48)
    result = engine.find_template(REGION, template_path)
    assert result == LocateResult(found=True, x=46, y=55)
    assert engine.find_template_coord(REGION, template_path) == (46, 55)


def test_find_template_in_gray_mode(engine, template_path):
    assert engine.find_template(REGION, template_path, rgb=False) == LocateResult(True, 46, 55)
    assert engine.capture.calls[-1] == (REGION, True)


def test_find_template_miss(engine, tmp_path):
    other = write_image(tmp_path / "other.png", textured(9, 11, seed=5))
    assert not engine.find_template(REGION, other).found
    assert engine.find_template_coord(REGION, other) == (0, 0)


def test_find_best_template(engine, template_path):
    assert engine.find_best_template(REGION, template_path) == LocateResult(True, 46, 55)


def test_template_outside_region_is_not_found(engine, template_path):
    assert not engine.template_exists(Region(150, 100, 100, 80), template_path)


def test_settings_supply_default_threshold(screen, template_path):
    strict = MatchingEngine(FakeCapture(screen), MatchSettings(template_confidence=1.5))
    assert not strict.template_exists(REGION, template_path)
    assert strict.template_exists(REGION, template_path, confidence=0.9)


def test_settings_supply_default_mode(screen, template_path):
    gray = MatchingEngine(FakeCapture(screen), MatchSettings(rgb=False))
    assert gray.template_exists(REGION, template_path)
    assert gray.capture.calls == [(REGION, True)]


def test_unreadable_template_fails_before_capture(engine, tmp_path):
    with pytest.raises(TemplateUnreadable) as exc:
        engine.find_template(REGION, tmp_path / "missing.png")
    assert isinstance(exc.value, FileNotFoundError)
    assert engine.capture.calls == []


def test_template_larger_than_region(engine, template_path):
    with pytest.raises(TemplateLargerThanSource):
        engine.template_exists(Region(0, 0, 10, 10), template_path)


def test_capture_failure_propagates(template_path):
    engine = MatchingEngine(capture=FakeCapture(None))
    with pytest.raises(CaptureUnavailable):
        engine.find_template(REGION, template_path)


def test_perf_stats_cover_each_stage(engine, template_path):
    engine.find_template(REGION, template_path)
    assert [s.name for s in engine.perf_stats] == ["Template Load", "Capture", "Match"]
    assert all(s.duration_ms >= 0 for s in engine.perf_stats)
    engine.template_exists(REGION, template_path)
    assert len(engine.perf_stats) == 3


# -------------------
# Multi-template search
# -------------------
@pytest.fixture
def blob_screen() -> np.ndarray:
    screen = np.zeros((SCREEN_H, SCREEN_W, 3), dtype=np.uint8)
    screen = embed(screen, blob(), 50, 40)
    return embed(screen, blob(), 150, 100)


def test_find_templates_coords_suppresses_neighbours(blob_screen, tmp_path):
    path = write_image(tmp_path / "blob.png", blob())
    region = Region(10, 5, 280, 190)
    engine = MatchingEngine(capture=FakeCapture(blob_screen))

    raw = extractor.find_all_template(
        PixelBuffer.from_array(blob_screen), PixelBuffer.from_array(blob()), 0.8
    )
    assert len(raw) > 2

    coords = engine.find_templates_coords(region, [path], confidence=0.8)
    assert sorted(coords) == [(61, 51), (161, 111)]
    assert len(engine.capture.calls) == 1


def test_find_templates_coords_dedups_per_template_only(blob_screen, tmp_path):
    first = write_image(tmp_path / "a.png", blob())
    second = write_image(tmp_path / "b.png", blob())
    engine = MatchingEngine(capture=FakeCapture(blob_screen))
    coords = engine.find_templates_coords(
        Region(0, 0, SCREEN_W, SCREEN_H), [first, second], confidence=0.8
    )
    assert sorted(coords[:2]) == sorted(coords[2:]) == [(61, 51), (161, 111)]
    assert len(engine.capture.calls) == 1


def test_find_templates_coords_keeps_template_order(screen, tmp_path):
    small = screen[20:29, 30:41]
    wide = screen[150:157, 200:213]
    engine = MatchingEngine(capture=FakeCapture(screen))
    coords = engine.find_templates_coords(
        Region(0, 0, SCREEN_W, SCREEN_H),
        [write_image(tmp_path / "wide.png", wide), write_image(tmp_path / "small.png", small)],
    )
    # wide: 200 + 6.5 -> 207, 150 + 3.5 -> 154; small: 30 + 5.5 -> 36, 20 + 4.5 -> 25
    assert coords == [(207, 154), (36, 25)]


def test_find_templates_coords_empty_list_skips_capture(engine):
    assert engine.find_templates_coords(REGION, []) == []
    assert engine.capture.calls == []


def test_find_all_template_on_buffers(engine, screen):
    source = PixelBuffer.from_array(screen)
    template = PixelBuffer.from_array(np.ascontiguousarray(screen[60:70, 80:95]))
    found = engine.find_all_template(source, template)
    assert found[0].top_left.x == 80
    assert found[0].top_left.y == 60
    assert engine.capture.calls == []


# -------------------
# Color queries
# -------------------
@pytest.fixture
def color_engine() -> MatchingEngine:
    # keep every background sample far from the marker color
    screen = np.maximum(textured(SCREEN_H, SCREEN_W, seed=9), 64)
    screen[90:94, 150:154] = [3, 2, 1]
    return MatchingEngine(capture=FakeCapture(screen))


MARKER = Color(1, 2, 3)


def test_point_color_matches(color_engine):
    assert color_engine.point_color_matches(151, 92, MARKER)
    assert color_engine.point_color_matches(151, 92, (1, 2, 3), tolerance=0)
    assert not color_engine.point_color_matches(10, 10, MARKER)
    assert color_engine.capture.calls[-1] == (Region(10, 10, 1, 1), False)


def test_region_contains_color(color_engine):
    assert color_engine.region_contains_color(Region(100, 50, 100, 100), MARKER)
    assert not color_engine.region_contains_color(Region(0, 0, 100, 50), MARKER)


def test_find_color(color_engine):
    region = Region(100, 50, 100, 100)
    assert color_engine.find_color(region, MARKER) == LocateResult(True, 150, 90)
    assert color_engine.find_color_coord(region, (0, 0, 0)) == (0, 0)
    assert [s.name for s in color_engine.perf_stats] == ["Capture", "Color Scan"]


def test_perf_stats_count_misses_as_zero(color_engine):
    region = Region(100, 50, 100, 100)
    color_engine.find_color(region, (0, 0, 0))
    assert color_engine.perf_stats[-1].items_found == 0
    color_engine.find_color(region, MARKER)
    assert color_engine.perf_stats[-1].items_found == 1


# -------------------
# Digits and capture
# -------------------
def test_recognize_digits(glyph_dir, digit_screen):
    screen = digit_screen([(7, 10, 20), (0, 30, 20), (3, 50, 20)])
    engine = MatchingEngine(capture=FakeCapture(screen))
    assert engine.recognize_digits(Region(0, 0, 120, 60), glyph_dir) == "703"
    assert engine.capture.calls == [(Region(0, 0, 120, 60), True)]
    assert engine.perf_stats[-1].name == "Digit Scan"
    assert engine.perf_stats[-1].items_found == 3


def test_recognize_digits_with_sub_region(glyph_dir, digit_screen):
    screen = digit_screen([(7, 10, 20), (0, 30, 20), (3, 50, 20)])
    engine = MatchingEngine(capture=FakeCapture(screen))
    assert engine.recognize_digits(Region(25, 10, 60, 40), glyph_dir) == "03"


def test_capture_to_file(engine, screen, tmp_path):
    out = engine.capture_to_file(REGION, tmp_path / "shot.png")
    saved = cv2.imread(str(out), cv2.IMREAD_COLOR)
    x, y, w, h = REGION.as_tuple()
    assert np.array_equal(saved, screen[y : y + h, x : x + w])
