import sys

import numpy as np
import pytest

from screen_matching.cli import EXIT_ERROR, EXIT_FOUND, EXIT_MISSING, build_parser, main, run
from screen_matching.engine import MatchingEngine

from _helpers import FakeCapture, textured, write_image


@pytest.fixture
def screen() -> np.ndarray:
    screen = np.maximum(textured(120, 160, seed=11), 64)
    screen[30:33, 40:43] = [3, 2, 1]
    return screen


@pytest.fixture
def engine(screen) -> MatchingEngine:
    return MatchingEngine(capture=FakeCapture(screen))


def invoke(engine: MatchingEngine, *argv: str) -> int:
    return run(build_parser().parse_args(argv), engine)


def test_color_found(engine, capsys):
    assert invoke(engine, "color", "--region", "0", "0", "160", "120", "1", "2", "3") == EXIT_FOUND
    assert capsys.readouterr().out.strip() == "40 30"


def test_color_missing(engine, capsys):
    code = invoke(engine, "color", "--region", "0", "0", "30", "30", "1", "2", "3")
    assert code == EXIT_MISSING
    assert capsys.readouterr().out.strip() == "not found"


def test_find_template(engine, screen, tmp_path, capsys):
    path = write_image(tmp_path / "t.png", screen[60:69, 90:101])
    code = invoke(engine, "find", "--region", "0", "0", "160", "120", str(path), "--gray")
    assert code == EXIT_FOUND
    # 90 + 5.5 -> 96, 60 + 4.5 -> 65
    assert capsys.readouterr().out.strip() == "96 65"
    assert engine.capture.calls[-1][1] is True


def test_find_all_prints_one_line_per_match(engine, screen, tmp_path, capsys):
    first = write_image(tmp_path / "a.png", screen[60:69, 90:101])
    second = write_image(tmp_path / "b.png", screen[5:15, 120:140])
    code = invoke(
        engine, "find-all", "--region", "0", "0", "160", "120", str(first), str(second)
    )
    assert code == EXIT_FOUND
    assert capsys.readouterr().out.split("\n")[:2] == ["96 65", "130 10"]


def test_digits(glyph_dir, digit_screen, capsys):
    engine = MatchingEngine(capture=FakeCapture(digit_screen([(5, 10, 20), (1, 40, 20)])))
    code = invoke(engine, "digits", "--region", "0", "0", "120", "60", str(glyph_dir))
    assert code == EXIT_FOUND
    assert capsys.readouterr().out.strip() == "51"


def test_capture(engine, tmp_path):
    out = tmp_path / "shot.png"
    assert invoke(engine, "capture", "--region", "0", "0", "16", "12", str(out)) == EXIT_FOUND
    assert out.is_file()


def test_gray_and_color_are_exclusive():
    with pytest.raises(SystemExit):
        build_parser().parse_args(
            ["find", "--region", "0", "0", "1", "1", "t.png", "--gray", "--color"]
        )


def test_main_reports_engine_errors(monkeypatch, tmp_path):
    monkeypatch.setitem(sys.modules, "pyautogui", None)
    monkeypatch.chdir(tmp_path)
    assert main(["color", "--region", "0", "0", "5", "5", "1", "2", "3"]) == EXIT_ERROR


def test_main_reports_unreadable_template(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    code = main(["find", "--region", "0", "0", "5", "5", str(tmp_path / "missing.png")])
    assert code == EXIT_ERROR


def test_main_reports_bad_environment(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SCREEN_MATCHER_COLOR_TOLERANCE", "5000")
    assert main(["color", "--region", "0", "0", "5", "5", "1", "2", "3"]) == EXIT_ERROR
