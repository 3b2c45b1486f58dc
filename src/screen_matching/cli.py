"""Command line front end for the matching engine.

Exit codes: 0 when the target was found, 1 when it was not, 2 on an engine
error (no display, unreadable template, template larger than the region).
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from screen_matching.config import MatchSettings
from screen_matching.engine import MatchingEngine
from screen_matching.errors import MatchEngineError
from screen_matching.models import Color, Region

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)

EXIT_FOUND, EXIT_MISSING, EXIT_ERROR = 0, 1, 2


def _region(values: Sequence[int]) -> Region:
    x, y, w, h = values
    return Region(x, y, w, h)


def _mode(args: argparse.Namespace) -> bool | None:
    if args.gray:
        return False
    if args.color:
        return True
    return None


def build_parser() -> argparse.ArgumentParser:
    """Build the ``screen-matcher`` argument parser."""
    parser = argparse.ArgumentParser(
        prog="screen-matcher",
        description="Find colors, images and digits on screen.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    region_kw = {
        "nargs": 4,
        "type": int,
        "metavar": ("X", "Y", "W", "H"),
        "required": True,
        "help": "absolute screen region",
    }

    color = sub.add_parser("color", help="find the first pixel of a color")
    color.add_argument("--region", **region_kw)
    color.add_argument("rgb", nargs=3, type=int, metavar=("R", "G", "B"))
    color.add_argument("--tolerance", type=int, default=None)

    for name, help_text in (
        ("find", "find the first match of a template"),
        ("find-all", "find every deduplicated match of one or more templates"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("--region", **region_kw)
        cmd.add_argument("templates", nargs="+" if name == "find-all" else 1, type=Path)
        cmd.add_argument("--confidence", type=float, default=None)
        mode = cmd.add_mutually_exclusive_group()
        mode.add_argument("--gray", action="store_true", help="match on luma")
        mode.add_argument("--color", action="store_true", help="match on BGR")

    digits = sub.add_parser("digits", help="read a digit string")
    digits.add_argument("--region", **region_kw)
    digits.add_argument("library", type=Path, help="folder holding 0..9 glyphs")
    digits.add_argument("--confidence", type=float, default=None)

    capture = sub.add_parser("capture", help="save a region to an image file")
    capture.add_argument("--region", **region_kw)
    capture.add_argument("output", type=Path)
    capture.add_argument("--gray", action="store_true")
    return parser


def run(args: argparse.Namespace, engine: MatchingEngine) -> int:
    """Execute one parsed command and return its exit code."""
    region = _region(args.region)

    if args.command == "color":
        result = engine.find_color(region, Color.from_tuple(args.rgb), args.tolerance)
        if not result.found:
            print("not found")
            return EXIT_MISSING
        print(f"{result.x} {result.y}")
        return EXIT_FOUND

    if args.command == "find":
        result = engine.find_template(
            region, args.templates[0], args.confidence, rgb=_mode(args)
        )
        if not result.found:
            print("not found")
            return EXIT_MISSING
        print(f"{result.x} {result.y}")
        return EXIT_FOUND

    if args.command == "find-all":
        coords = engine.find_templates_coords(
            region, args.templates, args.confidence, rgb=_mode(args)
        )
        for x, y in coords:
            print(f"{x} {y}")
        return EXIT_FOUND if coords else EXIT_MISSING

    if args.command == "digits":
        text = engine.recognize_digits(region, args.library, args.confidence)
        print(text)
        return EXIT_FOUND if text else EXIT_MISSING

    out = engine.capture_to_file(region, args.output, grayscale=args.gray)
    print(out)
    return EXIT_FOUND


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the ``screen-matcher`` script."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        settings = MatchSettings.from_env()
        if not args.verbose:
            logging.getLogger().setLevel(settings.log_level)
        engine = MatchingEngine(settings=settings)
        code = run(args, engine)
    except (MatchEngineError, ValueError) as e:
        logger.error("%s", e)
        return EXIT_ERROR

    for stat in engine.perf_stats:
        logger.info("| %-20s | %8.1fms | %4d |", stat.name, stat.duration_ms, stat.items_found)
    return code


if __name__ == "__main__":
    sys.exit(main())
