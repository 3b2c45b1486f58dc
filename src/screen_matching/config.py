"""Runtime settings for the matching engine, read from the environment.

Values may also come from a ``.env`` file in the working directory. Every
variable is prefixed with ``SCREEN_MATCHER_``; see ``MatchSettings`` for the
names and defaults.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from dotenv import find_dotenv, load_dotenv

from screen_matching.constants import (
    DEFAULT_COLOR_TOLERANCE,
    DEFAULT_DIGIT_CONFIDENCE,
    DEFAULT_GLYPH_EXTENSIONS,
    DEFAULT_RGB_MODE,
    DEFAULT_TEMPLATE_CONFIDENCE,
    ENV_PREFIX,
    MAX_COLOR_DIFFERENCE,
    MAX_DIGIT_WORKERS,
)

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env(name: str) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    return value.strip() if value is not None and value.strip() else None


def _float(name: str, default: float, low: float, high: float) -> float:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        msg = f"{ENV_PREFIX}{name} must be a number, got {raw!r}"
        raise ValueError(msg) from None
    if not low <= value <= high:
        msg = f"{ENV_PREFIX}{name} must be within [{low}, {high}], got {value}"
        raise ValueError(msg)
    return value


def _int(name: str, default: int, low: int, high: int, *, clamp: bool = False) -> int:
    raw = _env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        msg = f"{ENV_PREFIX}{name} must be an integer, got {raw!r}"
        raise ValueError(msg) from None
    if clamp:
        return max(low, min(value, high))
    if not low <= value <= high:
        msg = f"{ENV_PREFIX}{name} must be within [{low}, {high}], got {value}"
        raise ValueError(msg)
    return value


def _bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None:
        return default
    if raw.lower() in _TRUE:
        return True
    if raw.lower() in _FALSE:
        return False
    msg = f"{ENV_PREFIX}{name} must be a boolean, got {raw!r}"
    raise ValueError(msg)


def _extensions(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = _env(name)
    if raw is None:
        return default
    exts = tuple(
        ext if ext.startswith(".") else f".{ext}"
        for ext in (part.strip() for part in raw.split(","))
        if ext
    )
    return exts or default


def _log_level(name: str, default: str) -> str:
    raw = _env(name)
    if raw is None:
        return default
    level = raw.upper()
    if not isinstance(logging.getLevelName(level), int):
        msg = f"{ENV_PREFIX}{name} is not a logging level: {raw!r}"
        raise ValueError(msg)
    return level


@dataclass(frozen=True)
class MatchSettings:
    """Defaults applied by ``MatchingEngine`` when a call leaves them out.

    Environment variables:
        SCREEN_MATCHER_CONFIDENCE: template confidence threshold.
        SCREEN_MATCHER_DIGIT_CONFIDENCE: glyph confidence threshold.
        SCREEN_MATCHER_COLOR_TOLERANCE: color difference tolerance (0..765).
        SCREEN_MATCHER_RGB: color (true) or luma (false) template matching.
        SCREEN_MATCHER_MAX_WORKERS: digit workers, clamped to 1..10.
        SCREEN_MATCHER_GLYPH_EXTENSIONS: comma separated, tried in order.
        SCREEN_MATCHER_LOG_LEVEL: level name used by the command line.
    """

    template_confidence: float = DEFAULT_TEMPLATE_CONFIDENCE
    digit_confidence: float = DEFAULT_DIGIT_CONFIDENCE
    color_tolerance: int = DEFAULT_COLOR_TOLERANCE
    rgb: bool = DEFAULT_RGB_MODE
    max_workers: int = MAX_DIGIT_WORKERS
    glyph_extensions: tuple[str, ...] = field(default=DEFAULT_GLYPH_EXTENSIONS)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, *, dotenv: bool = True) -> MatchSettings:
        """Load settings from the process environment (and ``.env`` if asked)."""
        if dotenv:
            load_dotenv(find_dotenv(usecwd=True))
        return cls(
            template_confidence=_float(
                "CONFIDENCE", DEFAULT_TEMPLATE_CONFIDENCE, -1.0, 1.0
            ),
            digit_confidence=_float(
                "DIGIT_CONFIDENCE", DEFAULT_DIGIT_CONFIDENCE, -1.0, 1.0
            ),
            color_tolerance=_int(
                "COLOR_TOLERANCE", DEFAULT_COLOR_TOLERANCE, 0, MAX_COLOR_DIFFERENCE
            ),
            rgb=_bool("RGB", DEFAULT_RGB_MODE),
            max_workers=_int(
                "MAX_WORKERS", MAX_DIGIT_WORKERS, 1, MAX_DIGIT_WORKERS, clamp=True
            ),
            glyph_extensions=_extensions("GLYPH_EXTENSIONS", DEFAULT_GLYPH_EXTENSIONS),
            log_level=_log_level("LOG_LEVEL", "INFO"),
        )
