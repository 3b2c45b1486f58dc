"""Error kinds raised by the matching engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class MatchEngineError(Exception):
    """Base class for every failure surfaced by the matching engine."""


class CaptureUnavailable(MatchEngineError):
    """Raise when no display surface can be captured."""


class TemplateUnreadable(MatchEngineError, FileNotFoundError):
    """Raise when a template image is missing, unreadable or empty."""

    def __init__(self, path: Path | str) -> None:
        """Store the offending path."""
        self.path = str(path)
        super().__init__(f"Failed to load template at {self.path}")


class TemplateLargerThanSource(MatchEngineError):
    """Raise when a template exceeds the source buffer along some axis."""

    def __init__(
        self,
        template_size: tuple[int, int],
        source_size: tuple[int, int],
    ) -> None:
        """Store both (width, height) pairs."""
        self.template_size = template_size
        self.source_size = source_size
        tw, th = template_size
        sw, sh = source_size
        super().__init__(f"Template {tw}x{th} does not fit in source {sw}x{sh}")


class InvalidBufferShape(MatchEngineError, ValueError):
    """Raise when pixel data does not agree with its declared dimensions."""
