"""Distance-based non-maximum suppression for one template's candidates."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from screen_matching.models import MatchCandidate, Region


def is_overlapping(
    center: tuple[int, int],
    accepted: Iterable[tuple[int, int]],
    min_distance: int,
) -> bool:
    """Return True when ``center`` is within ``min_distance`` of an accepted center on both axes."""
    x, y = center
    return any(
        abs(x - ax) < min_distance and abs(y - ay) < min_distance for ax, ay in accepted
    )


def suppress_duplicates(
    candidates: Iterable[MatchCandidate],
    region: Region,
    template_width: int,
    template_height: int,
) -> list[tuple[int, int]]:
    """Keep one absolute center per on-screen object.

    Greedy and order-dependent: ``candidates`` must already be sorted by
    confidence descending. A candidate survives only if, against every center
    kept so far, it is at least ``max(template_width, template_height)``
    pixels away along x or along y.
    """
    min_distance = max(template_width, template_height)
    kept: list[tuple[int, int]] = []
    for candidate in candidates:
        center_x, center_y = candidate.rounded_center()
        center = (region.x + center_x, region.y + center_y)
        if not is_overlapping(center, kept, min_distance):
            kept.append(center)
    return kept
