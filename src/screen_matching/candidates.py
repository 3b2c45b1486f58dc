"""Turn a confidence map into match candidates.

Two modes share the same row-major scan order:
    * exhaustive: every cell at or above the threshold, best first;
    * first-hit: stop at the first qualifying cell, for existence checks and
      single-coordinate lookups where latency matters more than ranking.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from screen_matching.confidence_map import build_confidence_map
from screen_matching.models import LocateResult, MatchCandidate, round_half_away

if TYPE_CHECKING:
    from screen_matching.confidence_map import ConfidenceMap
    from screen_matching.models import PixelBuffer, Region


def extract_candidates(conf_map: ConfidenceMap, threshold: float) -> list[MatchCandidate]:
    """Return every cell scoring ``>= threshold``, sorted by confidence descending.

    Cells are collected in row-major order before the sort; the relative
    order of equal scores is not part of the contract.
    """
    scores = conf_map.scores
    # np.nonzero walks row-major, for contiguous and strided maps alike
    rows, cols = np.nonzero(scores.astype(np.float64) >= threshold)
    candidates = [
        MatchCandidate.from_cell(
            int(row),
            int(col),
            float(scores[row, col]),
            conf_map.template_width,
            conf_map.template_height,
        )
        for row, col in zip(rows, cols, strict=True)
    ]
    candidates.sort(key=lambda c: c.confidence, reverse=True)
    return candidates


def find_all_template(
    source: PixelBuffer,
    template: PixelBuffer,
    threshold: float,
    *,
    rgb: bool = True,
) -> list[MatchCandidate]:
    """Build the confidence map for ``template`` and extract all candidates."""
    return extract_candidates(build_confidence_map(source, template, rgb=rgb), threshold)


def first_hit(conf_map: ConfidenceMap, threshold: float) -> tuple[int, int] | None:
    """Return ``(row, col)`` of the first qualifying cell in row-major order.

    Scores are float32, so the threshold is narrowed to float32 as well.
    """
    limit = np.float32(threshold)
    scores = conf_map.scores
    if conf_map.is_contiguous:
        hits = np.flatnonzero(scores.reshape(-1) >= limit)
        if hits.size == 0:
            return None
        row, col = divmod(int(hits[0]), conf_map.cols)
        return (row, col)

    for row in range(conf_map.rows):
        hits = np.flatnonzero(scores[row] >= limit)
        if hits.size:
            return (row, int(hits[0]))
    return None


def template_exists(conf_map: ConfidenceMap, threshold: float) -> bool:
    """Return True as soon as one cell reaches ``threshold``."""
    return first_hit(conf_map, threshold) is not None


def first_hit_center(
    conf_map: ConfidenceMap,
    threshold: float,
    region: Region,
) -> LocateResult:
    """Absolute, rounded center of the first qualifying cell.

    The center is rounded in buffer space before the region offset is added.
    """
    hit = first_hit(conf_map, threshold)
    if hit is None:
        return LocateResult.missing()
    row, col = hit
    center_x = round_half_away(col + conf_map.template_width / 2.0)
    center_y = round_half_away(row + conf_map.template_height / 2.0)
    return LocateResult(found=True, x=region.x + center_x, y=region.y + center_y)


def first_hit_coord(
    conf_map: ConfidenceMap,
    threshold: float,
    region: Region,
) -> tuple[int, int]:
    """Compatibility form of ``first_hit_center``: ``(0, 0)`` when not found."""
    return first_hit_center(conf_map, threshold, region).as_legacy()


def best_center(candidates: list[MatchCandidate], region: Region) -> LocateResult:
    """Absolute, rounded center of the highest-confidence candidate."""
    if not candidates:
        return LocateResult.missing()
    center_x, center_y = candidates[0].rounded_center()
    return LocateResult(found=True, x=region.x + center_x, y=region.y + center_y)
