"""
Silence-aware segment planning.
"""

import logging
from collections.abc import Iterable

from .models import Segment, SilenceInterval

logger = logging.getLogger("beatbundle")

FALLBACK_WINDOW = 60.0
SEARCH_SLACK = 30.0


def fixed_segments(total_duration: float, window: float = FALLBACK_WINDOW) -> list[Segment]:
    """Cut ``[0, total_duration)`` into fixed windows; the last one may be shorter."""
    if window <= 0:
        raise ValueError("window must be positive")
    segments: list[Segment] = []
    start = 0.0
    index = 1
    while start < total_duration:
        end = min(start + window, total_duration)
        segments.append(Segment(index=index, start_time=start, end_time=end, duration=end - start))
        start = end
        index += 1
    return segments


def plan_segments(
    total_duration: float,
    silences: Iterable[SilenceInterval],
    min_duration: float = 20.0,
    max_duration: float = 120.0,
    search_slack: float = SEARCH_SLACK,
) -> list[Segment]:
    """Plan contiguous segments covering ``[0, total_duration)``.

    Each cut aims at ``start + max_duration`` and snaps to the silence midpoint
    closest to that target inside ``(start + min_duration, target + search_slack)``.
    Without a qualifying midpoint the cut lands on the target itself. The last
    segment always runs to ``total_duration``. With no silence data at all the
    video is cut into fixed 60 second windows.
    """
    if max_duration <= 0:
        raise ValueError("max_duration must be positive")
    if min_duration < 0 or min_duration > max_duration:
        raise ValueError("min_duration must be within [0, max_duration]")
    if total_duration <= 0:
        return []

    split_points = [s.midpoint for s in silences]
    if not split_points:
        logger.info("No silence data; falling back to %.0fs windows", FALLBACK_WINDOW)
        return fixed_segments(total_duration)

    segments: list[Segment] = []
    current_start = 0.0
    index = 1
    while current_start < total_duration:
        target = current_start + max_duration
        if target >= total_duration:
            break

        best = target
        best_distance = float("inf")
        for point in split_points:
            if current_start + min_duration < point < target + search_slack and point < total_duration:
                distance = abs(point - target)
                if distance < best_distance:
                    best_distance = distance
                    best = point

        segments.append(
            Segment(index=index, start_time=current_start, end_time=best, duration=best - current_start)
        )
        current_start = best
        index += 1

    segments.append(
        Segment(
            index=index,
            start_time=current_start,
            end_time=total_duration,
            duration=total_duration - current_start,
        )
    )
    return segments
