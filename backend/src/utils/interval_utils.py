"""
Sorted half-open interval arithmetic.

Intervals are ``(start, end)`` tuples of naive datetimes meaning
``[start, end)``. Every function returns a new list sorted by start with
empty intervals removed, so results can be chained (working periods minus
breaks minus bookings) without re-sorting at each step.
"""

from datetime import datetime, timedelta
from typing import Iterable, List, Tuple

Interval = Tuple[datetime, datetime]


def overlaps(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Check if two half-open intervals overlap (touching endpoints do not overlap)."""
    return start1 < end2 and start2 < end1


def merge_intervals(intervals: Iterable[Interval]) -> List[Interval]:
    """
    Normalize a collection of intervals.

    Drops empty or inverted intervals, sorts by start and merges intervals
    that overlap or touch.
    """
    ordered = sorted((start, end) for start, end in intervals if start < end)
    merged: List[Interval] = []
    for start, end in ordered:
        if merged and start <= merged[-1][1]:
            last_start, last_end = merged[-1]
            merged[-1] = (last_start, max(last_end, end))
        else:
            merged.append((start, end))
    return merged


def subtract_intervals(base: Iterable[Interval], removals: Iterable[Interval]) -> List[Interval]:
    """
    Interval difference: every part of ``base`` not covered by ``removals``.

    Returns the maximal free sub-intervals in ascending order.
    """
    remaining = merge_intervals(base)
    cuts = merge_intervals(removals)
    if not cuts:
        return remaining

    result: List[Interval] = []
    for start, end in remaining:
        cursor = start
        for cut_start, cut_end in cuts:
            if cut_end <= cursor:
                continue
            if cut_start >= end:
                break
            if cut_start > cursor:
                result.append((cursor, cut_start))
            cursor = max(cursor, cut_end)
            if cursor >= end:
                break
        if cursor < end:
            result.append((cursor, end))
    return result


def clip_intervals(intervals: Iterable[Interval], window_start: datetime, window_end: datetime) -> List[Interval]:
    """Restrict intervals to ``[window_start, window_end)``."""
    clipped = (
        (max(start, window_start), min(end, window_end))
        for start, end in intervals
    )
    return merge_intervals(clipped)


def contains_interval(intervals: Iterable[Interval], start: datetime, end: datetime) -> bool:
    """True if ``[start, end)`` lies entirely inside one of the intervals."""
    return any(i_start <= start and end <= i_end for i_start, i_end in intervals)


def enumerate_starts(free: Iterable[Interval], duration: timedelta, step: timedelta) -> List[datetime]:
    """
    Candidate start times inside each free interval.

    Starts at the beginning of every free interval and advances by ``step``;
    a start is kept only if ``[start, start + duration)`` fits inside the same
    free interval.

    Raises:
        ValueError: If duration or step is not positive
    """
    if duration <= timedelta(0):
        raise ValueError("duration must be positive")
    if step <= timedelta(0):
        raise ValueError("step must be positive")

    starts: List[datetime] = []
    for start, end in merge_intervals(free):
        current = start
        while current + duration <= end:
            starts.append(current)
            current += step
    return starts
