"""
Half-open interval arithmetic used for availability and overlap checks.

All intervals are ``[start, end)``; two intervals overlap iff
``a.start < b.end and b.start < a.end``, so back-to-back bookings are allowed.
"""

from datetime import datetime, timedelta
from typing import Iterable, Iterator, NamedTuple


class Interval(NamedTuple):
    start: datetime
    end: datetime


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and b_start < a_end


def merge(intervals: Iterable[Interval]) -> list[Interval]:
    """Sort and coalesce overlapping or touching intervals; empty ones are dropped"""
    ordered = sorted((i for i in intervals if i.start < i.end), key=lambda i: i.start)
    merged: list[Interval] = []
    for current in ordered:
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def subtract(window: Interval, busy: Iterable[Interval]) -> list[Interval]:
    """Free parts of ``window`` once every busy interval is removed, in order"""
    free: list[Interval] = []
    cursor = window.start
    for block in merge(busy):
        if block.end <= cursor:
            continue
        if block.start >= window.end:
            break
        if block.start > cursor:
            free.append(Interval(cursor, block.start))
        cursor = max(cursor, block.end)
        if cursor >= window.end:
            break
    if cursor < window.end:
        free.append(Interval(cursor, window.end))
    return free


def enumerate_starts(
    free: Interval, duration: timedelta, granularity: timedelta
) -> Iterator[datetime]:
    """Slot starts on a ``granularity`` grid anchored at ``free.start`` that fit ``duration``"""
    if duration <= timedelta(0) or granularity <= timedelta(0):
        return
    start = free.start
    while start + duration <= free.end:
        yield start
        start += granularity
