from datetime import datetime, timedelta

from salon_scheduler.domain.scheduling.intervals import (
    Interval,
    enumerate_starts,
    merge,
    overlaps,
    subtract,
)


def at(hour, minute=0):
    return datetime(2026, 6, 1, hour, minute)


def test_back_to_back_intervals_do_not_overlap():
    assert not overlaps(at(9), at(10), at(10), at(11))
    assert overlaps(at(9), at(10, 1), at(10), at(11))


def test_merge_coalesces_touching_and_overlapping_blocks():
    merged = merge(
        [
            Interval(at(13), at(14)),
            Interval(at(9), at(10)),
            Interval(at(10), at(10, 30)),
            Interval(at(10, 15), at(11)),
            Interval(at(12), at(12)),  # empty
        ]
    )
    assert merged == [Interval(at(9), at(11)), Interval(at(13), at(14))]


def test_subtract_leaves_gaps_around_busy_blocks():
    window = Interval(at(9), at(19))
    free = subtract(window, [Interval(at(10), at(10, 45)), Interval(at(18), at(20))])
    assert free == [Interval(at(9), at(10)), Interval(at(10, 45), at(18))]


def test_subtract_with_fully_covered_window_is_empty():
    assert subtract(Interval(at(9), at(10)), [Interval(at(8), at(11))]) == []


def test_enumerate_starts_anchors_grid_at_free_start():
    starts = list(
        enumerate_starts(Interval(at(10, 45), at(12)), timedelta(minutes=30), timedelta(minutes=30))
    )
    assert starts == [at(10, 45), at(11, 15)]


def test_enumerate_starts_skips_when_duration_does_not_fit():
    free = Interval(at(9), at(9, 45))
    assert list(enumerate_starts(free, timedelta(minutes=60), timedelta(minutes=30))) == []
    assert list(enumerate_starts(free, timedelta(0), timedelta(minutes=30))) == []
