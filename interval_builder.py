"""
Rebuild work intervals from a day's punches.

Punches are expected to alternate Start, End, Start, ... but older logs may
contain leading Ends or repeated Starts; those are tolerated:
- leading Ends before the first Start are ignored
- of several Starts in a row, the last one opens the interval
- a Start left without an End is reported as ongoing work
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import List, Optional


@dataclass
class Interval:
    start: object  # datetime.time
    end: object

    @property
    def duration(self):
        """Signed span; negative if end precedes start."""
        return datetime.combine(date.min, self.end) - datetime.combine(date.min, self.start)


@dataclass
class DayIntervals:
    intervals: List[Interval] = field(default_factory=list)
    trailing_open: Optional[object] = None  # start of ongoing work

    @property
    def total(self):
        return total_duration(self.intervals)


def _walk(punches, start):
    """Walk the punches following the first Start, beginning at `start`."""
    result = DayIntervals()
    remaining = iter(punches)

    for punch in remaining:
        if punch.is_start:
            start = punch.time
            continue

        result.intervals.append(Interval(start=start, end=punch.time))
        following = next((p for p in remaining if p.is_start), None)
        if following is None:
            return result
        start = following.time

    result.trailing_open = start
    return result


def reconstruct(punches):
    """
    Return the DayIntervals for a day's punches, or None when the day has no
    Start punch at all.
    """
    first = next((idx for idx, p in enumerate(punches) if p.is_start), None)
    if first is None:
        return None
    return _walk(punches[first + 1:], punches[first].time)


def total_duration(intervals):
    """Sum of interval durations, negative spans included as-is."""
    return sum((i.duration for i in intervals), timedelta())
