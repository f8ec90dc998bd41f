from __future__ import annotations

from datetime import date
import re
from typing import Iterable, List, Tuple

TIME_PATTERN = re.compile(r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")

Interval = Tuple[int, int]


def is_valid_time_str(value: str) -> bool:
    """Return True when ``value`` is a 24-hour ``H:MM``/``HH:MM`` string."""
    return bool(value) and TIME_PATTERN.match(value) is not None


def time_str_to_minutes(value: str) -> int:
    """
    Convert an ``HH:MM`` string to minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour time.
    """
    if not is_valid_time_str(value):
        raise ValueError(f"Invalid time format: {value!r}. Use HH:MM format")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def minutes_to_time_str(minutes: int) -> str:
    """
    Convert minutes since midnight to HH:MM.

    1440 is rendered as "24:00".
    """
    if not 0 <= minutes <= 24 * 60:
        raise ValueError(f"minutes out of range: {minutes}")
    if minutes == 24 * 60:
        return "24:00"
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time_str(value: str) -> str:
    """Zero-pad a valid time string so lexical order matches clock order ("9:05" -> "09:05")."""
    return minutes_to_time_str(time_str_to_minutes(value))


def duration_minutes(start: str, end: str) -> int:
    return time_str_to_minutes(end) - time_str_to_minutes(start)


def ranges_overlap(start1: int, end1: int, start2: int, end2: int) -> bool:
    """Half-open ranges [s1, e1) and [s2, e2) conflict iff s1 < e2 and s2 < e1."""
    return start1 < end2 and start2 < end1


def day_of_week(value: date) -> int:
    """Day index with Sunday = 0 through Saturday = 6."""
    return (value.weekday() + 1) % 7


def subtract_intervals(base: Iterable[Interval], removed: Iterable[Interval]) -> List[Interval]:
    """
    Remove every ``removed`` interval from the ``base`` intervals.

    Overlapping or touching base intervals are merged first. The result is
    sorted and contains no empty intervals.
    """
    merged: List[List[int]] = []
    for start, end in sorted(base):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], end)
        else:
            merged.append([start, end])

    cuts = sorted((s, e) for s, e in removed if e > s)
    result: List[Interval] = []
    for start, end in merged:
        cursor = start
        for cut_start, cut_end in cuts:
            if cut_end <= cursor or cut_start >= end:
                continue
            if cut_start > cursor:
                result.append((cursor, cut_start))
            cursor = max(cursor, cut_end)
            if cursor >= end:
                break
        if cursor < end:
            result.append((cursor, end))
    return result
