"""
Helpers for clock times.

Times are handled internally as minutes since midnight; "HH:MM" strings only
appear at the edges (config files, CSV input, exported records).
"""
from typing import List, Tuple, Union

MORNING = (8 * 60, 12 * 60)
AFTERNOON = (13 * 60, 18 * 60)


def to_minutes(value: Union[str, int]) -> int:
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if ":" not in text:
        raise ValueError(f"Invalid time {value!r}, expected HH:MM")
    hours, minutes = text.split(":", 1)
    return int(hours) * 60 + int(minutes or 0)


def to_hhmm(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def grid_starts(day_start: int, day_end: int, step: int, duration: int) -> List[int]:
    """Start times on the grid where a block of `duration` still fits."""
    starts = []
    t = day_start
    while t + duration <= day_end:
        starts.append(t)
        t += step
    return starts


def grid_cells(day_start: int, day_end: int, step: int) -> List[Tuple[int, int]]:
    return [(t, t + step) for t in range(day_start, day_end - step + 1, step)]


def is_morning(start: int) -> bool:
    return MORNING[0] <= start < MORNING[1]


def is_afternoon(start: int) -> bool:
    return AFTERNOON[0] <= start < AFTERNOON[1]
