"""
harmonicxplorer - Angle Cache
Unit-circle samples for the axis spokes, rebuilt only when the axis count changes.
"""

import math
from dataclasses import dataclass

from config import PARAM_RANGE_LIMITS, TWO_PI


@dataclass(frozen=True)
class AngleEntry:
    angle: float
    sin: float
    cos: float


def build_angle_cache(axis_count: int) -> tuple[AngleEntry, ...]:
    """Evenly spaced unit-circle samples for the clamped axis count."""
    low, high = PARAM_RANGE_LIMITS['axis_count']
    count = int(max(low, min(high, axis_count)))
    entries = []
    for i in range(count):
        angle = (i / count) * TWO_PI
        entries.append(AngleEntry(angle=angle, sin=math.sin(angle), cos=math.cos(angle)))
    return tuple(entries)


class AngleCache:
    """Holds the entries for the last axis count; rebuilds only when it changes."""

    def __init__(self):
        self._axis_count: int | None = None
        self._entries: tuple[AngleEntry, ...] = ()

    @property
    def axis_count(self) -> int | None:
        return self._axis_count

    def get(self, axis_count: int) -> tuple[AngleEntry, ...]:
        if axis_count != self._axis_count:
            self._entries = build_angle_cache(axis_count)
            self._axis_count = axis_count
        return self._entries
