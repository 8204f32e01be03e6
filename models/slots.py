"""Slot value type."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time

MINUTES_PER_DAY = 24 * 60
SLOT_MINUTES = 120
SLOTS_PER_DAY = MINUTES_PER_DAY // SLOT_MINUTES


@dataclass(frozen=True, slots=True)
class Slot:
    """One fixed two-hour window of the operational day.

    ``start_offset`` and ``end_offset`` are minutes from the start of the
    operational day; ``start_time``/``end_time`` are the matching wall-clock
    times. ``index`` is the stable external key.
    """

    index: int
    start_offset: int
    end_offset: int
    start_time: time
    end_time: time
    code: str
    designation: str

    @property
    def duration_minutes(self) -> int:
        return self.end_offset - self.start_offset
