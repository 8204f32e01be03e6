"""Static catalog of the twelve two-hour slots of an operational day."""

from __future__ import annotations

from datetime import time
from functools import lru_cache
from typing import Iterator

from models.slots import MINUTES_PER_DAY, SLOT_MINUTES, SLOTS_PER_DAY, Slot
from services.errors import ValidationError
from settings import get_settings


def _wall_clock(day_start_offset_minutes: int, offset: int) -> time:
    minutes = (day_start_offset_minutes + offset) % MINUTES_PER_DAY
    return time(hour=minutes // 60, minute=minutes % 60)


def _designation(start: time, end: time) -> str:
    return f"{start.hour:02d}h{start.minute:02d} - {end.hour:02d}h{end.minute:02d}"


def build_slots(day_start_offset_minutes: int) -> tuple[Slot, ...]:
    if not 0 <= day_start_offset_minutes < MINUTES_PER_DAY:
        raise ValidationError(
            f"Day start offset must be within 0..{MINUTES_PER_DAY - 1} minutes, "
            f"got {day_start_offset_minutes}."
        )
    slots = []
    for position in range(SLOTS_PER_DAY):
        start_offset = position * SLOT_MINUTES
        end_offset = start_offset + SLOT_MINUTES
        start = _wall_clock(day_start_offset_minutes, start_offset)
        end = _wall_clock(day_start_offset_minutes, end_offset)
        slots.append(
            Slot(
                index=position + 1,
                start_offset=start_offset,
                end_offset=end_offset,
                start_time=start,
                end_time=end,
                code=f"SLOT_{position + 1:02d}",
                designation=_designation(start, end),
            )
        )
    return tuple(slots)


class SlotCatalog:
    """Read-only, ordered set of slots partitioning one operational day."""

    def __init__(self, day_start_offset_minutes: int) -> None:
        self.day_start_offset_minutes = day_start_offset_minutes
        self._slots = build_slots(day_start_offset_minutes)

    def slots(self) -> tuple[Slot, ...]:
        return self._slots

    def get(self, index: int) -> Slot:
        if not 1 <= index <= len(self._slots):
            raise ValidationError(
                f"Slot index must be between 1 and {len(self._slots)}, got {index}.",
                slot_index=index,
            )
        return self._slots[index - 1]

    def previous(self, slot: Slot) -> Slot:
        """The slot that closes when ``slot`` opens; slot 1 wraps to slot 12."""
        return self._slots[(slot.index - 2) % len(self._slots)]

    def __iter__(self) -> Iterator[Slot]:
        return iter(self._slots)

    def __len__(self) -> int:
        return len(self._slots)


@lru_cache
def get_slot_catalog() -> SlotCatalog:
    return SlotCatalog(get_settings().day_start_offset_minutes)
