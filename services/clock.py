"""Map local wall-clock time onto the operational day and its slots.

No timezone conversion happens here: callers pass wall-clock time already
expressed in the operating timezone. Arithmetic is in whole minutes.

The reportable slot is the one that has just closed, never the one still
open, so an instant inside slot ``n`` resolves to slot ``n - 1`` and an
instant inside slot 1 wraps to slot 12 of the same calendar date. The
calendar date itself is never shifted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime

from models.slots import MINUTES_PER_DAY, SLOT_MINUTES, SLOTS_PER_DAY
from services.errors import ValidationError
from settings import get_settings


@dataclass(frozen=True, slots=True)
class SlotPosition:
    operational_date: date
    slot_index: int


def minutes_since_midnight(now: datetime) -> int:
    return now.hour * 60 + now.minute


def _day_start(day_start_offset_minutes: int | None) -> int:
    if day_start_offset_minutes is None:
        return get_settings().day_start_offset_minutes
    if not 0 <= day_start_offset_minutes < MINUTES_PER_DAY:
        raise ValidationError(
            f"Day start offset must be within 0..{MINUTES_PER_DAY - 1} minutes, "
            f"got {day_start_offset_minutes}."
        )
    return day_start_offset_minutes


def position_in_day(now: datetime, day_start_offset_minutes: int | None = None) -> int:
    """Minutes elapsed since the operational day started, 0..1439."""
    offset = _day_start(day_start_offset_minutes)
    minutes = minutes_since_midnight(now)
    if minutes >= offset:
        return minutes - offset
    return minutes + (MINUTES_PER_DAY - offset)


def containing_slot_index(now: datetime, day_start_offset_minutes: int | None = None) -> int:
    return position_in_day(now, day_start_offset_minutes) // SLOT_MINUTES + 1


def resolve_current_slot(
    now: datetime, day_start_offset_minutes: int | None = None
) -> SlotPosition:
    containing = containing_slot_index(now, day_start_offset_minutes)
    selected = containing - 1 if containing > 1 else SLOTS_PER_DAY
    return SlotPosition(operational_date=now.date(), slot_index=selected)
