"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum


class ReadingStatus(str, Enum):
    """Lifecycle states of a reading.

    ``NOT_RECORDED`` is virtual: it describes a (pipeline, date, slot) for
    which the system of record holds no reading at all.
    """

    NOT_RECORDED = "NOT_RECORDED"
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self is ReadingStatus.APPROVED


@dataclass(frozen=True, slots=True)
class Measurements:
    """The four measured quantities of a reading; any may still be missing on a draft."""

    pressure: float | None = None
    temperature: float | None = None
    flow_rate: float | None = None
    contained_volume: float | None = None


@dataclass(frozen=True, slots=True)
class Pipeline:
    pipeline_id: int
    code: str
    name: str = ""


@dataclass(slots=True)
class Reading:
    """The system of record's reading for one (pipeline, operational date, slot)."""

    reading_id: int
    pipeline_id: int
    operational_date: date
    slot_index: int
    status: ReadingStatus
    measurements: Measurements = field(default_factory=Measurements)
    notes: str | None = None
    rejection_reason: str | None = None
    recorded_by: int | None = None
    recorded_at: datetime | None = None
    validated_by: int | None = None
    validated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.status = ReadingStatus(self.status)
        if self.status is ReadingStatus.NOT_RECORDED:
            raise ValueError(
                f"Reading {self.reading_id} cannot carry the virtual NOT_RECORDED status."
            )
