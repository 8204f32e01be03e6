"""Coverage aggregates built from per-pipeline reading states."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum

from models.records import Pipeline, Reading, ReadingStatus
from models.slots import Slot


def rounded_percentage(part: int, whole: int) -> int:
    """Integer percentage of ``part`` in ``whole``, halves rounded up; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return (200 * part + whole) // (2 * whole)


@dataclass(frozen=True, slots=True)
class Permissions:
    can_edit: bool = False
    can_submit: bool = False
    can_validate: bool = False


@dataclass(slots=True)
class PipelineCoverageItem:
    """One pipeline's reading (or lack of one) for a given date and slot."""

    pipeline: Pipeline
    reading: Reading | None = None
    permissions: Permissions = field(default_factory=Permissions)

    @property
    def status(self) -> ReadingStatus:
        if self.reading is None:
            return ReadingStatus.NOT_RECORDED
        return self.reading.status

    @property
    def pipeline_id(self) -> int:
        return self.pipeline.pipeline_id


@dataclass(frozen=True, slots=True)
class CoverageSummary:
    """Counts per lifecycle state. Percentages are derived on access."""

    total_pipelines: int = 0
    not_recorded: int = 0
    draft: int = 0
    submitted: int = 0
    approved: int = 0
    rejected: int = 0

    @property
    def completion_percentage(self) -> int:
        """Share of pipelines whose reading is fully validated."""
        return rounded_percentage(self.approved, self.total_pipelines)

    @property
    def recorded_percentage(self) -> int:
        """Share of pipelines captured operationally, validated or still pending."""
        return rounded_percentage(self.approved + self.submitted, self.total_pipelines)

    def counts(self) -> dict[ReadingStatus, int]:
        return {
            ReadingStatus.NOT_RECORDED: self.not_recorded,
            ReadingStatus.DRAFT: self.draft,
            ReadingStatus.SUBMITTED: self.submitted,
            ReadingStatus.APPROVED: self.approved,
            ReadingStatus.REJECTED: self.rejected,
        }

    def __add__(self, other: "CoverageSummary") -> "CoverageSummary":
        if not isinstance(other, CoverageSummary):
            return NotImplemented
        return CoverageSummary(
            total_pipelines=self.total_pipelines + other.total_pipelines,
            not_recorded=self.not_recorded + other.not_recorded,
            draft=self.draft + other.draft,
            submitted=self.submitted + other.submitted,
            approved=self.approved + other.approved,
            rejected=self.rejected + other.rejected,
        )


class SlotCompletion(str, Enum):
    complete = "complete"
    pending_validation = "pending_validation"
    partial = "partial"
    empty = "empty"


@dataclass(slots=True)
class SlotCoverage:
    operational_date: date
    slot: Slot
    org_unit_id: int
    items: list[PipelineCoverageItem]
    summary: CoverageSummary

    @property
    def slot_index(self) -> int:
        return self.slot.index

    @property
    def is_complete(self) -> bool:
        return 0 < self.summary.total_pipelines == self.summary.approved


@dataclass(frozen=True, slots=True)
class SlotSummary:
    slot: Slot
    summary: CoverageSummary
    completion: SlotCompletion


@dataclass(frozen=True, slots=True)
class SlotCompletionStats:
    """Completion figures of one slot on one operational date."""

    operational_date: date
    slot: Slot
    summary: CoverageSummary
    completion: SlotCompletion

    @property
    def total_pipelines(self) -> int:
        return self.summary.total_pipelines

    @property
    def recorded_rate(self) -> int:
        return self.summary.recorded_percentage

    @property
    def completion_rate(self) -> int:
        return self.summary.completion_percentage

    @property
    def rejected_count(self) -> int:
        return self.summary.rejected


@dataclass(slots=True)
class DailyCoverage:
    """Day-level rollup of the twelve slot summaries of one operational date."""

    operational_date: date
    org_unit_id: int
    slots: list[SlotSummary]
    daily_summary: CoverageSummary
    complete_slots: int = 0
    pending_validation_slots: int = 0
    partial_slots: int = 0
    empty_slots: int = 0

    @property
    def completion_rate(self) -> int:
        return self.daily_summary.completion_percentage

    @property
    def recorded_rate(self) -> int:
        return self.daily_summary.recorded_percentage


@dataclass(frozen=True, slots=True)
class BulkActionError:
    reading_id: int
    message: str


@dataclass(slots=True)
class BulkActionResult:
    total: int = 0
    succeeded: list[Reading] = field(default_factory=list)
    failed: list[BulkActionError] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return len(self.succeeded)

    @property
    def failure_count(self) -> int:
        return len(self.failed)
