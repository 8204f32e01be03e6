"""Roll per-pipeline reading states up into slot and day coverage statistics."""

from __future__ import annotations

from datetime import date
from typing import Iterable

from models.coverage import (
    CoverageSummary,
    DailyCoverage,
    PipelineCoverageItem,
    SlotCompletion,
    SlotCoverage,
    SlotSummary,
)
from models.records import ReadingStatus
from models.slots import SLOTS_PER_DAY, Slot
from services.errors import ValidationError


class CoverageAggregator:
    """Pure aggregation component; holds no state between calls."""

    def aggregate(self, items: Iterable[PipelineCoverageItem]) -> CoverageSummary:
        counts: dict[ReadingStatus, int] = dict.fromkeys(ReadingStatus, 0)
        total = 0

        for item in items:
            total += 1
            counts[item.status] += 1

        return CoverageSummary(
            total_pipelines=total,
            not_recorded=counts[ReadingStatus.NOT_RECORDED],
            draft=counts[ReadingStatus.DRAFT],
            submitted=counts[ReadingStatus.SUBMITTED],
            approved=counts[ReadingStatus.APPROVED],
            rejected=counts[ReadingStatus.REJECTED],
        )

    def classify(self, summary: CoverageSummary) -> SlotCompletion:
        total = summary.total_pipelines
        if total > 0 and summary.approved == total:
            return SlotCompletion.complete
        if summary.not_recorded == total:
            return SlotCompletion.empty
        if summary.submitted > 0:
            return SlotCompletion.pending_validation
        return SlotCompletion.partial

    def rollup_day(
        self,
        operational_date: date,
        org_unit_id: int,
        slot_summaries: Iterable[tuple[Slot, CoverageSummary]],
    ) -> DailyCoverage:
        """Combine the twelve slot summaries of one day.

        Exactly one summary per slot index 1..12 is required; the result lists
        slots in index order whatever order they arrive in.
        """
        by_index: dict[int, tuple[Slot, CoverageSummary]] = {}
        for slot, summary in slot_summaries:
            if slot.index in by_index:
                raise ValidationError(
                    f"Duplicate summary for slot {slot.index}",
                    operational_date=operational_date,
                    slot_index=slot.index,
                    org_unit_id=org_unit_id,
                )
            by_index[slot.index] = (slot, summary)

        expected = set(range(1, SLOTS_PER_DAY + 1))
        if set(by_index) != expected:
            missing = sorted(expected - set(by_index))
            unexpected = sorted(set(by_index) - expected)
            raise ValidationError(
                f"Daily rollup needs slots 1..{SLOTS_PER_DAY}; "
                f"missing={missing} unexpected={unexpected}",
                operational_date=operational_date,
                org_unit_id=org_unit_id,
            )

        slots: list[SlotSummary] = []
        daily = CoverageSummary()
        tally: dict[SlotCompletion, int] = dict.fromkeys(SlotCompletion, 0)
        for index in sorted(by_index):
            slot, summary = by_index[index]
            completion = self.classify(summary)
            tally[completion] += 1
            daily = daily + summary
            slots.append(SlotSummary(slot=slot, summary=summary, completion=completion))

        return DailyCoverage(
            operational_date=operational_date,
            org_unit_id=org_unit_id,
            slots=slots,
            daily_summary=daily,
            complete_slots=tally[SlotCompletion.complete],
            pending_validation_slots=tally[SlotCompletion.pending_validation],
            partial_slots=tally[SlotCompletion.partial],
            empty_slots=tally[SlotCompletion.empty],
        )

    def rollup_coverages(self, coverages: Iterable[SlotCoverage]) -> DailyCoverage:
        coverages = list(coverages)
        if not coverages:
            raise ValidationError("Daily rollup needs slot coverages, got none")
        first = coverages[0]
        for coverage in coverages[1:]:
            if (coverage.operational_date, coverage.org_unit_id) != (
                first.operational_date,
                first.org_unit_id,
            ):
                raise ValidationError(
                    "Daily rollup mixes dates or organizational units",
                    operational_date=coverage.operational_date,
                    slot_index=coverage.slot_index,
                    org_unit_id=coverage.org_unit_id,
                )
        return self.rollup_day(
            first.operational_date,
            first.org_unit_id,
            [(coverage.slot, coverage.summary) for coverage in coverages],
        )
