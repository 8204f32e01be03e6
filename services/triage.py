"""Ordering and filtering of coverage items for the operational console."""

from __future__ import annotations

from typing import Collection, Iterable

from models.coverage import PipelineCoverageItem
from models.records import ReadingStatus

STATUS_PRIORITY = {
    ReadingStatus.NOT_RECORDED: 1,
    ReadingStatus.REJECTED: 2,
    ReadingStatus.DRAFT: 3,
    ReadingStatus.SUBMITTED: 4,
    ReadingStatus.APPROVED: 5,
}

ATTENTION_STATES = frozenset(
    {ReadingStatus.NOT_RECORDED, ReadingStatus.DRAFT, ReadingStatus.REJECTED}
)


def sort_by_priority(items: Iterable[PipelineCoverageItem]) -> list[PipelineCoverageItem]:
    """Items needing operator work first, validated ones last; ties by pipeline code."""
    return sorted(items, key=lambda item: (STATUS_PRIORITY[item.status], item.pipeline.code))


def filter_by_status(
    items: Iterable[PipelineCoverageItem], statuses: Collection[ReadingStatus]
) -> list[PipelineCoverageItem]:
    wanted = {ReadingStatus(status) for status in statuses}
    return [item for item in items if item.status in wanted]


def requiring_attention(items: Iterable[PipelineCoverageItem]) -> list[PipelineCoverageItem]:
    return filter_by_status(items, ATTENTION_STATES)


def pending_validation(items: Iterable[PipelineCoverageItem]) -> list[PipelineCoverageItem]:
    return filter_by_status(items, {ReadingStatus.SUBMITTED})
