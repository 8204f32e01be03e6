"""Tests for the coverage facade against the reference system of record."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List

import pytest

from models.coverage import Permissions, SlotCompletion
from models.records import Measurements, Reading, ReadingStatus
from services.catalog import SlotCatalog
from services.coverage import CoverageService
from services.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from services.permissions import actor_from_roles


ORG_UNIT = 11
OPERATOR_ID = 1
VALIDATOR_ID = 2
ADMIN_ID = 3

DAY = date(2024, 3, 1)
OPERATOR = actor_from_roles(OPERATOR_ID, ["MONITORING_OPERATOR"])
VALIDATOR = actor_from_roles(VALIDATOR_ID, ["MONITORING_VALIDATOR"])
ADMIN = actor_from_roles(ADMIN_ID, ["MONITORING_ADMIN"])
COMPLETE = Measurements(pressure=55.0, temperature=21.0, flow_rate=130.0)


class RecordingGateway:
    """Gateway stand-in that fails the test on any network call."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    def __getattr__(self, name: str):
        def _call(*_args, **_kwargs):
            self.calls.append(name)
            raise AssertionError(f"unexpected gateway call: {name}")

        return _call


def _record(service: CoverageService, pipeline_id: int, slot_index: int = 3, **kwargs) -> Reading:
    return service.record_reading(OPERATOR, pipeline_id, DAY, slot_index, COMPLETE, **kwargs)


def test_slot_coverage_derives_states_and_permissions(coverage_service: CoverageService) -> None:
    _record(coverage_service, 101, submit_immediately=True)
    _record(coverage_service, 102)

    coverage = coverage_service.get_slot_coverage(DAY, 3, ORG_UNIT, VALIDATOR)

    assert coverage.slot.index == 3
    assert [item.status for item in coverage.items] == [
        ReadingStatus.SUBMITTED,
        ReadingStatus.DRAFT,
        ReadingStatus.NOT_RECORDED,
    ]
    assert coverage.items[0].permissions == Permissions(can_validate=True)
    assert coverage.items[1].permissions == Permissions()
    assert coverage.summary.total_pipelines == 3
    assert coverage.summary.recorded_percentage == 33
    assert coverage.summary.completion_percentage == 0


def test_slot_coverage_without_actor_is_read_only(coverage_service: CoverageService) -> None:
    coverage = coverage_service.get_slot_coverage(DAY, 1, ORG_UNIT)

    assert all(item.permissions == Permissions() for item in coverage.items)
    assert coverage.summary.not_recorded == 3


def test_invalid_slot_index_fails_before_network() -> None:
    gateway = RecordingGateway()
    service = CoverageService(gateway=gateway, catalog=SlotCatalog(480))

    with pytest.raises(ValidationError):
        service.get_slot_coverage(DAY, 13, ORG_UNIT)

    assert gateway.calls == []


def test_short_rejection_reason_fails_before_network() -> None:
    gateway = RecordingGateway()
    service = CoverageService(gateway=gateway, catalog=SlotCatalog(480))
    reading = Reading(
        reading_id=9, pipeline_id=101, operational_date=DAY, slot_index=3,
        status=ReadingStatus.SUBMITTED, measurements=COMPLETE, recorded_by=OPERATOR_ID,
    )

    with pytest.raises(ValidationError):
        service.reject_reading(reading, VALIDATOR, "bad")

    assert gateway.calls == []


def test_out_of_range_measurement_fails_before_network() -> None:
    gateway = RecordingGateway()
    service = CoverageService(gateway=gateway, catalog=SlotCatalog(480))

    with pytest.raises(ValidationError):
        service.record_reading(OPERATOR, 101, DAY, 3, Measurements(pressure=900.0))

    assert gateway.calls == []


def test_record_submit_approve(coverage_service: CoverageService) -> None:
    draft = _record(coverage_service, 101)
    submitted = coverage_service.submit_reading(draft, OPERATOR)
    approved = coverage_service.approve_reading(submitted, VALIDATOR, notes="checked")

    assert draft.status is ReadingStatus.DRAFT
    assert submitted.status is ReadingStatus.SUBMITTED
    assert approved.status is ReadingStatus.APPROVED
    assert approved.validated_by == VALIDATOR_ID


def test_reject_then_edit_back_to_draft(coverage_service: CoverageService) -> None:
    submitted = _record(coverage_service, 101, submit_immediately=True)
    rejected = coverage_service.reject_reading(submitted, VALIDATOR, "Gauge misread")

    corrected = coverage_service.record_reading(
        OPERATOR, 101, DAY, 3, Measurements(pressure=49.0, temperature=21.0, flow_rate=130.0),
        existing=rejected,
    )

    assert rejected.rejection_reason == "Gauge misread"
    assert corrected.reading_id == submitted.reading_id
    assert corrected.status is ReadingStatus.DRAFT
    assert corrected.measurements.pressure == 49.0


def test_rejected_reading_cannot_be_approved_locally(coverage_service: CoverageService) -> None:
    submitted = _record(coverage_service, 101, submit_immediately=True)
    rejected = coverage_service.reject_reading(submitted, VALIDATOR, "Gauge misread")

    with pytest.raises(ConflictError):
        coverage_service.approve_reading(rejected, VALIDATOR)

    current = coverage_service.gateway.fetch_reading(rejected.reading_id)
    assert current.status is ReadingStatus.REJECTED


def test_stale_view_conflict_attaches_authoritative_reading(
    coverage_service: CoverageService, caplog
) -> None:
    submitted = _record(coverage_service, 101, submit_immediately=True)
    coverage_service.reject_reading(submitted, VALIDATOR, "Gauge misread")

    with caplog.at_level(logging.WARNING, logger="services.coverage"):
        with pytest.raises(ConflictError) as excinfo:
            coverage_service.approve_reading(submitted, VALIDATOR)

    error = excinfo.value
    assert error.current_status is ReadingStatus.REJECTED
    assert error.message == "Cannot approve a reading in status REJECTED"
    assert error.current is not None
    assert error.current.status is ReadingStatus.REJECTED
    assert any(record.name == "services.coverage" for record in caplog.records)


def test_duplicate_create_surfaces_conflict(coverage_service: CoverageService) -> None:
    _record(coverage_service, 101)

    with pytest.raises(ConflictError) as excinfo:
        _record(coverage_service, 101)

    assert excinfo.value.current_status is ReadingStatus.DRAFT


def test_unknown_pipeline_surfaces_backend_message(coverage_service: CoverageService) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        _record(coverage_service, 999)

    assert excinfo.value.message == "Pipeline 999 not found"


def test_validator_cannot_record(coverage_service: CoverageService) -> None:
    with pytest.raises(ForbiddenError):
        coverage_service.record_reading(VALIDATOR, 101, DAY, 3, COMPLETE)


def test_existing_reading_cannot_move(coverage_service: CoverageService) -> None:
    draft = _record(coverage_service, 101)

    with pytest.raises(ValidationError):
        coverage_service.record_reading(OPERATOR, 101, DAY, 4, COMPLETE, existing=draft)


def test_approve_many_collects_failures(coverage_service: CoverageService) -> None:
    first = _record(coverage_service, 101, submit_immediately=True)
    second = _record(coverage_service, 102, submit_immediately=True)
    draft = _record(coverage_service, 103)

    result = coverage_service.approve_many([first, draft, second], VALIDATOR)

    assert result.total == 3
    assert [reading.reading_id for reading in result.succeeded] == [first.reading_id, second.reading_id]
    assert result.failure_count == 1
    assert result.failed[0].reading_id == draft.reading_id
    assert result.failed[0].message == "Cannot approve a reading in status DRAFT"


def test_reject_many(coverage_service: CoverageService) -> None:
    readings = [
        _record(coverage_service, pipeline_id, submit_immediately=True)
        for pipeline_id in (101, 102)
    ]

    result = coverage_service.reject_many(readings, VALIDATOR, "Values out of trend")

    assert result.success_count == 2
    assert all(reading.status is ReadingStatus.REJECTED for reading in result.succeeded)


def test_submit_many_collects_local_conflicts(coverage_service: CoverageService) -> None:
    first = _record(coverage_service, 101)
    already = _record(coverage_service, 102, submit_immediately=True)
    second = _record(coverage_service, 103)

    result = coverage_service.submit_many([first, already, second], OPERATOR)

    assert result.total == 3
    assert [reading.status for reading in result.succeeded] == [ReadingStatus.SUBMITTED] * 2
    assert result.failed[0].reading_id == already.reading_id
    assert result.failed[0].message == "Cannot submit a reading in status SUBMITTED"


def test_approve_slot_approves_only_submitted_readings(coverage_service: CoverageService) -> None:
    _record(coverage_service, 101, submit_immediately=True)
    _record(coverage_service, 102, submit_immediately=True)
    _record(coverage_service, 103)
    _record(coverage_service, 101, slot_index=4, submit_immediately=True)

    result = coverage_service.approve_slot(DAY, 3, ORG_UNIT, VALIDATOR, notes="Shift checked")

    coverage = coverage_service.get_slot_coverage(DAY, 3, ORG_UNIT)
    other_slot = coverage_service.get_slot_coverage(DAY, 4, ORG_UNIT)
    assert result.total == 2
    assert result.failure_count == 0
    assert all(reading.notes == "Shift checked" for reading in result.succeeded)
    assert (coverage.summary.approved, coverage.summary.draft) == (2, 1)
    assert other_slot.summary.submitted == 1


def test_approve_slot_by_operator_collects_forbidden(coverage_service: CoverageService) -> None:
    _record(coverage_service, 101, submit_immediately=True)

    result = coverage_service.approve_slot(DAY, 3, ORG_UNIT, OPERATOR)

    assert result.total == 1
    assert result.success_count == 0
    assert coverage_service.get_slot_coverage(DAY, 3, ORG_UNIT).summary.submitted == 1


def test_approve_slot_without_pending_readings(coverage_service: CoverageService) -> None:
    result = coverage_service.approve_slot(DAY, 6, ORG_UNIT, VALIDATOR)

    assert result.total == 0
    assert result.succeeded == []


def test_daily_coverage_rolls_up_twelve_slots(coverage_service: CoverageService) -> None:
    for pipeline_id in (101, 102, 103):
        submitted = _record(coverage_service, pipeline_id, slot_index=1, submit_immediately=True)
        coverage_service.approve_reading(submitted, ADMIN)
    _record(coverage_service, 101, slot_index=2, submit_immediately=True)
    _record(coverage_service, 102, slot_index=5)

    daily = coverage_service.get_daily_coverage(DAY, ORG_UNIT, OPERATOR)

    assert len(daily.slots) == 12
    assert daily.slots[0].completion is SlotCompletion.complete
    assert daily.slots[1].completion is SlotCompletion.pending_validation
    assert daily.slots[4].completion is SlotCompletion.partial
    assert (daily.complete_slots, daily.pending_validation_slots, daily.partial_slots, daily.empty_slots) == (
        1,
        1,
        1,
        9,
    )
    assert daily.daily_summary.total_pipelines == 36
    assert daily.completion_rate == 8
    assert daily.recorded_rate == 11


def test_current_slot_coverage_uses_previous_slot(coverage_service: CoverageService) -> None:
    coverage = coverage_service.get_current_slot_coverage(datetime(2024, 3, 1, 14, 30), ORG_UNIT)

    assert coverage.operational_date == DAY
    assert coverage.slot_index == 3


def test_poll_yields_fresh_snapshots(coverage_service: CoverageService) -> None:
    sleeps: List[float] = []
    coverage_service._sleep = sleeps.append

    poller = coverage_service.poll_slot_coverage(DAY, 3, ORG_UNIT, interval=5, max_polls=3)
    first = next(poller)
    _record(coverage_service, 101)
    remaining = list(poller)

    assert first.summary.not_recorded == 3
    assert [coverage.summary.draft for coverage in remaining] == [1, 1]
    assert sleeps == [5, 5]


def test_poll_rejects_negative_interval(coverage_service: CoverageService) -> None:
    with pytest.raises(ValidationError):
        next(coverage_service.poll_slot_coverage(DAY, 3, ORG_UNIT, interval=-1))


def test_completion_stats_cover_each_slot_of_each_day(coverage_service: CoverageService) -> None:
    for pipeline_id in (101, 102, 103):
        submitted = _record(coverage_service, pipeline_id, slot_index=1, submit_immediately=True)
        coverage_service.approve_reading(submitted, VALIDATOR)
    pending = _record(coverage_service, 101, slot_index=2, submit_immediately=True)
    coverage_service.reject_reading(pending, VALIDATOR, "Pressure spike")

    stats = coverage_service.get_completion_stats(DAY, date(2024, 3, 2), ORG_UNIT)

    assert len(stats) == 24
    assert [(entry.operational_date, entry.slot.index) for entry in stats[11:13]] == [
        (DAY, 12),
        (date(2024, 3, 2), 1),
    ]
    first, second = stats[0], stats[1]
    assert (first.total_pipelines, first.completion_rate, first.recorded_rate) == (3, 100, 100)
    assert first.completion is SlotCompletion.complete
    assert (second.rejected_count, second.completion_rate) == (1, 0)
    assert all(entry.completion is SlotCompletion.empty for entry in stats[12:])


def test_completion_stats_reject_inverted_range() -> None:
    gateway = RecordingGateway()
    service = CoverageService(gateway=gateway, catalog=SlotCatalog(480))

    with pytest.raises(ValidationError):
        service.get_completion_stats(date(2024, 3, 2), DAY, ORG_UNIT)

    assert gateway.calls == []


def test_refused_commands_are_logged(caplog) -> None:
    service = CoverageService(gateway=RecordingGateway(), catalog=SlotCatalog(480))
    submitted = Reading(
        reading_id=9, pipeline_id=101, operational_date=DAY, slot_index=3,
        status=ReadingStatus.SUBMITTED, measurements=COMPLETE, recorded_by=OPERATOR_ID,
    )
    approved = Reading(
        reading_id=10, pipeline_id=102, operational_date=DAY, slot_index=3,
        status=ReadingStatus.APPROVED, measurements=COMPLETE, recorded_by=OPERATOR_ID,
    )
    caplog.set_level(logging.DEBUG, logger="services.coverage")

    with pytest.raises(ValidationError):
        service.reject_reading(submitted, VALIDATOR, "bad")
    with pytest.raises(ForbiddenError):
        service.approve_reading(submitted, OPERATOR)
    with pytest.raises(ConflictError):
        service.submit_reading(approved, OPERATOR)

    records = [record for record in caplog.records if record.name == "services.coverage"]
    assert [record.levelno for record in records] == [logging.INFO, logging.INFO, logging.WARNING]
    assert records[0].getMessage() == (
        "Refused to reject reading: Rejection reason must be at least 5 characters"
    )
    assert records[2].actor_id == OPERATOR_ID
    assert records[2].reading_id == 10


def test_coverage_and_bulk_log_levels(coverage_service: CoverageService, caplog) -> None:
    submitted = _record(coverage_service, 101, submit_immediately=True)
    draft = _record(coverage_service, 102)
    caplog.set_level(logging.DEBUG, logger="services.coverage")
    caplog.clear()

    coverage_service.get_slot_coverage(DAY, 3, ORG_UNIT)
    coverage_service.approve_many([submitted, draft], VALIDATOR)
    coverage_service.reject_many([], VALIDATOR, "Values out of trend")

    def levels(message: str) -> list:
        return [record.levelno for record in caplog.records if record.getMessage() == message]

    fetches = levels("Slot coverage aggregated")
    bulks = levels("Bulk action finished")
    assert fetches == [logging.DEBUG]
    assert bulks == [logging.WARNING, logging.INFO]
