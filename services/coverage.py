"""Coverage Query Facade: the single entry point for coverage queries and reading commands.

Queries fetch one snapshot from the system of record and derive states,
permissions and aggregates from it. Commands run the lifecycle guards
locally and then issue exactly one write. Nothing is cached between calls
and nothing is retried.
"""

from __future__ import annotations

import logging
import time
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, Iterator

from app.schemas import ReadingUpsertRequest, RosterEntry
from gateway.client import SystemOfRecordClient, build_default_client
from models.actors import READ_ONLY, Actor
from models.coverage import (
    BulkActionError,
    BulkActionResult,
    DailyCoverage,
    PipelineCoverageItem,
    SlotCompletionStats,
    SlotCoverage,
)
from models.records import Measurements, Reading, ReadingStatus
from services.aggregator import CoverageAggregator
from services.catalog import SlotCatalog, get_slot_catalog
from services.clock import resolve_current_slot
from services.errors import (
    ConflictError,
    CoverageError,
    ForbiddenError,
    TransportError,
    ValidationError,
)
from services.lifecycle import Action, ReadingLifecycle, TransitionRequest, reading_context
from services.permissions import permissions_for
from services.triage import pending_validation
from settings import get_settings

logger = logging.getLogger(__name__)


class CoverageService:
    def __init__(
        self,
        gateway: SystemOfRecordClient,
        aggregator: CoverageAggregator | None = None,
        lifecycle: ReadingLifecycle | None = None,
        catalog: SlotCatalog | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.gateway = gateway
        self.aggregator = aggregator or CoverageAggregator()
        self.lifecycle = lifecycle or ReadingLifecycle()
        self.catalog = catalog or get_slot_catalog()
        self._sleep = sleep

    # Queries

    def get_slot_coverage(
        self,
        operational_date: date,
        slot_index: int,
        org_unit_id: int,
        actor: Actor | None = None,
    ) -> SlotCoverage:
        slot = self.catalog.get(slot_index)
        started = time.perf_counter()
        snapshot = self.gateway.fetch_slot_snapshot(operational_date, slot_index, org_unit_id)
        capabilities = actor.capabilities if actor is not None else READ_ONLY
        context = {
            "operational_date": operational_date,
            "slot_index": slot_index,
            "org_unit_id": org_unit_id,
        }

        items: list[PipelineCoverageItem] = []
        for entry in snapshot.pipelines:
            reading = _entry_reading(entry, context)
            item = PipelineCoverageItem(pipeline=entry.to_domain(), reading=reading)
            item.permissions = permissions_for(capabilities, item.status)
            items.append(item)

        summary = self.aggregator.aggregate(items)
        logger.debug(
            "Slot coverage aggregated",
            extra={
                **context,
                "item_count": summary.total_pipelines,
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return SlotCoverage(
            operational_date=operational_date,
            slot=slot,
            org_unit_id=org_unit_id,
            items=items,
            summary=summary,
        )

    def get_daily_coverage(
        self, operational_date: date, org_unit_id: int, actor: Actor | None = None
    ) -> DailyCoverage:
        coverages = [
            self.get_slot_coverage(operational_date, slot.index, org_unit_id, actor)
            for slot in self.catalog
        ]
        return self.aggregator.rollup_coverages(coverages)

    def get_current_slot_coverage(
        self, now: datetime, org_unit_id: int, actor: Actor | None = None
    ) -> SlotCoverage:
        position = resolve_current_slot(now, self.catalog.day_start_offset_minutes)
        return self.get_slot_coverage(
            position.operational_date, position.slot_index, org_unit_id, actor
        )

    def poll_slot_coverage(
        self,
        operational_date: date,
        slot_index: int,
        org_unit_id: int,
        actor: Actor | None = None,
        interval: float | None = None,
        max_polls: int | None = None,
    ) -> Iterator[SlotCoverage]:
        """Yield a fresh ``SlotCoverage`` every ``interval`` seconds.

        Stops after ``max_polls`` snapshots when given, otherwise runs until
        the caller stops iterating.
        """
        interval = get_settings().poll_interval if interval is None else interval
        if interval < 0:
            raise ValidationError(f"Poll interval must not be negative, got {interval}.")
        polls = 0
        while max_polls is None or polls < max_polls:
            if polls:
                self._sleep(interval)
            yield self.get_slot_coverage(operational_date, slot_index, org_unit_id, actor)
            polls += 1

    def get_completion_stats(
        self,
        start_date: date,
        end_date: date,
        org_unit_id: int,
        actor: Actor | None = None,
    ) -> list[SlotCompletionStats]:
        """Per-slot completion figures for every operational date in ``start_date..end_date``."""
        if start_date > end_date:
            raise ValidationError(
                f"Start date {start_date} is after end date {end_date}.", org_unit_id=org_unit_id
            )
        stats: list[SlotCompletionStats] = []
        day = start_date
        while day <= end_date:
            daily = self.get_daily_coverage(day, org_unit_id, actor)
            stats.extend(
                SlotCompletionStats(
                    operational_date=day,
                    slot=entry.slot,
                    summary=entry.summary,
                    completion=entry.completion,
                )
                for entry in daily.slots
            )
            day += timedelta(days=1)
        return stats

    # Commands

    def record_reading(
        self,
        actor: Actor,
        pipeline_id: int,
        operational_date: date,
        slot_index: int,
        measurements: Measurements,
        notes: str | None = None,
        submit_immediately: bool = False,
        existing: Reading | None = None,
    ) -> Reading:
        """Create the slot's reading, or update ``existing`` when one is already recorded."""
        context: dict[str, Any] = {
            "pipeline_id": pipeline_id,
            "operational_date": operational_date,
            "slot_index": slot_index,
        }
        if existing is not None:
            context = reading_context(existing)
        request = TransitionRequest(measurements=measurements, notes=notes)

        def local_status() -> ReadingStatus:
            self.catalog.get(slot_index)
            if existing is None:
                status = self.lifecycle.transition(
                    ReadingStatus.NOT_RECORDED, Action.create, actor, request, **context
                )
            else:
                if (existing.pipeline_id, existing.operational_date, existing.slot_index) != (
                    pipeline_id,
                    operational_date,
                    slot_index,
                ):
                    raise ValidationError(
                        "Pipeline, date and slot of an existing reading cannot change", **context
                    )
                status = self.lifecycle.check_reading(
                    existing, Action.edit, actor, measurements=measurements, notes=notes
                )
            if submit_immediately:
                status = self.lifecycle.transition(
                    status, Action.submit, actor, TransitionRequest(measurements=measurements), **context
                )
            return status

        action = Action.create if existing is None else Action.edit
        status = self._guard(action, actor, context, local_status)

        payload = ReadingUpsertRequest(
            pipeline_id=pipeline_id,
            reading_date=operational_date,
            slot_index=slot_index,
            actor_id=actor.actor_id,
            pressure=measurements.pressure,
            temperature=measurements.temperature,
            flow_rate=measurements.flow_rate,
            contained_volume=measurements.contained_volume,
            notes=notes,
            submit_immediately=submit_immediately,
        )
        if existing is None:
            return self._execute(
                None, status, actor, lambda: self.gateway.create_reading(payload), context
            )
        return self._execute(
            existing.reading_id,
            status,
            actor,
            lambda: self.gateway.update_reading(existing.reading_id, payload),
            context,
        )

    def submit_reading(self, reading: Reading, actor: Actor) -> Reading:
        context = reading_context(reading)
        status = self._guard(
            Action.submit,
            actor,
            context,
            lambda: self.lifecycle.check_reading(reading, Action.submit, actor),
        )
        return self._execute(
            reading.reading_id,
            status,
            actor,
            lambda: self.gateway.submit_reading(reading.reading_id, actor.actor_id),
            context,
        )

    def approve_reading(self, reading: Reading, actor: Actor, notes: str | None = None) -> Reading:
        context = reading_context(reading)
        status = self._guard(
            Action.approve,
            actor,
            context,
            lambda: self.lifecycle.check_reading(reading, Action.approve, actor, notes=notes),
        )
        return self._execute(
            reading.reading_id,
            status,
            actor,
            lambda: self.gateway.approve_reading(reading.reading_id, actor.actor_id, notes),
            context,
        )

    def reject_reading(self, reading: Reading, actor: Actor, reason: str) -> Reading:
        context = reading_context(reading)
        status = self._guard(
            Action.reject,
            actor,
            context,
            lambda: self.lifecycle.check_reading(reading, Action.reject, actor, reason=reason),
        )
        return self._execute(
            reading.reading_id,
            status,
            actor,
            lambda: self.gateway.reject_reading(reading.reading_id, actor.actor_id, reason.strip()),
            context,
        )

    def submit_many(self, readings: Iterable[Reading], actor: Actor) -> BulkActionResult:
        return self._bulk(readings, lambda reading: self.submit_reading(reading, actor))

    def approve_many(
        self, readings: Iterable[Reading], actor: Actor, notes: str | None = None
    ) -> BulkActionResult:
        return self._bulk(readings, lambda reading: self.approve_reading(reading, actor, notes))

    def reject_many(self, readings: Iterable[Reading], actor: Actor, reason: str) -> BulkActionResult:
        return self._bulk(readings, lambda reading: self.reject_reading(reading, actor, reason))

    def approve_slot(
        self,
        operational_date: date,
        slot_index: int,
        org_unit_id: int,
        actor: Actor,
        notes: str | None = None,
    ) -> BulkActionResult:
        """Approve every SUBMITTED reading of one slot for an organizational unit.

        The slot is read once; readings that move on in between surface as
        per-reading conflicts in the result rather than aborting the batch.
        """
        coverage = self.get_slot_coverage(operational_date, slot_index, org_unit_id, actor)
        readings = [item.reading for item in pending_validation(coverage.items)]
        return self.approve_many(readings, actor, notes)

    def _bulk(
        self, readings: Iterable[Reading], command: Callable[[Reading], Reading]
    ) -> BulkActionResult:
        result = BulkActionResult()
        for reading in readings:
            result.total += 1
            try:
                result.succeeded.append(command(reading))
            except CoverageError as exc:
                result.failed.append(BulkActionError(reading_id=reading.reading_id, message=exc.message))
        level = logging.WARNING if result.failure_count else logging.INFO
        logger.log(
            level,
            "Bulk action finished",
            extra={"item_count": result.total, "error_count": result.failure_count},
        )
        return result

    def _guard(
        self,
        action: Action,
        actor: Actor,
        context: dict[str, Any],
        check: Callable[[], ReadingStatus],
    ) -> ReadingStatus:
        try:
            return check()
        except ConflictError as exc:
            logger.warning(
                "Refused to %s reading: %s",
                action.value,
                exc.message,
                extra={**context, "actor_id": actor.actor_id, "status": exc.current_status},
            )
            raise
        except (ValidationError, ForbiddenError) as exc:
            logger.info(
                "Refused to %s reading: %s",
                action.value,
                exc.message,
                extra={**context, "actor_id": actor.actor_id},
            )
            raise

    def _execute(
        self,
        reading_id: int | None,
        expected: ReadingStatus,
        actor: Actor,
        call: Callable[[], Reading],
        context: dict[str, Any],
    ) -> Reading:
        try:
            reading = call()
        except ConflictError as exc:
            exc.current = self._refresh(reading_id)
            logger.warning(
                "System of record rejected transition: %s",
                exc.message,
                extra={**context, "actor_id": actor.actor_id, "status": exc.current_status},
            )
            raise
        if reading.status is not expected:
            logger.warning(
                "System of record reported %s, expected %s",
                reading.status.value,
                expected.value,
                extra={**reading_context(reading), "actor_id": actor.actor_id},
            )
        else:
            logger.info(
                "Reading is now %s",
                reading.status.value,
                extra={**reading_context(reading), "actor_id": actor.actor_id},
            )
        return reading

    def _refresh(self, reading_id: int | None) -> Reading | None:
        if reading_id is None:
            return None
        try:
            return self.gateway.fetch_reading(reading_id)
        except CoverageError as exc:
            logger.warning(
                "Could not refresh reading after conflict: %s",
                exc.message,
                extra={"reading_id": reading_id},
            )
            return None


def _entry_reading(entry: RosterEntry, context: dict[str, Any]) -> Reading | None:
    if entry.reading is None:
        return None
    try:
        return entry.reading.to_domain()
    except ValueError as exc:
        raise TransportError(
            f"Malformed reading for pipeline {entry.pipeline_id}: {exc}",
            pipeline_id=entry.pipeline_id,
            **context,
        ) from exc


def build_default_coverage_service() -> CoverageService:
    return CoverageService(gateway=build_default_client())
