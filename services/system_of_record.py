"""Reference system of record: authoritative reading state behind the HTTP contract.

Used for local development and integration tests. It enforces the same
lifecycle and authorization rules as the client core, stamps audit
timestamps in UTC, and owns every write.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone
from functools import lru_cache

from app.schemas import (
    ActorRequest,
    ApproveRequest,
    ReadingModel,
    ReadingUpsertRequest,
    RejectRequest,
    RosterEntry,
    SlotSnapshot,
)
from datastore.record_store import RecordStore, build_default_store
from models.actors import Actor
from models.records import ReadingStatus
from services.errors import ConflictError, NotFoundError, ValidationError
from services.lifecycle import Action, ReadingLifecycle, TransitionRequest, reading_context
from services.permissions import actor_from_roles
from services.validation import normalize_rejection_reason

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _append_note(existing: str | None, note: str | None) -> str | None:
    if not note:
        return existing
    if not existing:
        return note
    return f"{existing}\n{note}"


class SystemOfRecordService:
    def __init__(self, store: RecordStore, lifecycle: ReadingLifecycle | None = None) -> None:
        self.store = store
        self.lifecycle = lifecycle or ReadingLifecycle()

    def slot_snapshot(self, operational_date: date, slot_index: int, org_unit_id: int) -> SlotSnapshot:
        roster = self.store.get_roster(org_unit_id)
        if roster is None:
            raise NotFoundError(
                f"Organizational unit {org_unit_id} not found",
                org_unit_id=org_unit_id,
                operational_date=operational_date,
                slot_index=slot_index,
            )
        entries = [
            RosterEntry(
                pipeline_id=pipeline.pipeline_id,
                code=pipeline.code,
                name=pipeline.name,
                reading=self.store.find_reading(pipeline.pipeline_id, operational_date, slot_index),
            )
            for pipeline in roster
        ]
        return SlotSnapshot(
            operational_date=operational_date,
            slot_index=slot_index,
            org_unit_id=org_unit_id,
            pipelines=entries,
        )

    def get_reading(self, reading_id: int) -> ReadingModel:
        reading = self.store.get_reading(reading_id)
        if reading is None:
            raise NotFoundError(f"Reading {reading_id} not found", reading_id=reading_id)
        return reading

    def create_reading(self, request: ReadingUpsertRequest) -> ReadingModel:
        context = {
            "pipeline_id": request.pipeline_id,
            "operational_date": request.reading_date,
            "slot_index": request.slot_index,
        }
        actor = self._resolve_actor(request.actor_id, **context)
        if not self.store.has_pipeline(request.pipeline_id):
            raise NotFoundError(f"Pipeline {request.pipeline_id} not found", **context)

        existing = self.store.find_reading(
            request.pipeline_id, request.reading_date, request.slot_index
        )
        if existing is not None:
            raise ConflictError(
                f"A reading already exists for pipeline {request.pipeline_id} "
                f"on {request.reading_date.isoformat()} slot {request.slot_index}",
                current_status=existing.status,
                reading_id=existing.id,
                **context,
            )

        status = self._apply_upsert(ReadingStatus.NOT_RECORDED, Action.create, actor, request, None, context)
        draft = ReadingModel(
            id=1,
            pipeline_id=request.pipeline_id,
            reading_date=request.reading_date,
            slot_index=request.slot_index,
            status=status,
            pressure=request.pressure,
            temperature=request.temperature,
            flow_rate=request.flow_rate,
            contained_volume=request.contained_volume,
            notes=request.notes,
            recorded_by=actor.actor_id,
            recorded_at=_utcnow(),
        )
        stored = self.store.insert_reading(draft)
        if stored is None:
            raise ConflictError(
                f"A reading already exists for pipeline {request.pipeline_id} "
                f"on {request.reading_date.isoformat()} slot {request.slot_index}",
                **context,
            )
        logger.info(
            "Reading created",
            extra={"reading_id": stored.id, "status": stored.status, "actor_id": actor.actor_id, **context},
        )
        return stored

    def update_reading(self, reading_id: int, request: ReadingUpsertRequest) -> ReadingModel:
        current = self.get_reading(reading_id)
        context = reading_context(current.to_domain())
        if (request.pipeline_id, request.reading_date, request.slot_index) != (
            current.pipeline_id,
            current.reading_date,
            current.slot_index,
        ):
            raise ValidationError(
                "Pipeline, date and slot of an existing reading cannot change", **context
            )
        actor = self._resolve_actor(request.actor_id, **context)
        status = self._apply_upsert(current.status, Action.edit, actor, request, current.recorded_by, context)
        updated = current.model_copy(
            update={
                "status": status,
                "pressure": request.pressure,
                "temperature": request.temperature,
                "flow_rate": request.flow_rate,
                "contained_volume": request.contained_volume,
                "notes": request.notes,
                "recorded_by": actor.actor_id,
                "recorded_at": _utcnow(),
                "validated_by": None,
                "validated_at": None,
                "rejection_reason": None,
            }
        )
        self.store.replace_reading(updated)
        logger.info(
            "Reading updated",
            extra={"status": updated.status, "actor_id": actor.actor_id, **context},
        )
        return updated

    def submit_reading(self, reading_id: int, request: ActorRequest) -> ReadingModel:
        current = self.get_reading(reading_id)
        actor = self._resolve_actor(request.actor_id, reading_id=reading_id)
        status = self.lifecycle.check_reading(current.to_domain(), Action.submit, actor)
        return self._store_transition(current.model_copy(update={"status": status}), actor, "submitted")

    def approve_reading(self, reading_id: int, request: ApproveRequest) -> ReadingModel:
        current = self.get_reading(reading_id)
        actor = self._resolve_actor(request.actor_id, reading_id=reading_id)
        status = self.lifecycle.check_reading(
            current.to_domain(), Action.approve, actor, notes=request.notes
        )
        updated = current.model_copy(
            update={
                "status": status,
                "notes": _append_note(current.notes, request.notes),
                "validated_by": actor.actor_id,
                "validated_at": _utcnow(),
            }
        )
        return self._store_transition(updated, actor, "approved")

    def reject_reading(self, reading_id: int, request: RejectRequest) -> ReadingModel:
        current = self.get_reading(reading_id)
        actor = self._resolve_actor(request.actor_id, reading_id=reading_id)
        status = self.lifecycle.check_reading(
            current.to_domain(), Action.reject, actor, reason=request.reason
        )
        updated = current.model_copy(
            update={
                "status": status,
                "rejection_reason": normalize_rejection_reason(request.reason, reading_id=reading_id),
                "validated_by": actor.actor_id,
                "validated_at": _utcnow(),
            }
        )
        return self._store_transition(updated, actor, "rejected")

    def _apply_upsert(
        self,
        status: ReadingStatus,
        action: Action,
        actor: Actor,
        request: ReadingUpsertRequest,
        owner_id: int | None,
        context: dict,
    ) -> ReadingStatus:
        measurements = request.measurements()
        target = self.lifecycle.transition(
            status,
            action,
            actor,
            TransitionRequest(measurements=measurements, notes=request.notes, owner_id=owner_id),
            **context,
        )
        if request.submit_immediately:
            target = self.lifecycle.transition(
                target,
                Action.submit,
                actor,
                TransitionRequest(measurements=measurements),
                **context,
            )
        return target

    def _store_transition(self, updated: ReadingModel, actor: Actor, verb: str) -> ReadingModel:
        self.store.replace_reading(updated)
        logger.info(
            "Reading %s",
            verb,
            extra={
                "reading_id": updated.id,
                "status": updated.status,
                "actor_id": actor.actor_id,
                "slot_index": updated.slot_index,
            },
        )
        return updated

    def _resolve_actor(self, actor_id: int, **context) -> Actor:
        record = self.store.get_actor(actor_id)
        if record is None:
            raise NotFoundError(f"Actor {actor_id} not found", **context)
        return actor_from_roles(record.actor_id, record.roles)


@lru_cache
def build_default_system_of_record() -> SystemOfRecordService:
    return SystemOfRecordService(store=build_default_store())
