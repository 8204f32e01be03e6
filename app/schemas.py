"""Pydantic schemas for the system of record's HTTP contract (camelCase on the wire)."""

from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models.records import Measurements, Pipeline, Reading, ReadingStatus
from models.slots import SLOTS_PER_DAY


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ReadingModel(WireModel):
    """A persisted reading as exchanged with the system of record."""

    id: int = Field(..., ge=1)
    pipeline_id: int
    reading_date: date
    slot_index: int = Field(..., ge=1, le=SLOTS_PER_DAY)
    status: ReadingStatus
    pressure: Optional[float] = None
    temperature: Optional[float] = None
    flow_rate: Optional[float] = None
    contained_volume: Optional[float] = None
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    recorded_by: Optional[int] = None
    recorded_at: Optional[datetime] = None
    validated_by: Optional[int] = None
    validated_at: Optional[datetime] = None

    def to_domain(self) -> Reading:
        return Reading(
            reading_id=self.id,
            pipeline_id=self.pipeline_id,
            operational_date=self.reading_date,
            slot_index=self.slot_index,
            status=self.status,
            measurements=Measurements(
                pressure=self.pressure,
                temperature=self.temperature,
                flow_rate=self.flow_rate,
                contained_volume=self.contained_volume,
            ),
            notes=self.notes,
            rejection_reason=self.rejection_reason,
            recorded_by=self.recorded_by,
            recorded_at=self.recorded_at,
            validated_by=self.validated_by,
            validated_at=self.validated_at,
        )


class PipelineModel(WireModel):
    pipeline_id: int
    code: str
    name: str = ""

    def to_domain(self) -> Pipeline:
        return Pipeline(pipeline_id=self.pipeline_id, code=self.code, name=self.name)


class RosterEntry(PipelineModel):
    """One roster pipeline and its reading for the queried date and slot, if any."""

    reading: Optional[ReadingModel] = None


class SlotSnapshot(WireModel):
    operational_date: date = Field(..., alias="date")
    slot_index: int = Field(..., ge=1, le=SLOTS_PER_DAY)
    org_unit_id: int
    pipelines: List[RosterEntry] = Field(default_factory=list)


class ActorModel(WireModel):
    actor_id: int
    roles: List[str] = Field(default_factory=list)


class ReadingUpsertRequest(WireModel):
    """Create or update payload; ``submit_immediately`` selects SUBMITTED over DRAFT."""

    pipeline_id: int
    reading_date: date
    slot_index: int = Field(..., ge=1, le=SLOTS_PER_DAY)
    actor_id: int
    pressure: Optional[float] = None
    temperature: Optional[float] = None
    flow_rate: Optional[float] = None
    contained_volume: Optional[float] = None
    notes: Optional[str] = None
    submit_immediately: bool = False

    def measurements(self) -> Measurements:
        return Measurements(
            pressure=self.pressure,
            temperature=self.temperature,
            flow_rate=self.flow_rate,
            contained_volume=self.contained_volume,
        )


class ActorRequest(WireModel):
    actor_id: int


class ApproveRequest(ActorRequest):
    notes: Optional[str] = None


class RejectRequest(ActorRequest):
    reason: str
