"""HTTP route definitions for the reference system of record."""

from __future__ import annotations

from datetime import date
from typing import Dict, NoReturn, Type

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.schemas import (
    ActorRequest,
    ApproveRequest,
    ReadingModel,
    ReadingUpsertRequest,
    RejectRequest,
    SlotSnapshot,
)
from services.errors import (
    ConflictError,
    CoverageError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from services.system_of_record import SystemOfRecordService, build_default_system_of_record

CURRENT_STATUS_HEADER = "X-Current-Status"

_STATUS_BY_ERROR: Dict[Type[CoverageError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_409_CONFLICT,
}

router = APIRouter()


def get_system_of_record() -> SystemOfRecordService:
    return build_default_system_of_record()


def _raise_http(exc: CoverageError) -> NoReturn:
    headers = None
    if isinstance(exc, ConflictError) and exc.current_status is not None:
        headers = {CURRENT_STATUS_HEADER: exc.current_status.value}
    raise HTTPException(
        status_code=_STATUS_BY_ERROR.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=exc.message,
        headers=headers,
    ) from exc


@router.get(
    "/slot-coverage",
    response_model=SlotSnapshot,
    summary="Pipeline roster of an organizational unit with each pipeline's reading for a date and slot.",
)
async def get_slot_snapshot(
    operational_date: date = Query(..., alias="date"),
    slot_index: int = Query(..., alias="slotIndex", ge=1, le=12),
    org_unit_id: int = Query(..., alias="orgUnitId"),
    records: SystemOfRecordService = Depends(get_system_of_record),
) -> SlotSnapshot:
    try:
        return records.slot_snapshot(operational_date, slot_index, org_unit_id)
    except CoverageError as exc:
        _raise_http(exc)


@router.get("/readings/{reading_id}", response_model=ReadingModel, summary="Fetch one reading.")
async def get_reading(
    reading_id: int,
    records: SystemOfRecordService = Depends(get_system_of_record),
) -> ReadingModel:
    try:
        return records.get_reading(reading_id)
    except CoverageError as exc:
        _raise_http(exc)


@router.post(
    "/readings",
    status_code=status.HTTP_201_CREATED,
    response_model=ReadingModel,
    summary="Create the reading of a pipeline for a date and slot, as DRAFT or SUBMITTED.",
)
async def create_reading(
    payload: ReadingUpsertRequest,
    records: SystemOfRecordService = Depends(get_system_of_record),
) -> ReadingModel:
    try:
        return records.create_reading(payload)
    except CoverageError as exc:
        _raise_http(exc)


@router.put(
    "/readings/{reading_id}",
    response_model=ReadingModel,
    summary="Update a DRAFT or REJECTED reading, optionally submitting it.",
)
async def update_reading(
    reading_id: int,
    payload: ReadingUpsertRequest,
    records: SystemOfRecordService = Depends(get_system_of_record),
) -> ReadingModel:
    try:
        return records.update_reading(reading_id, payload)
    except CoverageError as exc:
        _raise_http(exc)


@router.post("/readings/{reading_id}/submit", response_model=ReadingModel, summary="DRAFT to SUBMITTED.")
async def submit_reading(
    reading_id: int,
    payload: ActorRequest,
    records: SystemOfRecordService = Depends(get_system_of_record),
) -> ReadingModel:
    try:
        return records.submit_reading(reading_id, payload)
    except CoverageError as exc:
        _raise_http(exc)


@router.post("/readings/{reading_id}/approve", response_model=ReadingModel, summary="SUBMITTED to APPROVED.")
async def approve_reading(
    reading_id: int,
    payload: ApproveRequest,
    records: SystemOfRecordService = Depends(get_system_of_record),
) -> ReadingModel:
    try:
        return records.approve_reading(reading_id, payload)
    except CoverageError as exc:
        _raise_http(exc)


@router.post("/readings/{reading_id}/reject", response_model=ReadingModel, summary="SUBMITTED to REJECTED.")
async def reject_reading(
    reading_id: int,
    payload: RejectRequest,
    records: SystemOfRecordService = Depends(get_system_of_record),
) -> ReadingModel:
    try:
        return records.reject_reading(reading_id, payload)
    except CoverageError as exc:
        _raise_http(exc)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
