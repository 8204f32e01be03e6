from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any, Dict, Optional, Type

import httpx

from app.schemas import (
    ActorRequest,
    ApproveRequest,
    ReadingModel,
    ReadingUpsertRequest,
    RejectRequest,
    SlotSnapshot,
)
from models.records import Reading, ReadingStatus
from services.errors import (
    ConflictError,
    CoverageError,
    ForbiddenError,
    NotFoundError,
    TransportError,
    ValidationError,
)
from settings import get_settings

logger = logging.getLogger(__name__)

CURRENT_STATUS_HEADER = "X-Current-Status"

_ERROR_BY_STATUS: Dict[int, Type[CoverageError]] = {
    400: ValidationError,
    401: ForbiddenError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


class SystemOfRecordClient:
    """HTTP client for the system of record.

    Every call is a single request: no retries and no caching. Non-2xx
    responses become ``CoverageError`` subclasses carrying the backend's
    detail text unchanged.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if client is None:
            settings = get_settings()
            client = httpx.Client(
                base_url=(base_url or settings.sor_base_url).rstrip("/"),
                timeout=timeout if timeout is not None else settings.sor_timeout,
            )
        self._client = client

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SystemOfRecordClient":
        return self

    def __exit__(self, *_exc_info: Any) -> None:
        self.close()

    def fetch_slot_snapshot(
        self, operational_date: date, slot_index: int, org_unit_id: int
    ) -> SlotSnapshot:
        context = {
            "operational_date": operational_date,
            "slot_index": slot_index,
            "org_unit_id": org_unit_id,
        }
        response = self._request(
            "GET",
            "/slot-coverage",
            context,
            params={
                "date": operational_date.isoformat(),
                "slotIndex": slot_index,
                "orgUnitId": org_unit_id,
            },
        )
        return self._decode(SlotSnapshot, response, context)

    def fetch_reading(self, reading_id: int) -> Reading:
        context = {"reading_id": reading_id}
        response = self._request("GET", f"/readings/{reading_id}", context)
        return self._decode_reading(response, context)

    def create_reading(self, payload: ReadingUpsertRequest) -> Reading:
        context = {
            "pipeline_id": payload.pipeline_id,
            "operational_date": payload.reading_date,
            "slot_index": payload.slot_index,
        }
        response = self._request("POST", "/readings", context, json=payload.to_wire())
        return self._decode_reading(response, context)

    def update_reading(self, reading_id: int, payload: ReadingUpsertRequest) -> Reading:
        context = {
            "reading_id": reading_id,
            "pipeline_id": payload.pipeline_id,
            "operational_date": payload.reading_date,
            "slot_index": payload.slot_index,
        }
        response = self._request("PUT", f"/readings/{reading_id}", context, json=payload.to_wire())
        return self._decode_reading(response, context)

    def submit_reading(self, reading_id: int, actor_id: int) -> Reading:
        body = ActorRequest(actor_id=actor_id).to_wire()
        return self._command(reading_id, "submit", body)

    def approve_reading(self, reading_id: int, actor_id: int, notes: Optional[str] = None) -> Reading:
        body = ApproveRequest(actor_id=actor_id, notes=notes).to_wire()
        return self._command(reading_id, "approve", body)

    def reject_reading(self, reading_id: int, actor_id: int, reason: str) -> Reading:
        body = RejectRequest(actor_id=actor_id, reason=reason).to_wire()
        return self._command(reading_id, "reject", body)

    def _command(self, reading_id: int, verb: str, body: Dict[str, Any]) -> Reading:
        context = {"reading_id": reading_id}
        response = self._request("POST", f"/readings/{reading_id}/{verb}", context, json=body)
        return self._decode_reading(response, context)

    def _request(
        self, method: str, url: str, context: Dict[str, Any], **kwargs: Any
    ) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise self._translate(exc.response, context) from exc
        except httpx.RequestError as exc:
            logger.warning(
                "System of record unreachable: %s %s", method, url, extra=dict(context)
            )
            raise TransportError(f"{method} {url} failed: {exc}", **context) from exc
        return response

    def _decode_reading(self, response: httpx.Response, context: Dict[str, Any]) -> Reading:
        model = self._decode(ReadingModel, response, context)
        try:
            return model.to_domain()
        except ValueError as exc:
            raise TransportError(f"Malformed reading in response: {exc}", **context) from exc

    @staticmethod
    def _decode(model: Type[Any], response: httpx.Response, context: Dict[str, Any]) -> Any:
        try:
            return model.model_validate(response.json())
        except ValueError as exc:
            raise TransportError(
                f"Malformed {model.__name__} in response: {exc}", **context
            ) from exc

    @staticmethod
    def _translate(response: httpx.Response, context: Dict[str, Any]) -> CoverageError:
        detail = _extract_detail(response)
        error_type = _ERROR_BY_STATUS.get(response.status_code)
        if error_type is None:
            return TransportError(
                f"System of record returned HTTP {response.status_code}: {detail}", **context
            )
        if error_type is ConflictError:
            return ConflictError(
                detail, current_status=_current_status(response), **context
            )
        return error_type(detail, **context)


def _extract_detail(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        for key in ("detail", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
            if value:
                return json.dumps(value)
    return json.dumps(data)


def _current_status(response: httpx.Response) -> Optional[ReadingStatus]:
    raw = response.headers.get(CURRENT_STATUS_HEADER)
    if not raw:
        return None
    try:
        return ReadingStatus(raw)
    except ValueError:
        return None


def build_default_client() -> SystemOfRecordClient:
    return SystemOfRecordClient()
