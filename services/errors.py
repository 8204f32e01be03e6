"""Error taxonomy surfaced by the coverage core."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from models.records import Reading, ReadingStatus


class CoverageError(Exception):
    """Base class. ``message`` is kept verbatim; context keys identify the target."""

    def __init__(
        self,
        message: str,
        *,
        reading_id: int | None = None,
        pipeline_id: int | None = None,
        operational_date: date | None = None,
        slot_index: int | None = None,
        org_unit_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reading_id = reading_id
        self.pipeline_id = pipeline_id
        self.operational_date = operational_date
        self.slot_index = slot_index
        self.org_unit_id = org_unit_id

    @property
    def context(self) -> dict[str, Any]:
        candidates = {
            "reading_id": self.reading_id,
            "pipeline_id": self.pipeline_id,
            "operational_date": (
                self.operational_date.isoformat() if self.operational_date else None
            ),
            "slot_index": self.slot_index,
            "org_unit_id": self.org_unit_id,
        }
        return {key: value for key, value in candidates.items() if value is not None}

    def __str__(self) -> str:
        context = self.context
        if not context:
            return self.message
        rendered = ", ".join(f"{key}={value}" for key, value in context.items())
        return f"{self.message} ({rendered})"


class ValidationError(CoverageError):
    """Malformed input, rejected before any network call."""


class ConflictError(CoverageError):
    """A lifecycle transition that is not legal from the reading's current state."""

    def __init__(
        self,
        message: str,
        *,
        current_status: ReadingStatus | None = None,
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
        self.current_status = current_status
        self.current: Reading | None = None


class ForbiddenError(CoverageError):
    """The actor lacks the capability, or ownership, a transition requires."""


class NotFoundError(CoverageError):
    """Pipeline, reading, organizational unit or actor could not be resolved."""


class TransportError(CoverageError):
    """Network or infrastructure failure with no domain meaning."""
