"""Boundary checks on reading payloads, applied before anything leaves the process."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from models.records import Measurements
from services.errors import ValidationError

NOTES_MAX_LENGTH = 500
REJECTION_REASON_MIN_LENGTH = 5


@dataclass(frozen=True)
class MeasurementRange:
    field: str
    label: str
    unit: str
    minimum: float
    maximum: float | None = None
    required: bool = True

    def check(self, value: float | None) -> str | None:
        if value is None:
            return None
        if not math.isfinite(value):
            return f"{self.label} must be a finite number"
        if value < self.minimum:
            return f"{self.label} must be at least {self.minimum:g} {self.unit}"
        if self.maximum is not None and value > self.maximum:
            return f"{self.label} must not exceed {self.maximum:g} {self.unit}"
        return None


MEASUREMENT_RANGES: tuple[MeasurementRange, ...] = (
    MeasurementRange("pressure", "Pressure", "bar", 0.0, 500.0),
    MeasurementRange("temperature", "Temperature", "°C", -50.0, 200.0),
    MeasurementRange("flow_rate", "Flow rate", "m³/h", 0.0),
    MeasurementRange("contained_volume", "Contained volume", "m³", 0.0, required=False),
)


def measurement_errors(measurements: Measurements, *, require_complete: bool) -> list[str]:
    """Every range violation, plus missing required fields when ``require_complete``."""
    errors: list[str] = []
    for rule in MEASUREMENT_RANGES:
        value = getattr(measurements, rule.field)
        if value is None:
            if require_complete and rule.required:
                errors.append(f"{rule.label} is required")
            continue
        problem = rule.check(value)
        if problem:
            errors.append(problem)
    return errors


def validate_measurements(
    measurements: Measurements, *, require_complete: bool, **context: Any
) -> None:
    errors = measurement_errors(measurements, require_complete=require_complete)
    if errors:
        raise ValidationError("; ".join(errors), **context)


def validate_notes(notes: str | None, **context: Any) -> None:
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(
            f"Notes must not exceed {NOTES_MAX_LENGTH} characters", **context
        )


def normalize_rejection_reason(reason: str | None, **context: Any) -> str:
    """Strip the reason and enforce its minimum length; returns the stripped text."""
    stripped = (reason or "").strip()
    if not stripped:
        raise ValidationError("Rejection reason is required", **context)
    if len(stripped) < REJECTION_REASON_MIN_LENGTH:
        raise ValidationError(
            f"Rejection reason must be at least {REJECTION_REASON_MIN_LENGTH} characters",
            **context,
        )
    return stripped
