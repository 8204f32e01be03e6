"""Finite state machine governing which actions are legal on a reading."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from models.actors import Actor, Capability
from models.records import Measurements, Reading, ReadingStatus
from services.errors import ConflictError, ForbiddenError
from services.validation import (
    normalize_rejection_reason,
    validate_measurements,
    validate_notes,
)


class Action(str, Enum):
    create = "create"
    edit = "edit"
    submit = "submit"
    approve = "approve"
    reject = "reject"


@dataclass(frozen=True)
class Transition:
    source: ReadingStatus
    action: Action
    target: ReadingStatus
    capability: Capability


_TRANSITION_TABLE: tuple[Transition, ...] = (
    Transition(ReadingStatus.NOT_RECORDED, Action.create, ReadingStatus.DRAFT, Capability.operator),
    Transition(ReadingStatus.DRAFT, Action.edit, ReadingStatus.DRAFT, Capability.operator),
    Transition(ReadingStatus.DRAFT, Action.submit, ReadingStatus.SUBMITTED, Capability.operator),
    Transition(ReadingStatus.SUBMITTED, Action.approve, ReadingStatus.APPROVED, Capability.validator),
    Transition(ReadingStatus.SUBMITTED, Action.reject, ReadingStatus.REJECTED, Capability.validator),
    Transition(ReadingStatus.REJECTED, Action.edit, ReadingStatus.DRAFT, Capability.operator),
)

TRANSITIONS: dict[tuple[ReadingStatus, Action], Transition] = {
    (transition.source, transition.action): transition for transition in _TRANSITION_TABLE
}


@dataclass(frozen=True)
class TransitionRequest:
    """Payload accompanying an action, checked by the action's guard."""

    measurements: Measurements | None = None
    notes: str | None = None
    reason: str | None = None
    owner_id: int | None = None


class ReadingLifecycle:
    """Checks transitions; never mutates a reading itself.

    Guards run in a fixed order: malformed rejection reason, illegal
    source state, missing capability, draft ownership, then the measurement
    checks of the target state.
    """

    def allowed_actions(self, status: ReadingStatus) -> list[Action]:
        status = ReadingStatus(status)
        return [action for (source, action) in TRANSITIONS if source is status]

    def target(self, status: ReadingStatus, action: Action, **context: Any) -> ReadingStatus:
        status = ReadingStatus(status)
        transition = TRANSITIONS.get((status, Action(action)))
        if transition is None:
            raise ConflictError(self._conflict_message(status, action), current_status=status, **context)
        return transition.target

    def transition(
        self,
        status: ReadingStatus,
        action: Action,
        actor: Actor,
        request: TransitionRequest | None = None,
        **context: Any,
    ) -> ReadingStatus:
        status = ReadingStatus(status)
        request = request or TransitionRequest()
        action = Action(action)
        if action is Action.reject:
            normalize_rejection_reason(request.reason, **context)

        target = self.target(status, action, **context)
        transition = TRANSITIONS[(status, action)]

        if not actor.capabilities.has(transition.capability):
            raise ForbiddenError(
                f"Actor {actor.actor_id} lacks the {transition.capability.value} "
                f"capability required to {action.value} a reading",
                **context,
            )

        if (
            status is ReadingStatus.DRAFT
            and action is Action.edit
            and request.owner_id is not None
            and request.owner_id != actor.actor_id
            and not actor.capabilities.admin
        ):
            raise ForbiddenError(
                f"Actor {actor.actor_id} cannot edit a draft recorded by actor {request.owner_id}",
                **context,
            )

        if action in (Action.create, Action.edit):
            validate_notes(request.notes, **context)
            if request.measurements is not None:
                validate_measurements(request.measurements, require_complete=False, **context)
        elif action is Action.submit:
            validate_measurements(
                request.measurements or Measurements(), require_complete=True, **context
            )
        elif action is Action.approve:
            validate_notes(request.notes, **context)

        return target

    def check_reading(
        self,
        reading: Reading,
        action: Action,
        actor: Actor,
        *,
        measurements: Measurements | None = None,
        notes: str | None = None,
        reason: str | None = None,
    ) -> ReadingStatus:
        """Run ``transition`` against an existing reading, using its own data as defaults."""
        request = TransitionRequest(
            measurements=measurements if measurements is not None else reading.measurements,
            notes=notes,
            reason=reason,
            owner_id=reading.recorded_by,
        )
        return self.transition(reading.status, action, actor, request, **reading_context(reading))

    @staticmethod
    def _conflict_message(status: ReadingStatus, action: Action) -> str:
        action_name = Action(action).value
        if status.is_terminal:
            return f"Cannot {action_name} reading: it is already {status.value} and final"
        return f"Cannot {action_name} a reading in status {status.value}"


def reading_context(reading: Reading) -> dict[str, Any]:
    return {
        "reading_id": reading.reading_id,
        "pipeline_id": reading.pipeline_id,
        "operational_date": reading.operational_date,
        "slot_index": reading.slot_index,
    }
