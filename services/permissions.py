"""Resolve role names into capabilities, and capabilities plus state into allowed actions."""

from __future__ import annotations

from typing import Iterable

from models.actors import Actor, CapabilitySet
from models.coverage import Permissions
from models.records import ReadingStatus

_OPERATOR = "operator"
_VALIDATOR = "validator"
_ADMIN = "admin"

_ROLE_ALIASES: dict[str, str] = {
    "operator": _OPERATOR,
    "monitoring_operator": _OPERATOR,
    "validator": _VALIDATOR,
    "monitoring_validator": _VALIDATOR,
    "admin": _ADMIN,
    "monitoring_admin": _ADMIN,
}

EDITABLE_STATES: frozenset[ReadingStatus] = frozenset(
    {ReadingStatus.NOT_RECORDED, ReadingStatus.DRAFT, ReadingStatus.REJECTED}
)


def resolve_capabilities(roles: Iterable[str]) -> CapabilitySet:
    """Collapse a role-name collection into a ``CapabilitySet``. Unknown names are ignored."""
    resolved = {
        _ROLE_ALIASES[name.strip().lower()]
        for name in roles
        if name and name.strip().lower() in _ROLE_ALIASES
    }
    admin = _ADMIN in resolved
    return CapabilitySet(
        operator=admin or _OPERATOR in resolved,
        validator=admin or _VALIDATOR in resolved,
        admin=admin,
    )


def actor_from_roles(actor_id: int, roles: Iterable[str]) -> Actor:
    return Actor(actor_id=actor_id, capabilities=resolve_capabilities(roles))


def permissions_for(
    capabilities: CapabilitySet | Iterable[str], status: ReadingStatus
) -> Permissions:
    """Allowed actions for a capability set on a reading in ``status``.

    Slot timing plays no part here; any time-based locking is layered on by
    the caller.
    """
    if not isinstance(capabilities, CapabilitySet):
        capabilities = resolve_capabilities(capabilities)
    status = ReadingStatus(status)
    return Permissions(
        can_edit=capabilities.operator and status in EDITABLE_STATES,
        can_submit=capabilities.operator and status is ReadingStatus.DRAFT,
        can_validate=capabilities.validator and status is ReadingStatus.SUBMITTED,
    )
