"""Actors and the capabilities they carry into the lifecycle."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Capability(str, Enum):
    operator = "operator"
    validator = "validator"


@dataclass(frozen=True, slots=True)
class CapabilitySet:
    """Opaque capability value resolved once from a role set.

    Build it with ``services.permissions.resolve_capabilities``; downstream
    code only asks questions of it and never inspects role names.
    """

    operator: bool = False
    validator: bool = False
    admin: bool = False

    def has(self, capability: Capability) -> bool:
        if capability is Capability.operator:
            return self.operator
        return self.validator

    @property
    def read_only(self) -> bool:
        return not (self.operator or self.validator)


READ_ONLY = CapabilitySet()


@dataclass(frozen=True, slots=True)
class Actor:
    actor_id: int
    capabilities: CapabilitySet = READ_ONLY
