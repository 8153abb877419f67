"""
Location Value Object

Architectural Intent:
- Immutable value object for a place nodes, images and sizes can live in
- The parent is referenced by id only; navigation goes through a
  LocationRegistry, so no live object graph (and no reference cycles) exist
- Scope is fixed at construction and limited to PROVIDER/REGION/ZONE/HOST
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from stratus.domain.errors import UnsupportedScopeError


class LocationScope(Enum):
    PROVIDER = "PROVIDER"
    REGION = "REGION"
    ZONE = "ZONE"
    HOST = "HOST"

    @classmethod
    def parse(cls, value: "str | LocationScope") -> "LocationScope":
        if isinstance(value, LocationScope):
            return value
        try:
            return cls[str(value).upper()]
        except KeyError:
            raise UnsupportedScopeError(f"Unsupported location scope: {value!r}") from None


@dataclass(frozen=True)
class Location:
    """
    Value Object representing a provider, region, zone or host.
    """
    id: str
    scope: LocationScope
    description: str = ""
    parent_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Location id cannot be empty")
        object.__setattr__(self, "scope", LocationScope.parse(self.scope))
        if self.parent_id == self.id:
            raise ValueError(f"Location {self.id!r} cannot be its own parent")
        if self.scope is LocationScope.PROVIDER and self.parent_id is not None:
            raise ValueError(f"PROVIDER location {self.id!r} cannot have a parent")

    def __str__(self) -> str:
        return f"{self.scope.value.lower()}:{self.id}"
