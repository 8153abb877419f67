"""
Location Hierarchy Service

Architectural Intent:
- Owns the set of locations a provider exposes and resolves parent ids by
  lookup, never by object pointers
- Validates PROVIDER -> REGION -> ZONE -> HOST ancestry, allowing providers
  without a REGION tier (ZONE directly under PROVIDER, HOST one level up)
- Answers the "same or child" question used to check where nodes landed

Design Decisions:
- The registry is built once per catalog snapshot and is immutable
- Parent chains are walked with a visited set so a malformed catalog with a
  cycle raises instead of looping
"""

from __future__ import annotations
from typing import Iterable, Iterator, Optional

from stratus.domain.errors import InvalidLocationHierarchyError
from stratus.domain.value_objects.location import Location, LocationScope


class LocationRegistry:
    """Immutable id -> Location index with hierarchy navigation."""

    def __init__(self, locations: Iterable[Location]) -> None:
        self._locations: dict[str, Location] = {}
        for location in locations:
            existing = self._locations.get(location.id)
            if existing is not None and existing != location:
                raise InvalidLocationHierarchyError(
                    f"Conflicting definitions for location {location.id!r}"
                )
            self._locations[location.id] = location

    def __iter__(self) -> Iterator[Location]:
        return iter(self._locations.values())

    def __len__(self) -> int:
        return len(self._locations)

    def __contains__(self, location_id: object) -> bool:
        return location_id in self._locations

    def get(self, location_id: str) -> Location:
        try:
            return self._locations[location_id]
        except KeyError:
            raise InvalidLocationHierarchyError(
                f"Unknown location {location_id!r}"
            ) from None

    def parent_of(self, location: Location) -> Optional[Location]:
        """Return the owning location, or None at the top of the hierarchy."""
        if location.parent_id is None:
            return None
        parent = self.get(location.parent_id)
        if parent == location:
            raise InvalidLocationHierarchyError(
                f"Location {location.id!r} is its own parent"
            )
        return parent

    def ancestors(self, location: Location) -> list[Location]:
        """Parents of the location, nearest first."""
        chain: list[Location] = []
        visited = {location.id}
        current = self.parent_of(location)
        while current is not None:
            if current.id in visited:
                raise InvalidLocationHierarchyError(
                    f"Cycle in parent chain of location {location.id!r}"
                )
            visited.add(current.id)
            chain.append(current)
            current = self.parent_of(current)
        return chain

    def lineage_ids(self, location: Location) -> list[str]:
        """The location id followed by every ancestor id."""
        return [location.id] + [a.id for a in self.ancestors(location)]

    def same_or_child(self, candidate: Location, scope: Location) -> bool:
        """True if candidate is scope itself or lies anywhere below it."""
        if candidate == scope:
            return True
        return any(ancestor == scope for ancestor in self.ancestors(candidate))

    def provider_of(self, location: Location) -> Location:
        """
        Resolve the PROVIDER location that owns the given location.

        The walk depends on scope:
        - PROVIDER: the location itself, which must have no parent.
        - REGION: the parent.
        - ZONE: the grandparent, or the parent when the zone hangs directly
          off the provider.
        - HOST: the great-grandparent, or the grandparent when the provider
          has no region tier.

        Raises InvalidLocationHierarchyError if the resolved location is not
        a parent-less PROVIDER.
        """
        scope = location.scope
        if scope is LocationScope.PROVIDER:
            provider: Optional[Location] = location
        elif scope is LocationScope.REGION:
            provider = self._parent_required(location)
        elif scope is LocationScope.ZONE:
            parent = self._parent_required(location)
            provider = self.parent_of(parent)
            if provider is None:
                provider = parent
        elif scope is LocationScope.HOST:
            parent = self._parent_required(location)
            grandparent = self._parent_required(parent)
            provider = self.parent_of(grandparent)
            if provider is None:
                provider = grandparent
        else:  # pragma: no cover - LocationScope.parse rejects anything else
            raise InvalidLocationHierarchyError(f"Unsupported scope {scope!r}")

        self._assert_provider(location, provider)
        return provider

    def validate(self) -> None:
        """Check every location resolves to a provider; raises on the first failure."""
        for location in self._locations.values():
            self.ancestors(location)
            self.provider_of(location)

    def _parent_required(self, location: Location) -> Location:
        parent = self.parent_of(location)
        if parent is None:
            raise InvalidLocationHierarchyError(
                f"{location.scope.value} location {location.id!r} has no parent"
            )
        return parent

    @staticmethod
    def _assert_provider(location: Location, provider: Optional[Location]) -> None:
        if provider is None or provider.scope is not LocationScope.PROVIDER:
            raise InvalidLocationHierarchyError(
                f"Location {location.id!r} does not resolve to a PROVIDER "
                f"(got {provider})"
            )
        if provider.parent_id is not None:
            raise InvalidLocationHierarchyError(
                f"PROVIDER location {provider.id!r} must not have a parent"
            )
