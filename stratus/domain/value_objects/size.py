from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Optional


@dataclass(frozen=True)
class Size:
    """
    Value Object representing a hardware profile (cores, ram in MB, disk in GB).

    Sizes are totally ordered by (cores, ram, disk, id); the id makes the
    order deterministic when two profiles share the same hardware figures.
    An empty location_ids means the size is offered everywhere.
    """
    id: str
    cores: float
    ram: int
    disk: int
    supported_architectures: frozenset[str] = field(
        default_factory=lambda: frozenset({"x86_64"})
    )
    location_ids: frozenset[str] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Size id cannot be empty")
        if self.cores <= 0 or self.ram <= 0 or self.disk <= 0:
            raise ValueError(f"Size {self.id!r} must have positive cores, ram and disk")
        object.__setattr__(
            self, "supported_architectures", frozenset(self.supported_architectures)
        )
        object.__setattr__(self, "location_ids", frozenset(self.location_ids))

    @property
    def sort_key(self) -> tuple:
        return (self.cores, self.ram, self.disk, self.id)

    def supports(self, architecture: Optional[str]) -> bool:
        return architecture is None or architecture in self.supported_architectures

    def offered_in(self, location_ids: Iterable[str]) -> bool:
        """True if offered everywhere or in any of the given location ids."""
        return not self.location_ids or not self.location_ids.isdisjoint(location_ids)
