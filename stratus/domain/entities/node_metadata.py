"""
Node Metadata Module

Architectural Intent:
- NodeMetadata is the caller-visible record of a provisioned node
- id, tag, image and location never change after creation; state, addresses
  and credentials are refreshed from the provider
- State changes go through transition_to(), which enforces the lifecycle
  state machine and returns a new instance

Lifecycle:
    PENDING -> RUNNING -> TERMINATED
    PENDING | RUNNING -> ERROR  (unrecoverable provider failure)
    RUNNING -> PENDING          (reboot, transient)
    any non-terminal -> UNKNOWN (provider state could not be classified)
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, Mapping, Optional

from stratus.domain.errors import InvalidTransitionError
from stratus.domain.value_objects.credentials import Credentials
from stratus.domain.value_objects.image import Image
from stratus.domain.value_objects.location import Location


class NodeState(Enum):
    PENDING = auto()
    RUNNING = auto()
    TERMINATED = auto()
    ERROR = auto()
    UNKNOWN = auto()


_ALLOWED_TRANSITIONS: dict[NodeState, frozenset[NodeState]] = {
    NodeState.PENDING: frozenset(
        {NodeState.RUNNING, NodeState.ERROR, NodeState.TERMINATED, NodeState.UNKNOWN}
    ),
    NodeState.RUNNING: frozenset(
        {NodeState.PENDING, NodeState.ERROR, NodeState.TERMINATED, NodeState.UNKNOWN}
    ),
    NodeState.UNKNOWN: frozenset(
        {NodeState.PENDING, NodeState.RUNNING, NodeState.ERROR, NodeState.TERMINATED}
    ),
    NodeState.ERROR: frozenset({NodeState.TERMINATED, NodeState.UNKNOWN}),
    NodeState.TERMINATED: frozenset(),
}


def can_transition(current: NodeState, target: NodeState) -> bool:
    return current == target or target in _ALLOWED_TRANSITIONS[current]


@dataclass(frozen=True)
class NodeMetadata:
    id: str
    tag: str
    state: NodeState
    image: Optional[Image]
    location: Location
    public_addresses: frozenset[str] = field(default_factory=frozenset)
    private_addresses: frozenset[str] = field(default_factory=frozenset)
    credentials: Optional[Credentials] = None
    name: str = ""
    extra: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Node id cannot be empty")
        if not self.tag:
            raise ValueError(f"Node {self.id} must carry a tag")
        object.__setattr__(self, "public_addresses", frozenset(self.public_addresses))
        object.__setattr__(self, "private_addresses", frozenset(self.private_addresses))
        if isinstance(self.extra, Mapping):
            object.__setattr__(self, "extra", tuple(sorted(self.extra.items())))
        if self.state is NodeState.RUNNING and not self.addresses:
            raise ValueError(f"RUNNING node {self.id} has no public or private address")

    def __lt__(self, other: "NodeMetadata") -> bool:
        if not isinstance(other, NodeMetadata):
            return NotImplemented
        return self.id < other.id

    @property
    def addresses(self) -> frozenset[str]:
        return self.public_addresses | self.private_addresses

    @property
    def reachable_address(self) -> Optional[str]:
        """Lowest public address, falling back to the lowest private one."""
        if self.public_addresses:
            return min(self.public_addresses)
        if self.private_addresses:
            return min(self.private_addresses)
        return None

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self.extra)

    def transition_to(self, state: NodeState) -> "NodeMetadata":
        if not can_transition(self.state, state):
            raise InvalidTransitionError(
                f"Node {self.id} cannot move from {self.state.name} to {state.name}"
            )
        return replace(self, state=state)

    def refreshed_from(self, latest: "NodeMetadata") -> "NodeMetadata":
        """
        Merge a fresh provider read into this record.

        Identity (id, tag, image, location) must match; state must follow a
        legal transition. Known credentials survive when the provider read
        does not carry any.
        """
        if latest.id != self.id:
            raise ValueError(f"Refresh for {latest.id} applied to node {self.id}")
        for attr in ("tag", "image", "location"):
            if getattr(latest, attr) != getattr(self, attr):
                raise ValueError(f"Node {self.id} changed {attr} during refresh")
        if not can_transition(self.state, latest.state):
            raise InvalidTransitionError(
                f"Node {self.id} reported {latest.state.name} after {self.state.name}"
            )
        credentials = latest.credentials or self.credentials
        return replace(latest, credentials=credentials)

    def with_credentials(self, credentials: Credentials) -> "NodeMetadata":
        return replace(self, credentials=credentials)

    def __str__(self) -> str:
        return f"{self.id}[{self.tag}:{self.state.name}]"
