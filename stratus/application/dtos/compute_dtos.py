"""
Compute DTOs

Architectural Intent:
- Data Transfer Objects for the compute service boundaries
- Batch results never drop a node: each one is either in `succeeded` or keyed
  by id in `failures`
- ExecutionPolicy gathers every time budget so no wait is unbounded
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Mapping, Optional

from stratus.domain.entities.node_metadata import NodeMetadata
from stratus.domain.value_objects.exec_response import ExecResponse


@dataclass(frozen=True)
class ExecutionPolicy:
    socket_max_wait: float = 60
    socket_period: float = 1
    node_running_timeout: float = 600
    node_poll_period: float = 2
    verify_attempts: int = 5
    verify_backoff: float = 10
    catalog_cache_ttl: float = 60
    max_concurrency: int = 10

    def __post_init__(self) -> None:
        if self.verify_attempts < 1:
            raise ValueError("verify_attempts must be at least 1")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")


@dataclass(frozen=True)
class BatchResult:
    """Outcome of an operation applied to a set of nodes."""
    succeeded: tuple[NodeMetadata, ...] = ()
    failures: Mapping[str, BaseException] = field(default_factory=dict)

    @property
    def nodes(self) -> tuple[NodeMetadata, ...]:
        return self.succeeded

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def failed_ids(self) -> tuple[str, ...]:
        return tuple(sorted(self.failures))

    def __len__(self) -> int:
        return len(self.succeeded)


@dataclass(frozen=True)
class RunNodesResult(BatchResult):
    """
    Nodes created for a tag. `requested` is the count asked for; callers may
    top up with another create call when `shortfall` is positive.
    """
    requested: int = 0

    @property
    def shortfall(self) -> int:
        return max(self.requested - len(self.succeeded), 0)


class ExecutionStage(Enum):
    AWAIT_SOCKET = auto()
    CONNECTING = auto()
    EXECUTING = auto()
    DONE = auto()
    AUTH_FAILED = auto()
    TRANSPORT_FAILED = auto()


@dataclass(frozen=True)
class ScriptOutcome:
    """Terminal state of one node's script pipeline."""
    node: NodeMetadata
    stage: ExecutionStage
    response: Optional[ExecResponse] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.stage is ExecutionStage.DONE
