"""
Node Lifecycle Events

Published by the compute service whenever it observes a node change state.
aggregate_id is always the node id.
"""

from dataclasses import dataclass
from typing import Any

from stratus.domain.events.event_base import DomainEvent


@dataclass(frozen=True)
class NodeEvent(DomainEvent):
    tag: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["tag"] = self.tag
        return data


@dataclass(frozen=True)
class NodeCreatedEvent(NodeEvent):
    template: str = ""


@dataclass(frozen=True)
class NodeRunningEvent(NodeEvent):
    pass


@dataclass(frozen=True)
class NodeRebootedEvent(NodeEvent):
    pass


@dataclass(frozen=True)
class NodeTerminatedEvent(NodeEvent):
    pass


@dataclass(frozen=True)
class NodeErrorEvent(NodeEvent):
    error_message: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["error_message"] = self.error_message
        return data
