"""
Domain Events Package

Architectural Intent:
- Contains domain events describing node lifecycle changes
- Events are the primary mechanism for cross-boundary communication
"""

from stratus.domain.events.event_base import DomainEvent
from stratus.domain.events.node_events import (
    NodeEvent,
    NodeCreatedEvent,
    NodeRunningEvent,
    NodeRebootedEvent,
    NodeTerminatedEvent,
    NodeErrorEvent,
)

__all__ = [
    "DomainEvent",
    "NodeEvent",
    "NodeCreatedEvent",
    "NodeRunningEvent",
    "NodeRebootedEvent",
    "NodeTerminatedEvent",
    "NodeErrorEvent",
]
