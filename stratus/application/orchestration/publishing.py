"""
Event publishing for batch use cases.

Events are published after provider side effects have happened, so a
failing subscriber is logged and never hides the batch result from the
caller.
"""

from __future__ import annotations
import logging
from typing import Optional, Sequence

from stratus.domain.events.event_base import DomainEvent
from stratus.domain.ports.event_bus_port import EventBusPort

logger = logging.getLogger(__name__)


async def publish_events(event_bus: Optional[EventBusPort], events: Sequence[DomainEvent]) -> None:
    if event_bus is None or not events:
        return
    try:
        await event_bus.publish(list(events))
    except Exception:
        logger.exception("Event subscriber failed while publishing %d event(s)", len(events))
