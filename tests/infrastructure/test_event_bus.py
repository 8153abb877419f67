"""Tests for EventBus infrastructure."""

import pytest

from stratus.domain.events.node_events import (
    NodeCreatedEvent,
    NodeEvent,
    NodeTerminatedEvent,
)
from stratus.infrastructure.event_bus import EventBus


class TestEventBus:
    @pytest.mark.asyncio
    async def test_publish_to_subscriber(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(NodeCreatedEvent, handler)
        await bus.publish([NodeCreatedEvent(aggregate_id="i-1", tag="web", template="t")])

        assert len(received) == 1
        assert received[0].aggregate_id == "i-1"

    @pytest.mark.asyncio
    async def test_no_subscriber(self):
        bus = EventBus()
        # Should not raise
        await bus.publish([NodeCreatedEvent(aggregate_id="i-1")])

    @pytest.mark.asyncio
    async def test_type_filtering(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event)

        bus.subscribe(NodeTerminatedEvent, handler)
        await bus.publish([
            NodeCreatedEvent(aggregate_id="i-1"),
            NodeTerminatedEvent(aggregate_id="i-2"),
        ])
        assert [e.aggregate_id for e in received] == ["i-2"]

    @pytest.mark.asyncio
    async def test_base_class_subscription(self):
        bus = EventBus()
        received = []

        async def handler(event):
            received.append(event.event_type)

        bus.subscribe(NodeEvent, handler)
        await bus.publish([
            NodeCreatedEvent(aggregate_id="i-1"),
            NodeTerminatedEvent(aggregate_id="i-1"),
        ])
        assert received == ["NodeCreatedEvent", "NodeTerminatedEvent"]

    @pytest.mark.asyncio
    async def test_multiple_subscribers(self):
        bus = EventBus()
        received_a, received_b = [], []

        async def handler_a(event):
            received_a.append(event)

        async def handler_b(event):
            received_b.append(event)

        bus.subscribe(NodeCreatedEvent, handler_a)
        bus.subscribe(NodeEvent, handler_b)
        await bus.publish([NodeCreatedEvent(aggregate_id="i-1")])

        assert len(received_a) == 1
        assert len(received_b) == 1
