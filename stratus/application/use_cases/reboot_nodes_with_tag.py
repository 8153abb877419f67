"""
Reboot Nodes With Tag Use Case

Reboots every non-terminated node carrying the tag and waits until each one
reports RUNNING again. The transient PENDING phase is not surfaced.
"""

from __future__ import annotations
import logging
from typing import Optional

from stratus.application.dtos.compute_dtos import BatchResult, ExecutionPolicy
from stratus.application.orchestration.batch import gather_per_node
from stratus.application.orchestration.node_waiter import NodeStateWaiter
from stratus.application.orchestration.publishing import publish_events
from stratus.domain.entities.node_metadata import NodeMetadata, NodeState
from stratus.domain.errors import NodeProvisioningError
from stratus.domain.events.node_events import NodeRebootedEvent
from stratus.domain.ports.compute_provider_port import ComputeProviderPort
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.services.node_predicates import not_terminated, with_tag

logger = logging.getLogger(__name__)


class RebootNodesWithTag:
    def __init__(
        self,
        provider: ComputeProviderPort,
        waiter: NodeStateWaiter,
        event_bus: Optional[EventBusPort] = None,
        policy: ExecutionPolicy = ExecutionPolicy(),
    ):
        self.provider = provider
        self.waiter = waiter
        self.event_bus = event_bus
        self.policy = policy

    async def execute(self, tag: str) -> BatchResult:
        matches = with_tag(tag)
        nodes = [
            n for n in await self.provider.list_nodes(tag)
            if matches(n) and not_terminated(n)
        ]
        logger.info("Rebooting %d node(s) tagged %s", len(nodes), tag)
        rebooted, failures = await gather_per_node(
            nodes, self._reboot, self.policy.max_concurrency
        )
        await publish_events(
            self.event_bus,
            [NodeRebootedEvent(aggregate_id=node_id, tag=tag) for node_id in rebooted],
        )
        return BatchResult(succeeded=tuple(sorted(rebooted.values())), failures=failures)

    async def _reboot(self, node: NodeMetadata) -> NodeMetadata:
        await self.provider.reboot_node(node.id)
        node = await self.waiter.await_state(node, {NodeState.RUNNING, NodeState.ERROR})
        if node.state is NodeState.ERROR:
            raise NodeProvisioningError(node.id, "provider reported ERROR after reboot")
        return node
