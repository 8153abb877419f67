"""
Destroy Nodes With Tag Use Case

Architectural Intent:
- Destroys every non-terminated node carrying the tag, one provider call per
  node, concurrently
- Best effort: a node whose delete fails (unsupported operation, transient
  provider error) is reported in the result and never stops the others
- Idempotent: a node the provider no longer knows counts as destroyed
- Success is only reported once a fresh read shows the node TERMINATED
"""

from __future__ import annotations
import logging
from typing import Optional

from stratus.application.dtos.compute_dtos import BatchResult, ExecutionPolicy
from stratus.application.orchestration.batch import gather_per_node
from stratus.application.orchestration.node_waiter import NodeStateWaiter
from stratus.application.orchestration.publishing import publish_events
from stratus.domain.entities.node_metadata import NodeMetadata, NodeState
from stratus.domain.errors import NodeNotFoundError
from stratus.domain.events.node_events import NodeTerminatedEvent
from stratus.domain.ports.compute_provider_port import ComputeProviderPort
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.services.node_predicates import not_terminated, with_tag

logger = logging.getLogger(__name__)


class DestroyNodesWithTag:
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
        if not nodes:
            logger.info("No live nodes tagged %s to destroy", tag)
            return BatchResult()

        logger.info("Destroying %d node(s) tagged %s", len(nodes), tag)
        destroyed, failures = await gather_per_node(
            nodes, self._destroy, self.policy.max_concurrency
        )

        await publish_events(
            self.event_bus,
            [NodeTerminatedEvent(aggregate_id=node_id, tag=tag) for node_id in destroyed],
        )
        for node_id, error in failures.items():
            logger.warning("Could not destroy node %s (tag %s): %s", node_id, tag, error)
        return BatchResult(succeeded=tuple(sorted(destroyed.values())), failures=failures)

    async def _destroy(self, node: NodeMetadata) -> NodeMetadata:
        try:
            await self.provider.destroy_node(node.id)
        except NodeNotFoundError:
            logger.info("Node %s already gone", node.id)
            return node.transition_to(NodeState.TERMINATED)
        return await self.waiter.await_state(node, {NodeState.TERMINATED})
