"""
Node State Waiter

Architectural Intent:
- Polls the provider until a node reaches one of the wanted states
- Built on RetryablePredicate, so every wait is bounded by a timeout
- Each provider read is merged through NodeMetadata.refreshed_from(), which
  enforces identity and the lifecycle transition rules
"""

from __future__ import annotations
import logging
from typing import Collection

from stratus.application.orchestration.retryable_predicate import RetryablePredicate
from stratus.domain.entities.node_metadata import NodeMetadata, NodeState
from stratus.domain.errors import NodeNotFoundError, NodeProvisioningError
from stratus.domain.ports.compute_provider_port import ComputeProviderPort

logger = logging.getLogger(__name__)


class NodeStateWaiter:
    def __init__(self, provider: ComputeProviderPort, timeout: float, period: float) -> None:
        self.provider = provider
        self.timeout = timeout
        self.period = period

    async def await_state(
        self,
        node: NodeMetadata,
        targets: Collection[NodeState],
        timeout: float | None = None,
    ) -> NodeMetadata:
        """Return the refreshed node once its state is in targets; raise on timeout."""
        latest = node
        budget = self.timeout if timeout is None else timeout

        async def reached(candidate: NodeMetadata) -> bool:
            nonlocal latest
            try:
                fresh = await self.provider.get_node(candidate.id)
            except NodeNotFoundError:
                if NodeState.TERMINATED in targets:
                    # the provider has already forgotten the node
                    latest = latest.transition_to(NodeState.TERMINATED)
                    return True
                raise
            latest = latest.refreshed_from(fresh)
            logger.debug("Node %s is %s", latest.id, latest.state.name)
            return latest.state in targets

        predicate = RetryablePredicate(reached, max_wait=budget, period=self.period)
        if not await predicate.apply(node):
            wanted = "/".join(sorted(s.name for s in targets))
            raise NodeProvisioningError(
                node.id,
                f"did not reach {wanted} within {budget}s (last state {latest.state.name})",
            )
        return latest
