"""
Run Nodes With Tag Use Case

Architectural Intent:
- Creates `count` nodes sharing one tag from a resolved Template
- Brings every node to RUNNING concurrently: poll state, optionally block on
  a port, then run the bootstrap script (keys + caller script)
- Partial failure is a normal outcome: succeeded nodes are returned, failed
  ones are reported by id, and the caller may top up with another call

Per-node pipeline:
    PENDING --poll--> RUNNING --block_on_port--> socket open --bootstrap--> ready
"""

from __future__ import annotations
import logging
from typing import Optional

from stratus.application.dtos.compute_dtos import ExecutionPolicy, RunNodesResult
from stratus.application.orchestration.batch import gather_per_node
from stratus.application.orchestration.node_waiter import NodeStateWaiter
from stratus.application.orchestration.publishing import publish_events
from stratus.application.orchestration.retryable_predicate import socket_tester
from stratus.application.use_cases.run_script_on_nodes import ScriptRunner
from stratus.domain.entities.node_metadata import NodeMetadata, NodeState
from stratus.domain.entities.template import Template
from stratus.domain.errors import NodeProvisioningError, TransportError
from stratus.domain.events.event_base import DomainEvent
from stratus.domain.events.node_events import (
    NodeCreatedEvent,
    NodeErrorEvent,
    NodeRunningEvent,
)
from stratus.domain.ports.compute_provider_port import ComputeProviderPort
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.services.bootstrap_script import compose_bootstrap
from stratus.domain.value_objects.credentials import Credentials
from stratus.domain.value_objects.run_script_options import RunScriptOptions

logger = logging.getLogger(__name__)


def validate_tag(tag: str) -> str:
    # opaque batch identity; providers enforce their own charset
    if not tag or not tag.strip():
        raise ValueError(f"Invalid tag {tag!r}: tag cannot be empty")
    return tag


class RunNodesWithTag:
    def __init__(
        self,
        provider: ComputeProviderPort,
        waiter: NodeStateWaiter,
        runner: ScriptRunner,
        event_bus: Optional[EventBusPort] = None,
        policy: ExecutionPolicy = ExecutionPolicy(),
    ):
        self.provider = provider
        self.waiter = waiter
        self.runner = runner
        self.event_bus = event_bus
        self.policy = policy

    async def execute(self, tag: str, count: int, template: Template) -> RunNodesResult:
        validate_tag(tag)
        if count < 1:
            raise ValueError("count must be at least 1")

        logger.info("Creating %d node(s) tagged %s from %s", count, tag, template)
        created = await self.provider.create_nodes(tag, count, template)
        events: list[DomainEvent] = [
            NodeCreatedEvent(aggregate_id=n.id, tag=tag, template=str(template))
            for n in created
        ]

        async def bring_up(node: NodeMetadata) -> NodeMetadata:
            return await self._bring_up(node, tag, template)

        ready, failures = await gather_per_node(
            created, bring_up, self.policy.max_concurrency
        )

        for index in range(len(created), count):
            key = f"{tag}#{index}"
            failures[key] = NodeProvisioningError(key, "provider did not create this node")
        for node_id, error in failures.items():
            events.append(NodeErrorEvent(aggregate_id=node_id, tag=tag, error_message=str(error)))
        for node in ready.values():
            events.append(NodeRunningEvent(aggregate_id=node.id, tag=tag))
        await publish_events(self.event_bus, events)

        result = RunNodesResult(
            succeeded=tuple(sorted(ready.values())),
            failures=failures,
            requested=count,
        )
        if failures:
            logger.warning(
                "Tag %s: %d of %d node(s) ready, failed: %s",
                tag, len(result.succeeded), count, ", ".join(result.failed_ids),
            )
        else:
            logger.info("Tag %s: %d node(s) ready", tag, count)
        return result

    async def _bring_up(self, node: NodeMetadata, tag: str, template: Template) -> NodeMetadata:
        if node.tag != tag:
            raise NodeProvisioningError(node.id, f"provider tagged node {node.tag!r}, not {tag!r}")
        if node.state is not NodeState.ERROR:
            node = await self.waiter.await_state(node, {NodeState.RUNNING, NodeState.ERROR})
        if node.state is NodeState.ERROR:
            raise NodeProvisioningError(node.id, "provider reported ERROR")

        options = template.options
        if options.port is not None:
            address = self.runner.address_of(node, options.port)
            tester = socket_tester(
                self.runner.socket_probe,
                max_wait=options.seconds,
                period=self.policy.socket_period,
            )
            if not await tester.apply(address):
                raise TransportError(
                    f"node {node.id}: port {options.port} not open within {options.seconds}s"
                )

        if options.override_credentials is not None:
            node = node.with_credentials(options.override_credentials)

        login = node.credentials.account if node.credentials else None
        bootstrap = compose_bootstrap(options, login or "root")
        if bootstrap is None:
            return node

        # keys belong to the login account; the caller script escalates itself
        outcome = await self.runner.run(
            node,
            script=bootstrap,
            options=RunScriptOptions(name="stratus-bootstrap", run_as_root=False),
        )
        if not outcome.ok:
            raise outcome.error
        if not outcome.response.ok:
            raise NodeProvisioningError(
                node.id,
                f"bootstrap exited with {outcome.response.exit_status}: "
                f"{outcome.response.error.strip()}",
            )
        if options.public_key and options.private_key:
            if login is not None:
                node = node.with_credentials(Credentials(login, options.private_key))
        return node
