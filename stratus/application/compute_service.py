"""
Compute Service

Architectural Intent:
- Single entry point for callers: catalog listing, template building, batch
  node creation by tag, listing, reboot, destroy and remote script execution
- Composes the use cases over one provider port; holds no node state of its
  own, so a freshly created service against the same account sees and
  operates on nodes created by any earlier one
- Catalog reads are memoised for a short TTL
"""

from __future__ import annotations
import logging
from typing import Optional

from stratus.application.dtos.compute_dtos import (
    BatchResult,
    ExecutionPolicy,
    RunNodesResult,
)
from stratus.application.orchestration.catalog_cache import MemoizedSupplier
from stratus.application.orchestration.node_waiter import NodeStateWaiter
from stratus.application.use_cases.destroy_nodes_with_tag import DestroyNodesWithTag
from stratus.application.use_cases.reboot_nodes_with_tag import RebootNodesWithTag
from stratus.application.use_cases.run_nodes_with_tag import RunNodesWithTag
from stratus.application.use_cases.run_script_on_nodes import RunScriptOnNodes, ScriptRunner
from stratus.application.use_cases.verify_node import VerifyNode
from stratus.domain.entities.node_metadata import NodeMetadata
from stratus.domain.entities.template import Template
from stratus.domain.ports.compute_provider_port import ComputeProviderPort
from stratus.domain.ports.event_bus_port import EventBusPort
from stratus.domain.ports.socket_probe_port import SocketProbePort
from stratus.domain.ports.ssh_client_port import SshClientFactory
from stratus.domain.services.node_predicates import NodePredicate, all_nodes
from stratus.domain.services.template_builder import TemplateBuilder, TemplateCatalog
from stratus.domain.value_objects.exec_response import ExecResponse
from stratus.domain.value_objects.image import Image
from stratus.domain.value_objects.location import Location
from stratus.domain.value_objects.run_script_options import RunScriptOptions
from stratus.domain.value_objects.size import Size

logger = logging.getLogger(__name__)


class ComputeService:
    def __init__(
        self,
        provider: ComputeProviderPort,
        ssh_factory: SshClientFactory,
        socket_probe: SocketProbePort,
        event_bus: Optional[EventBusPort] = None,
        policy: ExecutionPolicy = ExecutionPolicy(),
    ) -> None:
        self.provider = provider
        self.policy = policy
        self.event_bus = event_bus

        self._images = MemoizedSupplier(provider.list_images, policy.catalog_cache_ttl)
        self._sizes = MemoizedSupplier(provider.list_sizes, policy.catalog_cache_ttl)
        self._locations = MemoizedSupplier(
            provider.list_assignable_locations, policy.catalog_cache_ttl
        )

        self.runner = ScriptRunner(ssh_factory, socket_probe, policy)
        waiter = NodeStateWaiter(provider, policy.node_running_timeout, policy.node_poll_period)
        self._run_nodes = RunNodesWithTag(provider, waiter, self.runner, event_bus, policy)
        self._reboot = RebootNodesWithTag(provider, waiter, event_bus, policy)
        self._destroy = DestroyNodesWithTag(provider, waiter, event_bus, policy)
        self._run_script = RunScriptOnNodes(self.runner, policy.max_concurrency)
        self._verify = VerifyNode(self.runner, policy.verify_attempts, policy.verify_backoff)

    # -- catalog ----------------------------------------------------------

    async def list_images(self) -> list[Image]:
        return list(await self._images.get())

    async def list_sizes(self) -> list[Size]:
        return list(await self._sizes.get())

    async def list_assignable_locations(self) -> list[Location]:
        return list(await self._locations.get())

    async def template_builder(self) -> TemplateBuilder:
        catalog = TemplateCatalog.of(
            await self.list_images(),
            await self.list_sizes(),
            await self.list_assignable_locations(),
        )
        return TemplateBuilder(catalog)

    # -- nodes ------------------------------------------------------------

    async def run_nodes_with_tag(self, tag: str, count: int, template: Template) -> RunNodesResult:
        return await self._run_nodes.execute(tag, count, template)

    async def list_nodes(self) -> list[NodeMetadata]:
        return sorted(await self.provider.list_nodes())

    async def list_nodes_with_tag(self, tag: str) -> list[NodeMetadata]:
        return sorted(n for n in await self.provider.list_nodes(tag) if n.tag == tag)

    async def list_nodes_matching(self, predicate: NodePredicate = all_nodes) -> list[NodeMetadata]:
        return [n for n in await self.list_nodes() if predicate(n)]

    async def get_node_metadata(self, node: NodeMetadata | str) -> NodeMetadata:
        """
        Pure read of the node's current state and addresses.

        When a previously returned record is passed in, the fresh read is
        checked against it: id, tag, image and location must not change.
        """
        if isinstance(node, str):
            return await self.provider.get_node(node)
        latest = await self.provider.get_node(node.id)
        return node.refreshed_from(latest)

    async def reboot_nodes_with_tag(self, tag: str) -> BatchResult:
        return await self._reboot.execute(tag)

    async def destroy_nodes_with_tag(self, tag: str) -> BatchResult:
        return await self._destroy.execute(tag)

    # -- remote execution -------------------------------------------------

    async def run_script_on_nodes_matching(
        self,
        predicate: NodePredicate,
        script: str | bytes,
        options: RunScriptOptions = RunScriptOptions(),
    ) -> dict[NodeMetadata, ExecResponse]:
        nodes = await self.list_nodes_matching(predicate)
        logger.info("Running script on %d node(s)", len(nodes))
        return await self._run_script.execute(nodes, script, options)

    async def verify_node(
        self,
        node: NodeMetadata,
        command: str = "echo hello",
        marker: str = "hello",
        options: RunScriptOptions = RunScriptOptions(),
    ) -> ExecResponse:
        return await self._verify.execute(node, command, marker, options)

    def invalidate_catalog(self) -> None:
        for supplier in (self._images, self._sizes, self._locations):
            supplier.invalidate()
