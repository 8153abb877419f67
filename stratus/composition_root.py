"""
Composition Root

Architectural Intent:
- Dependency injection composition root for stratus
- Single place where provider adapters, the SSH transport, the socket probe,
  the event bus and the ComputeService are wired together
- No adapter instantiation should occur outside this module (except CLI)

Design Decisions:
- Uses a simple dataclass container instead of a DI framework
- The provider backend is chosen once, by name, when a context is created
- A factory remembers one backend per provider name, so every context it
  creates against the same account sees the same nodes
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from stratus.application.compute_service import ComputeService
from stratus.application.dtos.compute_dtos import ExecutionPolicy
from stratus.domain.errors import ConfigurationError
from stratus.domain.ports.compute_provider_port import ComputeProviderPort
from stratus.domain.ports.socket_probe_port import SocketProbePort
from stratus.domain.ports.ssh_client_port import SshClientFactory
from stratus.infrastructure.adapters.aws_adapter import AwsComputeAdapter
from stratus.infrastructure.adapters.fabric_ssh_adapter import FabricSshClientFactory
from stratus.infrastructure.adapters.simulated_backend import SimulatedBackend
from stratus.infrastructure.adapters.socket_probe_adapter import AsyncioSocketProbe
from stratus.infrastructure.adapters.vps_adapter import VpsComputeAdapter
from stratus.infrastructure.config import StratusConfig
from stratus.infrastructure.event_bus import EventBus

logger = logging.getLogger(__name__)

ProviderFactory = Callable[[SimulatedBackend, str, str], ComputeProviderPort]

PROVIDERS: dict[str, ProviderFactory] = {
    "aws": AwsComputeAdapter,
    "vps": VpsComputeAdapter,
}


@dataclass
class ComputeServiceContext:
    """DI container holding one authenticated provider session."""

    provider_name: str
    provider: ComputeProviderPort
    compute_service: ComputeService
    event_bus: EventBus

    async def close(self) -> None:
        await self.provider.close()

    async def __aenter__(self) -> "ComputeServiceContext":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class ComputeServiceContextFactory:
    def __init__(self, backends: Optional[dict[str, SimulatedBackend]] = None) -> None:
        self.backends: dict[str, SimulatedBackend] = dict(backends or {})

    def backend_for(self, provider: str) -> SimulatedBackend:
        if provider not in self.backends:
            self.backends[provider] = SimulatedBackend()
        return self.backends[provider]

    async def create_context(
        self,
        provider: str,
        identity: Optional[str],
        credential: Optional[str],
        ssh_factory: Optional[SshClientFactory] = None,
        socket_probe: Optional[SocketProbePort] = None,
        policy: Optional[ExecutionPolicy] = None,
        config: Optional[StratusConfig] = None,
    ) -> ComputeServiceContext:
        """Build an authenticated context for the named provider.

        Raises:
            ConfigurationError: unknown provider, or identity/credential missing.
            AuthorizationError: the provider rejected the account.
        """
        if provider not in PROVIDERS:
            raise ConfigurationError(
                f"unknown provider {provider!r}; choose from {', '.join(sorted(PROVIDERS))}"
            )
        if not identity:
            raise ConfigurationError(f"no identity configured for provider {provider}")
        if not credential:
            raise ConfigurationError(f"no credential configured for provider {provider}")

        config = config or StratusConfig()
        policy = policy or config.execution_policy()
        adapter = PROVIDERS[provider](self.backend_for(provider), identity, credential)
        await adapter.authenticate()

        event_bus = EventBus()
        compute_service = ComputeService(
            provider=adapter,
            ssh_factory=ssh_factory or FabricSshClientFactory(config.ssh.connect_timeout),
            socket_probe=socket_probe or AsyncioSocketProbe(),
            event_bus=event_bus,
            policy=policy,
        )
        logger.info("Created %s context for %s", provider, identity)
        return ComputeServiceContext(
            provider_name=provider,
            provider=adapter,
            compute_service=compute_service,
            event_bus=event_bus,
        )

    async def create_context_from_config(self, config: StratusConfig, **kwargs) -> ComputeServiceContext:
        return await self.create_context(
            config.provider.name,
            config.provider.identity,
            config.provider.credential,
            config=config,
            **kwargs,
        )
