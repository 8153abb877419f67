"""
Domain Ports Package

Architectural Intent:
- Contains port interfaces (abstract contracts) for external dependencies
- Ports define what the domain needs, adapters implement how
- Follows Hexagonal Architecture principles
"""

from stratus.domain.ports.compute_provider_port import ComputeProviderPort
from stratus.domain.ports.ssh_client_port import SshClientPort, SshClientFactory
from stratus.domain.ports.socket_probe_port import SocketProbePort
from stratus.domain.ports.event_bus_port import EventBusPort

__all__ = [
    "ComputeProviderPort",
    "SshClientPort",
    "SshClientFactory",
    "SocketProbePort",
    "EventBusPort",
]
