"""Global test configuration.

Provides in-memory stand-ins for the SSH transport and the socket probe so
the compute service can be driven end to end against the simulated
providers without opening network connections.
"""

from dataclasses import dataclass, field
from typing import Optional

import pytest

from stratus.application.dtos.compute_dtos import ExecutionPolicy
from stratus.domain.errors import SshError
from stratus.domain.ports.ssh_client_port import SshClientPort
from stratus.domain.value_objects.exec_response import ExecResponse
from stratus.domain.value_objects.socket_address import SocketAddress
from stratus.infrastructure.adapters.simulated_backend import SimulatedBackend


@dataclass
class FakeSshFactory:
    """Creates FakeSshClient sessions and records everything they do."""
    rejected_keys: set = field(default_factory=set)
    unreachable_hosts: set = field(default_factory=set)
    output: str = "hello\n"
    exit_status: int = 0
    sessions: list = field(default_factory=list)

    def __call__(self, address: SocketAddress, account: str, key: str) -> "FakeSshClient":
        client = FakeSshClient(self, address, account, key)
        self.sessions.append(client)
        return client

    @property
    def commands(self) -> list[tuple[str, str]]:
        return [(s.address.host, c) for s in self.sessions for c in s.commands]


class FakeSshClient(SshClientPort):
    def __init__(self, factory: FakeSshFactory, address: SocketAddress, account: str, key: str):
        self.factory = factory
        self.address = address
        self.account = account
        self.key = key
        self.connected = False
        self.closed = False
        self.commands: list[str] = []
        self.uploads: dict[str, str] = {}

    async def connect(self) -> None:
        if self.key in self.factory.rejected_keys:
            # mirrors paramiko: the marker lives on the root cause only
            try:
                raise PermissionError(f"Auth fail for {self.account}")
            except PermissionError as e:
                raise SshError(f"cannot connect to {self.address}") from e
        if self.address.host in self.factory.unreachable_hosts:
            raise SshError(f"cannot connect to {self.address}: connection reset")
        self.connected = True

    async def exec(self, command: str) -> ExecResponse:
        self.commands.append(command)
        return ExecResponse(self.factory.output, "", self.factory.exit_status)

    async def put(self, path: str, content: str) -> None:
        self.uploads[path] = content

    async def disconnect(self) -> None:
        self.closed = True


@dataclass
class StaticSocketProbe:
    """Socket probe whose answer is fixed per host; records every probe."""
    closed_hosts: set = field(default_factory=set)
    open_after: Optional[int] = None
    probes: list = field(default_factory=list)

    async def is_open(self, address: SocketAddress) -> bool:
        self.probes.append(address)
        if address.host in self.closed_hosts:
            return False
        if self.open_after is not None:
            return len(self.probes) > self.open_after
        return True


@pytest.fixture
def ssh_factory():
    return FakeSshFactory()


@pytest.fixture
def socket_probe():
    return StaticSocketProbe()


@pytest.fixture
def fast_policy():
    return ExecutionPolicy(
        socket_max_wait=0.2,
        socket_period=0.01,
        node_running_timeout=2,
        node_poll_period=0.01,
        verify_attempts=3,
        verify_backoff=0,
        catalog_cache_ttl=60,
    )


@pytest.fixture
def backend():
    return SimulatedBackend(settle_polls=1)
