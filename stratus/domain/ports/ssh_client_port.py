"""
SSH Client Port

Architectural Intent:
- Contract for the remote session transport: connect, exec, upload, disconnect
- Only the contract is consumed by the core; the wire protocol lives in the
  Fabric adapter
"""

from abc import ABC, abstractmethod
from typing import Protocol

from stratus.domain.value_objects.exec_response import ExecResponse
from stratus.domain.value_objects.socket_address import SocketAddress


class SshClientPort(ABC):
    """One SSH session against one node."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the session. Raises SshError (or a subclass) on failure."""
        pass

    @abstractmethod
    async def exec(self, command: str) -> ExecResponse:
        """Run a command and capture stdout, stderr and the exit status."""
        pass

    @abstractmethod
    async def put(self, path: str, content: str) -> None:
        """Upload text content to a remote path."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        pass


class SshClientFactory(Protocol):
    def __call__(self, address: SocketAddress, account: str, key: str) -> SshClientPort: ...
