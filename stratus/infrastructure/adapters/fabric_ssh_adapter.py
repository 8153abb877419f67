"""
Fabric SSH Adapter

Architectural Intent:
- Infrastructure adapter implementing SshClientPort via Fabric/SSH
- One adapter instance is one session against one node
- Fabric is blocking; each call runs in a worker thread so many nodes can be
  driven concurrently from the event loop

Security:
- Connections use connect_timeout and never fall back to the local agent or
  ~/.ssh keys; only the credentials supplied for the node are tried
- PEM key material is parsed in memory with paramiko and never written to disk
- Authentication failures are re-raised with the "Auth fail" marker so the
  caller can tell them apart from network errors
"""

import asyncio
import io
import logging
import socket
from typing import Optional

import paramiko
from fabric import Connection

from stratus.domain.errors import AuthenticationFailedError, SshError
from stratus.domain.ports.ssh_client_port import SshClientPort
from stratus.domain.value_objects.exec_response import ExecResponse
from stratus.domain.value_objects.socket_address import SocketAddress

logger = logging.getLogger(__name__)

_KEY_TYPES = (paramiko.RSAKey, paramiko.ECDSAKey, paramiko.Ed25519Key)


def load_private_key(material: str) -> paramiko.PKey:
    """Parse PEM/OpenSSH private key text, trying each supported key type."""
    for key_type in _KEY_TYPES:
        try:
            return key_type.from_private_key(io.StringIO(material))
        except paramiko.SSHException:
            continue
    raise AuthenticationFailedError("Auth fail: private key could not be parsed")


def connect_kwargs_for(key: str) -> dict:
    kwargs: dict = {"allow_agent": False, "look_for_keys": False}
    if key.lstrip().startswith("-----BEGIN"):
        kwargs["pkey"] = load_private_key(key)
    else:
        kwargs["password"] = key
    return kwargs


class FabricSshClient(SshClientPort):
    """SshClientPort backed by a fabric.Connection."""

    def __init__(
        self,
        address: SocketAddress,
        account: str,
        key: str,
        connect_timeout: int = 30,
    ) -> None:
        self.address = address
        self.account = account
        self._key = key
        self.connect_timeout = connect_timeout
        self._connection: Optional[Connection] = None

    def _get_connection(self) -> Connection:
        return Connection(
            host=self.address.host,
            user=self.account,
            port=self.address.port,
            connect_timeout=self.connect_timeout,
            connect_kwargs=connect_kwargs_for(self._key),
        )

    async def connect(self) -> None:
        connection = self._get_connection()
        try:
            await asyncio.to_thread(connection.open)
        except paramiko.AuthenticationException as e:
            logger.error("Auth fail for %s@%s: %s", self.account, self.address, e)
            raise AuthenticationFailedError(
                f"Auth fail for {self.account}@{self.address}"
            ) from e
        except (paramiko.SSHException, socket.error) as e:
            logger.error("SSH connection to %s failed: %s", self.address, e)
            raise SshError(f"cannot connect to {self.address}: {e}") from e
        self._connection = connection
        logger.debug("Connected to %s as %s", self.address, self.account)

    def _require_connection(self) -> Connection:
        if self._connection is None:
            raise SshError(f"session to {self.address} is not open")
        return self._connection

    async def exec(self, command: str) -> ExecResponse:
        connection = self._require_connection()
        try:
            result = await asyncio.to_thread(connection.run, command, hide=True, warn=True)
        except (paramiko.SSHException, socket.error, EOFError) as e:
            logger.error("Command failed on %s: %s", self.address, e)
            raise SshError(f"exec on {self.address} failed: {e}") from e
        return ExecResponse(
            output=result.stdout,
            error=result.stderr,
            exit_status=result.exited,
        )

    async def put(self, path: str, content: str) -> None:
        connection = self._require_connection()
        payload = io.BytesIO(content.encode("utf-8"))
        try:
            await asyncio.to_thread(connection.put, payload, remote=path)
        except (paramiko.SSHException, OSError) as e:
            logger.error("Upload of %s to %s failed: %s", path, self.address, e)
            raise SshError(f"upload of {path} to {self.address} failed: {e}") from e

    async def disconnect(self) -> None:
        if self._connection is None:
            return
        connection, self._connection = self._connection, None
        await asyncio.to_thread(connection.close)


class FabricSshClientFactory:
    """SshClientFactory producing FabricSshClient sessions with a shared timeout."""

    def __init__(self, connect_timeout: int = 30) -> None:
        self.connect_timeout = connect_timeout

    def __call__(self, address: SocketAddress, account: str, key: str) -> FabricSshClient:
        return FabricSshClient(address, account, key, self.connect_timeout)
