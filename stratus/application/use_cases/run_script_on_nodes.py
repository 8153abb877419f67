"""
Run Script On Nodes Use Case

Architectural Intent:
- Drives the per-node remote execution pipeline:
      AWAIT_SOCKET -> CONNECTING -> EXECUTING -> DONE | AUTH_FAILED | TRANSPORT_FAILED
- Each stage strictly precedes the next; nothing executes before the socket
  is confirmed open
- Nodes run concurrently; one node failing never aborts its siblings

Security:
- A credentials override is used for this call only; NodeMetadata is never
  mutated, results are returned as a node -> ExecResponse mapping
- Authentication failures are classified from the root-cause message and
  reported separately from network failures
"""

from __future__ import annotations
import logging
from typing import Iterable, Optional

from stratus.application.dtos.compute_dtos import (
    ExecutionPolicy,
    ExecutionStage,
    ScriptOutcome,
)
from stratus.application.orchestration.batch import gather_per_node
from stratus.application.orchestration.retryable_predicate import socket_tester
from stratus.domain.entities.node_metadata import NodeMetadata
from stratus.domain.errors import (
    AuthenticationFailedError,
    ConfigurationError,
    RunScriptOnNodesError,
    TransportError,
    is_auth_failure,
)
from stratus.domain.ports.socket_probe_port import SocketProbePort
from stratus.domain.ports.ssh_client_port import SshClientFactory, SshClientPort
from stratus.domain.services.bootstrap_script import script_command
from stratus.domain.value_objects.credentials import Credentials
from stratus.domain.value_objects.exec_response import ExecResponse
from stratus.domain.value_objects.run_script_options import RunScriptOptions
from stratus.domain.value_objects.socket_address import SocketAddress

logger = logging.getLogger(__name__)


def _classify(stage: ExecutionStage, node: NodeMetadata, exc: BaseException) -> ScriptOutcome:
    if is_auth_failure(exc):
        if isinstance(exc, AuthenticationFailedError):
            error: BaseException = exc
        else:
            error = AuthenticationFailedError(f"{node.id}: {exc}")
            error.__cause__ = exc
        logger.warning("Authentication failed on node %s: %s", node.id, exc)
        return ScriptOutcome(node, ExecutionStage.AUTH_FAILED, error=error)
    if isinstance(exc, (TransportError, ConfigurationError)):
        error = exc
    else:
        error = TransportError(f"{node.id} failed while {stage.name.lower()}: {exc}")
        error.__cause__ = exc
    logger.warning("Transport failure on node %s during %s: %s", node.id, stage.name, exc)
    return ScriptOutcome(node, ExecutionStage.TRANSPORT_FAILED, error=error)


class ScriptRunner:
    """Runs one script on one node through the staged pipeline."""

    def __init__(
        self,
        ssh_factory: SshClientFactory,
        socket_probe: SocketProbePort,
        policy: ExecutionPolicy = ExecutionPolicy(),
    ) -> None:
        self.ssh_factory = ssh_factory
        self.socket_probe = socket_probe
        self.policy = policy
        self.socket_tester = socket_tester(
            socket_probe, max_wait=policy.socket_max_wait, period=policy.socket_period
        )

    @staticmethod
    def resolve_credentials(
        node: NodeMetadata, override: Optional[Credentials] = None
    ) -> Credentials:
        credentials = override or node.credentials
        if credentials is None or credentials.account is None:
            raise ConfigurationError(f"no login credentials known for node {node.id}")
        return credentials

    @staticmethod
    def address_of(node: NodeMetadata, port: int) -> SocketAddress:
        host = node.reachable_address
        if host is None:
            raise TransportError(f"node {node.id} has no address")
        return SocketAddress(host, port)

    async def await_socket(self, address: SocketAddress) -> None:
        if not await self.socket_tester.apply(address):
            raise TransportError(
                f"socket {address} not open within {self.policy.socket_max_wait}s"
            )

    async def run(
        self,
        node: NodeMetadata,
        script: Optional[str] = None,
        options: RunScriptOptions = RunScriptOptions(),
        command: Optional[str] = None,
    ) -> ScriptOutcome:
        """
        Run an uploaded script (or a plain command) and return the outcome.

        Never raises for remote failures; the outcome stage says what happened.
        """
        if (script is None) == (command is None):
            raise ValueError("pass exactly one of script or command")

        stage = ExecutionStage.AWAIT_SOCKET
        client: Optional[SshClientPort] = None
        try:
            credentials = self.resolve_credentials(node, options.override_credentials)
            address = self.address_of(node, options.port)
            await self.await_socket(address)

            stage = ExecutionStage.CONNECTING
            client = self.ssh_factory(address, credentials.account, credentials.key)
            await client.connect()

            stage = ExecutionStage.EXECUTING
            if script is not None:
                path = f"/tmp/{options.name}.sh"
                await client.put(path, script)
                command = script_command(path, options.run_as_root, credentials.account)
            response = await client.exec(command)
            logger.info(
                "Node %s finished %s with exit status %d",
                node.id, options.name, response.exit_status,
            )
            return ScriptOutcome(node, ExecutionStage.DONE, response=response)
        except (TransportError, ConfigurationError, OSError) as e:
            return _classify(stage, node, e)
        finally:
            if client is not None:
                await self._disconnect(node, client)

    async def _disconnect(self, node: NodeMetadata, client: SshClientPort) -> None:
        try:
            await client.disconnect()
        except (TransportError, OSError) as e:
            logger.warning("Error closing session to node %s: %s", node.id, e)


class RunScriptOnNodes:
    def __init__(self, runner: ScriptRunner, max_concurrency: int = 10):
        self.runner = runner
        self.max_concurrency = max_concurrency

    async def execute(
        self,
        nodes: Iterable[NodeMetadata],
        script: str | bytes,
        options: RunScriptOptions = RunScriptOptions(),
    ) -> dict[NodeMetadata, ExecResponse]:
        """
        Run the script on every node.

        Returns node -> ExecResponse when every node reached DONE. Otherwise
        raises RunScriptOnNodesError carrying both the responses and the
        per-node failures; its cause is an authentication failure if any node
        had one.
        """
        text = script.decode("utf-8") if isinstance(script, bytes) else script
        nodes = list(nodes)

        async def step(node: NodeMetadata) -> ScriptOutcome:
            return await self.runner.run(node, script=text, options=options)

        outcomes, crashed = await gather_per_node(nodes, step, self.max_concurrency)

        by_id = {node.id: node for node in nodes}
        responses: dict[NodeMetadata, ExecResponse] = {}
        failures: dict[NodeMetadata, BaseException] = {
            by_id[node_id]: exc for node_id, exc in crashed.items()
        }
        for outcome in outcomes.values():
            if outcome.ok:
                responses[outcome.node] = outcome.response
            else:
                failures[outcome.node] = outcome.error

        if failures:
            auth = [e for e in failures.values() if is_auth_failure(e)]
            cause = auth[0] if auth else next(iter(failures.values()))
            raise RunScriptOnNodesError(text, responses, failures, cause=cause)
        return responses
