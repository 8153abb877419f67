"""
Domain Errors

Architectural Intent:
- Single taxonomy of failures raised across the compute abstraction
- Callers branch on type: configuration and authorization problems are fatal,
  per-node transport problems are aggregated by batch operations
- Authentication failures during remote execution are typed separately from
  other transport failures so callers can decide whether to retry with
  different credentials
"""

from __future__ import annotations
from typing import Any, Mapping, Optional


AUTH_FAILURE_MARKERS = ("Auth fail", "Authentication failed")


class ComputeError(Exception):
    """Base class for every error raised by stratus."""


class ConfigurationError(ComputeError):
    """A required input (credential, key file, provider name) is missing or invalid."""


class AuthorizationError(ComputeError):
    """The provider rejected the account credentials outright."""


class NoMatchError(ComputeError):
    """Template criteria resolved to an empty candidate set."""


class NodeNotFoundError(ComputeError):
    """The provider has no record of the requested node."""

    def __init__(self, node_id: str) -> None:
        super().__init__(f"node {node_id} not found")
        self.node_id = node_id


class TransientProviderError(ComputeError):
    """A provider call failed in a way that should not abort a batch."""


class UnsupportedOperationError(TransientProviderError):
    """The provider does not support the operation for this resource."""


class InvalidTransitionError(ComputeError, ValueError):
    """A node state change violates the lifecycle state machine."""


class UnsupportedScopeError(ComputeError, ValueError):
    """A location carries a scope outside PROVIDER/REGION/ZONE/HOST."""


class InvalidLocationHierarchyError(ComputeError, ValueError):
    """A location's parent chain does not resolve to a PROVIDER location."""


class NodeProvisioningError(ComputeError):
    """A node did not reach RUNNING (provider ERROR, timeout or failed bootstrap)."""

    def __init__(self, node_id: str, message: str) -> None:
        super().__init__(f"node {node_id}: {message}")
        self.node_id = node_id


class TransportError(ComputeError):
    """Socket never opened, the session dropped, or the remote exec failed."""


class SshError(TransportError):
    """Error reported by the SSH transport."""


class AuthenticationFailedError(TransportError):
    """The SSH server refused the supplied account/key."""


def root_cause(exc: BaseException) -> BaseException:
    """Follow explicit and implicit exception chaining to the innermost cause."""
    seen = set()
    current = exc
    while id(current) not in seen:
        seen.add(id(current))
        nxt = current.__cause__ or current.__context__
        if nxt is None:
            break
        current = nxt
    return current


def is_auth_failure(exc: BaseException) -> bool:
    """True when the root cause message carries an authentication-failure marker."""
    if isinstance(exc, AuthenticationFailedError):
        return True
    message = str(root_cause(exc))
    return any(marker in message for marker in AUTH_FAILURE_MARKERS)


class RunScriptOnNodesError(ComputeError):
    """
    Raised when a script failed on at least one node.

    Carries the responses of the nodes that succeeded and the per-node
    failures, so nothing is dropped.
    """

    def __init__(
        self,
        script: str,
        responses: Mapping[Any, Any],
        failures: Mapping[Any, BaseException],
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            f"script failed on {len(failures)} node(s): "
            + ", ".join(f"{getattr(n, 'id', n)}: {e}" for n, e in failures.items())
        )
        self.script = script
        self.responses = dict(responses)
        self.failures = dict(failures)
        if cause is not None:
            self.__cause__ = cause

    @property
    def auth_failures(self) -> dict[Any, BaseException]:
        return {n: e for n, e in self.failures.items() if is_auth_failure(e)}

    @property
    def transport_failures(self) -> dict[Any, BaseException]:
        return {n: e for n, e in self.failures.items() if not is_auth_failure(e)}
