"""
Simulated Provider Backend

Architectural Intent:
- Plays the role of the remote provider account for the simulated adapters
- Holds every instance record, the per-account tag index and the registered
  account credentials; adapters only translate between this store and the
  provider-shaped payloads they expose
- Shared by every context created against it, exactly as a real account is
  shared by every API session

Design Decisions:
- Status strings are opaque here; each adapter owns its own vocabulary and
  schedules transitions as (transitional, final) pairs
- Eventual consistency: a scheduled transition settles only after the
  instance has been described `settle_polls` times
- Faults are injected per instance and operation so best-effort batch
  semantics can be exercised without a real provider
- The store can be saved to and loaded from a JSON file so separate CLI
  invocations see the same account
"""

from __future__ import annotations
import dataclasses
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional

from stratus.domain.errors import AuthorizationError, NodeNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class SimulatedInstance:
    """Provider-side record of one instance."""
    id: str
    account: str
    tag: str
    name: str
    image_id: str
    size_id: str
    location_id: str
    status: str
    private_ip: str
    public_ip: str
    login_user: str = "root"
    login_secret: str = ""
    next_status: Optional[str] = None
    polls_remaining: int = 0
    metadata: dict[str, str] = field(default_factory=dict)


class SimulatedBackend:
    """
    In-memory provider account store.

    Parameters
    ----------
    settle_polls : int
        Number of describe calls an instance stays in a transitional status
        before the scheduled final status is reported.
    quota : int | None
        Maximum number of non-terminated instances per account; creation
        requests beyond it are silently short-filled, as real providers do
        when capacity runs out.
    accounts : dict[str, str] | None
        identity -> credential. When None, the first credential presented for
        an identity is registered and later sessions must present the same one.
    """

    def __init__(
        self,
        settle_polls: int = 1,
        quota: Optional[int] = None,
        accounts: Optional[dict[str, str]] = None,
    ) -> None:
        if settle_polls < 0:
            raise ValueError("settle_polls cannot be negative")
        self.settle_polls = settle_polls
        self.quota = quota
        self._open_registration = accounts is None
        self._accounts: dict[str, str] = dict(accounts or {})
        self._instances: dict[str, SimulatedInstance] = {}
        self._tag_index: dict[tuple[str, str], list[str]] = {}
        self._faults: dict[tuple[str, str], Exception] = {}
        self._failing_boots = 0
        self._ip_seq = 0

    # -- accounts ----------------------------------------------------------

    def register_account(self, identity: str, credential: str) -> None:
        self._accounts[identity] = credential

    def check_account(self, identity: str, credential: str) -> None:
        known = self._accounts.get(identity)
        if known is None and self._open_registration:
            logger.info("Registering simulated account %s", identity)
            self._accounts[identity] = credential
            return
        if known is None or known != credential:
            raise AuthorizationError(f"credentials rejected for account {identity!r}")

    # -- instances ---------------------------------------------------------

    def next_addresses(self) -> tuple[str, str]:
        """Return a fresh (private, public) address pair."""
        self._ip_seq += 1
        n = self._ip_seq
        return f"10.0.{n // 250}.{n % 250 + 2}", f"203.0.113.{n % 250 + 2}"

    def capacity(self, account: str, terminal: frozenset[str]) -> Optional[int]:
        """How many more instances the account may hold, or None when unlimited."""
        if self.quota is None:
            return None
        live = sum(
            1 for i in self._instances.values()
            if i.account == account
            and i.status not in terminal
            and i.next_status not in terminal
        )
        return max(self.quota - live, 0)

    def add(self, instance: SimulatedInstance) -> SimulatedInstance:
        if instance.id in self._instances:
            raise ValueError(f"duplicate instance id {instance.id}")
        self._instances[instance.id] = instance
        self._tag_index.setdefault((instance.account, instance.tag), []).append(instance.id)
        return instance

    def get(self, account: str, instance_id: str) -> SimulatedInstance:
        instance = self._instances.get(instance_id)
        if instance is None or instance.account != account:
            raise NodeNotFoundError(instance_id)
        return instance

    def describe(self, account: str, instance_id: str) -> SimulatedInstance:
        """Read one instance, advancing any pending transition by one poll."""
        instance = self.get(account, instance_id)
        self._advance(instance)
        return instance

    def describe_all(self, account: str, tag: Optional[str] = None) -> list[SimulatedInstance]:
        if tag is not None:
            ids = self._tag_index.get((account, tag), [])
            instances = [self._instances[i] for i in ids if i in self._instances]
        else:
            instances = [i for i in self._instances.values() if i.account == account]
        for instance in instances:
            self._advance(instance)
        return sorted(instances, key=lambda i: i.id)

    def ids_with_tag(self, account: str, tag: str) -> list[str]:
        return list(self._tag_index.get((account, tag), []))

    def schedule(self, instance: SimulatedInstance, transitional: str, final: str) -> None:
        """Move the instance to `transitional` now and to `final` after settling."""
        instance.status = transitional
        instance.next_status = final
        instance.polls_remaining = self.settle_polls
        if self.settle_polls == 0:
            self._advance(instance)

    def fail_next_boots(self, count: int) -> None:
        """The next `count` boot transitions end in the adapter's failure status."""
        self._failing_boots += count

    def take_boot_failure(self) -> bool:
        if self._failing_boots > 0:
            self._failing_boots -= 1
            return True
        return False

    def _advance(self, instance: SimulatedInstance) -> None:
        if instance.next_status is None:
            return
        if instance.polls_remaining > 0:
            instance.polls_remaining -= 1
            return
        logger.debug("Instance %s settled %s -> %s", instance.id, instance.status, instance.next_status)
        instance.status, instance.next_status = instance.next_status, None

    def remove(self, instance_id: str) -> None:
        """Forget an instance entirely (providers that do not list terminated nodes)."""
        instance = self._instances.pop(instance_id, None)
        if instance is None:
            return
        ids = self._tag_index.get((instance.account, instance.tag), [])
        if instance_id in ids:
            ids.remove(instance_id)

    # -- faults ------------------------------------------------------------

    def inject_fault(self, instance_id: str, operation: str, error: Exception) -> None:
        self._faults[(instance_id, operation)] = error

    def clear_fault(self, instance_id: str, operation: str) -> None:
        self._faults.pop((instance_id, operation), None)

    def check_fault(self, instance_id: str, operation: str) -> None:
        error = self._faults.get((instance_id, operation))
        if error is not None:
            raise error

    # -- persistence -------------------------------------------------------

    def __iter__(self) -> Iterator[SimulatedInstance]:
        return iter(list(self._instances.values()))

    def to_dict(self) -> dict:
        return {
            "accounts": self._accounts,
            "instances": [dataclasses.asdict(i) for i in self._instances.values()],
            "ip_seq": self._ip_seq,
        }

    def save(self, path: str | Path) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.debug("Saved simulated backend state to %s", path)

    @classmethod
    def load(
        cls,
        path: str | Path,
        factory: Optional[Callable[[], "SimulatedBackend"]] = None,
    ) -> "SimulatedBackend":
        """Load state saved by save(); a missing file yields a fresh backend."""
        backend = factory() if factory else cls()
        try:
            with open(path) as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug("No simulated backend state at %s", path)
            return backend
        for identity, credential in data.get("accounts", {}).items():
            backend._accounts[identity] = credential
        for record in data.get("instances", []):
            backend.add(SimulatedInstance(**record))
        backend._ip_seq = data.get("ip_seq", 0)
        return backend
