"""
VPS Compute Provider Adapter

Architectural Intent:
- Implements ComputeProviderPort for a hosting-style VPS provider
- Simulates the provider's REST API (JSON bodies keyed "server"/"servers")
  against a SimulatedBackend; replace the _stub_* helpers with HTTP calls to
  go live, the public method signatures remain stable

Design Decisions:
- Locations form PROVIDER -> ZONE -> HOST; nodes always land on a HOST, so a
  node's location is the same as or a child of the template location
- Plans (sizes) are offered per zone; images are global
- Server status is a numeric code; unknown codes read as UNKNOWN
- Deleted servers are reported once with status 4 and then disappear, so a
  later read raises NodeNotFoundError
- Nodes log in as root with a generated password
"""

import logging
import secrets
import uuid
from typing import Optional

from stratus.domain.entities.node_metadata import NodeMetadata, NodeState
from stratus.domain.entities.template import Template
from stratus.domain.errors import ComputeError, NoMatchError
from stratus.domain.value_objects.credentials import Credentials
from stratus.domain.value_objects.image import Image, OsFamily
from stratus.domain.value_objects.location import Location, LocationScope
from stratus.domain.value_objects.size import Size
from stratus.infrastructure.adapters.simulated_backend import (
    SimulatedBackend,
    SimulatedInstance,
)

logger = logging.getLogger(__name__)

PROVIDER_ID = "vps"

STATUS_CREATING = 0
STATUS_ACTIVE = 1
STATUS_REBOOTING = 2
STATUS_DELETING = 3
STATUS_DELETED = 4
STATUS_FAILED = 5

_STATUS_MAP = {
    STATUS_CREATING: NodeState.PENDING,
    STATUS_ACTIVE: NodeState.RUNNING,
    STATUS_REBOOTING: NodeState.PENDING,
    STATUS_DELETING: NodeState.PENDING,
    STATUS_DELETED: NodeState.TERMINATED,
    STATUS_FAILED: NodeState.ERROR,
}

_TERMINAL = frozenset({str(STATUS_DELETING), str(STATUS_DELETED)})

_ZONES: dict[str, dict] = {
    "ams1": {"name": "Amsterdam 1", "hosts": ("ams1-h01", "ams1-h02")},
    "fra1": {"name": "Frankfurt 1", "hosts": ("fra1-h01",)},
}

_IMAGES: tuple[dict, ...] = (
    {"id": "debian-11", "label": "Debian 11", "distro": "debian", "version": "11"},
    {"id": "debian-12", "label": "Debian 12", "distro": "debian", "version": "12"},
    {"id": "ubuntu-2204", "label": "Ubuntu 22.04 LTS", "distro": "ubuntu", "version": "22.04"},
    {"id": "centos-7", "label": "CentOS 7", "distro": "centos", "version": "7"},
    {"id": "fedora-39", "label": "Fedora 39", "distro": "fedora", "version": "39"},
)

_PLANS: tuple[dict, ...] = (
    {"id": "vps-1", "cpus": 1, "memory_mb": 1024, "disk_gb": 25, "zones": ["ams1", "fra1"]},
    {"id": "vps-2", "cpus": 2, "memory_mb": 2048, "disk_gb": 50, "zones": ["ams1", "fra1"]},
    {"id": "vps-4", "cpus": 4, "memory_mb": 8192, "disk_gb": 160, "zones": ["ams1"]},
    {"id": "vps-8", "cpus": 8, "memory_mb": 16384, "disk_gb": 320, "zones": ["ams1"]},
)


def _make_server_id() -> str:
    return str(10_000_000 + uuid.uuid4().int % 90_000_000)


def _server_dict(instance: SimulatedInstance) -> dict:
    status = int(instance.status)
    addresses = []
    if status not in (STATUS_CREATING, STATUS_DELETED):
        addresses.append({"address": instance.public_ip, "public": True})
    if status != STATUS_DELETED:
        addresses.append({"address": instance.private_ip, "public": False})
    return {
        "id": instance.id,
        "label": instance.name,
        "status": status,
        "tags": [instance.tag],
        "image": instance.image_id,
        "plan": instance.size_id,
        "host": instance.location_id,
        "ip_addresses": addresses,
        "root_password": instance.login_secret,
        "metadata": dict(instance.metadata),
    }


def _stub_get_servers(
    backend: SimulatedBackend,
    account: str,
    tag: Optional[str] = None,
    server_id: Optional[str] = None,
) -> dict:
    """
    Simulate GET /servers (optionally ?tag=) or GET /servers/{id}.

    Servers that finished deleting are returned once with status 4 and then
    dropped from the account.
    """
    if server_id is not None:
        instances = [backend.describe(account, server_id)]
    else:
        instances = backend.describe_all(account, tag)
    servers = [_server_dict(inst) for inst in instances]
    for inst in instances:
        if inst.status == str(STATUS_DELETED):
            backend.remove(inst.id)
    return {"servers": servers}


def _stub_post_servers(
    backend: SimulatedBackend,
    account: str,
    tag: str,
    count: int,
    image_id: str,
    plan_id: str,
    host: str,
    metadata: Optional[dict[str, str]] = None,
) -> dict:
    """Simulate POST /servers {"image", "plan", "host", "tags", "quantity"}."""
    capacity = backend.capacity(account, _TERMINAL)
    created = count if capacity is None else min(count, capacity)
    servers = []
    for _ in range(created):
        private_ip, public_ip = backend.next_addresses()
        instance = SimulatedInstance(
            id=_make_server_id(),
            account=account,
            tag=tag,
            name=f"{tag}-{secrets.token_hex(3)}",
            image_id=image_id,
            size_id=plan_id,
            location_id=host,
            status=str(STATUS_CREATING),
            private_ip=private_ip,
            public_ip=public_ip,
            login_user="root",
            login_secret=secrets.token_urlsafe(16),
            metadata=dict(metadata or {}),
        )
        backend.add(instance)
        final = STATUS_FAILED if backend.take_boot_failure() else STATUS_ACTIVE
        backend.schedule(instance, str(STATUS_CREATING), str(final))
        servers.append(_server_dict(instance))
    return {"servers": servers}


def _stub_post_action(backend: SimulatedBackend, account: str, server_id: str, action: str) -> dict:
    """Simulate POST /servers/{id}/actions {"type": "reboot"}."""
    instance = backend.get(account, server_id)
    backend.check_fault(server_id, action)
    if action == "reboot" and instance.status == str(STATUS_ACTIVE):
        backend.schedule(instance, str(STATUS_REBOOTING), str(STATUS_ACTIVE))
    return {"action": {"type": action, "status": "in-progress"}}


def _stub_delete_server(backend: SimulatedBackend, account: str, server_id: str) -> None:
    """Simulate DELETE /servers/{id}."""
    instance = backend.get(account, server_id)
    backend.check_fault(server_id, "destroy")
    if instance.status not in _TERMINAL and instance.next_status != str(STATUS_DELETED):
        backend.schedule(instance, str(STATUS_DELETING), str(STATUS_DELETED))


class VpsComputeAdapter:
    """VPS hosting provider adapter (zones with physical hosts)."""

    def __init__(self, backend: SimulatedBackend, identity: str, credential: str) -> None:
        self.backend = backend
        self.identity = identity
        self._credential = credential
        self._closed = False
        self._images = {img["id"]: img for img in _IMAGES}
        self._locations = self._build_locations()
        logger.debug("VpsComputeAdapter initialised (account=%s)", identity)

    @staticmethod
    def _build_locations() -> dict[str, Location]:
        locations = {PROVIDER_ID: Location(PROVIDER_ID, LocationScope.PROVIDER, "VPS hosting")}
        for zone_id, zone in _ZONES.items():
            locations[zone_id] = Location(zone_id, LocationScope.ZONE, zone["name"], PROVIDER_ID)
            for host in zone["hosts"]:
                locations[host] = Location(host, LocationScope.HOST, host, zone_id)
        return locations

    def _check_open(self) -> None:
        if self._closed:
            raise ComputeError("vps session is closed")

    @staticmethod
    def _to_image(raw: dict) -> Image:
        return Image(
            id=raw["id"],
            name=raw["label"],
            os_family=OsFamily.parse(raw["distro"]),
            os_description=raw["label"],
            version=raw["version"],
        )

    async def list_images(self) -> list[Image]:
        self._check_open()
        return [self._to_image(raw) for raw in _IMAGES]

    async def list_sizes(self) -> list[Size]:
        self._check_open()
        return [
            Size(
                id=raw["id"],
                cores=raw["cpus"],
                ram=raw["memory_mb"],
                disk=raw["disk_gb"],
                location_ids=frozenset(raw["zones"]),
            )
            for raw in _PLANS
        ]

    async def list_assignable_locations(self) -> list[Location]:
        self._check_open()
        return list(self._locations.values())

    async def authenticate(self) -> None:
        self._check_open()
        logger.debug("VPS GET /account (user=%s)", self.identity)
        self.backend.check_account(self.identity, self._credential)

    def _host_for(self, location: Location) -> str:
        if location.scope is LocationScope.HOST:
            return location.id
        if location.scope is LocationScope.ZONE:
            zone_ids = [location.id]
        else:
            zone_ids = sorted(_ZONES)
        for zone_id in zone_ids:
            hosts = _ZONES.get(zone_id, {}).get("hosts", ())
            if hosts:
                return min(hosts)
        raise NoMatchError(f"no host available in {location}")

    async def create_nodes(self, tag: str, count: int, template: Template) -> list[NodeMetadata]:
        self._check_open()
        if template.image.id not in self._images:
            raise NoMatchError(f"unknown image {template.image.id}")
        host = self._host_for(template.location)
        metadata = None
        if template.options.is_include_metadata:
            metadata = {"plan": template.size.id, "host": host, "image": template.image.id}
        logger.info(
            "VPS POST /servers: tag=%s quantity=%d plan=%s image=%s host=%s",
            tag, count, template.size.id, template.image.id, host,
        )
        response = _stub_post_servers(
            self.backend, self.identity, tag, count,
            template.image.id, template.size.id, host, metadata,
        )
        return [self._to_node(server) for server in response["servers"]]

    def _to_node(self, server: dict) -> NodeMetadata:
        state = _STATUS_MAP.get(server["status"], NodeState.UNKNOWN)
        if state is NodeState.UNKNOWN:
            logger.warning("Server %s has unrecognised status %r", server["id"], server["status"])
        public = {a["address"] for a in server["ip_addresses"] if a["public"]}
        private = {a["address"] for a in server["ip_addresses"] if not a["public"]}
        return NodeMetadata(
            id=server["id"],
            tag=server["tags"][0],
            state=state,
            image=self._to_image(self._images[server["image"]]),
            location=self._locations[server["host"]],
            public_addresses=frozenset(public),
            private_addresses=frozenset(private),
            credentials=Credentials("root", server["root_password"]),
            name=server["label"],
            extra=server["metadata"],
        )

    async def list_nodes(self, tag: Optional[str] = None) -> list[NodeMetadata]:
        self._check_open()
        response = _stub_get_servers(self.backend, self.identity, tag=tag)
        return [self._to_node(server) for server in response["servers"]]

    async def get_node(self, node_id: str) -> NodeMetadata:
        self._check_open()
        response = _stub_get_servers(self.backend, self.identity, server_id=node_id)
        return self._to_node(response["servers"][0])

    async def reboot_node(self, node_id: str) -> None:
        self._check_open()
        logger.info("VPS POST /servers/%s/actions reboot", node_id)
        _stub_post_action(self.backend, self.identity, node_id, "reboot")

    async def destroy_node(self, node_id: str) -> None:
        self._check_open()
        logger.info("VPS DELETE /servers/%s", node_id)
        _stub_delete_server(self.backend, self.identity, node_id)

    async def reboot_nodes(self, tag: str) -> None:
        for node_id in self.backend.ids_with_tag(self.identity, tag):
            await self.reboot_node(node_id)

    async def destroy_nodes(self, tag: str) -> None:
        for node_id in self.backend.ids_with_tag(self.identity, tag):
            await self.destroy_node(node_id)

    async def close(self) -> None:
        self._closed = True
