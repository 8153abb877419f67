"""
Compute Provider Port

Architectural Intent:
- Single capability interface every provider backend implements
- Abstracts provider-specific node creation, discovery, reboot and teardown
- Implemented by the simulated EC2-like and VPS-like adapters

Design Decisions:
- Uses Protocol for structural typing (no inheritance needed); the backend
  is chosen once, when the context is created
- The tag is an opaque batch-identity string; the adapter keeps its own
  tag -> node ids index
- Per-node reboot/destroy exist alongside the tag-wide calls so the core can
  apply best-effort semantics one node at a time
"""

from typing import Optional, Protocol, runtime_checkable

from stratus.domain.entities.node_metadata import NodeMetadata
from stratus.domain.entities.template import Template
from stratus.domain.value_objects.image import Image
from stratus.domain.value_objects.location import Location
from stratus.domain.value_objects.size import Size


@runtime_checkable
class ComputeProviderPort(Protocol):
    """Port for provider-side node and catalog operations."""

    async def authenticate(self) -> None:
        """Validate account credentials; raises AuthorizationError when rejected."""
        ...

    async def create_nodes(self, tag: str, count: int, template: Template) -> list[NodeMetadata]:
        """Request `count` nodes tagged `tag`; returned nodes are usually PENDING."""
        ...

    async def list_nodes(self, tag: Optional[str] = None) -> list[NodeMetadata]:
        """List nodes, including TERMINATED ones still reported by the provider."""
        ...

    async def get_node(self, node_id: str) -> NodeMetadata:
        """Fresh read of one node; raises NodeNotFoundError if unknown."""
        ...

    async def reboot_node(self, node_id: str) -> None: ...

    async def destroy_node(self, node_id: str) -> None: ...

    async def reboot_nodes(self, tag: str) -> None: ...

    async def destroy_nodes(self, tag: str) -> None: ...

    async def list_images(self) -> list[Image]: ...

    async def list_sizes(self) -> list[Size]: ...

    async def list_assignable_locations(self) -> list[Location]: ...

    async def close(self) -> None:
        """Release any session state held by the adapter."""
        ...
