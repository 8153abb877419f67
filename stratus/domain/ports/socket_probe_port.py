from typing import Protocol, runtime_checkable

from stratus.domain.value_objects.socket_address import SocketAddress


@runtime_checkable
class SocketProbePort(Protocol):
    """Reachability test: can a TCP connection be opened to the address right now?"""

    async def is_open(self, address: SocketAddress) -> bool: ...
