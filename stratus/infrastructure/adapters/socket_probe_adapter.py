"""
Socket Probe Adapter

TCP reachability check implementing SocketProbePort with asyncio streams.
A probe never raises for network conditions; refused, unreachable and
timed-out connections all read as "not open yet".
"""

import asyncio
import logging

from stratus.domain.value_objects.socket_address import SocketAddress

logger = logging.getLogger(__name__)


class AsyncioSocketProbe:
    def __init__(self, timeout: float = 5.0) -> None:
        self.timeout = timeout

    async def is_open(self, address: SocketAddress) -> bool:
        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(address.host, address.port),
                timeout=self.timeout,
            )
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug("Socket %s not open: %s", address, e)
            return False
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("Error closing probe to %s: %s", address, e)
        return True
