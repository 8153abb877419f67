"""
Catalog Cache

Memoises provider catalog reads (images, sizes, locations) for a fixed TTL so
repeated listings are fast and structurally stable. Concurrent first reads
share one provider call.
"""

from __future__ import annotations
import asyncio
import time
from typing import Awaitable, Callable, Generic, Optional, TypeVar

T = TypeVar("T")


class MemoizedSupplier(Generic[T]):
    def __init__(
        self,
        supplier: Callable[[], Awaitable[T]],
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._supplier = supplier
        self._ttl = ttl
        self._clock = clock
        self._value: Optional[T] = None
        self._expires_at = 0.0
        self._loaded = False
        self._lock = asyncio.Lock()

    async def get(self) -> T:
        if self._fresh():
            return self._value
        async with self._lock:
            if not self._fresh():
                self._value = await self._supplier()
                self._expires_at = self._clock() + self._ttl
                self._loaded = True
        return self._value

    def invalidate(self) -> None:
        self._loaded = False
        self._value = None

    def _fresh(self) -> bool:
        return self._loaded and self._clock() < self._expires_at
