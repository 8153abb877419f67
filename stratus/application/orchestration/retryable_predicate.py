"""
Retryable Predicate

Architectural Intent:
- Generic "wait until condition" primitive used for every readiness check
  (socket open, node RUNNING, node TERMINATED)
- Bounded by a total time budget; exhausting the budget yields False, never
  an exception and never an endless loop
- Stateless between calls: every apply() starts a fresh retry loop, so one
  instance can be shared across nodes and applied concurrently

Design Decisions:
- The test may be a plain function or a coroutine function
- Exceptions raised by the test propagate unless their type is listed in
  retry_on; callers wrap fallible tests themselves
- Clock and sleep are injectable so tests can drive time deterministically
"""

from __future__ import annotations
import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Generic, TypeVar, Union

from stratus.domain.ports.socket_probe_port import SocketProbePort
from stratus.domain.value_objects.socket_address import SocketAddress

logger = logging.getLogger(__name__)

T = TypeVar("T")

Test = Callable[[T], Union[bool, Awaitable[bool]]]


class RetryablePredicate(Generic[T]):
    def __init__(
        self,
        test: Test,
        max_wait: float,
        period: float = 1.0,
        retry_on: tuple[type[BaseException], ...] = (),
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_wait < 0:
            raise ValueError("max_wait cannot be negative")
        if period <= 0:
            raise ValueError("period must be positive")
        self.test = test
        self.max_wait = max_wait
        self.period = period
        self.retry_on = retry_on
        self._clock = clock
        self._sleep = sleep

    async def apply(self, value: T) -> bool:
        deadline = self._clock() + self.max_wait
        attempt = 0
        while True:
            attempt += 1
            if await self._evaluate(value, deadline):
                logger.debug("Predicate satisfied for %s after %d attempt(s)", value, attempt)
                return True
            remaining = deadline - self._clock()
            if remaining <= 0:
                logger.debug(
                    "Predicate not satisfied for %s within %.1fs (%d attempt(s))",
                    value, self.max_wait, attempt,
                )
                return False
            await self._sleep(min(self.period, remaining))

    async def _evaluate(self, value: T, deadline: float) -> bool:
        try:
            result = self.test(value)
            if inspect.isawaitable(result):
                # a single attempt may overrun the budget by at most one period
                timeout = max(deadline - self._clock(), self.period)
                try:
                    result = await asyncio.wait_for(result, timeout=timeout)
                except asyncio.TimeoutError:
                    logger.debug("Attempt testing %s timed out after %.1fs", value, timeout)
                    return False
            return bool(result)
        except self.retry_on as e:
            logger.debug("Retryable failure testing %s: %s", value, e)
            return False

    def __repr__(self) -> str:
        return (
            f"RetryablePredicate(test={getattr(self.test, '__name__', self.test)!r}, "
            f"max_wait={self.max_wait}, period={self.period})"
        )


def socket_tester(
    probe: SocketProbePort,
    max_wait: float = 60,
    period: float = 1,
    **kwargs,
) -> RetryablePredicate[SocketAddress]:
    """Predicate that waits for a TCP socket to accept connections (60 x 1s by default)."""
    return RetryablePredicate(probe.is_open, max_wait=max_wait, period=period, **kwargs)
