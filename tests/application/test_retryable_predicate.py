"""Tests for RetryablePredicate driven by a fake clock."""

import asyncio

import pytest

from stratus.application.orchestration.retryable_predicate import (
    RetryablePredicate,
    socket_tester,
)
from stratus.domain.value_objects.socket_address import SocketAddress


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    async def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _true_after(attempts):
    calls = []

    def test(value):
        calls.append(value)
        return len(calls) >= attempts

    return test, calls


class TestRetryablePredicate:
    @pytest.mark.asyncio
    async def test_immediate_success(self):
        clock = FakeClock()
        test, calls = _true_after(1)
        predicate = RetryablePredicate(test, max_wait=10, period=1, clock=clock, sleep=clock.sleep)
        assert await predicate.apply("x") is True
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_true_after_k_periods(self):
        clock = FakeClock()
        test, calls = _true_after(4)
        predicate = RetryablePredicate(test, max_wait=10, period=1, clock=clock, sleep=clock.sleep)
        assert await predicate.apply("x") is True
        assert len(calls) == 4
        assert clock.sleeps == [1, 1, 1]

    @pytest.mark.asyncio
    async def test_budget_shorter_than_needed_returns_false(self):
        clock = FakeClock()
        test, calls = _true_after(5)
        predicate = RetryablePredicate(test, max_wait=2, period=1, clock=clock, sleep=clock.sleep)
        assert await predicate.apply("x") is False
        assert len(calls) == 3
        assert clock.now == 2

    @pytest.mark.asyncio
    async def test_last_sleep_clipped_to_budget(self):
        clock = FakeClock()
        predicate = RetryablePredicate(
            lambda v: False, max_wait=2.5, period=1, clock=clock, sleep=clock.sleep
        )
        assert await predicate.apply("x") is False
        assert clock.sleeps == [1, 1, 0.5]

    @pytest.mark.asyncio
    async def test_zero_budget_tests_once(self):
        clock = FakeClock()
        test, calls = _true_after(2)
        predicate = RetryablePredicate(test, max_wait=0, period=1, clock=clock, sleep=clock.sleep)
        assert await predicate.apply("x") is False
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_coroutine_test(self):
        clock = FakeClock()
        seen = []

        async def test(value):
            seen.append(value)
            return len(seen) == 2

        predicate = RetryablePredicate(test, max_wait=5, period=1, clock=clock, sleep=clock.sleep)
        assert await predicate.apply("y") is True
        assert seen == ["y", "y"]

    @pytest.mark.asyncio
    async def test_retry_on_listed_exception(self):
        clock = FakeClock()
        attempts = []

        def test(value):
            attempts.append(value)
            if len(attempts) < 3:
                raise ConnectionError("not yet")
            return True

        predicate = RetryablePredicate(
            test, max_wait=5, period=1, retry_on=(ConnectionError,),
            clock=clock, sleep=clock.sleep,
        )
        assert await predicate.apply("z") is True

    @pytest.mark.asyncio
    async def test_unlisted_exception_propagates(self):
        clock = FakeClock()

        def test(value):
            raise KeyError("bug")

        predicate = RetryablePredicate(test, max_wait=5, period=1, clock=clock, sleep=clock.sleep)
        with pytest.raises(KeyError):
            await predicate.apply("z")

    @pytest.mark.asyncio
    async def test_hanging_attempt_counts_as_false(self):
        async def hangs(value):
            await asyncio.sleep(10)
            return True

        predicate = RetryablePredicate(hangs, max_wait=0.05, period=0.01)
        assert await predicate.apply("slow") is False

    @pytest.mark.asyncio
    async def test_stateless_between_applies(self):
        clock = FakeClock()
        predicate = RetryablePredicate(
            lambda v: v == "ok", max_wait=1, period=1, clock=clock, sleep=clock.sleep
        )
        assert await predicate.apply("nope") is False
        assert await predicate.apply("ok") is True

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            RetryablePredicate(lambda v: True, max_wait=-1)
        with pytest.raises(ValueError):
            RetryablePredicate(lambda v: True, max_wait=1, period=0)


class TestSocketTester:
    @pytest.mark.asyncio
    async def test_defaults(self, socket_probe):
        tester = socket_tester(socket_probe)
        assert tester.max_wait == 60
        assert tester.period == 1
        assert await tester.apply(SocketAddress("10.0.0.1")) is True

    @pytest.mark.asyncio
    async def test_waits_for_socket(self, socket_probe):
        clock = FakeClock()
        socket_probe.open_after = 3
        tester = socket_tester(socket_probe, clock=clock, sleep=clock.sleep)
        assert await tester.apply(SocketAddress("10.0.0.1")) is True
        assert len(socket_probe.probes) == 4
        assert clock.now == 3

    @pytest.mark.asyncio
    async def test_closed_socket_gives_up(self, socket_probe):
        clock = FakeClock()
        socket_probe.closed_hosts.add("10.0.0.9")
        tester = socket_tester(socket_probe, max_wait=5, clock=clock, sleep=clock.sleep)
        assert await tester.apply(SocketAddress("10.0.0.9")) is False
        assert clock.now == 5
