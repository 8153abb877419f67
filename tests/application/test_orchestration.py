"""Tests for per-node batching, the catalog cache and the node state waiter."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from stratus.application.orchestration import (
    MemoizedSupplier,
    NodeStateWaiter,
    gather_per_node,
)
from stratus.domain.entities.node_metadata import NodeMetadata, NodeState
from stratus.domain.errors import NodeNotFoundError, NodeProvisioningError
from stratus.domain.value_objects.credentials import Credentials
from stratus.domain.value_objects.location import Location, LocationScope

LOCATION = Location("p", LocationScope.PROVIDER)


def _node(node_id="n1", state=NodeState.PENDING, **kwargs):
    if state is NodeState.RUNNING:
        kwargs.setdefault("private_addresses", {"10.0.0.1"})
    return NodeMetadata(id=node_id, tag="web", state=state, image=None, location=LOCATION, **kwargs)


class TestGatherPerNode:
    @pytest.mark.asyncio
    async def test_collects_results_and_failures(self):
        async def step(node):
            if node.id == "bad":
                raise RuntimeError("boom")
            return node.id.upper()

        results, failures = await gather_per_node([_node("a"), _node("bad"), _node("b")], step)
        assert results == {"a": "A", "b": "B"}
        assert list(failures) == ["bad"]
        assert isinstance(failures["bad"], RuntimeError)

    @pytest.mark.asyncio
    async def test_failure_does_not_cancel_siblings(self):
        finished = []

        async def step(node):
            if node.id == "fast-fail":
                raise RuntimeError("boom")
            await asyncio.sleep(0.01)
            finished.append(node.id)
            return node

        await gather_per_node([_node("fast-fail"), _node("slow")], step)
        assert finished == ["slow"]

    @pytest.mark.asyncio
    async def test_concurrency_capped(self):
        active = 0
        peak = 0

        async def step(node):
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        await gather_per_node([_node(f"n{i}") for i in range(6)], step, max_concurrency=2)
        assert peak == 2

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        assert await gather_per_node([], AsyncMock()) == ({}, {})


class TestMemoizedSupplier:
    @pytest.mark.asyncio
    async def test_caches_within_ttl(self):
        now = [0.0]
        supplier = AsyncMock(return_value=["img"])
        cache = MemoizedSupplier(supplier, ttl=60, clock=lambda: now[0])
        assert await cache.get() == ["img"]
        now[0] = 59
        assert await cache.get() == ["img"]
        assert supplier.await_count == 1

    @pytest.mark.asyncio
    async def test_reloads_after_ttl(self):
        now = [0.0]
        supplier = AsyncMock(side_effect=[["v1"], ["v2"]])
        cache = MemoizedSupplier(supplier, ttl=60, clock=lambda: now[0])
        assert await cache.get() == ["v1"]
        now[0] = 61
        assert await cache.get() == ["v2"]

    @pytest.mark.asyncio
    async def test_invalidate(self):
        supplier = AsyncMock(side_effect=[["v1"], ["v2"]])
        cache = MemoizedSupplier(supplier, ttl=60)
        await cache.get()
        cache.invalidate()
        assert await cache.get() == ["v2"]

    @pytest.mark.asyncio
    async def test_concurrent_first_reads_share_one_call(self):
        calls = 0

        async def slow():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.01)
            return ["img"]

        cache = MemoizedSupplier(slow, ttl=60)
        await asyncio.gather(cache.get(), cache.get(), cache.get())
        assert calls == 1


class TestNodeStateWaiter:
    def _provider(self, *reads):
        provider = MagicMock()
        provider.get_node = AsyncMock(side_effect=list(reads))
        return provider

    @pytest.mark.asyncio
    async def test_waits_until_running(self):
        provider = self._provider(_node(), _node(), _node(state=NodeState.RUNNING))
        waiter = NodeStateWaiter(provider, timeout=1, period=0.001)
        node = await waiter.await_state(_node(), {NodeState.RUNNING})
        assert node.state is NodeState.RUNNING
        assert provider.get_node.await_count == 3

    @pytest.mark.asyncio
    async def test_timeout_raises(self):
        provider = MagicMock()
        provider.get_node = AsyncMock(return_value=_node())
        waiter = NodeStateWaiter(provider, timeout=0.03, period=0.01)
        with pytest.raises(NodeProvisioningError, match="did not reach RUNNING"):
            await waiter.await_state(_node(), {NodeState.RUNNING})

    @pytest.mark.asyncio
    async def test_missing_node_counts_as_terminated(self):
        provider = self._provider(NodeNotFoundError("n1"))
        waiter = NodeStateWaiter(provider, timeout=1, period=0.001)
        node = await waiter.await_state(_node(state=NodeState.RUNNING), {NodeState.TERMINATED})
        assert node.state is NodeState.TERMINATED

    @pytest.mark.asyncio
    async def test_missing_node_propagates_otherwise(self):
        provider = self._provider(NodeNotFoundError("n1"))
        waiter = NodeStateWaiter(provider, timeout=1, period=0.001)
        with pytest.raises(NodeNotFoundError):
            await waiter.await_state(_node(), {NodeState.RUNNING})

    @pytest.mark.asyncio
    async def test_keeps_credentials(self):
        creds = Credentials("root", "pw")
        provider = self._provider(_node(state=NodeState.RUNNING))
        waiter = NodeStateWaiter(provider, timeout=1, period=0.001)
        node = await waiter.await_state(_node(credentials=creds), {NodeState.RUNNING})
        assert node.credentials == creds
