"""
Per-Node Batch Execution

Architectural Intent:
- Runs one coroutine per node concurrently and collects every outcome
- A failing node never cancels or blocks its siblings
- Concurrency is capped with a semaphore so large batches do not flood the
  provider API
"""

from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from stratus.domain.entities.node_metadata import NodeMetadata

logger = logging.getLogger(__name__)

R = TypeVar("R")


async def gather_per_node(
    nodes: Iterable[NodeMetadata],
    step: Callable[[NodeMetadata], Awaitable[R]],
    max_concurrency: int = 10,
) -> tuple[dict[str, R], dict[str, BaseException]]:
    """Return (results by node id, failures by node id)."""
    nodes = list(nodes)
    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(node: NodeMetadata) -> R:
        async with semaphore:
            return await step(node)

    outcomes = await asyncio.gather(
        *(bounded(node) for node in nodes),
        return_exceptions=True,
    )

    results: dict[str, R] = {}
    failures: dict[str, BaseException] = {}
    for node, outcome in zip(nodes, outcomes):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            logger.warning("Node %s failed: %s", node.id, outcome)
            failures[node.id] = outcome
        else:
            results[node.id] = outcome
    return results, failures
