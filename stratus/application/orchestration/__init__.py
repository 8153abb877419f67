"""
Application Orchestration Package

Architectural Intent:
- Waiting, batching and caching primitives shared by the use cases
"""

from stratus.application.orchestration.retryable_predicate import (
    RetryablePredicate,
    socket_tester,
)
from stratus.application.orchestration.batch import gather_per_node
from stratus.application.orchestration.catalog_cache import MemoizedSupplier
from stratus.application.orchestration.node_waiter import NodeStateWaiter

__all__ = [
    "RetryablePredicate",
    "socket_tester",
    "gather_per_node",
    "MemoizedSupplier",
    "NodeStateWaiter",
]
