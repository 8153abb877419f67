"""
Node Predicates

Reusable filters for list/run-script/destroy operations. Each returns a
plain callable so they compose with any iterable of NodeMetadata.
"""

from typing import Callable

from stratus.domain.entities.node_metadata import NodeMetadata, NodeState

NodePredicate = Callable[[NodeMetadata], bool]


def all_nodes(node: NodeMetadata) -> bool:
    return True


def terminated(node: NodeMetadata) -> bool:
    return node.state is NodeState.TERMINATED


def not_terminated(node: NodeMetadata) -> bool:
    return node.state is not NodeState.TERMINATED


def running(node: NodeMetadata) -> bool:
    return node.state is NodeState.RUNNING


def with_tag(tag: str) -> NodePredicate:
    def predicate(node: NodeMetadata) -> bool:
        return node.tag == tag
    return predicate


def running_with_tag(tag: str) -> NodePredicate:
    def predicate(node: NodeMetadata) -> bool:
        return node.state is NodeState.RUNNING and node.tag == tag
    return predicate


def with_ids(*ids: str) -> NodePredicate:
    wanted = frozenset(ids)

    def predicate(node: NodeMetadata) -> bool:
        return node.id in wanted
    return predicate
