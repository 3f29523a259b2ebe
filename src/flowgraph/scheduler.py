"""
Scheduler - Deterministic topological ordering of a flow graph.

Uses Kahn's algorithm with a FIFO queue. Ties are broken by ascending
node id so that an unchanged graph always yields the same order.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Dict, List, Set

from .graph import FlowGraph
from .problems import GraphCycleError, GraphHasCycle


logger = logging.getLogger(__name__)


class Scheduler:
    """
    Computes the execution order of a flow graph.

    Usage:
        order = Scheduler().order(graph)
    """

    def order(self, graph: FlowGraph) -> List[int]:
        """
        Compute a topological order of every node in the graph.

        Returns:
            Node ids such that every edge's source precedes its target

        Raises:
            GraphCycleError: If the graph has a cycle. No partial order is
                returned; the error names the nodes that lie on cycles.
        """
        node_ids = graph.node_ids()

        # Calculate in-degree for each node, one per edge
        in_degree: Dict[int, int] = {node_id: 0 for node_id in node_ids}
        for edge in graph.edges():
            in_degree[edge.target] += 1

        # Start with nodes that have no dependencies, ascending id
        queue = deque(node_id for node_id in node_ids if in_degree[node_id] == 0)
        order: List[int] = []

        while queue:
            node_id = queue.popleft()
            order.append(node_id)

            ready = []
            for edge in graph.out_edges(node_id):
                in_degree[edge.target] -= 1
                if in_degree[edge.target] == 0:
                    ready.append(edge.target)
            queue.extend(sorted(ready))

        if len(order) != len(node_ids):
            remaining = set(node_ids) - set(order)
            cycle_nodes = find_cycle_nodes(graph, remaining)
            logger.debug(f"Cycle detected involving nodes: {cycle_nodes}")
            raise GraphCycleError(GraphHasCycle(node_ids=cycle_nodes))

        return order


def find_cycle_nodes(graph: FlowGraph, candidates: Set[int]) -> List[int]:
    """
    Get the nodes among candidates that lie on a cycle.

    Kahn's algorithm leaves behind cycle members together with every node
    downstream of a cycle. Only members of a strongly connected component
    with more than one node, or nodes with a self-loop, are on a cycle.
    Tarjan's algorithm runs iteratively over the candidate subgraph.
    """
    index_of: Dict[int, int] = {}
    lowlink: Dict[int, int] = {}
    on_stack: Set[int] = set()
    stack: List[int] = []
    on_cycle: Set[int] = set()
    counter = 0

    def successors(node_id: int) -> List[int]:
        return [target for target in graph.successors(node_id) if target in candidates]

    for root in sorted(candidates):
        if root in index_of:
            continue

        index_of[root] = lowlink[root] = counter
        counter += 1
        stack.append(root)
        on_stack.add(root)
        work = [(root, iter(successors(root)))]

        while work:
            node_id, children = work[-1]
            advanced = False
            for child in children:
                if child not in index_of:
                    index_of[child] = lowlink[child] = counter
                    counter += 1
                    stack.append(child)
                    on_stack.add(child)
                    work.append((child, iter(successors(child))))
                    advanced = True
                    break
                if child in on_stack:
                    lowlink[node_id] = min(lowlink[node_id], index_of[child])
            if advanced:
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node_id])

            if lowlink[node_id] == index_of[node_id]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node_id:
                        break
                if len(component) > 1 or node_id in graph.successors(node_id):
                    on_cycle.update(component)

    return sorted(on_cycle)


__all__ = ["Scheduler", "find_cycle_nodes"]
