"""
Flow Graph - Nodes and directed edges with adjacency indices.

The graph is mutated only by the authoring surface. The validator,
scheduler and executor treat it as read-only. In-edge and out-edge
indices are kept in step with every mutation so that neighbourhood
queries never rescan the edge list.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from .models import (
    Edge,
    EdgeDefinition,
    GraphDefinition,
    Node,
    NodeConfig,
    NodeDefinition,
    NodeKind,
    parse_config,
)


logger = logging.getLogger(__name__)


class FlowGraph:
    """
    Directed graph of Connector and Action nodes.

    Lookups never raise: unknown ids give None or an empty list, and
    callers check existence explicitly.

    Usage:
        graph = FlowGraph()
        weather = graph.add_node(NodeKind.CONNECTOR, {"connector_kind": "Weather", "api_key": "k"})
        action = graph.add_node(NodeKind.ACTION, {"action_kind": "GetWeather", "city": "Paris"})
        graph.add_edge(weather, action)
    """

    def __init__(self, name: str = "Untitled Flow"):
        self.name = name
        self._nodes: Dict[int, Node] = {}
        # Insertion ordered; the order matters only to the UI
        self._edges: Dict[int, Edge] = {}
        self._in: Dict[int, List[int]] = {}
        self._out: Dict[int, List[int]] = {}
        self._next_node_id = 1
        self._next_edge_id = 1

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def nodes(self) -> List[Node]:
        """Get all nodes in ascending id order."""
        return [self._nodes[node_id] for node_id in sorted(self._nodes)]

    def node_ids(self) -> List[int]:
        return sorted(self._nodes)

    def edges(self) -> List[Edge]:
        """Get all edges in insertion order."""
        return list(self._edges.values())

    def node(self, node_id: int) -> Optional[Node]:
        return self._nodes.get(node_id)

    def edge(self, edge_id: int) -> Optional[Edge]:
        return self._edges.get(edge_id)

    def in_edges(self, node_id: int) -> List[Edge]:
        """Get edges targeting a node, in insertion order."""
        return [self._edges[edge_id] for edge_id in self._in.get(node_id, [])]

    def out_edges(self, node_id: int) -> List[Edge]:
        """Get edges leaving a node, in insertion order."""
        return [self._edges[edge_id] for edge_id in self._out.get(node_id, [])]

    def predecessors(self, node_id: int) -> List[int]:
        """Get distinct source ids of in-edges, in edge order."""
        return list(dict.fromkeys(edge.source for edge in self.in_edges(node_id)))

    def successors(self, node_id: int) -> List[int]:
        """Get distinct target ids of out-edges, in edge order."""
        return list(dict.fromkeys(edge.target for edge in self.out_edges(node_id)))

    def neighbors(self, node_id: int) -> List[int]:
        """Get ids of all nodes adjacent to a node in either direction."""
        return list(dict.fromkeys(self.predecessors(node_id) + self.successors(node_id)))

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes())

    # ------------------------------------------------------------------
    # Authoring
    # ------------------------------------------------------------------

    def add_node(
        self,
        kind: Union[NodeKind, str],
        config: Union[Mapping[str, Any], NodeConfig],
        label: Optional[str] = None,
    ) -> int:
        """
        Add a node and return its id.

        Raises:
            pydantic.ValidationError: If the config does not fit the kind
        """
        kind = NodeKind(kind)
        if isinstance(config, Mapping):
            config = dict(config)
        node_id = self._next_node_id
        self._insert_node(Node(id=node_id, kind=kind, config=parse_config(kind, config), label=label))
        return node_id

    def remove_node(self, node_id: int) -> bool:
        """Remove a node and every edge touching it."""
        if node_id not in self._nodes:
            return False

        incident = self._in.get(node_id, []) + self._out.get(node_id, [])
        for edge_id in dict.fromkeys(incident):
            self.remove_edge(edge_id)

        del self._nodes[node_id]
        self._in.pop(node_id, None)
        self._out.pop(node_id, None)
        logger.debug(f"Removed node {node_id}")
        return True

    def add_edge(self, source: int, target: int) -> Optional[int]:
        """
        Add a directed edge and return its id.

        Returns None when either endpoint does not exist. Self-loops are
        accepted here and rejected as a cycle when the graph is validated.
        """
        if source not in self._nodes or target not in self._nodes:
            logger.debug(f"Rejected edge {source} -> {target}: missing endpoint")
            return None

        edge_id = self._next_edge_id
        self._insert_edge(Edge(id=edge_id, source=source, target=target))
        return edge_id

    def remove_edge(self, edge_id: int) -> bool:
        edge = self._edges.pop(edge_id, None)
        if edge is None:
            return False
        self._out[edge.source].remove(edge_id)
        self._in[edge.target].remove(edge_id)
        return True

    def update_node_config(self, node_id: int, partial: Mapping[str, Any]) -> bool:
        """
        Merge partial config values into a node's config.

        The merged config is validated again, so changing the connector or
        action kind swaps the config model.

        Raises:
            pydantic.ValidationError: If the merged config is invalid
        """
        node = self._nodes.get(node_id)
        if node is None:
            return False

        current = node.config.model_dump()
        kind_key = "connector_kind" if node.is_connector else "action_kind"
        if kind_key in partial and partial[kind_key] != current[kind_key]:
            # Fields of the old config model do not carry over to a new kind
            merged = dict(partial)
        else:
            merged = {**current, **dict(partial)}

        self._nodes[node_id] = node.model_copy(update={"config": parse_config(node.kind, merged)})
        return True

    def set_label(self, node_id: int, label: Optional[str]) -> bool:
        node = self._nodes.get(node_id)
        if node is None:
            return False
        self._nodes[node_id] = node.model_copy(update={"label": label})
        return True

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def to_definition(self) -> GraphDefinition:
        return GraphDefinition(
            name=self.name,
            nodes=[
                NodeDefinition(
                    id=node.id,
                    kind=node.kind,
                    config=node.config.model_dump(),
                    label=node.label,
                )
                for node in self.nodes()
            ],
            edges=[
                EdgeDefinition(id=edge.id, source=edge.source, target=edge.target)
                for edge in self.edges()
            ],
        )

    @classmethod
    def from_definition(cls, definition: Union[GraphDefinition, Dict[str, Any]]) -> "FlowGraph":
        """
        Build a graph from its definition.

        Id counters resume after the largest id in the definition. Edges
        whose endpoints are missing are rejected the same way add_edge
        rejects them.

        Raises:
            ValueError: If two nodes or two edges share an id
            pydantic.ValidationError: If a node config is invalid
        """
        if isinstance(definition, dict):
            definition = GraphDefinition.model_validate(definition)

        graph = cls(name=definition.name)
        for entry in definition.nodes:
            if entry.id in graph._nodes:
                raise ValueError(f"Duplicate node id: {entry.id}")
            graph._insert_node(Node(
                id=entry.id,
                kind=entry.kind,
                config=parse_config(entry.kind, entry.config),
                label=entry.label,
            ))

        explicit_ids = [entry.id for entry in definition.edges if entry.id is not None]
        if len(explicit_ids) != len(set(explicit_ids)):
            raise ValueError("Duplicate edge id in definition")
        if explicit_ids:
            graph._next_edge_id = max(explicit_ids) + 1

        for entry in definition.edges:
            if entry.source not in graph._nodes or entry.target not in graph._nodes:
                logger.warning(
                    f"Skipping edge {entry.source} -> {entry.target}: missing endpoint"
                )
                continue
            edge_id = entry.id if entry.id is not None else graph._next_edge_id
            graph._insert_edge(Edge(id=edge_id, source=entry.source, target=entry.target))

        return graph

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _insert_node(self, node: Node) -> None:
        self._nodes[node.id] = node
        self._in.setdefault(node.id, [])
        self._out.setdefault(node.id, [])
        self._next_node_id = max(self._next_node_id, node.id + 1)
        logger.debug(f"Added {node.kind.value} node {node.id}")

    def _insert_edge(self, edge: Edge) -> None:
        self._edges[edge.id] = edge
        self._out[edge.source].append(edge.id)
        self._in[edge.target].append(edge.id)
        self._next_edge_id = max(self._next_edge_id, edge.id + 1)


__all__ = ["FlowGraph"]
