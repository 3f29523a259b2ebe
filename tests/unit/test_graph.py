"""Tests for FlowGraph authoring and queries."""
import pytest
from pydantic import ValidationError

from flowgraph.graph import FlowGraph
from flowgraph.models import ConnectorKind, GetWeatherConfig, NodeKind, SendMessageConfig


def _connector(graph, kind="Weather", **fields):
    return graph.add_node(NodeKind.CONNECTOR, {"connector_kind": kind, **fields})


def _action(graph, kind="GetWeather", **fields):
    return graph.add_node(NodeKind.ACTION, {"action_kind": kind, **fields})


class TestAuthoring:
    """Test node and edge mutations."""

    def test_ids_are_sequential(self):
        graph = FlowGraph()
        assert _connector(graph) == 1
        assert _action(graph) == 2

    def test_node_ids_never_reused(self):
        graph = FlowGraph()
        first = _connector(graph)
        graph.remove_node(first)
        assert _connector(graph) == first + 1

    def test_add_edge_with_missing_endpoint(self):
        graph = FlowGraph()
        node = _connector(graph)
        assert graph.add_edge(node, 99) is None
        assert graph.add_edge(99, node) is None
        assert graph.edges() == []

    def test_self_loop_accepted(self):
        graph = FlowGraph()
        node = _action(graph)
        edge_id = graph.add_edge(node, node)
        assert edge_id is not None
        assert graph.successors(node) == [node]

    def test_parallel_edges_kept(self):
        graph = FlowGraph()
        source, target = _connector(graph), _action(graph)
        graph.add_edge(source, target)
        graph.add_edge(source, target)
        assert len(graph.in_edges(target)) == 2
        assert graph.predecessors(target) == [source]

    def test_remove_node_removes_incident_edges(self):
        graph = FlowGraph()
        weather, action = _connector(graph), _action(graph)
        chat = _connector(graph, "Chat")
        graph.add_edge(weather, action)
        graph.add_edge(action, chat)

        assert graph.remove_node(action)
        assert action not in graph
        assert graph.edges() == []
        assert graph.out_edges(weather) == []
        assert graph.in_edges(chat) == []

    def test_remove_missing(self):
        graph = FlowGraph()
        assert not graph.remove_node(1)
        assert not graph.remove_edge(1)

    def test_remove_edge(self):
        graph = FlowGraph()
        source, target = _connector(graph), _action(graph)
        edge_id = graph.add_edge(source, target)

        assert graph.remove_edge(edge_id)
        assert graph.successors(source) == []
        assert graph.edge(edge_id) is None

    def test_invalid_config_rejected(self):
        graph = FlowGraph()
        with pytest.raises(ValidationError):
            graph.add_node(NodeKind.ACTION, {"connector_kind": "Weather"})
        assert len(graph) == 0


class TestUpdateNodeConfig:
    """Test partial config updates."""

    def test_merge_fields(self):
        graph = FlowGraph()
        node = _action(graph)
        assert graph.update_node_config(node, {"city": "Oslo"})
        assert graph.node(node).config == GetWeatherConfig(city="Oslo")

    def test_kind_change_swaps_model(self):
        graph = FlowGraph()
        node = _action(graph, city="Oslo")
        graph.update_node_config(node, {"action_kind": "SendMessage", "channel": "#ops"})
        assert graph.node(node).config == SendMessageConfig(channel="#ops")

    def test_connector_kind_change(self):
        graph = FlowGraph()
        node = _connector(graph, api_key="k")
        graph.update_node_config(node, {"connector_kind": "IssueTracker"})
        assert graph.node(node).connector_kind is ConnectorKind.ISSUE_TRACKER
        assert graph.node(node).config.api_key is None

    def test_unknown_node(self):
        assert not FlowGraph().update_node_config(5, {"city": "Oslo"})

    def test_set_label(self):
        graph = FlowGraph()
        node = _action(graph)
        assert graph.set_label(node, "Forecast")
        assert graph.node(node).display_label == "Forecast"


class TestQueries:
    """Test neighbourhood queries."""

    def test_unknown_ids_give_empty_results(self):
        graph = FlowGraph()
        assert graph.node(7) is None
        assert graph.in_edges(7) == []
        assert graph.successors(7) == []

    def test_neighbors(self):
        graph = FlowGraph()
        weather, action = _connector(graph), _action(graph)
        chat = _connector(graph, "Chat")
        graph.add_edge(weather, action)
        graph.add_edge(action, chat)
        assert graph.neighbors(action) == [weather, chat]

    def test_nodes_sorted_by_id(self):
        graph = FlowGraph()
        ids = [_connector(graph) for _ in range(3)]
        assert [node.id for node in graph] == ids


class TestDefinition:
    """Test serialisation to and from GraphDefinition."""

    def test_round_trip_preserves_ids(self, weather_to_chat_graph):
        definition = weather_to_chat_graph.to_definition()
        restored = FlowGraph.from_definition(definition)

        assert restored.name == weather_to_chat_graph.name
        assert restored.nodes() == weather_to_chat_graph.nodes()
        assert restored.edges() == weather_to_chat_graph.edges()

    def test_counters_resume(self):
        graph = FlowGraph.from_definition({
            "nodes": [
                {"id": 4, "kind": "Connector", "config": {"connector_kind": "Weather"}},
                {"id": 9, "kind": "Action", "config": {"action_kind": "GetWeather"}},
            ],
            "edges": [{"id": 3, "source": 4, "target": 9}],
        })
        assert _connector(graph) == 10
        assert graph.add_edge(4, 10) == 4

    def test_edges_without_ids_are_numbered(self):
        graph = FlowGraph.from_definition({
            "nodes": [
                {"id": 1, "kind": "Connector", "config": {"connector_kind": "Weather"}},
                {"id": 2, "kind": "Action", "config": {"action_kind": "GetWeather"}},
            ],
            "edges": [{"source": 1, "target": 2}],
        })
        assert [edge.id for edge in graph.edges()] == [1]

    def test_dangling_edge_skipped(self):
        graph = FlowGraph.from_definition({
            "nodes": [{"id": 1, "kind": "Connector", "config": {"connector_kind": "Weather"}}],
            "edges": [{"id": 1, "source": 1, "target": 2}],
        })
        assert graph.edges() == []

    def test_duplicate_node_id(self):
        with pytest.raises(ValueError, match="Duplicate node id"):
            FlowGraph.from_definition({
                "nodes": [
                    {"id": 1, "kind": "Connector", "config": {"connector_kind": "Weather"}},
                    {"id": 1, "kind": "Connector", "config": {"connector_kind": "Chat"}},
                ],
            })

    def test_duplicate_edge_id(self):
        with pytest.raises(ValueError, match="Duplicate edge id"):
            FlowGraph.from_definition({
                "nodes": [
                    {"id": 1, "kind": "Connector", "config": {"connector_kind": "Weather"}},
                    {"id": 2, "kind": "Action", "config": {"action_kind": "GetWeather"}},
                ],
                "edges": [
                    {"id": 1, "source": 1, "target": 2},
                    {"id": 1, "source": 1, "target": 2},
                ],
            })
