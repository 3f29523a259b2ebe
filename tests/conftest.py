"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables
os.environ["FLOWGRAPH_ENV"] = "test"
os.environ["FLOWGRAPH_PACING_DELAY_S"] = "0"
os.environ["FLOWGRAPH_LOG_FORMAT"] = "text"
os.environ["FLOWGRAPH_GATEWAY_URL"] = "http://gateway.test"

from flowgraph.config import reset_settings  # noqa: E402
from flowgraph.connectors import StaticConnectorInvoker, WeatherReport  # noqa: E402
from flowgraph.graph import FlowGraph  # noqa: E402
from flowgraph.models import ConnectorKind, NodeKind  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings():
    """Reload settings from the environment for every test."""
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def weather_graph():
    """Weather connector wired to a Get Weather action (ids 1 and 2)."""
    graph = FlowGraph(name="Weather")
    weather = graph.add_node(NodeKind.CONNECTOR, {"connector_kind": "Weather", "api_key": "k"})
    action = graph.add_node(NodeKind.ACTION, {"action_kind": "GetWeather", "city": "Paris"})
    graph.add_edge(weather, action)
    return graph


@pytest.fixture
def weather_to_chat_graph():
    """
    Weather -> Get Weather -> Chat -> Send Message.

    Node ids: 1 Weather, 2 Get Weather, 3 Chat, 4 Send Message.
    """
    graph = FlowGraph(name="Weather to Chat")
    weather = graph.add_node(NodeKind.CONNECTOR, {"connector_kind": "Weather", "api_key": "k"})
    get_weather = graph.add_node(NodeKind.ACTION, {"action_kind": "GetWeather", "city": "Paris"})
    chat = graph.add_node(NodeKind.CONNECTOR, {"connector_kind": "Chat", "api_key": "xoxb"})
    send = graph.add_node(NodeKind.ACTION, {"action_kind": "SendMessage", "channel": "#general"})
    graph.add_edge(weather, get_weather)
    graph.add_edge(get_weather, chat)
    graph.add_edge(chat, send)
    return graph


@pytest.fixture
def paris_report():
    return WeatherReport(location="Paris", temperature_c=18, condition="Cloudy")


@pytest.fixture
def static_invoker(paris_report):
    """Invoker answering every connector kind successfully."""
    return StaticConnectorInvoker(results={
        ConnectorKind.WEATHER: paris_report,
        ConnectorKind.ISSUE_TRACKER: ["PROJ-1: Fix login", "PROJ-2: Update docs"],
        ConnectorKind.CHAT: "Message sent",
    })
