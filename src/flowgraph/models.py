"""
Flow Models - Typed nodes, edges and the serialisable graph definition.

Node kind, connector kind and action kind are closed enums, and node
configs are discriminated unions keyed by the connector or action kind.
Credential and parameter fields are optional so that a node can be
created before the user has filled in its properties; completeness is
checked by the validator before a run.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class NodeKind(str, Enum):
    """Kind of a graph node."""
    CONNECTOR = "Connector"
    ACTION = "Action"


class ConnectorKind(str, Enum):
    """External service a Connector node holds credentials for."""
    WEATHER = "Weather"
    ISSUE_TRACKER = "IssueTracker"
    CHAT = "Chat"


class ActionKind(str, Enum):
    """Operation an Action node performs through its Connector."""
    GET_WEATHER = "GetWeather"
    FETCH_ISSUES = "FetchIssues"
    SEND_MESSAGE = "SendMessage"

    @property
    def connector_kind(self) -> ConnectorKind:
        """Connector kind this action must be wired to."""
        return _ACTION_CONNECTORS[self]

    @property
    def display_name(self) -> str:
        return _ACTION_NAMES[self]

    @property
    def forwards_upstream_output(self) -> bool:
        """True if the action sends a result produced earlier in the run."""
        return self is ActionKind.SEND_MESSAGE


_ACTION_CONNECTORS: Dict[ActionKind, ConnectorKind] = {
    ActionKind.GET_WEATHER: ConnectorKind.WEATHER,
    ActionKind.FETCH_ISSUES: ConnectorKind.ISSUE_TRACKER,
    ActionKind.SEND_MESSAGE: ConnectorKind.CHAT,
}

_ACTION_NAMES: Dict[ActionKind, str] = {
    ActionKind.GET_WEATHER: "Get Weather",
    ActionKind.FETCH_ISSUES: "Fetch Issues",
    ActionKind.SEND_MESSAGE: "Send Message",
}


def actions_for(connector_kind: ConnectorKind) -> List[ActionKind]:
    """Get the actions available through a connector kind."""
    return [
        action for action, kind in _ACTION_CONNECTORS.items()
        if kind == connector_kind
    ]


class _NodeConfig(BaseModel):
    """Base for node configs."""
    model_config = ConfigDict(extra="forbid")

    # Fields that must be non-empty at run time
    required_fields: ClassVar[Tuple[str, ...]] = ()

    def missing_fields(self) -> List[str]:
        """Get names of required fields that are not populated."""
        missing = []
        for name in self.required_fields:
            value = getattr(self, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(name)
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


# ---------------------------------------------------------------------------
# Connector configs
# ---------------------------------------------------------------------------

class WeatherConnectorConfig(_NodeConfig):
    connector_kind: Literal["Weather"] = "Weather"
    api_key: Optional[str] = None

    required_fields: ClassVar[Tuple[str, ...]] = ("api_key",)


class IssueTrackerConnectorConfig(_NodeConfig):
    connector_kind: Literal["IssueTracker"] = "IssueTracker"
    base_url: Optional[str] = None
    username: Optional[str] = None
    api_key: Optional[str] = None

    required_fields: ClassVar[Tuple[str, ...]] = ("base_url", "username", "api_key")


class ChatConnectorConfig(_NodeConfig):
    connector_kind: Literal["Chat"] = "Chat"
    api_key: Optional[str] = None

    required_fields: ClassVar[Tuple[str, ...]] = ("api_key",)


ConnectorConfig = Annotated[
    Union[WeatherConnectorConfig, IssueTrackerConnectorConfig, ChatConnectorConfig],
    Field(discriminator="connector_kind"),
]


# ---------------------------------------------------------------------------
# Action configs
# ---------------------------------------------------------------------------

class GetWeatherConfig(_NodeConfig):
    action_kind: Literal["GetWeather"] = "GetWeather"
    city: Optional[str] = None

    required_fields: ClassVar[Tuple[str, ...]] = ("city",)


class FetchIssuesConfig(_NodeConfig):
    action_kind: Literal["FetchIssues"] = "FetchIssues"
    # Empty filter fetches every issue visible to the user
    filter: str = ""


class SendMessageConfig(_NodeConfig):
    action_kind: Literal["SendMessage"] = "SendMessage"
    channel: Optional[str] = None

    required_fields: ClassVar[Tuple[str, ...]] = ("channel",)


ActionConfig = Annotated[
    Union[GetWeatherConfig, FetchIssuesConfig, SendMessageConfig],
    Field(discriminator="action_kind"),
]

NodeConfig = Union[
    WeatherConnectorConfig,
    IssueTrackerConnectorConfig,
    ChatConnectorConfig,
    GetWeatherConfig,
    FetchIssuesConfig,
    SendMessageConfig,
]

CONNECTOR_CONFIGS: Dict[ConnectorKind, type] = {
    ConnectorKind.WEATHER: WeatherConnectorConfig,
    ConnectorKind.ISSUE_TRACKER: IssueTrackerConnectorConfig,
    ConnectorKind.CHAT: ChatConnectorConfig,
}

ACTION_CONFIGS: Dict[ActionKind, type] = {
    ActionKind.GET_WEATHER: GetWeatherConfig,
    ActionKind.FETCH_ISSUES: FetchIssuesConfig,
    ActionKind.SEND_MESSAGE: SendMessageConfig,
}

_connector_config_adapter: TypeAdapter = TypeAdapter(ConnectorConfig)
_action_config_adapter: TypeAdapter = TypeAdapter(ActionConfig)


def parse_config(kind: NodeKind, data: Union[Dict[str, Any], NodeConfig]) -> NodeConfig:
    """
    Parse a config dict for a node kind.

    Raises:
        pydantic.ValidationError: If the data does not match the kind
    """
    kind = NodeKind(kind)
    if isinstance(data, BaseModel):
        data = data.model_dump()
    data = {
        key: value.value if isinstance(value, Enum) else value
        for key, value in data.items()
    }
    if kind is NodeKind.CONNECTOR:
        return _connector_config_adapter.validate_python(data)
    return _action_config_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# Nodes and edges
# ---------------------------------------------------------------------------

class Node(BaseModel):
    """
    A node in a flow graph.

    Example: {"id": 2, "kind": "Action", "config": {"action_kind": "GetWeather", "city": "Paris"}}
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Node ID (unique, never reused)")
    kind: NodeKind
    config: NodeConfig
    label: Optional[str] = Field(None, description="User-facing node label")

    @property
    def is_connector(self) -> bool:
        return self.kind is NodeKind.CONNECTOR

    @property
    def is_action(self) -> bool:
        return self.kind is NodeKind.ACTION

    @model_validator(mode="after")
    def check_config_matches_kind(self) -> "Node":
        expected = "connector_kind" if self.kind is NodeKind.CONNECTOR else "action_kind"
        if not hasattr(self.config, expected):
            raise ValueError(f"{self.kind.value} node requires a config with {expected}")
        return self

    @property
    def connector_kind(self) -> Optional[ConnectorKind]:
        value = getattr(self.config, "connector_kind", None)
        return ConnectorKind(value) if value is not None else None

    @property
    def action_kind(self) -> Optional[ActionKind]:
        value = getattr(self.config, "action_kind", None)
        return ActionKind(value) if value is not None else None

    @property
    def display_label(self) -> str:
        """Label shown to the user, falling back to the node's kind."""
        if self.label:
            return self.label
        if self.action_kind is not None:
            return self.action_kind.display_name
        if self.connector_kind is not None:
            return f"{self.connector_kind.value} Connector"
        return self.kind.value


class Edge(BaseModel):
    """Directed edge: the source's output or identity feeds the target."""
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Edge ID (unique, never reused)")
    source: int
    target: int


# ---------------------------------------------------------------------------
# Serialisable graph definition
# ---------------------------------------------------------------------------

class NodeDefinition(BaseModel):
    """Node entry of a graph definition."""
    id: int = Field(..., ge=1)
    kind: NodeKind
    config: Dict[str, Any] = Field(default_factory=dict)
    label: Optional[str] = None


class EdgeDefinition(BaseModel):
    """Edge entry of a graph definition. The id is assigned on load if omitted."""
    id: Optional[int] = Field(None, ge=1)
    source: int
    target: int


class GraphDefinition(BaseModel):
    """
    Complete graph definition.

    This is the JSON form used by the command line and the HTTP API.
    """
    name: str = Field("Untitled Flow", description="Flow name")
    nodes: List[NodeDefinition] = Field(default_factory=list)
    edges: List[EdgeDefinition] = Field(default_factory=list)


def parse_graph(data: Dict[str, Any]) -> GraphDefinition:
    """Parse graph JSON into GraphDefinition."""
    return GraphDefinition.model_validate(data)


__all__ = [
    "ACTION_CONFIGS",
    "CONNECTOR_CONFIGS",
    "ActionConfig",
    "ActionKind",
    "ChatConnectorConfig",
    "ConnectorConfig",
    "ConnectorKind",
    "Edge",
    "EdgeDefinition",
    "FetchIssuesConfig",
    "GetWeatherConfig",
    "GraphDefinition",
    "IssueTrackerConnectorConfig",
    "Node",
    "NodeConfig",
    "NodeDefinition",
    "NodeKind",
    "SendMessageConfig",
    "WeatherConnectorConfig",
    "actions_for",
    "parse_config",
    "parse_graph",
]
