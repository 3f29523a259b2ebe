"""
Connector invocation boundary.

The executor calls an invoker once per Action node and never looks at
vendor details. HttpConnectorInvoker talks to the connector gateway;
StaticConnectorInvoker answers from canned results for demos and tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Protocol, Union

from .config import get_settings
from .http import HttpClient
from .models import (
    ActionConfig,
    ActionKind,
    ChatConnectorConfig,
    ConnectorConfig,
    ConnectorKind,
    FetchIssuesConfig,
    GetWeatherConfig,
    IssueTrackerConnectorConfig,
    SendMessageConfig,
    WeatherConnectorConfig,
)
from .problems import UpstreamError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WeatherReport:
    """Current weather returned by a Weather connector."""
    location: str
    temperature_c: float
    condition: str


ConnectorOutput = Union[WeatherReport, List[str], str]


class ConnectorInvoker(Protocol):
    """Protocol for connector invokers."""

    def invoke(
        self,
        connector_kind: ConnectorKind,
        connector_config: ConnectorConfig,
        action_config: ActionConfig,
        upstream_message: Optional[str] = None,
    ) -> ConnectorOutput:
        """
        Perform one operation through a connector.

        Args:
            connector_kind: Kind of the Connector node
            connector_config: Credentials of the Connector node
            action_config: Parameters of the Action node
            upstream_message: Payload forwarded from an earlier action

        Returns:
            WeatherReport for Weather, a list of issue summaries for
            IssueTracker, a delivery confirmation for Chat

        Raises:
            UpstreamError: If the external service call fails, or a Chat
                action has no message payload
        """
        ...


def format_output(action_kind: ActionKind, output: ConnectorOutput) -> str:
    """Render a connector result as the text shown in the run log."""
    if action_kind is ActionKind.GET_WEATHER:
        temperature = output.temperature_c
        if isinstance(temperature, float) and temperature.is_integer():
            temperature = int(temperature)
        return (
            f"Location: {output.location}. "
            f"Temperature: {temperature}°C, Condition: {output.condition}"
        )
    if action_kind is ActionKind.FETCH_ISSUES:
        return "\n".join(output)
    if action_kind is ActionKind.SEND_MESSAGE:
        return str(output)
    raise ValueError(f"Unsupported action kind: {action_kind}")


def log_prefix(action_kind: ActionKind) -> str:
    """Prefix of the log line for a successful action."""
    return {
        ActionKind.GET_WEATHER: "Weather",
        ActionKind.FETCH_ISSUES: "Issues",
        ActionKind.SEND_MESSAGE: "Chat response",
    }[action_kind]


def _check_pairing(connector_kind: ConnectorKind, action_config: ActionConfig) -> None:
    action_kind = ActionKind(action_config.action_kind)
    if action_kind.connector_kind != connector_kind:
        raise ValueError(
            f"Action {action_kind.value} cannot run through a {connector_kind.value} connector"
        )


class HttpConnectorInvoker:
    """
    Invoker that calls the connector gateway over HTTP.

    The gateway exposes one POST endpoint per connector kind:
    /weather, /jira and /slack.

    Usage:
        invoker = HttpConnectorInvoker(base_url="http://127.0.0.1:8000")
        report = invoker.invoke(ConnectorKind.WEATHER, connector_config, action_config)
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[HttpClient] = None,
    ):
        if client is None:
            settings = get_settings()
            client = HttpClient(
                base_url=base_url or settings.gateway_url,
                default_headers={"Content-Type": "application/json"},
                timeout=timeout or settings.http_timeout_s,
            )
        self._client = client
        self._handlers: Dict[ConnectorKind, Callable[..., ConnectorOutput]] = {
            ConnectorKind.WEATHER: self._get_weather,
            ConnectorKind.ISSUE_TRACKER: self._fetch_issues,
            ConnectorKind.CHAT: self._send_message,
        }

    def invoke(
        self,
        connector_kind: ConnectorKind,
        connector_config: ConnectorConfig,
        action_config: ActionConfig,
        upstream_message: Optional[str] = None,
    ) -> ConnectorOutput:
        connector_kind = ConnectorKind(connector_kind)
        _check_pairing(connector_kind, action_config)
        return self._handlers[connector_kind](connector_config, action_config, upstream_message)

    def _get_weather(
        self,
        connector: WeatherConnectorConfig,
        action: GetWeatherConfig,
        upstream_message: Optional[str],
    ) -> WeatherReport:
        response = self._client.post(
            "/weather",
            json={"api_key": connector.api_key, "city": action.city},
        )
        response.raise_for_status()
        data = response.json()
        try:
            return WeatherReport(
                location=data["location"],
                temperature_c=data["temperature_c"],
                condition=data["condition"],
            )
        except (KeyError, TypeError) as e:
            raise UpstreamError(
                message=f"Malformed weather response: missing {e}",
                status=response.status_code,
            ) from e

    def _fetch_issues(
        self,
        connector: IssueTrackerConnectorConfig,
        action: FetchIssuesConfig,
        upstream_message: Optional[str],
    ) -> List[str]:
        response = self._client.post(
            "/jira",
            json={
                "base_url": connector.base_url,
                "username": connector.username,
                "api_key": connector.api_key,
                "jql_query": action.filter or "",
            },
        )
        response.raise_for_status()
        data = response.json()
        issues = data.get("issues") if isinstance(data, dict) else None
        if not isinstance(issues, list):
            raise UpstreamError(
                message="Malformed issue response: 'issues' is not a list",
                status=response.status_code,
            )
        return [str(issue) for issue in issues]

    def _send_message(
        self,
        connector: ChatConnectorConfig,
        action: SendMessageConfig,
        upstream_message: Optional[str],
    ) -> str:
        if upstream_message is None:
            raise UpstreamError(message="Send Message requires a message payload")
        response = self._client.post(
            "/slack",
            json={
                "api_key": connector.api_key,
                "channel": action.channel,
                "message": upstream_message,
            },
        )
        if not response.ok:
            detail = response.error_detail()
            raise UpstreamError(
                message=f"Chat API error: {detail}",
                status=response.status_code,
                detail=detail,
            )
        data = response.json()
        if isinstance(data, dict) and "detail" in data:
            return str(data["detail"])
        return str(data)


@dataclass
class InvocationRecord:
    """One call made through a StaticConnectorInvoker."""
    connector_kind: ConnectorKind
    connector_config: Dict[str, Any]
    action_config: Dict[str, Any]
    upstream_message: Optional[str]


@dataclass
class StaticConnectorInvoker:
    """
    Invoker that answers from canned results.

    results maps a connector kind to a result or to an exception that
    is raised instead. A callable result is called with the call record.
    Every call is recorded in calls.
    """
    results: Dict[ConnectorKind, Any] = field(default_factory=dict)
    calls: List[InvocationRecord] = field(default_factory=list)

    def invoke(
        self,
        connector_kind: ConnectorKind,
        connector_config: ConnectorConfig,
        action_config: ActionConfig,
        upstream_message: Optional[str] = None,
    ) -> ConnectorOutput:
        connector_kind = ConnectorKind(connector_kind)
        _check_pairing(connector_kind, action_config)
        record = InvocationRecord(
            connector_kind=connector_kind,
            connector_config=connector_config.model_dump(),
            action_config=action_config.model_dump(),
            upstream_message=upstream_message,
        )
        self.calls.append(record)

        if connector_kind not in self.results:
            raise UpstreamError(
                message=f"No canned result for {connector_kind.value}",
            )
        result = self.results[connector_kind]
        if isinstance(result, BaseException):
            raise result
        if callable(result):
            return result(record)
        return result


__all__ = [
    "ConnectorInvoker",
    "ConnectorOutput",
    "HttpConnectorInvoker",
    "InvocationRecord",
    "StaticConnectorInvoker",
    "WeatherReport",
    "format_output",
    "log_prefix",
]
