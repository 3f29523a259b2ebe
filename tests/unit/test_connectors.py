"""Tests for connector invokers and the HTTP client."""
from unittest.mock import Mock, patch

import pytest
import requests

from flowgraph.connectors import (
    HttpConnectorInvoker,
    StaticConnectorInvoker,
    WeatherReport,
    format_output,
    log_prefix,
)
from flowgraph.http import HttpClient
from flowgraph.models import (
    ActionKind,
    ChatConnectorConfig,
    ConnectorKind,
    FetchIssuesConfig,
    GetWeatherConfig,
    IssueTrackerConnectorConfig,
    SendMessageConfig,
    WeatherConnectorConfig,
)
from flowgraph.problems import UpstreamError


def _response(status_code=200, body=None, text=None):
    response = Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    response.text = text if text is not None else str(body)
    return response


class TestFormatOutput:
    """Test run log rendering of connector results."""

    def test_weather(self):
        report = WeatherReport(location="Paris", temperature_c=18.0, condition="Clear")
        assert format_output(ActionKind.GET_WEATHER, report) == (
            "Location: Paris. Temperature: 18°C, Condition: Clear"
        )

    def test_weather_fractional_temperature(self):
        report = WeatherReport(location="Oslo", temperature_c=-2.5, condition="Snow")
        assert "Temperature: -2.5°C" in format_output(ActionKind.GET_WEATHER, report)

    def test_issues_one_per_line(self):
        assert format_output(ActionKind.FETCH_ISSUES, ["A-1: one", "A-2: two"]) == "A-1: one\nA-2: two"

    def test_no_issues(self):
        assert format_output(ActionKind.FETCH_ISSUES, []) == ""

    def test_log_prefixes(self):
        assert [log_prefix(kind) for kind in ActionKind] == ["Weather", "Issues", "Chat response"]


class TestHttpConnectorInvoker:
    """Test gateway calls, with requests mocked out."""

    @patch("flowgraph.http.requests.request")
    def test_get_weather(self, mock_request):
        mock_request.return_value = _response(body={
            "location": "Paris", "temperature_c": 18, "condition": "Clear",
        })

        report = HttpConnectorInvoker().invoke(
            ConnectorKind.WEATHER,
            WeatherConnectorConfig(api_key="k"),
            GetWeatherConfig(city="Paris"),
        )

        assert report == WeatherReport(location="Paris", temperature_c=18, condition="Clear")
        kwargs = mock_request.call_args[1]
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "http://gateway.test/weather"
        assert kwargs["json"] == {"api_key": "k", "city": "Paris"}
        assert kwargs["timeout"] == 30.0

    @patch("flowgraph.http.requests.request")
    def test_explicit_base_url_and_timeout(self, mock_request):
        mock_request.return_value = _response(body={"issues": []})

        HttpConnectorInvoker(base_url="http://localhost:9000/", timeout=5).invoke(
            ConnectorKind.ISSUE_TRACKER,
            IssueTrackerConnectorConfig(base_url="https://jira", username="u", api_key="t"),
            FetchIssuesConfig(),
        )

        kwargs = mock_request.call_args[1]
        assert kwargs["url"] == "http://localhost:9000/jira"
        assert kwargs["timeout"] == 5

    @patch("flowgraph.http.requests.request")
    def test_weather_http_error(self, mock_request):
        mock_request.return_value = _response(401, body={"detail": "Invalid API key"})

        with pytest.raises(UpstreamError) as exc_info:
            HttpConnectorInvoker().invoke(
                ConnectorKind.WEATHER,
                WeatherConnectorConfig(api_key="bad"),
                GetWeatherConfig(city="Paris"),
            )

        assert exc_info.value.message == "HTTP error! status: 401"
        assert exc_info.value.status == 401
        assert exc_info.value.detail == "Invalid API key"

    @patch("flowgraph.http.requests.request")
    def test_weather_malformed_response(self, mock_request):
        mock_request.return_value = _response(body={"location": "Paris"})

        with pytest.raises(UpstreamError, match="Malformed weather response"):
            HttpConnectorInvoker().invoke(
                ConnectorKind.WEATHER,
                WeatherConnectorConfig(api_key="k"),
                GetWeatherConfig(city="Paris"),
            )

    @patch("flowgraph.http.requests.request")
    def test_fetch_issues(self, mock_request):
        mock_request.return_value = _response(body={"issues": ["PROJ-1: Fix login"]})

        issues = HttpConnectorInvoker().invoke(
            ConnectorKind.ISSUE_TRACKER,
            IssueTrackerConnectorConfig(base_url="https://jira", username="u", api_key="t"),
            FetchIssuesConfig(filter="project = PROJ"),
        )

        assert issues == ["PROJ-1: Fix login"]
        assert mock_request.call_args[1]["json"] == {
            "base_url": "https://jira",
            "username": "u",
            "api_key": "t",
            "jql_query": "project = PROJ",
        }

    @patch("flowgraph.http.requests.request")
    def test_fetch_issues_malformed(self, mock_request):
        mock_request.return_value = _response(body={"issues": "none"})

        with pytest.raises(UpstreamError, match="'issues' is not a list"):
            HttpConnectorInvoker().invoke(
                ConnectorKind.ISSUE_TRACKER,
                IssueTrackerConnectorConfig(base_url="https://jira", username="u", api_key="t"),
                FetchIssuesConfig(),
            )

    @patch("flowgraph.http.requests.request")
    def test_send_message(self, mock_request):
        mock_request.return_value = _response(body={"detail": "Message sent to #general"})

        confirmation = HttpConnectorInvoker().invoke(
            ConnectorKind.CHAT,
            ChatConnectorConfig(api_key="xoxb"),
            SendMessageConfig(channel="#general"),
            "hello",
        )

        assert confirmation == "Message sent to #general"
        assert mock_request.call_args[1]["json"] == {
            "api_key": "xoxb",
            "channel": "#general",
            "message": "hello",
        }

    @patch("flowgraph.http.requests.request")
    def test_send_message_error_detail(self, mock_request):
        mock_request.return_value = _response(400, body={"detail": "channel_not_found"})

        with pytest.raises(UpstreamError) as exc_info:
            HttpConnectorInvoker().invoke(
                ConnectorKind.CHAT,
                ChatConnectorConfig(api_key="xoxb"),
                SendMessageConfig(channel="#nowhere"),
                "hello",
            )

        assert str(exc_info.value) == "Chat API error: channel_not_found"
        assert exc_info.value.detail == "channel_not_found"

    @patch("flowgraph.http.requests.request")
    def test_send_message_requires_payload(self, mock_request):
        with pytest.raises(UpstreamError, match="requires a message payload") as exc_info:
            HttpConnectorInvoker().invoke(
                ConnectorKind.CHAT,
                ChatConnectorConfig(api_key="xoxb"),
                SendMessageConfig(channel="#general"),
            )

        assert exc_info.value.status is None
        mock_request.assert_not_called()

    def test_mismatched_pairing(self):
        with pytest.raises(ValueError, match="cannot run through"):
            HttpConnectorInvoker().invoke(
                ConnectorKind.CHAT,
                ChatConnectorConfig(api_key="xoxb"),
                GetWeatherConfig(city="Paris"),
            )


class TestHttpClient:
    """Test transport error mapping."""

    @patch("flowgraph.http.requests.request")
    def test_timeout(self, mock_request):
        mock_request.side_effect = requests.exceptions.Timeout()

        with pytest.raises(UpstreamError, match="timed out after 2s"):
            HttpClient(base_url="http://gateway.test", timeout=2).post("/weather", json={})

    @patch("flowgraph.http.requests.request")
    def test_connection_error(self, mock_request):
        mock_request.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(UpstreamError, match="Request failed"):
            HttpClient(base_url="http://gateway.test").post("/weather", json={})

    @patch("flowgraph.http.requests.request")
    def test_invalid_json(self, mock_request):
        mock_request.return_value = _response(body=ValueError("no json"), text="<html>")

        response = HttpClient(base_url="http://gateway.test").post("/weather")

        with pytest.raises(UpstreamError, match="Invalid JSON"):
            response.json()
        assert response.error_detail() == "<html>"

    @patch("flowgraph.http.requests.request")
    def test_headers_merged(self, mock_request):
        mock_request.return_value = _response(body={})
        client = HttpClient(default_headers={"Content-Type": "application/json"})

        client.request("GET", "http://gateway.test/health", headers={"X-Trace": "1"})

        assert mock_request.call_args[1]["headers"] == {
            "Content-Type": "application/json",
            "X-Trace": "1",
        }


class TestStaticConnectorInvoker:
    """Test canned results."""

    def test_records_calls(self, static_invoker):
        static_invoker.invoke(
            ConnectorKind.CHAT,
            ChatConnectorConfig(api_key="xoxb"),
            SendMessageConfig(channel="#general"),
            "hi",
        )
        assert static_invoker.calls[0].upstream_message == "hi"
        assert static_invoker.calls[0].action_config == {"action_kind": "SendMessage", "channel": "#general"}

    def test_missing_result(self):
        with pytest.raises(UpstreamError, match="No canned result for Weather"):
            StaticConnectorInvoker().invoke(
                ConnectorKind.WEATHER,
                WeatherConnectorConfig(api_key="k"),
                GetWeatherConfig(city="Paris"),
            )

    def test_callable_result(self):
        invoker = StaticConnectorInvoker(results={
            ConnectorKind.CHAT: lambda record: f"sent to {record.action_config['channel']}",
        })
        assert invoker.invoke(
            ConnectorKind.CHAT,
            ChatConnectorConfig(),
            SendMessageConfig(channel="#ops"),
            "hi",
        ) == "sent to #ops"
