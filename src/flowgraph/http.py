"""
HTTP Client - Timeout-bounded JSON requests to the connector gateway.

Every request carries an explicit timeout. Transport failures and
non-2xx responses are raised as UpstreamError so the executor can
isolate them to the node that made the call.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests
from requests.exceptions import RequestException, Timeout

from .problems import UpstreamError


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


class HttpResponse:
    """
    Wrapper for HTTP response with convenient accessors.
    """

    def __init__(self, response: requests.Response):
        self._response = response

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def text(self) -> str:
        return self._response.text

    @property
    def ok(self) -> bool:
        """True if status code is 2xx."""
        return self._response.ok

    def json(self) -> Any:
        """
        Parse response as JSON.

        Raises:
            UpstreamError: If the body is not JSON
        """
        try:
            return self._response.json()
        except ValueError as e:
            raise UpstreamError(
                message="Invalid JSON in upstream response",
                status=self.status_code,
                detail=self.text[:1000] if self.text else None,
            ) from e

    def error_detail(self) -> Optional[str]:
        """Get the 'detail' field of a JSON error body, or the raw body."""
        try:
            body = self._response.json()
        except ValueError:
            return self.text[:1000] if self.text else None
        if isinstance(body, dict) and "detail" in body:
            detail = body["detail"]
            return detail if isinstance(detail, str) else str(detail)
        return self.text[:1000] if self.text else None

    def raise_for_status(self) -> None:
        """Raise UpstreamError if status code indicates error."""
        if not self.ok:
            detail = self.error_detail()
            raise UpstreamError(
                message=f"HTTP error! status: {self.status_code}",
                status=self.status_code,
                detail=detail,
            )


class HttpClient:
    """
    HTTP client with timeout enforcement.

    Usage:
        client = HttpClient(base_url="http://127.0.0.1:8000")
        response = client.post("/weather", json={"api_key": "k", "city": "Paris"})
        data = response.json()
    """

    def __init__(
        self,
        base_url: str = "",
        default_headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Initialize HTTP client.

        Args:
            base_url: Base URL for all requests
            default_headers: Headers to include in all requests
            timeout: Default timeout in seconds (REQUIRED)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.headers: Dict[str, str] = default_headers or {}

    def request(
        self,
        method: str,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """
        Make HTTP request with timeout enforcement.

        Raises:
            UpstreamError: If the request times out or cannot be sent
        """
        url = f"{self.base_url}{endpoint}" if self.base_url else endpoint
        request_headers = {**self.headers, **(headers or {})}
        request_timeout = timeout or self.timeout

        logger.debug(f"{method} {url}")
        try:
            response = requests.request(
                method=method,
                url=url,
                json=json,
                headers=request_headers,
                timeout=request_timeout,
            )
            return HttpResponse(response)

        except Timeout as e:
            raise UpstreamError(
                message=f"Request timed out after {request_timeout}s",
                detail=url,
            ) from e

        except RequestException as e:
            raise UpstreamError(
                message=f"Request failed: {e}",
                detail=url,
            ) from e

    def post(
        self,
        endpoint: str,
        json: Optional[Dict[str, Any]] = None,
        **kwargs: Any,
    ) -> HttpResponse:
        """Make POST request."""
        return self.request("POST", endpoint, json=json, **kwargs)


__all__ = ["DEFAULT_TIMEOUT", "HttpClient", "HttpResponse"]
