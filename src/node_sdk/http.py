"""
HTTP Client - Timeout-bounded HTTP requests for nodes.

Every outbound call made on behalf of a node carries a timeout and
surfaces transport faults as structured node errors, so the engine's
fail-fast path always receives an inspectable error instead of a raw
requests exception.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Union

import requests
from requests.exceptions import RequestException, Timeout

from .errors import HttpApiError, NodeTimeoutError


logger = logging.getLogger(__name__)

# Default timeout in seconds
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
    def headers(self) -> Dict[str, str]:
        return dict(self._response.headers)

    @property
    def text(self) -> str:
        return self._response.text

    @property
    def content(self) -> bytes:
        return self._response.content

    @property
    def ok(self) -> bool:
        """True if status code is 2xx."""
        return self._response.ok

    def json(self) -> Any:
        """Parse response as JSON."""
        return self._response.json()

    def body(self) -> Any:
        """JSON body when parseable, otherwise {"text": ...}."""
        try:
            return self._response.json()
        except ValueError:
            return {"text": self._response.text}

    def raise_for_status(self) -> None:
        """Raise HttpApiError if status code indicates error."""
        if not self.ok:
            raise HttpApiError(
                message=f"HTTP {self.status_code}: {self._response.reason}",
                status_code=self.status_code,
                response_body=self.text[:1000] if self.text else None,
                url=str(self._response.url),
                method=self._response.request.method if self._response.request else None,
            )


class HttpClient:
    """
    HTTP client with timeout enforcement and credential injection.

    Usage:
        client = HttpClient(base_url="https://api.example.com", timeout=10)
        response = client.get("/users", params={"limit": 10})
        data = response.json()
    """

    def __init__(
        self,
        base_url: str = "",
        default_headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        auth: Optional[tuple] = None,
        bearer_token: Optional[str] = None,
        api_key: Optional[str] = None,
        api_key_header: str = "X-API-Key",
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.auth = auth

        self.headers: Dict[str, str] = dict(default_headers or {})
        if bearer_token:
            self.headers["Authorization"] = f"Bearer {bearer_token}"
        if api_key:
            self.headers[api_key_header] = api_key

    @classmethod
    def from_credentials(
        cls,
        credentials: Optional[Dict[str, Any]],
        timeout: float = DEFAULT_TIMEOUT,
    ) -> "HttpClient":
        """
        Build a client from a decrypted credential payload.

        Recognized keys: baseUrl, token / accessToken, apiKey (+ apiKeyHeader),
        user + password.
        """
        credentials = credentials or {}
        auth = None
        if credentials.get("user") is not None and credentials.get("password") is not None:
            auth = (credentials["user"], credentials["password"])
        return cls(
            base_url=credentials.get("baseUrl", ""),
            timeout=timeout,
            auth=auth,
            bearer_token=credentials.get("token") or credentials.get("accessToken"),
            api_key=credentials.get("apiKey"),
            api_key_header=credentials.get("apiKeyHeader", "X-API-Key"),
        )

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
        data: Optional[Union[Dict[str, Any], str, bytes]] = None,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        **kwargs: Any,
    ) -> HttpResponse:
        """
        Make HTTP request with timeout enforcement.

        Raises:
            NodeTimeoutError: If request times out
            HttpApiError: If the transport fails
        """
        url = f"{self.base_url}{endpoint}" if self.base_url else endpoint
        request_headers = {**self.headers, **(headers or {})}
        request_timeout = timeout or self.timeout

        logger.debug("HTTP %s %s (timeout=%ss)", method, url, request_timeout)
        try:
            response = requests.request(
                method=method,
                url=url,
                params=params,
                json=json,
                data=data,
                headers=request_headers,
                auth=self.auth,
                timeout=request_timeout,
                **kwargs,
            )
            return HttpResponse(response)

        except Timeout as e:
            raise NodeTimeoutError(
                message=f"Request timed out after {request_timeout}s",
                timeout=request_timeout,
                url=url,
            ) from e

        except RequestException as e:
            raise HttpApiError(
                message=f"Request failed: {e}",
                url=url,
                method=method,
            ) from e

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs: Any) -> HttpResponse:
        """Make GET request."""
        return self.request("GET", endpoint, params=params, **kwargs)

    def post(self, endpoint: str, json: Optional[Any] = None, **kwargs: Any) -> HttpResponse:
        """Make POST request."""
        return self.request("POST", endpoint, json=json, **kwargs)

    def delete(self, endpoint: str, **kwargs: Any) -> HttpResponse:
        """Make DELETE request."""
        return self.request("DELETE", endpoint, **kwargs)


__all__ = [
    "DEFAULT_TIMEOUT",
    "HttpClient",
    "HttpResponse",
    "HttpApiError",
    "NodeTimeoutError",
]
