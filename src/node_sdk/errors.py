"""
Node-level errors.

These are what node implementations raise from execute(). The workflow
engine wraps any of them into a NodeExecutionError on the run.
"""

from __future__ import annotations

from typing import Any, Optional


class NodeOperationError(Exception):
    """Error during node operation."""

    def __init__(
        self,
        message: str,
        node: Optional[Any] = None,
        item_index: Optional[int] = None,
    ) -> None:
        self.message = message
        self.node = node
        self.item_index = item_index
        super().__init__(message)


class NodeApiError(NodeOperationError):
    """Error from external API call."""

    def __init__(
        self,
        message: str,
        node: Optional[Any] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message, node)
        self.status_code = status_code
        self.response_body = response_body


class HttpApiError(NodeApiError):
    """Structured failure of an outbound HTTP request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ) -> None:
        super().__init__(message, status_code=status_code, response_body=response_body)
        self.url = url
        self.method = method


class NodeTimeoutError(NodeOperationError):
    """Raised when a node's outbound call exceeds its timeout."""

    def __init__(self, message: str, timeout: float, url: str) -> None:
        super().__init__(message)
        self.timeout = timeout
        self.url = url


__all__ = [
    "NodeOperationError",
    "NodeApiError",
    "HttpApiError",
    "NodeTimeoutError",
]
