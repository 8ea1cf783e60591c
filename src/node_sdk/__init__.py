"""
Node SDK - Python node execution semantics.

This package provides the contract node implementations are written against:
- NodeItem / Batch: Data flowing through workflows
- NodeExecutionContext: Runtime context for one node invocation
- BaseNode: Abstract base class for class-based nodes
- Expression resolution for {{ $json.path }} parameters
- Timeout-bounded HTTP client and structured node errors
"""

from .items import Batch, BinaryData, NodeItem, PairedItem, empty_item, to_batch
from .basenode import (
    BaseNode,
    CredentialResolver,
    NodeCredential,
    NodeExecutionContext,
    NodeOutput,
    NodeParameter,
    NodeParameterType,
    NodeParameterTypeEnum,
)
from .errors import HttpApiError, NodeApiError, NodeOperationError, NodeTimeoutError
from .expressions import lookup, resolve_value
from .http import HttpClient, HttpResponse

__all__ = [
    # Items
    "NodeItem",
    "BinaryData",
    "PairedItem",
    "Batch",
    "to_batch",
    "empty_item",
    # Context
    "NodeExecutionContext",
    "CredentialResolver",
    # Base class
    "BaseNode",
    "NodeOutput",
    "NodeParameter",
    "NodeCredential",
    "NodeParameterType",
    "NodeParameterTypeEnum",
    # Expressions
    "resolve_value",
    "lookup",
    # Errors
    "NodeOperationError",
    "NodeApiError",
    "HttpApiError",
    "NodeTimeoutError",
    # HTTP
    "HttpClient",
    "HttpResponse",
]
