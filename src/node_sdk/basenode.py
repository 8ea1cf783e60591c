"""
BaseNode - Abstract base class for Python node implementations.

All class-based nodes inherit from BaseNode and implement execute().
The engine binds a NodeExecutionContext before each invocation; nodes
read parameters, input items, credentials and workflow static data
through it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field

from .errors import NodeOperationError
from .expressions import resolve_value
from .http import DEFAULT_TIMEOUT, HttpClient
from .items import Batch, NodeItem


logger = logging.getLogger(__name__)


# ==============================================================================
# Parameter schema
# ==============================================================================

NodeParameterType = Literal[
    "string", "number", "boolean", "options", "multiOptions",
    "color", "json", "collection", "dateTime", "node",
    "resourceLocator", "notice", "array", "code",
]


class NodeParameterTypeEnum(str, Enum):
    """Enum version for convenience."""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    OPTIONS = "options"
    MULTI_OPTIONS = "multiOptions"
    JSON = "json"
    COLLECTION = "collection"
    DATE_TIME = "dateTime"
    COLOR = "color"
    NODE = "node"
    RESOURCE_LOCATOR = "resourceLocator"
    NOTICE = "notice"
    ARRAY = "array"
    CODE = "code"


class NodeParameter(BaseModel):
    """
    A single recognized parameter in a node's configuration schema.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., description="Parameter key (internal name)")
    display_name: str = Field("", alias="displayName", description="Human-readable label")
    type: NodeParameterType = Field("string", description="Parameter type")
    default: Any = Field(None, description="Default value")
    required: bool = Field(False, description="Is parameter required?")
    description: Optional[str] = Field(None, description="Help text")
    options: Optional[List[Dict[str, Any]]] = Field(
        None,
        description="Options for options/multiOptions type"
    )
    display_options: Optional[Dict[str, Any]] = Field(
        None,
        alias="displayOptions",
        description="Conditional visibility"
    )


class NodeCredential(BaseModel):
    """Credential requirement definition."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., description="Credential type name")
    required: bool = Field(True, description="Is credential required?")
    display_name: Optional[str] = Field(None, alias="displayName")


# Node output: one entry per output port; None means the port produced nothing
NodeOutput = List[Optional[List[Union[NodeItem, Dict[str, Any]]]]]

CredentialResolver = Callable[[str], Dict[str, Any]]


# ==============================================================================
# NodeExecutionContext - Runtime context for node execution
# ==============================================================================

class NodeExecutionContext:
    """
    Runtime context provided to a node for one invocation.

    Provides access to:
    - Parameters (with expression resolution)
    - Input items per input port
    - Credentials (resolved on demand, never cached)
    - Workflow static data scoped to the current run
    - Timeout-bounded HTTP helpers
    """

    def __init__(
        self,
        parameters: Dict[str, Any],
        input_data: Union[Batch, Sequence[Batch], Dict[int, Batch]],
        credential_resolver: Optional[CredentialResolver] = None,
        static_data: Optional[Dict[str, Dict[str, Any]]] = None,
        parameter_defaults: Optional[Dict[str, Any]] = None,
        run_id: Optional[str] = None,
        workflow_id: Optional[str] = None,
        node_id: Optional[str] = None,
        node_name: Optional[str] = None,
        mode: str = "manual",
        run_index: int = 0,
        http_timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._parameters = parameters
        self._parameter_defaults = parameter_defaults or {}
        self._inputs = self._normalize_inputs(input_data)
        self._credential_resolver = credential_resolver
        self._static_data = static_data if static_data is not None else {}
        self.run_id = run_id
        self.workflow_id = workflow_id
        self.node_id = node_id
        self.node_name = node_name
        self.mode = mode
        self.run_index = run_index
        self.http_timeout = http_timeout

    @staticmethod
    def _normalize_inputs(input_data: Any) -> Dict[int, Batch]:
        if isinstance(input_data, dict):
            return {int(port): list(items) for port, items in input_data.items()}
        input_data = list(input_data or [])
        if input_data and all(isinstance(batch, list) for batch in input_data):
            return {port: batch for port, batch in enumerate(input_data)}
        return {0: input_data}

    @property
    def parameters(self) -> Dict[str, Any]:
        """Raw, unresolved parameters (schema defaults applied)."""
        return {**self._parameter_defaults, **self._parameters}

    @property
    def input_ports(self) -> List[int]:
        return sorted(self._inputs)

    def get_node_parameter(
        self,
        name: str,
        item_index: int = 0,
        default: Any = None,
    ) -> Any:
        """
        Get parameter value with expressions resolved against an input item.

        Falls back to ``default``, then to the schema default, when the
        parameter is absent.
        """
        if name in self._parameters:
            value = self._parameters[name]
        elif default is not None:
            return default
        else:
            value = self._parameter_defaults.get(name)

        items = self._inputs.get(0, [])
        item_json = items[item_index].json_data if 0 <= item_index < len(items) else {}
        return resolve_value(value, item_json)

    def get_input_data(self, port: int = 0) -> Batch:
        """Get aggregated input items for an input port."""
        return self._inputs.get(port, [])

    def get_credentials(self, name: str) -> Dict[str, Any]:
        """Get decrypted credentials by type name."""
        if self._credential_resolver is None:
            raise NodeOperationError(f"Credentials '{name}' not found")
        return self._credential_resolver(name)

    def get_workflow_static_data(self, namespace: str = "global") -> Dict[str, Any]:
        """Mutable scratch space shared by all node invocations of this run."""
        return self._static_data.setdefault(namespace, {})

    def http_client(self, credentials: Optional[Dict[str, Any]] = None) -> HttpClient:
        """HTTP client bound to this context's timeout."""
        return HttpClient.from_credentials(credentials, timeout=self.http_timeout)

    def helpers_request(
        self,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Any:
        """Make a timeout-bounded HTTP request and return the parsed body."""
        response = self.http_client().request(method, url, **kwargs)
        response.raise_for_status()
        return response.body()


# ==============================================================================
# BaseNode - Abstract base class
# ==============================================================================

class BaseNode(ABC):
    """
    Abstract base class for class-based node implementations.

    Nodes define:
    - type: Unique identifier (e.g., "set")
    - version: Node version number
    - description: Node metadata dict (displayName, group, inputs, outputs,
      credentials, optional readiness)
    - properties: Parameter schema

    And implement execute() which processes the context's input items.

    Example:

        class UpperNode(BaseNode):
            type = "upper"
            description = {
                "displayName": "Upper",
                "group": ["transform"],
                "inputs": ["main"],
                "outputs": ["main"],
            }
            properties = {
                "parameters": [
                    {"name": "field", "type": "string", "default": "text"},
                ],
            }

            def execute(self):
                field = self.get_node_parameter("field")
                return [[
                    {"json": {field: item.json[field].upper()}}
                    for item in self.get_input_data()
                ]]
    """

    type: str = "base"
    version: int = 1

    description: Dict[str, Any] = {
        "displayName": "Base Node",
        "name": "base",
        "description": "",
        "group": [],
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties: Dict[str, Any] = {
        "parameters": [],
        "credentials": [],
    }

    def __init__(self) -> None:
        self.logger = logging.getLogger(f"node.{self.type}")
        self._context: Optional[NodeExecutionContext] = None

    @abstractmethod
    def execute(self) -> NodeOutput:
        """
        Execute node operation.

        Returns:
            One entry per output port, each a list of items (or None when
            the port produced nothing).

        Raises:
            NodeOperationError: On operation failure
            NodeApiError: On API call failure
        """
        raise NotImplementedError

    # ==== Context Management ====

    def set_context(self, context: NodeExecutionContext) -> None:
        self._context = context

    @property
    def context(self) -> NodeExecutionContext:
        if self._context is None:
            raise NodeOperationError("No context set", node=self)
        return self._context

    # ==== Helper methods for subclasses ====

    def get_node_parameter(self, name: str, item_index: int = 0, default: Any = None) -> Any:
        return self.context.get_node_parameter(name, item_index, default)

    def get_credentials(self, name: str) -> Dict[str, Any]:
        return self.context.get_credentials(name)

    def get_input_data(self, port: int = 0) -> Batch:
        return self.context.get_input_data(port)

    def get_workflow_static_data(self, namespace: str = "global") -> Dict[str, Any]:
        return self.context.get_workflow_static_data(namespace)

    def helpers_request(self, method: str, url: str, **kwargs: Any) -> Any:
        return self.context.helpers_request(method, url, **kwargs)

    @classmethod
    def get_definition(cls) -> Dict[str, Any]:
        """Get full node definition for registration."""
        return {
            "type": cls.type,
            "version": cls.version,
            "description": cls.description,
            "properties": cls.properties,
        }


__all__ = [
    "BaseNode",
    "NodeExecutionContext",
    "NodeOutput",
    "NodeParameter",
    "NodeCredential",
    "NodeParameterType",
    "NodeParameterTypeEnum",
    "CredentialResolver",
]
