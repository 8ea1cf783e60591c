"""
Core Nodes - Essential utility node implementations.

These nodes cover the basics every workflow needs: a manual entry point,
field assignment, branching, joining and outbound HTTP.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from node_sdk.basenode import BaseNode, NodeOutput
from node_sdk.errors import HttpApiError, NodeOperationError
from node_sdk.items import NodeItem


logger = logging.getLogger(__name__)


def _parse_json_parameter(value: Any, name: str) -> Any:
    """Accept a JSON string or an already-parsed value."""
    if not isinstance(value, str):
        return value
    if not value.strip():
        return {}
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        raise NodeOperationError(f"Parameter '{name}' is not valid JSON: {e}")


class ManualTriggerNode(BaseNode):
    """
    Manual Trigger - Start a workflow manually.

    Emits the items the run was started with, or a single empty item.
    """

    type = "n8n-nodes-base.manualTrigger"
    version = 1

    description = {
        "displayName": "Manual Trigger",
        "name": "manualTrigger",
        "icon": "fa:play",
        "group": ["trigger"],
        "description": "Starts the workflow when triggered manually",
        "version": 1,
        "inputs": [],  # No inputs - this is a trigger
        "outputs": ["main"],
    }

    properties = {
        "parameters": [],
        "credentials": [],
    }

    def execute(self) -> NodeOutput:
        items = self.get_input_data()
        if not items:
            return [[{"json": {}}]]
        return [[
            {"json": item.json, "binary": item.binary}
            if item.binary else {"json": item.json}
            for item in items
        ]]


class SetNode(BaseNode):
    """
    Set Node - Set or modify data fields.

    Values may contain {{ $json.<path> }} expressions, resolved against
    each input item.
    """

    type = "n8n-nodes-base.set"
    version = 1

    description = {
        "displayName": "Set",
        "name": "set",
        "icon": "fa:pen",
        "group": ["transform"],
        "description": "Sets values on items",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Mode",
                "name": "mode",
                "type": "options",
                "default": "manual",
                "options": [
                    {"name": "Manual", "value": "manual"},
                    {"name": "Raw JSON", "value": "raw"},
                ],
            },
            {
                "displayName": "Values",
                "name": "values",
                "type": "collection",
                "default": {},
                "displayOptions": {"show": {"mode": ["manual"]}},
            },
            {
                "displayName": "JSON Data",
                "name": "jsonData",
                "type": "json",
                "default": "{}",
                "displayOptions": {"show": {"mode": ["raw"]}},
            },
            {
                "displayName": "Keep Only Set",
                "name": "keepOnlySet",
                "type": "boolean",
                "default": False,
                "description": "If true, only keep the set values, discard others",
            },
        ],
        "credentials": [],
    }

    def execute(self) -> NodeOutput:
        items = self.get_input_data()
        mode = self.get_node_parameter("mode", 0)
        keep_only_set = self.get_node_parameter("keepOnlySet", 0)

        results = []
        for i, item in enumerate(items):
            if mode == "raw":
                new_data = _parse_json_parameter(self.get_node_parameter("jsonData", i), "jsonData")
            else:
                new_data = self.get_node_parameter("values", i) or {}

            if not isinstance(new_data, dict):
                raise NodeOperationError(
                    f"Set values must be an object, got {type(new_data).__name__}",
                    node=self,
                    item_index=i,
                )

            output = dict(new_data) if keep_only_set else {**item.json, **new_data}
            results.append({"json": output, "pairedItem": {"item": i}})

        return [results]


class NoOpNode(BaseNode):
    """
    No Operation Node - Pass-through.
    """

    type = "n8n-nodes-base.noOp"
    version = 1

    description = {
        "displayName": "No Operation",
        "name": "noOp",
        "icon": "fa:arrow-right",
        "group": ["transform"],
        "description": "No operation - passes items through",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [],
        "credentials": [],
    }

    def execute(self) -> NodeOutput:
        return [[
            {"json": item.json, "pairedItem": {"item": i}}
            for i, item in enumerate(self.get_input_data())
        ]]


class IfNode(BaseNode):
    """
    If Node - Route items to a true or a false output.

    Compares ``value1`` (usually an expression such as "{{ $json.status }}")
    with ``value2`` using ``operation``. Items matching go to output 0, the
    rest to output 1.
    """

    type = "n8n-nodes-base.if"
    version = 1

    description = {
        "displayName": "If",
        "name": "if",
        "icon": "fa:map-signs",
        "group": ["transform"],
        "description": "Route items based on a condition",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main", "main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Value 1",
                "name": "value1",
                "type": "string",
                "default": "",
            },
            {
                "displayName": "Operation",
                "name": "operation",
                "type": "options",
                "default": "equal",
                "options": [
                    {"name": "Equal", "value": "equal"},
                    {"name": "Not Equal", "value": "notEqual"},
                    {"name": "Larger", "value": "larger"},
                    {"name": "Smaller", "value": "smaller"},
                    {"name": "Contains", "value": "contains"},
                    {"name": "Is Empty", "value": "isEmpty"},
                    {"name": "Is Not Empty", "value": "isNotEmpty"},
                ],
            },
            {
                "displayName": "Value 2",
                "name": "value2",
                "type": "string",
                "default": "",
            },
        ],
        "credentials": [],
    }

    OPERATIONS = ("equal", "notEqual", "larger", "smaller", "contains", "isEmpty", "isNotEmpty")

    def execute(self) -> NodeOutput:
        true_items: List[Dict[str, Any]] = []
        false_items: List[Dict[str, Any]] = []

        for i, item in enumerate(self.get_input_data()):
            value1 = self.get_node_parameter("value1", i)
            value2 = self.get_node_parameter("value2", i)
            operation = self.get_node_parameter("operation", i)

            if operation not in self.OPERATIONS:
                raise NodeOperationError(f"Unknown operation: {operation}", node=self, item_index=i)

            output = {"json": item.json, "pairedItem": {"item": i}}
            if self._compare(operation, value1, value2):
                true_items.append(output)
            else:
                false_items.append(output)

        return [true_items, false_items]

    @staticmethod
    def _compare(operation: str, value1: Any, value2: Any) -> bool:
        if operation == "isEmpty":
            return value1 in (None, "", [], {})
        if operation == "isNotEmpty":
            return value1 not in (None, "", [], {})
        if operation == "contains":
            return value1 is not None and str(value2) in str(value1)
        if operation in ("larger", "smaller"):
            try:
                left, right = float(value1), float(value2)
            except (TypeError, ValueError):
                return False
            return left > right if operation == "larger" else left < right

        equal = value1 == value2 or (
            value1 is not None and value2 is not None and str(value1) == str(value2)
        )
        return equal if operation == "equal" else not equal


class MergeNode(BaseNode):
    """
    Merge Node - Join the items of two inputs.

    Waits for both inputs. "append" concatenates input 1 then input 2,
    "combineByPosition" merges the JSON of items at the same index.
    """

    type = "n8n-nodes-base.merge"
    version = 1

    description = {
        "displayName": "Merge",
        "name": "merge",
        "icon": "fa:code-branch",
        "group": ["transform"],
        "description": "Merges data of multiple inputs",
        "version": 1,
        "inputs": ["main", "main"],
        "outputs": ["main"],
        "readiness": "all_inputs",
    }

    properties = {
        "parameters": [
            {
                "displayName": "Mode",
                "name": "mode",
                "type": "options",
                "default": "append",
                "options": [
                    {"name": "Append", "value": "append"},
                    {"name": "Combine by Position", "value": "combineByPosition"},
                ],
            },
        ],
        "credentials": [],
    }

    def execute(self) -> NodeOutput:
        first = self.get_input_data(0)
        second = self.get_input_data(1)
        mode = self.get_node_parameter("mode", 0)

        if mode == "append":
            return [[
                {"json": item.json, "pairedItem": {"item": i, "input": port}}
                for port, items in enumerate((first, second))
                for i, item in enumerate(items)
            ]]

        if mode == "combineByPosition":
            return [[
                {"json": {**left.json, **right.json}, "pairedItem": {"item": i}}
                for i, (left, right) in enumerate(zip(first, second))
            ]]

        raise NodeOperationError(f"Unknown merge mode: {mode}", node=self)


class HttpRequestNode(BaseNode):
    """
    HTTP Request Node - Make HTTP requests.

    Supports GET, POST, PUT, DELETE, PATCH methods. Requests go through the
    context's timeout-bounded HTTP client; with authentication set to
    "credential" the "httpApi" credential supplies base URL and auth.
    """

    type = "n8n-nodes-base.httpRequest"
    version = 1

    description = {
        "displayName": "HTTP Request",
        "name": "httpRequest",
        "icon": "fa:globe",
        "group": ["input", "output"],
        "description": "Make HTTP requests",
        "version": 1,
        "inputs": ["main"],
        "outputs": ["main"],
        "credentials": [{"name": "httpApi", "required": False}],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Method",
                "name": "method",
                "type": "options",
                "default": "GET",
                "options": [
                    {"name": "GET", "value": "GET"},
                    {"name": "POST", "value": "POST"},
                    {"name": "PUT", "value": "PUT"},
                    {"name": "DELETE", "value": "DELETE"},
                    {"name": "PATCH", "value": "PATCH"},
                ],
            },
            {
                "displayName": "URL",
                "name": "url",
                "type": "string",
                "default": "",
                "required": True,
            },
            {
                "displayName": "Authentication",
                "name": "authentication",
                "type": "options",
                "default": "none",
                "options": [
                    {"name": "None", "value": "none"},
                    {"name": "Credential", "value": "credential"},
                ],
            },
            {
                "displayName": "Headers",
                "name": "headers",
                "type": "json",
                "default": "{}",
            },
            {
                "displayName": "Query Parameters",
                "name": "queryParameters",
                "type": "json",
                "default": "{}",
            },
            {
                "displayName": "Body",
                "name": "body",
                "type": "json",
                "default": "{}",
                "displayOptions": {"show": {"method": ["POST", "PUT", "PATCH"]}},
            },
            {
                "displayName": "Timeout",
                "name": "timeout",
                "type": "number",
                "default": 0,
                "description": "Timeout in seconds (0 uses the engine default)",
            },
            {
                "displayName": "Continue On Fail",
                "name": "continueOnFail",
                "type": "boolean",
                "default": False,
                "description": "Emit an error item instead of failing the run",
            },
        ],
        "credentials": [],
    }

    BODY_METHODS = ("POST", "PUT", "PATCH")

    def execute(self) -> NodeOutput:
        items = self.get_input_data() or [NodeItem()]

        credentials: Optional[Dict[str, Any]] = None
        if self.get_node_parameter("authentication", 0) == "credential":
            credentials = self.get_credentials("httpApi")
        client = self.context.http_client(credentials)

        results = []
        for i, _ in enumerate(items):
            method = str(self.get_node_parameter("method", i)).upper()
            url = self.get_node_parameter("url", i)
            if not url:
                raise NodeOperationError("URL is required", node=self, item_index=i)

            headers = _parse_json_parameter(self.get_node_parameter("headers", i), "headers")
            params = _parse_json_parameter(self.get_node_parameter("queryParameters", i), "queryParameters")
            body = _parse_json_parameter(self.get_node_parameter("body", i), "body")
            timeout = self.get_node_parameter("timeout", i) or None

            try:
                response = client.request(
                    method,
                    url,
                    params=params or None,
                    json=body if method in self.BODY_METHODS else None,
                    headers={str(k): str(v) for k, v in (headers or {}).items()},
                    timeout=timeout,
                )
                response.raise_for_status()
            except HttpApiError as e:
                if not self.get_node_parameter("continueOnFail", i):
                    raise
                self.logger.warning(f"Request failed, continuing: {e.message}")
                results.append({
                    "json": {"error": e.message, "statusCode": e.status_code},
                    "pairedItem": {"item": i},
                })
                continue

            results.append({
                "json": {
                    "statusCode": response.status_code,
                    "headers": response.headers,
                    "body": response.body(),
                },
                "pairedItem": {"item": i},
            })

        return [results]


__all__ = [
    "ManualTriggerNode",
    "SetNode",
    "NoOpNode",
    "IfNode",
    "MergeNode",
    "HttpRequestNode",
]
