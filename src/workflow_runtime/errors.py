"""
Engine errors.

GraphError is raised by pre-run validation, before any run record exists.
NodeExecutionError (and its CredentialResolutionError subtype) is what a
failed node invocation becomes on the run.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional


class WorkflowEngineError(Exception):
    """Base class for all engine errors."""


class GraphErrorKind(str, Enum):
    NO_TRIGGER = "no_trigger"
    DANGLING_CONNECTION = "dangling_connection"
    UNKNOWN_NODE_TYPE = "unknown_node_type"
    DUPLICATE_NODE_ID = "duplicate_node_id"


class GraphError(WorkflowEngineError):
    """The workflow graph failed validation."""

    def __init__(self, kind: GraphErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(f"{kind.value}: {message}")


class NodeExecutionError(WorkflowEngineError):
    """A node implementation failed during execute."""

    def __init__(
        self,
        node_id: Optional[str],
        message: str,
        node_name: Optional[str] = None,
    ) -> None:
        self.node_id = node_id
        self.node_name = node_name
        self.message = message or "Node execution failed"
        super().__init__(self.message)


class CredentialResolutionError(NodeExecutionError):
    """No credential of the requested type could be resolved for the run owner."""

    def __init__(
        self,
        credential_type: str,
        owner_id: Optional[str] = None,
        node_id: Optional[str] = None,
    ) -> None:
        self.credential_type = credential_type
        self.owner_id = owner_id
        super().__init__(
            node_id,
            f"No credentials of type '{credential_type}' found for owner '{owner_id}'",
        )


class RunNotFoundError(WorkflowEngineError):
    """No run with the given id is known."""

    def __init__(self, run_id: str) -> None:
        self.run_id = run_id
        super().__init__(f"Run not found: {run_id}")


class InvalidStatusTransition(WorkflowEngineError):
    """A run status change would move backwards in the lifecycle."""

    def __init__(self, run_id: str, current: str, requested: str) -> None:
        self.run_id = run_id
        self.current = current
        self.requested = requested
        super().__init__(f"Run {run_id}: cannot move from '{current}' to '{requested}'")


__all__ = [
    "WorkflowEngineError",
    "GraphErrorKind",
    "GraphError",
    "NodeExecutionError",
    "CredentialResolutionError",
    "RunNotFoundError",
    "InvalidStatusTransition",
]
