"""
Workflow Runtime - Single-process execution of n8n-style workflow graphs.

This package provides:
- WorkflowGraph: JSON structure describing a workflow
- CompiledGraph: Validated, indexed workflow graph
- WorkflowEngine: Worklist-driven execution engine
- RunState / RunStore: In-memory run state and persisted run records
- EventChannel: Lifecycle events for observers
"""

from .credentials import CredentialStore, InMemoryCredentialStore, resolve_credentials
from .errors import (
    CredentialResolutionError,
    GraphError,
    GraphErrorKind,
    InvalidStatusTransition,
    NodeExecutionError,
    RunNotFoundError,
    WorkflowEngineError,
)
from .events import (
    EventChannel,
    NodeEnded,
    NodeFailed,
    NodeStarted,
    RunEnded,
    RunEvent,
    RunStarted,
    RunStopped,
)
from .executor import RunResult, WorkflowEngine, normalize_outputs
from .graph import CompiledGraph, validate_graph
from .models import ConnectionTarget, NodeSpec, RunMode, WorkflowGraph, parse_workflow
from .readiness import AllInputsPolicy, AnyInputPolicy, NodeInbox, ReadinessPolicy
from .run_store import InMemoryRunStore, RedisRunStore, RunRecord, RunStore, get_run_store
from .state import NodeRun, RunState, RunStatus

__all__ = [
    # Models
    "WorkflowGraph",
    "NodeSpec",
    "ConnectionTarget",
    "RunMode",
    "parse_workflow",
    # Graph
    "CompiledGraph",
    "validate_graph",
    # Engine
    "WorkflowEngine",
    "RunResult",
    "normalize_outputs",
    # Readiness
    "NodeInbox",
    "ReadinessPolicy",
    "AnyInputPolicy",
    "AllInputsPolicy",
    # State
    "RunStatus",
    "RunState",
    "NodeRun",
    # Persistence
    "RunRecord",
    "RunStore",
    "InMemoryRunStore",
    "RedisRunStore",
    "get_run_store",
    # Credentials
    "CredentialStore",
    "InMemoryCredentialStore",
    "resolve_credentials",
    # Events
    "EventChannel",
    "RunEvent",
    "RunStarted",
    "NodeStarted",
    "NodeEnded",
    "NodeFailed",
    "RunEnded",
    "RunStopped",
    # Errors
    "WorkflowEngineError",
    "GraphError",
    "GraphErrorKind",
    "NodeExecutionError",
    "CredentialResolutionError",
    "RunNotFoundError",
    "InvalidStatusTransition",
]
