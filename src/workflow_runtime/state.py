"""
Run State - In-memory record of a single run.

Holds the append-only per-node output history, the run status and the
failure details. All writes go through methods that hold the state's
re-entrant lock, so a stop request from another thread never interleaves
with the orchestrator's own updates.
"""

from __future__ import annotations

import json
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, TypeAdapter

from node_sdk.items import Batch, NodeItem


class RunStatus(str, Enum):
    """Run lifecycle status."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    def can_transition(self, target: "RunStatus") -> bool:
        """Statuses only move forward; terminal statuses are final."""
        if self is target:
            return True
        if self.is_terminal:
            return False
        return _STATUS_RANK[target] > _STATUS_RANK[self]


TERMINAL_STATUSES = frozenset({RunStatus.COMPLETED, RunStatus.FAILED, RunStatus.CANCELLED})

_STATUS_RANK = {
    RunStatus.PENDING: 0,
    RunStatus.RUNNING: 1,
    RunStatus.COMPLETED: 2,
    RunStatus.FAILED: 2,
    RunStatus.CANCELLED: 2,
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeRun(BaseModel):
    """
    One execution of one node: an entry in the node's output history.

    ``outputs`` is indexed by output port; None marks a port that produced
    nothing in this execution.
    """
    model_config = ConfigDict(populate_by_name=True)

    node_id: str = Field(..., alias="nodeId")
    node_name: str = Field("", alias="nodeName")
    run_index: int = Field(0, alias="runIndex", description="Nth execution of this node")
    outputs: List[Optional[List[NodeItem]]] = Field(default_factory=list)
    input_count: int = Field(0, alias="inputCount")
    started_at: datetime = Field(default_factory=utcnow, alias="startedAt")
    finished_at: Optional[datetime] = Field(None, alias="finishedAt")

    def batch(self, port: int) -> Optional[Batch]:
        if 0 <= port < len(self.outputs):
            return self.outputs[port]
        return None

    @property
    def item_counts(self) -> List[Optional[int]]:
        return [None if batch is None else len(batch) for batch in self.outputs]


_HISTORY_ADAPTER = TypeAdapter(Dict[str, List[NodeRun]])


class RunState(BaseModel):
    """
    Mutable state of one run, owned by the orchestrator.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str
    workflow_id: str
    mode: str = "manual"
    triggered_by: Optional[str] = None
    status: RunStatus = RunStatus.PENDING
    history: Dict[str, List[NodeRun]] = Field(default_factory=dict)
    execution_order: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    error_node_id: Optional[str] = None
    static_data: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    _lock: Any = PrivateAttr(default_factory=threading.RLock)

    @property
    def lock(self) -> Any:
        return self._lock

    @property
    def is_running(self) -> bool:
        return self.status is RunStatus.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    # ==== Status ====

    def transition(self, status: RunStatus) -> bool:
        """
        Move to ``status`` if the lifecycle allows it.

        Returns:
            True if the status changed, False if the move was not allowed
            or the state was already in ``status``.
        """
        with self._lock:
            if self.status is status or not self.status.can_transition(status):
                return False
            self.status = status
            if status is RunStatus.RUNNING:
                self.started_at = utcnow()
            elif status.is_terminal:
                self.finished_at = utcnow()
            return True

    def fail(self, node_id: Optional[str], message: str) -> bool:
        """Record a failure and move to FAILED (no-op once terminal)."""
        with self._lock:
            if not self.transition(RunStatus.FAILED):
                return False
            self.error = message or "Run failed"
            self.error_node_id = node_id
            return True

    # ==== History ====

    def record(self, node_run: NodeRun) -> None:
        """Append a node execution; history is never overwritten."""
        with self._lock:
            self.history.setdefault(node_run.node_id, []).append(node_run)
            self.execution_order.append(node_run.node_id)

    def run_count(self, node_id: str) -> int:
        with self._lock:
            return len(self.history.get(node_id, []))

    def latest_batch(self, node_id: str, port: int) -> Optional[Batch]:
        """Most recent batch a node produced on an output port."""
        with self._lock:
            for node_run in reversed(self.history.get(node_id, [])):
                batch = node_run.batch(port)
                if batch is not None:
                    return batch
            return None

    @property
    def total_executions(self) -> int:
        return len(self.execution_order)

    def outputs_by_node(self) -> Dict[str, Any]:
        """JSON-safe dump of the output history."""
        with self._lock:
            return _HISTORY_ADAPTER.dump_python(self.history, mode="json", by_alias=True)

    def output_summary(self) -> Dict[str, List[List[Optional[int]]]]:
        """Item counts per node execution and port."""
        with self._lock:
            return {
                node_id: [node_run.item_counts for node_run in runs]
                for node_id, runs in self.history.items()
            }


def history_from_metadata(run_data: Dict[str, Any]) -> Dict[str, List[NodeRun]]:
    """Rebuild an output history persisted with RunState.outputs_by_node()."""
    return _HISTORY_ADAPTER.validate_json(json.dumps(run_data))


__all__ = [
    "RunStatus",
    "TERMINAL_STATUSES",
    "NodeRun",
    "RunState",
    "history_from_metadata",
    "utcnow",
]
