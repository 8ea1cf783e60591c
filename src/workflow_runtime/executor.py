"""
Workflow Engine - Worklist-driven execution of a workflow graph.

Validates the graph, seeds a worklist with every trigger node, invokes node
implementations through the registry, appends their outputs to the run's
history and delivers produced batches along outgoing connections. A node
becomes eligible when its readiness policy accepts a delivery; newly
eligible nodes run before older pending work (depth-first).

A failing node aborts the whole run. A stop request cancels the run
cooperatively: the node in flight finishes, nothing further is scheduled.

Finished runs stay in memory up to settings.retained_runs; older ones are
released and served from the run store.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Mapping, Optional, Sequence, Union

from node_registry import NodeRegistry, Readiness
from node_sdk.basenode import NodeExecutionContext
from node_sdk.items import Batch, NodeItem, empty_item, to_batch

from .config import Settings, get_settings
from .credentials import CredentialStore, resolve_credentials
from .errors import NodeExecutionError, RunNotFoundError
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
from .graph import CompiledGraph
from .models import NodeSpec, RunMode, WorkflowGraph, parse_workflow
from .observability import get_logger
from .readiness import NodeInbox, ReadinessPolicy, resolve_policies
from .run_store import InMemoryRunStore, RunRecord, RunStore
from .state import NodeRun, RunState, RunStatus, history_from_metadata, utcnow


logger = get_logger(__name__)

ItemsLike = Sequence[Union[NodeItem, Dict[str, Any]]]


@dataclass
class WorkItem:
    """A node scheduled for execution with its aggregated input."""
    node_id: str
    inputs: Dict[int, Batch]


@dataclass
class RunResult:
    """
    Outcome of a run.
    """
    run_id: str
    workflow_id: str
    status: RunStatus
    history: Dict[str, List[NodeRun]] = field(default_factory=dict)
    execution_order: List[str] = field(default_factory=list)
    error: Optional[str] = None
    error_node_id: Optional[str] = None
    events: List[RunEvent] = field(default_factory=list)
    duration_ms: float = 0

    @property
    def is_success(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def is_error(self) -> bool:
        return self.status == RunStatus.FAILED

    def items(self, node_id: str, port: int = 0, run_index: int = -1) -> List[Dict[str, Any]]:
        """JSON payloads one execution of a node produced on a port."""
        runs = self.history.get(node_id, [])
        if not runs:
            return []
        batch = runs[run_index].batch(port)
        return [item.json_data for item in batch or []]

    def event_types(self) -> List[str]:
        return [event.type for event in self.events]


class _ActiveRun:
    """Engine-private bookkeeping of one run."""

    def __init__(self, graph: CompiledGraph, state: RunState, initial_items: Batch):
        self.graph = graph
        self.state = state
        self.initial_items = initial_items
        self.worklist: Deque[WorkItem] = deque()
        self.inboxes: Dict[str, NodeInbox] = {}
        self.started = time.perf_counter()
        self.finished: Optional[float] = None

    def inbox(self, node_id: str) -> NodeInbox:
        if node_id not in self.inboxes:
            self.inboxes[node_id] = NodeInbox(
                node_id=node_id,
                connections=self.graph.inbound(node_id),
                input_count=self.graph.descriptor(node_id).input_count,
            )
        return self.inboxes[node_id]


class WorkflowEngine:
    """
    Single-process workflow execution engine.

    Usage:
        registry = NodeRegistry()
        registry.register_pack(*register_nodes())
        engine = WorkflowEngine(registry)

        run_id = engine.start(graph, initial_items=[{"id": 1}], triggered_by="user-1")
        state = engine.get_state(run_id)

    Collaborators are injected: the node registry, the run store (in-memory
    by default), an optional credential store and the event channel.
    """

    def __init__(
        self,
        registry: NodeRegistry,
        run_store: Optional[RunStore] = None,
        credential_store: Optional[CredentialStore] = None,
        events: Optional[EventChannel] = None,
        settings: Optional[Settings] = None,
        policies: Optional[Mapping[Readiness, ReadinessPolicy]] = None,
    ):
        self.registry = registry
        self.run_store = run_store if run_store is not None else InMemoryRunStore()
        self.credential_store = credential_store
        self.events = events if events is not None else EventChannel()
        self.settings = settings or get_settings()
        self._policies = resolve_policies(policies)
        self._runs: Dict[str, _ActiveRun] = {}
        self._finished: Deque[str] = deque()
        self._runs_lock = threading.Lock()

    # ==== Entry points ====

    def start(
        self,
        graph: Union[WorkflowGraph, Dict[str, Any]],
        initial_items: Optional[ItemsLike] = None,
        triggered_by: Optional[str] = None,
        mode: Union[RunMode, str] = RunMode.MANUAL,
    ) -> str:
        """
        Validate and execute a graph to completion.

        Returns:
            The run id. Node failures are recorded on the run, not raised.

        Raises:
            GraphError: If the graph is invalid (no run is created)
        """
        run_id = self.prepare(graph, initial_items, triggered_by, mode)
        self.execute(run_id)
        return run_id

    def run(
        self,
        graph: Union[WorkflowGraph, Dict[str, Any]],
        initial_items: Optional[ItemsLike] = None,
        triggered_by: Optional[str] = None,
        mode: Union[RunMode, str] = RunMode.MANUAL,
    ) -> RunResult:
        """Like start(), returning the full RunResult."""
        return self.execute(self.prepare(graph, initial_items, triggered_by, mode))

    def prepare(
        self,
        graph: Union[WorkflowGraph, Dict[str, Any]],
        initial_items: Optional[ItemsLike] = None,
        triggered_by: Optional[str] = None,
        mode: Union[RunMode, str] = RunMode.MANUAL,
    ) -> str:
        """
        Validate a graph and create its run record without executing it.

        Callers that need the run id before execution starts (for example to
        stop it from another thread) call prepare() and then execute().
        """
        if isinstance(graph, dict):
            graph = parse_workflow(graph)
        mode = RunMode(mode)

        compiled = CompiledGraph(graph, self.registry)
        for node_id in compiled.node_ids:
            unwired = compiled.unconnected_input_ports(node_id)
            if (
                unwired
                and compiled.inbound(node_id)
                and compiled.readiness(node_id, self.settings.default_readiness) is Readiness.ALL_INPUTS
            ):
                logger.warning(
                    f"Node '{node_id}' waits for all inputs but ports {unwired} are not connected; "
                    f"it will never execute",
                    extra={"workflow_id": compiled.workflow_id, "node_id": node_id},
                )
        items = [empty_item()] if initial_items is None else to_batch(initial_items)

        run_id = self.run_store.create(
            compiled.workflow_id,
            RunStatus.PENDING,
            metadata={
                "mode": mode.value,
                "triggeredBy": triggered_by,
                "workflowName": compiled.workflow_name,
                "inputData": [item.to_execution_data() for item in items],
            },
            mode=mode.value,
        )
        state = RunState(
            run_id=run_id,
            workflow_id=compiled.workflow_id,
            mode=mode.value,
            triggered_by=triggered_by,
        )
        with self._runs_lock:
            self._runs[run_id] = _ActiveRun(compiled, state, items)
        return run_id

    def execute(self, run_id: str) -> RunResult:
        """Execute a prepared run until its worklist is empty, it fails, or it is stopped."""
        active = self._find_active(run_id)
        if active is None:
            return self.get_result(run_id)
        state = active.state
        log = logger.bind(run_id=run_id, workflow_id=state.workflow_id, mode=state.mode)

        if not state.transition(RunStatus.RUNNING):
            log.warning("Run is not pending; nothing to execute", extra={"status": state.status.value})
            return self.get_result(run_id)

        self.run_store.update_status(
            run_id, RunStatus.RUNNING, {"startedAt": state.started_at.isoformat()}
        )
        self.events.publish(RunStarted(run_id=run_id, workflow_id=state.workflow_id, mode=state.mode))
        log.info("Run started", extra={"triggers": active.graph.trigger_ids})

        for trigger_id in active.graph.trigger_ids:
            active.worklist.append(
                WorkItem(trigger_id, {0: [item.model_copy(deep=True) for item in active.initial_items]})
            )

        while active.worklist:
            work = active.worklist.popleft()

            if state.total_executions >= self.settings.max_node_executions:
                self._fail(
                    active,
                    work.node_id,
                    f"Run exceeded {self.settings.max_node_executions} node executions; "
                    f"the graph likely contains a cycle",
                )
                break

            if not self._execute_node(active, work):
                break

        active.finished = time.perf_counter()
        if state.transition(RunStatus.COMPLETED):
            outputs = state.outputs_by_node()
            self.run_store.update_status(
                run_id,
                RunStatus.COMPLETED,
                {
                    "completedAt": state.finished_at.isoformat(),
                    "runData": outputs,
                    "executionOrder": list(state.execution_order),
                },
            )
            self.events.publish(RunEnded(run_id=run_id, success=True, outputs_by_node=outputs))
            log.info("Run completed", extra={"executions": state.total_executions})

        result = self.get_result(run_id)
        if state.is_terminal:
            self._retire(run_id)
        return result

    def stop(self, run_id: str) -> bool:
        """
        Cancel a running run.

        Cooperative: a node invocation in flight is not interrupted, but no
        node is scheduled after this call returns.

        Returns:
            True if the run was cancelled, False if it was not running

        Raises:
            RunNotFoundError: If the run is unknown
        """
        active = self._find_active(run_id)
        if active is None:
            if self.run_store.find_by_id(run_id) is None:
                raise RunNotFoundError(run_id)
            # Released runs are finished
            return False
        state = active.state

        # Only the status change holds the state lock; store I/O and
        # listeners run after it is released
        with state.lock:
            if not state.is_running or not state.transition(RunStatus.CANCELLED):
                return False
            metadata = {
                "cancelledAt": state.finished_at.isoformat(),
                "runData": state.outputs_by_node(),
                "executionOrder": list(state.execution_order),
            }

        self.run_store.update_status(run_id, RunStatus.CANCELLED, metadata)
        self.events.publish(RunStopped(run_id=run_id))

        logger.info("Run cancelled", extra={"run_id": run_id})
        return True

    def get_state(self, run_id: str) -> RunState:
        """
        Current state of a run.

        Runs released from memory are rebuilt from their run record; static
        data is not persisted, so it comes back empty.

        Raises:
            RunNotFoundError: If the run is neither in memory nor in the store
        """
        active = self._find_active(run_id)
        if active is not None:
            return active.state
        return self._state_from_record(self._load_record(run_id))

    def get_result(self, run_id: str) -> RunResult:
        active = self._find_active(run_id)
        if active is None:
            return self._result_from_record(self._load_record(run_id))
        state = active.state
        with state.lock:
            end = active.finished if active.finished is not None else time.perf_counter()
            return RunResult(
                run_id=run_id,
                workflow_id=state.workflow_id,
                status=state.status,
                history={node_id: list(runs) for node_id, runs in state.history.items()},
                execution_order=list(state.execution_order),
                error=state.error,
                error_node_id=state.error_node_id,
                events=self.events.events_for(run_id),
                duration_ms=(end - active.started) * 1000,
            )

    # ==== Node execution ====

    def _execute_node(self, active: _ActiveRun, work: WorkItem) -> bool:
        """Run one work item. Returns False when the run must stop."""
        state = active.state
        node = active.graph.get_node(work.node_id)
        if node is None:
            logger.warning(
                "Scheduled node not found in graph; skipping",
                extra={"run_id": state.run_id, "node_id": work.node_id},
            )
            return True

        # Checked and announced under the state lock so no nodeStart follows a stop
        with state.lock:
            if not state.is_running:
                logger.info(
                    "Run no longer running; scheduling suppressed",
                    extra={"run_id": state.run_id, "node_id": node.id, "status": state.status.value},
                )
                return False
            self.events.publish(NodeStarted(run_id=state.run_id, node_id=node.id, node_name=node.name))

        log = logger.bind(run_id=state.run_id, node_id=node.id, node_type=node.type)
        log.debug("Executing node")

        started_at = utcnow()
        try:
            outputs = self._invoke(active, node, work)
        except Exception as e:
            error = self._as_node_error(e, node)
            log.error(f"Node failed: {error.message}")
            self.events.publish(
                NodeFailed(run_id=state.run_id, node_id=node.id, node_name=node.name, message=error.message)
            )
            self._fail(active, node.id, error.message)
            return False

        node_run = NodeRun(
            node_id=node.id,
            node_name=node.name,
            run_index=state.run_count(node.id),
            outputs=outputs,
            input_count=sum(len(batch) for batch in work.inputs.values()),
            started_at=started_at,
            finished_at=utcnow(),
        )
        state.record(node_run)
        self.events.publish(
            NodeEnded(
                run_id=state.run_id,
                node_id=node.id,
                node_name=node.name,
                output_summary=node_run.item_counts,
            )
        )

        self._propagate(active, node, outputs)
        return True

    def _invoke(self, active: _ActiveRun, node: NodeSpec, work: WorkItem) -> List[Optional[Batch]]:
        state = active.state
        descriptor = active.graph.descriptor(node.id)

        def credential_resolver(credential_type: str) -> Dict[str, Any]:
            return resolve_credentials(
                self.credential_store,
                state.triggered_by,
                credential_type,
                node.credential_refs.get(credential_type),
                node.id,
            )

        context = NodeExecutionContext(
            parameters=node.parameters,
            input_data=work.inputs,
            credential_resolver=credential_resolver,
            static_data=state.static_data,
            parameter_defaults=descriptor.parameter_defaults,
            run_id=state.run_id,
            workflow_id=state.workflow_id,
            node_id=node.id,
            node_name=node.name,
            mode=state.mode,
            run_index=state.run_count(node.id),
            http_timeout=self.settings.http_timeout_s,
        )
        raw = self.registry.invoke(node.type, context)
        return normalize_outputs(raw, descriptor.output_count)

    @staticmethod
    def _as_node_error(error: Exception, node: NodeSpec) -> NodeExecutionError:
        if isinstance(error, NodeExecutionError):
            if error.node_id is None:
                error.node_id = node.id
            return error
        message = str(error) or type(error).__name__
        wrapped = NodeExecutionError(node.id, message, node.name)
        wrapped.__cause__ = error
        return wrapped

    def _fail(self, active: _ActiveRun, node_id: Optional[str], message: str) -> None:
        state = active.state
        with state.lock:
            if not state.fail(node_id, message):
                return
            outputs = state.outputs_by_node()
            error = state.error
        self.run_store.update_status(
            state.run_id,
            RunStatus.FAILED,
            {
                "error": error,
                "errorNodeId": node_id,
                "failedAt": state.finished_at.isoformat(),
                "runData": outputs,
                "executionOrder": list(state.execution_order),
            },
        )
        self.events.publish(
            RunEnded(run_id=state.run_id, success=False, outputs_by_node=outputs, error=error)
        )
        logger.error(
            f"Run failed: {error}",
            extra={"run_id": state.run_id, "node_id": node_id},
        )

    # ==== Propagation ====

    def _propagate(self, active: _ActiveRun, node: NodeSpec, outputs: List[Optional[Batch]]) -> None:
        """Deliver produced batches downstream and schedule newly eligible nodes."""
        state = active.state
        graph = active.graph
        eligible: List[WorkItem] = []

        for port, batch in enumerate(outputs):
            if batch is None:
                continue
            if not batch and not self.settings.propagate_empty_batches:
                continue

            for connection in graph.outbound_connections(node.id, port):
                target_id = connection.target_id
                if not state.is_running:
                    logger.info(
                        "Run no longer running; downstream scheduling suppressed",
                        extra={"run_id": state.run_id, "node_id": node.id},
                    )
                    return

                target = graph.get_node(target_id)
                if target is None:
                    logger.warning(
                        f"Connection target '{target_id}' not found; branch skipped",
                        extra={"run_id": state.run_id, "node_id": node.id},
                    )
                    continue
                if target.disabled:
                    logger.info(
                        f"Connection target '{target_id}' is disabled; branch skipped",
                        extra={"run_id": state.run_id, "node_id": node.id},
                    )
                    continue

                inbox = active.inbox(target_id)
                policy = self._policies[graph.readiness(target_id, self.settings.default_readiness)]
                if policy.on_delivery(inbox, connection):
                    inbox.reset()
                    eligible.append(WorkItem(target_id, self._aggregate_inputs(active, target_id)))

        # Newly eligible nodes run next, in connection order
        active.worklist.extendleft(reversed(eligible))

    @staticmethod
    def _aggregate_inputs(active: _ActiveRun, node_id: str) -> Dict[int, Batch]:
        """Latest batch from every source feeding each connected input port."""
        inputs: Dict[int, Batch] = {}
        for port in active.graph.connected_input_ports(node_id):
            items: Batch = []
            for source_id, source_port in active.graph.sources_for_port(node_id, port):
                batch = active.state.latest_batch(source_id, source_port)
                if batch:
                    items.extend(item.model_copy(deep=True) for item in batch)
            inputs[port] = items
        return inputs

    # ==== Retention ====

    @property
    def retained_run_ids(self) -> List[str]:
        """Runs whose full state is still held in memory, oldest first."""
        with self._runs_lock:
            return list(self._runs.keys())

    def _retire(self, run_id: str) -> None:
        """Queue a finished run for release, dropping the oldest beyond the retention limit."""
        with self._runs_lock:
            if run_id in self._finished:
                return
            self._finished.append(run_id)
            released = []
            while len(self._finished) > self.settings.retained_runs:
                old_id = self._finished.popleft()
                self._runs.pop(old_id, None)
                released.append(old_id)

        for old_id in released:
            self.events.clear(old_id)
            logger.debug("Finished run released from memory", extra={"run_id": old_id})

    def _find_active(self, run_id: str) -> Optional[_ActiveRun]:
        with self._runs_lock:
            return self._runs.get(run_id)

    def _load_record(self, run_id: str) -> RunRecord:
        record = self.run_store.find_by_id(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return record

    @staticmethod
    def _state_from_record(record: RunRecord) -> RunState:
        metadata = record.metadata
        return RunState(
            run_id=record.run_id,
            workflow_id=record.workflow_id,
            mode=record.mode,
            triggered_by=metadata.get("triggeredBy"),
            status=record.status,
            history=history_from_metadata(metadata.get("runData") or {}),
            execution_order=list(metadata.get("executionOrder") or []),
            error=record.error_message,
            error_node_id=metadata.get("errorNodeId"),
            started_at=record.started_at,
            finished_at=record.completed_at,
        )

    def _result_from_record(self, record: RunRecord) -> RunResult:
        state = self._state_from_record(record)
        return RunResult(
            run_id=record.run_id,
            workflow_id=state.workflow_id,
            status=state.status,
            history=state.history,
            execution_order=state.execution_order,
            error=state.error,
            error_node_id=state.error_node_id,
            duration_ms=(record.duration_seconds or 0) * 1000,
        )


def normalize_outputs(raw: Any, output_count: int) -> List[Optional[Batch]]:
    """
    Normalize a node's return value to one Optional[Batch] per output port.

    Accepts None (no output), a list of batches, or a flat list of items
    (single-port output).

    Raises:
        ValueError: If more batches are returned than the node declares ports
    """
    if raw is None:
        return []
    if isinstance(raw, tuple):
        raw = list(raw)
    if not isinstance(raw, list):
        raise ValueError(f"Node returned {type(raw).__name__}; expected a list of batches")
    if not raw:
        return []

    if all(entry is None or isinstance(entry, (list, tuple)) for entry in raw):
        batches = raw
    else:
        batches = [raw]

    if len(batches) > max(output_count, 1):
        raise ValueError(
            f"Node returned {len(batches)} output batches but declares {output_count} output port(s)"
        )
    return [None if batch is None else to_batch(batch) for batch in batches]


__all__ = [
    "WorkflowEngine",
    "RunResult",
    "WorkItem",
    "normalize_outputs",
]
