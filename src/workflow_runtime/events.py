"""
Lifecycle events - typed event channel between the engine and observers.

The engine publishes one event per lifecycle step of a run:

    start -> nodeStart -> nodeEnd | nodeError -> ... -> end | stop

Observers subscribe a callable to the channel. The channel also retains the
finite, ordered sequence of events per run so callers can inspect a run's
lifecycle after the fact.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .state import utcnow


logger = logging.getLogger(__name__)


class RunEvent(BaseModel):
    """Base of all lifecycle events."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: str
    run_id: str = Field(..., alias="runId")
    timestamp: datetime = Field(default_factory=utcnow)


class RunStarted(RunEvent):
    type: Literal["start"] = "start"
    workflow_id: Optional[str] = Field(None, alias="workflowId")
    mode: Optional[str] = None


class NodeStarted(RunEvent):
    type: Literal["nodeStart"] = "nodeStart"
    node_id: str = Field(..., alias="nodeId")
    node_name: str = Field("", alias="nodeName")


class NodeEnded(RunEvent):
    type: Literal["nodeEnd"] = "nodeEnd"
    node_id: str = Field(..., alias="nodeId")
    node_name: str = Field("", alias="nodeName")
    output_summary: List[Optional[int]] = Field(
        default_factory=list,
        alias="outputSummary",
        description="Item count per output port (None = no batch)",
    )


class NodeFailed(RunEvent):
    type: Literal["nodeError"] = "nodeError"
    node_id: str = Field(..., alias="nodeId")
    node_name: str = Field("", alias="nodeName")
    message: str


class RunEnded(RunEvent):
    type: Literal["end"] = "end"
    success: bool
    outputs_by_node: Dict[str, Any] = Field(default_factory=dict, alias="outputsByNode")
    error: Optional[str] = None


class RunStopped(RunEvent):
    type: Literal["stop"] = "stop"


LifecycleEvent = Union[RunStarted, NodeStarted, NodeEnded, NodeFailed, RunEnded, RunStopped]
EventListener = Callable[[RunEvent], None]


class EventChannel:
    """
    Publish/subscribe channel for lifecycle events.

    The per-run history is appended under the channel lock, so it records
    events in publish order. Listeners are called on the publishing thread
    after the lock is released, so a listener may call back into the engine
    or the channel. A listener that raises is logged and skipped; it never
    affects the run.
    """

    def __init__(self, keep_history: bool = True):
        self._listeners: List[EventListener] = []
        self._history: Dict[str, List[RunEvent]] = defaultdict(list)
        self._keep_history = keep_history
        self._lock = threading.RLock()

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """
        Register an observer.

        Returns:
            Callable that removes the observer again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: RunEvent) -> None:
        with self._lock:
            if self._keep_history:
                self._history[event.run_id].append(event)
            listeners = list(self._listeners)

        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(
                    "Event listener failed",
                    extra={"run_id": event.run_id, "event_type": event.type},
                )

    def events_for(self, run_id: str) -> List[RunEvent]:
        """Ordered events published for a run so far."""
        with self._lock:
            return list(self._history.get(run_id, []))

    def clear(self, run_id: Optional[str] = None) -> None:
        with self._lock:
            if run_id is None:
                self._history.clear()
            else:
                self._history.pop(run_id, None)


__all__ = [
    "RunEvent",
    "RunStarted",
    "NodeStarted",
    "NodeEnded",
    "NodeFailed",
    "RunEnded",
    "RunStopped",
    "LifecycleEvent",
    "EventListener",
    "EventChannel",
]
