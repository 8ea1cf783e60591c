"""Run store: persisted run records (in-memory and Redis-backed)."""
from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any

import redis
from pydantic import BaseModel, ConfigDict, Field

from workflow_runtime.config import get_settings
from workflow_runtime.errors import InvalidStatusTransition, RunNotFoundError
from workflow_runtime.observability import get_logger
from workflow_runtime.state import RunStatus, utcnow

logger = get_logger(__name__)


class RunRecord(BaseModel):
    """Persisted record of one run."""

    model_config = ConfigDict(populate_by_name=True)

    run_id: str = Field(..., alias="runId", description="Unique run ID")
    workflow_id: str = Field(..., alias="workflowId", description="Workflow the run executes")
    mode: str = Field(default="manual", description="How the run was initiated")
    status: RunStatus = Field(default=RunStatus.PENDING, description="Run status")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Run data and extras")
    error_message: str | None = Field(default=None, alias="errorMessage")
    started_at: datetime = Field(default_factory=utcnow, alias="startedAt")
    completed_at: datetime | None = Field(default=None, alias="completedAt")

    @property
    def duration_seconds(self) -> float | None:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()


class RunStore(ABC):
    """
    Persistence contract for run records.

    Status updates are monotonic: a record never moves backwards and a
    terminal record never changes again (repeated updates are no-ops).
    """

    @abstractmethod
    def _load(self, run_id: str) -> RunRecord | None:
        """Read a record."""

    @abstractmethod
    def _save(self, record: RunRecord) -> None:
        """Write a record (insert or replace)."""

    @abstractmethod
    def _remove(self, record: RunRecord) -> None:
        """Delete a record."""

    @abstractmethod
    def list_records(self, workflow_id: str | None = None) -> list[RunRecord]:
        """All records, optionally for one workflow, newest first."""

    def create(
        self,
        workflow_id: str,
        initial_status: RunStatus = RunStatus.PENDING,
        metadata: dict[str, Any] | None = None,
        mode: str = "manual",
    ) -> str:
        """
        Create a run record.

        Returns:
            The new run ID
        """
        record = RunRecord(
            run_id=str(uuid.uuid4()),
            workflow_id=workflow_id,
            mode=mode,
            status=initial_status,
            metadata=dict(metadata or {}),
        )
        if initial_status.is_terminal:
            record.completed_at = record.started_at
        self._save(record)

        logger.info(
            "Run record created",
            extra={"run_id": record.run_id, "workflow_id": workflow_id, "mode": mode},
        )
        return record.run_id

    def update_status(
        self,
        run_id: str,
        status: RunStatus,
        extra_metadata: dict[str, Any] | None = None,
    ) -> RunRecord:
        """
        Update run status, merging extra metadata into the stored metadata.

        An "error" key in extra_metadata becomes the record's error message.
        Terminal records are returned unchanged.

        Raises:
            RunNotFoundError: If the run does not exist
            InvalidStatusTransition: If the status would move backwards
        """
        record = self._load(run_id)
        if record is None:
            raise RunNotFoundError(run_id)

        if record.status.is_terminal:
            logger.debug(
                "Ignoring status update on terminal run",
                extra={"run_id": run_id, "status": record.status.value, "requested": status.value},
            )
            return record

        if not record.status.can_transition(status):
            raise InvalidStatusTransition(run_id, record.status.value, status.value)

        record.status = status
        if extra_metadata:
            record.metadata = {**record.metadata, **extra_metadata}
            if extra_metadata.get("error"):
                record.error_message = str(extra_metadata["error"])
        if status.is_terminal:
            record.completed_at = utcnow()
        self._save(record)

        logger.info(
            "Run status updated",
            extra={"run_id": run_id, "status": status.value},
        )
        return record

    def find_by_id(self, run_id: str) -> RunRecord | None:
        return self._load(run_id)

    def find_by_workflow(self, workflow_id: str, limit: int | None = None) -> list[RunRecord]:
        """Runs of one workflow, newest first."""
        limit = limit or get_settings().run_history_limit
        return self.list_records(workflow_id)[:limit]

    def delete(self, run_id: str) -> bool:
        record = self._load(run_id)
        if record is None:
            return False
        self._remove(record)
        return True

    def get_running(self) -> list[RunRecord]:
        """Runs currently in RUNNING status, oldest first."""
        running = [r for r in self.list_records() if r.status is RunStatus.RUNNING]
        return sorted(running, key=lambda r: r.started_at)

    def get_stats(self, workflow_id: str | None = None) -> dict[str, dict[str, Any]]:
        """
        Count and mean duration per status.

        Returns:
            {status: {"count": int, "avg_duration_seconds": float | None}}
        """
        stats: dict[str, dict[str, Any]] = {}
        durations: dict[str, list[float]] = {}
        for record in self.list_records(workflow_id):
            entry = stats.setdefault(record.status.value, {"count": 0, "avg_duration_seconds": None})
            entry["count"] += 1
            if record.duration_seconds is not None:
                durations.setdefault(record.status.value, []).append(record.duration_seconds)

        for status, values in durations.items():
            stats[status]["avg_duration_seconds"] = sum(values) / len(values)
        return stats

    def cleanup_old(self, days: int = 30) -> int:
        """Delete terminal runs started more than ``days`` ago."""
        cutoff = utcnow() - timedelta(days=days)
        removed = 0
        for record in self.list_records():
            if record.status.is_terminal and record.started_at < cutoff:
                self._remove(record)
                removed += 1

        if removed:
            logger.info("Old runs removed", extra={"removed": removed, "days": days})
        return removed


class InMemoryRunStore(RunStore):
    """Process-local run store."""

    def __init__(self) -> None:
        self._records: dict[str, str] = {}
        self._lock = threading.Lock()

    # Records are kept serialized so callers never share mutable state with the store
    def _load(self, run_id: str) -> RunRecord | None:
        with self._lock:
            data = self._records.get(run_id)
        return RunRecord.model_validate_json(data) if data is not None else None

    def _save(self, record: RunRecord) -> None:
        with self._lock:
            self._records[record.run_id] = record.model_dump_json()

    def _remove(self, record: RunRecord) -> None:
        with self._lock:
            self._records.pop(record.run_id, None)

    def list_records(self, workflow_id: str | None = None) -> list[RunRecord]:
        with self._lock:
            payloads = list(self._records.values())
        records = [RunRecord.model_validate_json(data) for data in payloads]
        if workflow_id is not None:
            records = [r for r in records if r.workflow_id == workflow_id]
        return sorted(records, key=lambda r: r.started_at, reverse=True)


class RedisRunStore(RunStore):
    """Redis-backed run store."""

    def __init__(self, redis_client: redis.Redis | None = None):
        """
        Initialize run store.

        Args:
            redis_client: Optional Redis client (will create one if not provided)
        """
        if redis_client is None:
            settings = get_settings()
            self.redis_client = redis.from_url(
                settings.redis_url,
                decode_responses=True,
            )
        else:
            self.redis_client = redis_client

        self._run_prefix = "run:"
        self._workflow_prefix = "workflow_runs:"
        self._all_runs_key = "runs"

    def _run_key(self, run_id: str) -> str:
        return f"{self._run_prefix}{run_id}"

    def _workflow_key(self, workflow_id: str) -> str:
        return f"{self._workflow_prefix}{workflow_id}"

    def _load(self, run_id: str) -> RunRecord | None:
        data = self.redis_client.get(self._run_key(run_id))
        if data is None:
            return None
        return RunRecord.model_validate_json(data)

    def _save(self, record: RunRecord) -> None:
        self.redis_client.set(self._run_key(record.run_id), record.model_dump_json())
        self.redis_client.sadd(self._all_runs_key, record.run_id)
        self.redis_client.sadd(self._workflow_key(record.workflow_id), record.run_id)

    def _remove(self, record: RunRecord) -> None:
        self.redis_client.delete(self._run_key(record.run_id))
        self.redis_client.srem(self._all_runs_key, record.run_id)
        self.redis_client.srem(self._workflow_key(record.workflow_id), record.run_id)

    def list_records(self, workflow_id: str | None = None) -> list[RunRecord]:
        key = self._workflow_key(workflow_id) if workflow_id is not None else self._all_runs_key
        records = []
        for run_id in self.redis_client.smembers(key):
            record = self._load(run_id)
            if record is not None:
                records.append(record)
        return sorted(records, key=lambda r: r.started_at, reverse=True)


def get_run_store() -> RunStore:
    """Create the run store selected by settings."""
    if get_settings().run_store_backend == "redis":
        return RedisRunStore()
    return InMemoryRunStore()


__all__ = [
    "RunRecord",
    "RunStore",
    "InMemoryRunStore",
    "RedisRunStore",
    "get_run_store",
]
