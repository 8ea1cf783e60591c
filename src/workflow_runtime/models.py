"""
Workflow Models - JSON structures for workflow graphs.

Connections use the n8n shape keyed by source node id:

    {"trigger": {"main": [[{"node": "set", "type": "main", "index": 0}]]}}

The outer list index is the source output port, ``index`` is the target
input port.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Iterator, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RunMode(str, Enum):
    """How a run was initiated."""
    MANUAL = "manual"
    WEBHOOK = "webhook"
    CRON = "cron"
    TRIGGER_EVENT = "trigger-event"


class ConnectionTarget(BaseModel):
    """
    One edge endpoint.

    Example: {"node": "http", "type": "main", "index": 0}
    """
    model_config = ConfigDict(extra="allow")

    node: str = Field(..., description="Target node id")
    type: str = Field("main", description="Connection type")
    index: int = Field(0, ge=0, description="Target input port")


class Connection(NamedTuple):
    """Flat view of one edge."""
    source_id: str
    source_port: int
    target_id: str
    target_port: int


class NodeSpec(BaseModel):
    """
    A node in a workflow graph.

    ``parameters`` is an opaque key/value map interpreted by the node type.
    ``credential_refs`` maps a credential type to a reference (credential id).
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Node id (unique within the graph)")
    name: str = Field("", description="Display name")
    type: str = Field(..., description="Registered node type")
    type_version: int = Field(1, alias="typeVersion", description="Node type version")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    credential_refs: Dict[str, Any] = Field(
        default_factory=dict, alias="credentialRefs", description="Credential type -> reference"
    )
    disabled: bool = Field(False, description="If true, node never executes")
    notes: Optional[str] = Field(None, description="Node notes")

    @model_validator(mode="before")
    @classmethod
    def _fill_identity(cls, data: Any) -> Any:
        # n8n exports may carry only a name, or "credentials" instead of "credentialRefs"
        if isinstance(data, dict):
            data = dict(data)
            if not data.get("id") and data.get("name"):
                data["id"] = data["name"]
            if not data.get("name") and data.get("id"):
                data["name"] = data["id"]
            if "credentials" in data and not {"credentialRefs", "credential_refs"} & set(data):
                data["credentialRefs"] = data.pop("credentials")
        return data


class WorkflowSettings(BaseModel):
    """Workflow-level settings."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    timezone: str = Field("UTC")
    save_manual_executions: bool = Field(True, alias="saveManualExecutions")


class WorkflowGraph(BaseModel):
    """
    Complete workflow graph; immutable input to a run.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = Field(None, description="Workflow ID")
    name: str = Field("Unnamed Workflow", description="Workflow name")
    active: bool = Field(False, description="Is workflow active?")

    nodes: List[NodeSpec] = Field(default_factory=list)
    connections: Dict[str, Dict[str, List[Optional[List[ConnectionTarget]]]]] = Field(
        default_factory=dict,
        description="Node connections: {source_id: {type: [[{node, type, index}]]}}"
    )

    settings: WorkflowSettings = Field(default_factory=WorkflowSettings)
    tags: List[str] = Field(default_factory=list)

    @property
    def workflow_id(self) -> str:
        return self.id or "unnamed"

    def get_node(self, node_id: str) -> Optional[NodeSpec]:
        """Get node by id."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def iter_connections(self, connection_type: str = "main") -> Iterator[Connection]:
        """Yield every edge of the given type as a flat Connection."""
        for source_id, outputs in self.connections.items():
            for source_port, targets in enumerate(outputs.get(connection_type, [])):
                for target in targets or []:
                    yield Connection(source_id, source_port, target.node, target.index)

    def get_downstream_nodes(self, node_id: str) -> List[str]:
        """Ids of nodes connected to this node's outputs."""
        return [c.target_id for c in self.iter_connections() if c.source_id == node_id]

    def get_upstream_nodes(self, node_id: str) -> List[str]:
        """Ids of nodes that connect to this node."""
        return [c.source_id for c in self.iter_connections() if c.target_id == node_id]


def parse_workflow(data: Dict[str, Any]) -> WorkflowGraph:
    """Parse workflow JSON into WorkflowGraph."""
    return WorkflowGraph.model_validate(data)


__all__ = [
    "RunMode",
    "ConnectionTarget",
    "Connection",
    "NodeSpec",
    "WorkflowSettings",
    "WorkflowGraph",
    "parse_workflow",
]
