"""
Compiled Graph - Validated, indexed view of a workflow graph.

Compilation validates the graph against the node registry and builds the
adjacency indexes the engine needs while propagating data. A graph that
fails validation never reaches the engine, so no run is created for it.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from typing import Dict, List, NoReturn, Optional, Tuple

from node_registry import NodeDefinition, NodeRegistry, Readiness

from .errors import GraphError, GraphErrorKind
from .models import Connection, NodeSpec, WorkflowGraph


logger = logging.getLogger(__name__)

Endpoint = Tuple[str, int]


class CompiledGraph:
    """
    Workflow graph validated for execution.

    Checks, in order:
    - node ids are unique
    - every node type is registered
    - every connection references existing nodes and declared ports
    - at least one enabled node carries the "trigger" tag
    """

    def __init__(self, workflow: WorkflowGraph, registry: NodeRegistry):
        self.workflow = workflow
        self.workflow_id = workflow.workflow_id
        self.workflow_name = workflow.name

        self._nodes: Dict[str, NodeSpec] = {}
        self._descriptors: Dict[str, NodeDefinition] = {}
        self._outbound: Dict[Endpoint, List[Connection]] = defaultdict(list)
        self._inbound: Dict[str, List[Connection]] = defaultdict(list)

        self._index_nodes(registry)
        self._index_connections()
        self._triggers = self._find_triggers()

    def _index_nodes(self, registry: NodeRegistry) -> None:
        counts = Counter(node.id for node in self.workflow.nodes)
        duplicates = sorted(node_id for node_id, count in counts.items() if count > 1)
        if duplicates:
            raise GraphError(
                GraphErrorKind.DUPLICATE_NODE_ID,
                f"Node ids must be unique; duplicated: {duplicates}",
            )

        for node in self.workflow.nodes:
            definition = registry.lookup(node.type)
            if definition is None:
                raise GraphError(
                    GraphErrorKind.UNKNOWN_NODE_TYPE,
                    f"Node '{node.id}' has unregistered type '{node.type}'",
                )
            self._nodes[node.id] = node
            self._descriptors[node.id] = definition

    def _index_connections(self) -> None:
        for connection in self.workflow.iter_connections():
            source = self._descriptors.get(connection.source_id)
            target = self._descriptors.get(connection.target_id)

            if source is None:
                self._dangling(connection, f"unknown source node '{connection.source_id}'")
            if target is None:
                self._dangling(connection, f"unknown target node '{connection.target_id}'")
            if connection.source_port >= source.output_count:
                self._dangling(
                    connection,
                    f"'{connection.source_id}' has {source.output_count} output port(s)",
                )
            if connection.target_port >= target.input_count:
                self._dangling(
                    connection,
                    f"'{connection.target_id}' has {target.input_count} input port(s)",
                )

            self._outbound[(connection.source_id, connection.source_port)].append(connection)
            self._inbound[connection.target_id].append(connection)

    @staticmethod
    def _dangling(connection: Connection, reason: str) -> NoReturn:
        raise GraphError(
            GraphErrorKind.DANGLING_CONNECTION,
            f"Connection {connection.source_id}[{connection.source_port}] -> "
            f"{connection.target_id}[{connection.target_port}]: {reason}",
        )

    def _find_triggers(self) -> List[str]:
        triggers = [
            node_id for node_id, node in self._nodes.items()
            if not node.disabled and self._descriptors[node_id].is_trigger
        ]
        if not triggers:
            raise GraphError(
                GraphErrorKind.NO_TRIGGER,
                f"Workflow '{self.workflow_id}' has no enabled trigger node",
            )
        return triggers

    @property
    def trigger_ids(self) -> List[str]:
        """Trigger node ids in graph declaration order."""
        return list(self._triggers)

    @property
    def node_ids(self) -> List[str]:
        return list(self._nodes.keys())

    def get_node(self, node_id: str) -> Optional[NodeSpec]:
        return self._nodes.get(node_id)

    def descriptor(self, node_id: str) -> Optional[NodeDefinition]:
        return self._descriptors.get(node_id)

    def outbound(self, node_id: str, port: int) -> List[Endpoint]:
        """(target_id, target_port) pairs fed by one output port."""
        return [(c.target_id, c.target_port) for c in self._outbound.get((node_id, port), [])]

    def outbound_connections(self, node_id: str, port: int) -> List[Connection]:
        """Connections leaving one output port, in declaration order."""
        return list(self._outbound.get((node_id, port), []))

    def inbound(self, node_id: str) -> List[Connection]:
        return list(self._inbound.get(node_id, []))

    def connected_input_ports(self, node_id: str) -> List[int]:
        """Input ports of a node that have at least one inbound connection."""
        return sorted({c.target_port for c in self._inbound.get(node_id, [])})

    def unconnected_input_ports(self, node_id: str) -> List[int]:
        """Declared input ports of a node that no connection feeds."""
        connected = set(self.connected_input_ports(node_id))
        return [port for port in range(self._descriptors[node_id].input_count) if port not in connected]

    def sources_for_port(self, node_id: str, port: int) -> List[Endpoint]:
        """(source_id, source_port) pairs feeding one input port, in declaration order."""
        return [
            (c.source_id, c.source_port)
            for c in self._inbound.get(node_id, [])
            if c.target_port == port
        ]

    def readiness(self, node_id: str, default: Readiness) -> Readiness:
        definition = self._descriptors.get(node_id)
        if definition is not None and definition.readiness is not None:
            return definition.readiness
        return default


def validate_graph(workflow: WorkflowGraph, registry: NodeRegistry) -> CompiledGraph:
    """Validate a workflow graph; raises GraphError on failure."""
    return CompiledGraph(workflow, registry)


__all__ = [
    "CompiledGraph",
    "Endpoint",
    "validate_graph",
]
