"""
Readiness policies - when a node with inbound connections may execute.

Every delivered batch is recorded against the connection that carried it in
the target's NodeInbox, and the target's policy decides whether the delivery
makes the node eligible:

- ANY_INPUT: every fresh batch on any connection makes the node eligible, so
  a join fed by two branches runs once per arrival.
- ALL_INPUTS: the node becomes eligible once every inbound connection has
  delivered fresh data since its last execution and every declared input
  port is wired; it then runs once for that round. A node with a declared
  port that has no inbound connection never becomes eligible.

Custom policies implement the ReadinessPolicy protocol and are passed to the
engine keyed by Readiness value.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Protocol, Set

from node_registry import Readiness

from .models import Connection


@dataclass
class NodeInbox:
    """Per-node record of which inbound connections delivered fresh data."""

    node_id: str
    connections: List[Connection]
    input_count: int = 1
    fresh: Set[Connection] = field(default_factory=set)
    deliveries: int = 0

    def mark(self, connection: Connection) -> None:
        self.fresh.add(connection)
        self.deliveries += 1

    def reset(self) -> None:
        """Start a new round once the node has been scheduled."""
        self.fresh.clear()

    @property
    def missing_connections(self) -> List[Connection]:
        return [c for c in self.connections if c not in self.fresh]

    @property
    def unconnected_ports(self) -> List[int]:
        """Declared input ports no connection feeds."""
        connected = {c.target_port for c in self.connections}
        return [port for port in range(self.input_count) if port not in connected]

    @property
    def is_complete(self) -> bool:
        return not self.missing_connections and not self.unconnected_ports


class ReadinessPolicy(Protocol):
    """Decides whether a delivery makes a node eligible to execute."""

    name: str

    def on_delivery(self, inbox: NodeInbox, connection: Connection) -> bool:
        """Record a fresh batch on ``connection``; return True if the node should be scheduled."""
        ...


class AnyInputPolicy:
    name = Readiness.ANY_INPUT.value

    def on_delivery(self, inbox: NodeInbox, connection: Connection) -> bool:
        inbox.mark(connection)
        return True


class AllInputsPolicy:
    name = Readiness.ALL_INPUTS.value

    def on_delivery(self, inbox: NodeInbox, connection: Connection) -> bool:
        inbox.mark(connection)
        return inbox.is_complete


DEFAULT_POLICIES: Dict[Readiness, ReadinessPolicy] = {
    Readiness.ANY_INPUT: AnyInputPolicy(),
    Readiness.ALL_INPUTS: AllInputsPolicy(),
}


def resolve_policies(
    overrides: Optional[Mapping[Readiness, ReadinessPolicy]] = None,
) -> Dict[Readiness, ReadinessPolicy]:
    """Default policy table with caller overrides applied."""
    policies = dict(DEFAULT_POLICIES)
    policies.update(overrides or {})
    return policies


__all__ = [
    "NodeInbox",
    "ReadinessPolicy",
    "AnyInputPolicy",
    "AllInputsPolicy",
    "DEFAULT_POLICIES",
    "resolve_policies",
]
