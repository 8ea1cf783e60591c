"""
Core Node Pack - Essential utility nodes.

This pack provides basic nodes for workflow operations:
- ManualTrigger: Start a workflow manually
- Set: Set/modify data fields
- NoOp: Pass-through node (no operation)
- If: Route items to a true or false output
- Merge: Join two inputs
- HttpRequest: Timeout-bounded HTTP calls
"""

from .nodes import (
    HttpRequestNode,
    IfNode,
    ManualTriggerNode,
    MergeNode,
    NoOpNode,
    SetNode,
)
from .manifest import MANIFEST, NODE_CLASSES, register_nodes

__all__ = [
    "ManualTriggerNode",
    "SetNode",
    "NoOpNode",
    "IfNode",
    "MergeNode",
    "HttpRequestNode",
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
