"""
Core Node Pack Manifest - Registration function for entry-points.
"""

from node_registry.models import NodePackManifest

from .nodes import (
    HttpRequestNode,
    IfNode,
    ManualTriggerNode,
    MergeNode,
    NoOpNode,
    SetNode,
)


# Node classes by type
NODE_CLASSES = {
    node_class.type: node_class
    for node_class in (
        ManualTriggerNode,
        SetNode,
        NoOpNode,
        IfNode,
        MergeNode,
        HttpRequestNode,
    )
}


MANIFEST = NodePackManifest(
    name="core",
    version="1.0.0",
    description="Core utility nodes for workflow operations",
    author="workflow-engine",
    license="MIT",
    nodes=list(NODE_CLASSES),
    entry_point="nodepacks.core",
)


def register_nodes():
    """
    Entry point function for node pack discovery.

    Returns tuple of (manifest, node_classes).
    """
    return MANIFEST, NODE_CLASSES


__all__ = [
    "MANIFEST",
    "NODE_CLASSES",
    "register_nodes",
]
