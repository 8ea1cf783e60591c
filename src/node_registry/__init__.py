"""
Node Registry - Registration and dispatch of node implementations.

This package provides:
- NodeDefinition: Descriptor of a registered node type
- NodePackManifest: Package metadata for a node pack
- NodeRegistry: Explicit registry instance injected into the engine

Supports entry-points based discovery for plugin node packs.
"""

from .models import NodeDefinition, NodePackManifest, Readiness, TRIGGER_GROUP
from .registry import NODE_PACK_ENTRY_POINT, NodeRegistry

__all__ = [
    "NodeDefinition",
    "NodePackManifest",
    "NodeRegistry",
    "Readiness",
    "TRIGGER_GROUP",
    "NODE_PACK_ENTRY_POINT",
]
