"""
Node Registry - Registration, lookup and dispatch of node implementations.

Supports multiple registration methods:
1. Explicit registration of a descriptor + implementation
2. BaseNode subclasses (descriptor derived from class attributes)
3. Node packs via entry points
4. Module scanning

A registry is an explicit instance built at startup and handed to the
workflow engine; there is no process-wide node table.
"""

from __future__ import annotations

import importlib
import inspect
import logging
from importlib.metadata import entry_points
from typing import Any, Callable, Dict, Iterator, List, Optional, Type, Union

from node_sdk.basenode import BaseNode, NodeExecutionContext, NodeOutput

from .models import NodeDefinition, NodePackManifest


logger = logging.getLogger(__name__)

# Entry point group for node packs
NODE_PACK_ENTRY_POINT = "workflow_engine.nodepacks"

# Plain-function implementation: (context, items, parameters) -> outputs
NodeFunction = Callable[[NodeExecutionContext, List[Any], Dict[str, Any]], Any]
NodeImplementation = Union[Type[BaseNode], NodeFunction]


class NodeRegistry:
    """
    Registry mapping a node type name to its descriptor and implementation.

    Usage:
        registry = NodeRegistry()
        registry.register_node(SetNode)
        registry.register(
            "double",
            {"group": ["transform"]},
            lambda ctx, items, params: [[{"v": i.json["v"] * 2} for i in items]],
        )

        definition = registry.lookup("double")      # None if unknown
        outputs = registry.invoke("double", context)
    """

    def __init__(self) -> None:
        self._nodes: Dict[str, NodeDefinition] = {}
        self._implementations: Dict[str, NodeImplementation] = {}
        self._packs: Dict[str, NodePackManifest] = {}
        self._discovered = False

    # ==== Registration ====

    def register(
        self,
        node_type: str,
        descriptor: Union[NodeDefinition, Dict[str, Any], None],
        implementation: NodeImplementation,
    ) -> NodeDefinition:
        """
        Register a node type with an explicit descriptor.

        Args:
            node_type: Node type identifier
            descriptor: NodeDefinition or a dict of its fields
            implementation: BaseNode subclass or a callable
                ``(context, items, parameters) -> outputs``

        Returns:
            The stored NodeDefinition
        """
        if not (self._is_node_class(implementation) or callable(implementation)):
            raise TypeError(
                f"Implementation for '{node_type}' must be a BaseNode subclass or callable"
            )

        if descriptor is None:
            if not self._is_node_class(implementation):
                raise ValueError(f"Descriptor required for function node '{node_type}'")
            definition = NodeDefinition.from_node_class(implementation)
        elif isinstance(descriptor, NodeDefinition):
            definition = descriptor.model_copy(deep=True)
        else:
            definition = NodeDefinition.model_validate({**descriptor, "node_type": node_type})

        definition.node_type = node_type
        if definition.node_class is None:
            definition.node_class = self._qualified_name(implementation)

        if node_type in self._nodes:
            logger.warning(f"Replacing registered node type: {node_type}")

        self._nodes[node_type] = definition
        self._implementations[node_type] = implementation

        logger.debug(f"Registered node: {node_type}")
        return definition

    # Node catalog collaborator name
    register_node_type = register

    def register_node(
        self,
        node_class: Type[BaseNode],
        node_type: Optional[str] = None,
    ) -> NodeDefinition:
        """
        Register a BaseNode subclass.

        Args:
            node_class: BaseNode subclass
            node_type: Override node type (uses class.type if not provided)
        """
        if node_type is None:
            node_type = getattr(node_class, "type", node_class.__name__.lower())
        return self.register(node_type, NodeDefinition.from_node_class(node_class), node_class)

    def register_pack(
        self,
        manifest: NodePackManifest,
        node_classes: Dict[str, Type[BaseNode]],
    ) -> None:
        """Register a node pack with its nodes."""
        self._packs[manifest.name] = manifest

        for node_type, node_class in node_classes.items():
            definition = self.register_node(node_class, node_type)
            definition.node_pack = manifest.name

        logger.info(f"Registered pack '{manifest.name}' with {len(node_classes)} nodes")

    def discover_entry_points(self, force: bool = False) -> int:
        """
        Discover node packs via entry points.

        Entry points are declared in pyproject.toml:

            [project.entry-points."workflow_engine.nodepacks"]
            mypack = "mypack:register_nodes"

        The entry point should be a function that returns either
        ``(manifest, node_classes)`` or just a ``node_classes`` dict.

        Returns:
            Number of packs discovered
        """
        if self._discovered and not force:
            return len(self._packs)

        count = 0
        for ep in entry_points(group=NODE_PACK_ENTRY_POINT):
            try:
                result = ep.load()()
            except Exception as e:
                logger.error(f"Failed to load node pack '{ep.name}': {e}")
                continue

            if isinstance(result, tuple):
                manifest, node_classes = result
            elif isinstance(result, dict):
                manifest = NodePackManifest(name=ep.name, nodes=list(result.keys()))
                node_classes = result
            else:
                logger.error(f"Node pack '{ep.name}' returned {type(result).__name__}")
                continue

            self.register_pack(manifest, node_classes)
            count += 1
            logger.info(f"Discovered node pack: {ep.name}")

        self._discovered = True
        return count

    def discover_module(self, module_path: str) -> int:
        """
        Scan a module for BaseNode subclasses and register them.

        Returns:
            Number of nodes discovered
        """
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            logger.error(f"Failed to import module '{module_path}': {e}")
            return 0

        count = 0
        for _, obj in inspect.getmembers(module, self._is_node_class):
            if obj.__module__ == module.__name__ and not inspect.isabstract(obj):
                self.register_node(obj)
                count += 1
        return count

    # ==== Lookup ====

    def lookup(self, node_type: str) -> Optional[NodeDefinition]:
        """Get descriptor by type; None when unknown (soft failure)."""
        return self._nodes.get(node_type)

    get_descriptor = lookup

    def get_implementation(self, node_type: str) -> Optional[NodeImplementation]:
        return self._implementations.get(node_type)

    def list_types(self) -> List[str]:
        return list(self._nodes.keys())

    def list_nodes(self) -> List[NodeDefinition]:
        return list(self._nodes.values())

    def list_by_group(self, group: str) -> List[NodeDefinition]:
        """All descriptors tagged with a group (e.g. "trigger")."""
        return [definition for definition in self._nodes.values() if group in definition.group]

    def list_packs(self) -> List[NodePackManifest]:
        return list(self._packs.values())

    def required_credentials(self, node_type: str) -> List[str]:
        definition = self.lookup(node_type)
        return definition.required_credentials if definition else []

    def has_node(self, node_type: str) -> bool:
        return node_type in self._nodes

    # ==== Dispatch ====

    def invoke(self, node_type: str, context: NodeExecutionContext) -> NodeOutput:
        """
        Run a node implementation against a bound context.

        Class-based nodes get a fresh instance per invocation. Function nodes
        are called as ``fn(context, items_on_port_0, parameters)``.

        Raises:
            KeyError: If the node type is not registered
        """
        implementation = self._implementations.get(node_type)
        if implementation is None:
            raise KeyError(f"Unknown node type: {node_type}")

        if self._is_node_class(implementation):
            node: BaseNode = implementation()
            node.set_context(context)
            return node.execute()

        return implementation(context, context.get_input_data(0), context.parameters)

    # ==== Helpers ====

    @staticmethod
    def _is_node_class(obj: Any) -> bool:
        return isinstance(obj, type) and issubclass(obj, BaseNode) and obj is not BaseNode

    @staticmethod
    def _qualified_name(implementation: Any) -> str:
        module = getattr(implementation, "__module__", None) or "<unknown>"
        name = getattr(implementation, "__qualname__", None) or type(implementation).__name__
        return f"{module}.{name}"

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[NodeDefinition]:
        return iter(self._nodes.values())

    def __contains__(self, node_type: str) -> bool:
        return self.has_node(node_type)


__all__ = [
    "NodeRegistry",
    "NodeFunction",
    "NodeImplementation",
    "NODE_PACK_ENTRY_POINT",
]
