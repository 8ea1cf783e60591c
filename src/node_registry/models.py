"""
Node Registry Models - Descriptors for node types and node packs.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from node_sdk.basenode import NodeCredential, NodeParameter


TRIGGER_GROUP = "trigger"


class Readiness(str, Enum):
    """When a node with several inbound connections becomes eligible to run."""
    ANY_INPUT = "any_input"
    ALL_INPUTS = "all_inputs"


class NodeDefinition(BaseModel):
    """
    Descriptor of a registered node type.

    Declares ports, credential requirements, group/capability tags and the
    recognized parameter schema. The tag "trigger" marks node types that can
    originate a run.
    """
    model_config = ConfigDict(extra="allow")

    # Identity
    node_type: str = Field(..., description="Unique node type identifier")
    version: int = Field(1, description="Node version")

    # Display
    display_name: str = Field("", validate_default=True, description="Human-readable name")
    description: str = Field("", description="Node description")
    icon: str = Field("file:icon.svg", description="Node icon")
    group: List[str] = Field(default_factory=list, description="Capability tags")

    # Technical
    node_class: Optional[str] = Field(None, description="Fully qualified implementation name")
    node_pack: Optional[str] = Field(None, description="Source node pack")

    # Runtime
    inputs: List[str] = Field(default_factory=lambda: ["main"])
    outputs: List[str] = Field(default_factory=lambda: ["main"])
    credentials: List[NodeCredential] = Field(default_factory=list)
    parameters: List[NodeParameter] = Field(default_factory=list)
    readiness: Optional[Readiness] = Field(
        None, description="Join policy override; engine default when unset"
    )

    @field_validator("display_name")
    @classmethod
    def _default_display_name(cls, value: str, info: ValidationInfo) -> str:
        if value:
            return value
        node_type = info.data.get("node_type", "")
        return node_type.replace("-", " ").replace(".", " ").title()

    @property
    def input_count(self) -> int:
        return len(self.inputs)

    @property
    def output_count(self) -> int:
        return len(self.outputs)

    @property
    def is_trigger(self) -> bool:
        return TRIGGER_GROUP in self.group

    @property
    def required_credentials(self) -> List[str]:
        return [cred.name for cred in self.credentials if cred.required]

    @property
    def parameter_defaults(self) -> Dict[str, Any]:
        return {param.name: param.default for param in self.parameters}

    def apply_defaults(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """
        Fill declared defaults for absent parameters.

        Keys the schema does not recognize are passed through unchanged.
        """
        return {**self.parameter_defaults, **(parameters or {})}

    def unrecognized_parameters(self, parameters: Dict[str, Any]) -> List[str]:
        known = {param.name for param in self.parameters}
        return [key for key in (parameters or {}) if key not in known]

    @classmethod
    def from_node_class(cls, node_class: Type) -> "NodeDefinition":
        """Create definition from a BaseNode class."""
        node_type = getattr(node_class, "type", node_class.__name__.lower())
        version = getattr(node_class, "version", 1)
        description = getattr(node_class, "description", {})
        properties = getattr(node_class, "properties", {})

        if not isinstance(description, dict):
            description = {"description": str(description) if description else ""}

        if isinstance(properties, dict):
            parameters = properties.get("parameters", [])
            credentials = description.get("credentials") or properties.get("credentials", [])
        else:
            parameters = list(properties) if properties else []
            credentials = description.get("credentials", [])

        return cls(
            node_type=node_type,
            version=version,
            display_name=description.get("displayName", ""),
            description=description.get("description", ""),
            icon=description.get("icon", "file:icon.svg"),
            group=list(description.get("group", [])),
            node_class=f"{node_class.__module__}.{node_class.__qualname__}",
            inputs=list(description.get("inputs", ["main"])),
            outputs=list(description.get("outputs", ["main"])),
            credentials=credentials,
            parameters=parameters,
            readiness=description.get("readiness"),
        )


class NodePackManifest(BaseModel):
    """
    Manifest for a node pack (collection of nodes).

    Used for discovery and registration of bundled nodes.
    """
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., description="Pack name (e.g., 'core')")
    version: str = Field("1.0.0", description="Pack version")
    description: str = Field("", description="Pack description")
    author: str = Field("", description="Author name")
    license: str = Field("MIT", description="License type")

    nodes: List[str] = Field(
        default_factory=list,
        description="List of node types in this pack"
    )
    entry_point: str = Field(
        "",
        description="Module path for node discovery (e.g., 'nodepacks.core')"
    )


__all__ = [
    "NodeDefinition",
    "NodePackManifest",
    "Readiness",
    "TRIGGER_GROUP",
]
