"""
Node Items - Data structures flowing through workflows.

NodeItem is the fundamental data unit in workflows.
Each item has JSON data and optional binary attachments.
A Batch is the ordered list of items one node execution
produced on one output port.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field


class BinaryData(BaseModel):
    """
    Binary attachment for a node item.

    Binary data is stored separately and referenced by key.
    Serialized to JSON as base64.
    """
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        ser_json_bytes="base64",
        val_json_bytes="base64",
    )

    data: bytes = Field(..., description="Raw binary data")
    mime_type: str = Field(
        "application/octet-stream", alias="mimeType", description="MIME type"
    )
    file_name: Optional[str] = Field(None, alias="fileName", description="Original filename")
    file_extension: Optional[str] = Field(None, alias="fileExtension")

    @property
    def size(self) -> int:
        """Get size of binary data."""
        return len(self.data)


class PairedItem(BaseModel):
    """
    Reference to the source item that produced this item.

    Used for tracking data lineage through workflows.
    """
    model_config = ConfigDict(extra="forbid")

    item: int = Field(..., description="Index of source item", ge=0)
    input: int = Field(0, description="Input port index", ge=0)


class NodeItem(BaseModel):
    """
    A single data item flowing through a workflow.

    Each item has:
    - json_data: The main JSON data (dict), serialized as "json"
    - binary: Optional binary attachments keyed by name
    - paired_item: Optional reference to source item

    Example:
        item = NodeItem(json_data={"name": "John", "email": "john@example.com"})
        item = NodeItem.coerce({"json": {"a": 1}, "pairedItem": {"item": 0}})
    """
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    json_data: Dict[str, Any] = Field(
        default_factory=dict, alias="json", description="JSON data"
    )
    binary: Optional[Dict[str, BinaryData]] = Field(
        None,
        description="Binary attachments keyed by name"
    )
    paired_item: Optional[PairedItem] = Field(
        None,
        alias="pairedItem",
        description="Reference to source item"
    )

    @property
    def json(self) -> Dict[str, Any]:  # type: ignore[override]
        """Alias for json_data."""
        return self.json_data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeItem":
        """Create NodeItem from a plain payload dict."""
        return cls(json_data=data)

    @classmethod
    def from_list(cls, items: List[Dict[str, Any]]) -> List["NodeItem"]:
        """Create list of NodeItems from list of payload dicts."""
        return [cls.from_dict(item) for item in items]

    @classmethod
    def coerce(cls, value: Union["NodeItem", Dict[str, Any]]) -> "NodeItem":
        """
        Normalize node output into a NodeItem.

        Accepts a NodeItem, an n8n-style {"json": ..., "pairedItem": ...}
        dict, or a bare payload dict (wrapped as json).
        """
        if isinstance(value, NodeItem):
            return value
        if isinstance(value, dict):
            if (
                isinstance(value.get("json"), dict)
                and set(value) <= {"json", "binary", "pairedItem"}
            ):
                return cls.model_validate(value)
            return cls(json_data=value)
        raise TypeError(f"Cannot convert {type(value).__name__} to NodeItem")

    def to_execution_data(self) -> Dict[str, Any]:
        """Dump in the n8n wire shape ({"json": ..., ...})."""
        return self.model_dump(by_alias=True, exclude_none=True)

    def get(self, key: str, default: Any = None) -> Any:
        """Get value from JSON data."""
        return self.json_data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Get value from JSON data."""
        return self.json_data[key]

    def __contains__(self, key: str) -> bool:
        """Check if key exists in JSON data."""
        return key in self.json_data


Batch = List[NodeItem]


def to_batch(items: Optional[Sequence[Union[NodeItem, Dict[str, Any]]]]) -> Batch:
    """Coerce a sequence of raw items into a Batch."""
    return [NodeItem.coerce(item) for item in (items or [])]


def empty_item() -> NodeItem:
    """Single empty item used to seed trigger nodes."""
    return NodeItem()


__all__ = [
    "BinaryData",
    "PairedItem",
    "NodeItem",
    "Batch",
    "to_batch",
    "empty_item",
]
