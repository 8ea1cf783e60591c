"""Tests for NodeItem, BinaryData and batches."""
import pytest

from node_sdk.items import BinaryData, NodeItem, empty_item, to_batch


class TestNodeItem:

    def test_coerce_wire_shape(self):
        item = NodeItem.coerce({"json": {"a": 1}, "pairedItem": {"item": 2}})

        assert item.json == {"a": 1}
        assert item.paired_item.item == 2
        assert item.paired_item.input == 0

    def test_coerce_bare_payload(self):
        item = NodeItem.coerce({"a": 1, "json": "not-an-object"})

        assert item.json == {"a": 1, "json": "not-an-object"}

    def test_coerce_payload_with_extra_keys_is_wrapped(self):
        item = NodeItem.coerce({"json": {"a": 1}, "other": True})

        assert item.json == {"json": {"a": 1}, "other": True}

    def test_coerce_rejects_non_dicts(self):
        with pytest.raises(TypeError):
            NodeItem.coerce(42)

    def test_accessors(self):
        item = NodeItem.from_dict({"name": "x"})

        assert item["name"] == "x"
        assert item.get("missing", "d") == "d"
        assert "name" in item

    def test_to_execution_data_omits_empty_fields(self):
        assert NodeItem.from_dict({"a": 1}).to_execution_data() == {"json": {"a": 1}}

    def test_binary_round_trip_through_json(self):
        item = NodeItem(
            json_data={"file": "report"},
            binary={"data": BinaryData(data=b"\x00\x01", mime_type="application/pdf", file_name="r.pdf")},
        )

        restored = NodeItem.model_validate_json(item.model_dump_json(by_alias=True))

        assert restored.binary["data"].data == b"\x00\x01"
        assert restored.binary["data"].mime_type == "application/pdf"
        assert restored.binary["data"].size == 2


class TestBatches:

    def test_to_batch_mixed(self):
        batch = to_batch([NodeItem.from_dict({"a": 1}), {"json": {"b": 2}}, {"c": 3}])

        assert [item.json for item in batch] == [{"a": 1}, {"b": 2}, {"c": 3}]

    def test_to_batch_none(self):
        assert to_batch(None) == []

    def test_empty_item(self):
        assert empty_item().json == {}
        assert NodeItem.from_list([{"a": 1}])[0].json == {"a": 1}
