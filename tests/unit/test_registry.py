"""Tests for NodeRegistry and NodeDefinition."""
from unittest.mock import MagicMock, patch

import pytest

from node_registry import NodeDefinition, NodePackManifest, NodeRegistry, Readiness
from node_registry.registry import NODE_PACK_ENTRY_POINT
from node_sdk.basenode import BaseNode, NodeExecutionContext
from node_sdk.items import NodeItem
from nodepacks.core import MANIFEST, MergeNode, SetNode, register_nodes


class UpperNode(BaseNode):
    type = "test.upper"
    description = {
        "displayName": "Upper",
        "group": ["transform"],
        "inputs": ["main"],
        "outputs": ["main"],
        "credentials": [{"name": "textApi", "required": False}, {"name": "auditApi"}],
    }
    properties = {
        "parameters": [
            {"name": "field", "type": "string", "default": "text"},
        ],
    }

    def execute(self):
        field = self.get_node_parameter("field")
        return [[{"json": {field: item.json[field].upper()}} for item in self.get_input_data()]]


class TestRegistration:

    def test_register_node_class(self):
        registry = NodeRegistry()
        definition = registry.register_node(UpperNode)

        assert definition.node_type == "test.upper"
        assert definition.display_name == "Upper"
        assert definition.node_class.endswith("UpperNode")
        assert registry.has_node("test.upper")
        assert "test.upper" in registry
        assert len(registry) == 1

    def test_register_function_with_dict_descriptor(self):
        registry = NodeRegistry()
        definition = registry.register(
            "test.double",
            {"group": ["transform"], "readiness": "all_inputs"},
            lambda ctx, items, params: [[{"v": item.json["v"] * 2} for item in items]],
        )

        assert definition.readiness == Readiness.ALL_INPUTS
        assert definition.display_name == "Test Double"
        assert registry.get_descriptor("test.double") is definition

    def test_function_requires_descriptor(self):
        with pytest.raises(ValueError):
            NodeRegistry().register("test.fn", None, lambda ctx, items, params: None)

    def test_implementation_must_be_callable(self):
        with pytest.raises(TypeError):
            NodeRegistry().register("test.bad", {}, "not callable")

    def test_lookup_is_soft(self):
        registry = NodeRegistry()

        assert registry.lookup("missing") is None
        assert registry.get_implementation("missing") is None
        assert registry.required_credentials("missing") == []

    def test_register_node_type_alias(self):
        registry = NodeRegistry()
        registry.register_node_type("test.upper", None, UpperNode)

        assert registry.list_types() == ["test.upper"]

    def test_required_credentials(self):
        registry = NodeRegistry()
        registry.register_node(UpperNode)

        assert registry.required_credentials("test.upper") == ["auditApi"]


class TestPacks:

    def test_register_core_pack(self):
        registry = NodeRegistry()
        manifest, node_classes = register_nodes()
        registry.register_pack(manifest, node_classes)

        assert set(registry.list_types()) == set(MANIFEST.nodes)
        assert registry.lookup(SetNode.type).node_pack == "core"
        assert registry.lookup(MergeNode.type).readiness == Readiness.ALL_INPUTS
        assert [d.node_type for d in registry.list_by_group("trigger")] == [
            "n8n-nodes-base.manualTrigger"
        ]
        assert registry.list_packs() == [MANIFEST]

    def test_discover_entry_points(self):
        entry_point = MagicMock()
        entry_point.name = "extra"
        entry_point.load.return_value = lambda: {"test.upper": UpperNode}

        registry = NodeRegistry()
        with patch("node_registry.registry.entry_points", return_value=[entry_point]) as mock_eps:
            assert registry.discover_entry_points() == 1
            # Cached until forced
            assert registry.discover_entry_points() == 1

        mock_eps.assert_called_once_with(group=NODE_PACK_ENTRY_POINT)
        assert registry.lookup("test.upper").node_pack == "extra"

    def test_broken_entry_point_is_skipped(self):
        entry_point = MagicMock()
        entry_point.name = "broken"
        entry_point.load.side_effect = ImportError("missing dependency")

        registry = NodeRegistry()
        with patch("node_registry.registry.entry_points", return_value=[entry_point]):
            assert registry.discover_entry_points() == 0

    def test_discover_module(self):
        registry = NodeRegistry()

        count = registry.discover_module("nodepacks.core.nodes")

        assert count == 6
        assert registry.has_node("n8n-nodes-base.if")
        assert registry.discover_module("does.not.exist") == 0


class TestInvoke:

    def test_invoke_class_node(self):
        registry = NodeRegistry()
        registry.register_node(UpperNode)
        definition = registry.lookup("test.upper")
        context = NodeExecutionContext(
            parameters={},
            input_data={0: [NodeItem.from_dict({"text": "hi"})]},
            parameter_defaults=definition.parameter_defaults,
        )

        assert registry.invoke("test.upper", context) == [[{"json": {"text": "HI"}}]]

    def test_invoke_function_node_receives_parameters_with_defaults(self):
        captured = {}

        def fn(ctx, items, params):
            captured.update(params)
            return None

        registry = NodeRegistry()
        registry.register(
            "test.fn",
            {"parameters": [{"name": "limit", "type": "number", "default": 10}]},
            fn,
        )
        context = NodeExecutionContext(
            parameters={"extra": "kept"},
            input_data=[],
            parameter_defaults=registry.lookup("test.fn").parameter_defaults,
        )

        assert registry.invoke("test.fn", context) is None
        assert captured == {"limit": 10, "extra": "kept"}

    def test_invoke_unknown(self):
        with pytest.raises(KeyError):
            NodeRegistry().invoke("missing", NodeExecutionContext({}, []))


class TestNodeDefinition:

    def test_ports_and_trigger(self):
        definition = NodeDefinition(node_type="t", group=["trigger"], inputs=[], outputs=["main", "main"])

        assert definition.is_trigger
        assert definition.input_count == 0
        assert definition.output_count == 2

    def test_apply_defaults_passes_unknown_keys(self):
        definition = NodeDefinition.from_node_class(UpperNode)

        assert definition.apply_defaults({"other": 1}) == {"field": "text", "other": 1}
        assert definition.apply_defaults({"field": "name"}) == {"field": "name"}
        assert definition.unrecognized_parameters({"field": 1, "other": 1}) == ["other"]

    def test_manifest_defaults(self):
        manifest = NodePackManifest(name="extra")

        assert manifest.version == "1.0.0"
        assert manifest.nodes == []
