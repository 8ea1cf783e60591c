"""Tests for workflow models and graph validation."""
import pytest

from workflow_runtime.errors import GraphError, GraphErrorKind
from workflow_runtime.graph import CompiledGraph, validate_graph
from workflow_runtime.models import Connection, NodeSpec, parse_workflow
from node_registry import Readiness


class TestWorkflowModels:

    def test_parse_n8n_shape(self, make_graph):
        workflow = parse_workflow(make_graph(
            [("start", "test.trigger"), ("check", "test.loop"), ("a", "test.passthrough")],
            [("start", "check"), ("check", 1, "a", 0)],
        ))

        connections = list(workflow.iter_connections())
        assert [tuple(c) for c in connections] == [("start", 0, "check", 0), ("check", 1, "a", 0)]
        assert workflow.get_downstream_nodes("check") == ["a"]
        assert workflow.get_upstream_nodes("a") == ["check"]
        assert workflow.get_node("a").type == "test.passthrough"
        assert workflow.get_node("missing") is None

    def test_node_identity_filled_from_name(self):
        node = NodeSpec.model_validate({"name": "Set Data", "type": "n8n-nodes-base.set"})

        assert node.id == "Set Data"
        assert node.name == "Set Data"

    def test_credentials_key_maps_to_refs(self):
        node = NodeSpec.model_validate({
            "id": "http",
            "type": "n8n-nodes-base.httpRequest",
            "credentials": {"httpApi": {"id": "cred-1", "name": "Main"}},
        })

        assert node.credential_refs == {"httpApi": {"id": "cred-1", "name": "Main"}}

    def test_null_port_entries_are_allowed(self):
        workflow = parse_workflow({
            "nodes": [{"id": "a", "type": "test.trigger"}],
            "connections": {"a": {"main": [None, []]}},
        })

        assert list(workflow.iter_connections()) == []
        assert workflow.workflow_id == "unnamed"


class TestValidation:

    def test_valid_graph_indexes(self, registry, make_graph):
        workflow = parse_workflow(make_graph(
            [("start", "test.trigger"), ("left", "test.passthrough"),
             ("right", "test.passthrough"), ("join", "test.joinAll")],
            [("start", "left"), ("start", "right"),
             ("left", 0, "join", 0), ("right", 0, "join", 1)],
        ))

        graph = validate_graph(workflow, registry)

        assert isinstance(graph, CompiledGraph)
        assert graph.trigger_ids == ["start"]
        assert graph.outbound("start", 0) == [("left", 0), ("right", 0)]
        assert graph.outbound("start", 1) == []
        assert graph.connected_input_ports("join") == [0, 1]
        assert graph.sources_for_port("join", 1) == [("right", 0)]
        assert len(graph.inbound("join")) == 2
        assert graph.readiness("join", Readiness.ANY_INPUT) == Readiness.ALL_INPUTS
        assert graph.readiness("left", Readiness.ANY_INPUT) == Readiness.ANY_INPUT
        assert graph.outbound_connections("left", 0) == [Connection("left", 0, "join", 0)]
        assert graph.unconnected_input_ports("join") == []

    def test_unconnected_declared_ports(self, registry, make_graph):
        workflow = parse_workflow(make_graph(
            [("start", "test.trigger"), ("join", "test.joinAll")],
            [("start", 0, "join", 0)],
        ))

        graph = validate_graph(workflow, registry)

        assert graph.connected_input_ports("join") == [0]
        assert graph.unconnected_input_ports("join") == [1]
        assert graph.unconnected_input_ports("start") == []

    def test_duplicate_node_ids(self, registry, make_graph):
        workflow = parse_workflow(make_graph([("a", "test.trigger"), ("a", "test.passthrough")]))

        with pytest.raises(GraphError) as exc_info:
            CompiledGraph(workflow, registry)

        assert exc_info.value.kind == GraphErrorKind.DUPLICATE_NODE_ID

    def test_unknown_node_type(self, registry, make_graph):
        workflow = parse_workflow(make_graph([("a", "test.trigger"), ("b", "nope.unknown")]))

        with pytest.raises(GraphError) as exc_info:
            CompiledGraph(workflow, registry)

        assert exc_info.value.kind == GraphErrorKind.UNKNOWN_NODE_TYPE
        assert "nope.unknown" in exc_info.value.message

    @pytest.mark.parametrize(
        "edge",
        [
            ("ghost", 0, "a", 0),   # unknown source
            ("start", 0, "ghost", 0),  # unknown target
            ("start", 1, "a", 0),   # trigger has one output port
            ("start", 0, "a", 1),   # passthrough has one input port
        ],
    )
    def test_dangling_connections(self, registry, make_graph, edge):
        workflow = parse_workflow(make_graph(
            [("start", "test.trigger"), ("a", "test.passthrough")],
            [edge],
        ))

        with pytest.raises(GraphError) as exc_info:
            CompiledGraph(workflow, registry)

        assert exc_info.value.kind == GraphErrorKind.DANGLING_CONNECTION

    def test_no_trigger(self, registry, make_graph):
        workflow = parse_workflow(make_graph([("a", "test.passthrough")]))

        with pytest.raises(GraphError) as exc_info:
            CompiledGraph(workflow, registry)

        assert exc_info.value.kind == GraphErrorKind.NO_TRIGGER
        assert str(exc_info.value).startswith("no_trigger:")

    def test_multiple_triggers_in_declaration_order(self, registry, make_graph):
        workflow = parse_workflow(make_graph([
            ("second", "test.trigger"), ("a", "test.passthrough"), ("first", "n8n-nodes-base.manualTrigger"),
        ]))

        assert CompiledGraph(workflow, registry).trigger_ids == ["second", "first"]
