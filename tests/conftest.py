"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables
os.environ["WORKFLOW_ENV"] = "test"
os.environ["WORKFLOW_LOG_JSON"] = "false"
os.environ["WORKFLOW_REDIS_URL"] = "redis://localhost:6379/1"  # Test DB

from node_registry import NodeRegistry  # noqa: E402
from node_sdk.errors import NodeOperationError  # noqa: E402
from nodepacks.core.manifest import register_nodes  # noqa: E402
from workflow_runtime.config import reset_settings  # noqa: E402
from workflow_runtime.credentials import InMemoryCredentialStore  # noqa: E402
from workflow_runtime.events import EventChannel  # noqa: E402
from workflow_runtime.executor import WorkflowEngine  # noqa: E402
from workflow_runtime.run_store import InMemoryRunStore  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test reads settings from its own environment."""
    reset_settings()
    yield
    reset_settings()


# ==============================================================================
# Test node types (plain-function implementations)
# ==============================================================================

def _trigger(context, items, params):
    return [[{"json": item.json} for item in items] or [{"json": {}}]]


def _passthrough(context, items, params):
    return [[{"json": {**item.json, "seen_by": context.node_id}} for item in items]]


def _join(context, items, params):
    merged = []
    for port in context.input_ports:
        merged.extend({"json": item.json} for item in context.get_input_data(port))
    return [merged]


def _fail(context, items, params):
    raise NodeOperationError(params.get("message", "boom"))


def _fail_silently(context, items, params):
    raise RuntimeError()


def _loop_counter(context, items, params):
    """Two outputs: port 0 loops back until ``limit`` executions, then port 1."""
    state = context.get_workflow_static_data("node")
    state["count"] = state.get("count", 0) + 1
    payload = {"count": state["count"]}
    if state["count"] < params.get("limit", 3):
        return [[payload], None]
    return [None, [payload]]


def _credentials(context, items, params):
    creds = context.get_credentials("demoApi")
    return [[{"json": {"token": creds["token"]}}]]


TEST_NODES = {
    "test.trigger": ({"group": ["trigger"], "inputs": []}, _trigger),
    "test.passthrough": ({"group": ["transform"]}, _passthrough),
    "test.joinAny": (
        {"group": ["transform"], "inputs": ["main", "main"], "readiness": "any_input"},
        _join,
    ),
    "test.joinAll": (
        {"group": ["transform"], "inputs": ["main", "main"], "readiness": "all_inputs"},
        _join,
    ),
    "test.collectAny": (
        {"group": ["transform"], "inputs": ["main"], "readiness": "any_input"},
        _join,
    ),
    "test.collectAll": (
        {"group": ["transform"], "inputs": ["main"], "readiness": "all_inputs"},
        _join,
    ),
    "test.fail": ({"group": ["transform"]}, _fail),
    "test.failSilently": ({"group": ["transform"]}, _fail_silently),
    "test.loop": (
        {
            "group": ["transform"],
            "inputs": ["main"],
            "outputs": ["main", "main"],
            "parameters": [{"name": "limit", "type": "number", "default": 3}],
        },
        _loop_counter,
    ),
    "test.credentials": (
        {"group": ["transform"], "credentials": [{"name": "demoApi"}]},
        _credentials,
    ),
}


@pytest.fixture
def registry():
    """Registry with the core pack and the test node types."""
    registry = NodeRegistry()
    manifest, node_classes = register_nodes()
    registry.register_pack(manifest, node_classes)
    for node_type, (descriptor, implementation) in TEST_NODES.items():
        registry.register(node_type, descriptor, implementation)
    return registry


@pytest.fixture
def run_store():
    return InMemoryRunStore()


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore()


@pytest.fixture
def events():
    return EventChannel()


@pytest.fixture
def engine(registry, run_store, credential_store, events):
    """Engine wired to in-memory collaborators."""
    return WorkflowEngine(
        registry,
        run_store=run_store,
        credential_store=credential_store,
        events=events,
    )


@pytest.fixture
def make_graph():
    """
    Build a workflow graph dict.

    nodes: [(id, type)] or [(id, type, parameters)]
    edges: [(source, target)] or [(source, source_port, target, target_port)]
    """

    def build(nodes, edges=(), workflow_id="wf-test"):
        connections = {}
        for edge in edges:
            if len(edge) == 2:
                source, target = edge
                source_port, target_port = 0, 0
            else:
                source, source_port, target, target_port = edge
            ports = connections.setdefault(source, {}).setdefault("main", [])
            while len(ports) <= source_port:
                ports.append([])
            ports[source_port].append({"node": target, "type": "main", "index": target_port})

        return {
            "id": workflow_id,
            "name": f"Workflow {workflow_id}",
            "nodes": [
                {
                    "id": spec[0],
                    "name": spec[0],
                    "type": spec[1],
                    "parameters": spec[2] if len(spec) > 2 else {},
                }
                for spec in nodes
            ],
            "connections": connections,
        }

    return build
