"""Tests for readiness policies."""
from node_registry import Readiness
from workflow_runtime.models import Connection
from workflow_runtime.readiness import (
    AllInputsPolicy,
    AnyInputPolicy,
    NodeInbox,
    resolve_policies,
)

LEFT = Connection("left", 0, "join", 0)
RIGHT = Connection("right", 0, "join", 1)
RIGHT_SAME_PORT = Connection("right", 0, "join", 0)


class TestAnyInput:

    def test_every_delivery_schedules(self):
        inbox = NodeInbox("join", connections=[LEFT, RIGHT], input_count=2)
        policy = AnyInputPolicy()

        assert policy.on_delivery(inbox, LEFT)
        assert policy.on_delivery(inbox, LEFT)
        assert inbox.deliveries == 2


class TestAllInputs:

    def test_waits_for_every_inbound_connection(self):
        inbox = NodeInbox("join", connections=[LEFT, RIGHT], input_count=2)
        policy = AllInputsPolicy()

        assert not policy.on_delivery(inbox, LEFT)
        assert inbox.missing_connections == [RIGHT]
        assert policy.on_delivery(inbox, RIGHT)

    def test_two_connections_on_one_port(self):
        inbox = NodeInbox("join", connections=[LEFT, RIGHT_SAME_PORT], input_count=1)
        policy = AllInputsPolicy()

        assert not policy.on_delivery(inbox, LEFT)
        assert not policy.on_delivery(inbox, LEFT)
        assert policy.on_delivery(inbox, RIGHT_SAME_PORT)

    def test_declared_port_without_connection_never_completes(self):
        inbox = NodeInbox("join", connections=[LEFT], input_count=2)
        policy = AllInputsPolicy()

        assert not policy.on_delivery(inbox, LEFT)
        assert inbox.unconnected_ports == [1]
        assert not inbox.is_complete

    def test_rounds_restart_after_reset(self):
        inbox = NodeInbox("join", connections=[LEFT, RIGHT], input_count=2)
        policy = AllInputsPolicy()
        policy.on_delivery(inbox, LEFT)
        policy.on_delivery(inbox, RIGHT)

        inbox.reset()

        assert not policy.on_delivery(inbox, RIGHT)
        assert policy.on_delivery(inbox, LEFT)

    def test_single_connection_behaves_like_any(self):
        inbox = NodeInbox("n", connections=[LEFT], input_count=1)

        assert AllInputsPolicy().on_delivery(inbox, LEFT)


class TestPolicyTable:

    def test_defaults(self):
        policies = resolve_policies()

        assert isinstance(policies[Readiness.ANY_INPUT], AnyInputPolicy)
        assert isinstance(policies[Readiness.ALL_INPUTS], AllInputsPolicy)

    def test_overrides(self):
        class Never:
            name = "never"

            def on_delivery(self, inbox, connection):
                inbox.mark(connection)
                return False

        policies = resolve_policies({Readiness.ANY_INPUT: Never()})

        assert isinstance(policies[Readiness.ANY_INPUT], Never)
        assert isinstance(policies[Readiness.ALL_INPUTS], AllInputsPolicy)
