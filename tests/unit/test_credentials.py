"""Tests for credential resolution."""
import pytest

from workflow_runtime.credentials import (
    CredentialStore,
    InMemoryCredentialStore,
    resolve_credentials,
)
from workflow_runtime.errors import CredentialResolutionError, NodeExecutionError


class TestInMemoryCredentialStore:

    def test_scoped_by_owner_and_type(self):
        store = InMemoryCredentialStore()
        store.add("alice", "githubApi", {"token": "a"})
        store.add("alice", "slackApi", {"token": "s"})
        store.add("bob", "githubApi", {"token": "b"})

        assert store.find_by_owner_and_type("alice", "githubApi") == [{"token": "a"}]
        assert store.find_by_owner_and_type("carol", "githubApi") == []

    def test_payloads_are_copies(self):
        store = InMemoryCredentialStore()
        store.add("alice", "githubApi", {"nested": {"token": "a"}})

        store.find_by_owner_and_type("alice", "githubApi")[0]["nested"]["token"] = "changed"

        assert store.find_by_owner_and_type("alice", "githubApi") == [{"nested": {"token": "a"}}]

    def test_find_by_id_respects_owner(self):
        store = InMemoryCredentialStore()
        credential_id = store.add("alice", "githubApi", {"token": "a"}, credential_id="cred-1")

        assert credential_id == "cred-1"
        assert store.find_by_id("alice", "cred-1") == {"token": "a"}
        assert store.find_by_id("bob", "cred-1") is None


class TestResolveCredentials:

    def test_first_match_for_owner(self):
        store = InMemoryCredentialStore()
        store.add("alice", "githubApi", {"token": "first"})
        store.add("alice", "githubApi", {"token": "second"})

        assert resolve_credentials(store, "alice", "githubApi") == {"token": "first"}

    def test_reference_preferred(self):
        store = InMemoryCredentialStore()
        store.add("alice", "githubApi", {"token": "first"})
        store.add("alice", "githubApi", {"token": "second"}, credential_id="c2")

        assert resolve_credentials(store, "alice", "githubApi", "c2") == {"token": "second"}
        assert resolve_credentials(store, "alice", "githubApi", {"id": "c2"}) == {"token": "second"}

    def test_unknown_reference_falls_back_to_type(self):
        store = InMemoryCredentialStore()
        store.add("alice", "githubApi", {"token": "first"})

        assert resolve_credentials(store, "alice", "githubApi", "gone") == {"token": "first"}

    def test_missing_raises(self):
        with pytest.raises(CredentialResolutionError) as exc_info:
            resolve_credentials(InMemoryCredentialStore(), "alice", "githubApi", node_id="n1")

        error = exc_info.value
        assert isinstance(error, NodeExecutionError)
        assert error.credential_type == "githubApi"
        assert error.owner_id == "alice"
        assert error.node_id == "n1"

    def test_no_store_raises(self):
        with pytest.raises(CredentialResolutionError):
            resolve_credentials(None, "alice", "githubApi")

    def test_store_without_references(self):
        class TypeOnlyStore(CredentialStore):
            def find_by_owner_and_type(self, owner_id, credential_type):
                return [{"token": f"{owner_id}-{credential_type}"}]

        store = TypeOnlyStore()
        assert resolve_credentials(store, "alice", "x", "ref") == {"token": "alice-x"}
