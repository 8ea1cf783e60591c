"""
Credential resolution for node invocations.

The engine never stores credentials: it asks a CredentialStore for the
decrypted payload when a node calls ``context.get_credentials(type)`` and
hands a copy to that single invocation.
"""

from __future__ import annotations

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from .errors import CredentialResolutionError


class CredentialStore(ABC):
    """Source of decrypted credential payloads keyed by (owner, type)."""

    @abstractmethod
    def find_by_owner_and_type(self, owner_id: Optional[str], credential_type: str) -> List[Dict[str, Any]]:
        """All decrypted payloads of a type owned by a user."""

    def find_by_id(self, owner_id: Optional[str], credential_id: str) -> Optional[Dict[str, Any]]:
        """One payload by reference; stores without references return None."""
        return None


class InMemoryCredentialStore(CredentialStore):
    """Process-local credential store, mostly for tests and the CLI."""

    def __init__(self) -> None:
        # (owner_id, credential_type) -> [(credential_id, payload)]
        self._credentials: Dict[Tuple[Optional[str], str], List[Tuple[str, Dict[str, Any]]]] = {}
        self._lock = threading.Lock()

    def add(
        self,
        owner_id: Optional[str],
        credential_type: str,
        data: Dict[str, Any],
        credential_id: Optional[str] = None,
    ) -> str:
        credential_id = credential_id or str(uuid.uuid4())
        with self._lock:
            self._credentials.setdefault((owner_id, credential_type), []).append(
                (credential_id, dict(data))
            )
        return credential_id

    def find_by_owner_and_type(self, owner_id: Optional[str], credential_type: str) -> List[Dict[str, Any]]:
        with self._lock:
            entries = self._credentials.get((owner_id, credential_type), [])
            return [copy.deepcopy(payload) for _, payload in entries]

    def find_by_id(self, owner_id: Optional[str], credential_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            for (owner, _), entries in self._credentials.items():
                if owner != owner_id:
                    continue
                for entry_id, payload in entries:
                    if entry_id == credential_id:
                        return copy.deepcopy(payload)
        return None


def resolve_credentials(
    store: Optional[CredentialStore],
    owner_id: Optional[str],
    credential_type: str,
    reference: Optional[Any] = None,
    node_id: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Resolve one credential payload for a node invocation.

    A reference from the node's credential refs is preferred when the store
    knows it; otherwise the first payload of the type owned by the run's
    owner is used.

    Raises:
        CredentialResolutionError: If nothing matches
    """
    if store is None:
        raise CredentialResolutionError(credential_type, owner_id, node_id)

    if isinstance(reference, dict):
        reference = reference.get("id")
    if reference:
        payload = store.find_by_id(owner_id, str(reference))
        if payload is not None:
            return payload

    payloads = store.find_by_owner_and_type(owner_id, credential_type)
    if not payloads:
        raise CredentialResolutionError(credential_type, owner_id, node_id)
    return copy.deepcopy(payloads[0])


__all__ = [
    "CredentialStore",
    "InMemoryCredentialStore",
    "resolve_credentials",
]
