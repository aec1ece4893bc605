"""Trusted contact storage.

Each identity declares the contacts it trusts as a set of hash tokens, so the
mutual-trust check never handles the counterpart's plaintext identity.
"""
from __future__ import annotations

import hashlib
import logging
import re
import threading
from typing import Iterable, Optional, Protocol

from .exceptions import InvalidInputError
from .models import require_identity

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"^[0-9a-f]{64}$")


def hash_identity(identity: str) -> str:
    """One-way hash token for an identity (SHA-256, lowercase hex)."""
    return hashlib.sha256(identity.encode("utf-8")).hexdigest()


class ContactTrustStore(Protocol):
    def set_trusted_contacts(self, identity: str, tokens: Iterable[str]) -> None: ...
    def has_trust(self, identity: str, counterpart_token: str) -> bool: ...
    def get_trusted_contacts(self, identity: str) -> frozenset[str]: ...


class InMemoryContactTrustStore(ContactTrustStore):
    """In-memory trust store (swap for a database-backed store in production)."""

    def __init__(self) -> None:
        self._contacts: dict[str, frozenset[str]] = {}
        self._lock = threading.RLock()

    def set_trusted_contacts(self, identity: str, tokens: Iterable[str]) -> None:
        # Replace-on-write: a fresh registration supersedes prior state
        with self._lock:
            self._contacts[identity] = frozenset(tokens)

    def has_trust(self, identity: str, counterpart_token: str) -> bool:
        with self._lock:
            return counterpart_token in self._contacts.get(identity, frozenset())

    def get_trusted_contacts(self, identity: str) -> frozenset[str]:
        with self._lock:
            return self._contacts.get(identity, frozenset())


class ContactRegistry:
    """Registration path feeding a ContactTrustStore."""

    def __init__(self, store: ContactTrustStore):
        self._store = store

    def register_contacts(self, identity: Optional[str], raw_contacts: Optional[Iterable[str]]) -> int:
        """Hash raw contact identifiers and replace the identity's trusted set.

        Returns:
            Number of distinct tokens stored
        """
        identity = require_identity(identity, "identity")
        contacts = self._require_list(raw_contacts, "contacts")

        tokens = {
            hash_identity(contact.strip())
            for contact in contacts
            if isinstance(contact, str) and contact.strip()
        }
        self._store.set_trusted_contacts(identity, tokens)
        logger.info(f"Registered {len(tokens)} trusted contacts")
        return len(tokens)

    def register_contact_hashes(self, identity: Optional[str], tokens: Optional[Iterable[str]]) -> int:
        """Replace the identity's trusted set with tokens hashed client-side."""
        identity = require_identity(identity, "identity")
        hashes = self._require_list(tokens, "contact_hashes")

        normalized = set()
        for token in hashes:
            value = token.strip().lower() if isinstance(token, str) else ""
            if not _TOKEN_RE.match(value):
                raise InvalidInputError(
                    "contact hashes must be SHA-256 hex digests",
                    field="contact_hashes",
                )
            normalized.add(value)

        self._store.set_trusted_contacts(identity, normalized)
        logger.info(f"Registered {len(normalized)} trusted contact hashes")
        return len(normalized)

    @staticmethod
    def _require_list(values, field_name: str) -> list:
        if values is None or isinstance(values, (str, bytes)) or isinstance(values, dict):
            raise InvalidInputError(f"{field_name} must be a list", field=field_name)
        return list(values)
