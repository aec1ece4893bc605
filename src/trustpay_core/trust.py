"""Mutual-trust verification for three-party transfers.

A transfer creates a debt relationship between people who may only know each
other through the intermediary. Before any party is asked to approve one,
every pair among originator, intermediary and beneficiary must have declared
the other as a trusted contact, in both directions.
"""
from __future__ import annotations

import logging
from itertools import permutations

from .contacts import ContactTrustStore, hash_identity

logger = logging.getLogger(__name__)


class MutualTrustVerifier:
    """Checks that three identities all trust each other."""

    def __init__(self, store: ContactTrustStore):
        self._store = store

    def missing_relations(self, a: str, b: str, c: str) -> list[tuple[str, str]]:
        """Return the (truster, trusted) pairs whose trust declaration is absent."""
        tokens = {identity: hash_identity(identity) for identity in (a, b, c)}
        return [
            (truster, trusted)
            for truster, trusted in permutations((a, b, c), 2)
            if not self._store.has_trust(truster, tokens[trusted])
        ]

    def verify_mutual_trust(self, a: str, b: str, c: str) -> bool:
        """True iff all six directional trust relations hold."""
        missing = self.missing_relations(a, b, c)
        if missing:
            logger.debug(f"Mutual trust check failed: {len(missing)} of 6 relations missing")
            return False
        return True
