"""Tests for trusted contact storage and mutual trust verification."""
from __future__ import annotations

import hashlib

import pytest

from trustpay_core.contacts import ContactRegistry, InMemoryContactTrustStore, hash_identity
from trustpay_core.exceptions import InvalidInputError
from trustpay_core.trust import MutualTrustVerifier

from helpers import ALICE, BOB, CAROL, DAVE


class TestHashIdentity:

    def test_is_sha256_hex(self):
        assert hash_identity(ALICE) == hashlib.sha256(ALICE.encode("utf-8")).hexdigest()

    def test_is_stable(self):
        assert hash_identity(BOB) == hash_identity(BOB)
        assert hash_identity(BOB) != hash_identity(CAROL)


class TestInMemoryContactTrustStore:

    def test_unknown_identity_trusts_nobody(self):
        store = InMemoryContactTrustStore()
        assert store.has_trust(ALICE, hash_identity(BOB)) is False
        assert store.get_trusted_contacts(ALICE) == frozenset()

    def test_set_replaces_previous_contacts(self):
        store = InMemoryContactTrustStore()
        store.set_trusted_contacts(ALICE, {hash_identity(BOB)})
        store.set_trusted_contacts(ALICE, {hash_identity(CAROL)})

        assert store.has_trust(ALICE, hash_identity(CAROL))
        assert not store.has_trust(ALICE, hash_identity(BOB))

    def test_plaintext_identity_is_not_a_token(self):
        store = InMemoryContactTrustStore()
        store.set_trusted_contacts(ALICE, {hash_identity(BOB)})
        assert not store.has_trust(ALICE, BOB)


class TestContactRegistry:

    @pytest.fixture
    def store(self):
        return InMemoryContactTrustStore()

    @pytest.fixture
    def registry(self, store):
        return ContactRegistry(store)

    def test_register_contacts_hashes_raw_identities(self, registry, store):
        count = registry.register_contacts(ALICE, [BOB, f"  {CAROL} ", "", BOB])

        assert count == 2
        assert store.get_trusted_contacts(ALICE) == {hash_identity(BOB), hash_identity(CAROL)}

    def test_register_contact_hashes_normalizes_case(self, registry, store):
        token = hash_identity(BOB)
        registry.register_contact_hashes(ALICE, [token.upper()])
        assert store.has_trust(ALICE, token)

    def test_register_contact_hashes_rejects_non_digests(self, registry):
        with pytest.raises(InvalidInputError) as exc_info:
            registry.register_contact_hashes(ALICE, [BOB])
        assert exc_info.value.field == "contact_hashes"

    @pytest.mark.parametrize("contacts", [None, BOB, {"phone": BOB}])
    def test_contacts_must_be_a_list(self, registry, contacts):
        with pytest.raises(InvalidInputError):
            registry.register_contacts(ALICE, contacts)

    def test_identity_is_required(self, registry):
        with pytest.raises(InvalidInputError) as exc_info:
            registry.register_contacts("  ", [BOB])
        assert exc_info.value.field == "identity"

    def test_empty_list_clears_contacts(self, registry, store):
        registry.register_contacts(ALICE, [BOB])
        registry.register_contacts(ALICE, [])
        assert store.get_trusted_contacts(ALICE) == frozenset()


class TestMutualTrustVerifier:

    @pytest.fixture
    def store(self):
        return InMemoryContactTrustStore()

    @pytest.fixture
    def verifier(self, store):
        return MutualTrustVerifier(store)

    def _trust(self, store, identity, *others):
        store.set_trusted_contacts(identity, {hash_identity(o) for o in others})

    def test_all_six_relations_pass(self, store, verifier):
        self._trust(store, ALICE, BOB, CAROL)
        self._trust(store, BOB, ALICE, CAROL)
        self._trust(store, CAROL, ALICE, BOB)

        assert verifier.verify_mutual_trust(ALICE, BOB, CAROL) is True
        assert verifier.missing_relations(ALICE, BOB, CAROL) == []

    def test_one_sided_declaration_fails(self, store, verifier):
        # CAROL does not trust BOB
        self._trust(store, ALICE, BOB, CAROL)
        self._trust(store, BOB, ALICE, CAROL)
        self._trust(store, CAROL, ALICE)

        assert verifier.verify_mutual_trust(ALICE, BOB, CAROL) is False
        assert verifier.missing_relations(ALICE, BOB, CAROL) == [(CAROL, BOB)]

    @pytest.mark.parametrize("truster,trusted", [
        (ALICE, BOB), (ALICE, CAROL),
        (BOB, ALICE), (BOB, CAROL),
        (CAROL, ALICE), (CAROL, BOB),
    ])
    def test_each_missing_relation_fails(self, store, verifier, truster, trusted):
        circle = {ALICE: {BOB, CAROL}, BOB: {ALICE, CAROL}, CAROL: {ALICE, BOB}}
        circle[truster].discard(trusted)
        for identity, others in circle.items():
            self._trust(store, identity, *others)

        assert verifier.verify_mutual_trust(ALICE, BOB, CAROL) is False
        assert verifier.missing_relations(ALICE, BOB, CAROL) == [(truster, trusted)]

    def test_only_originator_trusting_fails(self, store, verifier):
        self._trust(store, ALICE, BOB, CAROL)

        assert verifier.verify_mutual_trust(ALICE, BOB, CAROL) is False
        assert len(verifier.missing_relations(ALICE, BOB, CAROL)) == 4

    def test_trusting_an_outsider_does_not_help(self, store, verifier):
        self._trust(store, ALICE, BOB, CAROL)
        self._trust(store, BOB, ALICE, CAROL)
        self._trust(store, CAROL, ALICE, DAVE)

        assert verifier.verify_mutual_trust(ALICE, BOB, CAROL) is False
