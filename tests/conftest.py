"""
Pytest configuration for trustpay-core tests.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(package_src))

os.environ.setdefault("TRUSTPAY_ENVIRONMENT", "dev")

from trustpay_core import (  # noqa: E402
    ApprovalEngine,
    ApprovalLedger,
    InMemoryContactTrustStore,
    InMemoryRequestStore,
    NotificationDispatcher,
    SubscriptionRegistry,
    TrustPaySettings,
)

from helpers import ALICE, BOB, CAROL, DAVE, RecordingNotifier  # noqa: E402


@pytest.fixture
def settings():
    return TrustPaySettings(
        _env_file=None,
        public_base_url="https://pay.example.com/",
        vapid_public_key="test-public-key",
        vapid_private_key="test-private-key",
        notification_timeout_seconds=0.5,
    )


@pytest.fixture
def notifier():
    return RecordingNotifier(reachable={ALICE, BOB, CAROL, DAVE})


@pytest.fixture
def dispatcher(notifier, settings):
    return NotificationDispatcher(notifier, settings.notification_timeout_seconds)


@pytest.fixture
def request_store():
    return InMemoryRequestStore()


@pytest.fixture
def contact_store():
    return InMemoryContactTrustStore()


@pytest.fixture
def engine(request_store, contact_store, dispatcher, settings):
    return ApprovalEngine(
        requests=request_store,
        ledger=ApprovalLedger(request_store),
        contacts=contact_store,
        dispatcher=dispatcher,
        settings=settings,
        subscriptions=SubscriptionRegistry(),
    )


@pytest.fixture
def trusted_circle(engine):
    """ALICE, BOB and CAROL all trust each other."""
    engine.register_contacts(ALICE, [BOB, CAROL])
    engine.register_contacts(BOB, [ALICE, CAROL])
    engine.register_contacts(CAROL, [ALICE, BOB])
    return ALICE, BOB, CAROL
