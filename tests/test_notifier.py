"""Tests for notification payloads and the bounded-timeout dispatcher."""
from __future__ import annotations

import asyncio
import json

import pytest

from trustpay_core.notifier import NotificationDispatcher, NotificationPayload

from helpers import ALICE, BOB, RecordingNotifier


def _payload(**overrides) -> NotificationPayload:
    fields = {"title": "Transfer Approval", "body": "Approve?", "request_id": "req_1"}
    fields.update(overrides)
    return NotificationPayload(**fields)


class TestNotificationPayload:

    def test_wire_format(self):
        payload = _payload(server_endpoint="https://pay.example.com").with_approver(BOB)

        assert json.loads(payload.to_json()) == {
            "title": "Transfer Approval",
            "body": "Approve?",
            "requestId": "req_1",
            "tag": "trustpay-req_1",
            "approverPhone": BOB,
            "serverEndpoint": "https://pay.example.com",
        }

    def test_optional_fields_omitted(self):
        data = _payload().to_dict()
        assert "approverPhone" not in data
        assert "serverEndpoint" not in data

    def test_with_approver_returns_copy(self):
        base = _payload()
        addressed = base.with_approver(ALICE)

        assert base.approver is None
        assert addressed.approver == ALICE
        assert addressed.request_id == base.request_id


class TestNotificationDispatcher:

    @pytest.mark.asyncio
    async def test_successful_delivery(self):
        notifier = RecordingNotifier(reachable={ALICE})
        dispatcher = NotificationDispatcher(notifier, timeout_seconds=1)

        task = dispatcher.dispatch(ALICE, _payload())
        assert await task is True
        assert dispatcher.stats.to_dict() == {"dispatched": 1, "sent": 1, "failed": 0, "timed_out": 0}

    @pytest.mark.asyncio
    async def test_undelivered_counts_as_failure(self):
        dispatcher = NotificationDispatcher(RecordingNotifier(), timeout_seconds=1)

        assert await dispatcher.dispatch(ALICE, _payload()) is False
        assert dispatcher.stats.failed == 1

    @pytest.mark.asyncio
    async def test_exceptions_are_swallowed(self, caplog):
        notifier = RecordingNotifier(reachable={ALICE}, fail_for={ALICE})
        dispatcher = NotificationDispatcher(notifier, timeout_seconds=1)

        assert await dispatcher.dispatch(ALICE, _payload()) is False
        assert dispatcher.stats.failed == 1
        assert "failed" in caplog.text

    @pytest.mark.asyncio
    async def test_timeout_bounds_delivery(self):
        notifier = RecordingNotifier(reachable={ALICE}, delay=10)
        dispatcher = NotificationDispatcher(notifier, timeout_seconds=0.05)

        dispatcher.dispatch(ALICE, _payload())
        await asyncio.wait_for(dispatcher.drain(), timeout=1)

        assert dispatcher.stats.timed_out == 1
        assert notifier.sent == []

    @pytest.mark.asyncio
    async def test_dispatch_returns_before_delivery(self):
        notifier = RecordingNotifier(reachable={ALICE}, delay=0.05)
        dispatcher = NotificationDispatcher(notifier, timeout_seconds=1)

        dispatcher.dispatch(ALICE, _payload())
        assert dispatcher.pending == 1
        assert notifier.sent == []

        await dispatcher.drain()
        assert dispatcher.pending == 0
        assert notifier.recipients() == [ALICE]

    @pytest.mark.asyncio
    async def test_reachability_check_swallows_errors(self):
        class BrokenNotifier(RecordingNotifier):
            async def is_reachable(self, identity):
                raise RuntimeError("registry offline")

        dispatcher = NotificationDispatcher(BrokenNotifier(), timeout_seconds=1)
        assert await dispatcher.is_reachable(ALICE) is False

    @pytest.mark.asyncio
    async def test_close_closes_notifier(self):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier)
        await dispatcher.close()
        assert notifier.closed is True

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            NotificationDispatcher(RecordingNotifier(), timeout_seconds=0)
