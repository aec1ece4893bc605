"""Shared helpers for approval engine tests."""
from __future__ import annotations

import asyncio
from typing import Optional

from trustpay_core import NotificationPayload

ALICE = "+919800000001"
BOB = "+919800000002"
CAROL = "+919800000003"
DAVE = "+919800000004"


class RecordingNotifier:
    """Notifier fake that records deliveries instead of pushing them."""

    def __init__(
        self,
        reachable: Optional[set[str]] = None,
        *,
        fail_for: Optional[set[str]] = None,
        delay: float = 0.0,
    ):
        self.reachable = set(reachable or ())
        self.fail_for = set(fail_for or ())
        self.delay = delay
        self.attempts: list[tuple[str, NotificationPayload]] = []
        self.sent: list[tuple[str, NotificationPayload]] = []
        self.closed = False

    async def notify(self, identity: str, payload: NotificationPayload) -> bool:
        self.attempts.append((identity, payload))
        if self.delay:
            await asyncio.sleep(self.delay)
        if identity in self.fail_for:
            raise RuntimeError("push service rejected the message")
        if identity not in self.reachable:
            return False
        self.sent.append((identity, payload))
        return True

    async def is_reachable(self, identity: str) -> bool:
        return identity in self.reachable

    async def aclose(self) -> None:
        self.closed = True

    def recipients(self) -> list[str]:
        return [identity for identity, _ in self.sent]

    def titles(self) -> list[str]:
        return [payload.title for _, payload in self.sent]
