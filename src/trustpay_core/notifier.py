"""Approval notification delivery.

The engine hands every notification to a NotificationDispatcher, which runs
the Notifier call as a background task bounded by a timeout. Delivery results
are logged and counted, never raised back to the operation that caused them.
"""
from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, replace
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationPayload:
    """Message pushed to one identity.

    ``approver`` is set on approval requests so the client can post the
    decision back on behalf of the addressed party.
    """
    title: str
    body: str
    request_id: str
    approver: Optional[str] = None
    server_endpoint: Optional[str] = None

    @property
    def tag(self) -> str:
        return f"trustpay-{self.request_id}"

    def with_approver(self, approver: str) -> "NotificationPayload":
        return replace(self, approver=approver)

    def to_dict(self) -> dict[str, Any]:
        """Wire format read by the service worker."""
        data: dict[str, Any] = {
            "title": self.title,
            "body": self.body,
            "requestId": self.request_id,
            "tag": self.tag,
        }
        if self.approver:
            data["approverPhone"] = self.approver
        if self.server_endpoint:
            data["serverEndpoint"] = self.server_endpoint
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


class Notifier(Protocol):
    async def notify(self, identity: str, payload: NotificationPayload) -> bool: ...
    async def is_reachable(self, identity: str) -> bool: ...
    async def aclose(self) -> None: ...


@dataclass
class DeliveryStats:
    """Delivery counters for observability."""
    dispatched: int = 0
    sent: int = 0
    failed: int = 0
    timed_out: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "dispatched": self.dispatched,
            "sent": self.sent,
            "failed": self.failed,
            "timed_out": self.timed_out,
        }


class NotificationDispatcher:
    """Fire-and-forget delivery with a bounded timeout per notification."""

    DEFAULT_TIMEOUT = 10.0  # seconds

    def __init__(self, notifier: Notifier, timeout_seconds: float = DEFAULT_TIMEOUT):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._notifier = notifier
        self._timeout = timeout_seconds
        self._tasks: set[asyncio.Task] = set()
        self.stats = DeliveryStats()

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(self, identity: str, payload: NotificationPayload) -> asyncio.Task:
        """Schedule delivery and return immediately."""
        self.stats.dispatched += 1
        task = asyncio.create_task(self._deliver(identity, payload))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def is_reachable(self, identity: str) -> bool:
        """Ask the notifier whether the identity has an endpoint, within the timeout."""
        try:
            return bool(await asyncio.wait_for(
                self._notifier.is_reachable(identity),
                timeout=self._timeout,
            ))
        except asyncio.TimeoutError:
            logger.warning(f"Reachability check timed out after {self._timeout}s")
            return False
        except Exception as e:
            logger.warning(f"Reachability check failed: {e}")
            return False

    async def _deliver(self, identity: str, payload: NotificationPayload) -> bool:
        try:
            delivered = await asyncio.wait_for(
                self._notifier.notify(identity, payload),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            self.stats.timed_out += 1
            logger.warning(
                f"Notification for {payload.request_id} timed out after {self._timeout}s",
                extra={"delivery_outcome": "timeout"},
            )
            return False
        except Exception as e:
            self.stats.failed += 1
            logger.warning(
                f"Notification for {payload.request_id} failed: {e}",
                extra={"delivery_outcome": "error"},
            )
            return False

        if delivered:
            self.stats.sent += 1
            logger.debug(f"Sent '{payload.title}' for {payload.request_id}")
        else:
            self.stats.failed += 1
            logger.info(
                f"Notification for {payload.request_id} was not delivered",
                extra={"delivery_outcome": "undelivered"},
            )
        return bool(delivered)

    async def drain(self) -> None:
        """Wait for every outstanding delivery to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self._notifier.aclose()
