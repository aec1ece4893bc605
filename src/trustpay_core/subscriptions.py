"""Push subscription registry.

Maps an identity to the push endpoint its client registered. An identity
without a subscription is unreachable.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

from .exceptions import InvalidInputError
from .models import require_identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PushSubscription:
    """Browser push subscription as produced by PushManager.subscribe()."""
    endpoint: str
    keys: dict[str, str] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_dict(cls, data: Any) -> "PushSubscription":
        if isinstance(data, PushSubscription):
            return data
        if not isinstance(data, dict):
            raise InvalidInputError("subscription is required", field="subscription")

        endpoint = data.get("endpoint")
        if not isinstance(endpoint, str) or urlparse(endpoint).scheme not in ("http", "https"):
            raise InvalidInputError(
                "subscription endpoint must be an http(s) URL",
                field="subscription.endpoint",
            )
        keys = data.get("keys") or {}
        if not isinstance(keys, dict):
            raise InvalidInputError("subscription keys must be an object", field="subscription.keys")
        return cls(endpoint=endpoint, keys={str(k): str(v) for k, v in keys.items()})

    def to_dict(self) -> dict[str, Any]:
        """Subscription info in the shape pywebpush expects."""
        return {"endpoint": self.endpoint, "keys": dict(self.keys)}


class SubscriptionRegistry:
    """In-memory subscription registry; a new registration replaces the old one."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, PushSubscription] = {}
        self._lock = threading.RLock()

    def save(self, identity: Optional[str], subscription: Any) -> PushSubscription:
        identity = require_identity(identity, "identity")
        sub = PushSubscription.from_dict(subscription)
        with self._lock:
            self._subscriptions[identity] = sub
        logger.info(f"Saved push subscription ({urlparse(sub.endpoint).netloc})")
        return sub

    def get(self, identity: str) -> Optional[PushSubscription]:
        with self._lock:
            return self._subscriptions.get(identity)

    def remove(self, identity: str) -> bool:
        with self._lock:
            return self._subscriptions.pop(identity, None) is not None

    def __contains__(self, identity: str) -> bool:
        with self._lock:
            return identity in self._subscriptions

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscriptions)
