"""Web Push delivery to registered browser subscriptions.

Messages are encrypted (aes128gcm) and signed with a VAPID JWT by
``pywebpush``. Its client is synchronous, so each send runs in a worker
thread to keep the event loop free.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

import requests
from pywebpush import WebPushException, webpush

from .config import TrustPaySettings
from .exceptions import DeliveryError
from .notifier import NotificationPayload
from .subscriptions import PushSubscription, SubscriptionRegistry

logger = logging.getLogger(__name__)


class HttpPushNotifier:
    """Notifier that sends Web Push messages to each identity's subscription.

    VAPID credentials come from settings and never change for the life of the
    notifier. Retries belong to the push service.
    """

    def __init__(
        self,
        subscriptions: SubscriptionRegistry,
        settings: TrustPaySettings,
        *,
        session: Optional[requests.Session] = None,
    ):
        self._subscriptions = subscriptions
        self._settings = settings
        self._session = session
        self._owns_session = session is None

    @property
    def public_key(self) -> str:
        return self._settings.vapid_public_key

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    async def is_reachable(self, identity: str) -> bool:
        return identity in self._subscriptions

    async def notify(self, identity: str, payload: NotificationPayload) -> bool:
        subscription = self._subscriptions.get(identity)
        if subscription is None:
            logger.info(f"No push subscription for recipient of {payload.request_id}")
            return False

        try:
            await asyncio.to_thread(self._send, subscription, payload.to_json())
        except DeliveryError as e:
            logger.warning(f"Push delivery for {payload.request_id} failed: {e}")
            return False
        return True

    def _send(self, subscription: PushSubscription, body: str) -> None:
        try:
            webpush(
                subscription_info=subscription.to_dict(),
                data=body,
                vapid_private_key=self._settings.vapid_private_key or None,
                vapid_claims={"sub": self._settings.vapid_subject},
                ttl=self._settings.notification_ttl_seconds,
                timeout=self._settings.notification_timeout_seconds,
                requests_session=self._get_session(),
            )
        except WebPushException as e:
            raise DeliveryError(
                f"Push service refused the message: {e}",
                status_code=getattr(e.response, "status_code", None),
            ) from e
        except requests.RequestException as e:
            raise DeliveryError(f"Push endpoint unreachable: {e}") from e

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None
