"""Approval request engine for push-approved transactions and transfers."""

from .config import TrustPaySettings, load_settings
from .exceptions import (
    TrustPayError,
    InvalidInputError,
    RequestNotFoundError,
    RequestConflictError,
    RequestFinalizedError,
    DeliveryError,
)
from .models import (
    ApprovalRequest,
    RequestKind,
    RequestStatus,
    Decision,
    LedgerEntry,
    CreationResult,
    RECIPIENT_NOT_REACHABLE,
    MUTUAL_CHECK_FAILED,
)
from .contacts import ContactTrustStore, InMemoryContactTrustStore, ContactRegistry, hash_identity
from .trust import MutualTrustVerifier
from .request_store import RequestStore
from .request_store_memory import InMemoryRequestStore
from .approval_ledger import ApprovalLedger
from .notifier import Notifier, NotificationPayload, NotificationDispatcher, DeliveryStats
from .subscriptions import PushSubscription, SubscriptionRegistry
from .push import HttpPushNotifier
from .engine import ApprovalEngine, build_engine
from .logging_config import setup_logging, LogContext

__all__ = [
    "TrustPaySettings",
    "load_settings",
    "TrustPayError",
    "InvalidInputError",
    "RequestNotFoundError",
    "RequestConflictError",
    "RequestFinalizedError",
    "DeliveryError",
    "ApprovalRequest",
    "RequestKind",
    "RequestStatus",
    "Decision",
    "LedgerEntry",
    "CreationResult",
    "RECIPIENT_NOT_REACHABLE",
    "MUTUAL_CHECK_FAILED",
    "ContactTrustStore",
    "InMemoryContactTrustStore",
    "ContactRegistry",
    "hash_identity",
    "MutualTrustVerifier",
    "RequestStore",
    "InMemoryRequestStore",
    "ApprovalLedger",
    "Notifier",
    "NotificationPayload",
    "NotificationDispatcher",
    "DeliveryStats",
    "PushSubscription",
    "SubscriptionRegistry",
    "HttpPushNotifier",
    "ApprovalEngine",
    "build_engine",
    "setup_logging",
    "LogContext",
]
