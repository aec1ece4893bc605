"""Approval request engine.

Drives the request lifecycle for two kinds of request:

- transaction: the payee alone approves or rejects a payer's request.
- transfer: an originator moves a debt through an intermediary to a
  beneficiary. All three must trust each other before anyone is asked; then
  either approver rejecting is enough to reject, while approval needs both.

Decisions for the same request are serialized by a per-request lock, so a
request finalizes at most once and notifies its parties exactly once.
Notifications are dispatched in the background and never affect the outcome
of the operation that triggered them.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import weakref
from typing import Any, Iterable, Optional

from .approval_ledger import ApprovalLedger
from .config import TrustPaySettings, load_settings
from .contacts import ContactRegistry, ContactTrustStore, InMemoryContactTrustStore, hash_identity
from .exceptions import InvalidInputError, RequestConflictError, RequestNotFoundError
from .logging_config import LogContext, setup_logging
from .models import (
    MUTUAL_CHECK_FAILED,
    PAYER,
    RECIPIENT_NOT_REACHABLE,
    ApprovalRequest,
    CreationResult,
    Decision,
    RequestKind,
    RequestStatus,
    generate_request_id,
    require_identity,
)
from .notifier import DeliveryStats, NotificationDispatcher, NotificationPayload, Notifier
from .push import HttpPushNotifier
from .request_store import RequestStore
from .request_store_memory import InMemoryRequestStore
from .subscriptions import PushSubscription, SubscriptionRegistry
from .trust import MutualTrustVerifier

logger = logging.getLogger(__name__)

_TITLES = {
    (RequestKind.TRANSACTION, RequestStatus.APPROVED): "Transaction Approved",
    (RequestKind.TRANSACTION, RequestStatus.REJECTED): "Transaction Rejected",
    (RequestKind.TRANSFER, RequestStatus.APPROVED): "Transfer Approved",
    (RequestKind.TRANSFER, RequestStatus.REJECTED): "Transfer Rejected",
}


def _log_ref(identity: str) -> str:
    """Short hash reference so logs never carry raw identities."""
    return hash_identity(identity)[:12]


class ApprovalEngine:
    """Creates approval requests, records decisions and finalizes requests."""

    MAX_ID_ATTEMPTS = 5

    def __init__(
        self,
        *,
        requests: RequestStore,
        ledger: ApprovalLedger,
        contacts: ContactTrustStore,
        dispatcher: NotificationDispatcher,
        settings: Optional[TrustPaySettings] = None,
        subscriptions: Optional[SubscriptionRegistry] = None,
    ):
        self._requests = requests
        self._ledger = ledger
        self._contacts = ContactRegistry(contacts)
        self._verifier = MutualTrustVerifier(contacts)
        self._dispatcher = dispatcher
        self._settings = settings or TrustPaySettings()
        self._subscriptions = subscriptions
        # Locks live only while a decision or creation holds them
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create_transaction(
        self,
        payer: Optional[str],
        payee: Optional[str],
        amount: Any,
        note: Optional[str] = None,
    ) -> CreationResult:
        """Create a transaction and ask the payee to approve it.

        The request is stored as pending even when the payee has no
        registered endpoint; the caller then gets ``recipient-not-reachable``.
        """
        payer = require_identity(payer, "payer")
        payee = require_identity(payee, "payee")
        if payer == payee:
            raise InvalidInputError("payer and payee must differ", field="payee")

        request = self._persist(ApprovalRequest.transaction(payer, payee, amount, note))

        with LogContext(request_id=request.request_id):
            logger.info(f"Created transaction {request.request_id}")

            if not await self._dispatcher.is_reachable(payee):
                logger.warning(f"Payee of {request.request_id} is not reachable; request kept pending")
                return CreationResult.failed(RECIPIENT_NOT_REACHABLE, request)

            # A decision may have landed while reachability was being checked
            async with self._lock_for(request.request_id):
                request = self._requests.get(request.request_id) or request
                if not request.is_pending:
                    logger.info(
                        f"Transaction {request.request_id} was decided before the prompt went out "
                        f"({request.status.value})"
                    )
                    return CreationResult.succeeded(request)

                payload = self._payload(
                    request,
                    title="Transaction Approval",
                    body=f"Approve {self._money(amount)} from {payer}?",
                )
                self._dispatcher.dispatch(payee, payload.with_approver(payee))
                return CreationResult.succeeded(request)

    async def create_transfer(
        self,
        originator: Optional[str],
        intermediary: Optional[str],
        beneficiary: Optional[str],
        amount: Any,
        note: Optional[str] = None,
    ) -> CreationResult:
        """Create a transfer, gated by the mutual-trust check.

        On a failed check the request is kept with status
        ``mutual-check-failed`` and nobody is notified.
        """
        originator = require_identity(originator, "originator")
        intermediary = require_identity(intermediary, "intermediary")
        beneficiary = require_identity(beneficiary, "beneficiary")
        if len({originator, intermediary, beneficiary}) != 3:
            raise InvalidInputError("transfer parties must be three distinct identities", field="parties")

        request = self._persist(
            ApprovalRequest.transfer(originator, intermediary, beneficiary, amount, note)
        )

        with LogContext(request_id=request.request_id):
            logger.info(f"Created transfer {request.request_id}")

            if not self._verifier.verify_mutual_trust(originator, intermediary, beneficiary):
                async with self._lock_for(request.request_id):
                    request.finalize(RequestStatus.TRUST_CHECK_FAILED)
                    self._requests.save(request)
                logger.info(f"Transfer {request.request_id} failed the mutual trust check")
                return CreationResult.failed(MUTUAL_CHECK_FAILED, request)

            payload = self._payload(
                request,
                title="Transfer Approval",
                body=f"Approve transfer of {self._money(amount)} from {originator} (debt transfer)?",
            )
            for approver in request.approvers:
                self._dispatcher.dispatch(approver, payload.with_approver(approver))
            return CreationResult.succeeded(request)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def record_decision(
        self,
        request_id: Optional[str],
        approver: Optional[str],
        decision: Any,
    ) -> RequestStatus:
        """Record a decision and finalize the request if the quorum rule is met.

        Decisions are stored for any identity; only the approver roles of the
        request count. Decisions arriving after finalization are stored but
        never change the status.

        Returns:
            The request status after this call

        Raises:
            InvalidInputError: If a field is missing or the decision is unknown
            RequestNotFoundError: If the request does not exist
        """
        if not isinstance(request_id, str) or not request_id.strip():
            raise InvalidInputError("request_id is required", field="request_id")
        request_id = request_id.strip()
        approver = require_identity(approver, "approver")
        if decision is None or decision == "":
            raise InvalidInputError("decision is required", field="decision")
        parsed = Decision.parse(decision)

        if not self._requests.exists(request_id):
            raise RequestNotFoundError(request_id)

        async with self._lock_for(request_id):
            with LogContext(request_id=request_id, identity=_log_ref(approver)):
                self._ledger.record(request_id, approver, parsed)
                request = self._requests.get(request_id)
                if request is None:
                    raise RequestNotFoundError(request_id)

                if not request.is_pending:
                    logger.info(
                        f"Decision recorded on finalized request {request_id} ({request.status.value})"
                    )
                    return request.status

                outcome = self._evaluate(request)
                if outcome is None:
                    logger.info(f"Decision recorded; {request_id} still pending")
                    return request.status

                request.finalize(outcome)
                self._requests.save(request)
                logger.info(f"Request {request_id} finalized as {outcome.value}")
                self._notify_finalized(request)
                return request.status

    def _evaluate(self, request: ApprovalRequest) -> Optional[RequestStatus]:
        """Apply the quorum rule: any approver rejecting rejects, all approving approves.

        A transaction has one approver (the payee); a transfer has two
        (intermediary and beneficiary).
        """
        decisions = [
            self._ledger.decision_of(request.request_id, approver)
            for approver in request.approvers
        ]
        if any(d is Decision.REJECT for d in decisions):
            return RequestStatus.REJECTED
        if all(d is Decision.APPROVE for d in decisions):
            return RequestStatus.APPROVED
        return None

    def _notify_finalized(self, request: ApprovalRequest) -> None:
        payload = self._payload(
            request,
            title=_TITLES[(request.kind, request.status)],
            body=f"Request {request.request_id} was {request.status.value}",
        )
        if request.kind is RequestKind.TRANSACTION:
            recipients: Iterable[str] = (request.party(PAYER),)
        else:
            recipients = request.parties.values()
        for identity in recipients:
            self._dispatcher.dispatch(identity, payload)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_request(self, request_id: str) -> ApprovalRequest:
        request = self._requests.get(request_id)
        if request is None:
            raise RequestNotFoundError(request_id)
        return request

    async def get_decisions(self, request_id: str) -> dict[str, Decision]:
        return self._ledger.decisions(request_id)

    async def list_pending_for(self, identity: Optional[str]) -> list[ApprovalRequest]:
        """Every request in which ``identity`` holds a role, whatever its status."""
        identity = require_identity(identity, "identity")
        return self._requests.list_for(identity)

    # ------------------------------------------------------------------
    # Registration pass-throughs
    # ------------------------------------------------------------------

    def register_subscription(self, identity: Optional[str], subscription: Any) -> PushSubscription:
        if self._subscriptions is None:
            raise RuntimeError("engine was built without a subscription registry")
        return self._subscriptions.save(identity, subscription)

    def register_contacts(self, identity: Optional[str], raw_contacts: Optional[Iterable[str]]) -> int:
        return self._contacts.register_contacts(identity, raw_contacts)

    def register_contact_hashes(self, identity: Optional[str], tokens: Optional[Iterable[str]]) -> int:
        return self._contacts.register_contact_hashes(identity, tokens)

    @property
    def vapid_public_key(self) -> str:
        return self._settings.vapid_public_key

    @property
    def delivery_stats(self) -> DeliveryStats:
        return self._dispatcher.stats

    async def aclose(self) -> None:
        """Wait for outstanding notifications and release the notifier."""
        await self._dispatcher.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _persist(self, request: ApprovalRequest) -> ApprovalRequest:
        for _ in range(self.MAX_ID_ATTEMPTS):
            try:
                self._requests.add(request)
                return request
            except RequestConflictError:
                logger.warning(f"Request id collision on {request.request_id}; regenerating")
                request = dataclasses.replace(request, request_id=generate_request_id())
        raise RequestConflictError("Could not allocate a unique request id")

    def _lock_for(self, request_id: str) -> asyncio.Lock:
        lock = self._locks.get(request_id)
        if lock is None:
            lock = self._locks.setdefault(request_id, asyncio.Lock())
        return lock

    def _payload(self, request: ApprovalRequest, *, title: str, body: str) -> NotificationPayload:
        return NotificationPayload(
            title=title,
            body=body,
            request_id=request.request_id,
            server_endpoint=self._settings.public_base_url,
        )

    def _money(self, amount: Any) -> str:
        return f"{self._settings.currency_symbol}{amount}"


def build_engine(
    settings: Optional[TrustPaySettings] = None,
    *,
    notifier: Optional[Notifier] = None,
    configure_logging: bool = True,
) -> ApprovalEngine:
    """Wire an engine with in-memory stores and Web Push delivery.

    Unless ``configure_logging`` is false, root logging is set up from
    ``settings.log_level`` and ``settings.log_json``.
    """
    settings = settings or load_settings()
    if configure_logging:
        setup_logging(level=settings.log_level, json_format=settings.log_json)
    subscriptions = SubscriptionRegistry()
    requests = InMemoryRequestStore()
    if notifier is None:
        notifier = HttpPushNotifier(subscriptions, settings)
    return ApprovalEngine(
        requests=requests,
        ledger=ApprovalLedger(requests),
        contacts=InMemoryContactTrustStore(),
        dispatcher=NotificationDispatcher(notifier, settings.notification_timeout_seconds),
        settings=settings,
        subscriptions=subscriptions,
    )
