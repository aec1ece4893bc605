"""Per-request, per-approver decision ledger."""
from __future__ import annotations

import threading
from typing import Optional

from .exceptions import RequestNotFoundError
from .models import Decision, LedgerEntry
from .request_store import RequestStore


class ApprovalLedger:
    """Records approver decisions.

    At most one decision is kept per (request, approver); a later decision from
    the same approver replaces the earlier one. Entries are stored for any
    identity, party or not; only the finalization rule decides which count.
    """

    def __init__(self, requests: RequestStore):
        self._requests = requests
        self._entries: dict[str, dict[str, LedgerEntry]] = {}
        self._lock = threading.RLock()

    def record(self, request_id: str, approver: str, decision: Decision) -> LedgerEntry:
        if not self._requests.exists(request_id):
            raise RequestNotFoundError(request_id)

        entry = LedgerEntry(request_id=request_id, approver=approver, decision=decision)
        with self._lock:
            self._entries.setdefault(request_id, {})[approver] = entry
        return entry

    def decision_of(self, request_id: str, approver: str) -> Optional[Decision]:
        with self._lock:
            entry = self._entries.get(request_id, {}).get(approver)
        return entry.decision if entry else None

    def decisions(self, request_id: str) -> dict[str, Decision]:
        """Snapshot of every recorded decision on a request."""
        if not self._requests.exists(request_id):
            raise RequestNotFoundError(request_id)
        with self._lock:
            return {
                approver: entry.decision
                for approver, entry in self._entries.get(request_id, {}).items()
            }

    def entries(self, request_id: str) -> list[LedgerEntry]:
        with self._lock:
            return sorted(
                self._entries.get(request_id, {}).values(),
                key=lambda e: e.recorded_at,
            )
