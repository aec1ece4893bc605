"""In-memory approval request store (demo/dev)."""

from __future__ import annotations

import threading
from typing import Optional

from .exceptions import RequestConflictError, RequestNotFoundError
from .models import ApprovalRequest
from .request_store import RequestStore


class InMemoryRequestStore(RequestStore):
    """In-memory request store (swap for PostgreSQL in production).

    Requests live for the process lifetime; there is no deletion.
    """

    def __init__(self) -> None:
        self._requests: dict[str, ApprovalRequest] = {}
        self._lock = threading.RLock()

    def add(self, request: ApprovalRequest) -> None:
        with self._lock:
            if request.request_id in self._requests:
                raise RequestConflictError(
                    f"Request '{request.request_id}' already exists",
                    details={"request_id": request.request_id},
                )
            self._requests[request.request_id] = request

    def get(self, request_id: str) -> Optional[ApprovalRequest]:
        with self._lock:
            return self._requests.get(request_id)

    def save(self, request: ApprovalRequest) -> None:
        with self._lock:
            if request.request_id not in self._requests:
                raise RequestNotFoundError(request.request_id)
            self._requests[request.request_id] = request

    def exists(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._requests

    def list_for(self, identity: str) -> list[ApprovalRequest]:
        """Requests in which ``identity`` holds any role, oldest first."""
        with self._lock:
            matching = [r for r in self._requests.values() if r.involves(identity)]
        return sorted(matching, key=lambda r: r.created_at)

    def list_all(self) -> list[ApprovalRequest]:
        with self._lock:
            requests = list(self._requests.values())
        return sorted(requests, key=lambda r: r.created_at)
