"""Approval request store.

Holds every request and its current status. The engine only talks to this
protocol, so the persistence backend can be swapped.
"""

from __future__ import annotations

from typing import Optional, Protocol

from .models import ApprovalRequest


class RequestStore(Protocol):
    def add(self, request: ApprovalRequest) -> None: ...
    def get(self, request_id: str) -> Optional[ApprovalRequest]: ...
    def save(self, request: ApprovalRequest) -> None: ...
    def exists(self, request_id: str) -> bool: ...
    def list_for(self, identity: str) -> list[ApprovalRequest]: ...
    def list_all(self) -> list[ApprovalRequest]: ...
