"""Approval request models."""
from __future__ import annotations

import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from .exceptions import InvalidInputError, RequestFinalizedError


class RequestKind(str, Enum):
    TRANSACTION = "transaction"
    TRANSFER = "transfer"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    TRUST_CHECK_FAILED = "mutual-check-failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RequestStatus.PENDING


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"

    @classmethod
    def parse(cls, value: Any) -> "Decision":
        """Parse a decision, accepting the yes/no vocabulary used by push clients."""
        if isinstance(value, Decision):
            return value
        if isinstance(value, bool):
            return cls.APPROVE if value else cls.REJECT
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized in ("approve", "approved", "yes", "true"):
                return cls.APPROVE
            if normalized in ("reject", "rejected", "no", "false"):
                return cls.REJECT
        raise InvalidInputError(
            f"Unsupported decision: {value!r}",
            field="decision",
        )


# Role names, ordered as they appear in a request
PAYER = "payer"
PAYEE = "payee"
ORIGINATOR = "originator"
INTERMEDIARY = "intermediary"
BENEFICIARY = "beneficiary"

ROLES = {
    RequestKind.TRANSACTION: (PAYER, PAYEE),
    RequestKind.TRANSFER: (ORIGINATOR, INTERMEDIARY, BENEFICIARY),
}

# Roles whose decisions count toward finalization
APPROVER_ROLES = {
    RequestKind.TRANSACTION: (PAYEE,),
    RequestKind.TRANSFER: (INTERMEDIARY, BENEFICIARY),
}


def require_identity(value: Optional[str], field_name: str) -> str:
    """Return the stripped identity or raise InvalidInputError when empty."""
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(f"{field_name} is required", field=field_name)
    return value.strip()


def generate_request_id() -> str:
    """Generate request ID: req_<128 random bits as hex>."""
    return f"req_{secrets.token_hex(16)}"


@dataclass
class ApprovalRequest:
    """A transaction or transfer awaiting approval."""

    kind: RequestKind
    parties: Mapping[str, str]
    amount: Any = None
    note: Optional[str] = None
    request_id: str = field(default_factory=generate_request_id)
    status: RequestStatus = RequestStatus.PENDING
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    decided_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        expected = ROLES[self.kind]
        if tuple(self.parties) != expected:
            raise InvalidInputError(
                f"{self.kind.value} requires roles {', '.join(expected)}",
                field="parties",
            )
        # Parties are fixed at creation
        self.parties = MappingProxyType(dict(self.parties))

    @classmethod
    def transaction(cls, payer: str, payee: str, amount: Any = None, note: Optional[str] = None) -> "ApprovalRequest":
        return cls(
            kind=RequestKind.TRANSACTION,
            parties={PAYER: payer, PAYEE: payee},
            amount=amount,
            note=note,
        )

    @classmethod
    def transfer(
        cls,
        originator: str,
        intermediary: str,
        beneficiary: str,
        amount: Any = None,
        note: Optional[str] = None,
    ) -> "ApprovalRequest":
        return cls(
            kind=RequestKind.TRANSFER,
            parties={
                ORIGINATOR: originator,
                INTERMEDIARY: intermediary,
                BENEFICIARY: beneficiary,
            },
            amount=amount,
            note=note,
        )

    @property
    def is_pending(self) -> bool:
        return self.status is RequestStatus.PENDING

    @property
    def approvers(self) -> tuple[str, ...]:
        """Identities whose decisions the finalization rule reads."""
        return tuple(self.parties[role] for role in APPROVER_ROLES[self.kind])

    def party(self, role: str) -> str:
        return self.parties[role]

    def involves(self, identity: str) -> bool:
        return identity in self.parties.values()

    def finalize(self, status: RequestStatus) -> None:
        """Move the request out of pending. Allowed exactly once."""
        if self.status.is_terminal:
            raise RequestFinalizedError(self.request_id, self.status.value)
        if not status.is_terminal:
            raise InvalidInputError(f"{status.value} is not a terminal status", field="status")
        self.status = status
        self.decided_at = datetime.now(timezone.utc)

    def to_dict(self) -> dict:
        return {
            "request_id": self.request_id,
            "kind": self.kind.value,
            "parties": dict(self.parties),
            "amount": str(self.amount) if self.amount is not None else None,
            "note": self.note,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
        }


@dataclass(frozen=True)
class LedgerEntry:
    """One approver's latest decision on a request."""
    request_id: str
    approver: str
    decision: Decision
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


# Creation failure reasons
RECIPIENT_NOT_REACHABLE = "recipient-not-reachable"
MUTUAL_CHECK_FAILED = "mutual-check-failed"


@dataclass
class CreationResult:
    """Result of a create operation.

    ``request`` may be set even when ``ok`` is false: a transaction whose payee
    is unreachable and a transfer that failed the trust check are both kept.
    """
    ok: bool
    request: Optional[ApprovalRequest] = None
    error: Optional[str] = None

    @property
    def request_id(self) -> Optional[str]:
        return self.request.request_id if self.request else None

    @property
    def status(self) -> Optional[RequestStatus]:
        return self.request.status if self.request else None

    @classmethod
    def succeeded(cls, request: ApprovalRequest) -> "CreationResult":
        return cls(ok=True, request=request)

    @classmethod
    def failed(cls, error: str, request: Optional[ApprovalRequest] = None) -> "CreationResult":
        return cls(ok=False, request=request, error=error)

    def to_dict(self) -> dict:
        result: dict[str, Any] = {"ok": self.ok}
        if self.request is not None:
            result["requestId"] = self.request.request_id
            result["status"] = self.request.status.value
        if self.error:
            result["error"] = self.error
        return result
