"""Domain models passed between the lifecycle manager and its collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from algopay.transactions.amounts import microalgos_to_algos


class TransactionStatus(str, Enum):
    """Persisted status of a submitted transaction."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransactionStatus.PENDING


class TransactionRecord(BaseModel):
    """A stored transaction, detached from any database session."""

    model_config = ConfigDict(from_attributes=True, frozen=True)

    tx_id: str
    sender: str
    recipient: str
    amount: int = Field(gt=0, description="Amount in microAlgos")
    note: Optional[bytes] = None
    status: TransactionStatus = TransactionStatus.PENDING
    confirmed_round: Optional[int] = Field(default=None, ge=0)
    pool_error: Optional[str] = None
    created_at: datetime

    @property
    def amount_algos(self) -> Decimal:
        return microalgos_to_algos(self.amount)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "tx_id": self.tx_id,
            "sender": self.sender,
            "recipient": self.recipient,
            "amount": self.amount,
            "amount_algos": str(self.amount_algos),
            "note": self.note.decode("utf-8", errors="replace") if self.note else None,
            "status": self.status.value,
            "confirmed_round": self.confirmed_round,
            "pool_error": self.pool_error,
            "created_at": self.created_at.isoformat(),
        }


class NetworkParams(BaseModel):
    """Suggested transaction parameters reported by the node."""

    fee: int = Field(ge=0, description="Suggested fee per byte")
    min_fee: int = Field(default=1000, ge=0)
    last_round: int = Field(ge=0)
    genesis_id: str
    genesis_hash: str
    consensus_version: Optional[str] = None
    validity_window: int = Field(default=1000, ge=1)

    @property
    def first_valid(self) -> int:
        return self.last_round

    @property
    def last_valid(self) -> int:
        return self.last_round + self.validity_window


class PendingTransactionInfo(BaseModel):
    """What the node knows about a submitted transaction."""

    model_config = ConfigDict(populate_by_name=True)

    confirmed_round: Optional[int] = Field(default=None, alias="confirmed-round")
    pool_error: Optional[str] = Field(default=None, alias="pool-error")

    @property
    def is_confirmed(self) -> bool:
        return bool(self.confirmed_round and self.confirmed_round > 0)

    @property
    def has_pool_error(self) -> bool:
        return bool(self.pool_error)


class AccountInfo(BaseModel):
    """Account summary reported by the node."""

    address: str
    amount: int = Field(ge=0, description="Balance in microAlgos")
    min_balance: Optional[int] = None
    status: Optional[str] = None
    round: Optional[int] = None

    @property
    def amount_algos(self) -> Decimal:
        return microalgos_to_algos(self.amount)


@dataclass(frozen=True)
class StatusReport:
    """Result of a single status check."""

    tx_id: str
    status: TransactionStatus
    confirmed_round: Optional[int] = None
    pool_error: Optional[str] = None
    # True when this call applied the transition to the store
    updated: bool = False


@dataclass(frozen=True)
class ReconciliationSummary:
    """Aggregate outcome of one reconciliation pass."""

    checked: int = 0
    confirmed: int = 0
    failed: int = 0
    errors: int = 0

    @property
    def still_pending(self) -> int:
        return self.checked - self.confirmed - self.failed - self.errors

    def to_dict(self) -> Dict[str, int]:
        return {
            "checked": self.checked,
            "confirmed": self.confirmed,
            "failed": self.failed,
            "errors": self.errors,
            "still_pending": self.still_pending,
        }
