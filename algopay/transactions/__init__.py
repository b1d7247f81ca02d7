"""
Transaction lifecycle module.

Submits payments to the ledger, records them, and reconciles their
stored status with on-chain confirmation.
"""

from algopay.transactions.lifecycle import (
    SubmissionResult,
    TransactionLifecycleManager,
    create_manager,
)
from algopay.transactions.confirmation import (
    ConfirmationPoller,
    ConfirmationResult,
    ConfirmationState,
)
from algopay.transactions.builder import TransactionBuilder
from algopay.transactions.clients.base import BaseLedgerClient
from algopay.transactions.clients.mock_client import MockLedgerClient
from algopay.transactions.models import (
    ReconciliationSummary,
    StatusReport,
    TransactionRecord,
    TransactionStatus,
)
from algopay.transactions.store import BaseTransactionStore, SqlTransactionStore

__all__ = [
    "TransactionLifecycleManager",
    "SubmissionResult",
    "create_manager",
    "ConfirmationPoller",
    "ConfirmationResult",
    "ConfirmationState",
    "TransactionBuilder",
    "BaseLedgerClient",
    "MockLedgerClient",
    "ReconciliationSummary",
    "StatusReport",
    "TransactionRecord",
    "TransactionStatus",
    "BaseTransactionStore",
    "SqlTransactionStore",
]
