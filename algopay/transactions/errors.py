"""
Error taxonomy for the transaction lifecycle.

Every error carries a stable machine-readable ``category`` and ``code``
plus a human-readable message. Callers branch on the category or the
exception class, never on the message text.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Stable categories callers can branch on."""

    VALIDATION = "validation"  # Bad input; never touched network or store
    CREDENTIAL = "credential"  # Key material unusable for signing
    NETWORK = "network"  # Ledger node unreachable or erroring
    REJECTION = "rejection"  # Ledger refused the transaction
    PERSISTENCE = "persistence"  # Local store could not be read or written
    NOT_FOUND = "not_found"


class TransactionError(Exception):
    """Base exception for all lifecycle errors."""

    category: ErrorCategory = ErrorCategory.VALIDATION
    code: str = "TRANSACTION_ERROR"

    def __init__(self, message: str, *, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for API responses and structured logs."""
        return {
            "category": self.category.value,
            "code": self.code,
            "message": self.message,
        }


# Validation


class ValidationError(TransactionError):
    """Raised when caller input is invalid. Recoverable by correcting the input."""

    category = ErrorCategory.VALIDATION
    code = "VALIDATION_ERROR"


class InvalidRecipient(ValidationError):
    code = "INVALID_RECIPIENT"


class InvalidSender(ValidationError):
    code = "INVALID_SENDER"


class InvalidAddress(ValidationError):
    code = "INVALID_ADDRESS"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"


class InvalidNote(ValidationError):
    code = "INVALID_NOTE"


class MissingCredential(ValidationError):
    code = "MISSING_CREDENTIAL"


class InvalidCredential(TransactionError):
    """Raised when the supplied credential cannot sign for the sender."""

    category = ErrorCategory.CREDENTIAL
    code = "INVALID_CREDENTIAL"


# Network


class NetworkError(TransactionError):
    """Raised when the ledger node is unreachable or answers with a server error."""

    category = ErrorCategory.NETWORK
    code = "NETWORK_ERROR"

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message, code=code)
        self.status_code = status_code


class NetworkUnavailable(NetworkError):
    """Raised when network parameters could not be fetched for a submission."""

    code = "NETWORK_UNAVAILABLE"


class TransactionNotFound(TransactionError):
    """Raised when neither the ledger nor the store knows a transaction id."""

    category = ErrorCategory.NOT_FOUND
    code = "TRANSACTION_NOT_FOUND"

    def __init__(self, tx_id: str, message: Optional[str] = None):
        super().__init__(message or f"Transaction {tx_id} not found")
        self.tx_id = tx_id

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["tx_id"] = self.tx_id
        return data


# Rejection


class RejectedByNetwork(TransactionError):
    """Raised when the node refuses a submitted transaction. Not retryable as-is."""

    category = ErrorCategory.REJECTION
    code = "REJECTED_BY_NETWORK"

    def __init__(self, reason: str, *, status_code: Optional[int] = None):
        super().__init__(f"Transaction rejected by network: {reason}")
        self.reason = reason
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


# Persistence


class StoreError(TransactionError):
    """Raised when the transaction store fails."""

    category = ErrorCategory.PERSISTENCE
    code = "STORE_ERROR"


class DuplicateTransactionError(StoreError):
    """Raised when inserting a record whose id already exists."""

    code = "DUPLICATE_TRANSACTION"

    def __init__(self, tx_id: str):
        super().__init__(f"Transaction {tx_id} already stored")
        self.tx_id = tx_id


class PersistenceInconsistency(TransactionError):
    """
    Raised when the ledger accepted a transaction but the local record was not written.

    The submission cannot be revoked, so the id is carried on the error for
    the caller to repair the record out of band.
    """

    category = ErrorCategory.PERSISTENCE
    code = "PERSISTENCE_INCONSISTENCY"

    def __init__(
        self,
        tx_id: str,
        cause: Optional[BaseException] = None,
        record: Optional[Any] = None,
    ):
        detail = f": {cause}" if cause else ""
        super().__init__(
            f"Transaction {tx_id} was submitted but could not be recorded{detail}"
        )
        self.tx_id = tx_id
        # Unsaved TransactionRecord, for repairing the store out of band
        self.record = record

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["tx_id"] = self.tx_id
        return data
