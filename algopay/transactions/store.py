"""
Transaction store: the only shared mutable state of the lifecycle.

Every write is a single atomic statement. Status changes go through
``conditional_update_status`` which only applies when the stored status is
still the expected one, so concurrent status checks and reconciliation
passes cannot double-apply or reverse a transition.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from algopay.db.unit_of_work import UnitOfWork
from algopay.transactions.errors import DuplicateTransactionError, StoreError
from algopay.transactions.models import TransactionRecord, TransactionStatus

logger = structlog.get_logger()


def check_transition(
    expected_status: TransactionStatus,
    new_status: TransactionStatus,
    confirmed_round: Optional[int],
) -> None:
    """
    Reject transitions the status machine does not allow.

    Only pending -> confirmed (with a round) and pending -> failed (without
    one) are legal.

    Raises:
        ValueError: For any other combination
    """
    if expected_status is not TransactionStatus.PENDING:
        raise ValueError(f"Cannot transition out of terminal status {expected_status.value}")
    if new_status is TransactionStatus.CONFIRMED:
        if confirmed_round is None or confirmed_round < 0:
            raise ValueError("A confirmed transaction needs a non-negative round")
    elif new_status is TransactionStatus.FAILED:
        if confirmed_round is not None:
            raise ValueError("A failed transaction cannot carry a confirmed round")
    else:
        raise ValueError(f"Cannot transition to {new_status.value}")


class BaseTransactionStore(ABC):
    """Persistence contract used by the lifecycle manager."""

    @abstractmethod
    async def insert(self, record: TransactionRecord) -> TransactionRecord:
        """
        Insert a new record.

        Raises:
            DuplicateTransactionError: If the id already exists
            StoreError: On any other storage failure
        """
        pass

    @abstractmethod
    async def get(self, tx_id: str) -> Optional[TransactionRecord]:
        """Return a record by id, or None."""
        pass

    @abstractmethod
    async def conditional_update_status(
        self,
        tx_id: str,
        expected_status: TransactionStatus,
        new_status: TransactionStatus,
        confirmed_round: Optional[int] = None,
        pool_error: Optional[str] = None,
    ) -> bool:
        """
        Apply a status transition only if the current status is ``expected_status``.

        Returns:
            False if the precondition did not hold (or the id is unknown)
        """
        pass

    @abstractmethod
    async def find_by_status(self, status: TransactionStatus) -> List[TransactionRecord]:
        """Return all records in a status, oldest first."""
        pass

    @abstractmethod
    async def find_all_sorted_by_created_desc(
        self, limit: Optional[int] = None
    ) -> List[TransactionRecord]:
        """Return all records, newest first."""
        pass


class SqlTransactionStore(BaseTransactionStore):
    """Transaction store backed by SQLAlchemy; one unit of work per call."""

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        """
        Initialize the store.

        Args:
            session_factory: Session factory (defaults to the application's)
        """
        self._session_factory = session_factory

    def _uow(self) -> UnitOfWork:
        return UnitOfWork(session_factory=self._session_factory)

    async def insert(self, record: TransactionRecord) -> TransactionRecord:
        try:
            async with self._uow() as uow:
                row = await uow.transactions.create(
                    tx_id=record.tx_id,
                    sender=record.sender,
                    recipient=record.recipient,
                    amount=record.amount,
                    note=record.note,
                    status=record.status.value,
                    confirmed_round=record.confirmed_round,
                    pool_error=record.pool_error,
                    created_at=record.created_at,
                )
                stored = TransactionRecord.model_validate(row)
        except IntegrityError as e:
            async with self._uow() as uow:
                existing = await uow.transactions.get_by_tx_id(record.tx_id)
            if existing is not None:
                raise DuplicateTransactionError(record.tx_id) from e
            raise StoreError(f"Could not insert transaction {record.tx_id}: {e}") from e
        except SQLAlchemyError as e:
            raise StoreError(f"Could not insert transaction {record.tx_id}: {e}") from e

        logger.debug("store.inserted", tx_id=record.tx_id)
        return stored

    async def get(self, tx_id: str) -> Optional[TransactionRecord]:
        try:
            async with self._uow() as uow:
                row = await uow.transactions.get_by_tx_id(tx_id)
                return TransactionRecord.model_validate(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read transaction {tx_id}: {e}") from e

    async def conditional_update_status(
        self,
        tx_id: str,
        expected_status: TransactionStatus,
        new_status: TransactionStatus,
        confirmed_round: Optional[int] = None,
        pool_error: Optional[str] = None,
    ) -> bool:
        check_transition(expected_status, new_status, confirmed_round)
        try:
            async with self._uow() as uow:
                applied = await uow.transactions.transition_status(
                    tx_id,
                    expected_status=expected_status.value,
                    new_status=new_status.value,
                    confirmed_round=confirmed_round,
                    pool_error=pool_error,
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Could not update transaction {tx_id}: {e}") from e

        logger.debug(
            "store.conditional_update",
            tx_id=tx_id,
            expected=expected_status.value,
            new=new_status.value,
            applied=applied,
        )
        return applied

    async def find_by_status(self, status: TransactionStatus) -> List[TransactionRecord]:
        try:
            async with self._uow() as uow:
                rows = await uow.transactions.get_by_status(status.value)
                return [TransactionRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not list {status.value} transactions: {e}") from e

    async def find_all_sorted_by_created_desc(
        self, limit: Optional[int] = None
    ) -> List[TransactionRecord]:
        try:
            async with self._uow() as uow:
                rows = await uow.transactions.get_all_newest_first(limit=limit)
                return [TransactionRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"Could not list transactions: {e}") from e
