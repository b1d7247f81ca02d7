"""Unit of Work pattern for managing database transactions."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from algopay.db.models import Transaction
from algopay.db.repositories import TransactionRepository


class UnitOfWork:
    """
    Unit of Work pattern implementation for managing database transactions.

    All repository operations inside one context share the same session and
    database transaction.

    Usage:
        async with UnitOfWork() as uow:
            tx = await uow.transactions.get_by_tx_id("ABC...")
            await uow.commit()
    """

    def __init__(
        self,
        session: Optional[AsyncSession] = None,
        session_factory: Optional[async_sessionmaker] = None,
    ):
        """
        Initialize Unit of Work.

        Args:
            session: Optional existing session (caller keeps ownership)
            session_factory: Factory for owned sessions (defaults to AsyncSessionLocal)
        """
        self._session = session
        self._owned_session = session is None
        self._session_factory = session_factory

        # Repositories (initialized in __aenter__)
        self.transactions: TransactionRepository = None  # type: ignore

    async def __aenter__(self):
        """Enter async context manager."""
        if self._owned_session:
            factory = self._session_factory
            if factory is None:
                from algopay.db.base import AsyncSessionLocal

                factory = AsyncSessionLocal
            self._session = factory()

        assert self._session is not None, "Session must be initialized"
        self.transactions = TransactionRepository(Transaction, self._session)

        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if exc_type is not None:
            await self.rollback()
        elif self._owned_session:
            await self.commit()

        if self._owned_session and self._session:
            await self._session.close()

    async def commit(self):
        """Commit the current transaction."""
        if self._session:
            await self._session.commit()

    async def rollback(self):
        """Rollback the current transaction."""
        if self._session:
            await self._session.rollback()
