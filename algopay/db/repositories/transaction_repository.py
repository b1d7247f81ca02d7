"""Transaction repository with status-transition queries."""

from typing import List, Optional

from sqlalchemy import select, update

from algopay.db.models.transaction import Transaction
from algopay.db.repository import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction model with specialized queries."""

    async def get_by_tx_id(self, tx_id: str) -> Optional[Transaction]:
        """Get a transaction by its network id."""
        return await self.get(tx_id)

    async def get_by_status(self, status: str) -> List[Transaction]:
        """
        Get transactions in a given status, oldest first.

        Args:
            status: pending, confirmed or failed

        Returns:
            List of matching transactions
        """
        query = (
            select(self.model)
            .where(self.model.status == status)
            .order_by(self.model.created_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_all_newest_first(
        self, limit: Optional[int] = None
    ) -> List[Transaction]:
        """Get all transactions sorted by creation time, newest first."""
        query = select(self.model).order_by(self.model.created_at.desc())
        if limit is not None:
            query = query.limit(limit)

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def transition_status(
        self,
        tx_id: str,
        expected_status: str,
        new_status: str,
        confirmed_round: Optional[int] = None,
        pool_error: Optional[str] = None,
    ) -> bool:
        """
        Move a transaction to a new status only if it is still in the expected one.

        Issued as a single ``UPDATE ... WHERE tx_id = ? AND status = ?`` so two
        concurrent callers cannot both apply the transition.

        Args:
            tx_id: Network transaction id
            expected_status: Status the row must currently have
            new_status: Status to move to
            confirmed_round: Round to record (confirmed transitions only)
            pool_error: Node's pool error (failed transitions only)

        Returns:
            True if exactly one row was updated
        """
        result = await self.session.execute(
            update(self.model)
            .where(self.model.tx_id == tx_id)
            .where(self.model.status == expected_status)
            .values(
                status=new_status,
                confirmed_round=confirmed_round,
                pool_error=pool_error,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
