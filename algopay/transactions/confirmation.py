"""
Round-based confirmation polling.

Waits for a submitted transaction to be confirmed, bounded by network
rounds rather than wall-clock time. Each call runs a fresh state machine:

    WAITING --(confirmed round > 0)--> CONFIRMED
    WAITING --(pool error)-----------> FAILED
    WAITING --(max_rounds waited)----> TIMED_OUT

A timeout is a normal "still pending" outcome, not an error.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from algopay.transactions.clients.base import BaseLedgerClient
from algopay.transactions.errors import TransactionNotFound
from algopay.transactions.models import PendingTransactionInfo

logger = structlog.get_logger()


class ConfirmationState(str, Enum):
    """States of a confirmation wait."""

    WAITING = "waiting"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class ConfirmationResult:
    """Terminal outcome of one confirmation wait."""

    tx_id: str
    state: ConfirmationState
    confirmed_round: Optional[int] = None
    pool_error: Optional[str] = None
    rounds_waited: int = 0

    @property
    def is_confirmed(self) -> bool:
        return self.state is ConfirmationState.CONFIRMED

    @property
    def is_failed(self) -> bool:
        return self.state is ConfirmationState.FAILED

    @property
    def timed_out(self) -> bool:
        return self.state is ConfirmationState.TIMED_OUT


class ConfirmationPoller:
    """Waits for transactions to leave the pending pool."""

    def __init__(self, ledger: BaseLedgerClient):
        self.ledger = ledger

    async def wait_for_confirmation(
        self, tx_id: str, max_rounds: int
    ) -> ConfirmationResult:
        """
        Poll the ledger until the transaction is confirmed, rejected or the bound is hit.

        The transaction is checked once up front, then once after every round
        advance. ``max_rounds=0`` therefore issues exactly one lookup.
        Lookups that report the id as unknown count as still waiting, since a
        freshly submitted transaction may not have propagated yet.

        Args:
            tx_id: Network transaction id
            max_rounds: Round advances to wait for before timing out

        Returns:
            ConfirmationResult in state CONFIRMED, FAILED or TIMED_OUT

        Raises:
            NetworkError: If the ledger cannot be reached
        """
        if max_rounds < 0:
            raise ValueError("max_rounds must be non-negative")

        rounds_waited = 0
        last_round: Optional[int] = None

        logger.info("confirmation.waiting", tx_id=tx_id, max_rounds=max_rounds)

        while True:
            info = await self._lookup(tx_id)

            if info is not None and info.is_confirmed:
                logger.info(
                    "confirmation.confirmed",
                    tx_id=tx_id,
                    confirmed_round=info.confirmed_round,
                    rounds_waited=rounds_waited,
                )
                return ConfirmationResult(
                    tx_id=tx_id,
                    state=ConfirmationState.CONFIRMED,
                    confirmed_round=info.confirmed_round,
                    rounds_waited=rounds_waited,
                )

            if info is not None and info.has_pool_error:
                logger.warning(
                    "confirmation.pool_error",
                    tx_id=tx_id,
                    pool_error=info.pool_error,
                    rounds_waited=rounds_waited,
                )
                return ConfirmationResult(
                    tx_id=tx_id,
                    state=ConfirmationState.FAILED,
                    pool_error=info.pool_error,
                    rounds_waited=rounds_waited,
                )

            if rounds_waited >= max_rounds:
                logger.info(
                    "confirmation.timed_out", tx_id=tx_id, rounds_waited=rounds_waited
                )
                return ConfirmationResult(
                    tx_id=tx_id,
                    state=ConfirmationState.TIMED_OUT,
                    rounds_waited=rounds_waited,
                )

            if last_round is None:
                last_round = await self.ledger.current_round()
            advanced = await self.ledger.wait_for_round_advance(last_round)
            last_round = max(advanced, last_round + 1)
            rounds_waited += 1

            logger.debug(
                "confirmation.round_advanced",
                tx_id=tx_id,
                round=last_round,
                rounds_waited=rounds_waited,
            )

    async def _lookup(self, tx_id: str) -> Optional[PendingTransactionInfo]:
        try:
            return await self.ledger.pending_info(tx_id)
        except TransactionNotFound:
            logger.debug("confirmation.not_visible_yet", tx_id=tx_id)
            return None
