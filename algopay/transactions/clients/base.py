"""
Base ledger client interface.

Defines the contract the lifecycle manager relies on. Every method is a
network call: implementations may be slow and may fail transiently.
"""

from abc import ABC, abstractmethod

from algopay.transactions.models import AccountInfo, NetworkParams, PendingTransactionInfo


class BaseLedgerClient(ABC):
    """
    Abstract base class for ledger node clients.

    Implementations apply their own retry policy to idempotent reads and
    surface what remains as ``NetworkError``.
    """

    @abstractmethod
    async def get_suggested_params(self) -> NetworkParams:
        """
        Fetch suggested transaction parameters.

        Raises:
            NetworkError: If the node cannot be reached
        """
        pass

    @abstractmethod
    async def submit_raw(self, signed_txn: bytes) -> str:
        """
        Submit a signed, msgpack-encoded transaction.

        Returns:
            Transaction id assigned by the network

        Raises:
            RejectedByNetwork: If the node refuses the transaction
            NetworkError: If the node cannot be reached
        """
        pass

    @abstractmethod
    async def pending_info(self, tx_id: str) -> PendingTransactionInfo:
        """
        Fetch pending-transaction information.

        Raises:
            TransactionNotFound: If the node does not (yet) know the id
            NetworkError: If the node cannot be reached
        """
        pass

    @abstractmethod
    async def current_round(self) -> int:
        """Return the last round the node has seen."""
        pass

    @abstractmethod
    async def wait_for_round_advance(self, round_number: int) -> int:
        """
        Suspend until the node reports a round after ``round_number``.

        Returns:
            The node's last round once it has advanced
        """
        pass

    @abstractmethod
    async def account_info(self, address: str) -> AccountInfo:
        """Fetch balance and status for an account."""
        pass

    @abstractmethod
    def get_node_name(self) -> str:
        """Identifier used in logs (e.g. 'algod', 'mock')."""
        pass
