"""
Mock ledger client for testing and development.

Simulates an algod node in memory: accepts signed payments, assigns the
real transaction id, advances rounds on demand and reports pending info
from per-transaction scripts. Every call is recorded in ``calls``.
"""

import asyncio
import base64
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple, Union

from algosdk import encoding

from algopay.transactions.clients.base import BaseLedgerClient
from algopay.transactions.errors import RejectedByNetwork, TransactionNotFound
from algopay.transactions.models import AccountInfo, NetworkParams, PendingTransactionInfo

# Testnet genesis hash; any 32-byte base64 value signs fine offline
TESTNET_GENESIS_HASH = "SGO1GKSzyE7IEPItTxCByw9x8FmnrCDexi9/cOUJOiI="

PendingStep = Union[PendingTransactionInfo, BaseException]


class MockLedgerClient(BaseLedgerClient):
    """
    In-memory ledger that behaves like a node without real credentials.

    Pending info for a transaction comes from, in order:
    1. A script registered with ``script_pending`` (steps are consumed one
       per lookup; the last step repeats once the script is exhausted)
    2. ``auto_confirm_after``: submitted transactions confirm that many
       rounds after submission
    3. An empty (still pending) answer for submitted ids, and
       TransactionNotFound for ids the mock never saw
    """

    def __init__(
        self,
        start_round: int = 1000,
        auto_confirm_after: Optional[int] = None,
        latency_ms: int = 0,
    ):
        """
        Initialize mock client.

        Args:
            start_round: Round the simulated node starts at
            auto_confirm_after: Rounds until submitted payments confirm (None = never)
            latency_ms: Simulated network latency in milliseconds
        """
        self.round = start_round
        self.auto_confirm_after = auto_confirm_after
        self.latency_ms = latency_ms

        self.params_error: Optional[BaseException] = None
        self.submit_error: Optional[BaseException] = None
        self.balances: Dict[str, int] = {}

        self.submitted: Dict[str, int] = {}  # tx_id -> round submitted at
        self.raw_submissions: List[bytes] = []
        self.calls: List[Tuple[str, ...]] = []
        self._scripts: Dict[str, Deque[PendingStep]] = {}
        self._next_submission_script: Optional[Tuple[PendingStep, ...]] = None

    def get_node_name(self) -> str:
        return "mock"

    def script_pending(self, tx_id: str, *steps: PendingStep) -> None:
        """Register the pending-info answers (or exceptions) for a transaction."""
        self._scripts[tx_id] = deque(steps)

    def script_next_submission(self, *steps: PendingStep) -> None:
        """Register pending-info answers for whichever payment is submitted next."""
        self._next_submission_script = steps

    def reject_next(self, reason: str) -> None:
        """Make every submission fail with RejectedByNetwork until cleared."""
        self.submit_error = RejectedByNetwork(reason, status_code=400)

    def call_count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    async def get_suggested_params(self) -> NetworkParams:
        self.calls.append(("get_suggested_params",))
        await self._simulate_latency()
        if self.params_error is not None:
            raise self.params_error
        return NetworkParams(
            fee=0,
            min_fee=1000,
            last_round=self.round,
            genesis_id="testnet-v1.0",
            genesis_hash=TESTNET_GENESIS_HASH,
        )

    async def submit_raw(self, signed_txn: bytes) -> str:
        self.calls.append(("submit_raw",))
        await self._simulate_latency()
        if self.submit_error is not None:
            raise self.submit_error

        try:
            signed = encoding.msgpack_decode(base64.b64encode(signed_txn).decode())
            tx_id = signed.get_txid()
        except Exception as e:
            raise RejectedByNetwork(f"msgpack decode error: {e}", status_code=400) from e

        self.raw_submissions.append(signed_txn)
        self.submitted[tx_id] = self.round
        if self._next_submission_script is not None:
            self._scripts[tx_id] = deque(self._next_submission_script)
            self._next_submission_script = None
        return tx_id

    async def pending_info(self, tx_id: str) -> PendingTransactionInfo:
        self.calls.append(("pending_info", tx_id))
        await self._simulate_latency()

        script = self._scripts.get(tx_id)
        if script:
            step = script.popleft() if len(script) > 1 else script[0]
            if isinstance(step, BaseException):
                raise step
            return step

        if tx_id in self.submitted:
            submitted_round = self.submitted[tx_id]
            if (
                self.auto_confirm_after is not None
                and self.round >= submitted_round + self.auto_confirm_after
            ):
                return PendingTransactionInfo(
                    confirmed_round=submitted_round + self.auto_confirm_after
                )
            return PendingTransactionInfo()

        raise TransactionNotFound(tx_id, "txn does not exist")

    async def current_round(self) -> int:
        self.calls.append(("current_round",))
        await self._simulate_latency()
        return self.round

    async def wait_for_round_advance(self, round_number: int) -> int:
        self.calls.append(("wait_for_round_advance", str(round_number)))
        await self._simulate_latency()
        self.round = max(self.round, round_number + 1)
        return self.round

    async def account_info(self, address: str) -> AccountInfo:
        self.calls.append(("account_info", address))
        await self._simulate_latency()
        return AccountInfo(
            address=address,
            amount=self.balances.get(address, 0),
            min_balance=100_000,
            status="Offline",
            round=self.round,
        )

    async def _simulate_latency(self):
        """Simulate network latency; always yields to the event loop."""
        await asyncio.sleep(self.latency_ms / 1000.0 if self.latency_ms > 0 else 0)
