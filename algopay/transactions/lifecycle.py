"""
Transaction lifecycle manager.

Orchestrates submit -> persist -> confirm -> reconcile for payments:
builds and signs a payment, submits it to the ledger, records it as
pending, and later moves the record to confirmed or failed from what the
ledger reports. All collaborators are injected so tests can swap them.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

import structlog

from algopay.core.config import Settings, get_settings
from algopay.core.logging import operation_context
from algopay.transactions.amounts import AmountLike
from algopay.transactions.builder import NoteLike, TransactionBuilder, is_valid_address
from algopay.transactions.clients.base import BaseLedgerClient
from algopay.transactions.config import LifecycleConfig, get_lifecycle_config
from algopay.transactions.confirmation import (
    ConfirmationPoller,
    ConfirmationResult,
    ConfirmationState,
)
from algopay.transactions.errors import (
    InvalidAddress,
    InvalidCredential,
    NetworkError,
    NetworkUnavailable,
    PersistenceInconsistency,
    StoreError,
    TransactionNotFound,
    ValidationError,
)
from algopay.transactions.metrics import ReconciliationMetrics, RunStatus
from algopay.transactions.models import (
    AccountInfo,
    ReconciliationSummary,
    StatusReport,
    TransactionRecord,
    TransactionStatus,
)
from algopay.transactions.signing import Credential, resolve_signer
from algopay.transactions.store import BaseTransactionStore

logger = structlog.get_logger()


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a successful submission."""

    tx_id: str
    record: TransactionRecord
    # Present only when an inline confirmation wait ran to a terminal state
    confirmation: Optional[ConfirmationResult] = None

    @property
    def status(self) -> TransactionStatus:
        return self.record.status


class TransactionLifecycleManager:
    """
    Submits payments and keeps their stored status in line with the ledger.

    The manager owns no background tasks; it is driven by request handlers
    and by an external periodic trigger of ``reconcile_pending``.
    """

    def __init__(
        self,
        ledger: BaseLedgerClient,
        store: BaseTransactionStore,
        config: Optional[LifecycleConfig] = None,
        builder: Optional[TransactionBuilder] = None,
        metrics: Optional[ReconciliationMetrics] = None,
    ):
        """
        Initialize the manager.

        Args:
            ledger: Ledger node client
            store: Transaction store
            config: Lifecycle configuration (defaults to environment settings)
            builder: Payment builder (defaults to one honouring config.note_max_bytes)
            metrics: Reconciliation metrics tracker
        """
        self.config = config or get_lifecycle_config()
        self.ledger = ledger
        self.store = store
        self.builder = builder or TransactionBuilder(
            note_max_bytes=self.config.note_max_bytes
        )
        self.poller = ConfirmationPoller(ledger)
        self.metrics = metrics or ReconciliationMetrics(
            history_size=self.config.metrics_history_size
        )

        logger.info(
            "lifecycle.initialized",
            ledger=ledger.get_node_name(),
            confirm_on_submit=self.config.confirm_on_submit,
            max_confirmation_rounds=self.config.max_confirmation_rounds,
        )

    async def submit(
        self,
        sender: Optional[str],
        recipient: str,
        amount: AmountLike,
        note: NoteLike = None,
        credential: Optional[Credential] = None,
        *,
        wait_for_confirmation: Optional[bool] = None,
        max_rounds: Optional[int] = None,
    ) -> SubmissionResult:
        """
        Build, sign and submit a payment, then record it as pending.

        Args:
            sender: Sender address; None derives it from the credential
            recipient: Recipient address
            amount: Amount in ALGO (converted to microAlgos, half-to-even)
            note: Optional text or bytes
            credential: Mnemonic or signer; None uses the configured default
            wait_for_confirmation: Override config.confirm_on_submit
            max_rounds: Override config.max_confirmation_rounds for the inline wait

        Returns:
            SubmissionResult with the network id and the stored record

        Raises:
            ValidationError: Bad input; nothing was sent or stored
            InvalidCredential: Credential cannot sign for the sender
            NetworkUnavailable: Network parameters could not be fetched
            RejectedByNetwork: The node refused the payment
            NetworkError: The submission itself could not be delivered
            PersistenceInconsistency: Submitted, but the record was not written
        """
        with operation_context("submit"):
            # Validate everything before the first network call
            draft = self.builder.validate(sender, recipient, amount, note)
            signer = resolve_signer(credential, self.config.default_mnemonic)
            if sender is not None and sender != signer.address:
                raise InvalidCredential(
                    "Credential does not control the sender address"
                )
            sender_address = signer.address

            try:
                params = await self.ledger.get_suggested_params()
            except NetworkError as e:
                logger.error("submit.params_unavailable", error=str(e))
                raise NetworkUnavailable(
                    f"Could not fetch network parameters: {e}",
                    status_code=e.status_code,
                ) from e

            payment = self.builder.build_from_draft(draft, sender_address, params)
            signed = signer.sign(payment)

            tx_id = await self.ledger.submit_raw(signed)
            logger.info(
                "submit.accepted",
                tx_id=tx_id,
                sender=sender_address,
                recipient=draft.recipient,
                amount=draft.amount,
            )

            record = TransactionRecord(
                tx_id=tx_id,
                sender=sender_address,
                recipient=draft.recipient,
                amount=draft.amount,
                note=draft.note,
                status=TransactionStatus.PENDING,
                created_at=datetime.now(timezone.utc),
            )
            try:
                record = await self.store.insert(record)
            except StoreError as e:
                # The payment is on its way and cannot be recalled
                logger.error(
                    "submit.persistence_inconsistency", tx_id=tx_id, error=str(e)
                )
                raise PersistenceInconsistency(tx_id, e, record=record) from e

            should_wait = (
                self.config.confirm_on_submit
                if wait_for_confirmation is None
                else wait_for_confirmation
            )
            if not should_wait:
                return SubmissionResult(tx_id=tx_id, record=record)

            confirmation = await self._confirm_inline(tx_id, max_rounds)
            if confirmation is not None and not confirmation.timed_out:
                record = await self.store.get(tx_id) or record
            return SubmissionResult(
                tx_id=tx_id, record=record, confirmation=confirmation
            )

    async def _confirm_inline(
        self, tx_id: str, max_rounds: Optional[int]
    ) -> Optional[ConfirmationResult]:
        """Bounded wait after submit; failures leave the record pending for reconciliation."""
        try:
            return await self.await_confirmation(tx_id, max_rounds)
        except (NetworkError, StoreError) as e:
            logger.warning(
                "submit.inline_confirmation_skipped",
                tx_id=tx_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return None

    async def await_confirmation(
        self, tx_id: str, max_rounds: Optional[int] = None
    ) -> ConfirmationResult:
        """
        Wait up to ``max_rounds`` rounds for a transaction and record the outcome.

        Confirmed and failed outcomes are written with the conditional update;
        a timeout leaves the record untouched.

        Raises:
            NetworkError: If the ledger cannot be reached
        """
        rounds = self.config.max_confirmation_rounds if max_rounds is None else max_rounds
        result = await self.poller.wait_for_confirmation(tx_id, rounds)

        if result.state is ConfirmationState.CONFIRMED:
            await self._apply_transition(
                tx_id, TransactionStatus.CONFIRMED, confirmed_round=result.confirmed_round
            )
        elif result.state is ConfirmationState.FAILED:
            await self._apply_transition(
                tx_id, TransactionStatus.FAILED, pool_error=result.pool_error
            )
        return result

    async def check_status(self, tx_id: str) -> StatusReport:
        """
        Check a transaction once against the ledger and persist any terminal outcome.

        Records already confirmed or failed are answered from the store. A
        ledger that does not know the id yet means "pending"; only an
        explicit pool error means "failed".

        Raises:
            TransactionNotFound: Neither the store nor the ledger knows the id
            NetworkError: The ledger could not be reached (the record is left as is)
        """
        if not tx_id:
            raise ValidationError("Transaction ID is required", code="MISSING_TX_ID")

        with operation_context("check_status", tx_id=tx_id):
            record = await self.store.get(tx_id)
            return await self._check_status(tx_id, record)

    async def _check_status(
        self, tx_id: str, record: Optional[TransactionRecord]
    ) -> StatusReport:
        if record is not None and record.status.is_terminal:
            return _report_from_record(record)

        try:
            info = await self.ledger.pending_info(tx_id)
        except TransactionNotFound:
            if record is None:
                raise
            logger.debug("check_status.not_visible_yet", tx_id=tx_id)
            return StatusReport(tx_id=tx_id, status=TransactionStatus.PENDING)

        if info.is_confirmed:
            new_status = TransactionStatus.CONFIRMED
        elif info.has_pool_error:
            new_status = TransactionStatus.FAILED
        else:
            return StatusReport(tx_id=tx_id, status=TransactionStatus.PENDING)

        confirmed_round = info.confirmed_round if info.is_confirmed else None
        pool_error = info.pool_error if new_status is TransactionStatus.FAILED else None

        if record is None:
            logger.warning(
                "check_status.untracked_transaction",
                tx_id=tx_id,
                status=new_status.value,
            )
            return StatusReport(
                tx_id=tx_id,
                status=new_status,
                confirmed_round=confirmed_round,
                pool_error=pool_error,
            )

        applied = await self._apply_transition(
            tx_id, new_status, confirmed_round=confirmed_round, pool_error=pool_error
        )
        if applied:
            return StatusReport(
                tx_id=tx_id,
                status=new_status,
                confirmed_round=confirmed_round,
                pool_error=pool_error,
                updated=True,
            )

        # Someone else moved it first; the stored outcome wins
        current = await self.store.get(tx_id)
        if current is not None and current.status.is_terminal:
            return _report_from_record(current)
        return StatusReport(tx_id=tx_id, status=TransactionStatus.PENDING)

    async def _apply_transition(
        self,
        tx_id: str,
        new_status: TransactionStatus,
        confirmed_round: Optional[int] = None,
        pool_error: Optional[str] = None,
    ) -> bool:
        applied = await self.store.conditional_update_status(
            tx_id,
            TransactionStatus.PENDING,
            new_status,
            confirmed_round=confirmed_round,
            pool_error=pool_error,
        )
        if applied:
            logger.info(
                "transaction.status_changed",
                tx_id=tx_id,
                status=new_status.value,
                confirmed_round=confirmed_round,
                pool_error=pool_error,
            )
        else:
            logger.debug(
                "transaction.transition_skipped", tx_id=tx_id, status=new_status.value
            )
        return applied

    async def reconcile_pending(self) -> ReconciliationSummary:
        """
        Re-check every pending record against the ledger.

        Works on a snapshot of pending records. A record that cannot be
        checked is logged, counted and skipped; it never aborts the pass.

        Returns:
            Aggregate counters for the pass

        Raises:
            StoreError: If the pending records could not be read at all
        """
        run_id = self.metrics.start_run()
        with operation_context("reconcile_pending", run_id=run_id):
            try:
                pending = await self.store.find_by_status(TransactionStatus.PENDING)
            except StoreError as e:
                logger.error("reconcile.snapshot_failed", error=str(e))
                self.metrics.record_error(run_id, str(e))
                self.metrics.end_run(run_id, RunStatus.FAILED)
                raise

            logger.info("reconcile.started", pending=len(pending))

            confirmed = failed = errors = 0
            for record in pending:
                try:
                    report = await self._check_status(record.tx_id, record)
                except Exception as e:
                    errors += 1
                    self.metrics.record_outcome(run_id, "error")
                    self.metrics.record_error(run_id, f"{record.tx_id}: {e}")
                    logger.warning(
                        "reconcile.record_failed",
                        tx_id=record.tx_id,
                        error=str(e),
                        error_type=type(e).__name__,
                    )
                    continue

                self.metrics.record_outcome(run_id, report.status.value)
                if report.status is TransactionStatus.CONFIRMED:
                    confirmed += 1
                elif report.status is TransactionStatus.FAILED:
                    failed += 1

            summary = ReconciliationSummary(
                checked=len(pending), confirmed=confirmed, failed=failed, errors=errors
            )
            run = self.metrics.end_run(run_id)
            logger.info(
                "reconcile.completed",
                **summary.to_dict(),
                duration_seconds=run.duration_seconds if run else None,
            )
            return summary

    async def get_record(self, tx_id: str) -> TransactionRecord:
        """Return a stored record, or raise TransactionNotFound."""
        record = await self.store.get(tx_id)
        if record is None:
            raise TransactionNotFound(tx_id)
        return record

    async def list_transactions(self, limit: Optional[int] = None) -> List[TransactionRecord]:
        """Return stored transactions, newest first."""
        return await self.store.find_all_sorted_by_created_desc(limit=limit)

    async def get_account_info(self, address: str) -> AccountInfo:
        """
        Fetch balance and status of an account from the ledger.

        Raises:
            InvalidAddress: If the address fails the checksum check
            NetworkError: If the ledger cannot be reached
        """
        if not is_valid_address(address):
            raise InvalidAddress("Invalid address")
        return await self.ledger.account_info(address)


def _report_from_record(record: TransactionRecord) -> StatusReport:
    return StatusReport(
        tx_id=record.tx_id,
        status=record.status,
        confirmed_round=record.confirmed_round,
        pool_error=record.pool_error,
    )


def create_manager(
    settings: Optional[Settings] = None,
    ledger: Optional[BaseLedgerClient] = None,
    store: Optional[BaseTransactionStore] = None,
) -> TransactionLifecycleManager:
    """
    Wire a manager from environment settings.

    Args:
        settings: Settings (defaults to the cached environment settings)
        ledger: Ledger client (defaults to the algod REST client)
        store: Store (defaults to the SQL store on the application database)
    """
    from algopay.transactions.clients.algod_client import AlgodLedgerClient
    from algopay.transactions.store import SqlTransactionStore

    settings = settings or get_settings()
    config = LifecycleConfig.from_settings(settings)
    return TransactionLifecycleManager(
        ledger=ledger or AlgodLedgerClient.from_settings(settings, config),
        store=store or SqlTransactionStore(),
        config=config,
    )
