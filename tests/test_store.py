"""Tests for the SQL transaction store and its status-transition rules."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import Text
from sqlalchemy.exc import OperationalError

from algopay.db.models.transaction import Transaction
from algopay.db.unit_of_work import UnitOfWork
from algopay.transactions.errors import DuplicateTransactionError, StoreError
from algopay.transactions.models import TransactionRecord, TransactionStatus
from algopay.transactions.store import check_transition

PENDING = TransactionStatus.PENDING
CONFIRMED = TransactionStatus.CONFIRMED
FAILED = TransactionStatus.FAILED


def make_record(tx_id: str, created_at: datetime = None, **overrides) -> TransactionRecord:
    data = {
        "tx_id": tx_id,
        "sender": "SENDER",
        "recipient": "RECIPIENT",
        "amount": 1_000_000,
        "note": b"note",
        "status": PENDING,
        "created_at": created_at or datetime.now(timezone.utc),
    }
    data.update(overrides)
    return TransactionRecord(**data)


class TestCheckTransition:
    """Tests for the status machine guard."""

    def test_legal_transitions(self):
        check_transition(PENDING, CONFIRMED, 10)
        check_transition(PENDING, CONFIRMED, 0)
        check_transition(PENDING, FAILED, None)

    @pytest.mark.parametrize(
        "expected,new,round_number",
        [
            (CONFIRMED, FAILED, None),
            (CONFIRMED, PENDING, None),
            (FAILED, CONFIRMED, 5),
            (PENDING, PENDING, None),
            (PENDING, CONFIRMED, None),
            (PENDING, CONFIRMED, -1),
            (PENDING, FAILED, 7),
        ],
    )
    def test_illegal_transitions(self, expected, new, round_number):
        with pytest.raises(ValueError):
            check_transition(expected, new, round_number)


class TestSqlTransactionStore:
    """Tests for SqlTransactionStore."""

    @pytest.mark.asyncio
    async def test_insert_and_get(self, store):
        """Test a stored record reads back unchanged."""
        await store.insert(make_record("TX1"))

        record = await store.get("TX1")

        assert record is not None
        assert record.tx_id == "TX1"
        assert record.amount == 1_000_000
        assert record.note == b"note"
        assert record.status is PENDING
        assert record.confirmed_round is None

    @pytest.mark.asyncio
    async def test_get_unknown(self, store):
        assert await store.get("MISSING") is None

    @pytest.mark.asyncio
    async def test_duplicate_insert(self, store):
        """Test inserting an existing id fails and leaves the original intact."""
        await store.insert(make_record("TX1", amount=5))

        with pytest.raises(DuplicateTransactionError) as exc_info:
            await store.insert(make_record("TX1", amount=9))

        assert exc_info.value.tx_id == "TX1"
        assert (await store.get("TX1")).amount == 5

    @pytest.mark.asyncio
    async def test_conditional_update_confirms(self, store):
        await store.insert(make_record("TX1"))

        applied = await store.conditional_update_status(
            "TX1", PENDING, CONFIRMED, confirmed_round=1234
        )

        assert applied is True
        record = await store.get("TX1")
        assert record.status is CONFIRMED
        assert record.confirmed_round == 1234

    @pytest.mark.asyncio
    async def test_conditional_update_fails_with_pool_error(self, store):
        await store.insert(make_record("TX1"))

        applied = await store.conditional_update_status(
            "TX1", PENDING, FAILED, pool_error="overspend"
        )

        assert applied is True
        record = await store.get("TX1")
        assert record.status is FAILED
        assert record.confirmed_round is None
        assert record.pool_error == "overspend"

    @pytest.mark.asyncio
    async def test_terminal_status_is_final(self, store):
        """Test a second transition attempt does not apply."""
        await store.insert(make_record("TX1"))
        assert await store.conditional_update_status(
            "TX1", PENDING, CONFIRMED, confirmed_round=10
        )

        assert not await store.conditional_update_status(
            "TX1", PENDING, FAILED, pool_error="late"
        )
        assert not await store.conditional_update_status(
            "TX1", PENDING, CONFIRMED, confirmed_round=99
        )

        record = await store.get("TX1")
        assert record.status is CONFIRMED
        assert record.confirmed_round == 10
        assert record.pool_error is None

    @pytest.mark.asyncio
    async def test_conditional_update_unknown_id(self, store):
        assert not await store.conditional_update_status(
            "MISSING", PENDING, CONFIRMED, confirmed_round=1
        )

    @pytest.mark.asyncio
    async def test_illegal_transition_raises_without_writing(self, store):
        await store.insert(make_record("TX1"))

        with pytest.raises(ValueError):
            await store.conditional_update_status("TX1", PENDING, CONFIRMED)

        assert (await store.get("TX1")).status is PENDING

    @pytest.mark.asyncio
    async def test_find_by_status(self, store):
        """Test only matching records are returned, oldest first."""
        now = datetime.now(timezone.utc)
        await store.insert(make_record("NEW", created_at=now))
        await store.insert(make_record("OLD", created_at=now - timedelta(minutes=5)))
        await store.insert(make_record("DONE", created_at=now - timedelta(minutes=1)))
        await store.conditional_update_status("DONE", PENDING, CONFIRMED, confirmed_round=1)

        pending = await store.find_by_status(PENDING)
        confirmed = await store.find_by_status(CONFIRMED)

        assert [r.tx_id for r in pending] == ["OLD", "NEW"]
        assert [r.tx_id for r in confirmed] == ["DONE"]

    @pytest.mark.asyncio
    async def test_find_all_newest_first(self, store):
        now = datetime.now(timezone.utc)
        for minutes, tx_id in [(3, "A"), (1, "C"), (2, "B")]:
            await store.insert(make_record(tx_id, created_at=now - timedelta(minutes=minutes)))

        everything = await store.find_all_sorted_by_created_desc()
        latest = await store.find_all_sorted_by_created_desc(limit=2)

        assert [r.tx_id for r in everything] == ["C", "B", "A"]
        assert [r.tx_id for r in latest] == ["C", "B"]

    @pytest.mark.asyncio
    async def test_database_failure_becomes_store_error(self, store):
        """Test driver errors surface as StoreError, not SQLAlchemy exceptions."""
        failure = OperationalError("SELECT", {}, Exception("disk I/O error"))
        with patch(
            "algopay.db.repositories.transaction_repository.TransactionRepository.get_by_tx_id",
            side_effect=failure,
        ):
            with pytest.raises(StoreError):
                await store.get("TX1")


class TestTransactionRepository:
    """Tests for the repository beneath the store."""

    def test_pool_error_column_is_unbounded(self):
        assert isinstance(Transaction.__table__.c.pool_error.type, Text)

    @pytest.mark.asyncio
    async def test_long_pool_error_is_stored_in_full(self, store):
        """Test a verbose node rejection is kept without truncation."""
        await store.insert(make_record("TX1"))
        reason = "TransactionPool.Remember: " + "x" * 5000

        assert await store.conditional_update_status(
            "TX1", PENDING, FAILED, pool_error=reason
        )

        assert (await store.get("TX1")).pool_error == reason

    @pytest.mark.asyncio
    async def test_database_rejects_confirmed_without_round(self, store, session_factory):
        """Test the schema itself refuses a confirmed row without a round."""
        await store.insert(make_record("TX1"))

        with pytest.raises(Exception):
            async with UnitOfWork(session_factory=session_factory) as uow:
                await uow.transactions.transition_status(
                    "TX1", expected_status="pending", new_status="confirmed"
                )

        assert (await store.get("TX1")).status is PENDING
