import os
import sys
from pathlib import Path

import pytest
import pytest_asyncio
from algosdk import account, mnemonic
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Ensure project root is on sys.path so `import algopay` works when running pytest from root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

# Force test settings before any algopay imports
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.pop("ALGORAND_MNEMONIC", None)

from algopay.db.init import create_tables  # noqa: E402
from algopay.transactions.clients.mock_client import MockLedgerClient  # noqa: E402
from algopay.transactions.config import LifecycleConfig, RetryConfig  # noqa: E402
from algopay.transactions.lifecycle import TransactionLifecycleManager  # noqa: E402
from algopay.transactions.store import SqlTransactionStore  # noqa: E402


class Account:
    """A throwaway keypair."""

    def __init__(self):
        private_key, self.address = account.generate_account()
        self.mnemonic = mnemonic.from_private_key(private_key)


@pytest.fixture
def sender():
    return Account()


@pytest.fixture
def recipient():
    return Account().address


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """
    Session factory on a fresh file-backed SQLite database.

    A file (rather than :memory:) gives every session its own connection,
    so concurrent store calls behave like they would against a real server.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'algopay-test.db'}", future=True
    )
    await create_tables(engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def store(session_factory):
    return SqlTransactionStore(session_factory)


@pytest.fixture
def ledger():
    return MockLedgerClient(start_round=1000)


@pytest.fixture
def lifecycle_config():
    return LifecycleConfig(
        max_confirmation_rounds=5,
        retry=RetryConfig(max_attempts=1, initial_delay=0.001, jitter=False),
    )


@pytest_asyncio.fixture
async def manager(ledger, store, lifecycle_config):
    return TransactionLifecycleManager(
        ledger=ledger, store=store, config=lifecycle_config
    )
