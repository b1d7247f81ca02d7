"""Ledger client implementations."""

from algopay.transactions.clients.base import BaseLedgerClient
from algopay.transactions.clients.algod_client import AlgodLedgerClient
from algopay.transactions.clients.mock_client import MockLedgerClient

__all__ = ["BaseLedgerClient", "AlgodLedgerClient", "MockLedgerClient"]
