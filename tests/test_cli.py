"""Tests for the command-line interface."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from algopay.transactions import cli
from algopay.transactions.errors import (
    InvalidRecipient,
    NetworkError,
    PersistenceInconsistency,
    TransactionNotFound,
)
from algopay.transactions.models import PendingTransactionInfo


@pytest.fixture(autouse=True)
def keep_test_logging(monkeypatch):
    """Leave the global logging setup alone while main() runs."""
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)


def test_no_arguments_prints_usage(capsys):
    assert cli.main([]) == 1
    assert "Commands:" in capsys.readouterr().out


def test_new_account(capsys):
    assert cli.main(["new-account"]) == 0

    out = capsys.readouterr().out
    assert "Address:" in out
    assert "Mnemonic:" in out


class TestMainErrorHandling:
    """Tests for exit codes of main()."""

    def run_with(self, argv, **manager_methods):
        manager = MagicMock()
        for name, mock in manager_methods.items():
            setattr(manager, name, mock)
        with patch.object(cli, "create_manager", return_value=manager):
            return cli.main(argv)

    def test_not_found(self, capsys):
        code = self.run_with(
            ["status", "TXID"],
            check_status=AsyncMock(side_effect=TransactionNotFound("TXID")),
        )

        assert code == 1
        assert "not_found/TRANSACTION_NOT_FOUND" in capsys.readouterr().out

    def test_validation_error(self, capsys):
        code = self.run_with(
            ["send", "bad", "1"],
            submit=AsyncMock(side_effect=InvalidRecipient("Invalid recipient address")),
        )

        assert code == 1
        assert "validation/INVALID_RECIPIENT" in capsys.readouterr().out

    def test_persistence_inconsistency(self, capsys):
        code = self.run_with(
            ["send", "ADDR", "1"],
            submit=AsyncMock(side_effect=PersistenceInconsistency("SUBMITTEDID")),
        )

        assert code == 3
        assert "SUBMITTEDID" in capsys.readouterr().out

    def test_send_requires_arguments(self, capsys):
        assert self.run_with(["send", "ADDR"]) == 1

    def test_unknown_command(self, capsys):
        assert self.run_with(["frobnicate"]) == 1
        assert "Unknown command" in capsys.readouterr().out

    @pytest.mark.parametrize(
        "argv", [["wait", "TXID", "abc"], ["wait", "TXID", "-1"], ["list", "ten"]]
    )
    def test_non_numeric_count_prints_usage(self, argv, capsys):
        """Test a bad rounds or limit argument exits 1 without calling the manager."""
        wait = AsyncMock()
        listing = AsyncMock()

        code = self.run_with(argv, await_confirmation=wait, list_transactions=listing)

        assert code == 1
        assert "must be a non-negative integer" in capsys.readouterr().out
        wait.assert_not_called()
        listing.assert_not_called()

    def test_numeric_count_is_passed_through(self):
        listing = AsyncMock(return_value=[])

        assert self.run_with(["list", "5"], list_transactions=listing) == 0
        listing.assert_awaited_once_with(limit=5)


class TestCommands:
    """Tests for command coroutines against a real manager and mock ledger."""

    @pytest.mark.asyncio
    async def test_send_and_list(self, manager, sender, capsys):
        manager.config = manager.config.model_copy(
            update={"default_mnemonic": sender.mnemonic}
        )
        recipient = cli.generate_account().address

        with patch.object(cli, "create_manager", return_value=manager):
            assert await cli.dispatch("send", [recipient, "1.25", "rent"]) == 0
            assert await cli.dispatch("list", []) == 0

        out = capsys.readouterr().out
        assert "Transaction sent:" in out
        assert "1.25 ALGO (1250000 microAlgos)" in out
        assert "pending" in out

    @pytest.mark.asyncio
    async def test_status_and_reconcile(self, manager, ledger, sender, recipient, capsys):
        result = await manager.submit(
            sender.address, recipient, 1, credential=sender.mnemonic
        )
        ledger.script_pending(result.tx_id, PendingTransactionInfo(confirmed_round=1001))

        with patch.object(cli, "create_manager", return_value=manager):
            assert await cli.dispatch("reconcile", []) == 0
            assert await cli.dispatch("status", [result.tx_id]) == 0

        out = capsys.readouterr().out
        assert "Confirmed:     1" in out
        assert "Confirmed in round 1001" in out

    @pytest.mark.asyncio
    async def test_reconcile_with_errors_exits_2(self, manager, ledger, sender, recipient):
        result = await manager.submit(
            sender.address, recipient, 1, credential=sender.mnemonic
        )
        ledger.script_pending(result.tx_id, NetworkError("down"))

        with patch.object(cli, "create_manager", return_value=manager):
            assert await cli.dispatch("reconcile", []) == 2

    @pytest.mark.asyncio
    async def test_account(self, manager, ledger, recipient, capsys):
        ledger.balances[recipient] = 1_000_000

        with patch.object(cli, "create_manager", return_value=manager):
            assert await cli.dispatch("account", [recipient]) == 0

        assert "Balance: 1 ALGO" in capsys.readouterr().out
