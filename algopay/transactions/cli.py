"""
Transaction lifecycle CLI commands.

Provides a command-line interface for sending payments, checking and
reconciling their status, and running the reconciliation scheduler.
The sender credential is read from ALGORAND_MNEMONIC, never from argv.
"""

import asyncio
import sys
from typing import List, Optional

import structlog

from algopay.core.config import get_settings
from algopay.core.logging import configure_logging
from algopay.db.init import create_tables
from algopay.transactions.errors import PersistenceInconsistency, TransactionError
from algopay.transactions.lifecycle import TransactionLifecycleManager, create_manager
from algopay.transactions.models import TransactionRecord
from algopay.transactions.scheduler import ReconciliationScheduler
from algopay.transactions.signing import generate_account

logger = structlog.get_logger()


def print_record(record: TransactionRecord):
    """Pretty print a stored transaction."""
    data = record.to_dict()
    print(f"\n=== Transaction {data['tx_id']} ===\n")
    print(f"From:    {data['sender']}")
    print(f"To:      {data['recipient']}")
    print(f"Amount:  {data['amount_algos']} ALGO ({data['amount']} microAlgos)")
    if data["note"]:
        print(f"Note:    {data['note']}")
    print(f"Status:  {data['status']}")
    if data["confirmed_round"] is not None:
        print(f"Round:   {data['confirmed_round']}")
    if data["pool_error"]:
        print(f"Error:   {data['pool_error']}")
    print(f"Created: {data['created_at']}")
    print()


def print_records(records: List[TransactionRecord]):
    """Print a compact table of transactions, newest first."""
    if not records:
        print("No transactions recorded.")
        return
    print(f"\n{'TX ID':<54} {'STATUS':<10} {'ALGO':>14}  CREATED")
    for record in records:
        print(
            f"{record.tx_id:<54} {record.status.value:<10} "
            f"{str(record.amount_algos):>14}  {record.created_at.isoformat()}"
        )
    print()


async def send_command(
    manager: TransactionLifecycleManager,
    recipient: str,
    amount: str,
    note: Optional[str] = None,
    wait: bool = False,
):
    """Send a payment from the configured account."""
    result = await manager.submit(
        None, recipient, amount, note, wait_for_confirmation=wait or None
    )
    print(f"\nTransaction sent: {result.tx_id}")
    if result.confirmation is not None:
        print(f"Confirmation: {result.confirmation.state.value}")
    print_record(result.record)
    return 0


async def status_command(manager: TransactionLifecycleManager, tx_id: str):
    """Check one transaction against the ledger."""
    report = await manager.check_status(tx_id)
    print(f"\n{tx_id}: {report.status.value}")
    if report.confirmed_round is not None:
        print(f"Confirmed in round {report.confirmed_round}")
    if report.pool_error:
        print(f"Pool error: {report.pool_error}")
    return 0


async def wait_command(
    manager: TransactionLifecycleManager, tx_id: str, rounds: Optional[int] = None
):
    """Wait a bounded number of rounds for confirmation."""
    result = await manager.await_confirmation(tx_id, rounds)
    print(f"\n{tx_id}: {result.state.value} after {result.rounds_waited} round(s)")
    if result.confirmed_round is not None:
        print(f"Confirmed in round {result.confirmed_round}")
    if result.pool_error:
        print(f"Pool error: {result.pool_error}")
    return 0


async def reconcile_command(manager: TransactionLifecycleManager):
    """Run one reconciliation pass."""
    summary = await manager.reconcile_pending()
    print("\n=== Reconciliation ===\n")
    print(f"Checked:       {summary.checked}")
    print(f"Confirmed:     {summary.confirmed}")
    print(f"Failed:        {summary.failed}")
    print(f"Still pending: {summary.still_pending}")
    if summary.errors:
        print(f"Errors:        {summary.errors}")
    print()
    return 0 if summary.errors == 0 else 2


async def list_command(manager: TransactionLifecycleManager, limit: Optional[int] = None):
    """List stored transactions."""
    print_records(await manager.list_transactions(limit=limit))
    return 0


async def account_command(manager: TransactionLifecycleManager, address: str):
    """Show an account's balance."""
    info = await manager.get_account_info(address)
    print(f"\nAddress: {info.address}")
    print(f"Balance: {info.amount_algos} ALGO ({info.amount} microAlgos)")
    if info.min_balance is not None:
        print(f"Minimum balance: {info.min_balance} microAlgos")
    if info.status:
        print(f"Status:  {info.status}")
    print()
    return 0


async def run_command(manager: TransactionLifecycleManager):
    """Run the reconciliation scheduler until interrupted."""
    scheduler = ReconciliationScheduler(manager)
    print("Starting reconciliation scheduler...")
    print(f"Interval: {scheduler.config.interval_seconds} seconds")
    print("Press Ctrl+C to stop\n")

    await scheduler.start()
    try:
        while True:
            await asyncio.sleep(1)
    finally:
        await scheduler.stop()
        print("Scheduler stopped.")


def new_account_command():
    """Generate a fresh account for a test network."""
    account = generate_account()
    print(f"\nAddress:  {account.address}")
    print(f"Mnemonic: {account.mnemonic}")
    print("\nFund it from the TestNet dispenser before sending from it.")
    return 0


USAGE = """Usage: python -m algopay.transactions.cli <command> [options]

Commands:
  init-db                           Create database tables
  send <recipient> <amount> [note]  Send ALGO from ALGORAND_MNEMONIC's account
                                    (add --wait to wait for confirmation)
  status <tx_id>                    Check a transaction once
  wait <tx_id> [rounds]             Wait for confirmation (bounded by rounds)
  reconcile                         Re-check all pending transactions
  list [limit]                      List stored transactions, newest first
  account <address>                 Show an account balance
  new-account                       Generate a new account
  run                               Run the reconciliation scheduler

Examples:
  python -m algopay.transactions.cli send <ADDRESS> 1.5 "rent"
  python -m algopay.transactions.cli status <TX_ID>
  python -m algopay.transactions.cli reconcile"""


def parse_count(value: str, name: str) -> Optional[int]:
    """Parse a non-negative integer argument, printing usage if it is not one."""
    if value.isascii() and value.isdigit():
        return int(value)
    print(f"{name} must be a non-negative integer, got {value!r}")
    print(USAGE)
    return None


async def dispatch(command: str, args: List[str]) -> int:
    if command == "init-db":
        await create_tables()
        print("Database tables created.")
        return 0

    manager = create_manager()

    if command == "send":
        wait = "--wait" in args
        args = [a for a in args if a != "--wait"]
        if len(args) < 2:
            print("send requires <recipient> <amount>")
            return 1
        note = args[2] if len(args) > 2 else None
        return await send_command(manager, args[0], args[1], note, wait)
    elif command == "status" and args:
        return await status_command(manager, args[0])
    elif command == "wait" and args:
        rounds = None
        if len(args) > 1:
            rounds = parse_count(args[1], "rounds")
            if rounds is None:
                return 1
        return await wait_command(manager, args[0], rounds)
    elif command == "reconcile":
        return await reconcile_command(manager)
    elif command == "list":
        limit = None
        if args:
            limit = parse_count(args[0], "limit")
            if limit is None:
                return 1
        return await list_command(manager, limit)
    elif command == "account" and args:
        return await account_command(manager, args[0])
    elif command == "run":
        await run_command(manager)
        return 0

    print(f"Unknown command or missing argument: {command}")
    print(USAGE)
    return 1


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE)
        return 1

    settings = get_settings()
    configure_logging(settings.ENV, settings.DEBUG)

    command, args = argv[0], argv[1:]
    if command == "new-account":
        return new_account_command()

    try:
        return asyncio.run(dispatch(command, args))
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130
    except PersistenceInconsistency as e:
        print(f"\nWARNING: {e.message}")
        print(f"Transaction id: {e.tx_id}")
        return 3
    except TransactionError as e:
        print(f"\nError [{e.category.value}/{e.code}]: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
