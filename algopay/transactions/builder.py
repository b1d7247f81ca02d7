"""
Payment transaction builder.

Turns a sender, recipient, amount, note and network parameters into an
unsigned payment. Validation is pure: nothing here touches the network
or the store, so bad input fails before any side effect.
"""

from dataclasses import dataclass
from typing import Optional, Union

from algosdk import encoding, transaction

from algopay.transactions.amounts import AmountLike, algos_to_microalgos
from algopay.transactions.errors import (
    InvalidNote,
    InvalidRecipient,
    InvalidSender,
)
from algopay.transactions.models import NetworkParams

NoteLike = Union[str, bytes, None]

DEFAULT_NOTE_MAX_BYTES = 1024


@dataclass(frozen=True)
class PaymentDraft:
    """Validated payment inputs, amount already in microAlgos."""

    sender: Optional[str]
    recipient: str
    amount: int
    note: Optional[bytes]


@dataclass(frozen=True)
class UnsignedPayment:
    """An unsigned payment ready for a signer."""

    sender: str
    recipient: str
    amount: int
    note: Optional[bytes]
    txn: transaction.PaymentTxn

    @property
    def tx_id(self) -> str:
        """Id the network will assign once this payment is signed and submitted."""
        return self.txn.get_txid()


def is_valid_address(address: object) -> bool:
    """Check an address against the network's checksum format."""
    return isinstance(address, str) and encoding.is_valid_address(address)


def encode_note(note: NoteLike, max_bytes: int = DEFAULT_NOTE_MAX_BYTES) -> Optional[bytes]:
    """Encode a note to bytes (UTF-8 for text) and enforce the size limit."""
    if note is None:
        return None
    if isinstance(note, str):
        data = note.encode("utf-8")
    elif isinstance(note, (bytes, bytearray)):
        data = bytes(note)
    else:
        raise InvalidNote("Note must be text or bytes")

    if len(data) > max_bytes:
        raise InvalidNote(f"Note is {len(data)} bytes; the maximum is {max_bytes}")
    # Empty notes are dropped rather than stored
    return data or None


class TransactionBuilder:
    """Validates payment inputs and builds unsigned payment transactions."""

    def __init__(self, note_max_bytes: int = DEFAULT_NOTE_MAX_BYTES):
        self.note_max_bytes = note_max_bytes

    def validate(
        self,
        sender: Optional[str],
        recipient: str,
        amount: AmountLike,
        note: NoteLike = None,
    ) -> PaymentDraft:
        """
        Validate payment inputs.

        Args:
            sender: Sender address, or None when it will come from the credential
            recipient: Recipient address
            amount: User-facing amount in ALGO
            note: Optional text or bytes

        Returns:
            PaymentDraft with the amount converted to microAlgos

        Raises:
            InvalidSender, InvalidRecipient, InvalidAmount, InvalidNote
        """
        if sender is not None and not is_valid_address(sender):
            raise InvalidSender("Invalid sender address")
        if not is_valid_address(recipient):
            raise InvalidRecipient("Invalid recipient address")

        units = algos_to_microalgos(amount)
        note_bytes = encode_note(note, self.note_max_bytes)

        return PaymentDraft(
            sender=sender, recipient=recipient, amount=units, note=note_bytes
        )

    def build_from_draft(
        self, draft: PaymentDraft, sender: str, params: NetworkParams
    ) -> UnsignedPayment:
        """Build an unsigned payment from an already validated draft."""
        if not is_valid_address(sender):
            raise InvalidSender("Invalid sender address")

        suggested = transaction.SuggestedParams(
            fee=params.fee,
            first=params.first_valid,
            last=params.last_valid,
            gh=params.genesis_hash,
            gen=params.genesis_id,
            flat_fee=False,
            consensus_version=params.consensus_version,
            min_fee=params.min_fee,
        )
        txn = transaction.PaymentTxn(
            sender=sender,
            sp=suggested,
            receiver=draft.recipient,
            amt=draft.amount,
            note=draft.note,
        )
        return UnsignedPayment(
            sender=sender,
            recipient=draft.recipient,
            amount=draft.amount,
            note=draft.note,
            txn=txn,
        )

    def build(
        self,
        sender: str,
        recipient: str,
        amount: AmountLike,
        note: NoteLike,
        params: NetworkParams,
    ) -> UnsignedPayment:
        """Validate inputs and build an unsigned payment in one step."""
        draft = self.validate(sender, recipient, amount, note)
        return self.build_from_draft(draft, sender, params)
