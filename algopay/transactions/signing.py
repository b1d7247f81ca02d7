"""
Credential handling: turning key material into signed transaction bytes.

Signing itself is delegated to algosdk; this module only adapts a
credential (a 25-word mnemonic or a signer object) to the lifecycle
manager and maps key-material failures to InvalidCredential.
"""

import base64
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Union

from algosdk import account, encoding, mnemonic

from algopay.transactions.builder import UnsignedPayment
from algopay.transactions.errors import InvalidCredential, MissingCredential


def sanitize_mnemonic(phrase: Optional[str]) -> str:
    """Collapse runs of whitespace and trim the ends of a mnemonic phrase."""
    if not phrase:
        return ""
    return " ".join(phrase.split())


class BaseSigner(ABC):
    """A capability that can sign payments for one address."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Address this signer controls."""
        pass

    @abstractmethod
    def sign(self, payment: UnsignedPayment) -> bytes:
        """
        Sign a payment.

        Returns:
            msgpack-encoded signed transaction, ready for raw submission

        Raises:
            InvalidCredential: If the key material cannot sign this payment
        """
        pass


class MnemonicSigner(BaseSigner):
    """Signer backed by a 25-word account mnemonic."""

    def __init__(self, phrase: str):
        cleaned = sanitize_mnemonic(phrase)
        if not cleaned:
            raise MissingCredential("Mnemonic is required")
        try:
            self._private_key = mnemonic.to_private_key(cleaned)
            self._address = account.address_from_private_key(self._private_key)
        except Exception as e:
            # algosdk raises a mix of its own errors and ValueError/KeyError
            raise InvalidCredential(f"Invalid mnemonic: {e}") from e

    @property
    def address(self) -> str:
        return self._address

    def sign(self, payment: UnsignedPayment) -> bytes:
        if payment.sender != self._address:
            raise InvalidCredential("Credential does not control the sender address")
        try:
            signed = payment.txn.sign(self._private_key)
        except Exception as e:
            raise InvalidCredential(f"Signing failed: {e}") from e
        return base64.b64decode(encoding.msgpack_encode(signed))

    def __repr__(self) -> str:
        return f"<MnemonicSigner(address={self._address})>"


Credential = Union[str, BaseSigner]


def resolve_signer(
    credential: Optional[Credential], default_mnemonic: Optional[str] = None
) -> BaseSigner:
    """
    Turn a credential into a signer.

    Args:
        credential: Mnemonic phrase or signer; None falls back to the default
        default_mnemonic: Configured sender mnemonic

    Raises:
        MissingCredential: If neither a credential nor a default exists
        InvalidCredential: If the mnemonic is malformed
    """
    if isinstance(credential, BaseSigner):
        return credential
    phrase = sanitize_mnemonic(credential) or sanitize_mnemonic(default_mnemonic)
    if not phrase:
        raise MissingCredential(
            "Mnemonic is required. Pass a credential or set ALGORAND_MNEMONIC."
        )
    return MnemonicSigner(phrase)


@dataclass(frozen=True)
class GeneratedAccount:
    address: str
    mnemonic: str = field(repr=False)


def generate_account() -> GeneratedAccount:
    """Create a fresh keypair, for funding from a test network dispenser."""
    private_key, address = account.generate_account()
    return GeneratedAccount(address=address, mnemonic=mnemonic.from_private_key(private_key))
