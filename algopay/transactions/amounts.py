"""
Conversion between user-facing ALGO amounts and integer microAlgos.

Amounts cross this boundary as ``Decimal`` so floating-point inputs are
taken at their shortest decimal representation (``0.1`` means one tenth,
not 0.1000000000000000055...). Scaling rounds half to even: 0.0000005 ALGO
becomes 0 microAlgos and 0.0000015 becomes 2.
"""

from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Union

from algopay.transactions.errors import InvalidAmount

MICROALGOS_PER_ALGO = 1_000_000

# Ledger amounts are uint64 and the store column is a signed BIGINT
MAX_MICROALGOS = 2**63 - 1

AmountLike = Union[Decimal, int, float, str]


def to_decimal(amount: AmountLike) -> Decimal:
    """Parse a user-facing amount, rejecting non-numeric and non-finite values."""
    if isinstance(amount, bool):
        raise InvalidAmount("Amount must be a number")
    try:
        if isinstance(amount, Decimal):
            value = amount
        elif isinstance(amount, float):
            value = Decimal(repr(amount))
        else:
            value = Decimal(str(amount).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"Amount is not a number: {amount!r}") from None

    if not value.is_finite():
        raise InvalidAmount("Amount must be finite")
    return value


def algos_to_microalgos(amount: AmountLike) -> int:
    """
    Convert ALGO to microAlgos.

    Raises:
        InvalidAmount: If the amount is not finite, not positive, rounds to
            zero or exceeds MAX_MICROALGOS
    """
    value = to_decimal(amount)
    if value <= 0:
        raise InvalidAmount("Amount must be a positive number")
    # Anything past 10**16 ALGO is out of range; checked before scaling
    if value.adjusted() > 15:
        raise InvalidAmount(f"Amount {value} exceeds the largest payable amount")

    units = int(
        (value * MICROALGOS_PER_ALGO).quantize(Decimal(1), rounding=ROUND_HALF_EVEN)
    )
    if units <= 0:
        raise InvalidAmount(
            f"Amount {value} is below the smallest unit (0.000001 ALGO)"
        )
    if units > MAX_MICROALGOS:
        raise InvalidAmount(f"Amount {value} exceeds the largest payable amount")
    return units


def microalgos_to_algos(units: int) -> Decimal:
    """Convert microAlgos back to an exact ALGO ``Decimal``."""
    return Decimal(units) / Decimal(MICROALGOS_PER_ALGO)
