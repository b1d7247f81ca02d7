"""Transaction model for payments submitted to the ledger."""

from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from algopay.db.base import Base


class Transaction(Base):
    """
    Stores payments this service submitted to the network.

    A row is inserted as ``pending`` right after the node accepts the signed
    payment and is later moved to ``confirmed`` or ``failed`` by confirmation
    polling or reconciliation. Rows are never deleted here.
    """

    __tablename__ = "transactions"

    # Network-assigned id is the primary key
    tx_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="Transaction id assigned by the network",
    )

    sender: Mapped[str] = mapped_column(
        String(58), nullable=False, index=True, comment="Sender address"
    )
    recipient: Mapped[str] = mapped_column(
        String(58), nullable=False, index=True, comment="Recipient address"
    )

    # Base units (microAlgos); never a float
    amount: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Amount in smallest denomination"
    )
    note: Mapped[Optional[bytes]] = mapped_column(
        LargeBinary, nullable=True, comment="Opaque note payload"
    )

    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="pending",
        index=True,
        comment="pending, confirmed or failed",
    )
    confirmed_round: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, comment="Round the payment was confirmed in"
    )
    pool_error: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Pool error reported by the node"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'failed')", name="ck_transaction_status"
        ),
        CheckConstraint(
            "(status = 'confirmed' AND confirmed_round IS NOT NULL AND confirmed_round >= 0)"
            " OR (status != 'confirmed' AND confirmed_round IS NULL)",
            name="ck_transaction_confirmed_round",
        ),
        CheckConstraint("amount > 0", name="ck_transaction_amount_positive"),
        Index("idx_transaction_status_created", "status", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Transaction(tx_id={self.tx_id}, amount={self.amount}, "
            f"status={self.status}, confirmed_round={self.confirmed_round})>"
        )
