"""Commission and Payout ledger models.

Supports:
- One commission per completed therapy session (revenue split)
- Batching a therapist's unpaid commissions into a payout
- Payout status tracking and external transfer references
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional, List

from sqlalchemy import String, DateTime, ForeignKey, Integer, Text
from sqlalchemy import UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from therapy_payouts.database import Base
from therapy_payouts.db_types import UUIDType, MoneyType, RateType

if TYPE_CHECKING:
    from therapy_payouts.models.user import User
    from therapy_payouts.models.appointment import TherapySession


class CommissionStatus(str, Enum):
    """Commission status."""
    PENDING = "PENDING"             # Recorded, not yet calculated
    CALCULATED = "CALCULATED"       # Split computed, awaiting payout
    PAID = "PAID"                   # Attached to a payout
    DISPUTED = "DISPUTED"           # Held back from payouts


# Commissions that can still be picked up by a payout
UNPAID_COMMISSION_STATUSES = (
    CommissionStatus.PENDING.value,
    CommissionStatus.CALCULATED.value,
)


class PayoutStatus(str, Enum):
    """Payout batch status."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


OPEN_PAYOUT_STATUSES = (
    PayoutStatus.PENDING.value,
    PayoutStatus.PROCESSING.value,
)

# Forward-only lifecycle; COMPLETED and CANCELLED are terminal
PAYOUT_TRANSITIONS = {
    PayoutStatus.PENDING.value: {
        PayoutStatus.PROCESSING.value,
        PayoutStatus.COMPLETED.value,
        PayoutStatus.FAILED.value,
    },
    PayoutStatus.PROCESSING.value: {
        PayoutStatus.COMPLETED.value,
        PayoutStatus.FAILED.value,
    },
    PayoutStatus.FAILED.value: {
        PayoutStatus.PROCESSING.value,
    },
    PayoutStatus.COMPLETED.value: set(),
    PayoutStatus.CANCELLED.value: set(),
}


class Commission(Base):
    """
    Revenue split for exactly one therapy session.

    commission_amount + platform_fee == amount, exactly.
    """
    __tablename__ = "commissions"
    __table_args__ = (
        UniqueConstraint("session_id", name="uq_commissions_session"),
        Index('ix_commissions_status', 'status'),
        Index('ix_commissions_therapist_status', 'therapist_id', 'status'),
        Index('ix_commissions_created', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    # Session & Therapist Reference
    session_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("sessions.id", ondelete="RESTRICT"),
        nullable=False
    )
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Commission Calculation
    amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Payment net amount (base for the split)"
    )
    commission_rate: Mapped[Decimal] = mapped_column(
        RateType,
        nullable=False,
        comment="Therapist share as a fraction"
    )
    commission_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Therapist share"
    )
    platform_fee: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="amount - commission_amount"
    )

    # Status
    status: Mapped[str] = mapped_column(
        String(50),
        default=CommissionStatus.PENDING.value,
        nullable=False,
        comment="PENDING, CALCULATED, PAID, DISPUTED"
    )

    # Payout Reference (when paid)
    payout_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType,
        ForeignKey("payouts.id", ondelete="RESTRICT"),
        nullable=True,
        index=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    session: Mapped["TherapySession"] = relationship(
        "TherapySession",
        back_populates="commission"
    )
    therapist: Mapped["User"] = relationship(
        "User",
        back_populates="commissions"
    )
    payout: Mapped[Optional["Payout"]] = relationship(
        "Payout",
        back_populates="commissions"
    )

    @property
    def is_unpaid(self) -> bool:
        return self.status in UNPAID_COMMISSION_STATUSES and self.payout_id is None

    def __repr__(self) -> str:
        return f"<Commission(session={self.session_id}, amount={self.commission_amount}, status={self.status})>"


class Payout(Base):
    """
    Payout record for commission disbursement.

    Batches a therapist's commissions into a single transfer. The attached
    commission set is fixed when the payout is created.
    """
    __tablename__ = "payouts"
    __table_args__ = (
        Index('ix_payouts_status', 'status'),
        Index('ix_payouts_created', 'created_at'),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )

    therapist_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    # Payout Details
    total_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="Sum of attached commission amounts"
    )
    commission_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Status
    status: Mapped[str] = mapped_column(
        String(50),
        default=PayoutStatus.PENDING.value,
        nullable=False,
        comment="PENDING, PROCESSING, COMPLETED, FAILED, CANCELLED"
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    stripe_transfer_id: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="External transfer reference"
    )
    failed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    therapist: Mapped["User"] = relationship(
        "User",
        back_populates="payouts"
    )
    commissions: Mapped[List["Commission"]] = relationship(
        "Commission",
        back_populates="payout"
    )

    def can_transition_to(self, target: str) -> bool:
        return target in PAYOUT_TRANSITIONS.get(self.status, set())

    def __repr__(self) -> str:
        return f"<Payout(therapist={self.therapist_id}, amount={self.total_amount}, status={self.status})>"
