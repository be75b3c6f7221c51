"""Appointment, payment and session models.

Owned by the booking side of the application. The ledger only reads
them, apart from flipping an appointment to COMPLETED.
"""
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from therapy_payouts.database import Base
from therapy_payouts.db_types import UUIDType, MoneyType

if TYPE_CHECKING:
    from therapy_payouts.models.user import User
    from therapy_payouts.models.commission import Commission


class AppointmentStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Appointment(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default=AppointmentStatus.PENDING.value,
        nullable=False,
        comment="PENDING, CONFIRMED, COMPLETED, CANCELLED, NO_SHOW"
    )

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
    client: Mapped["User"] = relationship("User", foreign_keys=[client_id])
    therapist: Mapped["User"] = relationship("User", foreign_keys=[therapist_id])
    payment: Mapped[Optional["Payment"]] = relationship(
        "Payment",
        back_populates="appointment",
        uselist=False
    )
    session: Mapped[Optional["TherapySession"]] = relationship(
        "TherapySession",
        back_populates="appointment",
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<Appointment(id={self.id}, status={self.status})>"


class Payment(Base):
    """Payment for one appointment. net_amount is the commission base."""
    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False, comment="Gross charged amount")
    processing_fee: Mapped[Decimal] = mapped_column(MoneyType, default=Decimal("0.00"), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(
        MoneyType,
        nullable=False,
        comment="amount - processing_fee"
    )
    currency: Mapped[str] = mapped_column(String(3), default="THB", nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default=PaymentStatus.PENDING.value,
        nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    appointment: Mapped["Appointment"] = relationship("Appointment", back_populates="payment")

    def __repr__(self) -> str:
        return f"<Payment(appointment={self.appointment_id}, net={self.net_amount})>"


class TherapySession(Base):
    """One therapy encounter held for an appointment."""
    __tablename__ = "sessions"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    appointment_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("appointments.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    therapist_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    appointment: Mapped["Appointment"] = relationship("Appointment", back_populates="session")
    therapist: Mapped["User"] = relationship("User")
    commission: Mapped[Optional["Commission"]] = relationship(
        "Commission",
        back_populates="session",
        uselist=False
    )

    def __repr__(self) -> str:
        return f"<TherapySession(id={self.id}, therapist={self.therapist_id})>"
