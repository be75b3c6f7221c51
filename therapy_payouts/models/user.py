"""User and profile models (read-only context for the ledger)."""
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from therapy_payouts.database import Base
from therapy_payouts.db_types import UUIDType

if TYPE_CHECKING:
    from therapy_payouts.models.commission import Commission, Payout


class UserRole(str, Enum):
    """User role enumeration."""
    CLIENT = "CLIENT"
    THERAPIST = "THERAPIST"
    ADMIN = "ADMIN"


class User(Base):
    """Platform account. Therapists and clients are both users."""
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        primary_key=True,
        default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    role: Mapped[str] = mapped_column(
        String(50),
        default=UserRole.CLIENT.value,
        nullable=False,
        comment="CLIENT, THERAPIST, ADMIN"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    therapist_profile: Mapped[Optional["TherapistProfile"]] = relationship(
        "TherapistProfile",
        back_populates="user",
        uselist=False
    )
    client_profile: Mapped[Optional["ClientProfile"]] = relationship(
        "ClientProfile",
        back_populates="user",
        uselist=False
    )
    commissions: Mapped[list["Commission"]] = relationship(
        "Commission",
        back_populates="therapist"
    )
    payouts: Mapped[list["Payout"]] = relationship(
        "Payout",
        back_populates="therapist"
    )

    def __repr__(self) -> str:
        return f"<User(email={self.email}, role={self.role})>"


class TherapistProfile(Base):
    __tablename__ = "therapist_profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="therapist_profile")


class ClientProfile(Base):
    __tablename__ = "client_profiles"

    id: Mapped[uuid.UUID] = mapped_column(UUIDType, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="client_profile")
