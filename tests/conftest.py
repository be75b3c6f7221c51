"""Shared fixtures: in-memory database, ledger object factory, API client."""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from therapy_payouts.config import PayoutPolicy
from therapy_payouts.database import Base, get_db
from therapy_payouts.models import (
    Appointment,
    AppointmentStatus,
    ClientProfile,
    Commission,
    CommissionStatus,
    Payment,
    PaymentStatus,
    TherapistProfile,
    TherapySession,
    User,
    UserRole,
)


BASE_TIME = datetime(2026, 10, 1, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(engine) -> AsyncSession:
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


@pytest.fixture
def policy() -> PayoutPolicy:
    return PayoutPolicy()


class LedgerFactory:
    """Builds users, appointments, payments, sessions and commissions."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    async def therapist(
        self,
        first_name: str = "Ploy",
        last_name: str = "Srisuk",
        with_profile: bool = True,
    ) -> User:
        n = self._next()
        user = User(
            id=uuid.uuid4(),
            email=f"therapist{n}@example.com",
            name=f"{first_name} {last_name}",
            role=UserRole.THERAPIST.value,
        )
        self.db.add(user)
        if with_profile:
            self.db.add(TherapistProfile(user_id=user.id, first_name=first_name, last_name=last_name))
        await self.db.commit()
        return user

    async def client(self, first_name: str = "Niran", last_name: str = "Chai") -> User:
        n = self._next()
        user = User(
            id=uuid.uuid4(),
            email=f"client{n}@example.com",
            name=f"{first_name} {last_name}",
            role=UserRole.CLIENT.value,
        )
        self.db.add(user)
        self.db.add(ClientProfile(user_id=user.id, first_name=first_name, last_name=last_name))
        await self.db.commit()
        return user

    async def session(
        self,
        therapist: User,
        client: Optional[User] = None,
        net_amount: Optional[str] = "1000.00",
        appointment_status: str = AppointmentStatus.CONFIRMED.value,
    ) -> TherapySession:
        """
        Appointment + session for ``therapist``. ``net_amount=None`` leaves
        the appointment without a payment.
        """
        client = client or await self.client()
        n = self._next()
        appointment = Appointment(
            id=uuid.uuid4(),
            client_id=client.id,
            therapist_id=therapist.id,
            scheduled_at=BASE_TIME + timedelta(hours=n),
            status=appointment_status,
        )
        self.db.add(appointment)

        if net_amount is not None:
            net = Decimal(net_amount)
            self.db.add(Payment(
                appointment_id=appointment.id,
                amount=net,
                processing_fee=Decimal("0.00"),
                net_amount=net,
                status=PaymentStatus.SUCCEEDED.value,
            ))

        session = TherapySession(
            id=uuid.uuid4(),
            appointment_id=appointment.id,
            therapist_id=therapist.id,
            started_at=appointment.scheduled_at,
            ended_at=appointment.scheduled_at + timedelta(minutes=50),
        )
        self.db.add(session)
        await self.db.commit()
        return session

    async def commission(
        self,
        therapist: User,
        commission_amount: str,
        status: str = CommissionStatus.CALCULATED.value,
        created_at: Optional[datetime] = None,
    ) -> Commission:
        """Commission row written directly, bypassing the calculation."""
        share = Decimal(commission_amount)
        amount = (share / Decimal("0.70")).quantize(Decimal("0.01"))
        session = await self.session(therapist, net_amount=str(amount))
        n = self._next()
        commission = Commission(
            id=uuid.uuid4(),
            session_id=session.id,
            therapist_id=therapist.id,
            amount=amount,
            commission_rate=Decimal("0.70"),
            commission_amount=share,
            platform_fee=amount - share,
            status=status,
            created_at=created_at or BASE_TIME + timedelta(minutes=n),
        )
        self.db.add(commission)
        await self.db.commit()
        return commission


@pytest.fixture
def factory(db_session) -> LedgerFactory:
    return LedgerFactory(db_session)


@pytest.fixture
async def client(db_session):
    from therapy_payouts.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
