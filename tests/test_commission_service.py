"""Tests for CommissionService: splits, idempotent recording, summaries, payouts."""

import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from therapy_payouts.config import PayoutPolicy
from therapy_payouts.core.exceptions import (
    CommissionCalculationError,
    InvalidPayoutTransitionError,
    NoEligibleCommissionsError,
    PayoutConflictError,
    PayoutNotFoundError,
)
from therapy_payouts.models import Commission, CommissionStatus, Payout, PayoutStatus
from therapy_payouts.services.commission_service import (
    CommissionService,
    record_session_commission,
)

from conftest import BASE_TIME


@pytest.fixture
def service(db_session, policy) -> CommissionService:
    return CommissionService(db_session, policy)


async def _commission_count(db, **filters) -> int:
    query = select(func.count(Commission.id))
    for key, value in filters.items():
        query = query.where(getattr(Commission, key) == value)
    return (await db.execute(query)).scalar_one()


class TestCalculateCommission:
    async def test_splits_net_amount(self, service, factory):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount="1000.00")

        calc = await service.calculate_commission(session.id)

        assert calc.session_id == session.id
        assert calc.therapist_id == therapist.id
        assert calc.total_amount == Decimal("1000.00")
        assert calc.commission_rate == Decimal("0.70")
        assert calc.commission_amount == Decimal("700.00")
        assert calc.platform_fee == Decimal("300.00")

    async def test_unknown_session(self, service):
        assert await service.calculate_commission(uuid.uuid4()) is None

    async def test_session_without_payment(self, service, factory):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount=None)

        assert await service.calculate_commission(session.id) is None

    async def test_uses_policy_rate(self, db_session, factory):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount="850.00")
        service = CommissionService(db_session, PayoutPolicy(commission_rate=Decimal("0.65")))

        calc = await service.calculate_commission(session.id)

        assert calc.commission_amount == Decimal("552.50")
        assert calc.commission_amount + calc.platform_fee == Decimal("850.00")

    async def test_stored_split_sums_exactly(self, db_session, factory):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount="10.05")
        service = CommissionService(db_session, PayoutPolicy(commission_rate=Decimal("0.6667")))

        commission = await service.create_commission(session.id)

        row = (await db_session.execute(
            select(
                Commission.amount,
                Commission.commission_rate,
                Commission.commission_amount,
                Commission.platform_fee,
            ).where(Commission.id == commission.id)
        )).one()
        assert row.commission_rate == Decimal("0.6667")
        assert row.commission_amount == Decimal("6.70")
        assert row.commission_amount + row.platform_fee == row.amount == Decimal("10.05")


class TestCreateCommission:
    async def test_records_calculated_commission(self, service, factory, db_session):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount="1000.00")

        commission = await service.create_commission(session.id)

        assert commission is not None
        assert commission.status == CommissionStatus.CALCULATED.value
        assert commission.commission_amount == Decimal("700.00")
        assert commission.platform_fee == Decimal("300.00")
        assert commission.payout_id is None
        assert await _commission_count(db_session, session_id=session.id) == 1

    async def test_second_call_is_noop(self, service, factory, db_session):
        therapist = await factory.therapist()
        session = await factory.session(therapist)

        first = await service.create_commission(session.id)
        second = await service.create_commission(session.id)

        assert first is not None
        assert second is None
        assert await _commission_count(db_session, session_id=session.id) == 1

    async def test_not_billable_raises(self, service, factory, db_session):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount=None)

        with pytest.raises(CommissionCalculationError, match="Cannot calculate commission"):
            await service.create_commission(session.id)
        assert await _commission_count(db_session) == 0

    async def test_record_session_commission_swallows_errors(self, db_session, factory):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount=None)

        assert await record_session_commission(db_session, session.id) is None

    async def test_record_session_commission_uses_given_policy(self, db_session, factory):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount="1000.00")

        commission = await record_session_commission(
            db_session, session.id, PayoutPolicy(commission_rate=Decimal("0.50"))
        )

        assert commission.commission_rate == Decimal("0.50")
        assert commission.commission_amount == Decimal("500.00")

    async def test_concurrent_duplicate_is_skipped(
        self, service, factory, db_session, engine, monkeypatch
    ):
        therapist = await factory.therapist()
        session = await factory.session(therapist, net_amount="1000.00")
        session_id, therapist_id = session.id, therapist.id
        other_sessions = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        real_commit = db_session.commit

        async def commit_after_other_writer():
            # Another request records the same session after our existence check
            async with other_sessions() as other:
                other.add(Commission(
                    session_id=session_id,
                    therapist_id=therapist_id,
                    amount=Decimal("1000.00"),
                    commission_rate=Decimal("0.70"),
                    commission_amount=Decimal("700.00"),
                    platform_fee=Decimal("300.00"),
                    status=CommissionStatus.CALCULATED.value,
                ))
                await other.commit()
            monkeypatch.setattr(db_session, "commit", real_commit)
            await real_commit()

        monkeypatch.setattr(db_session, "commit", commit_after_other_writer)

        assert await service.create_commission(session_id) is None
        assert await _commission_count(db_session, session_id=session_id) == 1


class TestCommissionQueries:
    async def test_summary_for_therapist_without_commissions(self, service, factory):
        therapist = await factory.therapist()

        summary = await service.get_therapist_commission_summary(therapist.id)

        assert summary == {
            "pending_amount": Decimal("0"),
            "pending_count": 0,
            "paid_amount": Decimal("0"),
            "paid_count": 0,
            "total_earnings": Decimal("0"),
            "total_sessions": 0,
        }

    async def test_summary_buckets(self, service, factory):
        therapist = await factory.therapist()
        other = await factory.therapist(first_name="Other")
        await factory.commission(therapist, "700.00")
        await factory.commission(therapist, "350.00", status=CommissionStatus.PENDING.value)
        await factory.commission(therapist, "200.00", status=CommissionStatus.PAID.value)
        await factory.commission(therapist, "50.00", status=CommissionStatus.DISPUTED.value)
        await factory.commission(other, "999.00")

        summary = await service.get_therapist_commission_summary(therapist.id)

        assert summary["pending_amount"] == Decimal("1050.00")
        assert summary["pending_count"] == 2
        assert summary["paid_amount"] == Decimal("200.00")
        assert summary["paid_count"] == 1
        assert summary["total_earnings"] == Decimal("1300.00")
        assert summary["total_sessions"] == 4

    async def test_history_newest_first_and_paginated(self, service, factory):
        therapist = await factory.therapist()
        created = []
        for i in range(5):
            created.append(await factory.commission(
                therapist, "100.00", created_at=BASE_TIME + timedelta(days=i)
            ))

        page = await service.get_therapist_commissions(therapist.id, limit=2, offset=1)

        assert [c.id for c in page] == [created[3].id, created[2].id]

    async def test_history_includes_client_context(self, service, factory):
        therapist = await factory.therapist()
        await factory.commission(therapist, "100.00")

        [commission] = await service.get_therapist_commissions(therapist.id)

        client = commission.session.appointment.client
        assert client.client_profile.first_name == "Niran"
        assert commission.payout is None


class TestCreatePayout:
    async def test_batches_commissions(self, service, factory, db_session):
        therapist = await factory.therapist()
        c1 = await factory.commission(therapist, "700.00")
        c2 = await factory.commission(therapist, "500.00")

        payout = await service.create_payout(therapist.id, [c1.id, c2.id])

        assert payout.status == PayoutStatus.PENDING.value
        assert payout.total_amount == Decimal("1200.00")
        assert payout.commission_count == 2

        result = await db_session.execute(select(Commission).where(Commission.payout_id == payout.id))
        attached = result.scalars().all()
        assert {c.id for c in attached} == {c1.id, c2.id}
        assert all(c.status == CommissionStatus.PAID.value for c in attached)
        assert all(c.paid_at is not None for c in attached)

    async def test_ignores_ineligible_ids(self, service, factory):
        therapist = await factory.therapist()
        other = await factory.therapist(first_name="Other")
        mine = await factory.commission(therapist, "300.00")
        theirs = await factory.commission(other, "400.00")
        disputed = await factory.commission(therapist, "50.00", status=CommissionStatus.DISPUTED.value)

        payout = await service.create_payout(
            therapist.id, [mine.id, theirs.id, disputed.id, uuid.uuid4()]
        )

        assert payout.total_amount == Decimal("300.00")
        assert payout.commission_count == 1

    async def test_no_eligible_commissions(self, service, factory, db_session):
        therapist = await factory.therapist()
        other = await factory.therapist(first_name="Other")
        theirs = await factory.commission(other, "400.00")

        with pytest.raises(NoEligibleCommissionsError):
            await service.create_payout(therapist.id, [theirs.id])

        payouts = (await db_session.execute(select(func.count(Payout.id)))).scalar_one()
        assert payouts == 0

    async def test_commission_cannot_be_paid_twice(self, service, factory, db_session):
        therapist = await factory.therapist()
        commission = await factory.commission(therapist, "700.00")

        await service.create_payout(therapist.id, [commission.id])
        with pytest.raises(NoEligibleCommissionsError):
            await service.create_payout(therapist.id, [commission.id])

        payouts = (await db_session.execute(select(func.count(Payout.id)))).scalar_one()
        assert payouts == 1

    async def test_commission_claimed_during_payout_conflicts(
        self, service, factory, db_session, monkeypatch
    ):
        therapist = await factory.therapist()
        earlier = await factory.commission(therapist, "100.00")
        existing = await service.create_payout(therapist.id, [earlier.id])
        commission = await factory.commission(therapist, "700.00")
        therapist_id, commission_id, existing_id = therapist.id, commission.id, existing.id
        real_flush = db_session.flush

        async def flush_then_claim(*args, **kwargs):
            await real_flush(*args, **kwargs)
            # Attached elsewhere between the eligibility select and the attach
            await db_session.execute(
                update(Commission)
                .where(Commission.id == commission_id)
                .values(payout_id=existing_id)
            )

        monkeypatch.setattr(db_session, "flush", flush_then_claim)

        with pytest.raises(PayoutConflictError):
            await service.create_payout(therapist_id, [commission_id])

        payout_ids = (await db_session.execute(select(Payout.id))).scalars().all()
        assert payout_ids == [existing_id]
        row = (await db_session.execute(
            select(Commission.payout_id, Commission.status).where(Commission.id == commission_id)
        )).one()
        assert row.payout_id is None
        assert row.status == CommissionStatus.CALCULATED.value

    async def test_pending_payouts_oldest_first(self, service, factory, db_session):
        therapist = await factory.therapist()
        first = await service.create_payout(
            therapist.id, [(await factory.commission(therapist, "100.00")).id]
        )
        second = await service.create_payout(
            therapist.id, [(await factory.commission(therapist, "200.00")).id]
        )
        first.created_at = BASE_TIME
        second.created_at = BASE_TIME + timedelta(hours=1)
        await db_session.commit()
        await service.process_payout(first.id, "tr_done")

        third = await service.create_payout(
            therapist.id, [(await factory.commission(therapist, "300.00")).id]
        )
        third.created_at = BASE_TIME - timedelta(hours=1)
        await db_session.commit()

        pending = await service.get_pending_payouts()

        assert [p.id for p in pending] == [third.id, second.id]
        assert pending[0].therapist.therapist_profile.first_name == "Ploy"
        assert len(pending[0].commissions) == 1


class TestPayoutStatus:
    async def _payout(self, service, factory):
        therapist = await factory.therapist()
        commission = await factory.commission(therapist, "700.00")
        return await service.create_payout(therapist.id, [commission.id])

    async def test_process_payout(self, service, factory):
        payout = await self._payout(service, factory)

        processed = await service.process_payout(payout.id, "tr_123")

        assert processed.status == PayoutStatus.COMPLETED.value
        assert processed.stripe_transfer_id == "tr_123"
        assert processed.processed_at is not None

    async def test_process_without_transfer_id(self, service, factory):
        payout = await self._payout(service, factory)

        processed = await service.process_payout(payout.id)

        assert processed.status == PayoutStatus.COMPLETED.value
        assert processed.stripe_transfer_id is None

    async def test_unknown_payout(self, service):
        with pytest.raises(PayoutNotFoundError, match="Payout not found"):
            await service.process_payout(uuid.uuid4(), "tr_1")

    async def test_completed_is_terminal(self, service, factory):
        payout = await self._payout(service, factory)
        await service.process_payout(payout.id, "tr_1")

        with pytest.raises(InvalidPayoutTransitionError):
            await service.process_payout(payout.id, "tr_2")
        with pytest.raises(InvalidPayoutTransitionError):
            await service.fail_payout(payout.id, "late failure")

    async def test_processing_then_fail_then_retry(self, service, factory, db_session):
        payout = await self._payout(service, factory)

        processing = await service.mark_payout_processing(payout.id)
        assert processing.status == PayoutStatus.PROCESSING.value

        failed = await service.fail_payout(payout.id, "bank rejected")
        assert failed.status == PayoutStatus.FAILED.value
        assert failed.failure_reason == "bank rejected"
        assert failed.failed_at is not None

        retried = await service.mark_payout_processing(payout.id)
        assert retried.status == PayoutStatus.PROCESSING.value
        assert retried.failure_reason is None

        # Commissions stay attached through a failure
        attached = await _commission_count(db_session, payout_id=payout.id)
        assert attached == 1

    async def test_failed_cannot_complete_directly(self, service, factory):
        payout = await self._payout(service, factory)
        await service.fail_payout(payout.id, "bank rejected")

        with pytest.raises(InvalidPayoutTransitionError):
            await service.process_payout(payout.id, "tr_1")
