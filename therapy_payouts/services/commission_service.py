"""
Commission Service

Handles the therapist revenue-split ledger:
- Commission calculation for a completed session
- Idempotent commission recording
- Per-therapist earnings summary and history
- Payout batching and payout status changes
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_payouts.config import PayoutPolicy, get_payout_policy
from therapy_payouts.core.exceptions import (
    CommissionCalculationError,
    InvalidPayoutTransitionError,
    NoEligibleCommissionsError,
    PayoutConflictError,
    PayoutNotFoundError,
)
from therapy_payouts.core.money import split_amount, sum_money, to_decimal
from therapy_payouts.models import (
    Appointment,
    Commission,
    CommissionStatus,
    Payout,
    PayoutStatus,
    TherapySession,
    User,
    UNPAID_COMMISSION_STATUSES,
    OPEN_PAYOUT_STATUSES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommissionCalculation:
    """Result of splitting one session's net payment."""
    session_id: uuid.UUID
    therapist_id: uuid.UUID
    total_amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    platform_fee: Decimal


class CommissionService:
    """Service for commission and payout ledger operations"""

    def __init__(self, db: AsyncSession, policy: Optional[PayoutPolicy] = None):
        self.db = db
        self.policy = policy or get_payout_policy()

    # ========================================================================
    # Commission Calculation
    # ========================================================================

    async def calculate_commission(
        self,
        session_id: uuid.UUID
    ) -> Optional[CommissionCalculation]:
        """
        Calculate the revenue split for a session.

        Returns None when the session does not exist or its appointment has
        no payment yet; the session is simply not billable.
        """
        result = await self.db.execute(
            select(TherapySession)
            .options(
                selectinload(TherapySession.appointment).selectinload(Appointment.payment),
                selectinload(TherapySession.therapist).selectinload(User.therapist_profile),
            )
            .where(TherapySession.id == session_id)
        )
        session = result.scalar_one_or_none()

        if not session or not session.appointment or not session.appointment.payment:
            return None

        payment = session.appointment.payment
        total_amount = to_decimal(payment.net_amount)  # Net of processor fees

        commission_rate = self.policy.commission_rate
        commission_amount, platform_fee = split_amount(
            total_amount, commission_rate, self.policy.money_places
        )

        return CommissionCalculation(
            session_id=session.id,
            therapist_id=session.therapist_id,
            total_amount=total_amount,
            commission_rate=commission_rate,
            commission_amount=commission_amount,
            platform_fee=platform_fee,
        )

    async def create_commission(self, session_id: uuid.UUID) -> Optional[Commission]:
        """
        Record the commission for a session.

        Safe to call repeatedly: returns None without writing when the
        session already has a commission. Raises CommissionCalculationError
        when the session is not billable.
        """
        calculation = await self.calculate_commission(session_id)
        if not calculation:
            raise CommissionCalculationError()

        existing = await self.db.execute(
            select(Commission.id).where(Commission.session_id == session_id)
        )
        if existing.scalar_one_or_none():
            logger.debug(f"Commission already exists for session {session_id}")
            return None

        commission = Commission(
            id=uuid.uuid4(),
            session_id=calculation.session_id,
            therapist_id=calculation.therapist_id,
            amount=calculation.total_amount,
            commission_rate=calculation.commission_rate,
            commission_amount=calculation.commission_amount,
            platform_fee=calculation.platform_fee,
            status=CommissionStatus.CALCULATED.value,
        )
        self.db.add(commission)

        try:
            await self.db.commit()
        except IntegrityError:
            # A concurrent call inserted the same session first
            await self.db.rollback()
            logger.info(f"Commission for session {session_id} created concurrently, skipping")
            return None

        await self.db.refresh(commission)
        logger.info(
            f"Commission recorded for session {session_id}: "
            f"{calculation.commission_amount} {self.policy.currency} "
            f"(platform fee {calculation.platform_fee})"
        )
        return commission

    # ========================================================================
    # Commission Queries
    # ========================================================================

    async def _aggregate(self, *filters) -> tuple[Decimal, int]:
        result = await self.db.execute(
            select(
                func.sum(Commission.commission_amount),
                func.count(Commission.id),
            ).where(*filters)
        )
        total, count = result.one()
        return to_decimal(total), count or 0

    async def get_therapist_commission_summary(self, therapist_id: uuid.UUID) -> dict:
        """Pending, paid and lifetime commission totals for a therapist."""
        pending_amount, pending_count = await self._aggregate(
            Commission.therapist_id == therapist_id,
            Commission.status.in_(UNPAID_COMMISSION_STATUSES),
        )
        paid_amount, paid_count = await self._aggregate(
            Commission.therapist_id == therapist_id,
            Commission.status == CommissionStatus.PAID.value,
        )
        total_earnings, total_sessions = await self._aggregate(
            Commission.therapist_id == therapist_id,
        )

        return {
            "pending_amount": pending_amount,
            "pending_count": pending_count,
            "paid_amount": paid_amount,
            "paid_count": paid_count,
            "total_earnings": total_earnings,
            "total_sessions": total_sessions,
        }

    async def get_therapist_commissions(
        self,
        therapist_id: uuid.UUID,
        limit: int = 20,
        offset: int = 0
    ) -> List[Commission]:
        """Commission history for a therapist, newest first."""
        result = await self.db.execute(
            select(Commission)
            .options(
                selectinload(Commission.session)
                .selectinload(TherapySession.appointment)
                .selectinload(Appointment.client)
                .selectinload(User.client_profile),
                selectinload(Commission.payout),
            )
            .where(Commission.therapist_id == therapist_id)
            .order_by(Commission.created_at.desc(), Commission.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())

    # ========================================================================
    # Payout Management
    # ========================================================================

    async def create_payout(
        self,
        therapist_id: uuid.UUID,
        commission_ids: Sequence[uuid.UUID]
    ) -> Payout:
        """
        Batch the given commissions into one payout.

        Only commissions that belong to the therapist and are still unpaid
        are used; the rest of the ids are ignored. The payout row and the
        commission updates are committed together or not at all.
        """
        try:
            eligible_result = await self.db.execute(
                select(Commission)
                .where(
                    Commission.id.in_(list(commission_ids)),
                    Commission.therapist_id == therapist_id,
                    Commission.status.in_(UNPAID_COMMISSION_STATUSES),
                    Commission.payout_id.is_(None),
                )
                .with_for_update()
            )
            commissions = list(eligible_result.scalars().all())

            if not commissions:
                raise NoEligibleCommissionsError()

            total_amount = sum_money(c.commission_amount for c in commissions)
            eligible_ids = [c.id for c in commissions]

            payout = Payout(
                id=uuid.uuid4(),
                therapist_id=therapist_id,
                total_amount=total_amount,
                commission_count=len(commissions),
                status=PayoutStatus.PENDING.value,
            )
            self.db.add(payout)
            await self.db.flush()

            # Same predicate again so a commission claimed in the meantime is not taken twice
            attach_result = await self.db.execute(
                update(Commission)
                .where(
                    Commission.id.in_(eligible_ids),
                    Commission.status.in_(UNPAID_COMMISSION_STATUSES),
                    Commission.payout_id.is_(None),
                )
                .values(
                    payout_id=payout.id,
                    status=CommissionStatus.PAID.value,
                    paid_at=datetime.now(timezone.utc),
                )
                .execution_options(synchronize_session="evaluate")
            )
            if attach_result.rowcount != len(eligible_ids):
                raise PayoutConflictError()

            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        await self.db.refresh(payout)
        logger.info(
            f"Created payout {payout.id} for therapist {therapist_id}: "
            f"{payout.total_amount} {self.policy.currency} ({payout.commission_count} commissions)"
        )
        return payout

    async def get_pending_payouts(self) -> List[Payout]:
        """Payouts waiting to be transferred, oldest first."""
        result = await self.db.execute(
            select(Payout)
            .options(
                selectinload(Payout.therapist).selectinload(User.therapist_profile),
                selectinload(Payout.commissions)
                .selectinload(Commission.session)
                .selectinload(TherapySession.appointment),
            )
            .where(Payout.status.in_(OPEN_PAYOUT_STATUSES))
            .order_by(Payout.created_at.asc())
        )
        return list(result.scalars().all())

    async def get_payout(self, payout_id: uuid.UUID) -> Payout:
        result = await self.db.execute(
            select(Payout).where(Payout.id == payout_id)
        )
        payout = result.scalar_one_or_none()
        if not payout:
            raise PayoutNotFoundError()
        return payout

    async def _transition_payout(self, payout_id: uuid.UUID, target: PayoutStatus) -> Payout:
        payout = await self.get_payout(payout_id)
        if not payout.can_transition_to(target.value):
            raise InvalidPayoutTransitionError(payout.status, target.value)
        payout.status = target.value
        return payout

    async def process_payout(
        self,
        payout_id: uuid.UUID,
        stripe_transfer_id: Optional[str] = None
    ) -> Payout:
        """
        Mark payout as completed (called after the external transfer was sent).
        """
        payout = await self._transition_payout(payout_id, PayoutStatus.COMPLETED)
        payout.processed_at = datetime.now(timezone.utc)
        payout.stripe_transfer_id = stripe_transfer_id

        await self.db.commit()
        await self.db.refresh(payout)
        logger.info(f"Payout {payout_id} completed (transfer={stripe_transfer_id})")
        return payout

    async def mark_payout_processing(self, payout_id: uuid.UUID) -> Payout:
        """Flag a payout as handed to the transfer provider."""
        payout = await self._transition_payout(payout_id, PayoutStatus.PROCESSING)
        payout.failure_reason = None

        await self.db.commit()
        await self.db.refresh(payout)
        return payout

    async def fail_payout(self, payout_id: uuid.UUID, failure_reason: Optional[str] = None) -> Payout:
        """Record a failed transfer. Attached commissions stay with the payout."""
        payout = await self._transition_payout(payout_id, PayoutStatus.FAILED)
        payout.failed_at = datetime.now(timezone.utc)
        payout.failure_reason = failure_reason

        await self.db.commit()
        await self.db.refresh(payout)
        logger.warning(f"Payout {payout_id} failed: {failure_reason}")
        return payout


async def record_session_commission(
    db: AsyncSession,
    session_id: uuid.UUID,
    policy: Optional[PayoutPolicy] = None
) -> Optional[Commission]:
    """
    Best-effort commission recording for the appointment completion flow.

    Failures are logged and never propagate, so the caller's status update
    goes through regardless.
    """
    try:
        return await CommissionService(db, policy).create_commission(session_id)
    except Exception as e:
        logger.error(f"Failed to create commission for session {session_id}: {e}")
        await db.rollback()
        return None
