"""
Payout Scheduler

Weekly sweep that turns unpaid commissions into payouts:
- Groups unpaid commissions per therapist
- Skips therapists below the minimum payout amount
- Creates one payout per eligible therapist
- A failure for one therapist doesn't stop the others

Also provides on-demand payouts for a single therapist and the admin
dashboard summary.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, List, Any, Dict
from zoneinfo import ZoneInfo

from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_payouts.config import PayoutPolicy, get_payout_policy
from therapy_payouts.core.money import ZERO, sum_money, to_decimal
from therapy_payouts.models import (
    Commission,
    Payout,
    User,
    UNPAID_COMMISSION_STATUSES,
)
from therapy_payouts.services.commission_service import CommissionService

logger = logging.getLogger(__name__)


def next_payout_date(
    now: Optional[datetime] = None,
    weekday: int = 4,
    hour: int = 10,
    tz_name: str = "Asia/Bangkok",
) -> datetime:
    """
    Next payout slot: the coming ``weekday`` at ``hour``:00 local time.

    On the payout weekday itself the slot is a full week out, even before
    the payout hour.
    """
    tz = ZoneInfo(tz_name)
    local_now = (now or datetime.now(timezone.utc)).astimezone(tz)
    days_ahead = (weekday - local_now.weekday()) % 7 or 7
    next_day = local_now + timedelta(days=days_ahead)
    return next_day.replace(hour=hour, minute=0, second=0, microsecond=0)


class OutcomeStatus:
    CREATED = "CREATED"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class TherapistPayoutOutcome:
    """What the sweep did for one therapist."""
    therapist_id: uuid.UUID
    status: str
    pending_amount: Decimal
    commission_count: int
    payout_id: Optional[uuid.UUID] = None
    payout_amount: Decimal = ZERO
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "therapist_id": str(self.therapist_id),
            "status": self.status,
            "pending_amount": str(self.pending_amount),
            "commission_count": self.commission_count,
            "payout_id": str(self.payout_id) if self.payout_id else None,
            "payout_amount": str(self.payout_amount),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class SweepResult:
    """Accumulated outcomes of one weekly sweep."""
    outcomes: tuple = field(default_factory=tuple)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def add(self, outcome: TherapistPayoutOutcome) -> "SweepResult":
        return SweepResult(outcomes=self.outcomes + (outcome,), started_at=self.started_at)

    def _with_status(self, status: str) -> List[TherapistPayoutOutcome]:
        return [o for o in self.outcomes if o.status == status]

    @property
    def created(self) -> List[TherapistPayoutOutcome]:
        return self._with_status(OutcomeStatus.CREATED)

    @property
    def skipped(self) -> List[TherapistPayoutOutcome]:
        return self._with_status(OutcomeStatus.SKIPPED)

    @property
    def failures(self) -> List[TherapistPayoutOutcome]:
        return self._with_status(OutcomeStatus.FAILED)

    @property
    def payouts_created(self) -> int:
        return len(self.created)

    @property
    def total_amount(self) -> Decimal:
        return sum_money(o.payout_amount for o in self.created)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "therapists_considered": len(self.outcomes),
            "payouts_created": self.payouts_created,
            "total_amount": str(self.total_amount),
            "skipped": len(self.skipped),
            "failed": len(self.failures),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


class PayoutScheduler:
    """Creates payouts in bulk and summarises the payout pipeline."""

    def __init__(
        self,
        db: AsyncSession,
        commission_service: Optional[CommissionService] = None,
        policy: Optional[PayoutPolicy] = None,
    ):
        self.db = db
        self.policy = policy or get_payout_policy()
        self.commission_service = commission_service or CommissionService(db, self.policy)

    # ========================================================================
    # Queries
    # ========================================================================

    async def _pending_commission_groups(self, positive_only: bool = False):
        """Unpaid commission totals per therapist."""
        pending_sum = func.sum(Commission.commission_amount)
        query = (
            select(
                Commission.therapist_id,
                pending_sum.label("pending_amount"),
                func.count(Commission.id).label("commission_count"),
            )
            .where(
                Commission.status.in_(UNPAID_COMMISSION_STATUSES),
                Commission.payout_id.is_(None),
            )
            .group_by(Commission.therapist_id)
            .order_by(Commission.therapist_id)
        )
        if positive_only:
            query = query.having(pending_sum > 0)

        result = await self.db.execute(query)
        return result.all()

    async def _unpaid_commissions(self, therapist_id: uuid.UUID) -> List[Commission]:
        result = await self.db.execute(
            select(Commission).where(
                Commission.therapist_id == therapist_id,
                Commission.status.in_(UNPAID_COMMISSION_STATUSES),
                Commission.payout_id.is_(None),
            )
        )
        return list(result.scalars().all())

    # ========================================================================
    # Weekly Sweep
    # ========================================================================

    async def _settle_therapist(self, group) -> TherapistPayoutOutcome:
        therapist_id = group.therapist_id
        pending_amount = to_decimal(group.pending_amount)
        minimum = self.policy.weekly_minimum

        def outcome(status: str, **kwargs) -> TherapistPayoutOutcome:
            return TherapistPayoutOutcome(
                therapist_id=therapist_id,
                status=status,
                pending_amount=pending_amount,
                commission_count=group.commission_count,
                **kwargs,
            )

        if pending_amount < minimum:
            logger.info(
                f"Skipping payout for therapist {therapist_id} - "
                f"amount {pending_amount} below minimum {minimum}"
            )
            return outcome(OutcomeStatus.SKIPPED, reason="below_minimum")

        try:
            # Re-read the ids now rather than trusting the grouped totals
            commissions = await self._unpaid_commissions(therapist_id)
            if not commissions:
                return outcome(OutcomeStatus.SKIPPED, reason="no_unpaid_commissions")

            commission_ids = [c.id for c in commissions]
            payout = await self.commission_service.create_payout(therapist_id, commission_ids)
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Failed to create payout for therapist {therapist_id}: {e}")
            return outcome(OutcomeStatus.FAILED, reason=str(e))

        return outcome(
            OutcomeStatus.CREATED,
            payout_id=payout.id,
            payout_amount=payout.total_amount,
        )

    async def create_weekly_payouts(self) -> SweepResult:
        """
        Create payouts for every therapist whose unpaid commissions reach
        the weekly minimum.

        Payouts already created stay committed when a later therapist fails;
        failures are reported in the returned SweepResult.
        """
        logger.info("Starting weekly payout creation...")

        try:
            groups = await self._pending_commission_groups(positive_only=True)
        except Exception as e:
            logger.error(f"Error in weekly payout creation: {e}")
            raise

        logger.info(f"Found {len(groups)} therapists with pending commissions")

        result = SweepResult()
        for group in groups:
            result = result.add(await self._settle_therapist(group))

        logger.info(
            f"Weekly payout creation completed: {result.payouts_created} payouts created, "
            f"total amount: {result.total_amount} {self.policy.currency}, "
            f"{len(result.skipped)} skipped, {len(result.failures)} failed"
        )
        return result

    # ========================================================================
    # On-demand Payout
    # ========================================================================

    async def create_payout_for_therapist(
        self,
        therapist_id: uuid.UUID,
        minimum_amount: Optional[Decimal] = None
    ) -> bool:
        """
        Pay out one therapist now if their unpaid total reaches
        ``minimum_amount`` (on-demand minimum by default).

        Returns False when there is nothing to pay or the total is too low.
        """
        if minimum_amount is None:
            minimum_amount = self.policy.on_demand_minimum

        try:
            commissions = await self._unpaid_commissions(therapist_id)
            if not commissions:
                return False

            total_amount = sum_money(c.commission_amount for c in commissions)
            if total_amount < minimum_amount:
                logger.info(
                    f"Therapist {therapist_id} has {total_amount} {self.policy.currency} pending - "
                    f"below minimum {minimum_amount} {self.policy.currency}"
                )
                return False

            payout = await self.commission_service.create_payout(
                therapist_id, [c.id for c in commissions]
            )
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Error creating payout for therapist {therapist_id}: {e}")
            return False

        logger.info(
            f"Created on-demand payout {payout.id} for therapist {therapist_id}: "
            f"{payout.total_amount} {self.policy.currency}"
        )
        return True

    # ========================================================================
    # Dashboard
    # ========================================================================

    def get_next_payout_date(self, now: Optional[datetime] = None) -> datetime:
        return next_payout_date(
            now,
            weekday=self.policy.payout_weekday,
            hour=self.policy.payout_hour,
            tz_name=self.policy.timezone,
        )

    async def get_recent_payouts(self, now: Optional[datetime] = None) -> List[Payout]:
        since = (now or datetime.now(timezone.utc)) - timedelta(days=self.policy.recent_payout_days)
        result = await self.db.execute(
            select(Payout)
            .options(selectinload(Payout.therapist).selectinload(User.therapist_profile))
            .where(Payout.created_at >= since)
            .order_by(Payout.created_at.desc())
            .limit(self.policy.recent_payout_limit)
        )
        return list(result.scalars().all())

    async def get_payout_schedule_summary(self, now: Optional[datetime] = None) -> dict:
        """Pending totals, eligible therapists, recent payouts and next run."""
        groups = await self._pending_commission_groups()
        recent_payouts = await self.get_recent_payouts(now)

        pending_amounts = [to_decimal(g.pending_amount) for g in groups]
        eligible = [a for a in pending_amounts if a >= self.policy.weekly_minimum]

        return {
            "pending_amount": sum_money(pending_amounts),
            "pending_commissions": sum(g.commission_count for g in groups),
            "eligible_therapists": len(eligible),
            "total_therapists_with_pending": len(groups),
            "recent_payouts": recent_payouts,
            "next_scheduled_date": self.get_next_payout_date(now),
        }

    # ========================================================================
    # Reminders
    # ========================================================================

    async def notify_therapists_about_payouts(self) -> List[dict]:
        """
        Build a pending-balance reminder for every therapist with unpaid
        commissions. Reminders are logged; delivery happens elsewhere.
        """
        notices = []
        for group in await self._pending_commission_groups():
            result = await self.db.execute(
                select(User)
                .options(selectinload(User.therapist_profile))
                .where(User.id == group.therapist_id)
            )
            therapist = result.scalar_one_or_none()
            if not therapist:
                continue

            pending_amount = to_decimal(group.pending_amount)
            profile = therapist.therapist_profile
            name = f"{profile.first_name} {profile.last_name}" if profile else (therapist.name or therapist.email)
            notice = {
                "therapist_id": therapist.id,
                "email": therapist.email,
                "name": name,
                "pending_amount": pending_amount,
                "pending_count": group.commission_count,
                "next_payout_date": self.get_next_payout_date(),
                "meets_minimum": pending_amount >= self.policy.weekly_minimum,
            }
            notices.append(notice)
            logger.info(
                f"Payout reminder for {therapist.email}: {pending_amount} {self.policy.currency} "
                f"pending ({group.commission_count} sessions)"
            )

        return notices
