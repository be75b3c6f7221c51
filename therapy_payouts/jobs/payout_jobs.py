"""
Payout Jobs.

- Weekly payout sweep (cron, payout weekday at payout hour)
- Pending balance reminders (cron, the day before the payout run)

Triggers:
- Scheduled job (via APScheduler)
- Admin "run weekly payouts" action calls the same sweep through the API
"""
import logging
from typing import Dict, Any

from therapy_payouts.config import PayoutPolicy, get_payout_policy
from therapy_payouts.database import get_db_session
from therapy_payouts.services.payout_scheduler import PayoutScheduler

logger = logging.getLogger(__name__)

WEEKLY_PAYOUT_JOB_ID = "weekly_therapist_payouts"
PAYOUT_REMINDER_JOB_ID = "pending_payout_reminders"


async def run_weekly_payouts_job() -> Dict[str, Any]:
    """Run one payout sweep in its own database session."""
    async with get_db_session() as db:
        result = await PayoutScheduler(db).create_weekly_payouts()

    summary = result.to_dict()
    if result.failures:
        logger.warning(
            f"Weekly payout job finished with {len(result.failures)} failed therapists"
        )
    return summary


async def run_payout_reminders_job() -> int:
    """Log a pending-balance reminder for each therapist."""
    async with get_db_session() as db:
        notices = await PayoutScheduler(db).notify_therapists_about_payouts()

    logger.info(f"Payout reminders prepared for {len(notices)} therapists")
    return len(notices)


def register_payout_jobs(scheduler, policy: PayoutPolicy = None):
    """
    Register the payout jobs with APScheduler.

    The sweep runs on the payout weekday at the payout hour; reminders go
    out a day earlier at the same hour.
    """
    policy = policy or get_payout_policy()

    scheduler.add_job(
        run_weekly_payouts_job,
        'cron',
        day_of_week=policy.payout_weekday,
        hour=policy.payout_hour,
        minute=0,
        id=WEEKLY_PAYOUT_JOB_ID,
        name='Weekly therapist payouts',
        replace_existing=True,
    )

    scheduler.add_job(
        run_payout_reminders_job,
        'cron',
        day_of_week=(policy.payout_weekday - 1) % 7,
        hour=policy.payout_hour,
        minute=0,
        id=PAYOUT_REMINDER_JOB_ID,
        name='Pending payout reminders',
        replace_existing=True,
    )

    logger.info(
        f"Payout jobs registered: sweep on weekday {policy.payout_weekday} "
        f"at {policy.payout_hour:02d}:00 {policy.timezone}"
    )
