"""
Background Jobs Module

Handles scheduled tasks for:
- Weekly therapist payout sweep
- Pending payout reminders
"""

from therapy_payouts.jobs.scheduler import scheduler, start_scheduler, shutdown_scheduler
from therapy_payouts.jobs.payout_jobs import run_weekly_payouts_job, run_payout_reminders_job

__all__ = [
    "scheduler",
    "start_scheduler",
    "shutdown_scheduler",
    "run_weekly_payouts_job",
    "run_payout_reminders_job",
]
