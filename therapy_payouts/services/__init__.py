# Services module
from therapy_payouts.services.commission_service import (
    CommissionCalculation,
    CommissionService,
    record_session_commission,
)
from therapy_payouts.services.payout_scheduler import (
    PayoutScheduler,
    SweepResult,
    TherapistPayoutOutcome,
    next_payout_date,
)

__all__ = [
    "CommissionCalculation",
    "CommissionService",
    "record_session_commission",
    "PayoutScheduler",
    "SweepResult",
    "TherapistPayoutOutcome",
    "next_payout_date",
]
