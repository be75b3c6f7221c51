"""Admin endpoints for scheduled and on-demand payout runs."""
from fastapi import APIRouter, HTTPException

from therapy_payouts.api.deps import Scheduler
from therapy_payouts.schemas.commission import (
    PayoutScheduleRequest,
    PayoutScheduleResponse,
    PayoutScheduleSummaryEnvelope,
    PayoutScheduleSummaryResponse,
    PayoutWithTherapist,
)

router = APIRouter()


@router.post("/schedule", response_model=PayoutScheduleResponse)
async def run_payout_schedule(data: PayoutScheduleRequest, scheduler: Scheduler):
    """
    Run payouts now.

    - `weekly`: sweep every therapist at or above the weekly minimum
    - `individual`: pay one therapist if above `minimum_amount`
    """
    if data.type == "weekly":
        result = await scheduler.create_weekly_payouts()
        return PayoutScheduleResponse(
            success=True,
            message=f"Created {result.payouts_created} payouts",
            sweep=result.to_dict(),
        )

    if not data.therapist_id:
        raise HTTPException(status_code=400, detail="therapist_id is required for individual payouts")

    created = await scheduler.create_payout_for_therapist(data.therapist_id, data.minimum_amount)
    if created:
        return PayoutScheduleResponse(success=True, message="Payout created for therapist")

    return PayoutScheduleResponse(
        success=False,
        message="Payout not created (below minimum or no pending commissions)",
    )


@router.get("/schedule", response_model=PayoutScheduleSummaryEnvelope)
async def get_payout_schedule_summary(scheduler: Scheduler):
    """Pending totals, eligible therapists, recent payouts and next run date."""
    summary = await scheduler.get_payout_schedule_summary()
    summary["recent_payouts"] = [
        PayoutWithTherapist.model_validate(p) for p in summary["recent_payouts"]
    ]
    return PayoutScheduleSummaryEnvelope(summary=PayoutScheduleSummaryResponse(**summary))
