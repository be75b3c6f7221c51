"""API endpoints for therapist commissions."""
from typing import Optional, Union
from uuid import UUID

from fastapi import APIRouter, Query

from therapy_payouts.api.deps import Commissions
from therapy_payouts.schemas.commission import (
    CommissionHistoryItem,
    CommissionSummaryResponse,
    PendingPayoutResponse,
    PendingPayoutsResponse,
    TherapistCommissionsResponse,
)

router = APIRouter()


@router.get("", response_model=Union[TherapistCommissionsResponse, PendingPayoutsResponse])
async def get_commissions(
    service: Commissions,
    therapist_id: Optional[UUID] = None,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    """
    Commission overview.

    With `therapist_id`: earnings summary plus paginated commission history.
    Without: all payouts still waiting to be transferred.
    """
    if therapist_id:
        summary = await service.get_therapist_commission_summary(therapist_id)
        commissions = await service.get_therapist_commissions(therapist_id, limit, offset)
        return TherapistCommissionsResponse(
            summary=CommissionSummaryResponse(**summary),
            commissions=[CommissionHistoryItem.model_validate(c) for c in commissions],
        )

    pending_payouts = await service.get_pending_payouts()
    return PendingPayoutsResponse(
        pending_payouts=[PendingPayoutResponse.model_validate(p) for p in pending_payouts],
    )
