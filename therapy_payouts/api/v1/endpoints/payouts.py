"""API endpoints for payout management."""
from uuid import UUID

from fastapi import APIRouter, HTTPException, status

from therapy_payouts.api.deps import Commissions
from therapy_payouts.core.exceptions import (
    InvalidPayoutTransitionError,
    PayoutConflictError,
    PayoutNotFoundError,
)
from therapy_payouts.schemas.commission import (
    PayoutActionResponse,
    PayoutCreate,
    PayoutFail,
    PayoutListResponse,
    PayoutProcess,
    PayoutResponse,
    PendingPayoutResponse,
)

router = APIRouter()


def _raise_for_payout_error(e: ValueError):
    if isinstance(e, PayoutNotFoundError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if isinstance(e, (InvalidPayoutTransitionError, PayoutConflictError)):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("", response_model=PayoutListResponse)
async def list_pending_payouts(service: Commissions):
    """Payouts in PENDING or PROCESSING, oldest first."""
    payouts = await service.get_pending_payouts()
    return PayoutListResponse(
        payouts=[PendingPayoutResponse.model_validate(p) for p in payouts],
    )


@router.post("", response_model=PayoutActionResponse, status_code=status.HTTP_201_CREATED)
async def create_payout(data: PayoutCreate, service: Commissions):
    """Create a payout from commissions selected by an admin."""
    try:
        payout = await service.create_payout(data.therapist_id, data.commission_ids)
    except ValueError as e:
        _raise_for_payout_error(e)

    return PayoutActionResponse(
        payout=PayoutResponse.model_validate(payout),
        message="Payout created",
    )


@router.put("/{payout_id}", response_model=PayoutActionResponse)
async def process_payout(payout_id: UUID, data: PayoutProcess, service: Commissions):
    """Mark a payout as completed once the transfer has been sent."""
    try:
        payout = await service.process_payout(payout_id, data.stripe_transfer_id)
    except ValueError as e:
        _raise_for_payout_error(e)

    return PayoutActionResponse(
        payout=PayoutResponse.model_validate(payout),
        message="Payout processed",
    )


@router.post("/{payout_id}/processing", response_model=PayoutActionResponse)
async def mark_payout_processing(payout_id: UUID, service: Commissions):
    try:
        payout = await service.mark_payout_processing(payout_id)
    except ValueError as e:
        _raise_for_payout_error(e)

    return PayoutActionResponse(
        payout=PayoutResponse.model_validate(payout),
        message="Payout is processing",
    )


@router.post("/{payout_id}/fail", response_model=PayoutActionResponse)
async def fail_payout(payout_id: UUID, data: PayoutFail, service: Commissions):
    try:
        payout = await service.fail_payout(payout_id, data.failure_reason)
    except ValueError as e:
        _raise_for_payout_error(e)

    return PayoutActionResponse(
        payout=PayoutResponse.model_validate(payout),
        message="Payout marked as failed",
    )
