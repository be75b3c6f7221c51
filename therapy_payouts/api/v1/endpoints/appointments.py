"""Appointment completion hook that feeds the commission ledger."""
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.orm import selectinload

from therapy_payouts.api.deps import DB
from therapy_payouts.config import PayoutPolicy, get_payout_policy
from therapy_payouts.models import Appointment, AppointmentStatus
from therapy_payouts.schemas.commission import AppointmentCompleteResponse, CommissionResponse
from therapy_payouts.services.commission_service import record_session_commission

router = APIRouter()


@router.post("/{appointment_id}/complete", response_model=AppointmentCompleteResponse)
async def complete_appointment(
    appointment_id: UUID,
    db: DB,
    policy: Annotated[PayoutPolicy, Depends(get_payout_policy)],
):
    """
    Mark an appointment as completed and record its session commission.

    Commission recording is best-effort: the status change is committed
    first and stays in place even if the commission cannot be created.
    """
    result = await db.execute(
        select(Appointment)
        .options(selectinload(Appointment.session))
        .where(Appointment.id == appointment_id)
    )
    appointment = result.scalar_one_or_none()
    if not appointment:
        raise HTTPException(status_code=404, detail="Appointment not found")

    appointment.status = AppointmentStatus.COMPLETED.value
    session_id = appointment.session.id if appointment.session else None
    await db.commit()

    commission = None
    if session_id:
        commission = await record_session_commission(db, session_id, policy)

    return AppointmentCompleteResponse(
        appointment_id=appointment_id,
        status=AppointmentStatus.COMPLETED.value,
        commission=CommissionResponse.model_validate(commission) if commission else None,
    )
