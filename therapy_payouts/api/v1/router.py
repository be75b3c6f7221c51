from fastapi import APIRouter

from therapy_payouts.api.v1.endpoints import (
    appointments,
    commissions,
    payouts,
    payout_schedule,
)

api_router = APIRouter(prefix="/api/v1")


# ==================== Appointments ====================
api_router.include_router(
    appointments.router,
    prefix="/appointments",
    tags=["Appointments"]
)

# ==================== Commissions ====================
api_router.include_router(
    commissions.router,
    prefix="/commissions",
    tags=["Commissions"]
)

# ==================== Payouts ====================
api_router.include_router(
    payouts.router,
    prefix="/payouts",
    tags=["Payouts"]
)

api_router.include_router(
    payout_schedule.router,
    prefix="/admin/payouts",
    tags=["Payout Scheduling"]
)
