from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from therapy_payouts.config import PayoutPolicy, get_payout_policy
from therapy_payouts.database import get_db
from therapy_payouts.services.commission_service import CommissionService
from therapy_payouts.services.payout_scheduler import PayoutScheduler


async def get_commission_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    policy: Annotated[PayoutPolicy, Depends(get_payout_policy)],
) -> CommissionService:
    return CommissionService(db, policy)


async def get_payout_scheduler(
    db: Annotated[AsyncSession, Depends(get_db)],
    commission_service: Annotated[CommissionService, Depends(get_commission_service)],
    policy: Annotated[PayoutPolicy, Depends(get_payout_policy)],
) -> PayoutScheduler:
    return PayoutScheduler(db, commission_service=commission_service, policy=policy)


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
Commissions = Annotated[CommissionService, Depends(get_commission_service)]
Scheduler = Annotated[PayoutScheduler, Depends(get_payout_scheduler)]
