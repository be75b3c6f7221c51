"""Pydantic schemas for the Commission and Payout ledger."""
from datetime import datetime
from typing import Optional, List, Literal
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field

from therapy_payouts.schemas.base import BaseResponseSchema, BaseCreateSchema


# ==================== People ====================

class ProfileBrief(BaseResponseSchema):
    first_name: str
    last_name: str


class TherapistBrief(BaseResponseSchema):
    id: UUID
    email: str
    name: Optional[str] = None
    therapist_profile: Optional[ProfileBrief] = None


class ClientBrief(BaseResponseSchema):
    id: UUID
    email: str
    name: Optional[str] = None
    client_profile: Optional[ProfileBrief] = None


# ==================== Session Context ====================

class AppointmentBrief(BaseResponseSchema):
    id: UUID
    scheduled_at: datetime
    status: str


class AppointmentWithClient(AppointmentBrief):
    client: Optional[ClientBrief] = None


class SessionBrief(BaseResponseSchema):
    id: UUID
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    appointment: Optional[AppointmentBrief] = None


class SessionWithClient(SessionBrief):
    appointment: Optional[AppointmentWithClient] = None


# ==================== Payout Schemas ====================

class PayoutResponse(BaseResponseSchema):
    """Response schema for Payout."""
    id: UUID
    therapist_id: UUID
    total_amount: Decimal
    commission_count: int
    status: str
    processed_at: Optional[datetime] = None
    stripe_transfer_id: Optional[str] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    created_at: datetime


class PayoutWithTherapist(PayoutResponse):
    therapist: Optional[TherapistBrief] = None


class PayoutCommissionLine(BaseResponseSchema):
    id: UUID
    session_id: UUID
    amount: Decimal
    commission_amount: Decimal
    status: str
    session: Optional[SessionBrief] = None


class PendingPayoutResponse(PayoutWithTherapist):
    """Payout awaiting transfer, with the commissions it covers."""
    commissions: List[PayoutCommissionLine] = []


class PayoutListResponse(BaseModel):
    success: bool = True
    payouts: List[PendingPayoutResponse]


class PayoutCreate(BaseCreateSchema):
    """Schema for manually creating a payout from selected commissions."""
    therapist_id: UUID
    commission_ids: List[UUID] = Field(..., min_length=1)


class PayoutProcess(BaseCreateSchema):
    stripe_transfer_id: Optional[str] = Field(None, max_length=255)


class PayoutFail(BaseCreateSchema):
    failure_reason: Optional[str] = None


class PayoutActionResponse(BaseModel):
    success: bool = True
    payout: PayoutResponse
    message: str


# ==================== Commission Schemas ====================

class CommissionResponse(BaseResponseSchema):
    """Response schema for Commission."""
    id: UUID
    session_id: UUID
    therapist_id: UUID
    amount: Decimal
    commission_rate: Decimal
    commission_amount: Decimal
    platform_fee: Decimal
    status: str
    payout_id: Optional[UUID] = None
    paid_at: Optional[datetime] = None
    created_at: datetime


class CommissionHistoryItem(CommissionResponse):
    session: Optional[SessionWithClient] = None
    payout: Optional[PayoutResponse] = None


class CommissionSummaryResponse(BaseModel):
    pending_amount: Decimal
    pending_count: int
    paid_amount: Decimal
    paid_count: int
    total_earnings: Decimal
    total_sessions: int


class TherapistCommissionsResponse(BaseModel):
    success: bool = True
    summary: CommissionSummaryResponse
    commissions: List[CommissionHistoryItem]


class PendingPayoutsResponse(BaseModel):
    success: bool = True
    pending_payouts: List[PendingPayoutResponse]


# ==================== Scheduling Schemas ====================

class PayoutScheduleRequest(BaseCreateSchema):
    type: Literal["weekly", "individual"]
    therapist_id: Optional[UUID] = None
    minimum_amount: Optional[Decimal] = Field(None, ge=0)


class PayoutScheduleResponse(BaseModel):
    success: bool
    message: str
    sweep: Optional[dict] = None


class PayoutScheduleSummaryResponse(BaseModel):
    pending_amount: Decimal
    pending_commissions: int
    eligible_therapists: int
    total_therapists_with_pending: int
    recent_payouts: List[PayoutWithTherapist]
    next_scheduled_date: datetime


class PayoutScheduleSummaryEnvelope(BaseModel):
    success: bool = True
    summary: PayoutScheduleSummaryResponse


# ==================== Appointment Completion ====================

class AppointmentCompleteResponse(BaseModel):
    success: bool = True
    appointment_id: UUID
    status: str
    commission: Optional[CommissionResponse] = None
