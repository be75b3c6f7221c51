from therapy_payouts.models.user import User, UserRole, TherapistProfile, ClientProfile
from therapy_payouts.models.appointment import (
    Appointment,
    AppointmentStatus,
    Payment,
    PaymentStatus,
    TherapySession,
)
from therapy_payouts.models.commission import (
    Commission,
    CommissionStatus,
    Payout,
    PayoutStatus,
    UNPAID_COMMISSION_STATUSES,
    OPEN_PAYOUT_STATUSES,
)

__all__ = [
    "User",
    "UserRole",
    "TherapistProfile",
    "ClientProfile",
    "Appointment",
    "AppointmentStatus",
    "Payment",
    "PaymentStatus",
    "TherapySession",
    "Commission",
    "CommissionStatus",
    "Payout",
    "PayoutStatus",
    "UNPAID_COMMISSION_STATUSES",
    "OPEN_PAYOUT_STATUSES",
]
