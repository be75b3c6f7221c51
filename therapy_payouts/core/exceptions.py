"""Ledger exceptions.

All derive from ValueError so routers can keep the usual
``except ValueError -> HTTP 400`` handling and refine where needed.
"""


class LedgerError(ValueError):
    """Base class for commission/payout precondition failures."""


class CommissionCalculationError(LedgerError):
    """Session has no billable payment yet."""

    def __init__(self, message: str = "Cannot calculate commission for session"):
        super().__init__(message)


class NoEligibleCommissionsError(LedgerError):
    def __init__(self, message: str = "No eligible commissions found"):
        super().__init__(message)


class PayoutConflictError(LedgerError):
    """Commission set changed between selection and attachment."""

    def __init__(self, message: str = "Commissions were claimed by another payout"):
        super().__init__(message)


class PayoutNotFoundError(LedgerError):
    def __init__(self, message: str = "Payout not found"):
        super().__init__(message)


class AppointmentNotFoundError(LedgerError):
    def __init__(self, message: str = "Appointment not found"):
        super().__init__(message)


class InvalidPayoutTransitionError(LedgerError):
    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move payout from {current} to {target}")
