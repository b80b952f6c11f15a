from .generated import (
    ApprovalState,
    Base,
    BlackoutPeriods,
    BookingStatus,
    Bookings,
    LedgerKind,
    LedgerTransactions,
    UserRole,
    Users,
)

__all__ = [
    "ApprovalState",
    "Base",
    "BlackoutPeriods",
    "BookingStatus",
    "Bookings",
    "LedgerKind",
    "LedgerTransactions",
    "UserRole",
    "Users",
]
