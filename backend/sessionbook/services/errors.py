# backend/sessionbook/services/errors.py
"""
Booking and ledger errors.

Every error carries a stable `code`, an HTTP `status_code` for the API layer
and a `retryable` flag: only `Conflict` (a lost optimistic-commit race) is
worth retrying without changing the input.
"""

import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for all domain errors."""

    status_code: int = 400
    code: str = "booking_error"
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        occurrence_index: Optional[int] = None,
    ) -> None:
        self.message = message
        if code:
            self.code = code
        self.details = dict(details or {})
        self.occurrence_index = occurrence_index
        if occurrence_index is not None:
            self.details["occurrence_index"] = occurrence_index
        super().__init__(message)

    def at_occurrence(self, index: int, **extra: Any) -> "BookingError":
        """Tag the error with the failing series occurrence."""
        self.occurrence_index = index
        self.details["occurrence_index"] = index
        self.details.update(extra)
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.code,
            "retryable": self.retryable,
            "details": self.details,
        }


class InvalidInput(BookingError):
    status_code = 400
    code = "invalid_input"


class NotFound(BookingError):
    status_code = 404
    code = "not_found"


class Forbidden(BookingError):
    status_code = 403
    code = "forbidden"


class NotApproved(BookingError):
    status_code = 403
    code = "not_approved"

    def __init__(self, user_id: str, state: str) -> None:
        super().__init__(
            "Your account is not approved for booking",
            details={"user_id": user_id, "approval_state": state},
        )


class BlackoutConflict(BookingError):
    status_code = 409
    code = "blackout_conflict"


class SlotUnavailable(BookingError):
    status_code = 409
    code = "slot_unavailable"


class InsufficientCredits(BookingError):
    status_code = 402
    code = "insufficient_credits"

    def __init__(self, user_id: str, required: int, remaining: int) -> None:
        super().__init__(
            f"Insufficient sessions: {remaining} remaining, {required} required",
            details={"user_id": user_id, "required": required, "remaining": remaining},
        )


class Conflict(BookingError):
    status_code = 409
    code = "conflict"
    retryable = True


class InvalidTransition(BookingError):
    status_code = 409
    code = "invalid_transition"


class BookingWindowViolation(BookingError):
    status_code = 422
    code = "booking_window"


class LedgerCorruption(BookingError):
    """Fatal ledger invariant violation. Never clamped, always rejected."""

    status_code = 500
    code = "ledger_corruption"

    def __init__(self, user_id: str, message: str, **details: Any) -> None:
        super().__init__(message, details={"user_id": user_id, **details})
        logger.critical(f"Ledger invariant violated for user={user_id}: {message} {details}")
