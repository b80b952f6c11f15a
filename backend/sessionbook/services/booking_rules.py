# backend/sessionbook/services/booking_rules.py
"""
Booking-window rules consulted before committing create / cancel.

- check_booking_time: a slot may be booked at most `time_limit_hours` ahead
  and never once it has started.
- check_cancellation: a booking must be cancelled at least
  `cancel_time_limit_hours` before it starts.

A threshold of None disables the corresponding rule.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config import settings


@dataclass(frozen=True)
class RuleResult:
    allowed: bool
    reason: Optional[str] = None


ALLOWED = RuleResult(True)


def _hours_until(slot_start: datetime, now: datetime) -> float:
    return (slot_start - now).total_seconds() / 3600


@dataclass(frozen=True)
class BookingRules:
    time_limit_hours: Optional[int] = None
    cancel_time_limit_hours: Optional[int] = None

    def check_booking_time(self, slot_start: datetime, now: datetime) -> RuleResult:
        if self.time_limit_hours is None:
            return ALLOWED

        hours = _hours_until(slot_start, now)
        if hours < 0:
            return RuleResult(False, "Cannot book appointments in the past")
        if hours > self.time_limit_hours:
            return RuleResult(
                False,
                f"Bookings can only be made up to {self.time_limit_hours} hours in advance",
            )
        return ALLOWED

    def check_cancellation(self, slot_start: datetime, now: datetime) -> RuleResult:
        if self.cancel_time_limit_hours is None:
            return ALLOWED

        if _hours_until(slot_start, now) < self.cancel_time_limit_hours:
            return RuleResult(
                False,
                f"Appointments must be cancelled at least "
                f"{self.cancel_time_limit_hours} hours before the scheduled time",
            )
        return ALLOWED


def default_rules() -> BookingRules:
    return BookingRules(
        time_limit_hours=settings.booking_time_limit_hours,
        cancel_time_limit_hours=settings.cancel_time_limit_hours,
    )
