# backend/sessionbook/services/calendar_policy.py
"""
Calendar policy: is a day open for booking?

A date is bookable iff:
✓ it is not strictly before today
✓ its weekday is one of the configured open weekdays
✓ it lies in no blackout period (start <= date <= end, both inclusive)

Pure reads, no side effects.
"""

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..models.generated import BlackoutPeriods
from .errors import BlackoutConflict, InvalidInput
from .slots.config import BookingConfig, get_booking_config

PAST = "past"
CLOSED_WEEKDAY = "closed_weekday"
BLACKOUT = "blackout"


def coerce_date(value) -> date:
    """Accept a date or an ISO "YYYY-MM-DD" string; anything else is InvalidInput."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass
    raise InvalidInput(f"Malformed date: {value!r}")


def blackouts_covering(db: Session, target_date: date) -> list[BlackoutPeriods]:
    """Blackout periods that contain target_date."""
    date_str = target_date.isoformat()

    return (
        db.query(BlackoutPeriods)
        .filter(
            BlackoutPeriods.start_date <= date_str,
            BlackoutPeriods.end_date >= date_str,
        )
        .order_by(BlackoutPeriods.start_date)
        .all()
    )


def blackouts_between(db: Session, start: date, end: date) -> list[BlackoutPeriods]:
    """Blackout periods overlapping [start, end]."""
    return (
        db.query(BlackoutPeriods)
        .filter(
            BlackoutPeriods.start_date <= end.isoformat(),
            BlackoutPeriods.end_date >= start.isoformat(),
        )
        .order_by(BlackoutPeriods.start_date)
        .all()
    )


def unbookable_reason(
    db: Session,
    target_date: date,
    today: Optional[date] = None,
    config: Optional[BookingConfig] = None,
) -> tuple[Optional[str], Optional[BlackoutPeriods]]:
    """Return (reason, blocking_period); (None, None) when the day is bookable."""
    config = config or get_booking_config()
    today = today or date.today()

    if target_date < today:
        return PAST, None
    if not config.is_open_weekday(target_date):
        return CLOSED_WEEKDAY, None

    periods = blackouts_covering(db, target_date)
    if periods:
        return BLACKOUT, periods[0]
    return None, None


def is_bookable(
    db: Session,
    target_date,
    *,
    today: Optional[date] = None,
    config: Optional[BookingConfig] = None,
) -> bool:
    target_date = coerce_date(target_date)
    reason, _ = unbookable_reason(db, target_date, today, config)
    return reason is None


def check_bookable(
    db: Session,
    target_date,
    *,
    today: Optional[date] = None,
    config: Optional[BookingConfig] = None,
) -> date:
    """Raising form of is_bookable; returns the coerced date."""
    target_date = coerce_date(target_date)
    reason, period = unbookable_reason(db, target_date, today, config)

    if reason == PAST:
        raise InvalidInput(
            "Cannot book appointments in the past",
            details={"date": target_date.isoformat()},
        )
    if reason == CLOSED_WEEKDAY:
        raise InvalidInput(
            f"Bookings are not offered on {target_date.strftime('%A')}",
            details={"date": target_date.isoformat()},
        )
    if reason == BLACKOUT:
        raise BlackoutConflict(
            f"{target_date.isoformat()} falls within a time-off period",
            details={
                "date": target_date.isoformat(),
                "blackout_id": period.id,
                "reason": period.reason,
            },
        )
    return target_date


def bookable_days(
    db: Session,
    start: date,
    end: date,
    *,
    today: Optional[date] = None,
    config: Optional[BookingConfig] = None,
) -> list[tuple[date, Optional[str]]]:
    """
    Calendar view: (day, reason) for every day in [start, end].
    reason is None for bookable days.
    """
    config = config or get_booking_config()
    today = today or date.today()
    if end < start:
        raise InvalidInput("end_date must not be before start_date")

    periods = blackouts_between(db, start, end)
    days = []
    current = start
    while current <= end:
        if current < today:
            reason = PAST
        elif not config.is_open_weekday(current):
            reason = CLOSED_WEEKDAY
        elif any(p.start_date <= current.isoformat() <= p.end_date for p in periods):
            reason = BLACKOUT
        else:
            reason = None
        days.append((current, reason))
        current += timedelta(days=1)
    return days
