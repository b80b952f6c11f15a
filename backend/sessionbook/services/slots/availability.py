# backend/sessionbook/services/slots/availability.py
"""
Slot availability for a single day.

A slot is taken iff a booking with status=confirmed exists for (date, slot).
These reads must run in the same session/transaction as the write that
follows them; the unique index on confirmed (date, slot) is the final
arbiter when two writers race.
"""

from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ...models.generated import Bookings, BookingStatus
from .. import calendar_policy
from .config import BookingConfig, get_booking_config


def booked_slots(db: Session, target_date) -> set[str]:
    """Slot labels already holding a confirmed booking on target_date."""
    target_date = calendar_policy.coerce_date(target_date)

    rows = (
        db.query(Bookings.slot)
        .filter(
            Bookings.date == target_date.isoformat(),
            Bookings.status == BookingStatus.CONFIRMED.value,
        )
        .all()
    )
    return {slot for (slot,) in rows}


def is_slot_free(db: Session, target_date: date, slot: str) -> bool:
    return slot not in booked_slots(db, target_date)


def available_slots(
    db: Session,
    target_date,
    *,
    today: Optional[date] = None,
    config: Optional[BookingConfig] = None,
) -> list[str]:
    """
    Free slots on target_date, in grid order.

    Returns:
        Empty list if the day itself is not bookable.
    """
    config = config or get_booking_config()
    target_date = calendar_policy.coerce_date(target_date)

    if not calendar_policy.is_bookable(db, target_date, today=today, config=config):
        return []

    taken = booked_slots(db, target_date)
    return [slot for slot in config.slots if slot not in taken]


def booked_counts(db: Session, start: date, end: date) -> dict[date, int]:
    """Number of confirmed bookings per day in [start, end]."""
    rows = (
        db.query(Bookings.date)
        .filter(
            Bookings.date >= start.isoformat(),
            Bookings.date <= end.isoformat(),
            Bookings.status == BookingStatus.CONFIRMED.value,
        )
        .all()
    )
    counts: dict[date, int] = {}
    for (day,) in rows:
        key = date.fromisoformat(day)
        counts[key] = counts.get(key, 0) + 1
    return counts
