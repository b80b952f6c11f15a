# backend/sessionbook/routers/slots.py
"""
Slots API endpoints.

Level 1: GET /slots/calendar - Bookable days in a range, with free-slot counts
Level 2: GET /slots/day - Slot grid for one day
"""

from datetime import date, timedelta

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..schemas.slots import (
    SlotInfo,
    SlotsCalendarResponse,
    SlotsDayResponse,
    SlotsDayStatus,
)
from ..services import calendar_policy
from ..services.slots import booked_counts, booked_slots, get_booking_config

router = APIRouter(prefix="/slots", tags=["slots"])

DEFAULT_CALENDAR_DAYS = 28
MAX_CALENDAR_DAYS = 92


@router.get("/calendar", response_model=SlotsCalendarResponse)
def get_slots_calendar(
    start_date: date | None = None,
    end_date: date | None = None,
    db: Session = Depends(get_db),
):
    """Get calendar of bookable days (Level 1)."""
    config = get_booking_config()

    today = date.today()
    if start_date is None:
        start_date = today
    if end_date is None:
        end_date = start_date + timedelta(days=DEFAULT_CALENDAR_DAYS - 1)
    if end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")
    if (end_date - start_date).days >= MAX_CALENDAR_DAYS:
        raise HTTPException(status_code=400, detail=f"Range limited to {MAX_CALENDAR_DAYS} days")

    counts = booked_counts(db, start_date, end_date)
    days = []
    for dt, reason in calendar_policy.bookable_days(db, start_date, end_date, today=today, config=config):
        open_count = len(config.slots) - counts.get(dt, 0) if reason is None else 0
        days.append(SlotsDayStatus(
            date=dt,
            is_bookable=reason is None,
            reason=reason,
            open_slots_count=max(open_count, 0),
        ))

    return SlotsCalendarResponse(
        start_date=start_date,
        end_date=end_date,
        days=days,
        slots=list(config.slots),
        slot_minutes=config.slot_minutes,
    )


@router.get("/day", response_model=SlotsDayResponse)
def get_slots_day(
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    """Get the slot grid for a specific day (Level 2)."""
    config = get_booking_config()

    reason, _ = calendar_policy.unbookable_reason(db, target_date, date.today(), config)
    taken = booked_slots(db, target_date)

    slots = [
        SlotInfo(slot=label, is_available=reason is None and label not in taken)
        for label in config.slots
    ]
    return SlotsDayResponse(
        date=target_date,
        is_bookable=reason is None,
        reason=reason,
        slots=slots,
        available_slots=[s.slot for s in slots if s.is_available],
    )
