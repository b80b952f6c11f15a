# backend/sessionbook/services/blackouts.py
"""
Administrator-declared time-off periods (inclusive date ranges).

Existing confirmed bookings inside a new period are left as they are; the
period only blocks new bookings.
"""

import logging
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from ..models.generated import BlackoutPeriods, Bookings, BookingStatus
from .errors import InvalidInput, NotFound

logger = logging.getLogger(__name__)


def list_blackouts(db: Session, upcoming_only: bool = False, today: Optional[date] = None) -> list[BlackoutPeriods]:
    query = db.query(BlackoutPeriods)
    if upcoming_only:
        query = query.filter(BlackoutPeriods.end_date >= (today or date.today()).isoformat())
    return query.order_by(BlackoutPeriods.start_date, BlackoutPeriods.id).all()


def create_blackout(
    db: Session,
    start_date: date,
    end_date: date,
    reason: Optional[str] = None,
    created_by: Optional[str] = None,
) -> BlackoutPeriods:
    if end_date < start_date:
        raise InvalidInput(
            "end_date must not be before start_date",
            details={"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
        )

    period = BlackoutPeriods(
        start_date=start_date.isoformat(),
        end_date=end_date.isoformat(),
        reason=reason,
        created_by=created_by,
    )
    db.add(period)
    db.commit()
    db.refresh(period)

    overlapping = (
        db.query(Bookings)
        .filter(
            Bookings.date >= period.start_date,
            Bookings.date <= period.end_date,
            Bookings.status == BookingStatus.CONFIRMED.value,
        )
        .count()
    )
    if overlapping:
        logger.warning(
            f"Blackout {period.id} ({period.start_date}..{period.end_date}) "
            f"overlaps {overlapping} confirmed bookings"
        )
    return period


def delete_blackout(db: Session, blackout_id: int) -> None:
    period = db.get(BlackoutPeriods, blackout_id)
    if not period:
        raise NotFound(f"Blackout period {blackout_id} not found", details={"blackout_id": blackout_id})
    db.delete(period)
    db.commit()
    logger.info(f"Blackout {blackout_id} removed")
