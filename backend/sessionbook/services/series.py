# backend/sessionbook/services/series.py
"""
Weekly recurring series: same slot, same weekday, n consecutive weeks.

All-or-nothing. Every occurrence is checked before anything is written; the
first failing occurrence aborts the series and its error carries
`occurrence_index` (0-based) and the failing date. The inserts and a single
debit(n) then commit together.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..models.generated import Bookings, BookingStatus, Users
from . import calendar_policy, ledger
from .approval import require_approved
from .booking_rules import BookingRules, default_rules
from .bookings import (
    authorize,
    booking_payload,
    cancel_confirmed,
    check_slot_free,
    check_window,
    list_series,
)
from .errors import BookingError, BookingWindowViolation, InvalidInput, SlotUnavailable
from .slots import BookingConfig, get_booking_config
from .transactions import Notifier, UnitOfWork, is_slot_violation, retry_on_conflict

logger = logging.getLogger(__name__)


def series_dates(start_date: date, occurrence_count: int) -> list[date]:
    return [start_date + timedelta(weeks=i) for i in range(occurrence_count)]


def create_series(
    db: Session,
    actor: Optional[Users],
    user_id: str,
    start_date,
    slot: str,
    occurrence_count: int,
    *,
    notes: Optional[str] = None,
    rules: Optional[BookingRules] = None,
    config: Optional[BookingConfig] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    notify: Optional[Notifier] = None,
) -> list[Bookings]:
    """Book `occurrence_count` weekly occurrences of `slot` starting at `start_date`."""
    config = config or get_booking_config()
    rules = rules or default_rules()
    start_date = calendar_policy.coerce_date(start_date)
    config.validate_slot(slot)

    if (
        not isinstance(occurrence_count, int)
        or isinstance(occurrence_count, bool)
        or not 1 <= occurrence_count <= config.max_series_occurrences
    ):
        raise InvalidInput(
            f"occurrence_count must be between 1 and {config.max_series_occurrences}",
            details={"occurrence_count": occurrence_count},
        )

    dates = series_dates(start_date, occurrence_count)
    actor_id = actor.id if actor is not None else user_id

    def attempt() -> list[Bookings]:
        with UnitOfWork(db, notify) as uow:
            user = ledger.load_user(db, user_id)
            authorize(actor, user_id)
            require_approved(user)
            ledger.check_credit(db, user_id, occurrence_count)

            for index, occurrence in enumerate(dates):
                try:
                    calendar_policy.check_bookable(db, occurrence, today=today, config=config)
                    check_window(rules, config.slot_start(occurrence, slot), now or datetime.now())
                    check_slot_free(db, occurrence, slot)
                except BookingError as exc:
                    exc.at_occurrence(index, date=occurrence.isoformat())
                    raise

            group_id = uuid.uuid4().hex
            bookings = []
            for index, occurrence in enumerate(dates):
                booking = Bookings(
                    user_id=user_id,
                    date=occurrence.isoformat(),
                    slot=slot,
                    status=BookingStatus.CONFIRMED.value,
                    recurring_group_id=group_id,
                    series_index=index,
                    series_length=occurrence_count,
                    notes=notes,
                    created_by=actor_id,
                )
                db.add(booking)
                try:
                    db.flush()
                except IntegrityError as exc:
                    if not is_slot_violation(exc):
                        raise
                    raise SlotUnavailable(
                        "This time slot has just been booked by someone else",
                        details={"date": occurrence.isoformat(), "slot": slot},
                    ).at_occurrence(index) from exc
                bookings.append(booking)

            ledger.debit(
                db, user_id, occurrence_count,
                recurring_group_id=group_id,
                description=f"Weekly series of {occurrence_count} at {slot}",
                created_by=actor_id,
            )
            uow.emit("series_created", {
                "recurring_group_id": group_id,
                "user_id": user_id,
                "slot": slot,
                "dates": [d.isoformat() for d in dates],
            })
        return bookings

    bookings = retry_on_conflict(attempt)
    logger.info(
        f"Series {bookings[0].recurring_group_id} created: user={user_id} "
        f"{occurrence_count}x {slot} from {start_date.isoformat()}"
    )
    return bookings


def cancel_series(
    db: Session,
    actor: Optional[Users],
    recurring_group_id: str,
    *,
    rules: Optional[BookingRules] = None,
    config: Optional[BookingConfig] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    notify: Optional[Notifier] = None,
) -> list[Bookings]:
    """
    Cancel every still-confirmed, not-yet-past occurrence of a series and
    refund each. Running it again cancels nothing more.

    For owners the cancellation-notice rule applies to every occurrence about
    to be cancelled; the first one inside the notice window aborts the call
    with BookingWindowViolation (carrying its occurrence_index) and nothing is
    cancelled. Administrators bypass the rule.
    """
    config = config or get_booking_config()
    rules = rules or default_rules()
    today = today or date.today()
    now = now or datetime.now()
    enforce_notice = not (actor is not None and actor.is_admin)

    def attempt() -> list[Bookings]:
        cancelled = []
        with UnitOfWork(db, notify) as uow:
            bookings = list_series(db, recurring_group_id)
            authorize(actor, bookings[0].user_id)

            targets = [
                b for b in bookings
                if b.status == BookingStatus.CONFIRMED.value and b.date >= today.isoformat()
            ]
            if enforce_notice:
                for booking in targets:
                    slot_start = config.slot_start(calendar_policy.coerce_date(booking.date), booking.slot)
                    result = rules.check_cancellation(slot_start, now)
                    if not result.allowed:
                        raise BookingWindowViolation(
                            result.reason,
                            details={
                                "booking_id": booking.id,
                                "date": booking.date,
                                "slot_start": slot_start.isoformat(timespec="minutes"),
                            },
                        ).at_occurrence(booking.series_index)

            for booking in targets:
                actor_id = actor.id if actor is not None else booking.user_id
                if cancel_confirmed(db, booking, actor_id=actor_id, description="Series cancelled"):
                    cancelled.append(booking)
                    uow.emit("booking_cancelled", booking_payload(booking))
        return cancelled

    cancelled = retry_on_conflict(attempt)
    logger.info(f"Series {recurring_group_id}: {len(cancelled)} occurrences cancelled")
    return cancelled
