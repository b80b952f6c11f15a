# backend/sessionbook/services/bookings.py
"""
Booking state machine: confirmed ⇄ cancelled.

create_booking checks, left to right:
1. input (date, slot label)           → InvalidInput
2. user exists                        → NotFound
3. actor is the owner or an admin     → Forbidden
4. account approved                   → NotApproved
5. calendar policy                    → InvalidInput / BlackoutConflict
6. advance-booking window             → BookingWindowViolation
7. slot free                          → SlotUnavailable
8. credit                             → InsufficientCredits

The insert and the ledger debit share one transaction. The unique index on
confirmed (date, slot) and the conditional debit re-check 7 and 8 at commit
time, so a lost race surfaces as SlotUnavailable / InsufficientCredits and
nothing is half-written.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from ..models.generated import Bookings, BookingStatus, Users
from . import calendar_policy, ledger
from .approval import require_approved
from .booking_rules import BookingRules, default_rules
from .errors import (
    BookingError,
    BookingWindowViolation,
    Forbidden,
    InsufficientCredits,
    InvalidTransition,
    NotFound,
    SlotUnavailable,
)
from .slots import BookingConfig, booked_slots, get_booking_config
from .transactions import Notifier, UnitOfWork, retry_on_conflict

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def authorize(actor: Optional[Users], owner_id: str) -> None:
    """Owner or admin. `actor=None` is an internal call acting as the owner."""
    if actor is None or actor.is_admin or actor.id == owner_id:
        return
    raise Forbidden(
        "You can only manage your own bookings",
        details={"actor_id": actor.id, "user_id": owner_id},
    )


def booking_payload(booking: Bookings) -> dict:
    return {
        "booking_id": booking.id,
        "user_id": booking.user_id,
        "date": booking.date,
        "slot": booking.slot,
        "recurring_group_id": booking.recurring_group_id,
    }


def check_window(rules: BookingRules, slot_start: datetime, now: datetime) -> None:
    result = rules.check_booking_time(slot_start, now)
    if not result.allowed:
        raise BookingWindowViolation(
            result.reason,
            details={"slot_start": slot_start.isoformat(timespec="minutes")},
        )


def check_slot_free(db: Session, target_date: date, slot: str) -> None:
    if slot in booked_slots(db, target_date):
        raise SlotUnavailable(
            "This time slot is already booked",
            details={"date": target_date.isoformat(), "slot": slot},
        )


def _actor_id(actor: Optional[Users], owner_id: str) -> str:
    return actor.id if actor is not None else owner_id


# ──────────────────────────────────────────────────────────────────────────────
# Reads
# ──────────────────────────────────────────────────────────────────────────────

def get_booking(db: Session, booking_id: int, actor: Optional[Users] = None) -> Bookings:
    booking = db.get(Bookings, booking_id)
    if not booking:
        raise NotFound(f"Booking {booking_id} not found", details={"booking_id": booking_id})
    authorize(actor, booking.user_id)
    return booking


def list_user_bookings(
    db: Session,
    user_id: str,
    status: Optional[BookingStatus] = None,
    upcoming_only: bool = False,
    today: Optional[date] = None,
) -> list[Bookings]:
    query = db.query(Bookings).filter(Bookings.user_id == user_id)
    if status is not None:
        query = query.filter(Bookings.status == status.value)
    if upcoming_only:
        query = query.filter(Bookings.date >= (today or date.today()).isoformat())
    return query.order_by(Bookings.date, Bookings.id).all()


def list_bookings(
    db: Session,
    start: Optional[date] = None,
    end: Optional[date] = None,
    status: Optional[BookingStatus] = None,
) -> list[Bookings]:
    """All bookings in [start, end] (admin view). Sorted by date then slot order."""
    query = db.query(Bookings)
    if start is not None:
        query = query.filter(Bookings.date >= start.isoformat())
    if end is not None:
        query = query.filter(Bookings.date <= end.isoformat())
    if status is not None:
        query = query.filter(Bookings.status == status.value)

    config = get_booking_config()
    order = {label: i for i, label in enumerate(config.slots)}
    rows = query.order_by(Bookings.date, Bookings.id).all()
    return sorted(rows, key=lambda b: (b.date, order.get(b.slot, len(order)), b.id))


def list_series(db: Session, recurring_group_id: str) -> list[Bookings]:
    rows = (
        db.query(Bookings)
        .filter(Bookings.recurring_group_id == recurring_group_id)
        .order_by(Bookings.series_index, Bookings.id)
        .all()
    )
    if not rows:
        raise NotFound(
            f"Series {recurring_group_id} not found",
            details={"recurring_group_id": recurring_group_id},
        )
    return rows


# ──────────────────────────────────────────────────────────────────────────────
# Create
# ──────────────────────────────────────────────────────────────────────────────

def create_booking(
    db: Session,
    actor: Optional[Users],
    user_id: str,
    target_date,
    slot: str,
    *,
    notes: Optional[str] = None,
    rules: Optional[BookingRules] = None,
    config: Optional[BookingConfig] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    notify: Optional[Notifier] = None,
) -> Bookings:
    """Book one slot for `user_id`, debiting one session credit."""
    config = config or get_booking_config()
    rules = rules or default_rules()
    target_date = calendar_policy.coerce_date(target_date)
    config.validate_slot(slot)

    def attempt() -> Bookings:
        with UnitOfWork(db, notify) as uow:
            user = ledger.load_user(db, user_id)
            authorize(actor, user_id)
            require_approved(user)

            calendar_policy.check_bookable(db, target_date, today=today, config=config)
            check_window(rules, config.slot_start(target_date, slot), now or datetime.now())
            check_slot_free(db, target_date, slot)
            if user.remaining_credits < 1:
                raise InsufficientCredits(user_id, 1, user.remaining_credits)

            booking = Bookings(
                user_id=user_id,
                date=target_date.isoformat(),
                slot=slot,
                status=BookingStatus.CONFIRMED.value,
                notes=notes,
                created_by=_actor_id(actor, user_id),
            )
            db.add(booking)
            db.flush()  # unique index on confirmed (date, slot) fires here

            ledger.debit(
                db, user_id, 1,
                booking_id=booking.id,
                description=f"Booking {target_date.isoformat()} {slot}",
                created_by=_actor_id(actor, user_id),
            )
            uow.emit("booking_created", booking_payload(booking))
        return booking

    booking = retry_on_conflict(attempt)
    logger.info(f"Booking {booking.id} created: user={user_id} {booking.date} {booking.slot}")
    return booking


# ──────────────────────────────────────────────────────────────────────────────
# Cancel
# ──────────────────────────────────────────────────────────────────────────────

def cancel_confirmed(
    db: Session,
    booking: Bookings,
    *,
    actor_id: Optional[str],
    description: Optional[str] = None,
) -> bool:
    """
    confirmed → cancelled plus refund, inside the caller's transaction.

    Conditional on status=confirmed: returns False (and refunds nothing) if
    the booking was already cancelled, so concurrent cancels refund once.
    """
    result = db.execute(
        update(Bookings)
        .where(Bookings.id == booking.id, Bookings.status == BookingStatus.CONFIRMED.value)
        .values(status=BookingStatus.CANCELLED.value, updated_at=ledger.utc_timestamp())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return False

    ledger.refund(
        db, booking.user_id, 1,
        booking_id=booking.id,
        recurring_group_id=booking.recurring_group_id,
        description=description or f"Cancelled {booking.date} {booking.slot}",
        created_by=actor_id,
    )
    return True


def cancel_booking(
    db: Session,
    actor: Optional[Users],
    booking_id: int,
    *,
    rules: Optional[BookingRules] = None,
    config: Optional[BookingConfig] = None,
    now: Optional[datetime] = None,
    notify: Optional[Notifier] = None,
) -> Bookings:
    """
    Cancel a booking and refund its credit.

    Cancelling an already-cancelled booking is a successful no-op.
    Administrators bypass the cancellation-notice rule.
    """
    config = config or get_booking_config()
    rules = rules or default_rules()

    def attempt() -> Bookings:
        with UnitOfWork(db, notify) as uow:
            booking = get_booking(db, booking_id, actor)
            if booking.status == BookingStatus.CANCELLED.value:
                return booking

            if not (actor is not None and actor.is_admin):
                slot_start = config.slot_start(calendar_policy.coerce_date(booking.date), booking.slot)
                result = rules.check_cancellation(slot_start, now or datetime.now())
                if not result.allowed:
                    raise BookingWindowViolation(
                        result.reason,
                        details={"booking_id": booking.id, "slot_start": slot_start.isoformat(timespec="minutes")},
                    )

            if cancel_confirmed(db, booking, actor_id=_actor_id(actor, booking.user_id)):
                uow.emit("booking_cancelled", booking_payload(booking))
                logger.info(f"Booking {booking.id} cancelled by {_actor_id(actor, booking.user_id)}")
        return booking

    booking = retry_on_conflict(attempt)
    db.refresh(booking)
    return booking


# ──────────────────────────────────────────────────────────────────────────────
# Reschedule
# ──────────────────────────────────────────────────────────────────────────────

def reschedule_booking(
    db: Session,
    actor: Optional[Users],
    booking_id: int,
    new_date,
    new_slot: str,
    *,
    rules: Optional[BookingRules] = None,
    config: Optional[BookingConfig] = None,
    today: Optional[date] = None,
    now: Optional[datetime] = None,
    notify: Optional[Notifier] = None,
) -> Bookings:
    """
    Move a booking: cancel the old one, then create the new one.

    Two steps, not one transaction. If the create fails the original stays
    cancelled (its credit refunded) and the create error is raised with
    details["cancelled_booking_id"].
    """
    config = config or get_booking_config()
    new_date = calendar_policy.coerce_date(new_date)
    config.validate_slot(new_slot)

    booking = get_booking(db, booking_id, actor)
    if booking.status != BookingStatus.CONFIRMED.value:
        raise InvalidTransition(
            "Only confirmed bookings can be rescheduled",
            details={"booking_id": booking_id, "status": booking.status},
        )
    owner_id, notes = booking.user_id, booking.notes

    cancel_booking(db, actor, booking_id, rules=rules, config=config, now=now, notify=notify)
    try:
        return create_booking(
            db, actor, owner_id, new_date, new_slot,
            notes=notes, rules=rules, config=config, today=today, now=now, notify=notify,
        )
    except BookingError as exc:
        exc.details["cancelled_booking_id"] = booking_id
        logger.warning(f"Reschedule of booking {booking_id} failed after cancel: {exc.code}")
        raise
