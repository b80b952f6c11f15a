# backend/sessionbook/services/transactions.py
"""
Atomic commit discipline for booking and ledger writes.

A UnitOfWork wraps one SQLAlchemy transaction:
- commit on success, rollback on any error;
- storage conflicts are translated to domain errors
  (unique slot index → SlotUnavailable, lock/serialization → Conflict);
- notifications queued during the unit are emitted only after commit,
  and a failing sink never undoes the committed change.
"""

import logging
from typing import Callable, Optional, TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from ..config import settings
from .errors import Conflict, SlotUnavailable
from .events import emit_event

logger = logging.getLogger(__name__)

T = TypeVar("T")

SLOT_INDEX_MARKERS = ("uq_bookings_confirmed_slot", "bookings.date, bookings.slot")

Notifier = Callable[[str, dict], None]


def is_slot_violation(exc: IntegrityError) -> bool:
    """True if the integrity error comes from the confirmed-slot unique index."""
    text = str(exc.orig) if exc.orig is not None else str(exc)
    return any(marker in text for marker in SLOT_INDEX_MARKERS)


def translate_storage_error(exc: Exception) -> Exception:
    if isinstance(exc, IntegrityError):
        if is_slot_violation(exc):
            return SlotUnavailable("This time slot has just been booked by someone else")
        return Conflict("Concurrent update detected, please retry")
    if isinstance(exc, (OperationalError, StaleDataError)):
        return Conflict("Concurrent update detected, please retry")
    return exc


class UnitOfWork:
    """
    Usage:
        with UnitOfWork(db, notify) as uow:
            ...writes...
            uow.emit("booking_created", {...})
    """

    def __init__(self, db: Session, notify: Optional[Notifier] = None):
        self.db = db
        self.notify = notify or emit_event
        self._events: list[tuple[str, dict]] = []

    def __enter__(self) -> "UnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            self.db.rollback()
            self._events.clear()
            translated = translate_storage_error(exc)
            if translated is not exc:
                raise translated from exc
            return False

        try:
            self.db.commit()
        except (IntegrityError, OperationalError, StaleDataError) as commit_exc:
            self.db.rollback()
            self._events.clear()
            raise translate_storage_error(commit_exc) from commit_exc

        self._publish()
        return False

    def emit(self, event_type: str, payload: dict) -> None:
        self._events.append((event_type, payload))

    def _publish(self) -> None:
        events, self._events = self._events, []
        for event_type, payload in events:
            try:
                self.notify(event_type, payload)
            except Exception:
                logger.exception(f"Notification {event_type} failed after commit")


def retry_on_conflict(fn: Callable[[], T], attempts: Optional[int] = None) -> T:
    """
    Run `fn` until it stops raising Conflict, at most `attempts` times.

    Each attempt re-reads state from scratch, so stale reads are never
    replayed. Any other error propagates immediately.
    """
    if attempts is None:
        attempts = settings.commit_retries
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Conflict:
            if attempt >= attempts:
                logger.warning(f"Conflict persisted after {attempts} attempts, giving up")
                raise
            logger.info(f"Conflict on attempt {attempt}/{attempts}, retrying")
    raise Conflict("Retry budget exhausted")  # attempts < 1
