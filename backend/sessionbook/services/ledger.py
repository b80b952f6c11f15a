# backend/sessionbook/services/ledger.py
"""
Session ledger: owns each user's credit balance.

    sessions_granted   set by an administrator
    consumed_credits   confirmed bookings currently held
    remaining_credits  usable credit; 0 unless the account is approved

Every mutation appends a ledger_transactions row and re-checks the
invariants. Nothing here commits: callers run these inside a UnitOfWork so
the ledger change and the booking change land (or roll back) together.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..models.generated import (
    ApprovalState,
    Bookings,
    BookingStatus,
    LedgerKind,
    LedgerTransactions,
    Users,
)
from .errors import InsufficientCredits, InvalidInput, LedgerCorruption, NotFound

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


# ──────────────────────────────────────────────────────────────────────────────
# Helpers
# ──────────────────────────────────────────────────────────────────────────────

def load_user(db: Session, user_id: str, lock: bool = False) -> Users:
    """Fresh read of a user row (row-locked when `lock`). Raises NotFound."""
    # populate_existing overwrites in-memory state, so pending changes go first
    db.flush()
    query = db.query(Users).filter(Users.id == user_id).populate_existing()
    if lock:
        query = query.with_for_update()
    user = query.first()
    if not user:
        raise NotFound(f"User {user_id} not found", details={"user_id": user_id})
    return user


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 1:
        raise InvalidInput(f"Credit amount must be a positive integer, got {amount!r}")


def _record(
    db: Session,
    user_id: str,
    kind: LedgerKind,
    amount: int,
    booking_id: Optional[int] = None,
    recurring_group_id: Optional[str] = None,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> LedgerTransactions:
    """Create a ledger transaction record."""
    tx = LedgerTransactions(
        user_id=user_id,
        kind=kind.value,
        amount=amount,
        booking_id=booking_id,
        recurring_group_id=recurring_group_id,
        description=description,
        created_by=created_by,
    )
    db.add(tx)
    return tx


def verify(user: Users) -> None:
    """
    Check the ledger invariants for one user.

    Raises LedgerCorruption (logged at CRITICAL) instead of clamping.
    """
    granted = user.sessions_granted
    remaining = user.remaining_credits
    consumed = user.consumed_credits

    if granted < 0 or remaining < 0 or consumed < 0:
        raise LedgerCorruption(
            user.id, "Negative ledger field",
            sessions_granted=granted, remaining_credits=remaining, consumed_credits=consumed,
        )
    if remaining > granted:
        raise LedgerCorruption(
            user.id, "remaining_credits exceeds sessions_granted",
            sessions_granted=granted, remaining_credits=remaining,
        )

    if user.approval_state == ApprovalState.APPROVED.value:
        expected = max(granted - consumed, 0)
    else:
        expected = 0
    if remaining != expected:
        raise LedgerCorruption(
            user.id, "remaining_credits out of balance",
            expected=expected, remaining_credits=remaining,
            sessions_granted=granted, consumed_credits=consumed,
        )


# ──────────────────────────────────────────────────────────────────────────────
# Operations
# ──────────────────────────────────────────────────────────────────────────────

def check_credit(db: Session, user_id: str, amount: int) -> Users:
    """Advisory check: remaining_credits >= amount. Re-checked by debit()."""
    _check_amount(amount)
    user = load_user(db, user_id)
    if user.remaining_credits < amount:
        raise InsufficientCredits(user_id, amount, user.remaining_credits)
    return user


def debit(
    db: Session,
    user_id: str,
    amount: int,
    *,
    booking_id: Optional[int] = None,
    recurring_group_id: Optional[str] = None,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Users:
    """
    Atomically move `amount` credits from remaining to consumed.

    Single conditional UPDATE, so two concurrent debits can never drive
    remaining_credits below zero.
    """
    _check_amount(amount)

    result = db.execute(
        update(Users)
        .where(Users.id == user_id, Users.remaining_credits >= amount)
        .values(
            remaining_credits=Users.remaining_credits - amount,
            consumed_credits=Users.consumed_credits + amount,
            updated_at=utc_timestamp(),
        )
        .execution_options(synchronize_session=False)
    )

    user = load_user(db, user_id)
    if result.rowcount != 1:
        raise InsufficientCredits(user_id, amount, user.remaining_credits)

    verify(user)
    _record(
        db,
        user_id,
        LedgerKind.DEBIT,
        -amount,
        booking_id=booking_id,
        recurring_group_id=recurring_group_id,
        description=description,
        created_by=created_by,
    )
    db.flush()

    logger.info(f"Debited {amount} from user={user_id}, remaining={user.remaining_credits}")
    return user


def refund(
    db: Session,
    user_id: str,
    amount: int,
    *,
    booking_id: Optional[int] = None,
    recurring_group_id: Optional[str] = None,
    description: Optional[str] = None,
    created_by: Optional[str] = None,
) -> Users:
    """
    Return `amount` consumed credits.

    remaining_credits never exceeds sessions_granted; for a non-approved
    account it stays at 0 until the next approval recomputes the grant.
    """
    _check_amount(amount)
    user = load_user(db, user_id, lock=True)

    if user.consumed_credits < amount:
        raise LedgerCorruption(
            user_id, "Refund exceeds consumed credits",
            consumed_credits=user.consumed_credits, amount=amount,
        )

    consumed = user.consumed_credits - amount
    if user.approval_state == ApprovalState.APPROVED.value:
        ceiling = max(user.sessions_granted - consumed, 0)
        remaining = min(user.remaining_credits + amount, ceiling)
    else:
        remaining = 0

    delta = remaining - user.remaining_credits
    user.consumed_credits = consumed
    user.remaining_credits = remaining
    user.updated_at = utc_timestamp()

    verify(user)
    _record(
        db,
        user_id,
        LedgerKind.REFUND,
        delta,
        booking_id=booking_id,
        recurring_group_id=recurring_group_id,
        description=description,
        created_by=created_by,
    )
    db.flush()

    logger.info(f"Refunded {amount} to user={user_id}, remaining={remaining}")
    return user


def set_grant(
    db: Session,
    user_id: str,
    new_grant: int,
    *,
    created_by: Optional[str] = None,
    description: Optional[str] = None,
) -> Users:
    """
    Administrative grant: remaining = new_grant - consumed, clamped to >= 0.

    A pending/rejected account keeps remaining_credits at 0 regardless of the
    grant; the grant is stored and becomes usable on approval.
    """
    if not isinstance(new_grant, int) or isinstance(new_grant, bool) or new_grant < 0:
        raise InvalidInput(f"sessions must be a non-negative integer, got {new_grant!r}")

    user = load_user(db, user_id, lock=True)
    user.sessions_granted = new_grant

    if user.approval_state == ApprovalState.APPROVED.value:
        remaining = max(new_grant - user.consumed_credits, 0)
    else:
        remaining = 0

    delta = remaining - user.remaining_credits
    user.remaining_credits = remaining
    user.updated_at = utc_timestamp()

    verify(user)
    _record(
        db,
        user_id,
        LedgerKind.GRANT,
        delta,
        description=description or f"Sessions granted set to {new_grant}",
        created_by=created_by,
    )
    db.flush()

    logger.info(f"Grant for user={user_id} set to {new_grant}, remaining={remaining}")
    return user


def zero_remaining(
    db: Session,
    user: Users,
    *,
    created_by: Optional[str] = None,
    description: Optional[str] = None,
) -> Users:
    """Drop usable credit to 0 (approval revoked). Grant and bookings are untouched."""
    delta = -user.remaining_credits
    user.remaining_credits = 0
    user.updated_at = utc_timestamp()

    verify(user)
    _record(
        db,
        user.id,
        LedgerKind.REVOKE,
        delta,
        description=description or "Approval revoked",
        created_by=created_by,
    )
    db.flush()
    return user


# ──────────────────────────────────────────────────────────────────────────────
# Reporting
# ──────────────────────────────────────────────────────────────────────────────

def audit_user(db: Session, user_id: str) -> dict:
    """Recount confirmed bookings and compare with the ledger."""
    user = load_user(db, user_id)
    confirmed = (
        db.query(func.count(Bookings.id))
        .filter(
            Bookings.user_id == user_id,
            Bookings.status == BookingStatus.CONFIRMED.value,
        )
        .scalar()
    )

    problems = []
    if confirmed != user.consumed_credits:
        problems.append(
            f"consumed_credits={user.consumed_credits} but {confirmed} confirmed bookings"
        )
    try:
        verify(user)
    except LedgerCorruption as exc:
        problems.append(exc.message)

    if problems:
        logger.critical(f"Ledger audit failed for user={user_id}: {problems}")

    return {
        "user_id": user_id,
        "approval_state": user.approval_state,
        "sessions_granted": user.sessions_granted,
        "remaining_credits": user.remaining_credits,
        "consumed_credits": user.consumed_credits,
        "confirmed_bookings": confirmed,
        "consistent": not problems,
        "problems": problems,
    }


def history(db: Session, user_id: str, limit: int = 50, offset: int = 0) -> list[LedgerTransactions]:
    """Ledger transactions, newest first."""
    load_user(db, user_id)
    return (
        db.query(LedgerTransactions)
        .filter(LedgerTransactions.user_id == user_id)
        .order_by(LedgerTransactions.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
