# backend/sessionbook/services/accounts.py
"""
User records owned by this engine.

Identity itself comes from the external provider; the first time an id is
seen a user row is created (pending, zero credits).
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.generated import (
    ApprovalState,
    Bookings,
    LedgerTransactions,
    UserRole,
    Users,
)
from . import approval, ledger
from .errors import InvalidInput, InvalidTransition, NotFound
from .transactions import Notifier, UnitOfWork

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "email", "label_id", "role")


def get_user(db: Session, user_id: str) -> Users:
    user = db.get(Users, user_id)
    if not user:
        raise NotFound(f"User {user_id} not found", details={"user_id": user_id})
    return user


def ensure_user(
    db: Session,
    user_id: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
) -> Users:
    """
    Get the user for an authenticated id, creating it on first sight.

    Ids listed in ADMIN_USER_IDS are created as approved administrators.
    """
    if not user_id or not str(user_id).strip():
        raise InvalidInput("User id is required")

    user = db.get(Users, user_id)
    if user:
        return user

    is_admin = user_id in settings.admin_user_ids
    user = Users(
        id=user_id,
        name=name,
        email=email,
        role=UserRole.ADMIN.value if is_admin else UserRole.USER.value,
        approval_state=(ApprovalState.APPROVED if is_admin else ApprovalState.PENDING).value,
        sessions_granted=0,
        remaining_credits=0,
        consumed_credits=0,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent first request for the same id already created it
        db.rollback()
        user = db.get(Users, user_id)
        if user is None:
            raise
        return user

    db.refresh(user)
    logger.info(f"User {user_id} created (role={user.role}, state={user.approval_state})")
    return user


def create_user(
    db: Session,
    user_id: str,
    name: Optional[str] = None,
    email: Optional[str] = None,
    sessions: int = 0,
    approved: bool = False,
    *,
    label_id: Optional[str] = None,
    role: UserRole = UserRole.USER,
    actor_id: Optional[str] = None,
    notify: Optional[Notifier] = None,
) -> Users:
    """
    Administrative creation of an account before its first sign-in.

    The row starts pending with `sessions` pre-allocated (remaining stays 0);
    with `approved` it is then approved with exactly that grant.
    """
    if not user_id or not str(user_id).strip():
        raise InvalidInput("User id is required")
    if db.get(Users, user_id) is not None:
        raise InvalidTransition(
            f"User {user_id} already exists",
            code="user_exists",
            details={"user_id": user_id},
        )

    with UnitOfWork(db, notify):
        db.add(Users(
            id=user_id,
            name=name,
            email=email,
            label_id=label_id,
            role=role.value,
            approval_state=ApprovalState.PENDING.value,
            sessions_granted=0,
            remaining_credits=0,
            consumed_credits=0,
        ))
        db.flush()
        user = ledger.set_grant(
            db, user_id, sessions,
            created_by=actor_id,
            description=f"Pre-allocated {sessions} sessions",
        )
    logger.info(f"User {user_id} created by {actor_id} with {sessions} sessions")

    if approved:
        user = approval.approve(db, user_id, sessions=sessions, actor_id=actor_id, notify=notify)
    else:
        db.refresh(user)
    return user


def list_users(db: Session, approval_state: Optional[ApprovalState] = None) -> list[Users]:
    query = db.query(Users)
    if approval_state is not None:
        query = query.filter(Users.approval_state == approval_state.value)
    return query.order_by(Users.created_at, Users.id).all()


def update_profile(db: Session, user_id: str, changes: dict) -> Users:
    """Update cosmetic/profile fields. Ledger and approval fields are not editable here."""
    user = get_user(db, user_id)

    unknown = set(changes) - set(PROFILE_FIELDS)
    if unknown:
        raise InvalidInput(f"Fields not editable: {sorted(unknown)}")
    if "role" in changes and changes["role"] not in {r.value for r in UserRole}:
        raise InvalidInput(f"Unknown role {changes['role']!r}")

    for field, value in changes.items():
        setattr(user, field, value)
    user.updated_at = ledger.utc_timestamp()

    db.commit()
    db.refresh(user)
    return user


def purge_user(db: Session, user_id: str, cascade: bool = False) -> None:
    """
    Delete a user. Bookings reference their owner, so they must go first:
    without `cascade` a user that still has bookings is refused.
    """
    user = get_user(db, user_id)

    booking_count = db.query(Bookings).filter(Bookings.user_id == user_id).count()
    if booking_count and not cascade:
        raise InvalidTransition(
            f"User {user_id} still has {booking_count} bookings",
            code="user_has_bookings",
            details={"user_id": user_id, "bookings": booking_count},
        )

    try:
        db.query(LedgerTransactions).filter(
            LedgerTransactions.user_id == user_id
        ).delete(synchronize_session=False)
        db.query(Bookings).filter(Bookings.user_id == user_id).delete(synchronize_session=False)
        db.delete(user)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"User {user_id} purged ({booking_count} bookings removed)")
