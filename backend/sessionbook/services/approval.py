# backend/sessionbook/services/approval.py
"""
Approval gate, the account-level switch in front of every booking operation.

    pending  → approved | rejected
    approved → pending            (revocation)
    rejected → pending            (explicit reopen)

Entering `approved` establishes remaining credits from the grant; leaving it
zeroes remaining credits but keeps sessions_granted and confirmed bookings.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.generated import ApprovalState, Users
from . import ledger
from .errors import InvalidTransition, NotApproved
from .transactions import Notifier, UnitOfWork

logger = logging.getLogger(__name__)

TRANSITIONS: dict[ApprovalState, frozenset[ApprovalState]] = {
    ApprovalState.PENDING: frozenset({ApprovalState.APPROVED, ApprovalState.REJECTED}),
    ApprovalState.APPROVED: frozenset({ApprovalState.PENDING}),
    ApprovalState.REJECTED: frozenset({ApprovalState.PENDING}),
}

EVENTS = {
    ApprovalState.APPROVED: "user_approved",
    ApprovalState.REJECTED: "user_rejected",
}


def can_transition(current: ApprovalState, target: ApprovalState) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def is_approved(user: Users) -> bool:
    return user.approval_state == ApprovalState.APPROVED.value


def require_approved(user: Users) -> None:
    if not is_approved(user):
        raise NotApproved(user.id, user.approval_state)


def transition(
    db: Session,
    user_id: str,
    target: ApprovalState,
    *,
    actor_id: Optional[str] = None,
    sessions: Optional[int] = None,
    notify: Optional[Notifier] = None,
    expected: Optional[ApprovalState] = None,
) -> Users:
    """
    Move a user to `target`, rejecting anything not in TRANSITIONS.
    `expected` further pins the source state (revoke vs. reopen both end in pending).
    """
    with UnitOfWork(db, notify) as uow:
        user = ledger.load_user(db, user_id, lock=True)
        current = ApprovalState(user.approval_state)

        if not can_transition(current, target) or (expected and current != expected):
            raise InvalidTransition(
                f"Cannot move account from {current.value} to {target.value}",
                details={"user_id": user_id, "from": current.value, "to": target.value},
            )

        user.approval_state = target.value

        if target == ApprovalState.APPROVED:
            grant = sessions if sessions is not None else (
                user.sessions_granted or settings.default_session_grant
            )
            ledger.set_grant(
                db, user_id, grant,
                created_by=actor_id,
                description=f"Approved with {grant} sessions",
            )
        elif current == ApprovalState.APPROVED:
            ledger.zero_remaining(db, user, created_by=actor_id)

        if current == ApprovalState.APPROVED:
            event_type = "user_revoked"
        else:
            event_type = EVENTS.get(target, "user_reopened")
        uow.emit(event_type, {
            "user_id": user_id,
            "approval_state": target.value,
            "remaining_credits": user.remaining_credits,
        })

    logger.info(f"User {user_id}: {current.value} → {target.value} (by {actor_id})")
    return user


def approve(db: Session, user_id: str, *, sessions: Optional[int] = None, **kwargs) -> Users:
    return transition(db, user_id, ApprovalState.APPROVED, sessions=sessions, **kwargs)


def reject(db: Session, user_id: str, **kwargs) -> Users:
    return transition(db, user_id, ApprovalState.REJECTED, **kwargs)


def revoke(db: Session, user_id: str, **kwargs) -> Users:
    return transition(db, user_id, ApprovalState.PENDING, expected=ApprovalState.APPROVED, **kwargs)


def reopen(db: Session, user_id: str, **kwargs) -> Users:
    """rejected → pending; the only way back from a rejection."""
    return transition(db, user_id, ApprovalState.PENDING, expected=ApprovalState.REJECTED, **kwargs)


def grant_sessions(
    db: Session,
    user_id: str,
    sessions: int,
    *,
    actor_id: Optional[str] = None,
    notify: Optional[Notifier] = None,
) -> Users:
    """Administrative (pre-)allocation of sessions, any approval state."""
    with UnitOfWork(db, notify):
        user = ledger.set_grant(db, user_id, sessions, created_by=actor_id)
    return user
