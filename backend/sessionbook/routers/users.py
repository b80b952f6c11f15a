# backend/sessionbook/routers/users.py
# Approval and grants are admin-only; DELETE refuses users with bookings unless purge=true

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_user, require_admin
from ..models.generated import ApprovalState, Users as DBUsers
from ..schemas.users import (
    ApproveRequest,
    GrantRequest,
    UserCreate,
    UserRead,
    UserUpdate,
)
from ..services import accounts, approval

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserRead)
def get_me(user: DBUsers = Depends(get_current_user)):
    return user


@router.get("/", response_model=list[UserRead])
def list_users(
    approval_state: ApprovalState | None = None,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return accounts.list_users(db, approval_state)


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    data: UserCreate,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return accounts.create_user(
        db, data.id, data.name, data.email, data.sessions, data.approved,
        label_id=data.label_id, actor_id=admin.id,
    )


@router.get("/pending", response_model=list[UserRead])
def list_pending_users(
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return accounts.list_users(db, ApprovalState.PENDING)


@router.get("/{id}", response_model=UserRead)
def get_user(
    id: str,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if id != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return accounts.get_user(db, id)


@router.post("/{id}/approve", response_model=UserRead)
def approve_user(
    id: str,
    data: ApproveRequest | None = None,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    sessions = data.sessions if data else None
    return approval.approve(db, id, sessions=sessions, actor_id=admin.id)


@router.post("/{id}/reject", response_model=UserRead)
def reject_user(
    id: str,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return approval.reject(db, id, actor_id=admin.id)


@router.post("/{id}/revoke", response_model=UserRead)
def revoke_user(
    id: str,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return approval.revoke(db, id, actor_id=admin.id)


@router.post("/{id}/reopen", response_model=UserRead)
def reopen_user(
    id: str,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return approval.reopen(db, id, actor_id=admin.id)


@router.put("/{id}/grant", response_model=UserRead)
def set_user_grant(
    id: str,
    data: GrantRequest,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return approval.grant_sessions(db, id, data.sessions, actor_id=admin.id)


@router.patch("/{id}", response_model=UserRead)
def update_user(
    id: str,
    data: UserUpdate,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return accounts.update_profile(db, id, data.model_dump(exclude_unset=True))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    id: str,
    purge: bool = False,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    accounts.purge_user(db, id, cascade=purge)
