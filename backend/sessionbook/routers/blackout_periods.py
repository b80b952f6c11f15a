# backend/sessionbook/routers/blackout_periods.py
# PATCH = not supported (delete and re-create), DELETE = hard

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_user, require_admin
from ..models.generated import Users as DBUsers
from ..schemas.blackout_periods import (
    BlackoutPeriodCreate,
    BlackoutPeriodRead,
)
from ..services import blackouts

router = APIRouter(prefix="/blackout_periods", tags=["blackout_periods"])


@router.get("/", response_model=list[BlackoutPeriodRead])
def list_blackout_periods(
    upcoming: bool = False,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return blackouts.list_blackouts(db, upcoming_only=upcoming)


@router.post("/", response_model=BlackoutPeriodRead, status_code=status.HTTP_201_CREATED)
def create_blackout_period(
    data: BlackoutPeriodCreate,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return blackouts.create_blackout(
        db, data.start_date, data.end_date, reason=data.reason, created_by=admin.id,
    )


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_blackout_period(
    id: int,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    blackouts.delete_blackout(db, id)
