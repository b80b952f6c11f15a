# backend/sessionbook/routers/bookings.py
# Owners manage their own bookings; admins manage anyone's. No hard DELETE: cancel instead.

from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_user, require_admin
from ..models.generated import BookingStatus, Users as DBUsers
from ..schemas.bookings import (
    BookingCreate,
    BookingRead,
    BookingReschedule,
    SeriesCreate,
    SeriesRead,
)
from ..services import bookings as booking_service
from ..services import series as series_service

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking_service.create_booking(
        db, user, data.user_id or user.id, data.date, data.slot, notes=data.notes,
    )


@router.post("/series", response_model=SeriesRead, status_code=status.HTTP_201_CREATED)
def create_series(
    data: SeriesCreate,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bookings = series_service.create_series(
        db, user, data.user_id or user.id,
        data.start_date, data.slot, data.occurrence_count,
        notes=data.notes,
    )
    return SeriesRead(
        recurring_group_id=bookings[0].recurring_group_id,
        bookings=[BookingRead.model_validate(b) for b in bookings],
    )


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    start_date: date | None = None,
    end_date: date | None = None,
    status: BookingStatus | None = None,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return booking_service.list_bookings(db, start_date, end_date, status)


@router.get("/mine", response_model=list[BookingRead])
def list_my_bookings(
    status: BookingStatus | None = None,
    upcoming: bool = False,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking_service.list_user_bookings(db, user.id, status=status, upcoming_only=upcoming)


@router.get("/series/{group_id}", response_model=SeriesRead)
def get_series(
    group_id: str,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    bookings = booking_service.list_series(db, group_id)
    booking_service.authorize(user, bookings[0].user_id)
    return SeriesRead(
        recurring_group_id=group_id,
        bookings=[BookingRead.model_validate(b) for b in bookings],
    )


@router.post("/series/{group_id}/cancel", response_model=SeriesRead)
def cancel_series(
    group_id: str,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    series_service.cancel_series(db, user, group_id)
    return SeriesRead(
        recurring_group_id=group_id,
        bookings=[BookingRead.model_validate(b) for b in booking_service.list_series(db, group_id)],
    )


@router.get("/{id}", response_model=BookingRead)
def get_booking(
    id: int,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking_service.get_booking(db, id, user)


@router.post("/{id}/cancel", response_model=BookingRead)
def cancel_booking(
    id: int,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking_service.cancel_booking(db, user, id)


@router.post("/{id}/reschedule", response_model=BookingRead)
def reschedule_booking(
    id: int,
    data: BookingReschedule,
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return booking_service.reschedule_booking(db, user, id, data.date, data.slot)
