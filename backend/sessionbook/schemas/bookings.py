# backend/sessionbook/schemas/bookings.py

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class BookingCreate(BaseModel):
    date: date
    slot: str
    user_id: Optional[str] = None  # admins may book for someone else
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class SeriesCreate(BaseModel):
    start_date: date
    slot: str
    occurrence_count: int = Field(ge=1)
    user_id: Optional[str] = None
    notes: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingReschedule(BaseModel):
    date: date
    slot: str


class BookingRead(BaseModel):
    id: int
    user_id: str

    date: date
    slot: str
    status: str

    recurring_group_id: Optional[str] = None
    series_index: Optional[int] = None
    series_length: Optional[int] = None

    notes: Optional[str] = None
    created_by: Optional[str] = None

    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SeriesRead(BaseModel):
    recurring_group_id: str
    bookings: list[BookingRead]
