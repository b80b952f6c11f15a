# backend/sessionbook/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field


class SlotInfo(BaseModel):
    """A single slot of the daily grid."""
    slot: str  # "10:00 AM"
    is_available: bool


class SlotsDayResponse(BaseModel):
    """Slots for one day (Level 2)."""
    date: date
    is_bookable: bool
    reason: Optional[str] = None  # past / closed_weekday / blackout
    slots: list[SlotInfo]
    available_slots: list[str]


class SlotsDayStatus(BaseModel):
    """Status of a single day in calendar."""
    date: date
    is_bookable: bool
    reason: Optional[str] = None
    open_slots_count: int = 0

    model_config = {"from_attributes": True}


class SlotsCalendarResponse(BaseModel):
    """Calendar of bookable days (Level 1)."""
    start_date: date
    end_date: date
    days: list[SlotsDayStatus]

    # Metadata
    slots: list[str]
    slot_minutes: int = Field(description="Slot length in minutes")
