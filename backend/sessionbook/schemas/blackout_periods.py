# backend/sessionbook/schemas/blackout_periods.py

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel


class BlackoutPeriodCreate(BaseModel):
    start_date: date
    end_date: date
    reason: Optional[str] = None

    model_config = {"from_attributes": True}


class BlackoutPeriodRead(BaseModel):
    id: int

    start_date: date
    end_date: date
    reason: Optional[str] = None
    created_by: Optional[str] = None

    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
