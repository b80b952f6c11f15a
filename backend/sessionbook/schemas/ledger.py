# backend/sessionbook/schemas/ledger.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class LedgerTransactionRead(BaseModel):
    id: int
    user_id: str
    kind: str
    amount: int

    booking_id: Optional[int] = None
    recurring_group_id: Optional[str] = None
    description: Optional[str] = None
    created_by: Optional[str] = None

    created_at: datetime

    model_config = {"from_attributes": True}


class LedgerAudit(BaseModel):
    user_id: str
    approval_state: str
    sessions_granted: int
    remaining_credits: int
    consumed_credits: int
    confirmed_bookings: int
    consistent: bool
    problems: list[str] = []
