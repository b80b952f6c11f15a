# backend/sessionbook/schemas/users.py

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, Field


class UserRead(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: str
    approval_state: str

    sessions_granted: int
    remaining_credits: int
    consumed_credits: int

    label_id: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class UserCreate(BaseModel):
    """Admin-created account; `sessions` is pre-allocated and usable once approved."""
    id: str = Field(min_length=1)
    name: Optional[str] = None
    email: Optional[str] = None
    label_id: Optional[str] = None
    sessions: int = Field(default=0, ge=0)
    approved: bool = False


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    label_id: Optional[str] = None
    role: Optional[Literal["user", "admin"]] = None

    model_config = {"from_attributes": True}


class ApproveRequest(BaseModel):
    """Sessions to grant on approval; omitted = keep the current grant (or the default)."""
    sessions: Optional[int] = Field(default=None, ge=0)


class GrantRequest(BaseModel):
    sessions: int = Field(ge=0)
