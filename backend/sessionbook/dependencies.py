# backend/sessionbook/dependencies.py
"""
Request identity.

Authentication happens upstream; the identity provider's opaque user id
arrives in the X-User-Id header (optionally X-User-Name / X-User-Email on
first sight).
"""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models.generated import Users
from .services.accounts import ensure_user


def get_current_user(
    x_user_id: str | None = Header(None),
    x_user_name: str | None = Header(None),
    x_user_email: str | None = Header(None),
    db: Session = Depends(get_db),
) -> Users:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return ensure_user(db, x_user_id.strip(), name=x_user_name, email=x_user_email)


def require_admin(user: Users = Depends(get_current_user)) -> Users:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
