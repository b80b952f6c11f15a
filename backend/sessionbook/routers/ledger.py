# backend/sessionbook/routers/ledger.py

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import get_current_user, require_admin
from ..models.generated import Users as DBUsers
from ..schemas.ledger import LedgerAudit, LedgerTransactionRead
from ..services import ledger

router = APIRouter(prefix="/ledger", tags=["ledger"])


@router.get("/{user_id}/transactions", response_model=list[LedgerTransactionRead])
def list_transactions(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    user: DBUsers = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if user_id != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Forbidden")
    return ledger.history(db, user_id, limit=limit, offset=offset)


@router.get("/{user_id}/audit", response_model=LedgerAudit)
def audit_user(
    user_id: str,
    admin: DBUsers = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return ledger.audit_user(db, user_id)
