from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.clock import get_clock
from billcycle.core.database import get_db
from billcycle.core.deps import get_current_user
from billcycle.schemas import DeleteResult, TransactionCreate, TransactionOut, TrashRestoreRequest
from billcycle.services.transaction_service import TransactionService


router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    category_id: Optional[int] = Query(None, alias="categoryId"),
    origin: Optional[str] = Query(None),
    type: Optional[models.TxnType] = Query(None),
    is_fixed: Optional[bool] = Query(None, alias="isFixed"),
    is_installment: Optional[bool] = Query(None, alias="isInstallment"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return TransactionService(db).list_transactions(
        user_id=current_user.id,
        month=month,
        year=year,
        category_id=category_id,
        origin=origin or None,
        type=type,
        is_fixed=is_fixed,
        is_installment=is_installment,
    )


@router.post("", response_model=TransactionOut, status_code=201)
def create_transaction(
    payload: TransactionCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    return TransactionService(db, clock=clock).create(payload, user_id=current_user.id)


# ---- Trash (declared before /{txn_id}) ------------------------------------

@router.get("/trash", response_model=list[TransactionOut])
def list_trash(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return TransactionService(db).trash(user_id=current_user.id)


@router.put("/trash", response_model=TransactionOut)
def restore_from_trash(
    payload: TrashRestoreRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return TransactionService(db).restore(payload.id, user_id=current_user.id)


@router.delete("/trash", response_model=DeleteResult)
def purge_trash(
    id: Optional[int] = Query(None, description="Permanently delete one trashed entry"),
    clean_old: bool = Query(False, alias="cleanOld", description="Purge entries past the retention period"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    svc = TransactionService(db, clock=clock)
    if id is not None:
        removed = svc.purge(id, user_id=current_user.id)
        return DeleteResult(success=True, message="Transaction permanently deleted", count=removed)
    if clean_old:
        removed = svc.purge_expired(user_id=current_user.id)
        return DeleteResult(success=True, message=f"{removed} old transactions permanently deleted", count=removed)
    raise HTTPException(status_code=400, detail="Either id or cleanOld=true is required")


@router.delete("/{txn_id}", response_model=DeleteResult)
def delete_transaction(
    txn_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    TransactionService(db, clock=clock).delete(txn_id, user_id=current_user.id)
    return DeleteResult(success=True)
