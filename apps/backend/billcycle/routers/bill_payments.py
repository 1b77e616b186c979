from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.clock import get_clock
from billcycle.core.database import get_db
from billcycle.core.deps import get_current_user
from billcycle.schemas import BillPaymentCreate, BillPaymentOut, BillPaymentUpdate, DeleteResult
from billcycle.services.bill_payment_service import BillPaymentService


router = APIRouter(prefix="/bill-payments", tags=["bill-payments"])


@router.get("", response_model=list[BillPaymentOut])
def list_bill_payments(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = Query(None),
    origin: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return BillPaymentService(db).list_payments(
        user_id=current_user.id, month=month, year=year, origin=origin or None
    )


@router.post("", response_model=BillPaymentOut, status_code=201)
def create_bill_payment(
    payload: BillPaymentCreate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    svc = BillPaymentService(db, clock=clock)
    return svc.record_payment(user_id=current_user.id, **payload.model_dump())


@router.get("/{payment_id}", response_model=BillPaymentOut)
def get_bill_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return BillPaymentService(db).get(payment_id, user_id=current_user.id)


@router.put("/{payment_id}", response_model=BillPaymentOut)
def update_bill_payment(
    payment_id: int,
    payload: BillPaymentUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    svc = BillPaymentService(db, clock=clock)
    return svc.update_payment(payment_id, user_id=current_user.id, patch=payload.model_dump(exclude_unset=True))


@router.delete("/{payment_id}", response_model=DeleteResult)
def delete_bill_payment(
    payment_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    BillPaymentService(db, clock=clock).delete_payment(payment_id, user_id=current_user.id)
    return DeleteResult(success=True)
