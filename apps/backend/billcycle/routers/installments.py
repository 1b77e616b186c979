from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.clock import get_clock
from billcycle.core.database import get_db
from billcycle.core.deps import get_current_user
from billcycle.schemas import DeleteResult, InstallmentPlanOut
from billcycle.services.installment_service import InstallmentPlanService


router = APIRouter(prefix="/installments", tags=["installments"])


@router.get("", response_model=list[InstallmentPlanOut])
def list_installments(
    active: Optional[bool] = Query(None, description="Only plans with entries from today on"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    active_on = clock.now().date() if active else None
    return InstallmentPlanService(db).list_plans(user_id=current_user.id, active_on=active_on)


@router.delete("/{plan_id}", response_model=DeleteResult)
def delete_installment(
    plan_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    removed = InstallmentPlanService(db).delete_plan(plan_id, user_id=current_user.id, at=clock.now())
    return DeleteResult(success=True, count=removed)
