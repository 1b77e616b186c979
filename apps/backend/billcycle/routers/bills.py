from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.clock import get_clock
from billcycle.core.database import get_db
from billcycle.core.deps import get_current_user
from billcycle.schemas import BillsOut
from billcycle.services.bill_overview import BillOverviewService


router = APIRouter(prefix="/bills", tags=["bills"])


@router.get("", response_model=BillsOut)
def list_bills(
    closing_day: Optional[int] = Query(None, alias="closingDay", description="Card closing day (1-28)"),
    origin: Optional[str] = Query(None, description="Restrict to one card / origin"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    overview = BillOverviewService(db).get_bills(
        user_id=current_user.id,
        now=clock.now(),
        closing_day=closing_day,
        origin=origin or None,
    )
    return BillsOut.model_validate(overview)
