from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.clock import get_clock
from billcycle.core.database import get_db
from billcycle.core.deps import get_current_user
from billcycle.schemas import ImportRequest, ImportResult
from billcycle.services.import_service import ImportService


router = APIRouter(prefix="/import", tags=["import"])


@router.post("", response_model=ImportResult, status_code=201)
def import_transactions(
    payload: ImportRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    svc = ImportService(db, user_id=current_user.id, clock=clock)
    summary = svc.import_entries(payload.transactions, origin=payload.origin or None)
    return ImportResult(
        message=summary.message,
        count=summary.count,
        linked_count=summary.linked_count,
        carryover_linked_count=summary.carryover_linked_count,
        linked_carryovers=summary.linked_carryovers,
    )
