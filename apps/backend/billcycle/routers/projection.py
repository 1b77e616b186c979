from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.clock import get_clock
from billcycle.core.database import get_db
from billcycle.core.deps import get_current_user
from billcycle.schemas import ProjectionOut
from billcycle.services.projection_service import ProjectionService


router = APIRouter(prefix="/projection", tags=["projection"])


@router.get("", response_model=ProjectionOut)
def get_projection(
    months: Optional[int] = Query(None, description="Months to project; clamped to 1-12, default 6"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
    clock=Depends(get_clock),
):
    projection = ProjectionService(db).project(user_id=current_user.id, now=clock.now(), months=months)
    return ProjectionOut.model_validate(projection)
