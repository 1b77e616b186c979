from __future__ import annotations

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from billcycle.core.database import get_db
from billcycle import models


def get_current_user(db: Session = Depends(get_db)) -> models.User:
    """Demo-user resolver: every billing request acts as the oldest user, seeded on first use."""
    user = db.scalars(select(models.User).order_by(models.User.id).limit(1)).first()
    if user is None:
        user = models.User(email="demo@example.com", is_active=True)
        db.add(user)
        db.commit()
        db.refresh(user)
    return user
