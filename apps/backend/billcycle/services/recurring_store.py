from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from billcycle import models


class RecurringTemplateStore:
    """Read access to recurring templates and the entries linked to them."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def find_active(self, *, user_id: int) -> list[models.RecurringExpense]:
        stmt = (
            select(models.RecurringExpense)
            .where(
                models.RecurringExpense.user_id == user_id,
                models.RecurringExpense.is_active.is_(True),
            )
            .order_by(models.RecurringExpense.day_of_month, models.RecurringExpense.id)
        )
        return list(self.db.scalars(stmt))

    def import_candidates(self, *, user_id: int) -> list[models.RecurringExpense]:
        """Active templates that wait for an imported entry instead of generating one."""
        stmt = (
            select(models.RecurringExpense)
            .options(selectinload(models.RecurringExpense.transactions))
            .where(
                models.RecurringExpense.user_id == user_id,
                models.RecurringExpense.is_active.is_(True),
                models.RecurringExpense.auto_generate.is_(False),
            )
            .order_by(models.RecurringExpense.id)
        )
        return list(self.db.scalars(stmt))

    def latest_amount_for(self, template_id: int) -> Optional[float]:
        """Amount of the most recent live entry linked to the template, if any."""
        stmt = (
            select(models.Transaction.amount)
            .where(
                models.Transaction.recurring_expense_id == template_id,
                models.Transaction.deleted_at.is_(None),
            )
            .order_by(models.Transaction.occurred_at.desc(), models.Transaction.id.desc())
            .limit(1)
        )
        value = self.db.scalars(stmt).first()
        return float(value) if value is not None else None


def linked_in_month(template: models.RecurringExpense, when: date) -> bool:
    """True when a live entry of ``template`` already falls in the month of ``when``."""
    return any(
        txn.deleted_at is None
        and txn.occurred_at.year == when.year
        and txn.occurred_at.month == when.month
        for txn in template.transactions
    )
