from __future__ import annotations

import logging
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from billcycle import models
from billcycle.errors import InvalidPayment, NotFound, PlanLocked
from billcycle.services.ledger_store import LedgerStore
from billcycle.utils.months import shift_months


logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_cents(value: float | Decimal) -> Decimal:
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def split_amount(total: float, parts: int) -> list[float]:
    """
    Split ``total`` into ``parts`` cent-rounded shares summing exactly to the rounded total.

    The last share absorbs the rounding remainder.

    Example:
        >>> split_amount(100, 3)
        [33.33, 33.33, 33.34]
    """
    if parts < 1:
        raise InvalidPayment("installments must be at least 1")
    total_cents = to_cents(total)
    share = (total_cents / parts).quantize(CENT, rounding=ROUND_HALF_UP)
    shares = [share] * (parts - 1)
    shares.append(total_cents - share * (parts - 1))
    return [float(s) for s in shares]


class InstallmentPlanService:
    def __init__(self, db: Session, ledger: LedgerStore | None = None) -> None:
        self.db = db
        self.ledger = ledger or LedgerStore(db)

    def create_plan(
        self,
        *,
        user_id: int,
        description: str,
        origin: str,
        installment_amounts: list[float],
        start_date: date,
        txn_type: models.TxnType = models.TxnType.EXPENSE,
        kind: models.EntryKind = models.EntryKind.REGULAR,
        category_id: Optional[int] = None,
    ) -> models.Installment:
        """
        Stage a plan and one entry per installment, monthly from ``start_date``.

        Entries are signed by ``txn_type``; the caller commits.
        """
        count = len(installment_amounts)
        if count < 1:
            raise InvalidPayment("installments must be at least 1")
        total = float(sum(to_cents(a) for a in installment_amounts))
        plan = models.Installment(
            user_id=user_id,
            description=description,
            total_amount=total,
            total_installments=count,
            installment_amount=float(to_cents(installment_amounts[0])),
            start_date=start_date,
            origin=origin,
        )
        self.db.add(plan)
        self.db.flush()

        sign = -1 if txn_type == models.TxnType.EXPENSE else 1
        for index, amount in enumerate(installment_amounts, start=1):
            self.ledger.create(
                user_id=user_id,
                description=f"{description} ({index}/{count})",
                amount=sign * abs(float(amount)),
                occurred_at=shift_months(start_date, index - 1),
                type=txn_type,
                origin=origin,
                kind=kind,
                category_id=category_id,
                is_installment=True,
                current_installment=index,
                total_installments=count,
                installment_id=plan.id,
            )
        logger.info("Installment plan %s staged: %s x%s", plan.id, description, count)
        return plan

    def list_plans(self, *, user_id: int, active_on: Optional[date] = None) -> list[models.Installment]:
        """All plans newest first; with ``active_on``, only plans with a live entry on or after that date."""
        stmt = (
            select(models.Installment)
            .options(selectinload(models.Installment.transactions).selectinload(models.Transaction.category))
            .where(models.Installment.user_id == user_id)
            .order_by(models.Installment.start_date.desc(), models.Installment.id.desc())
        )
        plans = list(self.db.scalars(stmt))
        if active_on is None:
            return plans
        return [
            p for p in plans
            if any(t.deleted_at is None and t.occurred_at >= active_on for t in p.transactions)
        ]

    def owning_bill_payment(self, plan_id: int) -> Optional[models.BillPayment]:
        return self.db.scalars(
            select(models.BillPayment).where(models.BillPayment.installment_id == plan_id)
        ).first()

    def delete_plan(self, plan_id: int, *, user_id: int, at: datetime) -> int:
        """Soft-delete the plan's entries, detach them and remove the plan. Returns entries removed."""
        plan = self.db.scalars(
            select(models.Installment).where(
                models.Installment.id == plan_id,
                models.Installment.user_id == user_id,
            )
        ).first()
        if plan is None:
            raise NotFound("Installment plan not found")
        owner = self.owning_bill_payment(plan_id)
        if owner is not None:
            raise PlanLocked(
                f"Installment plan belongs to bill payment {owner.id}; delete the bill payment instead"
            )

        try:
            entry_ids = [t.id for t in plan.transactions]
            removed = self.ledger.soft_delete(entry_ids, at=at)
            plan.transactions.clear()
            self.db.flush()
            self.db.delete(plan)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Installment plan %s deleted (%s entries)", plan_id, removed)
        return removed
