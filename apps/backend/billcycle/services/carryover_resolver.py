from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.services.billing_cycle import BillingPeriod
from billcycle.utils.months import bill_label, previous_month


@dataclass(frozen=True)
class CarryoverInfo:
    """Unpaid balance (plus interest) rolled into a bill from the previous one."""

    amount: float
    interest: float
    from_bill_label: str
    bill_payment_ids: tuple[int, ...]

    @property
    def bill_payment_id(self) -> int:
        return self.bill_payment_ids[0]

    @property
    def total(self) -> float:
        return round(self.amount + self.interest, 2)


def summarize_carryover(records: Iterable[models.BillPayment]) -> CarryoverInfo | None:
    """Fold partial-payment records of one bill month into a single CarryoverInfo.

    Returns None when nothing was carried; a zero carryover is never reported.
    """
    rows = [
        r for r in records
        if r.payment_type == models.BillPaymentType.PARTIAL and (r.amount_carried or 0) > 0
    ]
    if not rows:
        return None
    rows.sort(key=lambda r: r.id)
    first = rows[0]
    return CarryoverInfo(
        amount=round(sum(float(r.amount_carried) for r in rows), 2),
        interest=round(sum(float(r.interest_amount or 0) for r in rows), 2),
        from_bill_label=bill_label(first.bill_month, first.bill_year),
        bill_payment_ids=tuple(r.id for r in rows),
    )


def bill_total(transaction_total: float, carryover: CarryoverInfo | None) -> float:
    if carryover is None:
        return round(transaction_total, 2)
    return round(transaction_total + carryover.amount + carryover.interest, 2)


class CarryoverResolver:
    def __init__(self, db: Session) -> None:
        self.db = db

    def resolve(self, period: BillingPeriod, *, user_id: int, origin: str | None = None) -> CarryoverInfo | None:
        prev_year, prev_month = previous_month(period.year, period.month)
        stmt = select(models.BillPayment).where(
            models.BillPayment.user_id == user_id,
            models.BillPayment.bill_month == prev_month,
            models.BillPayment.bill_year == prev_year,
            models.BillPayment.payment_type == models.BillPaymentType.PARTIAL,
            models.BillPayment.amount_carried > 0,
        )
        if origin:
            stmt = stmt.where(models.BillPayment.origin == origin)
        return summarize_carryover(self.db.scalars(stmt))
