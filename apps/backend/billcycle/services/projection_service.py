"""
Cash-flow projection

Deterministic, linear forecast for the current month and the next N-1:
- installments: plan entries already on the calendar, plus future installments
  synthesized from standalone "2/6"-style entries
- recurring templates: latest real amount (or the default) every month
- current month: actual spending and income so far plus recurring items not
  yet charged
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from billcycle import models
from billcycle.services.recurring_store import RecurringTemplateStore
from billcycle.utils.months import add_months, month_bounds, shift_months, short_month_label


DEFAULT_MONTHS = 6
MAX_MONTHS = 12


@dataclass(frozen=True)
class InstallmentItem:
    description: str
    amount: float
    occurred_at: date
    current_installment: int
    total_installments: int


@dataclass(frozen=True)
class RecurringItem:
    template_id: int
    description: str
    amount: float
    type: models.TxnType


@dataclass
class MonthProjection:
    month: int
    year: int
    month_label: str
    is_current_month: bool
    actual_expenses: float = 0.0
    actual_income: float = 0.0
    installments_total: float = 0.0
    installments_count: int = 0
    installments: list[InstallmentItem] = field(default_factory=list)
    recurring_expenses: float = 0.0
    recurring_income: float = 0.0
    recurring_items: list[RecurringItem] = field(default_factory=list)
    total_expenses: float = 0.0
    total_income: float = 0.0
    projected_balance: float = 0.0
    is_negative: bool = False


@dataclass(frozen=True)
class ProjectionTotals:
    total_installments: float
    total_recurring_expenses: float
    total_recurring_income: float
    net_projected_balance: float


@dataclass(frozen=True)
class Projection:
    months: list[MonthProjection]
    totals: ProjectionTotals


def clamp_months(months: Optional[int]) -> int:
    if months is None:
        return DEFAULT_MONTHS
    return max(1, min(int(months), MAX_MONTHS))


def projection_window(now: date | datetime, months: int) -> tuple[date, date]:
    start, _ = month_bounds(now.year, now.month)
    last_year, last_month = add_months(now.year, now.month, months - 1)
    _, end = month_bounds(last_year, last_month)
    return start, end


def synthesize_standalone(entry: models.Transaction, window_start: date, window_end: date) -> list[InstallmentItem]:
    """
    Remaining installments of an entry carrying only its "current/total" counters.

    Example: an entry on 2024-01-10 marked 2/6 yields installments 3..6 on
    2024-02-10 .. 2024-05-10, minus those outside the window.
    """
    if not entry.current_installment or not entry.total_installments:
        return []
    remaining = entry.total_installments - entry.current_installment
    items: list[InstallmentItem] = []
    for k in range(1, remaining + 1):
        when = shift_months(entry.occurred_at, k)
        if window_start <= when <= window_end:
            items.append(
                InstallmentItem(
                    description=entry.description,
                    amount=abs(float(entry.amount)),
                    occurred_at=when,
                    current_installment=entry.current_installment + k,
                    total_installments=entry.total_installments,
                )
            )
    return items


class ProjectionService:
    def __init__(self, db: Session, *, recurring: RecurringTemplateStore | None = None) -> None:
        self.db = db
        self.recurring = recurring or RecurringTemplateStore(db)

    def _grouped_installments(self, user_id: int, start: date, end: date) -> list[InstallmentItem]:
        stmt = (
            select(models.Transaction)
            .options(selectinload(models.Transaction.installment))
            .where(
                models.Transaction.user_id == user_id,
                models.Transaction.deleted_at.is_(None),
                models.Transaction.is_installment.is_(True),
                models.Transaction.installment_id.is_not(None),
                models.Transaction.occurred_at >= start,
                models.Transaction.occurred_at <= end,
            )
            .order_by(models.Transaction.occurred_at, models.Transaction.id)
        )
        return [
            InstallmentItem(
                description=t.description,
                amount=abs(float(t.amount)),
                occurred_at=t.occurred_at,
                current_installment=t.current_installment or 1,
                total_installments=(t.installment.total_installments if t.installment else t.total_installments) or 1,
            )
            for t in self.db.scalars(stmt)
        ]

    def _standalone_installments(self, user_id: int, start: date, end: date) -> list[InstallmentItem]:
        stmt = select(models.Transaction).where(
            models.Transaction.user_id == user_id,
            models.Transaction.deleted_at.is_(None),
            models.Transaction.is_installment.is_(True),
            models.Transaction.installment_id.is_(None),
            models.Transaction.current_installment.is_not(None),
            models.Transaction.total_installments.is_not(None),
        )
        items: list[InstallmentItem] = []
        for entry in self.db.scalars(stmt):
            items.extend(synthesize_standalone(entry, start, end))
        return items

    def _recurring_items(self, user_id: int) -> list[RecurringItem]:
        items = []
        for template in self.recurring.find_active(user_id=user_id):
            latest = self.recurring.latest_amount_for(template.id)
            amount = latest if latest is not None else float(template.default_amount)
            items.append(
                RecurringItem(
                    template_id=template.id,
                    description=template.description,
                    amount=abs(amount),
                    type=template.type,
                )
            )
        return items

    def _current_month_entries(self, user_id: int, now: date | datetime) -> list[models.Transaction]:
        start, end = month_bounds(now.year, now.month)
        stmt = select(models.Transaction).where(
            models.Transaction.user_id == user_id,
            models.Transaction.deleted_at.is_(None),
            models.Transaction.occurred_at >= start,
            models.Transaction.occurred_at <= end,
        )
        return list(self.db.scalars(stmt))

    def project(self, *, user_id: int, now: date | datetime, months: Optional[int] = None) -> Projection:
        count = clamp_months(months)
        window_start, window_end = projection_window(now, count)

        installments = self._grouped_installments(user_id, window_start, window_end)
        installments += self._standalone_installments(user_id, window_start, window_end)
        recurring = self._recurring_items(user_id)

        current_entries = self._current_month_entries(user_id, now)
        actual_expenses = sum(abs(float(t.amount)) for t in current_entries if t.type == models.TxnType.EXPENSE)
        actual_income = sum(abs(float(t.amount)) for t in current_entries if t.type == models.TxnType.INCOME)
        charged = {t.recurring_expense_id for t in current_entries if t.recurring_expense_id is not None}
        pending = [r for r in recurring if r.template_id not in charged]

        result: list[MonthProjection] = []
        total_installments = total_rec_expenses = total_rec_income = 0.0

        for offset in range(count):
            year, month = add_months(now.year, now.month, offset)
            is_current = offset == 0
            month_items = [i for i in installments if i.occurred_at.year == year and i.occurred_at.month == month]
            rec_items = pending if is_current else recurring

            proj = MonthProjection(
                month=month,
                year=year,
                month_label=short_month_label(month, year),
                is_current_month=is_current,
                installments=month_items,
                installments_count=len(month_items),
                installments_total=round(sum(i.amount for i in month_items), 2),
                recurring_items=list(rec_items),
                recurring_expenses=round(sum(r.amount for r in rec_items if r.type == models.TxnType.EXPENSE), 2),
                recurring_income=round(sum(r.amount for r in rec_items if r.type == models.TxnType.INCOME), 2),
            )
            if is_current:
                # Actuals already include whatever installments were charged this month
                proj.actual_expenses = round(actual_expenses, 2)
                proj.actual_income = round(actual_income, 2)
                proj.total_expenses = round(proj.actual_expenses + proj.recurring_expenses, 2)
                proj.total_income = round(proj.actual_income + proj.recurring_income, 2)
            else:
                proj.total_expenses = round(proj.installments_total + proj.recurring_expenses, 2)
                proj.total_income = proj.recurring_income
            proj.projected_balance = round(proj.total_income - proj.total_expenses, 2)
            proj.is_negative = proj.projected_balance < 0

            total_installments += proj.installments_total
            total_rec_expenses += proj.recurring_expenses
            total_rec_income += proj.recurring_income
            result.append(proj)

        totals = ProjectionTotals(
            total_installments=round(total_installments, 2),
            total_recurring_expenses=round(total_rec_expenses, 2),
            total_recurring_income=round(total_rec_income, 2),
            net_projected_balance=round(total_rec_income - total_installments - total_rec_expenses, 2),
        )
        return Projection(months=result, totals=totals)
