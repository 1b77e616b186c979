from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.config import settings
from billcycle.services.bill_aggregator import CategoryTotal, LedgerAggregator
from billcycle.services.billing_cycle import get_bill_periods
from billcycle.services.carryover_resolver import CarryoverInfo, CarryoverResolver, bill_total


@dataclass
class BillSummary:
    label: str
    month: int
    year: int
    origin: Optional[str]
    start_date: datetime
    end_date: datetime
    due_date: datetime
    total: float
    transaction_total: float
    transaction_count: int
    carryover: Optional[CarryoverInfo]
    categories: list[CategoryTotal] = field(default_factory=list)
    transactions: list[models.Transaction] = field(default_factory=list)
    previous_total: Optional[float] = None
    change_percentage: Optional[float] = None


@dataclass
class BillsOverview:
    closing_day: int
    bills: list[BillSummary]
    origins: list[str]


def change_percentage(current: float, previous: Optional[float]) -> Optional[float]:
    if not previous:
        return None
    return round((current - previous) / previous * 100, 2)


class BillOverviewService:
    """Compose periods, aggregates and carryovers into the bills listing."""

    def __init__(self, db: Session) -> None:
        self.db = db
        self.aggregator = LedgerAggregator(db)
        self.resolver = CarryoverResolver(db)

    def origins(self, *, user_id: int) -> list[str]:
        stmt = (
            select(models.Transaction.origin)
            .where(models.Transaction.user_id == user_id, models.Transaction.deleted_at.is_(None))
            .distinct()
            .order_by(models.Transaction.origin)
        )
        return [o for o in self.db.scalars(stmt) if o]

    def get_bills(
        self,
        *,
        user_id: int,
        now: date | datetime,
        closing_day: Optional[int] = None,
        origin: Optional[str] = None,
        count: Optional[int] = None,
    ) -> BillsOverview:
        closing_day = settings.DEFAULT_CLOSING_DAY if closing_day is None else closing_day
        periods = get_bill_periods(
            closing_day,
            now=now,
            count=count or settings.BILL_PERIOD_COUNT,
            due_offset_days=settings.DUE_DATE_OFFSET_DAYS,
            origin=origin,
        )

        bills: list[BillSummary] = []
        for period in periods:
            aggregate = self.aggregator.aggregate(period, user_id=user_id, origin=origin)
            carryover = self.resolver.resolve(period, user_id=user_id, origin=origin)
            bills.append(
                BillSummary(
                    label=period.label,
                    month=period.month,
                    year=period.year,
                    origin=origin,
                    start_date=period.start_date,
                    end_date=period.end_date,
                    due_date=period.due_date,
                    total=bill_total(aggregate.transaction_total, carryover),
                    transaction_total=aggregate.transaction_total,
                    transaction_count=aggregate.transaction_count,
                    carryover=carryover,
                    categories=aggregate.categories,
                    transactions=aggregate.transactions,
                )
            )

        # Periods are most recent first, so the previous bill is the next item
        for current, previous in zip(bills, bills[1:]):
            current.previous_total = previous.total
            current.change_percentage = change_percentage(current.total, previous.total)

        return BillsOverview(closing_day=closing_day, bills=bills, origins=self.origins(user_id=user_id))
