from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from billcycle import models
from billcycle.services.billing_cycle import BillingPeriod


UNCATEGORIZED_ID = "uncategorized"
UNCATEGORIZED_NAME = "Sem categoria"
UNCATEGORIZED_COLOR = "#9CA3AF"

# Synthetic entries written by the payment recorder / linker; carryover is
# reported separately by the resolver and must not be summed twice.
EXCLUDED_KINDS = (models.EntryKind.BILL_PAYMENT, models.EntryKind.BILL_CARRYOVER)


@dataclass
class CategoryTotal:
    id: int | str
    name: str
    color: Optional[str]
    total: float = 0.0
    count: int = 0
    percentage: float = 0.0


@dataclass
class LedgerAggregate:
    transaction_total: float
    transaction_count: int
    categories: list[CategoryTotal] = field(default_factory=list)
    transactions: list[models.Transaction] = field(default_factory=list)


def aggregate_entries(entries: Iterable[models.Transaction]) -> LedgerAggregate:
    """Sum absolute amounts per category.

    Deterministic for a given entry set: categories by total descending (ties by
    name), entries newest first (ties by id descending).
    """
    rows = list(entries)
    total = 0.0
    buckets: dict[int | str, CategoryTotal] = {}

    for txn in rows:
        value = abs(float(txn.amount))
        total += value
        if txn.category_id is not None and txn.category is not None:
            key: int | str = txn.category_id
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = CategoryTotal(
                    id=txn.category_id,
                    name=txn.category.name,
                    color=txn.category.color,
                )
        else:
            bucket = buckets.get(UNCATEGORIZED_ID)
            if bucket is None:
                bucket = buckets[UNCATEGORIZED_ID] = CategoryTotal(
                    id=UNCATEGORIZED_ID,
                    name=UNCATEGORIZED_NAME,
                    color=UNCATEGORIZED_COLOR,
                )
        bucket.total += value
        bucket.count += 1

    categories = sorted(buckets.values(), key=lambda c: (-c.total, c.name))
    for bucket in categories:
        bucket.total = round(bucket.total, 2)
        bucket.percentage = round(bucket.total / total * 100, 2) if total > 0 else 0.0

    ordered = sorted(rows, key=lambda t: (t.occurred_at, t.id or 0), reverse=True)
    return LedgerAggregate(
        transaction_total=round(total, 2),
        transaction_count=len(rows),
        categories=categories,
        transactions=ordered,
    )


class LedgerAggregator:
    """Load the live expenses of a bill period and aggregate them."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def entries_for(self, period: BillingPeriod, *, user_id: int, origin: str | None = None) -> list[models.Transaction]:
        stmt = (
            select(models.Transaction)
            .options(selectinload(models.Transaction.category))
            .where(
                models.Transaction.user_id == user_id,
                models.Transaction.deleted_at.is_(None),
                models.Transaction.type == models.TxnType.EXPENSE,
                models.Transaction.kind.not_in(EXCLUDED_KINDS),
                models.Transaction.occurred_at >= period.start_day,
                models.Transaction.occurred_at <= period.end_day,
            )
        )
        if origin:
            stmt = stmt.where(models.Transaction.origin == origin)
        return list(self.db.scalars(stmt))

    def aggregate(self, period: BillingPeriod, *, user_id: int, origin: str | None = None) -> LedgerAggregate:
        return aggregate_entries(self.entries_for(period, user_id=user_id, origin=origin))
