"""
Carryover statement line linking

When a bill is paid partially, the next statement shows the rolled balance as a
line such as "SALDO ROTATIVO". On import such a line is matched back to the
``BillPayment`` of the previous month so that:

- the realized interest (statement amount minus carried amount) replaces the
  estimate on the payment record
- the placeholder entry created with the payment is soft-deleted
- the imported line is tagged BILL_CARRYOVER and kept out of the bill total

Two pure stages (``classify``, ``resolve``) decide; ``CarryoverLinker`` applies
the result inside a savepoint.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from billcycle import models
from billcycle.core.clock import SystemClock
from billcycle.core.config import settings
from billcycle.errors import ReconciliationSkipped
from billcycle.services.ledger_store import LedgerStore
from billcycle.utils.months import previous_month


logger = logging.getLogger(__name__)


CARRYOVER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"SALDO\s*ANTERIOR",
        r"SALDO\s*FATURA\s*ANT",
        r"SALDO\s*ROTATIVO",
        r"ROTATIVO",
        r"FINANC(?:IAMENTO)?\s*FATURA",
        r"PARCELAMENTO\s*(?:DE\s*)?FATURA",
        r"PGTO\s*MINIMO",
        r"PAGAMENTO\s*MINIMO",
    )
)


@dataclass(frozen=True)
class CarryoverCandidate:
    """An imported entry that looks like a rolled-over balance."""

    origin: str
    month: int
    year: int
    amount: float

    @property
    def bill_month(self) -> int:
        return previous_month(self.year, self.month)[1]

    @property
    def bill_year(self) -> int:
        return previous_month(self.year, self.month)[0]


@dataclass(frozen=True)
class RealizedInterest:
    amount: float
    rate: float


@dataclass(frozen=True)
class CarryoverMatch:
    bill_payment_id: int
    bill_month: int
    bill_year: int
    amount_carried: float
    carryover_transaction_id: Optional[int]
    interest: RealizedInterest

    @property
    def from_bill(self) -> str:
        return f"{self.bill_month}/{self.bill_year}"


def is_carryover_description(description: str | None, patterns: Sequence[re.Pattern[str]] = CARRYOVER_PATTERNS) -> bool:
    """
    >>> is_carryover_description("SALDO ROTATIVO")
    True
    >>> is_carryover_description("NETFLIX")
    False
    """
    if not description:
        return False
    return any(p.search(description) for p in patterns)


def classify(
    description: str | None,
    origin: str,
    occurred_at: date,
    amount: float,
    *,
    patterns: Sequence[re.Pattern[str]] = CARRYOVER_PATTERNS,
) -> Optional[CarryoverCandidate]:
    if not is_carryover_description(description, patterns):
        return None
    return CarryoverCandidate(
        origin=origin,
        month=occurred_at.month,
        year=occurred_at.year,
        amount=abs(float(amount)),
    )


def calculate_realized_interest(expected: float, actual: float) -> RealizedInterest:
    """
    Interest implied by the statement amount versus what was carried.

    A statement amount below the carried balance yields a negative delta,
    returned as is.

    Example:
        >>> calculate_realized_interest(300, 320)
        RealizedInterest(amount=20.0, rate=6.6667)
    """
    expected = abs(float(expected))
    actual = abs(float(actual))
    delta = actual - expected
    rate = delta / expected * 100 if expected > 0 else 0.0
    return RealizedInterest(amount=round(delta, 2), rate=round(rate, 4))


def resolve(
    candidate: CarryoverCandidate,
    records: Iterable[models.BillPayment],
    *,
    tolerance: float = 0.5,
) -> Optional[CarryoverMatch]:
    """
    Pick the open payment record the candidate settles.

    A record qualifies when it has the candidate's origin, belongs to the
    previous month, still carries a balance, is unlinked and its carried amount
    lies within ``amount * (1 +- tolerance)``. Raises ReconciliationSkipped when
    more than one record qualifies.
    """
    low = candidate.amount * (1 - tolerance)
    high = candidate.amount * (1 + tolerance)
    survivors = [
        r for r in records
        if r.origin == candidate.origin
        and r.bill_month == candidate.bill_month
        and r.bill_year == candidate.bill_year
        and (r.amount_carried or 0) > 0
        and r.linked_transaction_id is None
        and low <= r.amount_carried <= high
    ]
    if not survivors:
        return None
    if len(survivors) > 1:
        raise ReconciliationSkipped(
            f"{len(survivors)} bill payments match carryover of {candidate.amount:.2f} "
            f"for {candidate.origin} {candidate.bill_month}/{candidate.bill_year}"
        )
    record = survivors[0]
    return CarryoverMatch(
        bill_payment_id=record.id,
        bill_month=record.bill_month,
        bill_year=record.bill_year,
        amount_carried=float(record.amount_carried),
        carryover_transaction_id=record.carryover_transaction_id,
        interest=calculate_realized_interest(record.amount_carried, candidate.amount),
    )


class CarryoverLinker:
    def __init__(
        self,
        db: Session,
        *,
        clock=None,
        ledger: LedgerStore | None = None,
        patterns: Sequence[re.Pattern[str]] = CARRYOVER_PATTERNS,
        tolerance: float | None = None,
    ) -> None:
        self.db = db
        self.clock = clock or SystemClock()
        self.ledger = ledger or LedgerStore(db)
        self.patterns = patterns
        self.tolerance = settings.CARRYOVER_AMOUNT_TOLERANCE if tolerance is None else tolerance

    def open_records(self, candidate: CarryoverCandidate, *, user_id: int) -> list[models.BillPayment]:
        stmt = select(models.BillPayment).where(
            models.BillPayment.user_id == user_id,
            models.BillPayment.origin == candidate.origin,
            models.BillPayment.bill_month == candidate.bill_month,
            models.BillPayment.bill_year == candidate.bill_year,
            models.BillPayment.amount_carried > 0,
            models.BillPayment.linked_transaction_id.is_(None),
        )
        # Rows already in the session may be stale
        return list(self.db.scalars(stmt.execution_options(populate_existing=True)))

    def link(self, entry: models.Transaction) -> Optional[CarryoverMatch]:
        """
        Link a freshly created entry to the payment record it settles.

        Runs in a savepoint: on ReconciliationSkipped or a storage error the
        savepoint is rolled back and the exception propagates, leaving the
        entry itself untouched in the outer transaction.
        """
        if entry.type != models.TxnType.EXPENSE:
            return None
        candidate = classify(entry.description, entry.origin, entry.occurred_at, entry.amount, patterns=self.patterns)
        if candidate is None:
            return None

        with self.db.begin_nested():
            match = resolve(candidate, self.open_records(candidate, user_id=entry.user_id), tolerance=self.tolerance)
            if match is None:
                logger.info(
                    "Carryover-like entry %s (%s) has no open bill payment for %s %s/%s",
                    entry.id, entry.description, candidate.origin, candidate.bill_month, candidate.bill_year,
                )
                return None

            result = self.db.execute(
                update(models.BillPayment)
                .where(
                    models.BillPayment.id == match.bill_payment_id,
                    models.BillPayment.linked_transaction_id.is_(None),
                )
                .values(
                    linked_transaction_id=entry.id,
                    interest_rate=match.interest.rate,
                    interest_amount=match.interest.amount,
                )
                .execution_options(synchronize_session="evaluate")
            )
            if result.rowcount != 1:
                raise ReconciliationSkipped(f"Bill payment {match.bill_payment_id} was linked concurrently")

            self.ledger.update(entry, kind=models.EntryKind.BILL_CARRYOVER)
            if match.carryover_transaction_id is not None:
                self.ledger.soft_delete([match.carryover_transaction_id], at=self.clock.now())

        if match.interest.amount < 0:
            logger.warning(
                "Carryover entry %s is %.2f below the carried balance of bill payment %s",
                entry.id, -match.interest.amount, match.bill_payment_id,
            )
        logger.info(
            "Carryover entry %s linked to bill payment %s (interest %.2f, rate %.4f%%)",
            entry.id, match.bill_payment_id, match.interest.amount, match.interest.rate,
        )
        return match
