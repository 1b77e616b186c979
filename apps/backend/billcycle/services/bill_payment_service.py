"""
Bill payment recording

A bill paid in full needs no record. Paying less produces a ``BillPayment``:

- PARTIAL ("rolar saldo"): the remainder (plus interest) rolls into next
  month's bill. A placeholder BILL_CARRYOVER entry stands in for it until the
  real statement line is imported and linked.
- FINANCED ("parcelar"): the remainder (plus interest) becomes an installment
  plan starting next month.

Responsibilities:
- validation before any write
- carried balance / interest computation
- generating and rebuilding the spawned ledger entries
- cleanup on delete, expressed as an explicit plan applied atomically
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from billcycle import models
from billcycle.core.clock import SystemClock
from billcycle.core.config import settings
from billcycle.errors import DuplicatePayment, InvalidPayment, NotFound
from billcycle.services.installment_service import InstallmentPlanService, split_amount
from billcycle.services.ledger_store import LedgerStore
from billcycle.utils.months import bill_label, clamp_day, next_month


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentFigures:
    amount_carried: float
    interest_rate: Optional[float]
    interest_amount: Optional[float]

    @property
    def rolled_amount(self) -> float:
        """Carried balance plus interest: what the next cycle (or the plan) owes."""
        return round(self.amount_carried + (self.interest_amount or 0.0), 2)


@dataclass(frozen=True)
class BillPaymentCleanupPlan:
    """Everything removing (or rebuilding) a bill payment touches, decided up front."""

    bill_payment_id: int
    soft_delete_entry_ids: tuple[int, ...]
    installment_id: Optional[int]
    delete_record: bool


def validate_payment(
    *,
    bill_month: int,
    payment_type: str | models.BillPaymentType,
    total_bill_amount: float,
    amount_paid: float,
    installments: Optional[int] = None,
    interest_rate: Optional[float] = None,
) -> models.BillPaymentType:
    """Check a payment request; returns the parsed payment type or raises InvalidPayment."""
    if not isinstance(bill_month, int) or not 1 <= bill_month <= 12:
        raise InvalidPayment("billMonth must be between 1 and 12")
    try:
        ptype = models.BillPaymentType(payment_type)
    except ValueError:
        raise InvalidPayment("paymentType must be 'PARTIAL' or 'FINANCED'") from None
    if total_bill_amount is None or total_bill_amount <= 0:
        raise InvalidPayment("totalBillAmount must be positive")
    if amount_paid is None or amount_paid < 0:
        raise InvalidPayment("amountPaid must not be negative")
    if amount_paid >= total_bill_amount:
        raise InvalidPayment("amountPaid must be less than totalBillAmount for a partial payment")
    if ptype == models.BillPaymentType.FINANCED and (installments is None or installments < 2):
        raise InvalidPayment("Financing needs at least 2 installments")
    if interest_rate is not None and interest_rate < 0:
        raise InvalidPayment("interestRate must not be negative")
    return ptype


def compute_figures(total_bill_amount: float, amount_paid: float, interest_rate: Optional[float]) -> PaymentFigures:
    """
    amount_carried = total - paid; interest = carried * rate / 100 when a rate is set.

    Example:
        >>> compute_figures(1000, 600, 10)
        PaymentFigures(amount_carried=400.0, interest_rate=10, interest_amount=40.0)
    """
    carried = float(Decimal(str(total_bill_amount)) - Decimal(str(amount_paid)))
    interest = round(carried * interest_rate / 100, 2) if interest_rate else None
    return PaymentFigures(amount_carried=carried, interest_rate=interest_rate, interest_amount=interest)


class BillPaymentService:
    def __init__(
        self,
        db: Session,
        *,
        clock=None,
        ledger: LedgerStore | None = None,
        plans: InstallmentPlanService | None = None,
        entry_day: int | None = None,
    ) -> None:
        self.db = db
        self.clock = clock or SystemClock()
        self.ledger = ledger or LedgerStore(db)
        self.plans = plans or InstallmentPlanService(db, self.ledger)
        self.entry_day = entry_day or settings.GENERATED_ENTRY_DAY

    # ---- Queries ---------------------------------------------------------
    def list_payments(
        self,
        *,
        user_id: int,
        month: Optional[int] = None,
        year: Optional[int] = None,
        origin: Optional[str] = None,
    ) -> list[models.BillPayment]:
        stmt = (
            select(models.BillPayment)
            .options(selectinload(models.BillPayment.installment))
            .where(models.BillPayment.user_id == user_id)
        )
        if month is not None:
            stmt = stmt.where(models.BillPayment.bill_month == month)
        if year is not None:
            stmt = stmt.where(models.BillPayment.bill_year == year)
        if origin:
            stmt = stmt.where(models.BillPayment.origin == origin)
        stmt = stmt.order_by(
            models.BillPayment.bill_year.desc(),
            models.BillPayment.bill_month.desc(),
            models.BillPayment.id.desc(),
        )
        return list(self.db.scalars(stmt))

    def get(self, payment_id: int, *, user_id: int) -> models.BillPayment:
        row = self.db.scalars(
            select(models.BillPayment).where(
                models.BillPayment.id == payment_id,
                models.BillPayment.user_id == user_id,
            )
        ).first()
        if row is None:
            raise NotFound("Bill payment not found")
        return row

    def find_for_period(self, *, user_id: int, origin: str, bill_month: int, bill_year: int) -> Optional[models.BillPayment]:
        return self.db.scalars(
            select(models.BillPayment).where(
                models.BillPayment.user_id == user_id,
                models.BillPayment.origin == origin,
                models.BillPayment.bill_month == bill_month,
                models.BillPayment.bill_year == bill_year,
            )
        ).first()

    # ---- Create ----------------------------------------------------------
    def record_payment(
        self,
        *,
        user_id: int,
        origin: str,
        bill_month: int,
        bill_year: int,
        total_bill_amount: float,
        payment_type: str,
        amount_paid: float,
        installments: Optional[int] = None,
        interest_rate: Optional[float] = None,
        category_id: Optional[int] = None,
    ) -> models.BillPayment:
        ptype = validate_payment(
            bill_month=bill_month,
            payment_type=payment_type,
            total_bill_amount=total_bill_amount,
            amount_paid=amount_paid,
            installments=installments,
            interest_rate=interest_rate,
        )
        duplicate_message = f"A payment is already recorded for bill {bill_month}/{bill_year} - {origin}"
        if self.find_for_period(user_id=user_id, origin=origin, bill_month=bill_month, bill_year=bill_year):
            raise DuplicatePayment(duplicate_message)

        figures = compute_figures(total_bill_amount, amount_paid, interest_rate)
        try:
            record = models.BillPayment(
                user_id=user_id,
                origin=origin,
                bill_month=bill_month,
                bill_year=bill_year,
                total_bill_amount=total_bill_amount,
                amount_paid=amount_paid,
                amount_carried=figures.amount_carried,
                payment_type=ptype,
                interest_rate=figures.interest_rate,
                interest_amount=figures.interest_amount,
            )
            self.db.add(record)
            self.db.flush()
            self._spawn_entries(record, figures, installments=installments, category_id=category_id)
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            # Lost the race against a concurrent insert for the same period
            if self.find_for_period(user_id=user_id, origin=origin, bill_month=bill_month, bill_year=bill_year):
                raise DuplicatePayment(duplicate_message) from exc
            raise
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        logger.info(
            "Bill payment %s recorded: %s %s/%s %s paid=%.2f carried=%.2f",
            record.id, origin, bill_month, bill_year, ptype.value, amount_paid, figures.amount_carried,
        )
        return record

    # ---- Update ----------------------------------------------------------
    def update_payment(self, payment_id: int, *, user_id: int, patch: dict) -> models.BillPayment:
        """
        Apply a partial edit and rebuild the spawned entries.

        Figures are always recomputed from the stored total_bill_amount.
        An explicit ``interest_rate: None`` clears the rate. Only a supplied
        rate is validated; a stored realized rate may be negative.
        """
        record = self.get(payment_id, user_id=user_id)
        changes = {
            key: value for key, value in patch.items()
            if key == "interest_rate" or value is not None
        }
        if not changes:
            raise InvalidPayment("No valid fields to update")

        amount_paid = changes.get("amount_paid", record.amount_paid)
        payment_type = changes.get("payment_type", record.payment_type.value)
        interest_rate = changes["interest_rate"] if "interest_rate" in changes else record.interest_rate
        installments = changes.get("installments")
        if installments is None and record.installment is not None:
            installments = record.installment.total_installments

        ptype = validate_payment(
            bill_month=record.bill_month,
            payment_type=payment_type,
            total_bill_amount=record.total_bill_amount,
            amount_paid=amount_paid,
            installments=installments,
            interest_rate=changes.get("interest_rate"),
        )
        figures = compute_figures(record.total_bill_amount, amount_paid, interest_rate)
        category_id = self._spawned_category(record)
        cleanup = self.build_cleanup_plan(record, delete_record=False)

        try:
            self._apply_cleanup(cleanup, record)
            record.amount_paid = amount_paid
            record.amount_carried = figures.amount_carried
            record.payment_type = ptype
            record.interest_rate = figures.interest_rate
            record.interest_amount = figures.interest_amount
            record.entry_transaction_id = None
            record.carryover_transaction_id = None
            self.db.flush()
            self._spawn_entries(record, figures, installments=installments, category_id=category_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(record)
        logger.info("Bill payment %s updated: %s", record.id, sorted(changes))
        return record

    # ---- Delete ----------------------------------------------------------
    def build_cleanup_plan(self, record: models.BillPayment, *, delete_record: bool = True) -> BillPaymentCleanupPlan:
        entry_ids: list[int] = []
        for txn_id in (record.entry_transaction_id, record.carryover_transaction_id):
            if txn_id is not None:
                entry_ids.append(txn_id)
        if record.installment is not None:
            entry_ids.extend(t.id for t in record.installment.transactions if t.id not in entry_ids)
        return BillPaymentCleanupPlan(
            bill_payment_id=record.id,
            soft_delete_entry_ids=tuple(entry_ids),
            installment_id=record.installment_id,
            delete_record=delete_record,
        )

    def delete_payment(self, payment_id: int, *, user_id: int) -> BillPaymentCleanupPlan:
        record = self.get(payment_id, user_id=user_id)
        cleanup = self.build_cleanup_plan(record)
        try:
            self._apply_cleanup(cleanup, record)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(
            "Bill payment %s deleted: %s entries soft-deleted, plan=%s",
            payment_id, len(cleanup.soft_delete_entry_ids), cleanup.installment_id,
        )
        return cleanup

    # ---- Internals -------------------------------------------------------
    def _apply_cleanup(self, cleanup: BillPaymentCleanupPlan, record: models.BillPayment) -> None:
        self.ledger.soft_delete(cleanup.soft_delete_entry_ids, at=self.clock.now())
        if cleanup.installment_id is not None:
            plan = self.db.get(models.Installment, cleanup.installment_id)
            record.installment = None
            if plan is not None:
                # Entries keep their history but no longer point at the removed plan
                plan.transactions.clear()
                self.db.flush()
                self.db.delete(plan)
        if cleanup.delete_record:
            self.db.delete(record)
        self.db.flush()

    def _spawned_category(self, record: models.BillPayment) -> Optional[int]:
        for txn_id in (record.entry_transaction_id, record.carryover_transaction_id):
            if txn_id is None:
                continue
            txn = self.db.get(models.Transaction, txn_id)
            if txn is not None and txn.category_id is not None:
                return txn.category_id
        if record.installment is not None and record.installment.transactions:
            return record.installment.transactions[0].category_id
        return None

    def _spawn_entries(
        self,
        record: models.BillPayment,
        figures: PaymentFigures,
        *,
        installments: Optional[int],
        category_id: Optional[int],
    ) -> None:
        label = bill_label(record.bill_month, record.bill_year, "/")
        bill_date = clamp_day(record.bill_year, record.bill_month, self.entry_day)
        next_year, next_month_ = next_month(record.bill_year, record.bill_month)
        following_date = clamp_day(next_year, next_month_, self.entry_day)
        common = dict(
            user_id=record.user_id,
            type=models.TxnType.EXPENSE,
            origin=record.origin,
            category_id=category_id,
        )

        if record.payment_type == models.BillPaymentType.PARTIAL:
            if record.amount_paid > 0:
                entry = self.ledger.create(
                    description=f"Pagamento Fatura {label} - {record.origin}",
                    amount=-abs(record.amount_paid),
                    occurred_at=bill_date,
                    kind=models.EntryKind.BILL_PAYMENT,
                    **common,
                )
                record.entry_transaction_id = entry.id
            # Once the real statement line is linked, a placeholder would double count
            if record.linked_transaction_id is None:
                placeholder = self.ledger.create(
                    description=f"Saldo Anterior Fatura {label} - {record.origin}",
                    amount=-figures.rolled_amount,
                    occurred_at=following_date,
                    kind=models.EntryKind.BILL_CARRYOVER,
                    **common,
                )
                record.carryover_transaction_id = placeholder.id
        else:
            if record.amount_paid > 0:
                entry = self.ledger.create(
                    description=f"Entrada Financiamento Fatura {label} - {record.origin}",
                    amount=-abs(record.amount_paid),
                    occurred_at=bill_date,
                    kind=models.EntryKind.BILL_PAYMENT,
                    **common,
                )
                record.entry_transaction_id = entry.id
            plan = self.plans.create_plan(
                user_id=record.user_id,
                description=f"Financiamento Fatura {label} - {record.origin}",
                origin=record.origin,
                installment_amounts=split_amount(figures.rolled_amount, installments),
                start_date=following_date,
                kind=models.EntryKind.FINANCING,
                category_id=category_id,
            )
            record.installment = plan
        self.db.flush()
