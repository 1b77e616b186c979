from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Index,
    Boolean,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .core.clock import now_local_naive
from .core.database import Base


# Money columns come back as float; installment splits use Decimal explicitly.
Money = Numeric(18, 4, asdecimal=False)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=now_local_naive, onupdate=now_local_naive, nullable=False)


class User(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(default=True, nullable=False)


class TxnType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class EntryKind(str, Enum):
    """Origin of a ledger entry.

    REGULAR: entered by the user or imported from a statement
    BILL_PAYMENT: amount paid (or financing down payment) on a bill
    BILL_CARRYOVER: balance rolled into the next cycle, either the placeholder
        created with a partial payment or the imported statement line linked to it
    FINANCING: one installment of a financed bill
    """

    REGULAR = "REGULAR"
    BILL_PAYMENT = "BILL_PAYMENT"
    BILL_CARRYOVER = "BILL_CARRYOVER"
    FINANCING = "FINANCING"


class BillPaymentType(str, Enum):
    PARTIAL = "PARTIAL"
    FINANCED = "FINANCED"


class Category(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    color: Mapped[str | None] = mapped_column(String(9))

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_category_name"),
    )


class CategoryRule(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    keyword: Mapped[str] = mapped_column(String(120), nullable=False)
    category_id: Mapped[int] = mapped_column(ForeignKey("category.id", ondelete="CASCADE"), nullable=False)

    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        UniqueConstraint("user_id", "keyword", name="uq_category_rule_keyword"),
    )


class Installment(Base, TimestampMixin):
    """Installment plan owning one ledger entry per installment."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    total_amount: Mapped[float] = mapped_column(Money, nullable=False)
    total_installments: Mapped[int] = mapped_column(Integer, nullable=False)
    installment_amount: Mapped[float] = mapped_column(Money, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    origin: Mapped[str] = mapped_column(String(120), nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship(
        "Transaction",
        back_populates="installment",
        order_by="Transaction.current_installment",
    )

    __table_args__ = (
        CheckConstraint("total_installments >= 1", name="ck_installment_count_positive"),
    )


class RecurringExpense(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    description: Mapped[str] = mapped_column(String(200), nullable=False)
    default_amount: Mapped[float] = mapped_column(Money, nullable=False)
    day_of_month: Mapped[int] = mapped_column(Integer, nullable=False)  # 1-28
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type"), nullable=False)
    origin: Mapped[str] = mapped_column(String(120), nullable=False)
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id", ondelete="SET NULL"))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # False: waits for an imported entry to link instead of generating one
    auto_generate: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    transactions: Mapped[list["Transaction"]] = relationship("Transaction", back_populates="recurring_expense")


class Transaction(Base, TimestampMixin):
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    description: Mapped[str] = mapped_column(String(300), nullable=False)
    amount: Mapped[float] = mapped_column(Money, nullable=False)
    occurred_at: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[TxnType] = mapped_column(SAEnum(TxnType, name="txn_type"), nullable=False)
    kind: Mapped[EntryKind] = mapped_column(
        SAEnum(EntryKind, name="entry_kind"),
        nullable=False,
        default=EntryKind.REGULAR,
    )
    category_id: Mapped[int | None] = mapped_column(ForeignKey("category.id", ondelete="SET NULL"))
    origin: Mapped[str] = mapped_column(String(120), nullable=False)
    is_fixed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_installment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    current_installment: Mapped[int | None] = mapped_column(Integer)
    total_installments: Mapped[int | None] = mapped_column(Integer)
    installment_id: Mapped[int | None] = mapped_column(ForeignKey("installment.id", ondelete="SET NULL"))
    recurring_expense_id: Mapped[int | None] = mapped_column(ForeignKey("recurringexpense.id", ondelete="SET NULL"))
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime)

    category: Mapped["Category | None"] = relationship("Category")
    installment: Mapped["Installment | None"] = relationship("Installment", back_populates="transactions")
    recurring_expense: Mapped["RecurringExpense | None"] = relationship(
        "RecurringExpense",
        back_populates="transactions",
    )

    __table_args__ = (
        CheckConstraint(
            "current_installment IS NULL OR current_installment >= 1",
            name="ck_txn_installment_positive",
        ),
        Index("ix_txn_user_date", "user_id", "occurred_at"),
        Index("ix_txn_installment_id", "installment_id"),
        Index("ix_txn_deleted_at", "deleted_at"),
    )


class BillPayment(Base, TimestampMixin):
    """Partial or financed payment decision for one bill (origin + month)."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("user.id"), nullable=False)
    origin: Mapped[str] = mapped_column(String(120), nullable=False)
    bill_month: Mapped[int] = mapped_column(Integer, nullable=False)
    bill_year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_bill_amount: Mapped[float] = mapped_column(Money, nullable=False)
    amount_paid: Mapped[float] = mapped_column(Money, nullable=False)
    amount_carried: Mapped[float] = mapped_column(Money, nullable=False)
    payment_type: Mapped[BillPaymentType] = mapped_column(
        SAEnum(BillPaymentType, name="bill_payment_type"),
        nullable=False,
    )
    interest_rate: Mapped[float | None] = mapped_column(Numeric(9, 4, asdecimal=False))
    interest_amount: Mapped[float | None] = mapped_column(Money)
    installment_id: Mapped[int | None] = mapped_column(ForeignKey("installment.id", ondelete="SET NULL"))
    entry_transaction_id: Mapped[int | None] = mapped_column(ForeignKey("transaction.id", ondelete="SET NULL"))
    carryover_transaction_id: Mapped[int | None] = mapped_column(ForeignKey("transaction.id", ondelete="SET NULL"))
    linked_transaction_id: Mapped[int | None] = mapped_column(ForeignKey("transaction.id", ondelete="SET NULL"))

    installment: Mapped["Installment | None"] = relationship("Installment", foreign_keys=[installment_id])

    __table_args__ = (
        UniqueConstraint("user_id", "origin", "bill_month", "bill_year", name="uq_bill_payment_period"),
        UniqueConstraint("linked_transaction_id", name="uq_bill_payment_linked_transaction_id"),
        CheckConstraint("bill_month BETWEEN 1 AND 12", name="ck_bill_payment_month"),
        CheckConstraint("amount_paid < total_bill_amount", name="ck_bill_payment_partial"),
        CheckConstraint("amount_carried >= 0", name="ck_bill_payment_carried_non_negative"),
        Index("ix_bill_payment_user_period", "user_id", "bill_year", "bill_month"),
    )
