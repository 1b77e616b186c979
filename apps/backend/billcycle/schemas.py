from __future__ import annotations

import datetime as dt
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import BillPaymentType, EntryKind, TxnType


class CamelModel(BaseModel):
    """Base for API payloads: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


def _strip_time(value):
    # "2024-02-10T12:00:00" -> "2024-02-10"; statement exports mix both forms
    if isinstance(value, str) and "T" in value:
        return value.split("T", 1)[0]
    return value


class CategoryOut(CamelModel):
    id: int
    name: str
    color: Optional[str] = None


class InstallmentRef(CamelModel):
    id: int
    description: str
    total_amount: float
    total_installments: int
    installment_amount: float
    start_date: dt.date
    origin: str


class TransactionOut(CamelModel):
    id: int
    description: str
    amount: float
    occurred_at: dt.date = Field(validation_alias=AliasChoices("date", "occurred_at"), serialization_alias="date")
    type: TxnType
    kind: EntryKind
    origin: str
    category_id: Optional[int] = None
    category: Optional[CategoryOut] = None
    is_fixed: bool
    is_installment: bool
    current_installment: Optional[int] = None
    total_installments: Optional[int] = None
    installment_id: Optional[int] = None
    recurring_expense_id: Optional[int] = None
    deleted_at: Optional[dt.datetime] = None


class TransactionCreate(CamelModel):
    description: str = Field(..., min_length=1, max_length=300)
    amount: float
    occurred_at: dt.date = Field(validation_alias=AliasChoices("date", "occurredAt", "occurred_at"))
    type: TxnType = TxnType.EXPENSE
    origin: Optional[str] = Field(default=None, max_length=120)
    category_id: Optional[int] = None
    is_fixed: bool = False
    is_installment: bool = False
    current_installment: Optional[int] = Field(default=None, ge=1)
    total_installments: Optional[int] = Field(default=None, ge=1)
    installment_amount: Optional[float] = None
    # With is_installment and total_installments >= 2, materialize a plan and its entries
    create_plan: bool = True

    @field_validator("occurred_at", mode="before")
    @classmethod
    def strip_time(cls, value):
        return _strip_time(value)


class InstallmentPlanOut(InstallmentRef):
    transactions: list[TransactionOut] = []


# ---- Import ---------------------------------------------------------------

class ImportedEntry(CamelModel):
    description: str = Field(..., min_length=1, max_length=300)
    amount: float
    occurred_at: dt.date = Field(validation_alias=AliasChoices("date", "occurredAt", "occurred_at"))
    type: TxnType = TxnType.EXPENSE
    origin: Optional[str] = Field(default=None, max_length=120)
    category_id: Optional[int] = None
    is_installment: bool = False
    current_installment: Optional[int] = Field(default=None, ge=1)
    total_installments: Optional[int] = Field(default=None, ge=1)

    @field_validator("occurred_at", mode="before")
    @classmethod
    def strip_time(cls, value):
        return _strip_time(value)


class ImportRequest(CamelModel):
    transactions: list[ImportedEntry]
    origin: Optional[str] = Field(default=None, max_length=120)


class LinkedCarryoverOut(CamelModel):
    transaction_id: int
    bill_payment_id: int
    from_bill: str
    interest_rate: float
    interest_amount: float


class ImportResult(CamelModel):
    message: str
    count: int
    linked_count: int
    carryover_linked_count: int
    linked_carryovers: list[LinkedCarryoverOut]


# ---- Bill payments --------------------------------------------------------

class BillPaymentCreate(CamelModel):
    origin: str = Field(..., min_length=1, max_length=120)
    bill_month: int
    bill_year: int = Field(..., ge=1900, le=9999)
    total_bill_amount: float
    # Kept as a plain string so an unknown type is answered by the service as InvalidPayment
    payment_type: str
    amount_paid: float
    installments: Optional[int] = None
    interest_rate: Optional[float] = None
    category_id: Optional[int] = None


class BillPaymentUpdate(CamelModel):
    interest_rate: Optional[float] = None
    amount_paid: Optional[float] = None
    payment_type: Optional[str] = None
    installments: Optional[int] = None


class BillPaymentOut(CamelModel):
    id: int
    origin: str
    bill_month: int
    bill_year: int
    total_bill_amount: float
    amount_paid: float
    amount_carried: float
    payment_type: BillPaymentType
    interest_rate: Optional[float] = None
    interest_amount: Optional[float] = None
    installment_id: Optional[int] = None
    entry_transaction_id: Optional[int] = None
    carryover_transaction_id: Optional[int] = None
    linked_transaction_id: Optional[int] = None
    installment: Optional[InstallmentRef] = None
    created_at: dt.datetime
    updated_at: dt.datetime


class DeleteResult(CamelModel):
    success: bool = True
    message: Optional[str] = None
    count: Optional[int] = None


# ---- Bills ----------------------------------------------------------------

class CategoryTotalOut(CamelModel):
    id: int | str
    name: str
    color: Optional[str] = None
    total: float
    count: int
    percentage: float


class CarryoverOut(CamelModel):
    amount: float
    interest: float
    from_bill_label: str
    bill_payment_id: int
    bill_payment_ids: list[int]


class BillOut(CamelModel):
    label: str
    month: int
    year: int
    origin: Optional[str] = None
    start_date: dt.datetime
    end_date: dt.datetime
    due_date: dt.datetime
    total: float
    transaction_total: float
    transaction_count: int
    carryover: Optional[CarryoverOut] = None
    categories: list[CategoryTotalOut]
    transactions: list[TransactionOut]
    previous_total: Optional[float] = None
    change_percentage: Optional[float] = None


class BillsOut(CamelModel):
    closing_day: int
    bills: list[BillOut]
    origins: list[str]


# ---- Projection -----------------------------------------------------------

class ProjectionInstallmentItem(CamelModel):
    description: str
    amount: float
    current_installment: int
    total_installments: int


class ProjectionRecurringItem(CamelModel):
    description: str
    amount: float
    type: TxnType


class MonthProjectionOut(CamelModel):
    month: int
    year: int
    month_label: str
    is_current_month: bool
    actual_expenses: float
    actual_income: float
    installments_total: float
    installments_count: int
    installments: list[ProjectionInstallmentItem]
    recurring_expenses: float
    recurring_income: float
    recurring_items: list[ProjectionRecurringItem]
    total_expenses: float
    total_income: float
    projected_balance: float
    is_negative: bool


class ProjectionTotals(CamelModel):
    total_installments: float
    total_recurring_expenses: float
    total_recurring_income: float
    net_projected_balance: float


class ProjectionOut(CamelModel):
    months: list[MonthProjectionOut]
    totals: ProjectionTotals


# ---- Trash ----------------------------------------------------------------

class TrashRestoreRequest(CamelModel):
    id: int = Field(..., gt=0)
