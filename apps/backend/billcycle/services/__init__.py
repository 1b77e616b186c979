"""
Services package

Business logic service classes for the billing cycle and carryover engine.
"""

from .bill_aggregator import LedgerAggregator, aggregate_entries
from .bill_overview import BillOverviewService
from .bill_payment_service import BillPaymentService
from .billing_cycle import BillingPeriod, get_bill_periods
from .carryover_linker import CarryoverLinker
from .carryover_resolver import CarryoverResolver
from .categorizer import Categorizer
from .import_service import ImportService
from .installment_service import InstallmentPlanService
from .ledger_store import LedgerStore
from .projection_service import ProjectionService
from .recurring_store import RecurringTemplateStore
from .transaction_service import TransactionService

__all__ = [
    "LedgerAggregator",
    "aggregate_entries",
    "BillOverviewService",
    "BillPaymentService",
    "BillingPeriod",
    "get_bill_periods",
    "CarryoverLinker",
    "CarryoverResolver",
    "Categorizer",
    "ImportService",
    "InstallmentPlanService",
    "LedgerStore",
    "ProjectionService",
    "RecurringTemplateStore",
    "TransactionService",
]
