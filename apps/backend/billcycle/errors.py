"""Domain errors raised by the billing services.

Each error carries the HTTP status the API layer answers with; the handler in
``billcycle.main`` renders them with the same ``{"detail": ...}`` body that
``HTTPException`` produces.
"""

from __future__ import annotations


class BillingError(Exception):
    status_code: int = 400

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class InvalidConfig(BillingError):
    """Closing day or cycle count outside the supported range."""

    status_code = 400


class InvalidPayment(BillingError):
    status_code = 400


class DuplicatePayment(BillingError):
    status_code = 409


class NotFound(BillingError):
    status_code = 404


class PlanLocked(BillingError):
    """Installment plan owned by a bill payment; delete the payment instead."""

    status_code = 409


class ReconciliationSkipped(BillingError):
    """Carryover linkage could not find a unique, unlinked bill payment.

    Raised mid-import and only ever logged; never surfaced to the client.
    """

    status_code = 409
