from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from billcycle import models, schemas
from billcycle.core.clock import SystemClock
from billcycle.core.config import settings
from billcycle.errors import NotFound
from billcycle.services.installment_service import InstallmentPlanService
from billcycle.services.ledger_store import LedgerStore, signed_amount
from billcycle.utils.months import month_bounds


logger = logging.getLogger(__name__)


class TransactionService:
    """Manual ledger entries, installment purchases and the trash."""

    def __init__(self, db: Session, *, clock=None) -> None:
        self.db = db
        self.clock = clock or SystemClock()
        self.ledger = LedgerStore(db)
        self.plans = InstallmentPlanService(db, self.ledger)

    def create(self, payload: schemas.TransactionCreate, *, user_id: int) -> models.Transaction:
        """
        Create one entry, or a whole installment plan for a purchase in N installments.

        For a plan, ``amount`` (or ``installment_amount``) is the value of each
        installment and the first entry is returned.
        """
        origin = payload.origin or settings.DEFAULT_IMPORT_ORIGIN
        try:
            if payload.is_installment and (payload.total_installments or 0) >= 2 and payload.create_plan:
                per_installment = abs(payload.installment_amount or payload.amount)
                plan = self.plans.create_plan(
                    user_id=user_id,
                    description=payload.description,
                    origin=origin,
                    installment_amounts=[per_installment] * payload.total_installments,
                    start_date=payload.occurred_at,
                    txn_type=payload.type,
                    category_id=payload.category_id,
                )
                self.db.flush()
                row = plan.transactions[0]
            else:
                row = self.ledger.create(
                    user_id=user_id,
                    description=payload.description,
                    amount=signed_amount(payload.amount, payload.type),
                    occurred_at=payload.occurred_at,
                    type=payload.type,
                    origin=origin,
                    category_id=payload.category_id,
                    is_fixed=payload.is_fixed,
                    is_installment=payload.is_installment,
                    current_installment=payload.current_installment,
                    total_installments=payload.total_installments,
                )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return row

    def list_transactions(
        self,
        *,
        user_id: int,
        month: Optional[int] = None,
        year: Optional[int] = None,
        **filters,
    ) -> list[models.Transaction]:
        start = end = None
        if year is not None and month is not None:
            start, end = month_bounds(year, month)
        elif year is not None:
            start, end = month_bounds(year, 1)[0], month_bounds(year, 12)[1]
        return self.ledger.find_many(user_id=user_id, start=start, end=end, **filters)

    def delete(self, txn_id: int, *, user_id: int) -> None:
        row = self.ledger.get(txn_id, user_id=user_id)
        try:
            self.ledger.soft_delete([row.id], at=self.clock.now())
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Transaction %s moved to trash", txn_id)

    # ---- Trash -----------------------------------------------------------
    def trash(self, *, user_id: int) -> list[models.Transaction]:
        return self.ledger.find_many(user_id=user_id, deleted=True)

    def restore(self, txn_id: int, *, user_id: int) -> models.Transaction:
        try:
            row = self.ledger.restore(txn_id, user_id=user_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        logger.info("Transaction %s restored from trash", txn_id)
        return row

    def purge(self, txn_id: int, *, user_id: int) -> int:
        # NotFound unless the entry is actually in the trash
        row = self.ledger.get(txn_id, user_id=user_id, include_deleted=True)
        if row.deleted_at is None:
            raise NotFound("Transaction is not in the trash")
        return self._purge(user_id=user_id, ids=[txn_id])

    def purge_expired(self, *, user_id: int) -> int:
        cutoff = self.clock.now() - timedelta(days=settings.TRASH_RETENTION_DAYS)
        return self._purge(user_id=user_id, deleted_before=cutoff)

    def _purge(self, **kwargs) -> int:
        try:
            removed = self.ledger.purge(**kwargs)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info("Purged %s transactions from trash", removed)
        return removed
