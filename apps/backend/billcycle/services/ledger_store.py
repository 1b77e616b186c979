"""
Ledger entry persistence

Thin repository over ``Transaction`` rows. Methods stage changes on the session
(flush only); callers own the commit so several writes share one atomic unit.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional, Sequence

from sqlalchemy import delete, exists, select, update
from sqlalchemy.orm import Session, selectinload

from billcycle import models
from billcycle.errors import NotFound


def signed_amount(amount: float, txn_type: models.TxnType) -> float:
    """Expenses are stored negative, income positive; transfers keep their sign."""
    if txn_type == models.TxnType.EXPENSE:
        return -abs(amount)
    if txn_type == models.TxnType.INCOME:
        return abs(amount)
    return amount


class LedgerStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def create(
        self,
        *,
        user_id: int,
        description: str,
        amount: float,
        occurred_at: date,
        type: models.TxnType,
        origin: str,
        kind: models.EntryKind = models.EntryKind.REGULAR,
        category_id: Optional[int] = None,
        is_fixed: bool = False,
        is_installment: bool = False,
        current_installment: Optional[int] = None,
        total_installments: Optional[int] = None,
        installment_id: Optional[int] = None,
        recurring_expense_id: Optional[int] = None,
    ) -> models.Transaction:
        row = models.Transaction(
            user_id=user_id,
            description=description,
            amount=amount,
            occurred_at=occurred_at,
            type=type,
            kind=kind,
            origin=origin,
            category_id=category_id,
            is_fixed=is_fixed,
            is_installment=is_installment,
            current_installment=current_installment,
            total_installments=total_installments,
            installment_id=installment_id,
            recurring_expense_id=recurring_expense_id,
        )
        self.db.add(row)
        self.db.flush()
        return row

    def update(self, row: models.Transaction, **changes) -> models.Transaction:
        for key, value in changes.items():
            setattr(row, key, value)
        self.db.flush()
        return row

    def soft_delete(self, ids: Iterable[int], *, at: datetime) -> int:
        """Mark live entries deleted; already-deleted ids are left untouched."""
        id_list = [i for i in ids if i is not None]
        if not id_list:
            return 0
        result = self.db.execute(
            update(models.Transaction)
            .where(models.Transaction.id.in_(id_list), models.Transaction.deleted_at.is_(None))
            .values(deleted_at=at)
            .execution_options(synchronize_session="evaluate")
        )
        return result.rowcount or 0

    def find_many(
        self,
        *,
        user_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
        origin: Optional[str] = None,
        type: Optional[models.TxnType] = None,
        category_id: Optional[int] = None,
        kinds: Optional[Sequence[models.EntryKind]] = None,
        is_fixed: Optional[bool] = None,
        is_installment: Optional[bool] = None,
        installment_id: Optional[int] = None,
        deleted: bool = False,
    ) -> list[models.Transaction]:
        """Query entries by predicate; ``deleted=True`` searches the trash instead of live rows."""
        stmt = (
            select(models.Transaction)
            .options(selectinload(models.Transaction.category), selectinload(models.Transaction.installment))
            .where(models.Transaction.user_id == user_id)
        )
        if deleted:
            stmt = stmt.where(models.Transaction.deleted_at.is_not(None))
        else:
            stmt = stmt.where(models.Transaction.deleted_at.is_(None))
        if start is not None:
            stmt = stmt.where(models.Transaction.occurred_at >= start)
        if end is not None:
            stmt = stmt.where(models.Transaction.occurred_at <= end)
        if origin:
            stmt = stmt.where(models.Transaction.origin == origin)
        if type is not None:
            stmt = stmt.where(models.Transaction.type == type)
        if category_id is not None:
            stmt = stmt.where(models.Transaction.category_id == category_id)
        if kinds:
            stmt = stmt.where(models.Transaction.kind.in_(list(kinds)))
        if is_fixed is not None:
            stmt = stmt.where(models.Transaction.is_fixed == bool(is_fixed))
        if is_installment is not None:
            stmt = stmt.where(models.Transaction.is_installment == bool(is_installment))
        if installment_id is not None:
            stmt = stmt.where(models.Transaction.installment_id == installment_id)

        if deleted:
            stmt = stmt.order_by(models.Transaction.deleted_at.desc(), models.Transaction.id.desc())
        else:
            stmt = stmt.order_by(models.Transaction.occurred_at.desc(), models.Transaction.id.desc())
        return list(self.db.scalars(stmt))

    def get(self, txn_id: int, *, user_id: int, include_deleted: bool = False) -> models.Transaction:
        stmt = select(models.Transaction).where(
            models.Transaction.id == txn_id,
            models.Transaction.user_id == user_id,
        )
        if not include_deleted:
            stmt = stmt.where(models.Transaction.deleted_at.is_(None))
        row = self.db.scalars(stmt).first()
        if row is None:
            raise NotFound("Transaction not found")
        return row

    def restore(self, txn_id: int, *, user_id: int) -> models.Transaction:
        row = self.get(txn_id, user_id=user_id, include_deleted=True)
        if row.deleted_at is None:
            raise NotFound("Transaction is not in the trash")
        row.deleted_at = None
        self.db.flush()
        return row

    def purge(self, *, user_id: int, ids: Optional[Sequence[int]] = None, deleted_before: Optional[datetime] = None) -> int:
        """Permanently remove soft-deleted entries, then drop plans left without entries."""
        stmt = delete(models.Transaction).where(
            models.Transaction.user_id == user_id,
            models.Transaction.deleted_at.is_not(None),
        )
        if ids is not None:
            stmt = stmt.where(models.Transaction.id.in_(list(ids)))
        if deleted_before is not None:
            stmt = stmt.where(models.Transaction.deleted_at < deleted_before)
        removed = self.db.execute(stmt.execution_options(synchronize_session=False)).rowcount or 0

        if removed:
            self.db.execute(
                delete(models.Installment)
                .where(
                    models.Installment.user_id == user_id,
                    ~exists().where(models.Transaction.installment_id == models.Installment.id),
                )
                .execution_options(synchronize_session=False)
            )
            self.db.expire_all()
        return removed
