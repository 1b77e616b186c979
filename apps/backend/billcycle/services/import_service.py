"""
Statement import

Orchestrates, per imported item:
1. sign normalization (EXPENSE negative, INCOME positive)
2. origin defaulting and categorization
3. matching against recurring templates that wait for an import
4. entry creation
5. carryover linking (failures are logged; the entry stays imported)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from billcycle import models, schemas
from billcycle.core.clock import SystemClock
from billcycle.core.config import settings
from billcycle.errors import ReconciliationSkipped
from billcycle.services.carryover_linker import CarryoverLinker, CarryoverMatch
from billcycle.services.categorizer import Categorizer
from billcycle.services.ledger_store import LedgerStore, signed_amount
from billcycle.services.recurring_store import RecurringTemplateStore, linked_in_month
from billcycle.utils.normalization import matches_keywords


logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    count: int = 0
    linked_count: int = 0
    linked_carryovers: list[dict] = field(default_factory=list)
    created: list[models.Transaction] = field(default_factory=list)

    @property
    def carryover_linked_count(self) -> int:
        return len(self.linked_carryovers)

    @property
    def message(self) -> str:
        parts = []
        if self.linked_count:
            parts.append(f"{self.linked_count} linked to recurring")
        if self.carryover_linked_count:
            parts.append(f"{self.carryover_linked_count} linked to bill carryovers")
        if parts:
            return f"{self.count} transactions imported ({', '.join(parts)})"
        return f"{self.count} transactions imported successfully"


class ImportService:
    def __init__(
        self,
        db: Session,
        *,
        user_id: int,
        clock=None,
        categorizer: Categorizer | None = None,
        linker: CarryoverLinker | None = None,
    ) -> None:
        self.db = db
        self.user_id = user_id
        self.clock = clock or SystemClock()
        self.ledger = LedgerStore(db)
        self.recurring = RecurringTemplateStore(db)
        self.categorizer = categorizer or Categorizer(db, user_id=user_id)
        self.linker = linker or CarryoverLinker(db, clock=self.clock, ledger=self.ledger)

    def import_entries(self, items: Sequence[schemas.ImportedEntry], *, origin: Optional[str] = None) -> ImportSummary:
        summary = ImportSummary()
        templates = self.recurring.import_candidates(user_id=self.user_id)

        try:
            for item in items:
                txn = self._create_entry(item, origin, templates, summary)
                summary.created.append(txn)
                summary.count += 1

                match = self._link_carryover(txn)
                if match is not None:
                    summary.linked_carryovers.append(
                        {
                            "transaction_id": txn.id,
                            "bill_payment_id": match.bill_payment_id,
                            "from_bill": match.from_bill,
                            "interest_rate": match.interest.rate,
                            "interest_amount": match.interest.amount,
                        }
                    )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Imported %s entries (%s recurring, %s carryover links)",
            summary.count, summary.linked_count, summary.carryover_linked_count,
        )
        return summary

    def _create_entry(
        self,
        item: schemas.ImportedEntry,
        origin: Optional[str],
        templates: list[models.RecurringExpense],
        summary: ImportSummary,
    ) -> models.Transaction:
        entry_origin = origin or item.origin or settings.DEFAULT_IMPORT_ORIGIN
        category_id = item.category_id
        if category_id is None:
            category_id = self.categorizer.match_category(item.description)

        template = self._match_recurring(item, entry_origin, category_id, templates)
        txn = self.ledger.create(
            user_id=self.user_id,
            description=item.description,
            amount=signed_amount(item.amount, item.type),
            occurred_at=item.occurred_at,
            type=item.type,
            origin=entry_origin,
            category_id=category_id,
            is_fixed=template is not None,
            is_installment=item.is_installment,
            current_installment=item.current_installment,
            total_installments=item.total_installments,
            recurring_expense_id=template.id if template is not None else None,
        )
        if template is not None:
            # Visible to later items of the same batch through the relationship
            template.transactions.append(txn)
            summary.linked_count += 1
        return txn

    def _match_recurring(
        self,
        item: schemas.ImportedEntry,
        origin: str,
        category_id: Optional[int],
        templates: list[models.RecurringExpense],
    ) -> Optional[models.RecurringExpense]:
        """Link only when exactly one template fits."""
        matches = [
            t for t in templates
            if t.origin == origin
            and not (t.category_id and category_id and t.category_id != category_id)
            and matches_keywords(item.description, t.description)
            and not linked_in_month(t, item.occurred_at)
        ]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            logger.debug("Import %r matches %s recurring templates; not linking", item.description, len(matches))
        return None

    def _link_carryover(self, txn: models.Transaction) -> Optional[CarryoverMatch]:
        try:
            return self.linker.link(txn)
        except (ReconciliationSkipped, SQLAlchemyError) as exc:
            logger.warning("Carryover linking skipped for entry %s (%s): %s", txn.id, txn.description, exc)
            return None
