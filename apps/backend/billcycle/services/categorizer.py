from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from billcycle import models


class Categorizer:
    """Keyword rules: the first rule whose keyword appears in the description wins."""

    def __init__(self, db: Session, *, user_id: int) -> None:
        self.db = db
        self.user_id = user_id
        self._rules: list[tuple[str, int]] | None = None

    def _load_rules(self) -> list[tuple[str, int]]:
        if self._rules is None:
            stmt = (
                select(models.CategoryRule.keyword, models.CategoryRule.category_id)
                .where(models.CategoryRule.user_id == self.user_id)
                .order_by(models.CategoryRule.id)
            )
            self._rules = [(keyword.upper(), category_id) for keyword, category_id in self.db.execute(stmt)]
        return self._rules

    def match_category(self, description: str) -> Optional[int]:
        upper = (description or "").upper()
        for keyword, category_id in self._load_rules():
            if keyword and keyword in upper:
                return category_id
        return None
