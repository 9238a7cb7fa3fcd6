"""
Storage interfaces used by the insights engine.

The ledger store holds raw expenses, incomes, transactions and budgets. The
insights store holds computed records and is append-only: storing never
replaces an earlier record, so repeated builds leave a history behind.
"""
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import date
from decimal import Decimal
from itertools import count
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from finsight.core.exceptions import InsightNotFoundError
from finsight.models.insights import InsightRecord
from finsight.models.ledger import DATE_FIELDS, Budget


class LedgerStore(ABC):

    @abstractmethod
    def put(self, kind: str, record) -> None:
        """Insert or replace a raw ledger record."""

    @abstractmethod
    def list_by_owner(self, kind: str, user_id: str) -> list:
        ...

    @abstractmethod
    def close_budget(self, user_id: str, budget_id: str, on: date) -> Optional[Budget]:
        """Set the budget's end date. Returns None if the user has no such budget."""

    def list_by_owner_and_date_range(self, kind: str, user_id: str, start: date, end: date) -> list:
        """
        Records dated within [start, end], oldest first. Budgets have no single
        date, so a budget matches when its lifetime overlaps the range.
        """
        records = self.list_by_owner(kind, user_id)
        if kind == "budget":
            return [budget for budget in records if budget.overlaps(start, end)]

        field = DATE_FIELDS[kind]
        matched = [r for r in records if start <= getattr(r, field) <= end]
        return sorted(matched, key=lambda r: getattr(r, field))

    def sum_by_owner(self, kind: str, user_id: str, **filters) -> Decimal:
        total = Decimal("0")
        for record in self.list_by_owner(kind, user_id):
            if all(getattr(record, field) == value for field, value in filters.items()):
                total += record.amount
        return total

    def grouped_sum_by_key(self, kind: str, user_id: str, key_field: str) -> Dict[str, Decimal]:
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for record in self.list_by_owner(kind, user_id):
            totals[getattr(record, key_field)] += record.amount
        return dict(totals)

    def distinct_values(self, kind: str, user_id: str, field: str) -> List[str]:
        return sorted({getattr(record, field) for record in self.list_by_owner(kind, user_id)})


class InsightStore(ABC):

    @abstractmethod
    def store(self, record: InsightRecord) -> InsightRecord:
        """Append a record, assigning its id. Returns the stored record."""

    @abstractmethod
    def list_by_owner(self, kind: str, user_id: str) -> List[InsightRecord]:
        """All stored records of a kind for the user, oldest first."""

    @abstractmethod
    def get(self, kind: str, user_id: str, record_id: str) -> Optional[InsightRecord]:
        ...

    @abstractmethod
    def delete(self, kind: str, user_id: str, record_id: str) -> bool:
        ...

    def delete_owned(self, kind: str, user_id: str, record_id: str) -> None:
        """Delete a record of the user, or raise InsightNotFoundError."""
        if not self.delete(kind, user_id, record_id):
            raise InsightNotFoundError(kind, record_id)

    def store_all(self, records: Sequence[InsightRecord]) -> List[InsightRecord]:
        return [self.store(record) for record in records]

    def most_recent_by_owner(self, kind: str, user_id: str) -> Optional[InsightRecord]:
        records = self.list_by_owner(kind, user_id)
        if not records:
            return None
        return max(records, key=recency_key)


_sequence = count()


def new_insight_id(record: InsightRecord) -> str:
    """
    Ids sort by kind, then creation time, then store order within this
    process, which is the order used to pick the most recent record. The
    trailing random part keeps ids from separate processes apart.
    """
    stamp = record.created_at.strftime("%Y%m%dT%H%M%S%f")
    return f"{record.kind}.{stamp}.{next(_sequence):012d}{uuid4().hex[:6]}"


def recency_key(record: InsightRecord):
    return (record.created_at, record.id or "")
