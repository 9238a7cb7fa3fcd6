import threading
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from finsight.db.base import InsightStore, LedgerStore, new_insight_id
from finsight.models.insights import InsightRecord
from finsight.models.ledger import LEDGER_KINDS, Budget


class InMemoryLedgerStore(LedgerStore):
    """Process-local ledger, used by tests and the "memory" backend."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, Dict[str, object]] = defaultdict(dict)

    def put(self, kind: str, record) -> None:
        if kind not in LEDGER_KINDS:
            raise KeyError(f"Unknown ledger kind: {kind}")
        with self._lock:
            self._records[kind][record.id] = record.model_copy()

    def list_by_owner(self, kind: str, user_id: str) -> list:
        with self._lock:
            return [
                record.model_copy()
                for record in self._records[kind].values()
                if record.user_id == user_id
            ]

    def close_budget(self, user_id: str, budget_id: str, on: date) -> Optional[Budget]:
        with self._lock:
            budget = self._records["budget"].get(budget_id)
            if budget is None or budget.user_id != user_id:
                return None
            closed = budget.model_copy(update={"end_date": on})
            self._records["budget"][budget_id] = closed
            return closed.model_copy()


class InMemoryInsightStore(InsightStore):

    def __init__(self):
        self._lock = threading.Lock()
        self._records: Dict[str, List[InsightRecord]] = defaultdict(list)

    def store(self, record: InsightRecord) -> InsightRecord:
        record.id = new_insight_id(record)
        with self._lock:
            self._records[record.kind].append(record.model_copy())
        return record

    def list_by_owner(self, kind: str, user_id: str) -> List[InsightRecord]:
        with self._lock:
            return [r.model_copy() for r in self._records[kind] if r.user_id == user_id]

    def get(self, kind: str, user_id: str, record_id: str) -> Optional[InsightRecord]:
        with self._lock:
            for record in self._records[kind]:
                if record.id == record_id and record.user_id == user_id:
                    return record.model_copy()
        return None

    def delete(self, kind: str, user_id: str, record_id: str) -> bool:
        with self._lock:
            records = self._records[kind]
            for index, record in enumerate(records):
                if record.id == record_id and record.user_id == user_id:
                    del records[index]
                    return True
        return False
