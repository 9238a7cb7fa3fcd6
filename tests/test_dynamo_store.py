from datetime import date
from decimal import Decimal

import pytest
from botocore.exceptions import ClientError

from finsight.core.config import settings
from finsight.core.exceptions import StoreUnavailableError
from finsight.db.dynamo import DynamoInsightStore, DynamoLedgerStore, _convert_for_dynamo
from finsight.models.insights import ExpenseSummary, IncomeTrend


class FakeBatch:
    def __init__(self, table):
        self.table = table

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def put_item(self, Item):
        self.table.items.append(Item)


class FakeTable:
    def __init__(self, name):
        self.name = name
        self.items = []
        self.pages = []
        self.queries = []
        self.error = None

    def _check(self, operation):
        if self.error:
            raise ClientError({"Error": {"Code": self.error, "Message": "simulated failure"}}, operation)

    def put_item(self, Item):
        self._check("PutItem")
        self.items.append(Item)

    def batch_writer(self):
        self._check("BatchWriteItem")
        return FakeBatch(self)

    def query(self, **kwargs):
        self._check("Query")
        self.queries.append(dict(kwargs))
        return self.pages.pop(0) if self.pages else {"Items": []}

    def update_item(self, **kwargs):
        self._check("UpdateItem")
        return {"Attributes": {"user_id": "u1", "id": kwargs["Key"]["id"], "amount": Decimal("300"),
                               "note": "", "start_date": "2025-01-01", "end_date": kwargs["ExpressionAttributeValues"][":end"]}}


class FakeResource:
    def __init__(self):
        self.tables = {}

    def Table(self, name):
        return self.tables.setdefault(name, FakeTable(name))


def test_convert_for_dynamo_keeps_decimals():
    converted = _convert_for_dynamo({"amount": Decimal("1.10"), "rate": 0.2, "on": date(2025, 1, 5), "tags": [1.5]})
    assert converted == {"amount": Decimal("1.10"), "rate": Decimal("0.2"), "on": "2025-01-05", "tags": [Decimal("1.5")]}


def test_ledger_query_follows_pages():
    resource = FakeResource()
    table = resource.Table(settings.DYNAMO_INCOMES_TABLE)
    table.pages = [
        {"Items": [{"id": "a", "user_id": "u1", "income_type": "Salary", "amount": Decimal("10.5"), "occurred_on": "2025-01-01"}],
         "LastEvaluatedKey": {"user_id": "u1", "id": "a"}},
        {"Items": [{"id": "b", "user_id": "u1", "income_type": "Salary", "amount": Decimal("4.5"), "occurred_on": "2025-02-01"}]},
    ]
    ledger = DynamoLedgerStore(resource=resource)

    assert ledger.sum_by_owner("income", "u1") == Decimal("15.0")
    assert table.queries[1]["ExclusiveStartKey"] == {"user_id": "u1", "id": "a"}


def test_ledger_date_range_sorts_filtered_items():
    resource = FakeResource()
    table = resource.Table(settings.DYNAMO_EXPENSES_TABLE)
    table.pages = [{"Items": [
        {"id": "b", "user_id": "u1", "amount": Decimal("2"), "category": "Food", "occurred_on": "2025-01-20", "note": ""},
        {"id": "a", "user_id": "u1", "amount": Decimal("1"), "category": "Food", "occurred_on": "2025-01-02", "note": ""},
    ]}]
    ledger = DynamoLedgerStore(resource=resource)

    expenses = ledger.list_by_owner_and_date_range("expense", "u1", date(2025, 1, 1), date(2025, 1, 31))
    assert [e.id for e in expenses] == ["a", "b"]
    assert "FilterExpression" in table.queries[0]


def test_close_budget_returns_updated_budget():
    ledger = DynamoLedgerStore(resource=FakeResource())
    closed = ledger.close_budget("u1", "budget-1", date(2025, 4, 30))
    assert closed.end_date == date(2025, 4, 30)


def test_close_missing_budget_returns_none():
    resource = FakeResource()
    resource.Table(settings.DYNAMO_BUDGETS_TABLE).error = "ConditionalCheckFailedException"
    ledger = DynamoLedgerStore(resource=resource)
    assert ledger.close_budget("u1", "missing", date(2025, 4, 30)) is None


def test_client_errors_become_store_unavailable():
    resource = FakeResource()
    resource.Table(settings.DYNAMO_EXPENSES_TABLE).error = "ProvisionedThroughputExceededException"
    ledger = DynamoLedgerStore(resource=resource)

    with pytest.raises(StoreUnavailableError) as excinfo:
        ledger.list_by_owner("expense", "u1")
    assert isinstance(excinfo.value.__cause__, ClientError)


def test_insight_store_writes_sort_key_and_kind():
    resource = FakeResource()
    store = DynamoInsightStore(resource=resource)
    record = store.store(ExpenseSummary(user_id="u1", total=Decimal("12.30"), status="good"))

    item = resource.Table(settings.DYNAMO_INSIGHTS_TABLE).items[0]
    assert item["insight_id"] == record.id
    assert record.id.startswith("expense_summary.")
    assert item["kind"] == "expense_summary"
    assert item["total"] == Decimal("12.30")
    assert "id" not in item


def test_store_all_uses_batch_writer():
    resource = FakeResource()
    store = DynamoInsightStore(resource=resource)
    trends = [
        IncomeTrend(user_id="u1", month_start=date(2025, m, 1), amount=Decimal("0"), status="bad")
        for m in (1, 2)
    ]
    stored = store.store_all(trends)

    items = resource.Table(settings.DYNAMO_INSIGHTS_TABLE).items
    assert [i["month_start"] for i in items] == ["2025-01-01", "2025-02-01"]
    assert all(r.id for r in stored)
    assert store.store_all([]) == []


def test_most_recent_reads_newest_first():
    resource = FakeResource()
    table = resource.Table(settings.DYNAMO_INSIGHTS_TABLE)
    table.pages = [{"Items": [{
        "user_id": "u1",
        "insight_id": "income_summary.20250501T120000000000.abc",
        "kind": "income_summary",
        "total": Decimal("9000"),
        "status": "bad",
        "created_at": "2025-05-01T12:00:00+00:00",
    }]}]
    store = DynamoInsightStore(resource=resource)

    summary = store.most_recent_by_owner("income_summary", "u1")
    assert summary.total == Decimal("9000")
    assert summary.id == "income_summary.20250501T120000000000.abc"
    assert table.queries[0]["ScanIndexForward"] is False
    assert table.queries[0]["Limit"] == 1


def test_most_recent_without_records_is_none():
    store = DynamoInsightStore(resource=FakeResource())
    assert store.most_recent_by_owner("expense_summary", "u1") is None


def test_delete_with_foreign_kind_prefix_is_refused():
    store = DynamoInsightStore(resource=FakeResource())
    assert store.delete("expense_summary", "u1", "income_summary.20250501T120000000000.abc") is False
