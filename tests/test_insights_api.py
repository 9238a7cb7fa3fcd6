from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from finsight.core.config import settings
from finsight.core.dependencies import get_engine, get_insight_store
from finsight.core.exceptions import StoreUnavailableError
from finsight.db.memory import InMemoryInsightStore, InMemoryLedgerStore
from finsight.main import app
from finsight.models.ledger import Budget, Expense, Income, Transaction
from finsight.utils.insights_engine import InsightsEngine

ledger = InMemoryLedgerStore()
insights = InMemoryInsightStore()

ledger.put("expense", Expense(user_id="alice", amount=Decimal("50"), category="Food", occurred_on=date(2025, 1, 10)))
ledger.put("expense", Expense(user_id="alice", amount=Decimal("25"), category="Rent", occurred_on=date(2025, 3, 3)))
ledger.put("transaction", Transaction(user_id="alice", amount=Decimal("30"), note="Food"))
ledger.put("income", Income(user_id="alice", income_type="Salary", amount=Decimal("12000"), occurred_on=date(2025, 1, 31)))
ledger.put("budget", Budget(user_id="alice", amount=Decimal("400"), start_date=date(2025, 1, 1)))


@pytest.fixture
def client():
    app.dependency_overrides[get_engine] = lambda: InsightsEngine(ledger, insights)
    app.dependency_overrides[get_insight_store] = lambda: insights
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_expense_summary(client):
    response = client.get("/api/insights/expense-summary", params={"user_id": "alice"})
    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["total"]) == Decimal("105")
    assert body["status"] == "good"
    assert body["user_id"] == "alice"
    assert body["id"].startswith("expense_summary.")


def test_income_summary_and_health(client):
    income = client.get("/api/insights/income-summary", params={"user_id": "alice"}).json()
    assert income["status"] == "good"
    client.get("/api/insights/expense-summary", params={"user_id": "alice"})

    health = client.get("/api/insights/financial-health", params={"user_id": "alice"})
    assert health.status_code == 200
    assert health.json()["status"] == "good"


def test_category_spending(client):
    response = client.get("/api/insights/category-spending", params={"user_id": "alice"})
    totals = {item["category"]: Decimal(item["total_spending"]) for item in response.json()}
    assert totals == {"Food": Decimal("80"), "Rent": Decimal("25")}


def test_expense_and_income_trends(client):
    params = {"user_id": "alice", "start_date": "2025-01-01", "end_date": "2025-03-31"}

    expense_trends = client.get("/api/insights/expense-trends", params=params).json()
    assert [t["month_start"] for t in expense_trends] == ["2025-01-01", "2025-03-01"]

    income_trends = client.get("/api/insights/income-trends", params=params).json()
    assert [t["month_start"] for t in income_trends] == ["2025-01-01", "2025-02-01", "2025-03-01"]
    assert {t["status"] for t in income_trends} == {"good"}


def test_budget_trends_and_empty_range(client):
    params = {"user_id": "alice", "start_date": "2025-01-01", "end_date": "2025-03-31"}
    trends = client.get("/api/insights/budget-trends", params=params).json()
    assert len(trends) == 1 and trends[0]["status"] == "good"

    empty = client.get("/api/insights/budget-trends", params=dict(params, start_date="2024-01-01", end_date="2024-12-31"))
    assert empty.status_code == 200
    assert empty.json() == []


def test_inverted_range_is_bad_request(client):
    params = {"user_id": "alice", "start_date": "2025-03-01", "end_date": "2025-01-01"}
    assert client.get("/api/insights/expense-trends", params=params).status_code == 400


def test_income_sources(client):
    sources = client.get("/api/insights/income-sources", params={"user_id": "alice"}).json()
    assert [(s["income_type"], Decimal(s["amount"])) for s in sources] == [("Salary", Decimal("12000"))]


def test_budget_analysis_and_savings_goals(client):
    analysis = client.get("/api/insights/budget-analysis", params={"user_id": "alice"}).json()
    assert Decimal(analysis["variance"]) == Decimal("295")

    goals = client.get("/api/insights/savings-goals", params={"user_id": "alice"}).json()
    assert Decimal(goals["goal_amount"]) == Decimal("2400")
    assert goals["status"] == "needs_attention"


def test_history_and_delete(client):
    client.get("/api/insights/savings-goals", params={"user_id": "bob"})
    history = client.get("/api/insights/savings-goals/history", params={"user_id": "bob"}).json()
    assert len(history) == 1
    record_id = history[0]["id"]

    foreign = client.delete(f"/api/insights/savings_goals/{record_id}", params={"user_id": "alice"})
    assert foreign.status_code == 404

    deleted = client.delete(f"/api/insights/savings-goals/{record_id}", params={"user_id": "bob"})
    assert deleted.status_code == 204
    assert client.get("/api/insights/savings_goals/history", params={"user_id": "bob"}).json() == []


def test_unknown_kind_is_not_found(client):
    assert client.get("/api/insights/refunds/history", params={"user_id": "alice"}).status_code == 404


def test_missing_user_id_is_rejected(client):
    assert client.get("/api/insights/expense-summary").status_code == 422


def test_store_outage_is_service_unavailable(client):
    class BrokenEngine:
        def income_summary(self, user_id):
            raise StoreUnavailableError("sum income", "table offline")

    app.dependency_overrides[get_engine] = lambda: BrokenEngine()
    response = client.get("/api/insights/income-summary", params={"user_id": "alice"})
    assert response.status_code == 503


def test_health(client):
    assert client.get("/api/health").json()["status"] == "healthy"


def test_history_accepts_both_kind_spellings(client):
    client.get("/api/insights/expense-summary", params={"user_id": "carol"})
    kebab = client.get("/api/insights/expense-summary/history", params={"user_id": "carol"}).json()
    snake = client.get("/api/insights/expense_summary/history", params={"user_id": "carol"}).json()
    assert len(kebab) == 1
    assert kebab == snake

    record_id = kebab[0]["id"]
    assert client.delete(f"/api/insights/expense_summary/{record_id}", params={"user_id": "carol"}).status_code == 204
    assert client.get("/api/insights/expense-summary/history", params={"user_id": "carol"}).json() == []


def test_main_serves_app_with_uvicorn(monkeypatch):
    import uvicorn

    from finsight import main as entrypoint

    calls = []
    monkeypatch.setattr(uvicorn, "run", lambda target, **kwargs: calls.append((target, kwargs)))
    entrypoint.main()
    assert calls == [("finsight.main:app", {"host": settings.HOST, "port": settings.PORT, "reload": False})]
