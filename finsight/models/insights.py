from datetime import date, datetime, timezone
from decimal import Decimal
from typing import ClassVar, Dict, Optional, Type

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InsightRecord(BaseModel):
    """
    Common shape of every stored insight. `id` is assigned by the store;
    `created_at` orders records of the same kind for "most recent" lookups.
    """

    kind: ClassVar[str] = ""

    id: Optional[str] = None
    user_id: str
    created_at: datetime = Field(default_factory=_utcnow)

    def content(self) -> dict:
        """Computed fields only, without storage bookkeeping."""
        return self.model_dump(exclude={"id", "created_at"})


class ExpenseSummary(InsightRecord):
    kind: ClassVar[str] = "expense_summary"

    total: Decimal
    status: str  # good or bad


class IncomeSummary(InsightRecord):
    kind: ClassVar[str] = "income_summary"

    total: Decimal
    status: str  # good or bad


class BudgetAnalysis(InsightRecord):
    kind: ClassVar[str] = "budget_analysis"

    total_budgeted: Decimal
    total_spent: Decimal
    variance: Decimal  # negative when over budget


class SavingsGoals(InsightRecord):
    kind: ClassVar[str] = "savings_goals"

    goal_amount: Decimal
    achieved_amount: Decimal
    status: str  # on_track or needs_attention


class FinancialHealth(InsightRecord):
    kind: ClassVar[str] = "financial_health"

    status: str


class ExpenseTrend(InsightRecord):
    kind: ClassVar[str] = "expense_trend"

    month_start: date
    amount: Decimal


class IncomeTrend(InsightRecord):
    kind: ClassVar[str] = "income_trend"

    month_start: date
    amount: Decimal
    status: str


class BudgetTrend(InsightRecord):
    kind: ClassVar[str] = "budget_trend"

    month_start: date
    budget_amount: Decimal
    status: str


class CategorySpending(InsightRecord):
    kind: ClassVar[str] = "category_spending"

    category: str
    total_spending: Decimal


class IncomeSource(BaseModel):
    """Total income per income type. Computed on request, never stored."""

    user_id: str
    income_type: str
    amount: Decimal


INSIGHT_KINDS: Dict[str, Type[InsightRecord]] = {
    model.kind: model
    for model in (
        ExpenseSummary,
        IncomeSummary,
        BudgetAnalysis,
        SavingsGoals,
        FinancialHealth,
        ExpenseTrend,
        IncomeTrend,
        BudgetTrend,
        CategorySpending,
    )
}
