from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from finsight.core.exceptions import InvalidDateRangeError
from finsight.db.base import InsightStore, LedgerStore
from finsight.models.insights import (
    BudgetAnalysis,
    BudgetTrend,
    CategorySpending,
    ExpenseSummary,
    ExpenseTrend,
    FinancialHealth,
    IncomeSource,
    IncomeSummary,
    IncomeTrend,
    SavingsGoals,
)
from finsight.models.ledger import Budget
from finsight.utils.thresholds import ThresholdPolicy

logger = logging.getLogger(__name__)

READ_LAST = "read_last"
RECOMPUTE = "recompute"

ZERO = Decimal("0")


def month_start(day: date) -> date:
    return day.replace(day=1)


def next_month(day: date) -> date:
    if day.month == 12:
        return day.replace(year=day.year + 1, month=1, day=1)
    return day.replace(month=day.month + 1, day=1)


def iter_months(start: date, end: date):
    """First day of every calendar month touched by [start, end]."""
    current = month_start(start)
    while current <= end:
        yield current
        current = next_month(current)


def budget_recency_key(budget: Budget) -> Tuple:
    # Open budgets are still running, so they rank after every closed one
    return (budget.is_open, budget.end_date or date.min, budget.start_date, budget.id)


class InsightsEngine:
    """
    Builds insight records from a user's ledger. Every builder reads the raw
    records it needs, computes its figures, stores the result in the insight
    store and returns it. Builders keep no state between calls and always
    append, so calling one twice stores two records.
    """

    def __init__(
        self,
        ledger: LedgerStore,
        insights: InsightStore,
        policy: Optional[ThresholdPolicy] = None,
        health_source: str = READ_LAST,
    ) -> None:
        if health_source not in (READ_LAST, RECOMPUTE):
            raise ValueError(f"Unknown health source: {health_source}")
        self._ledger = ledger
        self._insights = insights
        self._policy = policy or ThresholdPolicy()
        self._health_source = health_source

    def expense_summary(self, user_id: str) -> ExpenseSummary:
        # Transactions count as spending alongside expenses
        total = self._ledger.sum_by_owner("expense", user_id) + self._ledger.sum_by_owner("transaction", user_id)
        summary = ExpenseSummary(
            user_id=user_id,
            total=total,
            status=self._policy.classify_expenses(total),
        )
        logger.info(f"Expense summary for user {user_id}: total={total}, status={summary.status}")
        return self._insights.store(summary)

    def income_summary(self, user_id: str) -> IncomeSummary:
        total = self._ledger.sum_by_owner("income", user_id)
        summary = IncomeSummary(
            user_id=user_id,
            total=total,
            status=self._policy.classify_income(total),
        )
        logger.info(f"Income summary for user {user_id}: total={total}, status={summary.status}")
        return self._insights.store(summary)

    def budget_analysis(self, user_id: str) -> BudgetAnalysis:
        budgets = self._ledger.list_by_owner("budget", user_id)
        expenses = self._ledger.list_by_owner("expense", user_id)
        transactions = self._ledger.list_by_owner("transaction", user_id)

        total_budgeted = sum((b.amount for b in budgets), ZERO)
        total_spent = sum((e.amount for e in expenses), ZERO) + sum((t.amount for t in transactions), ZERO)

        analysis = BudgetAnalysis(
            user_id=user_id,
            total_budgeted=total_budgeted,
            total_spent=total_spent,
            variance=total_budgeted - total_spent,
        )
        logger.info(
            f"Budget analysis for user {user_id}: budgeted={total_budgeted}, "
            f"spent={total_spent}, variance={analysis.variance}"
        )
        return self._insights.store(analysis)

    def savings_goals(self, user_id: str) -> SavingsGoals:
        """
        The goal is a fixed share of total income. What counts as saved is
        the sum of the user's transactions.
        """
        goal = self._policy.savings_goal(self._ledger.sum_by_owner("income", user_id))
        achieved = sum((t.amount for t in self._ledger.list_by_owner("transaction", user_id)), ZERO)

        goals = SavingsGoals(
            user_id=user_id,
            goal_amount=goal,
            achieved_amount=achieved,
            status=self._policy.classify_savings(achieved, goal),
        )
        logger.info(f"Savings goals for user {user_id}: goal={goal}, achieved={achieved}, status={goals.status}")
        return self._insights.store(goals)

    def expense_trends(self, user_id: str, start: date, end: date) -> List[ExpenseTrend]:
        """
        Monthly expense totals between start and end, inclusive. Months
        without any expense are left out.
        """
        _check_range(start, end)
        expenses = self._ledger.list_by_owner_and_date_range("expense", user_id, start, end)

        monthly: Dict[date, Decimal] = defaultdict(Decimal)
        for expense in sorted(expenses, key=lambda e: e.occurred_on):
            monthly[month_start(expense.occurred_on)] += expense.amount

        trends = [
            ExpenseTrend(user_id=user_id, month_start=month, amount=amount)
            for month, amount in monthly.items()
        ]
        logger.info(f"Expense trends for user {user_id} from {start} to {end}: {len(trends)} months")
        return self._insights.store_all(trends)

    def income_trends(self, user_id: str, start: date, end: date) -> List[IncomeTrend]:
        """
        One record per calendar month between start and end, including months
        without income. All months share the status of the whole range.
        """
        _check_range(start, end)
        incomes = self._ledger.list_by_owner_and_date_range("income", user_id, start, end)

        before_start = ZERO
        up_to_end = ZERO
        for income in incomes:
            if income.occurred_on < start:
                before_start += income.amount
            elif income.occurred_on <= end:
                up_to_end += income.amount
        status = self._policy.classify_income_trend(before_start, up_to_end)

        monthly: Dict[date, Decimal] = defaultdict(Decimal)
        for income in incomes:
            monthly[month_start(income.occurred_on)] += income.amount

        trends = [
            IncomeTrend(user_id=user_id, month_start=month, amount=monthly.get(month, ZERO), status=status)
            for month in iter_months(start, end)
        ]
        logger.info(f"Income trends for user {user_id} from {start} to {end}: {len(trends)} months, status={status}")
        return self._insights.store_all(trends)

    def budget_trends(self, user_id: str, start: date, end: date) -> List[BudgetTrend]:
        """
        Compares the most recent budget active in the range against the
        largest budget of the range. Returns an empty list, and stores
        nothing, when no budget was active.
        """
        _check_range(start, end)
        budgets = self._ledger.list_by_owner_and_date_range("budget", user_id, start, end)
        if not budgets:
            logger.info(f"No budgets for user {user_id} between {start} and {end}")
            return []

        by_recency = sorted(budgets, key=budget_recency_key, reverse=True)
        most_recent = by_recency[0]

        peak = ZERO
        for budget in by_recency:
            if budget.amount > peak:
                peak = budget.amount

        trend = BudgetTrend(
            user_id=user_id,
            month_start=start,
            budget_amount=most_recent.amount,
            status=self._policy.classify_budget_trend(most_recent.amount, peak),
        )
        logger.info(
            f"Budget trend for user {user_id}: latest budget {most_recent.id}={most_recent.amount}, "
            f"peak={peak}, status={trend.status}"
        )
        return self._insights.store_all([trend])

    def category_spending(self, user_id: str) -> List[CategorySpending]:
        # Transaction notes act as categories and add up with matching expense categories
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for category, amount in self._ledger.grouped_sum_by_key("expense", user_id, "category").items():
            totals[category] += amount
        for note, amount in self._ledger.grouped_sum_by_key("transaction", user_id, "note").items():
            totals[note] += amount

        spending = [
            CategorySpending(user_id=user_id, category=category, total_spending=total)
            for category, total in sorted(totals.items())
        ]
        logger.info(f"Category spending for user {user_id}: {len(spending)} categories")
        return self._insights.store_all(spending)

    def income_sources(self, user_id: str) -> List[IncomeSource]:
        return [
            IncomeSource(
                user_id=user_id,
                income_type=income_type,
                amount=self._ledger.sum_by_owner("income", user_id, income_type=income_type),
            )
            for income_type in self._ledger.distinct_values("income", user_id, "income_type")
        ]

    def financial_health(self, user_id: str) -> FinancialHealth:
        """
        Health comes from the last stored income and expense summaries, not
        from the ledger. If those summaries are older than the latest ledger
        changes the status is computed from stale figures. With the
        "recompute" health source both summaries are rebuilt first.
        """
        if self._health_source == RECOMPUTE:
            self.income_summary(user_id)
            self.expense_summary(user_id)

        income = self._insights.most_recent_by_owner(IncomeSummary.kind, user_id)
        expenses = self._insights.most_recent_by_owner(ExpenseSummary.kind, user_id)
        total_income = income.total if income else ZERO
        total_expenses = expenses.total if expenses else ZERO

        health = FinancialHealth(
            user_id=user_id,
            status=self._policy.classify_health(total_income, total_expenses),
        )
        logger.info(
            f"Financial health for user {user_id}: income={total_income}, "
            f"expenses={total_expenses}, status={health.status}"
        )
        return self._insights.store(health)


def _check_range(start: date, end: date) -> None:
    if start > end:
        raise InvalidDateRangeError(start, end)
