"""
Insights Router
One endpoint per insight type, plus history and deletion of stored insights
"""
import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from finsight.core.dependencies import get_engine, get_insight_store
from finsight.core.exceptions import InsightNotFoundError, InvalidDateRangeError, StoreUnavailableError
from finsight.db.base import InsightStore
from finsight.models.insights import (
    INSIGHT_KINDS,
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
from finsight.utils.insights_engine import InsightsEngine

router = APIRouter()
logger = logging.getLogger(__name__)

def _build(name: str, builder, *args):
    try:
        return builder(*args)
    except HTTPException:
        raise
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except InsightNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except StoreUnavailableError as e:
        logger.error(f"Store unavailable while building {name}: {str(e)}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception as e:
        logger.error(f"Unexpected error building {name}: {str(e)}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Internal server error: {str(e)}")


def _insight_kind(kind: str) -> str:
    # Paths spell kinds like the builder routes ("savings-goals"); snake case is accepted too
    normalized = kind.replace("-", "_")
    if normalized not in INSIGHT_KINDS:
        raise HTTPException(status_code=404, detail=f"Unknown insight kind: {kind}")
    return normalized


@router.get("/expense-summary", response_model=ExpenseSummary)
def get_expense_summary(user_id: str = Query(..., min_length=1), engine: InsightsEngine = Depends(get_engine)):
    """Total of expenses and transactions, good while below the expense threshold."""
    return _build("expense summary", engine.expense_summary, user_id)


@router.get("/income-summary", response_model=IncomeSummary)
def get_income_summary(user_id: str = Query(..., min_length=1), engine: InsightsEngine = Depends(get_engine)):
    return _build("income summary", engine.income_summary, user_id)


@router.get("/budget-analysis", response_model=BudgetAnalysis)
def get_budget_analysis(user_id: str = Query(..., min_length=1), engine: InsightsEngine = Depends(get_engine)):
    return _build("budget analysis", engine.budget_analysis, user_id)


@router.get("/savings-goals", response_model=SavingsGoals)
def get_savings_goals(user_id: str = Query(..., min_length=1), engine: InsightsEngine = Depends(get_engine)):
    return _build("savings goals", engine.savings_goals, user_id)


@router.get("/expense-trends", response_model=List[ExpenseTrend])
def get_expense_trends(
    user_id: str = Query(..., min_length=1),
    start_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    end_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    engine: InsightsEngine = Depends(get_engine),
):
    """Monthly expense totals; months without expenses are omitted."""
    return _build("expense trends", engine.expense_trends, user_id, start_date, end_date)


@router.get("/income-trends", response_model=List[IncomeTrend])
def get_income_trends(
    user_id: str = Query(..., min_length=1),
    start_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    end_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    engine: InsightsEngine = Depends(get_engine),
):
    """Monthly income totals for every month in the range, zero months included."""
    return _build("income trends", engine.income_trends, user_id, start_date, end_date)


@router.get("/budget-trends", response_model=List[BudgetTrend])
def get_budget_trends(
    user_id: str = Query(..., min_length=1),
    start_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    end_date: date = Query(..., description="YYYY-MM-DD, inclusive"),
    engine: InsightsEngine = Depends(get_engine),
):
    return _build("budget trends", engine.budget_trends, user_id, start_date, end_date)


@router.get("/category-spending", response_model=List[CategorySpending])
def get_category_spending(user_id: str = Query(..., min_length=1), engine: InsightsEngine = Depends(get_engine)):
    return _build("category spending", engine.category_spending, user_id)


@router.get("/income-sources", response_model=List[IncomeSource])
def get_income_sources(user_id: str = Query(..., min_length=1), engine: InsightsEngine = Depends(get_engine)):
    return _build("income sources", engine.income_sources, user_id)


@router.get("/financial-health", response_model=FinancialHealth)
def get_financial_health(user_id: str = Query(..., min_length=1), engine: InsightsEngine = Depends(get_engine)):
    """
    Status from the most recently stored income and expense summaries.
    Request both summaries first, otherwise the totals default to zero.
    """
    return _build("financial health", engine.financial_health, user_id)


@router.get("/{kind}/history")
def list_insight_history(
    kind: str,
    user_id: str = Query(..., min_length=1),
    store: InsightStore = Depends(get_insight_store),
):
    """All stored records of one insight kind for the user, oldest first."""
    kind = _insight_kind(kind)
    records = _build(f"{kind} history", store.list_by_owner, kind, user_id)
    return [record.model_dump(mode="json") for record in records]


@router.delete("/{kind}/{record_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_insight(
    kind: str,
    record_id: str,
    user_id: str = Query(..., min_length=1),
    store: InsightStore = Depends(get_insight_store),
):
    kind = _insight_kind(kind)
    # Records of other users are reported the same way as missing ones
    _build(f"{kind} delete", store.delete_owned, kind, user_id, record_id)
    return None
