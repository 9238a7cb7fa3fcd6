from dataclasses import dataclass
from decimal import Decimal

GOOD = "good"
BAD = "bad"
ON_TRACK = "on_track"
NEEDS_ATTENTION = "needs_attention"


@dataclass(frozen=True)
class ThresholdPolicy:
    """Named limits used to turn computed totals into status labels."""

    expense_threshold: Decimal = Decimal("5000")
    income_threshold: Decimal = Decimal("10000")
    savings_rate: Decimal = Decimal("0.20")

    @classmethod
    def from_settings(cls, settings) -> "ThresholdPolicy":
        return cls(
            expense_threshold=Decimal(settings.EXPENSE_STATUS_THRESHOLD),
            income_threshold=Decimal(settings.INCOME_STATUS_THRESHOLD),
            savings_rate=Decimal(settings.SAVINGS_GOAL_RATE),
        )

    def classify_expenses(self, total: Decimal) -> str:
        return GOOD if total < self.expense_threshold else BAD

    def classify_income(self, total: Decimal) -> str:
        return GOOD if total > self.income_threshold else BAD

    def savings_goal(self, total_income: Decimal) -> Decimal:
        return total_income * self.savings_rate

    @staticmethod
    def classify_savings(achieved: Decimal, goal: Decimal) -> str:
        return ON_TRACK if achieved >= goal else NEEDS_ATTENTION

    @staticmethod
    def classify_health(income: Decimal, expenses: Decimal) -> str:
        return GOOD if income - expenses >= 0 else BAD

    @staticmethod
    def classify_income_trend(before_start: Decimal, up_to_end: Decimal) -> str:
        # Income has to grow over the range to count as good
        return GOOD if up_to_end > before_start else BAD

    @staticmethod
    def classify_budget_trend(latest: Decimal, peak: Decimal) -> str:
        return GOOD if latest >= peak else BAD
