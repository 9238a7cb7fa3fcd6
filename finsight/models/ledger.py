from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator


class NotedRecord(BaseModel):
    note: str = ""

    @field_validator("note", mode="before")
    @classmethod
    def blank_note(cls, value):
        # A missing note groups under the empty category instead of None
        return "" if value is None else value


class Expense(NotedRecord):
    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    amount: Decimal
    category: str
    occurred_on: date


class Income(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    income_type: str
    amount: Decimal
    occurred_on: date


class Transaction(NotedRecord):
    # No category of its own; the note is used as one when merged with expenses
    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    amount: Decimal


class Budget(NotedRecord):
    id: str = Field(default_factory=lambda: uuid4().hex)
    user_id: str
    amount: Decimal
    start_date: date
    end_date: Optional[date] = None  # None while the budget is open

    @property
    def is_open(self) -> bool:
        return self.end_date is None

    def overlaps(self, start: date, end: date) -> bool:
        """True if the budget was active at some point between start and end."""
        if self.start_date > end:
            return False
        return self.is_open or self.end_date >= start


LEDGER_KINDS = {
    "expense": Expense,
    "income": Income,
    "transaction": Transaction,
    "budget": Budget,
}

# Field each kind is filtered on for date range queries
DATE_FIELDS = {
    "expense": "occurred_on",
    "income": "occurred_on",
}
