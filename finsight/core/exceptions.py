class FinSightError(Exception):
    """Base class for errors raised by the insights engine and its stores."""


class StoreUnavailableError(FinSightError):
    """A ledger or insights store call failed. The original error is chained."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation


class InvalidDateRangeError(FinSightError):
    def __init__(self, start, end):
        super().__init__(f"Start date {start} must not be after end date {end}")
        self.start = start
        self.end = end


class InsightNotFoundError(FinSightError):
    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} not found with ID: {record_id}")
        self.kind = kind
        self.record_id = record_id
