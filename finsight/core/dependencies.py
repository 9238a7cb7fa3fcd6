from functools import lru_cache

from finsight.core.config import settings
from finsight.db.base import InsightStore, LedgerStore
from finsight.utils.insights_engine import InsightsEngine
from finsight.utils.thresholds import ThresholdPolicy


@lru_cache
def get_ledger_store() -> LedgerStore:
    if settings.STORE_BACKEND == "memory":
        from finsight.db.memory import InMemoryLedgerStore
        return InMemoryLedgerStore()

    from finsight.db.dynamo import DynamoLedgerStore
    return DynamoLedgerStore()


@lru_cache
def get_insight_store() -> InsightStore:
    if settings.STORE_BACKEND == "memory":
        from finsight.db.memory import InMemoryInsightStore
        return InMemoryInsightStore()

    from finsight.db.dynamo import DynamoInsightStore
    return DynamoInsightStore()


def get_engine() -> InsightsEngine:
    return InsightsEngine(
        ledger=get_ledger_store(),
        insights=get_insight_store(),
        policy=ThresholdPolicy.from_settings(settings),
        health_source=settings.HEALTH_SOURCE,
    )
