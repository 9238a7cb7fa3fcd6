from decimal import Decimal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # App settings
    PROJECT_NAME: str = "FinSight"
    API_PREFIX: str = "/api"
    DEBUG: bool = Field(default=False)
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=8000)

    # "dynamodb" in deployments, "memory" for local runs and tests
    STORE_BACKEND: str = Field(default="dynamodb")

    # DynamoDB
    DYNAMO_REGION: str = Field(default="eu-west-1")
    DYNAMO_EXPENSES_TABLE: str = Field(default="finsight-expenses")
    DYNAMO_INCOMES_TABLE: str = Field(default="finsight-incomes")
    DYNAMO_TRANSACTIONS_TABLE: str = Field(default="finsight-transactions")
    DYNAMO_BUDGETS_TABLE: str = Field(default="finsight-budgets")
    DYNAMO_INSIGHTS_TABLE: str = Field(default="finsight-insights")

    # Insight policy
    EXPENSE_STATUS_THRESHOLD: Decimal = Field(default=Decimal("5000"))
    INCOME_STATUS_THRESHOLD: Decimal = Field(default=Decimal("10000"))
    SAVINGS_GOAL_RATE: Decimal = Field(default=Decimal("0.20"))

    # "read_last" uses the last stored summaries, "recompute" rebuilds them first
    HEALTH_SOURCE: str = Field(default="read_last")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
