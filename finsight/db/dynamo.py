import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, NoReturn, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from finsight.core.config import settings
from finsight.core.exceptions import StoreUnavailableError
from finsight.db.base import InsightStore, LedgerStore, new_insight_id
from finsight.models.insights import INSIGHT_KINDS, InsightRecord
from finsight.models.ledger import DATE_FIELDS, LEDGER_KINDS, Budget

logger = logging.getLogger(__name__)

LEDGER_TABLES = {
    "expense": settings.DYNAMO_EXPENSES_TABLE,
    "income": settings.DYNAMO_INCOMES_TABLE,
    "transaction": settings.DYNAMO_TRANSACTIONS_TABLE,
    "budget": settings.DYNAMO_BUDGETS_TABLE,
}


def get_resource():
    return boto3.resource("dynamodb", region_name=settings.DYNAMO_REGION)


def _fail(operation: str, error: ClientError) -> NoReturn:
    message = error.response["Error"]["Message"]
    logger.error(f"{operation} failed: {message}")
    raise StoreUnavailableError(operation, message) from error


def _query_all(table, **kwargs) -> List[Dict[str, Any]]:
    """Run a query and follow LastEvaluatedKey until every page is read."""
    items: List[Dict[str, Any]] = []
    while True:
        response = table.query(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            return items
        kwargs["ExclusiveStartKey"] = last_key


class DynamoLedgerStore(LedgerStore):
    """
    One table per ledger kind, partition key `user_id`, sort key `id`.
    Dates are stored as ISO strings so range filters compare lexically.
    """

    def __init__(self, resource=None):
        resource = resource or get_resource()
        self._tables = {kind: resource.Table(name) for kind, name in LEDGER_TABLES.items()}

    def put(self, kind: str, record) -> None:
        try:
            self._tables[kind].put_item(Item=_convert_for_dynamo(record.model_dump()))
        except ClientError as e:
            _fail(f"put {kind}", e)

    def list_by_owner(self, kind: str, user_id: str) -> list:
        model = LEDGER_KINDS[kind]
        try:
            items = _query_all(
                self._tables[kind],
                KeyConditionExpression=Key("user_id").eq(user_id),
            )
        except ClientError as e:
            _fail(f"list {kind} for user", e)
        return [model(**item) for item in items]

    def list_by_owner_and_date_range(self, kind: str, user_id: str, start: date, end: date) -> list:
        if kind not in DATE_FIELDS:
            return super().list_by_owner_and_date_range(kind, user_id, start, end)

        field = DATE_FIELDS[kind]
        model = LEDGER_KINDS[kind]
        try:
            items = _query_all(
                self._tables[kind],
                KeyConditionExpression=Key("user_id").eq(user_id),
                FilterExpression=Attr(field).between(start.isoformat(), end.isoformat()),
            )
        except ClientError as e:
            _fail(f"list {kind} in date range", e)
        records = [model(**item) for item in items]
        return sorted(records, key=lambda r: getattr(r, field))

    def close_budget(self, user_id: str, budget_id: str, on: date) -> Optional[Budget]:
        try:
            response = self._tables["budget"].update_item(
                Key={"user_id": user_id, "id": budget_id},
                UpdateExpression="SET #end = :end",
                ConditionExpression="attribute_exists(id)",
                ExpressionAttributeNames={"#end": "end_date"},
                ExpressionAttributeValues={":end": on.isoformat()},
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            _fail("close budget", e)
        attributes = response.get("Attributes")
        return Budget(**attributes) if attributes else None


class DynamoInsightStore(InsightStore):
    """
    Single table for every insight kind. Partition key `user_id`, sort key
    `insight_id` ("<kind>.<created_at>.<suffix>"), so a reverse begins_with
    query on the kind returns the most recent record first.
    """

    def __init__(self, resource=None):
        resource = resource or get_resource()
        self._table = resource.Table(settings.DYNAMO_INSIGHTS_TABLE)

    def store(self, record: InsightRecord) -> InsightRecord:
        record.id = new_insight_id(record)
        item = _convert_for_dynamo(record.model_dump(exclude={"id"}))
        item["insight_id"] = record.id
        item["kind"] = record.kind
        try:
            self._table.put_item(Item=item)
        except ClientError as e:
            _fail(f"store {record.kind}", e)
        return record

    def store_all(self, records):
        if not records:
            return []
        try:
            with self._table.batch_writer() as batch:
                for record in records:
                    record.id = new_insight_id(record)
                    item = _convert_for_dynamo(record.model_dump(exclude={"id"}))
                    item["insight_id"] = record.id
                    item["kind"] = record.kind
                    batch.put_item(Item=item)
        except ClientError as e:
            _fail(f"store {records[0].kind} batch", e)
        return list(records)

    def list_by_owner(self, kind: str, user_id: str) -> List[InsightRecord]:
        try:
            items = _query_all(
                self._table,
                KeyConditionExpression=Key("user_id").eq(user_id)
                & Key("insight_id").begins_with(f"{kind}."),
            )
        except ClientError as e:
            _fail(f"list {kind} for user", e)
        return [_to_insight(kind, item) for item in items]

    def most_recent_by_owner(self, kind: str, user_id: str) -> Optional[InsightRecord]:
        try:
            response = self._table.query(
                KeyConditionExpression=Key("user_id").eq(user_id)
                & Key("insight_id").begins_with(f"{kind}."),
                ScanIndexForward=False,
                Limit=1,
            )
        except ClientError as e:
            _fail(f"most recent {kind}", e)
        items = response.get("Items", [])
        return _to_insight(kind, items[0]) if items else None

    def get(self, kind: str, user_id: str, record_id: str) -> Optional[InsightRecord]:
        if not record_id.startswith(f"{kind}."):
            return None
        try:
            response = self._table.get_item(Key={"user_id": user_id, "insight_id": record_id})
        except ClientError as e:
            _fail(f"get {kind}", e)
        item = response.get("Item")
        return _to_insight(kind, item) if item else None

    def delete(self, kind: str, user_id: str, record_id: str) -> bool:
        if not record_id.startswith(f"{kind}."):
            return False
        try:
            response = self._table.delete_item(
                Key={"user_id": user_id, "insight_id": record_id},
                ReturnValues="ALL_OLD",
            )
        except ClientError as e:
            _fail(f"delete {kind}", e)
        return "Attributes" in response


def _to_insight(kind: str, item: Dict[str, Any]) -> InsightRecord:
    data = dict(item)
    data["id"] = data.pop("insight_id")
    data.pop("kind", None)
    return INSIGHT_KINDS[kind](**data)


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert values DynamoDB cannot hold: floats become Decimal,
    dates and datetimes become ISO strings.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, (date, datetime)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj
