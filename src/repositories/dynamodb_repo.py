"""DynamoDB-backed order store."""

from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from models.order import Order, OrderStatus
from repositories.order_store import (
    OrderStore,
    StatusTransition,
    TransitionOutcome,
    format_timestamp,
    order_from_record,
    order_to_record,
)
from utils.error_handling import InfrastructureError
from utils.logging_config import get_logger

logger = get_logger(__name__)

CREATED_AT_INDEX = "created_at_index"
# Every order shares one GSI partition so the index is globally time-ordered.
ORDER_RECORD_TYPE = "ORDER"


class DynamoDbOrderStore(OrderStore):
    """Orders table keyed by ``id`` with a ``created_at_index`` GSI."""

    def __init__(self, table_name: str, dynamodb: Any = None, config: Any = None):
        resource = dynamodb or boto3.resource("dynamodb", config=config)
        self.table = resource.Table(table_name)

    def put(self, order: Order) -> None:
        item = order_to_record(order)
        item["record_type"] = ORDER_RECORD_TYPE
        try:
            self.table.put_item(Item=item)
        except (ClientError, BotoCoreError) as exc:
            raise _unavailable("put_item", exc) from exc

    def get(self, order_id: str) -> Optional[Order]:
        try:
            resp = self.table.get_item(Key={"id": order_id}, ConsistentRead=True)
        except (ClientError, BotoCoreError) as exc:
            raise _unavailable("get_item", exc) from exc
        item = resp.get("Item")
        return order_from_record(item) if item else None

    def index_by_creation_time(self, limit: int) -> List[str]:
        """Query most recent orders via the GSI."""
        try:
            resp = self.table.query(
                IndexName=CREATED_AT_INDEX,
                KeyConditionExpression="record_type = :rt",
                ExpressionAttributeValues={":rt": ORDER_RECORD_TYPE},
                ScanIndexForward=False,
                Limit=limit,
            )
        except (ClientError, BotoCoreError) as exc:
            raise _unavailable("query", exc) from exc
        return [item["id"] for item in resp.get("Items", [])]

    def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        used_at: Optional[datetime],
    ) -> StatusTransition:
        if used_at is not None:
            update = "SET #status = :new, used_at = :used_at"
            values = {
                ":new": new.value,
                ":expected": expected.value,
                ":used_at": format_timestamp(used_at),
            }
        else:
            update = "SET #status = :new REMOVE used_at"
            values = {":new": new.value, ":expected": expected.value}

        try:
            resp = self.table.update_item(
                Key={"id": order_id},
                UpdateExpression=update,
                ConditionExpression="attribute_exists(#id) AND #status = :expected",
                ExpressionAttributeNames={"#id": "id", "#status": "status"},
                ExpressionAttributeValues=values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") != "ConditionalCheckFailedException":
                raise _unavailable("update_item", exc) from exc
            # The write was rejected atomically; this read only classifies why.
            current = self.get(order_id)
            if current is None:
                return StatusTransition(TransitionOutcome.NOT_FOUND)
            return StatusTransition(TransitionOutcome.CONFLICT, current)
        except BotoCoreError as exc:
            raise _unavailable("update_item", exc) from exc

        return StatusTransition(TransitionOutcome.APPLIED, order_from_record(resp["Attributes"]))


def _unavailable(operation: str, exc: Exception) -> InfrastructureError:
    logger.error("DynamoDB call failed", extra={"operation": operation, "error": str(exc)})
    return InfrastructureError()
