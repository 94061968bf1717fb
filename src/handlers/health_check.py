"""Liveness check for GET /health. Touches no backend."""

import os
from datetime import datetime, timezone

from models.order import PAYLOAD_VERSION
from utils.http import json_response

SERVICE_NAME = "ticket-api"

# Only the DynamoDB deployment shares idempotency keys across instances; the
# memory and sql stores keep them in a per-process LRU cache.
_IDEMPOTENCY_SCOPE = {"dynamodb": "shared"}


def lambda_handler(event, context):
    """Report the deployment flavour; never includes configuration secrets."""
    order_store = os.environ.get("ORDER_STORE", "memory")
    return json_response(
        200,
        {
            "status": "ok",
            "service": SERVICE_NAME,
            "environment": os.environ.get("ENVIRONMENT", "dev"),
            "order_store": order_store,
            "idempotency_scope": _IDEMPOTENCY_SCOPE.get(order_store.lower(), "process"),
            "payload_version": PAYLOAD_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
    )
