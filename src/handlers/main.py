"""
Single entrypoint Lambda that routes HTTP API requests to thin handler modules.

One Lambda keeps the signer, store clients and idempotency cache warm across
routes.
"""

from typing import Callable, Tuple

from . import admin_orders, checkout, health_check, ticket_lookup, verification
from utils.http import json_response


def lambda_handler(event, context):
    """
    Entry point invoked by API Gateway HTTP API.

    The event contains the HTTP method and path; we route it to the correct
    handler module.
    """
    method = event.get("requestContext", {}).get("http", {}).get("method", "")
    path = event.get("requestContext", {}).get("http", {}).get("path", "")
    route_key = f"{method.upper()} {path}"

    # Exact routes first; the lookup route carries a path parameter.
    route_table: Tuple[Tuple[str, Callable], ...] = (
        ("GET /health", health_check.lambda_handler),
        ("POST /checkout", checkout.lambda_handler),
        ("POST /verify", verification.verify_handler),
        ("POST /redeem", verification.redeem_handler),
        ("GET /admin/orders", admin_orders.lambda_handler),
        ("GET /ticket/", ticket_lookup.lambda_handler),
    )

    for prefix, handler in route_table:
        if route_key == prefix or (prefix.endswith("/") and route_key.startswith(prefix)):
            return handler(event, context)

    return json_response(404, {"message": "Route not found", "route": route_key})
