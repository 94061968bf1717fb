"""Handler for GET /ticket/{id}."""

import uuid
from typing import Optional

from utils.error_handling import AppError, ValidationError, to_response
from utils.http import internal_error, json_response
from utils.logging_config import get_logger

logger = get_logger(__name__)

# Lazy-loaded service to avoid import-time AWS clients
_ticket_service: Optional["TicketService"] = None


def _get_ticket_service():
    """Lazy-load TicketService."""
    global _ticket_service
    if _ticket_service is None:
        from services.ticket_service import get_ticket_service
        _ticket_service = get_ticket_service()
    return _ticket_service


def _order_id(event) -> Optional[str]:
    path_params = event.get("pathParameters") or {}
    if path_params.get("id"):
        return path_params["id"]
    # Router-only invocations carry the id in the raw path.
    path = event.get("requestContext", {}).get("http", {}).get("path", "")
    prefix = "/ticket/"
    if path.startswith(prefix) and len(path) > len(prefix):
        return path[len(prefix):].strip("/") or None
    return None


def lambda_handler(event, context):
    """Return the stored order and its signed payload."""
    correlation_id = str(uuid.uuid4())
    try:
        order_id = _order_id(event)
        if not order_id:
            raise ValidationError("id", "id is required")

        order = _get_ticket_service().get_order(order_id)
        logger.info("Ticket served", extra={"order_id": order.id})
        return json_response(
            200,
            {
                "id": order.id,
                "signed_payload": order.signed_payload.model_dump(mode="json"),
                "order": order.model_dump(mode="json"),
            },
        )
    except AppError as exc:
        return to_response(exc, correlation_id)
    except Exception:
        logger.exception("Ticket lookup failed", extra={"correlation_id": correlation_id})
        return internal_error(correlation_id)
