"""Handler for GET /admin/orders (static bearer credential, read-only)."""

import hmac
import uuid
from typing import Optional

from models.response import ApiResponse
from utils.error_handling import AppError, UnauthorizedError, ValidationError, to_response
from utils.http import get_header, internal_error, json_response
from utils.logging_config import get_logger
from utils.settings import get_settings

logger = get_logger(__name__)

DEFAULT_LIMIT = 20

# Lazy-loaded service to avoid import-time AWS clients
_ticket_service: Optional["TicketService"] = None


def _get_ticket_service():
    """Lazy-load TicketService."""
    global _ticket_service
    if _ticket_service is None:
        from services.ticket_service import get_ticket_service
        _ticket_service = get_ticket_service()
    return _ticket_service


def _authorize(event) -> None:
    expected = get_settings().admin_api_token
    header = get_header(event, "Authorization") or ""
    scheme, _, token = header.partition(" ")
    # No configured token means the admin surface is closed.
    if not expected or scheme.lower() != "bearer" or not token:
        raise UnauthorizedError()
    if not hmac.compare_digest(token.strip().encode(), expected.encode()):
        raise UnauthorizedError()


def _limit(event) -> int:
    raw = (event.get("queryStringParameters") or {}).get("limit")
    if raw is None:
        return DEFAULT_LIMIT
    try:
        return int(raw)
    except ValueError as exc:
        raise ValidationError("limit", "limit must be an integer") from exc


def lambda_handler(event, context):
    """List the most recently issued orders."""
    correlation_id = str(uuid.uuid4())
    try:
        _authorize(event)
        orders = _get_ticket_service().list_recent(_limit(event))
        response = ApiResponse(
            message="ok",
            data=[order.model_dump(mode="json") for order in orders],
            correlation_id=correlation_id,
        )
        logger.info("Admin listing served", extra={"count": len(orders)})
        return json_response(200, response.model_dump(mode="json"))
    except AppError as exc:
        return to_response(exc, correlation_id)
    except Exception:
        logger.exception("Admin listing failed", extra={"correlation_id": correlation_id})
        return internal_error(correlation_id)
