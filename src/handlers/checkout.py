"""
Checkout handler for POST /checkout.

Issues a signed ticket. Retries carrying the same idempotency key (header
``Idempotency-Key`` or body ``idempotencyKey``) get the original ticket back.
"""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from models.order import CheckoutRequest, CheckoutResponse
from utils.error_handling import AppError, ValidationError, to_response
from utils.http import get_header, internal_error, json_response, parse_json_body
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


# Wire aliases reported by pydantic, mapped to the names the service validators use.
_CANONICAL_FIELDS = {"ticketType": "ticket_type", "idempotencyKey": "idempotency_key"}


def _parse_request(body) -> CheckoutRequest:
    try:
        return CheckoutRequest.model_validate(body)
    except PydanticValidationError as exc:
        errors = exc.errors()
        field = str(errors[0]["loc"][0]) if errors and errors[0]["loc"] else "body"
        field = _CANONICAL_FIELDS.get(field, field)
        raise ValidationError(field, f"{field} is invalid") from exc


def lambda_handler(event, context):
    """Handle POST /checkout."""
    correlation_id = str(uuid.uuid4())
    try:
        request = _parse_request(parse_json_body(event))
        service = _get_ticket_service()
        result = service.issue(request, idempotency_key=get_header(event, "Idempotency-Key"))
        # The runtime freezes once we return; let the delivery hand-off finish first.
        service.flush_notifications()
        response = CheckoutResponse(
            id=result.order.id,
            signed_payload=result.order.signed_payload,
            order=result.order,
            replayed=result.replayed,
        )
        headers = {"Idempotent-Replayed": "true"} if result.replayed else None
        return json_response(201, response.model_dump(mode="json"), headers)

    except AppError as exc:
        logger.info(
            "Checkout rejected",
            extra={"correlation_id": correlation_id, "error_code": exc.code},
        )
        return to_response(exc, correlation_id)
    except Exception:
        logger.exception("Checkout failed", extra={"correlation_id": correlation_id})
        return internal_error(correlation_id)
