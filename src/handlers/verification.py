"""
Gate handlers for POST /verify and POST /redeem.

Both accept the scanned token as ``{payload, signature|sig}`` or nested under
``ticket``. Verify is read-only; redeem flips the ticket to ``used`` once.
"""

from __future__ import annotations

import uuid
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from models.verification import SignedToken, parse_token_body
from utils.error_handling import AppError, MalformedPayloadError, to_response
from utils.http import internal_error, json_response, parse_json_body
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


def _read_token(event) -> SignedToken:
    try:
        return parse_token_body(parse_json_body(event))
    except PydanticValidationError as exc:
        raise MalformedPayloadError("Request must carry a payload and signature") from exc


def verify_handler(event, context):
    """Handle POST /verify."""
    correlation_id = str(uuid.uuid4())
    try:
        token = _read_token(event)
        result = _get_ticket_service().verify(token.payload, token.signature)
        return json_response(200, result.model_dump(mode="json"))
    except AppError as exc:
        logger.info(
            "Verification rejected",
            extra={"correlation_id": correlation_id, "error_code": exc.code},
        )
        return to_response(exc, correlation_id)
    except Exception:
        logger.exception("Verification failed", extra={"correlation_id": correlation_id})
        return internal_error(correlation_id)


def redeem_handler(event, context):
    """Handle POST /redeem."""
    correlation_id = str(uuid.uuid4())
    try:
        token = _read_token(event)
        order = _get_ticket_service().redeem(token.payload, token.signature)
        return json_response(200, order.model_dump(mode="json"))
    except AppError as exc:
        logger.info(
            "Redemption rejected",
            extra={"correlation_id": correlation_id, "error_code": exc.code},
        )
        return to_response(exc, correlation_id)
    except Exception:
        logger.exception("Redemption failed", extra={"correlation_id": correlation_id})
        return internal_error(correlation_id)
