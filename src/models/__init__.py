"""Pydantic models for API payloads."""

from models.order import (  # noqa: F401
    PAYLOAD_VERSION,
    CheckoutRequest,
    CheckoutResponse,
    Order,
    OrderStatus,
    SignedPayload,
    TicketClaims,
    TicketType,
    VerificationResult,
)
from models.response import ApiResponse  # noqa: F401
from models.verification import SignedToken, parse_token_body  # noqa: F401
