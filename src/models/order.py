"""Ticket order models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

PAYLOAD_VERSION = 1


class TicketType(str, Enum):
    """Fixed ticket type enumeration; values are the canonical spelling."""

    VIP = "VIP"
    GENERAL_ADMISSION = "GENERAL-ADMISSION"
    HALF_PRICE = "HALF-PRICE"
    BOOTH = "BOOTH"


class OrderStatus(str, Enum):
    """Ticket lifecycle: issued -> used, never back."""

    ISSUED = "issued"
    USED = "used"


class SignedPayload(BaseModel):
    """Canonical payload string plus its signature, carried verbatim end-to-end."""

    model_config = ConfigDict(frozen=True)

    payload: str
    signature: str
    version: int = PAYLOAD_VERSION

    def as_token(self) -> str:
        """Compact form a scanner can post back as ``{"ticket": <token>}``."""
        return self.model_dump_json(include={"payload", "signature"})


class Order(BaseModel):
    """Stored ticket record."""

    model_config = ConfigDict(frozen=True)

    id: str
    holder_name: str
    holder_email: str
    ticket_type: TicketType
    created_at: datetime
    status: OrderStatus = OrderStatus.ISSUED
    used_at: Optional[datetime] = None
    signed_payload: SignedPayload
    rendered_artifact: Optional[str] = None

    @model_validator(mode="after")
    def check_used_at(self) -> "Order":
        """used_at is present exactly when the ticket has been used."""
        if (self.status == OrderStatus.USED) != (self.used_at is not None):
            raise ValueError("used_at must be set if and only if status is 'used'")
        return self


class TicketClaims(BaseModel):
    """Fields recovered from a verified signed payload."""

    version: int
    order_id: str
    holder_name: str
    holder_email: str
    ticket_type: TicketType
    issued_at: datetime


class CheckoutRequest(BaseModel):
    """Inbound checkout payload. Field checks live in the ticket service."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    email: Optional[str] = None
    ticket_type: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ticket_type", "ticketType")
    )
    idempotency_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("idempotency_key", "idempotencyKey")
    )


class CheckoutResponse(BaseModel):
    """Response for a successful checkout."""

    id: str
    signed_payload: SignedPayload
    order: Order
    replayed: bool = False


class VerificationResult(BaseModel):
    """Outcome of a read-only verification.

    ``status`` and ``used_at`` come from the stored order; ``claims`` only
    from the verified payload.
    """

    ok: bool = True
    order_id: str
    status: OrderStatus
    used_at: Optional[datetime] = None
    claims: TicketClaims
