"""
Ticket payload signing.

The signature is an HMAC-SHA256 over the exact UTF-8 bytes of the canonical
payload string. Verification never re-serializes: whatever bytes the scanner
sends back are the bytes that get checked.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from datetime import datetime
from typing import Union

from pydantic import ValidationError as PydanticValidationError

from models.order import PAYLOAD_VERSION, SignedPayload, TicketClaims, TicketType
from utils.error_handling import MalformedPayloadError

SUPPORTED_VERSIONS = (PAYLOAD_VERSION,)

BytesLike = Union[bytes, str]


def _as_bytes(value: BytesLike) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


class Signer:
    """Keyed signer; the key is fixed for the life of the process."""

    def __init__(self, secret: BytesLike):
        if not secret:
            raise ValueError("Signing secret must not be empty")
        self._key = _as_bytes(secret)

    def __repr__(self) -> str:
        return "Signer(key=***)"

    def sign(self, payload: BytesLike) -> str:
        """Return the hex signature of ``payload``."""
        return hmac.new(self._key, _as_bytes(payload), hashlib.sha256).hexdigest()

    def verify(self, payload: BytesLike, signature: BytesLike) -> bool:
        """Constant-time comparison against a freshly computed signature."""
        expected = self.sign(payload).encode("ascii")
        return hmac.compare_digest(expected, _as_bytes(signature))

    def sign_payload(self, payload: str) -> SignedPayload:
        return SignedPayload(payload=payload, signature=self.sign(payload), version=PAYLOAD_VERSION)


def encode_payload(
    order_id: str,
    holder_name: str,
    holder_email: str,
    ticket_type: TicketType,
    issued_at: datetime,
) -> str:
    """Build the canonical payload string for a new ticket."""
    return json.dumps(
        {
            "v": PAYLOAD_VERSION,
            "id": order_id,
            "name": holder_name,
            "email": holder_email,
            "type": ticket_type.value,
            "iat": issued_at.isoformat(),
        },
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    )


def decode_payload(payload: BytesLike) -> TicketClaims:
    """Parse a verified payload back into claims.

    Raises:
        MalformedPayloadError: the payload is not a supported ticket payload.
    """
    try:
        data = json.loads(_as_bytes(payload).decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedPayloadError("Payload is not valid JSON") from exc

    if not isinstance(data, dict):
        raise MalformedPayloadError("Payload must be a JSON object")
    version = data.get("v")
    if isinstance(version, bool) or version not in SUPPORTED_VERSIONS:
        raise MalformedPayloadError("Unsupported payload version")

    try:
        return TicketClaims(
            version=data["v"],
            order_id=data["id"],
            holder_name=data["name"],
            holder_email=data["email"],
            ticket_type=data["type"],
            issued_at=data["iat"],
        )
    except (KeyError, PydanticValidationError) as exc:
        raise MalformedPayloadError("Payload is missing ticket fields") from exc
