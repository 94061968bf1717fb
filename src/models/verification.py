"""Verify/redeem request bodies.

Scanners send either ``{"payload": ..., "signature"|"sig": ...}`` or the QR
token nested under ``ticket`` (as an object or a JSON string). Both shapes are
resolved once, here, into a :class:`SignedToken`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    Discriminator,
    Field,
    StrictStr,
    Tag,
    TypeAdapter,
    field_validator,
)


@dataclass(frozen=True)
class SignedToken:
    """Normalized verify/redeem input."""

    payload: str
    signature: str


class FlatTokenBody(BaseModel):
    """``{"payload": "...", "signature": "..."}`` (``sig`` accepted)."""

    kind: Literal["flat"] = "flat"
    payload: StrictStr = Field(min_length=1)
    signature: StrictStr = Field(min_length=1, validation_alias=AliasChoices("signature", "sig"))

    def to_token(self) -> SignedToken:
        return SignedToken(payload=self.payload, signature=self.signature)


class NestedTokenBody(BaseModel):
    """``{"ticket": {...}}`` or ``{"ticket": "<json string>"}``."""

    kind: Literal["nested"] = "nested"
    ticket: FlatTokenBody

    @field_validator("ticket", mode="before")
    @classmethod
    def decode_stringified(cls, value: Any) -> Any:
        """QR scanners hand over the token as raw text."""
        if isinstance(value, str):
            return json.loads(value)
        return value

    def to_token(self) -> SignedToken:
        return self.ticket.to_token()


def _body_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "nested" if "ticket" in value else "flat"
    return getattr(value, "kind", "flat")


TokenBody = Annotated[
    Union[
        Annotated[FlatTokenBody, Tag("flat")],
        Annotated[NestedTokenBody, Tag("nested")],
    ],
    Discriminator(_body_kind),
]

_token_body_adapter = TypeAdapter(TokenBody)


def parse_token_body(raw: Any) -> SignedToken:
    """Resolve a decoded request body into a :class:`SignedToken`.

    Raises:
        pydantic.ValidationError: if the body matches neither shape.
    """
    return _token_body_adapter.validate_python(raw).to_token()
