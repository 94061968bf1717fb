"""Checkout input validation helpers."""

import re
from typing import Any, Iterable

from models.order import TicketType
from utils.error_handling import ValidationError

MIN_NAME_LENGTH = 2
MAX_NAME_LENGTH = 120

# Structural check only; deliverability is the mailer's problem.
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s.]+$")


def ensure_present(value: Any, field: str) -> None:
    """Raise ValidationError if value is falsy."""
    if value in (None, "", []):
        raise ValidationError(field, f"{field} is required")


def validate_name(value: Any) -> str:
    """Return the trimmed holder name."""
    ensure_present(value, "name")
    if not isinstance(value, str):
        raise ValidationError("name", "name must be a string")
    cleaned = " ".join(value.split())
    if len(cleaned) < MIN_NAME_LENGTH:
        raise ValidationError("name", f"name must have at least {MIN_NAME_LENGTH} characters")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError("name", f"name must have at most {MAX_NAME_LENGTH} characters")
    return cleaned


def validate_email(value: Any) -> str:
    """Return the trimmed email if it looks like an address."""
    ensure_present(value, "email")
    if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
        raise ValidationError("email", "email must be a valid email address")
    return value.strip()


def normalize_ticket_type(value: Any, allowed: Iterable[TicketType] = tuple(TicketType)) -> TicketType:
    """
    Map user input onto the fixed ticket type enumeration.

    Case, surrounding whitespace and ``_``/space separators are normalized, so
    ``"vip"`` becomes ``VIP`` and ``"general admission"`` becomes
    ``GENERAL-ADMISSION``.
    """
    ensure_present(value, "ticket_type")
    if not isinstance(value, str):
        raise ValidationError("ticket_type", "ticket_type must be a string")
    canonical = re.sub(r"[\s_]+", "-", value.strip()).upper()
    allowed = tuple(allowed)
    for ticket_type in allowed:
        if ticket_type.value == canonical:
            return ticket_type
    options = ", ".join(t.value for t in allowed)
    raise ValidationError("ticket_type", f"ticket_type must be one of: {options}")
