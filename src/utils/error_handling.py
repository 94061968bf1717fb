"""Custom exceptions and helpers for consistent error responses."""

import json
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import TypeAdapter

# Same wire format as datetimes in pydantic response models.
_DATETIME = TypeAdapter(Optional[datetime])


class AppError(Exception):
    """Base class for application errors."""

    code = "error"

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code

    def to_body(self) -> Dict[str, Any]:
        """Caller-safe JSON body for this error."""
        return {"message": str(self), "error": self.code}


class NotFoundError(AppError):
    """Raised when a requested resource is missing."""

    code = "not-found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message, status_code=404)


class ValidationError(AppError):
    """Raised when input validation fails on a specific field."""

    code = "validation-error"

    def __init__(self, field: str, message: str = "Invalid input"):
        super().__init__(message, status_code=400)
        self.field = field

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["field"] = self.field
        return body


class OrderNotFoundError(NotFoundError):
    """Raised when no order exists for the given id."""

    def __init__(self, order_id: str):
        super().__init__("Order not found")
        self.order_id = order_id


class InvalidSignatureError(AppError):
    """Raised when a payload signature does not match.

    The message is fixed and never names the failed check.
    """

    code = "invalid-signature"

    def __init__(self):
        super().__init__("Invalid signature", status_code=401)


class MalformedPayloadError(AppError):
    """Raised when a signed payload or request body cannot be decoded."""

    code = "malformed-payload"

    def __init__(self, message: str = "Malformed payload"):
        super().__init__(message, status_code=400)


class AlreadyUsedError(AppError):
    """Raised when redeeming a ticket that was already redeemed."""

    code = "already-used"

    def __init__(self, order_id: str, used_at: Optional[datetime]):
        super().__init__("Ticket already used", status_code=409)
        self.order_id = order_id
        self.used_at = used_at

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["used_at"] = _DATETIME.dump_python(self.used_at, mode="json")
        return body


class IdempotencyKeyReusedError(AppError):
    """Raised when an idempotency key is presented with a different checkout request."""

    code = "idempotency-key-reused"

    def __init__(self):
        super().__init__("Idempotency key was used for a different request", status_code=422)


class InfrastructureError(AppError):
    """Raised when a storage or network dependency is unavailable. Retryable."""

    code = "infrastructure-unavailable"
    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable"):
        super().__init__(message, status_code=503)

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["retryable"] = True
        return body


class UnauthorizedError(AppError):
    """Raised when the admin bearer credential is missing or wrong."""

    code = "unauthorized"

    def __init__(self):
        super().__init__("Unauthorized", status_code=401)


def to_response(error: AppError, correlation_id: Optional[str] = None) -> Dict[str, Any]:
    """Convert an AppError into a Lambda proxy integration response."""
    body = error.to_body()
    if correlation_id:
        body["correlation_id"] = correlation_id
    return {
        "statusCode": error.status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(body),
    }
