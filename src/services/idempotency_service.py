"""Best-effort de-duplication of retried checkout calls."""

from __future__ import annotations

import hashlib
import json
from typing import Optional

from repositories.idempotency_repo import IdempotencyBackend, IdempotencyRecord
from utils.error_handling import IdempotencyKeyReusedError, InfrastructureError
from utils.logging_config import get_logger

logger = get_logger(__name__)


def request_fingerprint(*fields: str) -> str:
    """Stable digest of the normalized checkout fields a key was first used with."""
    canonical = json.dumps(list(fields), separators=(",", ":"), ensure_ascii=True)
    return hashlib.sha256(canonical.encode("ascii")).hexdigest()


class IdempotencyGuard:
    """
    Maps client idempotency keys to issued order ids.

    Not a source of truth: ticket uniqueness comes from fresh ids. When the
    backend is down, reserve() reports no prior order and bind() is skipped.
    A key only replays for the request it was first bound with.
    """

    def __init__(self, backend: IdempotencyBackend, ttl_seconds: int = 86400):
        self.backend = backend
        self.ttl_seconds = ttl_seconds

    def reserve(self, key: str, fingerprint: str) -> Optional[str]:
        """Return the order id previously bound to ``key``, if any.

        Raises:
            IdempotencyKeyReusedError: the key was bound by a different request.
        """
        try:
            record = self.backend.get(key)
        except InfrastructureError:
            logger.warning("Idempotency lookup skipped; backend unavailable")
            return None
        if record is None:
            return None
        if record.fingerprint != fingerprint:
            logger.warning("Idempotency key reused with a different request")
            raise IdempotencyKeyReusedError()
        return record.order_id

    def bind(
        self, key: str, order_id: str, fingerprint: str, ttl_seconds: Optional[int] = None
    ) -> bool:
        """Bind ``key`` to ``order_id``. Returns False if the backend was unavailable."""
        record = IdempotencyRecord(order_id=order_id, fingerprint=fingerprint)
        try:
            self.backend.put(key, record, ttl_seconds or self.ttl_seconds)
            return True
        except InfrastructureError:
            logger.warning("Idempotency bind skipped; backend unavailable", extra={"order_id": order_id})
            return False
