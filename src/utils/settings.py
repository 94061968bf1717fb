"""
Runtime configuration for the ticket Lambdas.

Loaded once per process. The signing secret is excluded from ``repr`` so the
settings object can be logged without leaking it.
"""

from __future__ import annotations

import json
import os
import secrets
from dataclasses import dataclass, field
from typing import Optional, Tuple

import boto3
from botocore.config import Config

from models.order import TicketType
from utils.logging_config import get_logger

logger = get_logger(__name__)

ORDER_STORE_BACKENDS = ("memory", "dynamodb", "sql")


@dataclass(frozen=True)
class RuntimeSettings:
    """Process-wide settings consumed by the ticket core."""

    environment: str = "dev"
    signing_secret: str = field(default="", repr=False)
    ticket_types: Tuple[TicketType, ...] = tuple(TicketType)
    idempotency_ttl_seconds: int = 86400

    order_store: str = "memory"
    orders_table: str = "ticket-orders"
    idempotency_table: str = "ticket-idempotency"
    database_url: Optional[str] = field(default=None, repr=False)
    notification_queue_url: Optional[str] = None
    admin_api_token: Optional[str] = field(default=None, repr=False)

    storage_connect_timeout_seconds: float = 2.0
    storage_read_timeout_seconds: float = 5.0
    notification_flush_timeout_seconds: float = 2.0

    @classmethod
    def from_environment(cls) -> "RuntimeSettings":
        """Load settings from environment variables."""
        env = os.environ.get("ENVIRONMENT", "dev")
        order_store = os.environ.get("ORDER_STORE", "memory").lower()
        if order_store not in ORDER_STORE_BACKENDS:
            raise ValueError(f"ORDER_STORE must be one of {', '.join(ORDER_STORE_BACKENDS)}")

        return cls(
            environment=env,
            signing_secret=_load_signing_secret(env),
            ticket_types=_parse_ticket_types(os.environ.get("TICKET_TYPES")),
            idempotency_ttl_seconds=int(os.environ.get("IDEMPOTENCY_TTL_SECONDS", "86400")),
            order_store=order_store,
            orders_table=os.environ.get("ORDERS_TABLE", "ticket-orders"),
            idempotency_table=os.environ.get("IDEMPOTENCY_TABLE", "ticket-idempotency"),
            database_url=os.environ.get("DATABASE_URL"),
            notification_queue_url=os.environ.get("NOTIFICATION_QUEUE_URL") or None,
            admin_api_token=os.environ.get("ADMIN_API_TOKEN") or None,
            storage_connect_timeout_seconds=float(
                os.environ.get("STORAGE_CONNECT_TIMEOUT_SECONDS", "2")
            ),
            storage_read_timeout_seconds=float(
                os.environ.get("STORAGE_READ_TIMEOUT_SECONDS", "5")
            ),
            notification_flush_timeout_seconds=float(
                os.environ.get("NOTIFICATION_FLUSH_TIMEOUT_SECONDS", "2")
            ),
        )

    def boto_config(self) -> Config:
        """Bounded timeouts so a slow backend fails fast instead of hanging."""
        return Config(
            connect_timeout=self.storage_connect_timeout_seconds,
            read_timeout=self.storage_read_timeout_seconds,
            retries={"max_attempts": 2, "mode": "standard"},
        )


def _parse_ticket_types(raw: Optional[str]) -> Tuple[TicketType, ...]:
    """Restrict the enumeration to a configured subset, keeping enum order."""
    if not raw:
        return tuple(TicketType)
    wanted = {part.strip().upper() for part in raw.split(",") if part.strip()}
    unknown = wanted - {t.value for t in TicketType}
    if unknown:
        raise ValueError(f"Unknown ticket types in TICKET_TYPES: {', '.join(sorted(unknown))}")
    return tuple(t for t in TicketType if t.value in wanted)


def _load_signing_secret(environment: str) -> str:
    """Resolve the signing key from the environment or Secrets Manager."""
    secret = os.environ.get("TICKET_SIGNING_SECRET")
    if secret:
        return secret

    secret_arn = os.environ.get("SIGNING_SECRET_ARN")
    if secret_arn:
        return _secret_from_arn(secret_arn)

    if environment == "prod":
        raise RuntimeError("Signing secret is not configured")

    logger.warning(
        "Signing secret not configured; using an ephemeral per-process key",
        extra={"environment": environment},
    )
    return secrets.token_hex(32)


def _secret_from_arn(secret_arn: str) -> str:
    """Fetch the signing key from Secrets Manager (plain or ``{"secret": ...}`` JSON)."""
    sm = boto3.client("secretsmanager")
    secret_value = sm.get_secret_value(SecretId=secret_arn)["SecretString"]
    try:
        parsed = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value
    if not isinstance(parsed, dict):
        return secret_value
    if not parsed.get("secret"):
        raise RuntimeError("Signing secret payload has no 'secret' key")
    return parsed["secret"]


_settings: Optional[RuntimeSettings] = None


def get_settings() -> RuntimeSettings:
    """Settings for this process, loaded on first use."""
    global _settings
    if _settings is None:
        _settings = RuntimeSettings.from_environment()
    return _settings
