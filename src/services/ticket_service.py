"""
Ticket lifecycle service: issue, verify, redeem.

Services:
- Depend only on interfaces (stores, ports)
- Validate input and own the issued -> used state machine
- Return domain models or raise AppError subclasses
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional, Tuple

import boto3

from models.order import (
    CheckoutRequest,
    Order,
    OrderStatus,
    SignedPayload,
    TicketClaims,
    TicketType,
    VerificationResult,
)
from repositories.dynamodb_repo import DynamoDbOrderStore
from repositories.idempotency_repo import DynamoDbIdempotencyBackend, InMemoryIdempotencyBackend
from repositories.memory_repo import InMemoryOrderStore
from repositories.order_store import OrderStore, TransitionOutcome
from services.idempotency_service import IdempotencyGuard, request_fingerprint
from services.notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
    NotificationPort,
    SqsNotifier,
)
from services.signing_service import Signer, decode_payload, encode_payload
from utils.error_handling import AlreadyUsedError, InvalidSignatureError, OrderNotFoundError
from utils.logging_config import get_logger
from utils.settings import RuntimeSettings, get_settings
from utils.validators import normalize_ticket_type, validate_email, validate_name

logger = get_logger(__name__)

MAX_LIST_LIMIT = 100

Renderer = Callable[[SignedPayload], str]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_order_id() -> str:
    return str(uuid.uuid4())


@dataclass
class IssueResult:
    """Issued (or replayed) order."""

    order: Order
    replayed: bool = False


class TicketService:
    """Issues signed tickets and enforces single redemption."""

    def __init__(
        self,
        store: OrderStore,
        signer: Signer,
        idempotency: Optional[IdempotencyGuard] = None,
        notifications: Optional[NotificationDispatcher] = None,
        ticket_types: Iterable[TicketType] = tuple(TicketType),
        renderer: Optional[Renderer] = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_order_id,
        notification_flush_timeout: float = 2.0,
    ) -> None:
        self._store = store
        self._signer = signer
        self._idempotency = idempotency
        self._notifications = notifications
        self._ticket_types = tuple(ticket_types)
        self._renderer = renderer
        self._clock = clock
        self._id_factory = id_factory
        self._notification_flush_timeout = notification_flush_timeout

    def issue(self, request: CheckoutRequest, idempotency_key: Optional[str] = None) -> IssueResult:
        """Validate, sign and persist a new ticket.

        A retried call with an idempotency key that is still bound to a stored
        order returns that order unchanged instead of issuing a second ticket.

        Raises:
            ValidationError: a field failed validation; nothing is written.
            IdempotencyKeyReusedError: the key was first used for a different
                holder or ticket type.
            InfrastructureError: the order could not be persisted.
        """
        name = validate_name(request.name)
        email = validate_email(request.email)
        ticket_type = normalize_ticket_type(request.ticket_type, self._ticket_types)

        key = idempotency_key or request.idempotency_key
        fingerprint = request_fingerprint(name, email.lower(), ticket_type.value)
        if key and self._idempotency is not None:
            previous_id = self._idempotency.reserve(key, fingerprint)
            previous = self._store.get(previous_id) if previous_id else None
            if previous is not None:
                logger.info("Checkout replayed", extra={"order_id": previous.id, "replayed": True})
                return IssueResult(order=previous, replayed=True)

        order_id = self._id_factory()
        created_at = self._clock()
        signed = self._signer.sign_payload(
            encode_payload(order_id, name, email, ticket_type, created_at)
        )
        order = Order(
            id=order_id,
            holder_name=name,
            holder_email=email,
            ticket_type=ticket_type,
            created_at=created_at,
            status=OrderStatus.ISSUED,
            signed_payload=signed,
            rendered_artifact=self._render(order_id, signed),
        )

        self._store.put(order)

        if key and self._idempotency is not None:
            self._idempotency.bind(key, order.id, fingerprint)

        logger.info(
            "Ticket issued",
            extra={"order_id": order.id, "ticket_type": ticket_type.value},
        )

        if self._notifications is not None:
            self._notifications.dispatch(order)

        return IssueResult(order=order)

    def flush_notifications(self) -> int:
        """Give in-flight deliveries a bounded chance to finish before the response.

        Returns the number of deliveries still running afterwards.
        """
        if self._notifications is None:
            return 0
        return self._notifications.flush(self._notification_flush_timeout)

    def get_order(self, order_id: str) -> Order:
        """Return a stored order or raise OrderNotFoundError."""
        order = self._store.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_recent(self, limit: int = 20) -> List[Order]:
        """Most recently created orders first. Read-only."""
        limit = max(1, min(limit, MAX_LIST_LIMIT))
        orders = []
        for order_id in self._store.index_by_creation_time(limit):
            order = self._store.get(order_id)
            if order is not None:
                orders.append(order)
        return orders

    def verify(self, payload: str, signature: str) -> VerificationResult:
        """Check a presented ticket without changing it.

        Status and used_at come from the stored order; the claims are what
        the signature vouches for.
        """
        claims, order = self._authenticate(payload, signature)
        return VerificationResult(
            ok=True,
            order_id=order.id,
            status=order.status,
            used_at=order.used_at,
            claims=claims,
        )

    def redeem(self, payload: str, signature: str) -> Order:
        """Mark a ticket as used, exactly once.

        Raises:
            AlreadyUsedError: carries the time of the first redemption.
        """
        claims, _ = self._authenticate(payload, signature)
        transition = self._store.compare_and_set_status(
            claims.order_id,
            expected=OrderStatus.ISSUED,
            new=OrderStatus.USED,
            used_at=self._clock(),
        )

        if transition.outcome == TransitionOutcome.NOT_FOUND:
            raise OrderNotFoundError(claims.order_id)
        if transition.outcome == TransitionOutcome.CONFLICT:
            used_at = transition.order.used_at if transition.order else None
            logger.warning("Redemption rejected; ticket already used", extra={"order_id": claims.order_id})
            raise AlreadyUsedError(claims.order_id, used_at)

        logger.info("Ticket redeemed", extra={"order_id": claims.order_id})
        return transition.order

    def _authenticate(self, payload: str, signature: str) -> Tuple[TicketClaims, Order]:
        if not self._signer.verify(payload, signature):
            raise InvalidSignatureError()
        claims = decode_payload(payload)
        return claims, self.get_order(claims.order_id)

    def _render(self, order_id: str, signed: SignedPayload) -> Optional[str]:
        """Optional rendering hook; a failed render never blocks issuance."""
        if self._renderer is None:
            return None
        try:
            return self._renderer(signed)
        except Exception as exc:
            logger.warning("Ticket rendering failed", extra={"order_id": order_id, "error": str(exc)})
            return None


def build_ticket_service(settings: RuntimeSettings) -> TicketService:
    """Wire the service from runtime settings."""
    boto_config = settings.boto_config()

    if settings.order_store == "dynamodb":
        store: OrderStore = DynamoDbOrderStore(settings.orders_table, config=boto_config)
        backend = DynamoDbIdempotencyBackend(settings.idempotency_table, config=boto_config)
    elif settings.order_store == "sql":
        # SQLAlchemy is only bundled where the SQL backend is deployed.
        from sqlalchemy import create_engine

        from repositories.postgres_repo import SqlOrderStore

        if not settings.database_url:
            raise RuntimeError("DATABASE_URL is required when ORDER_STORE=sql")
        connect_args = {}
        if settings.database_url.startswith("postgresql"):
            connect_args["connect_timeout"] = int(settings.storage_connect_timeout_seconds)
        engine = create_engine(
            settings.database_url,
            pool_pre_ping=True,
            pool_recycle=300,
            connect_args=connect_args,
        )
        store = SqlOrderStore(engine)
        store.create_schema()
        backend = InMemoryIdempotencyBackend(ttl_seconds=settings.idempotency_ttl_seconds)
    else:
        logger.warning("Using in-memory order store; orders are lost on restart")
        store = InMemoryOrderStore()
        backend = InMemoryIdempotencyBackend(ttl_seconds=settings.idempotency_ttl_seconds)

    port: NotificationPort
    if settings.notification_queue_url:
        port = SqsNotifier(
            settings.notification_queue_url, client=boto3.client("sqs", config=boto_config)
        )
    else:
        port = LoggingNotifier()

    return TicketService(
        store=store,
        signer=Signer(settings.signing_secret),
        idempotency=IdempotencyGuard(backend, ttl_seconds=settings.idempotency_ttl_seconds),
        notifications=NotificationDispatcher(port),
        ticket_types=settings.ticket_types,
        notification_flush_timeout=settings.notification_flush_timeout_seconds,
    )


_default_service: Optional[TicketService] = None


def get_ticket_service() -> TicketService:
    """Process-wide service, built on first use (survives warm invocations)."""
    global _default_service
    if _default_service is None:
        _default_service = build_ticket_service(get_settings())
    return _default_service
