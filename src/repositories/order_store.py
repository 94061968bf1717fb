"""Order store interface (repository pattern).

Stores must be swappable and return domain models.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from models.order import Order, OrderStatus, SignedPayload, TicketType


class TransitionOutcome(str, Enum):
    """Result of a conditional status update."""

    APPLIED = "applied"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class StatusTransition:
    """Outcome plus the stored order as it stands after the attempt."""

    outcome: TransitionOutcome
    order: Optional[Order] = None


class OrderStore(ABC):
    """Interface for order persistence operations."""

    @abstractmethod
    def put(self, order: Order) -> None:
        """Insert or replace an order. Durable once this returns."""
        ...

    @abstractmethod
    def get(self, order_id: str) -> Optional[Order]:
        """Return an order by id, or None if not found."""
        ...

    @abstractmethod
    def index_by_creation_time(self, limit: int) -> List[str]:
        """Return up to ``limit`` order ids, most recently created first."""
        ...

    @abstractmethod
    def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        used_at: Optional[datetime],
    ) -> StatusTransition:
        """Atomically move ``order_id`` from ``expected`` to ``new``.

        This is the only mutation path after issuance and must be a single
        conditional update in the backend, never read-then-write.
        """
        ...


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO string so lexical order matches time order."""
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def order_to_record(order: Order) -> Dict[str, Any]:
    """Flatten an order into backend columns/attributes. Absent values are omitted."""
    record: Dict[str, Any] = {
        "id": order.id,
        "holder_name": order.holder_name,
        "holder_email": order.holder_email,
        "ticket_type": order.ticket_type.value,
        "created_at": format_timestamp(order.created_at),
        "status": order.status.value,
        "payload": order.signed_payload.payload,
        "signature": order.signed_payload.signature,
        "payload_version": order.signed_payload.version,
    }
    if order.used_at is not None:
        record["used_at"] = format_timestamp(order.used_at)
    if order.rendered_artifact is not None:
        record["rendered_artifact"] = order.rendered_artifact
    return record


def order_from_record(record: Mapping[str, Any]) -> Order:
    """Inverse of :func:`order_to_record`."""
    used_at = record.get("used_at")
    return Order(
        id=record["id"],
        holder_name=record["holder_name"],
        holder_email=record["holder_email"],
        ticket_type=TicketType(record["ticket_type"]),
        created_at=datetime.fromisoformat(record["created_at"]),
        status=OrderStatus(record["status"]),
        used_at=datetime.fromisoformat(used_at) if used_at else None,
        signed_payload=SignedPayload(
            payload=record["payload"],
            signature=record["signature"],
            version=int(record["payload_version"]),
        ),
        rendered_artifact=record.get("rendered_artifact"),
    )
