"""In-process order store for local runs and tests."""

from __future__ import annotations

from datetime import datetime
from threading import Lock
from typing import Dict, List, Optional

from models.order import Order, OrderStatus
from repositories.order_store import OrderStore, StatusTransition, TransitionOutcome


class InMemoryOrderStore(OrderStore):
    """Lock-guarded dict. State does not outlive the process."""

    def __init__(self) -> None:
        self._orders: Dict[str, Order] = {}
        self._lock = Lock()

    def put(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = order

    def get(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def index_by_creation_time(self, limit: int) -> List[str]:
        with self._lock:
            ordered = sorted(self._orders.values(), key=lambda o: o.created_at, reverse=True)
        return [o.id for o in ordered[:limit]]

    def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        used_at: Optional[datetime],
    ) -> StatusTransition:
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                return StatusTransition(TransitionOutcome.NOT_FOUND)
            if current.status != expected:
                return StatusTransition(TransitionOutcome.CONFLICT, current)
            # Re-validate so the used_at-iff-used invariant holds here as well.
            updated = Order.model_validate(
                {**current.model_dump(), "status": new, "used_at": used_at}
            )
            self._orders[order_id] = updated
            return StatusTransition(TransitionOutcome.APPLIED, updated)
