"""SQL order store using SQLAlchemy Core (PostgreSQL in production, SQLite locally)."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from models.order import Order, OrderStatus
from repositories.order_store import (
    OrderStore,
    StatusTransition,
    TransitionOutcome,
    format_timestamp,
    order_from_record,
    order_to_record,
)
from utils.error_handling import InfrastructureError
from utils.logging_config import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id",
    "holder_name",
    "holder_email",
    "ticket_type",
    "created_at",
    "status",
    "used_at",
    "payload",
    "signature",
    "payload_version",
    "rendered_artifact",
)

SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS orders (
        id TEXT PRIMARY KEY,
        holder_name TEXT NOT NULL,
        holder_email TEXT NOT NULL,
        ticket_type TEXT NOT NULL,
        created_at TEXT NOT NULL,
        status TEXT NOT NULL,
        used_at TEXT,
        payload TEXT NOT NULL,
        signature TEXT NOT NULL,
        payload_version INTEGER NOT NULL,
        rendered_artifact TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS orders_created_at_idx ON orders (created_at DESC)",
)

_UPSERT = """
    INSERT INTO orders ({cols}) VALUES ({params})
    ON CONFLICT (id) DO UPDATE SET {updates}
""".format(
    cols=", ".join(_COLUMNS),
    params=", ".join(f":{c}" for c in _COLUMNS),
    updates=", ".join(f"{c} = excluded.{c}" for c in _COLUMNS if c != "id"),
)


class SqlOrderStore(OrderStore):
    """Thin wrapper to keep SQL organized and parameterized."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def create_schema(self) -> None:
        """Create the orders table and index if missing."""
        try:
            with self.engine.begin() as conn:
                for statement in SCHEMA_STATEMENTS:
                    conn.execute(text(statement))
        except SQLAlchemyError as exc:
            raise _unavailable("create_schema", exc) from exc

    def put(self, order: Order) -> None:
        params = {column: None for column in _COLUMNS}
        params.update(order_to_record(order))
        try:
            with self.engine.begin() as conn:
                conn.execute(text(_UPSERT), params)
        except SQLAlchemyError as exc:
            raise _unavailable("put", exc) from exc

    def get(self, order_id: str) -> Optional[Order]:
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    text(f"SELECT {', '.join(_COLUMNS)} FROM orders WHERE id = :id"),
                    {"id": order_id},
                ).fetchone()
        except SQLAlchemyError as exc:
            raise _unavailable("get", exc) from exc
        return order_from_record(dict(row._mapping)) if row else None

    def index_by_creation_time(self, limit: int) -> List[str]:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(
                    text("SELECT id FROM orders ORDER BY created_at DESC LIMIT :limit"),
                    {"limit": limit},
                )
                return [row.id for row in result]
        except SQLAlchemyError as exc:
            raise _unavailable("index_by_creation_time", exc) from exc

    def compare_and_set_status(
        self,
        order_id: str,
        expected: OrderStatus,
        new: OrderStatus,
        used_at: Optional[datetime],
    ) -> StatusTransition:
        try:
            with self.engine.begin() as conn:
                result = conn.execute(
                    text(
                        "UPDATE orders SET status = :new, used_at = :used_at "
                        "WHERE id = :id AND status = :expected"
                    ),
                    {
                        "id": order_id,
                        "new": new.value,
                        "expected": expected.value,
                        "used_at": format_timestamp(used_at) if used_at else None,
                    },
                )
                applied = result.rowcount == 1
        except SQLAlchemyError as exc:
            raise _unavailable("compare_and_set_status", exc) from exc

        current = self.get(order_id)
        if current is None:
            return StatusTransition(TransitionOutcome.NOT_FOUND)
        if applied:
            return StatusTransition(TransitionOutcome.APPLIED, current)
        return StatusTransition(TransitionOutcome.CONFLICT, current)


def _unavailable(operation: str, exc: Exception) -> InfrastructureError:
    logger.error("SQL call failed", extra={"operation": operation, "error": str(exc)})
    return InfrastructureError()
