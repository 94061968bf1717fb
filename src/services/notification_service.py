"""
Ticket delivery hand-off.

Rendering the QR image and e-mailing it happen outside this service. We only
publish the signed ticket to a port, in the background, and never let the
outcome reach the checkout response.

Lambda freezes the process once the handler returns, so the handler calls
``flush`` with a bounded wait before responding.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor, wait
from threading import Lock
from typing import Any, Optional, Set

import boto3

from models.order import Order
from utils.logging_config import get_logger

logger = get_logger(__name__)


class NotificationPort(ABC):
    """Delivers an issued ticket to its holder."""

    @abstractmethod
    def send(self, order: Order) -> None:
        ...


class LoggingNotifier(NotificationPort):
    """Default port when no delivery queue is configured."""

    def send(self, order: Order) -> None:
        logger.info(
            "Ticket delivery skipped; no delivery queue configured",
            extra={"order_id": order.id},
        )


class SqsNotifier(NotificationPort):
    """Publish the signed ticket for the external renderer/mailer."""

    def __init__(self, queue_url: str, client: Any = None):
        self.queue_url = queue_url
        self.client = client or boto3.client("sqs")

    def send(self, order: Order) -> None:
        message = {
            "order_id": order.id,
            "holder_name": order.holder_name,
            "holder_email": order.holder_email,
            "ticket_type": order.ticket_type.value,
            "payload": order.signed_payload.payload,
            "signature": order.signed_payload.signature,
            "version": order.signed_payload.version,
        }
        self.client.send_message(QueueUrl=self.queue_url, MessageBody=json.dumps(message))
        logger.info("Ticket delivery queued", extra={"order_id": order.id})


class NotificationDispatcher:
    """Runs ``port.send`` on a worker thread; failures are logged and dropped."""

    def __init__(self, port: NotificationPort, executor: Optional[ThreadPoolExecutor] = None):
        self.port = port
        self.executor = executor or ThreadPoolExecutor(
            max_workers=2, thread_name_prefix="ticket-notify"
        )
        self._pending: Set[Future] = set()
        self._lock = Lock()

    def dispatch(self, order: Order) -> Optional[Future]:
        """Schedule delivery and return immediately."""
        try:
            future = self.executor.submit(self.port.send, order)
        except RuntimeError:
            # Executor already shut down (interpreter exit).
            logger.warning("Ticket delivery not scheduled", extra={"order_id": order.id})
            return None
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(lambda f: self._finished(f, order.id))
        return future

    def flush(self, timeout: float) -> int:
        """Wait up to ``timeout`` seconds for scheduled deliveries.

        Returns the number still running when the wait gave up.
        """
        with self._lock:
            pending = set(self._pending)
        if not pending:
            return 0
        _, not_done = wait(pending, timeout=timeout)
        if not_done:
            logger.warning("Ticket delivery still pending after flush", extra={"pending": len(not_done)})
        return len(not_done)

    def _finished(self, future: Future, order_id: str) -> None:
        with self._lock:
            self._pending.discard(future)
        _log_failure(future, order_id)


def _log_failure(future: Future, order_id: str) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error(
            "Ticket delivery failed",
            extra={"order_id": order_id, "error": str(exc)},
        )
