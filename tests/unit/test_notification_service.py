"""
Tests for ticket delivery hand-off.

Run with: pytest tests/unit/test_notification_service.py -v
"""

import json
import threading
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock, patch

import boto3
from moto import mock_aws

from services.notification_service import (
    LoggingNotifier,
    NotificationDispatcher,
    NotificationPort,
    SqsNotifier,
)


class _FailingPort(NotificationPort):
    def send(self, order):
        raise ConnectionError("smtp relay down")


class TestNotificationDispatcher:
    def test_delivers_on_worker(self, ticket_service, checkout_request):
        order = ticket_service.issue(checkout_request).order
        port = MagicMock(spec=NotificationPort)
        with ThreadPoolExecutor(max_workers=1) as executor:
            future = NotificationDispatcher(port, executor=executor).dispatch(order)
            future.result(timeout=5)
        port.send.assert_called_once_with(order)

    def test_failure_is_logged_not_raised(self, ticket_service, checkout_request):
        order = ticket_service.issue(checkout_request).order
        with patch("services.notification_service.logger") as mock_logger:
            with ThreadPoolExecutor(max_workers=1) as executor:
                future = NotificationDispatcher(_FailingPort(), executor=executor).dispatch(order)
                future.exception(timeout=5)
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs["extra"]["order_id"] == order.id

    def test_shut_down_executor_skips_delivery(self, ticket_service, checkout_request):
        order = ticket_service.issue(checkout_request).order
        executor = ThreadPoolExecutor(max_workers=1)
        executor.shutdown()
        assert NotificationDispatcher(LoggingNotifier(), executor=executor).dispatch(order) is None


class _BlockingPort(NotificationPort):
    def __init__(self):
        self.release = threading.Event()
        self.sent = []

    def send(self, order):
        self.release.wait(timeout=5)
        self.sent.append(order.id)


class TestNotificationFlush:
    """Bounded wait for in-flight deliveries before the handler returns."""

    def test_flush_without_pending_work(self):
        dispatcher = NotificationDispatcher(LoggingNotifier())
        assert dispatcher.flush(timeout=0.01) == 0

    def test_flush_waits_for_delivery(self, ticket_service, checkout_request):
        order = ticket_service.issue(checkout_request).order
        port = _BlockingPort()
        with ThreadPoolExecutor(max_workers=1) as executor:
            dispatcher = NotificationDispatcher(port, executor=executor)
            dispatcher.dispatch(order)
            threading.Timer(0.05, port.release.set).start()

            assert dispatcher.flush(timeout=5) == 0
            assert port.sent == [order.id]

    def test_flush_gives_up_after_timeout(self, ticket_service, checkout_request):
        order = ticket_service.issue(checkout_request).order
        port = _BlockingPort()
        with ThreadPoolExecutor(max_workers=1) as executor:
            dispatcher = NotificationDispatcher(port, executor=executor)
            dispatcher.dispatch(order)

            assert dispatcher.flush(timeout=0.01) == 1
            port.release.set()
        assert dispatcher.flush(timeout=0.01) == 0


class TestSqsNotifier:
    def test_publishes_signed_ticket(self, ticket_service, checkout_request):
        order = ticket_service.issue(checkout_request).order
        with mock_aws():
            sqs = boto3.client("sqs", region_name="eu-west-2")
            queue_url = sqs.create_queue(QueueName="ticket-delivery")["QueueUrl"]

            SqsNotifier(queue_url, client=sqs).send(order)

            messages = sqs.receive_message(QueueUrl=queue_url)["Messages"]
        body = json.loads(messages[0]["Body"])
        assert body["order_id"] == order.id
        assert body["holder_email"] == "maria@example.com"
        assert body["payload"] == order.signed_payload.payload
        assert body["signature"] == order.signed_payload.signature
        assert "secret" not in messages[0]["Body"]
