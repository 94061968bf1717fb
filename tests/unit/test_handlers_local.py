"""
Local handler tests using mocks.

These tests drive the Lambda handlers with API Gateway HTTP API events
against an in-memory TicketService, so nothing reaches AWS.

Run with: pytest tests/unit/test_handlers_local.py -v
"""

import base64
import json
from unittest.mock import MagicMock, patch

import pytest

from handlers import admin_orders, checkout, main, ticket_lookup, verification
from services.notification_service import NotificationDispatcher, NotificationPort
from services.ticket_service import TicketService
from utils.error_handling import InfrastructureError


def _event(method, path, body=None, headers=None, query=None, path_params=None):
    event = {
        "requestContext": {"http": {"method": method, "path": path}},
        "headers": headers or {},
    }
    if body is not None:
        event["body"] = body if isinstance(body, str) else json.dumps(body)
    if query is not None:
        event["queryStringParameters"] = query
    if path_params is not None:
        event["pathParameters"] = path_params
    return event


def _body(response):
    return json.loads(response["body"])


@pytest.fixture
def service(ticket_service):
    """Point every handler module at the in-memory service."""
    with patch.object(checkout, "_get_ticket_service", return_value=ticket_service), \
            patch.object(ticket_lookup, "_get_ticket_service", return_value=ticket_service), \
            patch.object(verification, "_get_ticket_service", return_value=ticket_service), \
            patch.object(admin_orders, "_get_ticket_service", return_value=ticket_service):
        yield ticket_service


def _checkout(body=None, headers=None):
    body = body or {"name": "Maria Silva", "email": "maria@example.com", "ticketType": "vip"}
    return main.lambda_handler(_event("POST", "/checkout", body, headers), None)


class TestHealthCheckHandler:
    """Test the health check endpoint."""

    def test_health_check_returns_200(self):
        from handlers.health_check import lambda_handler

        result = lambda_handler({}, None)

        assert result["statusCode"] == 200
        body = _body(result)
        assert body["status"] == "ok"
        assert body["order_store"] == "memory"
        assert body["payload_version"] == 1
        assert body["idempotency_scope"] == "process"
        assert "timestamp" in body

    def test_health_check_includes_environment(self):
        from handlers.health_check import lambda_handler

        with patch.dict("os.environ", {"ENVIRONMENT": "test"}):
            body = _body(lambda_handler({}, None))
        assert body["environment"] == "test"

    def test_dynamodb_store_shares_idempotency_keys(self):
        from handlers.health_check import lambda_handler

        with patch.dict("os.environ", {"ORDER_STORE": "dynamodb"}):
            body = _body(lambda_handler({}, None))
        assert body["idempotency_scope"] == "shared"

    def test_health_check_never_exposes_secret(self):
        from handlers.health_check import lambda_handler

        assert "test-signing-secret" not in lambda_handler({}, None)["body"]


class TestCheckoutHandler:
    """POST /checkout."""

    def test_issues_signed_ticket(self, service):
        result = _checkout()

        assert result["statusCode"] == 201
        body = _body(result)
        assert body["replayed"] is False
        assert body["order"]["status"] == "issued"
        assert body["order"]["ticket_type"] == "VIP"
        assert body["signed_payload"]["payload"]
        assert len(body["signed_payload"]["signature"]) == 64
        assert service.get_order(body["id"]).holder_email == "maria@example.com"

    def test_rejects_missing_email(self, service):
        result = _checkout({"name": "Maria Silva", "ticketType": "vip"})

        assert result["statusCode"] == 400
        body = _body(result)
        assert body["error"] == "validation-error"
        assert body["field"] == "email"
        assert "correlation_id" in body

    def test_rejects_unknown_ticket_type(self, service):
        result = _checkout({"name": "Maria Silva", "email": "maria@example.com", "ticketType": "gold"})

        assert result["statusCode"] == 400
        assert _body(result)["field"] == "ticket_type"

    def test_rejects_non_json_body(self, service):
        result = _checkout("{not json")

        assert result["statusCode"] == 400
        assert _body(result)["error"] == "malformed-payload"

    def test_accepts_base64_body(self, service):
        raw = json.dumps({"name": "Maria Silva", "email": "maria@example.com", "ticketType": "booth"})
        event = _event("POST", "/checkout", base64.b64encode(raw.encode()).decode())
        event["isBase64Encoded"] = True

        result = main.lambda_handler(event, None)

        assert result["statusCode"] == 201
        assert _body(result)["order"]["ticket_type"] == "BOOTH"

    def test_idempotency_key_header_replays(self, service):
        first = _checkout(headers={"Idempotency-Key": "retry-1"})
        second = _checkout(headers={"idempotency-key": "retry-1"})

        assert _body(second)["id"] == _body(first)["id"]
        assert _body(second)["replayed"] is True
        assert second["headers"]["Idempotent-Replayed"] == "true"
        assert "Idempotent-Replayed" not in first["headers"]

    def test_key_reused_by_another_holder_is_rejected(self, service):
        first = _checkout(headers={"Idempotency-Key": "1"})
        other = {"name": "Eve Example", "email": "eve@example.com", "ticketType": "vip"}

        second = _checkout(other, headers={"Idempotency-Key": "1"})

        assert second["statusCode"] == 422
        assert _body(second)["error"] == "idempotency-key-reused"
        assert _body(first)["signed_payload"]["payload"] not in second["body"]

    def test_camel_case_field_is_reported_by_canonical_name(self, service):
        result = _checkout({"name": "Maria Silva", "email": "maria@example.com", "ticketType": 5})

        assert result["statusCode"] == 400
        assert _body(result)["field"] == "ticket_type"

    def test_delivery_is_flushed_before_responding(self, store, signer, clock):
        port = MagicMock(spec=NotificationPort)
        service = TicketService(
            store, signer, notifications=NotificationDispatcher(port), clock=clock
        )
        with patch.object(checkout, "_get_ticket_service", return_value=service):
            result = _checkout()

        assert result["statusCode"] == 201
        port.send.assert_called_once()
        assert port.send.call_args.args[0].id == _body(result)["id"]

    def test_storage_outage_is_retryable(self, service):
        with patch.object(service._store, "put", side_effect=InfrastructureError()):
            result = _checkout()

        assert result["statusCode"] == 503
        assert _body(result)["retryable"] is True

    def test_unexpected_error_is_generic(self, service):
        with patch.object(service, "issue", side_effect=KeyError("boom")):
            result = _checkout()

        assert result["statusCode"] == 500
        assert "boom" not in result["body"]


class TestTicketLookupHandler:
    """GET /ticket/{id}."""

    def test_returns_order(self, service):
        order_id = _body(_checkout())["id"]

        result = main.lambda_handler(_event("GET", f"/ticket/{order_id}"), None)

        assert result["statusCode"] == 200
        body = _body(result)
        assert body["id"] == order_id
        assert body["order"]["holder_name"] == "Maria Silva"
        assert body["signed_payload"]["signature"]

    def test_path_parameter_takes_precedence(self, service):
        order_id = _body(_checkout())["id"]

        result = ticket_lookup.lambda_handler(
            _event("GET", "/ticket/ignored", path_params={"id": order_id}), None
        )

        assert result["statusCode"] == 200

    def test_unknown_order(self, service):
        result = main.lambda_handler(_event("GET", "/ticket/nope"), None)

        assert result["statusCode"] == 404
        assert _body(result)["error"] == "not-found"


class TestVerifyAndRedeemHandlers:
    """POST /verify and POST /redeem."""

    def _token(self):
        return _body(_checkout())["signed_payload"]

    def test_verify_flat_body(self, service):
        token = self._token()

        result = main.lambda_handler(_event("POST", "/verify", token), None)

        assert result["statusCode"] == 200
        body = _body(result)
        assert body["ok"] is True
        assert body["status"] == "issued"
        assert body["used_at"] is None

    def test_verify_accepts_sig_alias_and_nested_ticket(self, service):
        token = self._token()
        flat = {"payload": token["payload"], "sig": token["signature"]}

        assert main.lambda_handler(_event("POST", "/verify", flat), None)["statusCode"] == 200
        nested = {"ticket": json.dumps(token)}
        assert main.lambda_handler(_event("POST", "/verify", nested), None)["statusCode"] == 200

    def test_verify_does_not_redeem(self, service):
        token = self._token()
        main.lambda_handler(_event("POST", "/verify", token), None)

        result = main.lambda_handler(_event("POST", "/redeem", token), None)

        assert result["statusCode"] == 200
        assert _body(result)["status"] == "used"

    def test_tampered_payload_is_rejected(self, service):
        token = self._token()
        token["payload"] = token["payload"].replace("Maria", "Mario")

        result = main.lambda_handler(_event("POST", "/verify", token), None)

        assert result["statusCode"] == 401
        body = _body(result)
        assert body["error"] == "invalid-signature"
        assert body["message"] == "Invalid signature"

    def test_missing_signature_is_malformed(self, service):
        result = main.lambda_handler(_event("POST", "/verify", {"payload": "abc"}), None)

        assert result["statusCode"] == 400
        assert _body(result)["error"] == "malformed-payload"

    def test_second_redeem_reports_first_use(self, service):
        token = self._token()
        first = main.lambda_handler(_event("POST", "/redeem", token), None)

        second = main.lambda_handler(_event("POST", "/redeem", token), None)

        assert second["statusCode"] == 409
        body = _body(second)
        assert body["error"] == "already-used"
        assert body["used_at"] == _body(first)["used_at"]
        verified = _body(main.lambda_handler(_event("POST", "/verify", token), None))
        assert verified["used_at"] == body["used_at"]

    def test_verify_after_redeem_shows_used(self, service):
        token = self._token()
        main.lambda_handler(_event("POST", "/redeem", token), None)

        body = _body(main.lambda_handler(_event("POST", "/verify", token), None))

        assert body["ok"] is True
        assert body["status"] == "used"
        assert body["used_at"] is not None


class TestAdminOrdersHandler:
    """GET /admin/orders."""

    def _list(self, headers=None, query=None):
        return main.lambda_handler(_event("GET", "/admin/orders", headers=headers, query=query), None)

    def test_requires_bearer_token(self, service):
        assert self._list()["statusCode"] == 401
        assert self._list({"Authorization": "Bearer wrong"})["statusCode"] == 401
        assert self._list({"Authorization": "Basic test-admin-token"})["statusCode"] == 401

    def test_lists_newest_first(self, service):
        ids = [_body(_checkout())["id"] for _ in range(3)]

        result = self._list({"authorization": "Bearer test-admin-token"}, {"limit": "2"})

        assert result["statusCode"] == 200
        body = _body(result)
        assert [order["id"] for order in body["data"]] == ids[::-1][:2]

    def test_invalid_limit(self, service):
        result = self._list({"Authorization": "Bearer test-admin-token"}, {"limit": "ten"})

        assert result["statusCode"] == 400
        assert _body(result)["field"] == "limit"

    def test_closed_when_no_token_configured(self, service, monkeypatch):
        monkeypatch.setenv("ADMIN_API_TOKEN", "")

        result = self._list({"Authorization": "Bearer test-admin-token"})

        assert result["statusCode"] == 401
