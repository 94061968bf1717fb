"""API Gateway HTTP API helpers shared by the handlers."""

import base64
import json
from typing import Any, Dict, Optional

from utils.error_handling import MalformedPayloadError

JSON_HEADERS = {"Content-Type": "application/json"}


def json_response(
    status: int, body: Any, headers: Optional[Dict[str, str]] = None
) -> Dict[str, Any]:
    """Format a JSON API Gateway HTTP API response."""
    return {
        "statusCode": status,
        "headers": {**JSON_HEADERS, **(headers or {})},
        "body": json.dumps(body),
    }


def internal_error(correlation_id: str) -> Dict[str, Any]:
    """Generic 500; exception details stay in the logs."""
    return json_response(
        500,
        {"message": "Internal error", "error": "internal", "correlation_id": correlation_id},
    )


def parse_json_body(event: Dict[str, Any]) -> Any:
    """Decode the request body, honouring ``isBase64Encoded``."""
    raw = event.get("body") or "{}"
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedPayloadError("Request body is not valid JSON") from exc


def get_header(event: Dict[str, Any], name: str) -> Optional[str]:
    """Case-insensitive header lookup (HTTP API lowercases, REST API does not)."""
    wanted = name.lower()
    for key, value in (event.get("headers") or {}).items():
        if key.lower() == wanted:
            return value
    return None
