"""Standard API Gateway response formatting."""

from __future__ import annotations

import base64
import json
from decimal import Decimal
from typing import Any

from shared.constants import CORS_ORIGIN

_CORS_HEADERS: dict[str, str] = {
    "Access-Control-Allow-Origin": CORS_ORIGIN,
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET,POST,DELETE,OPTIONS",
}


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json", **_CORS_HEADERS},
        "body": json.dumps(body, default=_json_default),
    }


def _json_default(value: Any) -> Any:
    # DynamoDB returns numbers as Decimal
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return str(value)


def success(body: dict[str, Any] | list[Any] | None = None) -> dict[str, Any]:
    """200 OK."""
    return _response(200, body if isinstance(body, dict) else {"data": body})


def binary(data: bytes, content_type: str, filename: str) -> dict[str, Any]:
    """200 OK with a base64-encoded attachment body."""
    return {
        "statusCode": 200,
        "headers": {
            "Content-Type": content_type,
            "Content-Disposition": f'attachment; filename="{filename}"',
            **_CORS_HEADERS,
        },
        "body": base64.b64encode(data).decode("ascii"),
        "isBase64Encoded": True,
    }


def error_response(
    status_code: int,
    reason: str,
    message: str,
    detail: str | None = None,
) -> dict[str, Any]:
    body: dict[str, Any] = {"error": reason, "message": message}
    if detail:
        body["detail"] = detail
    return _response(status_code, body)

