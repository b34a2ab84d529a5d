"""
Response building utilities for Library Admin API

Provides functions to create standardized API Gateway responses.
"""

from __future__ import annotations

import functools
import json
from decimal import Decimal
from typing import Any, Callable

from admin_backend import config

ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"
ALLOWED_METHODS = "GET, POST, PATCH, DELETE, OPTIONS"


def api_response(status_code: int, body: Any, headers: dict | None = None) -> dict:
    """
    Helper to format API Gateway response.

    CORS headers are added by the cors_enabled decorator, which knows the
    request origin.

    Args:
        status_code: HTTP status code
        body: Response body (will be JSON serialized)
        headers: Optional extra headers (e.g. Set-Cookie)

    Returns:
        dict: API Gateway response with headers
    """
    response_headers = {"Content-Type": "application/json"}
    if headers:
        response_headers.update(headers)
    return {
        "statusCode": status_code,
        "body": json.dumps(convert_decimals(body)),
        "headers": response_headers,
    }


def error_response(status_code: int, message: str) -> dict:
    """
    Helper to create error response.

    Args:
        status_code: HTTP status code
        message: Error message

    Returns:
        dict: API Gateway error response with body {"error": message}
    """
    return api_response(status_code, {"error": message})


def cors_headers(origin: str | None) -> dict[str, str]:
    """
    Build CORS headers for a request origin against the configured allow-list.

    A wildcard entry allows any origin. Otherwise only listed origins are
    echoed back; unknown origins get no Access-Control-Allow-Origin header.
    """
    headers = {
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
    }
    if "*" in config.ALLOWED_ORIGINS:
        headers["Access-Control-Allow-Origin"] = "*"
    elif origin and origin in config.ALLOWED_ORIGINS:
        headers["Access-Control-Allow-Origin"] = origin
        headers["Access-Control-Allow-Credentials"] = "true"
        headers["Vary"] = "Origin"
    return headers


def _request_method(event: dict) -> str:
    # REST API (v1) and HTTP API (v2) payloads keep the method in different places
    method = event.get("httpMethod")
    if not method:
        method = event.get("requestContext", {}).get("http", {}).get("method", "")
    return method.upper()


def _request_origin(event: dict) -> str | None:
    headers = event.get("headers") or {}
    for name, value in headers.items():
        if name.lower() == "origin":
            return value
    return None


def cors_enabled(handler: Callable[[dict, Any], dict]) -> Callable[[dict, Any], dict]:
    """
    Decorator that answers CORS preflight requests and adds CORS headers
    to every response produced by the wrapped Lambda handler.
    """

    @functools.wraps(handler)
    def wrapper(event, context):
        if _request_method(event) == "OPTIONS":
            response = {"statusCode": 200, "body": "ok", "headers": {}}
        else:
            response = handler(event, context)
        response.setdefault("headers", {}).update(cors_headers(_request_origin(event)))
        return response

    return wrapper


def convert_decimal(value: Any) -> Any:
    """
    Convert Decimal types (from DynamoDB) to int or float for JSON serialization.

    Args:
        value: Value that might be a Decimal

    Returns:
        Converted value (int if whole number, otherwise float)
    """
    if isinstance(value, Decimal):
        return int(value) if value % 1 == 0 else float(value)
    return value


def convert_decimals(value: Any) -> Any:
    """Recursively apply convert_decimal to nested dicts, lists and sets."""
    if isinstance(value, dict):
        return {key: convert_decimals(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [convert_decimals(item) for item in value]
    return convert_decimal(value)


BOOK_FIELDS = (
    "id",
    "title",
    "author",
    "subject",
    "level",
    "class_level",
    "description",
    "cover_url",
    "file_path",
    "pages",
    "upload_date",
    "featured",
    "keywords",
    "popularity_score",
)


def serialize_book_response(book_item: dict) -> dict:
    """
    Convert DynamoDB book item to API response format.

    Handles Decimal conversion and fills absent attributes with null so every
    book has the same shape.

    Args:
        book_item: DynamoDB item (Books table)

    Returns:
        dict: Book object for API response
    """
    book: dict[str, Any] = {field: convert_decimals(book_item.get(field)) for field in BOOK_FIELDS}
    book["featured"] = bool(book["featured"])
    book["keywords"] = book["keywords"] or []
    return book
