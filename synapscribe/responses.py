"""Helpers for building HTTP function responses and reading JSON bodies.

Cloud Functions hands HTTP functions a ``flask.Request`` and accepts the
usual Flask return values, so responses are plain ``(body, status, headers)``
tuples.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, Tuple

from flask import Request

from .errors import ValidationError

JSON_HEADERS = {"Content-Type": "application/json"}
TEXT_HEADERS = {"Content-Type": "text/plain; charset=utf-8"}

Response = Tuple[str, int, Dict[str, str]]


def json_response(payload: Dict[str, Any], status: int = 200) -> Response:
    return json.dumps(payload), status, JSON_HEADERS


def text_response(message: str, status: int) -> Response:
    return message, status, TEXT_HEADERS


def error_response(status: int, message: str) -> Response:
    """Build a ``{code, message}`` JSON error body."""
    return json_response({"code": status, "message": message}, status)


def read_json_body(request: Request, fields: Iterable[str]) -> Dict[str, str]:
    """Decode a JSON object body and pull out string ``fields``.

    Missing fields read as empty strings.  A body that is not a JSON object,
    or a field holding anything other than a string, raises
    :class:`ValidationError`.
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid request body")
    values: Dict[str, str] = {}
    for field in fields:
        value = data.get(field, "")
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise ValidationError("Invalid request body")
        values[field] = value
    return values
