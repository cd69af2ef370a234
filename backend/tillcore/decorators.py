# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g


def _header_id(name: str) -> int | None:
    raw = (request.headers.get(name) or "").strip()
    if not raw.isdigit():
        return None
    value = int(raw)
    return value if value > 0 else None


def require_identity(f):
    """
    Establish the acting user and store for the request.

    Sets the following Flask g attributes:
    - g.user_id: The cashier/operator ID (X-User-Id)
    - g.store_id: The tenant store ID (X-Store-Id)

    Authentication happens upstream (terminal login / gateway); this layer
    only requires that both identifiers were forwarded. Returns 401 when
    either header is missing or not a positive integer.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = _header_id("X-User-Id")
        store_id = _header_id("X-Store-Id")

        if user_id is None or store_id is None:
            return jsonify({"error": "X-User-Id and X-Store-Id headers are required"}), 401

        g.user_id = user_id
        g.store_id = store_id

        return f(*args, **kwargs)

    return decorated_function
