# Overview: Request decorators shared by API routes.

from __future__ import annotations

from functools import wraps

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from .validation import LedgerError, ValidationError, parse_id


def json_body() -> dict:
    """The request's JSON object; anything else is a ValidationError."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def pop_actor(data: dict) -> int | None:
    """Remove and parse the optional operator id carried in a request body."""
    raw = data.pop("admin_id", None)
    return parse_id(raw, "admin_id") if raw is not None else None


def error_response(message: str, error_type: str, status: int):
    return jsonify({"error": message, "error_type": error_type}), status


def translate_errors(action: str):
    """
    Map ledger errors to their HTTP status.

    ValidationError/UnderflowError -> 400, NotFoundError -> 404,
    ConflictError -> 409. Anything unexpected is logged and becomes a 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except HTTPException:
                raise
            except LedgerError as e:
                return error_response(str(e), type(e).__name__, e.http_status)
            except Exception:
                current_app.logger.exception("Failed to %s", action)
                return error_response("Internal server error", "InternalError", 500)

        return decorated_function

    return decorator
