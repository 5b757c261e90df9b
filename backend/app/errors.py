from __future__ import annotations

from typing import Any, Dict, Optional

from flask import jsonify
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from app.extensions import db


class ApiError(Exception):
    """Base for errors surfaced to API callers with their own kind and status."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"ok": False, "error": self.kind, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(ApiError):
    status_code = 400
    kind = "validation_error"

    def __init__(self, message: str, *, field: str | None = None, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.field = field


class InvalidDateFormat(ValidationError):
    kind = "invalid_date_format"

    def __init__(self, value: str, *, field: str | None = None):
        super().__init__(
            f"Invalid date format: {value}. Expected format: DD-MM-YYYY or YYYY-MM-DD",
            field=field,
            details={"value": value},
        )
        self.value = value


class InvalidDateRange(ValidationError):
    kind = "invalid_date_range"

    def __init__(self, message: str = "Invalid date range: start date must be before or equal to end date", *, field: str | None = None):
        super().__init__(message, field=field)


class Unauthorized(ApiError):
    status_code = 401
    kind = "unauthorized"


class Forbidden(ApiError):
    status_code = 403
    kind = "forbidden"


class NotFound(ApiError):
    status_code = 404
    kind = "not_found"


class Conflict(ApiError):
    status_code = 409
    kind = "conflict"


class InsufficientStock(ApiError):
    status_code = 409
    kind = "insufficient_stock"

    def __init__(self, part_number: str, available: int, requested: int):
        super().__init__(
            f"Insufficient quantity for part {part_number}. Available: {available}, Requested: {requested}",
            details={"part_number": part_number, "available": int(available), "requested": int(requested)},
        )
        self.part_number = part_number
        self.available = int(available)
        self.requested = int(requested)


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(IntegrityError)
    def _integrity_error(e: IntegrityError):
        db.session.rollback()
        app.logger.warning("Integrity error: %s", e.orig)
        return jsonify(Conflict("Duplicate field value entered").to_dict()), 409

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(e):
        limit = app.config.get("MAX_CONTENT_LENGTH") or 0
        return jsonify(ValidationError(f"File too large. Maximum size is {limit} bytes.", field="file").to_dict()), 400

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        return jsonify({"ok": False, "error": (e.name or "error").lower().replace(" ", "_"), "message": e.description}), e.code

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error: %s", e)
        return jsonify({"ok": False, "error": "internal", "message": "Internal server error"}), 500
