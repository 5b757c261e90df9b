from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from flask import request

from app.errors import ValidationError

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_INT_RE = re.compile(r"-?\d+", re.ASCII)


def json_body() -> dict:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def require_str(data: dict, name: str, message: str | None = None, *, min_len: int = 1) -> str:
    value = data.get(name)
    if not isinstance(value, str) or len(value.strip()) < min_len:
        raise ValidationError(message or f"{name} is required", field=name)
    return value.strip()


def optional_str(data: dict, name: str) -> Optional[str]:
    value = data.get(name)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{name} must be a string", field=name)
    return value.strip() or None


def optional_email(data: dict, name: str = "email") -> Optional[str]:
    value = optional_str(data, name)
    if value is None:
        return None
    if not _EMAIL_RE.match(value):
        raise ValidationError("Invalid email format", field=name)
    return value.lower()


def password(data: dict, name: str = "password", *, required: bool = True) -> Optional[str]:
    value = data.get(name)
    if value is None and not required:
        return None
    if not isinstance(value, str) or len(value) < 6:
        raise ValidationError("Password must be at least 6 characters", field=name)
    return value


def as_int(value: Any, name: str, *, minimum: Optional[int] = None) -> int:
    # bool is an int subclass; True is not a quantity.
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", field=name)
    if isinstance(value, int):
        out = value
    elif isinstance(value, float) and value.is_integer():
        out = int(value)
    elif isinstance(value, str) and _INT_RE.fullmatch(value.strip()):
        out = int(value.strip())
    else:
        raise ValidationError(f"{name} must be an integer", field=name)
    if minimum is not None and out < minimum:
        raise ValidationError(f"{name} must be at least {minimum}", field=name)
    return out


def as_decimal(value: Any, name: str, *, minimum: Optional[Decimal] = None, maximum: Optional[Decimal] = None) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{name} must be a number", field=name)
    try:
        out = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{name} must be a number", field=name)
    if not out.is_finite():
        raise ValidationError(f"{name} must be a number", field=name)
    if minimum is not None and out < minimum:
        raise ValidationError(f"{name} must be at least {minimum}", field=name)
    if maximum is not None and out > maximum:
        raise ValidationError(f"{name} must be at most {maximum}", field=name)
    return out


def query_int(name: str, default: int) -> int:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return default
    return as_int(raw, name, minimum=1)
