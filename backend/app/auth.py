from __future__ import annotations

from functools import wraps

from flask import request
from flask_login import current_user

from app.errors import Forbidden, Unauthorized
from app.extensions import db, login_manager
from app.models import User
from app.utils.jwt_utils import decode_token, get_bearer_token


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.request_loader
def load_user_from_request(req):
    """Resolve the API user from an `Authorization: Bearer <jwt>` header."""
    token = get_bearer_token(req.headers.get("Authorization", ""))
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("type") != "access":
        return None
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
    return db.session.get(User, user_id)


@login_manager.unauthorized_handler
def _unauthorized():
    if get_bearer_token(request.headers.get("Authorization", "")):
        raise Unauthorized("Invalid or expired token")
    raise Unauthorized("Access token required")


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return login_manager.unauthorized()
        return fn(*args, **kwargs)
    return wrapper


def role_required(*roles: str):
    allowed = {r.strip().lower() for r in roles}

    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            if not current_user.is_authenticated:
                return login_manager.unauthorized()
            if (current_user.role or "").strip().lower() not in allowed:
                raise Forbidden("Insufficient permissions")
            return fn(*args, **kwargs)
        return wrapper
    return decorator
