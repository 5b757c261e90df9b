from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user

from app.auth import login_required
from app.errors import Conflict, Forbidden, Unauthorized, ValidationError
from app.extensions import db
from app.models import User
from app.models.user import ROLE_EMPLOYEE, ROLE_MANAGER, ROLES
from app.utils.jwt_utils import create_token_for
from app.utils.validation import json_body, optional_email, optional_str, password, require_str

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api")


def ensure_unique(username: str | None = None, email: str | None = None, exclude_id: int | None = None) -> None:
    if username:
        u = User.query.filter_by(username=username).first()
        if u and u.id != exclude_id:
            raise Conflict("Username already exists", details={"field": "username"})
    if email:
        u = User.query.filter_by(email=email).first()
        if u and u.id != exclude_id:
            raise Conflict("Email already exists", details={"field": "email"})


def _role_arg(data: dict) -> str | None:
    role = optional_str(data, "role")
    if role is None:
        return None
    role = role.lower()
    if role not in ROLES:
        raise ValidationError("Invalid role", field="role")
    return role


@auth_bp.post("/login")
def login():
    data = json_body()
    username = require_str(data, "username", "Username is required")
    raw_password = data.get("password") or ""
    if not isinstance(raw_password, str) or not raw_password:
        raise ValidationError("Password is required", field="password")

    u = User.query.filter_by(username=username).first()
    if not u or not u.check_password(raw_password):
        raise Unauthorized("Invalid credentials")

    current_app.logger.info("User %s logged in", u.username)
    return jsonify({"token": create_token_for(u), "user": u.to_dict()}), 200


@auth_bp.post("/register")
def register():
    data = json_body()
    username = require_str(data, "username", "Username must be at least 3 characters", min_len=3)
    raw_password = password(data)
    email = optional_email(data)
    role = _role_arg(data) or ROLE_EMPLOYEE
    if role == ROLE_MANAGER:
        raise Forbidden("Manager signup is not allowed")

    ensure_unique(username=username, email=email)

    u = User(username=username, email=email, role=role)
    u.set_password(raw_password)
    db.session.add(u)
    db.session.commit()

    current_app.logger.info("New user registered: %s", username)
    return jsonify({"message": "User created successfully", "user": u.to_dict()}), 201


@auth_bp.get("/profile")
@login_required
def get_profile():
    return jsonify({"user": current_user.to_dict()}), 200


@auth_bp.put("/profile")
@login_required
def update_profile():
    data = json_body()
    email = optional_email(data)
    role = _role_arg(data)

    u = db.session.get(User, int(current_user.id))
    if role and role != u.role and not u.is_manager:
        raise Forbidden("You are not authorized to update the role")
    if email and email != u.email:
        ensure_unique(email=email, exclude_id=u.id)
        u.email = email
    if role:
        u.role = role

    db.session.add(u)
    db.session.commit()
    current_app.logger.info("User %s updated profile", u.username)
    return jsonify({"message": "Profile updated successfully", "user": u.to_dict()}), 200


@auth_bp.put("/change-password")
@login_required
def change_password():
    data = json_body()
    current_password = data.get("current_password") or data.get("currentPassword")
    if not isinstance(current_password, str) or not current_password:
        raise ValidationError("Current password is required", field="current_password")
    key = "new_password" if "new_password" in data else "newPassword"
    new_password = password(data, key)

    u = db.session.get(User, int(current_user.id))
    if not u.check_password(current_password):
        raise ValidationError("Current password is incorrect", field="current_password")

    u.set_password(new_password)
    db.session.add(u)
    db.session.commit()
    current_app.logger.info("User %s changed password", u.username)
    return jsonify({"message": "Password changed successfully"}), 200
