from __future__ import annotations

from flask import Blueprint, current_app, jsonify
from flask_login import current_user

from app.auth import role_required
from app.errors import NotFound, ValidationError
from app.extensions import db
from app.models import User
from app.models.user import ROLE_EMPLOYEE, ROLE_MANAGER
from app.segments.segment_auth import ensure_unique
from app.utils.validation import json_body, optional_email, optional_str, password, require_str

employees_bp = Blueprint("employees_bp", __name__, url_prefix="/api/employees")


def _get_employee(employee_id: int) -> User:
    employee = db.session.get(User, int(employee_id))
    if not employee:
        raise NotFound("Employee not found")
    if employee.role != ROLE_EMPLOYEE:
        raise ValidationError("Can only manage employee accounts")
    return employee


@employees_bp.get("")
@role_required(ROLE_MANAGER)
def list_employees():
    rows = User.query.filter_by(role=ROLE_EMPLOYEE).order_by(User.created_at.desc(), User.id.desc()).all()
    return jsonify({"employees": [u.to_dict() for u in rows]}), 200


@employees_bp.post("")
@role_required(ROLE_MANAGER)
def create_employee():
    data = json_body()
    username = require_str(data, "username", "Username must be at least 3 characters", min_len=3)
    raw_password = password(data)
    email = optional_email(data)
    ensure_unique(username=username, email=email)

    employee = User(username=username, email=email, role=ROLE_EMPLOYEE)
    employee.set_password(raw_password)
    db.session.add(employee)
    db.session.commit()

    current_app.logger.info("Manager %s created employee: %s", current_user.username, username)
    return jsonify({"message": "Employee created successfully", "employee": employee.to_dict()}), 201


@employees_bp.put("/<int:employee_id>")
@role_required(ROLE_MANAGER)
def update_employee(employee_id: int):
    employee = _get_employee(employee_id)
    data = json_body()

    username = optional_str(data, "username")
    if username is not None and len(username) < 3:
        raise ValidationError("Username must be at least 3 characters", field="username")
    email = optional_email(data)
    new_password = password(data, required=False)

    ensure_unique(
        username=username if username != employee.username else None,
        email=email if email != employee.email else None,
        exclude_id=employee.id,
    )
    if username:
        employee.username = username
    if email:
        employee.email = email
    if new_password:
        employee.set_password(new_password)

    db.session.add(employee)
    db.session.commit()
    current_app.logger.info("Manager %s updated employee: %s", current_user.username, employee.username)
    return jsonify({"message": "Employee updated successfully", "employee": employee.to_dict()}), 200


@employees_bp.delete("/<int:employee_id>")
@role_required(ROLE_MANAGER)
def delete_employee(employee_id: int):
    employee = _get_employee(employee_id)
    username = employee.username
    db.session.delete(employee)
    db.session.commit()
    current_app.logger.info("Manager %s deleted employee: %s", current_user.username, username)
    return jsonify({"message": "Employee deleted successfully"}), 200
