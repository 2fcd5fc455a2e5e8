from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from app.apex.db import db_session
from app.apex.errors import NotFound, ValidationError
from app.apex.modules.employees.models import Employee
from app.apex.modules.employees.service import (
    create_employee,
    delete_employee,
    search_mentions,
    serialize_employee,
    serialize_technical_profile,
    update_employee,
    upsert_technical_profile,
)
from app.apex.rbac import require_permission
from app.apex.utils import json_body

bp = Blueprint("employees", __name__)


def _get_employee_or_404(s, employee_id: int) -> Employee:
    employee = s.get(Employee, employee_id)
    if not employee:
        raise NotFound("Employee not found")
    return employee


# ---------- List ----------
@bp.get("/employees")
def employees_list():
    s = db_session()
    q = s.query(Employee)
    role = (request.args.get("role") or "").strip()
    if role:
        q = q.filter(Employee.role == role)
    employees = q.order_by(Employee.first_name.asc(), Employee.last_name.asc()).all()
    return jsonify([serialize_employee(e) for e in employees])


# ---------- Mentions ----------
@bp.get("/employees/search/mentions")
def employees_mention_search():
    q = (request.args.get("q") or "").strip()
    if not q:
        raise ValidationError("Search query 'q' is required.")
    return jsonify(search_mentions(db_session(), q))


# ---------- Detail ----------
@bp.get("/employees/<int:employee_id>")
def employee_detail(employee_id: int):
    s = db_session()
    employee = _get_employee_or_404(s, employee_id)
    return jsonify(serialize_employee(employee, include_profile=True))


# ---------- Create / Update / Delete ----------
@bp.post("/employees")
@require_permission("employee.manage")
def employees_create():
    s = db_session()
    employee = create_employee(s, json_body(), g.current_user)
    s.commit()
    return jsonify(serialize_employee(employee, include_profile=True)), 201


@bp.put("/employees/<int:employee_id>")
@require_permission("employee.manage")
def employees_update(employee_id: int):
    s = db_session()
    employee = _get_employee_or_404(s, employee_id)
    update_employee(s, employee, json_body(), g.current_user)
    s.commit()
    return jsonify(serialize_employee(employee, include_profile=True))


@bp.delete("/employees/<int:employee_id>")
@require_permission("employee.manage")
def employees_delete(employee_id: int):
    s = db_session()
    employee = _get_employee_or_404(s, employee_id)
    deleted = serialize_employee(employee)
    delete_employee(s, employee, g.current_user)
    s.commit()
    return jsonify({"message": "Employee deleted successfully", "deletedEmployee": deleted})


# ---------- Technical profile ----------
@bp.get("/employees/<int:employee_id>/technical-profile")
def technical_profile_get(employee_id: int):
    s = db_session()
    employee = _get_employee_or_404(s, employee_id)
    if employee.technical_profile is None:
        raise NotFound("Technical profile not found")
    body = serialize_technical_profile(employee.technical_profile)
    body["employee"] = serialize_employee(employee)
    return jsonify(body)


@bp.put("/employees/<int:employee_id>/technical-profile")
@require_permission("employee.manage")
def technical_profile_put(employee_id: int):
    s = db_session()
    employee = _get_employee_or_404(s, employee_id)
    profile = upsert_technical_profile(s, employee, json_body())
    s.commit()
    return jsonify(serialize_technical_profile(profile))
