from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from app.apex.constants import (
    APPLICATION_ROLES,
    EMPLOYEE_EMAIL_PATTERN,
    EMPLOYEE_ROLES,
    TECHNICAL_PROFILE_ROLES,
)
from app.apex.errors import Conflict, ValidationError, raise_if_errors
from app.apex.utils import as_list, clean_str, iso, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.apex.modules.employees.models import Employee, TechnicalProfile

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(EMPLOYEE_EMAIL_PATTERN, re.IGNORECASE)

REQUIRED_FIELDS = (
    ("firstName", "First name"),
    ("lastName", "Last name"),
    ("email", "Email"),
    ("phoneNumber", "Phone number"),
    ("workExt", "Work extension"),
    ("jobTitle", "Job title"),
    ("role", "Role"),
    ("status", "Status"),
    ("skills", "Skills"),
    ("certificates", "Certificates"),
)

# payload key -> column
_SIMPLE_FIELDS = {
    "firstName": "first_name",
    "lastName": "last_name",
    "phoneNumber": "phone_number",
    "jobTitle": "job_title",
    "status": "status",
    "location": "location",
}

PROFILE_LIST_FIELDS = {
    "skills": "skills",
    "certificates": "certificates",
    "fieldsCovered": "fields_covered",
    "technicalDevelopmentPlan": "technical_development_plan",
}


def level_from_grade(grade: str | None) -> str | None:
    """
    Map a G1..G15 grade to its career level.

    >>> level_from_grade("G3")
    'Junior II'
    """
    if not grade:
        return None
    m = re.fullmatch(r"G(\d{1,2})", grade.strip().upper())
    if not m:
        return None
    n = int(m.group(1))
    if n == 1:
        return "Fresh"
    if 2 <= n <= 4:
        return "Junior " + "I" * (n - 1)
    if 5 <= n <= 6:
        return "Specialist " + "I" * (n - 4)
    if 7 <= n <= 8:
        return "Specialist III"
    if 9 <= n <= 11:
        return "Senior " + "I" * (n - 8)
    return {
        12: "Lead",
        13: "Senior Lead",
        14: "Associate Technical Manager",
        15: "Senior Technical Manager",
    }.get(n)


def is_company_email(value: str | None) -> bool:
    return bool(value) and bool(_EMAIL_RE.match(value.strip()))


def employee_ref(e: "Employee | None") -> dict | None:
    """Compact {id, name, email} used inside other resources."""
    if e is None:
        return None
    return {"id": e.id, "name": e.full_name, "email": e.email}


def employee_name(e: "Employee | None") -> str:
    return e.full_name if e is not None else "None"


def employee_profile_details(e: "Employee") -> dict:
    return {
        "id": e.id,
        "name": e.full_name,
        "phone": e.phone_number,
        "email": e.email,
        "workExt": e.work_ext,
        "jobTitle": e.job_title,
        "employeeDbRole": e.role,
        "managerEmail": e.manager_email,
        "status": e.status,
        "skills": e.skills or [],
        "certificates": e.certificates or [],
        "location": e.location,
    }


def serialize_technical_profile(p: "TechnicalProfile | None") -> dict | None:
    if p is None:
        return None
    return {
        "employeeId": p.employee_id,
        "team": p.team,
        "grade": p.grade,
        "level": p.level,
        "yearsOfExperience": p.years_of_experience,
        "skills": p.skills or [],
        "certificates": p.certificates or [],
        "fieldsCovered": p.fields_covered or [],
        "technicalDevelopmentPlan": p.technical_development_plan or [],
        "updatedAt": iso(p.updated_at),
    }


def serialize_employee(e: "Employee", *, include_profile: bool = False) -> dict:
    body = {
        "id": e.id,
        "firstName": e.first_name,
        "lastName": e.last_name,
        "name": e.full_name,
        "email": e.email,
        "phoneNumber": e.phone_number,
        "workExt": e.work_ext,
        "jobTitle": e.job_title,
        "role": e.role,
        "applicationRole": e.application_role,
        "managerEmail": e.manager_email,
        "status": e.status,
        "location": e.location,
        "skills": e.skills or [],
        "certificates": e.certificates or [],
        "createdAt": iso(e.created_at),
        "updatedAt": iso(e.updated_at),
    }
    if include_profile:
        body["technicalProfile"] = serialize_technical_profile(e.technical_profile)
    return body


def validate_employee_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate employee create/update payload. Returns list of errors."""
    errors = []
    if not partial:
        missing = []
        for key, label in REQUIRED_FIELDS:
            value = payload.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(label)
        if missing:
            errors.append(f"Missing required fields: {', '.join(missing)}.")

    email = payload.get("email")
    if email is not None and str(email).strip() and not is_company_email(str(email)):
        errors.append("Email must be a valid @taqniyat.com.sa address.")
    manager_email = payload.get("managerEmail")
    if manager_email is not None and str(manager_email).strip() and not is_company_email(str(manager_email)):
        errors.append("Manager email must be a valid @taqniyat.com.sa address.")

    work_ext = payload.get("workExt")
    if work_ext is not None and str(work_ext).strip():
        try:
            parse_int(work_ext, "workExt")
        except ValidationError:
            errors.append("Work extension must be an integer.")

    role = clean_str(payload.get("role"))
    if role and role not in EMPLOYEE_ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(EMPLOYEE_ROLES)}")
    app_role = clean_str(payload.get("applicationRole"))
    if app_role and app_role not in APPLICATION_ROLES:
        errors.append(f"Invalid application role. Must be one of: {', '.join(APPLICATION_ROLES)}")
    for key in ("skills", "certificates"):
        value = payload.get(key)
        if value is not None and not isinstance(value, (list, str)):
            errors.append(f"{key} must be a list or a comma-separated string.")
    return errors


def _default_profile(employee: "Employee") -> "TechnicalProfile":
    from app.apex.modules.employees.models import TechnicalProfile

    return TechnicalProfile(
        employee=employee,
        team="Delivery",
        grade="G1",
        level=level_from_grade("G1"),
        years_of_experience=0,
        skills=[],
        certificates=[],
        fields_covered=[],
        technical_development_plan=[],
    )


def _flush_unique(s: "Session", email: str) -> None:
    try:
        s.flush()
    except IntegrityError as e:
        s.rollback()
        raise Conflict(f"An employee with email {email} already exists.") from e


def create_employee(s: "Session", payload: dict, user: "Employee | None") -> "Employee":
    """Create a new employee (and its default technical profile for technical roles)."""
    from app.apex.modules.employees.models import Employee

    raise_if_errors(validate_employee_payload(payload))

    email = str(payload["email"]).strip().lower()
    if s.query(Employee.id).filter(func.lower(Employee.email) == email).first():
        raise Conflict(f"An employee with email {email} already exists.")

    now = datetime.utcnow()
    employee = Employee(
        first_name=clean_str(payload.get("firstName")),
        last_name=clean_str(payload.get("lastName")),
        email=email,
        phone_number=clean_str(payload.get("phoneNumber")),
        work_ext=parse_int(payload.get("workExt"), "workExt"),
        job_title=clean_str(payload.get("jobTitle")),
        role=clean_str(payload.get("role")),
        application_role=clean_str(payload.get("applicationRole")) or "technical_team",
        manager_email=(clean_str(payload.get("managerEmail")) or "").lower() or None,
        status=clean_str(payload.get("status")),
        location=clean_str(payload.get("location")),
        skills=as_list(payload.get("skills")),
        certificates=as_list(payload.get("certificates")),
        created_at=now,
        updated_at=now,
    )
    s.add(employee)
    if employee.role in TECHNICAL_PROFILE_ROLES:
        s.add(_default_profile(employee))
    _flush_unique(s, email)

    logger.info(
        "Employee created id=%s role=%s by=%s", employee.id, employee.role, user.id if user else None
    )
    return employee


def update_employee(s: "Session", employee: "Employee", payload: dict, user: "Employee | None") -> "Employee":
    """Partial update; only keys present in the payload are touched."""
    raise_if_errors(validate_employee_payload(payload, partial=True))

    changes: dict[str, dict[str, Any]] = {}

    for key, column in _SIMPLE_FIELDS.items():
        if key not in payload:
            continue
        new = clean_str(payload.get(key))
        if column in ("first_name", "last_name") and not new:
            raise ValidationError(f"{key} cannot be empty.")
        old = getattr(employee, column)
        if new != old:
            changes[column] = {"old": old, "new": new}
            setattr(employee, column, new)

    if "email" in payload:
        new_email = (clean_str(payload.get("email")) or "").lower()
        if not new_email:
            raise ValidationError("email cannot be empty.")
        if new_email != employee.email:
            changes["email"] = {"old": employee.email, "new": new_email}
            employee.email = new_email

    if "managerEmail" in payload:
        new_manager = (clean_str(payload.get("managerEmail")) or "").lower() or None
        if new_manager != employee.manager_email:
            changes["manager_email"] = {"old": employee.manager_email, "new": new_manager}
            employee.manager_email = new_manager

    if "workExt" in payload:
        raw = payload.get("workExt")
        new_ext = parse_int(raw, "workExt") if raw is not None and str(raw).strip() else None
        if new_ext != employee.work_ext:
            changes["work_ext"] = {"old": employee.work_ext, "new": new_ext}
            employee.work_ext = new_ext

    if "role" in payload:
        new_role = clean_str(payload.get("role"))
        if not new_role:
            raise ValidationError("role cannot be empty.")
        if new_role != employee.role:
            changes["role"] = {"old": employee.role, "new": new_role}
            employee.role = new_role

    if "applicationRole" in payload:
        new_app_role = clean_str(payload.get("applicationRole")) or "technical_team"
        if new_app_role != employee.application_role:
            changes["application_role"] = {"old": employee.application_role, "new": new_app_role}
            employee.application_role = new_app_role

    for key in ("skills", "certificates"):
        if key in payload:
            new_list = as_list(payload.get(key))
            if new_list != (getattr(employee, key) or []):
                changes[key] = {"old": getattr(employee, key), "new": new_list}
                setattr(employee, key, new_list)

    if employee.role in TECHNICAL_PROFILE_ROLES and employee.technical_profile is None:
        s.add(_default_profile(employee))

    employee.updated_at = datetime.utcnow()
    _flush_unique(s, employee.email)
    logger.info("Employee updated id=%s by=%s changes=%s", employee.id, user.id if user else None, sorted(changes))
    return employee


def delete_employee(s: "Session", employee: "Employee", user: "Employee | None") -> None:
    logger.info("Employee deleted id=%s email=%s by=%s", employee.id, employee.email, user.id if user else None)
    s.delete(employee)
    s.flush()


def upsert_technical_profile(s: "Session", employee: "Employee", payload: dict) -> "TechnicalProfile":
    """
    Create or update the technical profile from the recognised keys.
    Changing the grade re-derives the level.
    """
    from app.apex.modules.employees.models import TechnicalProfile

    updates: dict[str, Any] = {}
    if "team" in payload:
        updates["team"] = clean_str(payload.get("team"))
    if "grade" in payload:
        grade = (clean_str(payload.get("grade")) or "").upper() or None
        if grade and level_from_grade(grade) is None:
            raise ValidationError(f"Invalid grade: {grade}. Expected G1..G15.")
        updates["grade"] = grade
        updates["level"] = level_from_grade(grade)
    if "yearsOfExperience" in payload:
        raw = payload.get("yearsOfExperience")
        try:
            years = float(raw)
        except (TypeError, ValueError) as e:
            raise ValidationError("yearsOfExperience must be a non-negative number.") from e
        if isinstance(raw, bool) or years < 0:
            raise ValidationError("yearsOfExperience must be a non-negative number.")
        updates["years_of_experience"] = years
    for key, column in PROFILE_LIST_FIELDS.items():
        if key in payload:
            updates[column] = as_list(payload.get(key))

    if not updates:
        raise ValidationError("No valid fields provided for update.")

    profile = employee.technical_profile
    if profile is None:
        profile = TechnicalProfile(employee=employee, skills=[], certificates=[], fields_covered=[], technical_development_plan=[])
        s.add(profile)
    for column, value in updates.items():
        setattr(profile, column, value)
    profile.updated_at = datetime.utcnow()
    s.flush()
    return profile


def search_mentions(s: "Session", q: str, *, limit: int = 10) -> list[dict]:
    """Employees whose first/last/full name or email contains q (case-insensitive)."""
    from app.apex.modules.employees.models import Employee

    like = f"%{q.strip().lower()}%"
    full_name = func.lower(Employee.first_name + " " + Employee.last_name)
    rows = (
        s.query(Employee)
        .filter(
            or_(
                func.lower(Employee.first_name).like(like),
                func.lower(Employee.last_name).like(like),
                full_name.like(like),
                func.lower(Employee.email).like(like),
            )
        )
        .order_by(Employee.first_name.asc(), Employee.last_name.asc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": str(e.id),
            "display": e.full_name,
            "firstName": e.first_name,
            "lastName": e.last_name,
            "email": e.email,
            "jobTitle": e.job_title,
        }
        for e in rows
    ]
