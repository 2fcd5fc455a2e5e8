from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.orm import selectinload

from app.apex.activity import record_event
from app.apex.constants import (
    ENG_ROLE_ACCOUNT_MANAGER,
    ENG_ROLE_LEAD_ENGINEER,
    ENG_ROLE_SUPPORTING_ENGINEER,
    ENG_ROLE_TECHNICAL_LEAD,
    POC_STATUSES,
    ROLE_ACCOUNT_MANAGER,
    ROLE_LEAD,
    ROLE_PRESALES,
    ROLE_TECHNICAL_TEAM,
    WORKFLOW_ACTIVE,
    WORKFLOW_PENDING,
    WORKFLOW_REJECTED,
)
from app.apex.errors import NotFound, ValidationError, raise_if_errors
from app.apex.modules.customers.models import Customer
from app.apex.modules.employees.models import Employee
from app.apex.modules.employees.service import employee_name, employee_ref
from app.apex.modules.engagements.kinds import POC
from app.apex.modules.engagements.serializers import (
    serialize_assignment,
    serialize_attachment,
    serialize_status,
    team_sort_key,
)
from app.apex.modules.engagements.service import (
    archive_and_delete,
    changed_field,
    date_label,
    get_parent,
    log_team_changes,
)
from app.apex.modules.engagements.status import open_status_rows, replace_statuses
from app.apex.modules.engagements.team import (
    TeamChanges,
    active_holder,
    apply_team,
    parse_team_payload,
    set_role_holder,
)
from app.apex.modules.pocs.models import Poc, PocEmployee
from app.apex.utils import clean_str, iso, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    ("customerId", "Customer"),
    ("title", "Title"),
    ("technology", "Technology"),
    ("startDate", "Start date"),
    ("status", "Status"),
    ("leadId", "Technical Lead"),
    ("accountManagerId", "Account Manager"),
)


def _as_datetime(d: date | None) -> datetime | None:
    return datetime.combine(d, time.min) if d is not None else None


def _active(poc: Poc) -> list[PocEmployee]:
    return [a for a in poc.assignments if a.unassigned_at is None]


def _holder(poc: Poc, role: str) -> Employee | None:
    return next((a.employee for a in _active(poc) if a.role == role), None)


def _employee_brief(e: Employee | None) -> dict | None:
    if e is None:
        return None
    return {
        "id": e.id,
        "firstName": e.first_name,
        "lastName": e.last_name,
        "name": e.full_name,
        "email": e.email,
        "jobTitle": e.job_title,
    }


# ---------- Serialization ----------
def serialize_poc_row(poc: Poc) -> dict:
    active = _active(poc)
    lead = _holder(poc, ENG_ROLE_TECHNICAL_LEAD)
    am = _holder(poc, ENG_ROLE_ACCOUNT_MANAGER)
    return {
        "id": poc.id,
        "title": poc.title,
        "status": poc.status,
        "workflowStatus": poc.workflow_status,
        "customerName": poc.customer.name if poc.customer else None,
        "technology": poc.technology or [],
        "leadName": lead.full_name if lead else None,
        "amName": am.full_name if am else None,
        "teamMemberCount": len(active),
        "startDate": iso(poc.start_date),
        "endDate": iso(poc.end_date),
        "updatedAt": iso(poc.updated_at),
    }


def serialize_poc(poc: Poc) -> dict:
    lead = _holder(poc, ENG_ROLE_TECHNICAL_LEAD)
    am = _holder(poc, ENG_ROLE_ACCOUNT_MANAGER)
    history = sorted(poc.status_history, key=lambda st: (st.started_at, st.id), reverse=True)
    attachments = sorted(poc.attachments, key=lambda a: (a.created_at, a.id), reverse=True)
    return {
        "id": poc.id,
        "customerId": poc.customer_id,
        "customer": {"id": poc.customer.id, "name": poc.customer.name} if poc.customer else None,
        "title": poc.title,
        "technology": poc.technology or [],
        "description": poc.description,
        "startDate": iso(poc.start_date),
        "endDate": iso(poc.end_date),
        "status": poc.status,
        "workflowStatus": poc.workflow_status,
        "lastComment": poc.last_comment,
        "isBudgetAllocated": poc.is_budget_allocated,
        "isVendorAware": poc.is_vendor_aware,
        "createdAt": iso(poc.created_at),
        "updatedAt": iso(poc.updated_at),
        "createdBy": employee_ref(poc.created_by),
        "leadId": lead.id if lead else None,
        "lead": _employee_brief(lead),
        "accountManagerId": am.id if am else None,
        "accountManager": _employee_brief(am),
        "teamAssignments": [serialize_assignment(POC, a) for a in sorted(_active(poc), key=team_sort_key)],
        "statusHistory": [serialize_status(POC, st, include_comments=True) for st in history],
        "attachments": [serialize_attachment(POC, a) for a in attachments],
    }


# ---------- Validation ----------
def validate_poc_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate PoC create/update payload. Returns list of errors."""
    errors: list[str] = []
    if not partial:
        missing = [
            label
            for key, label in REQUIRED_FIELDS
            if payload.get(key) is None or (isinstance(payload.get(key), str) and not payload[key].strip())
        ]
        if missing:
            errors.append(f"Missing required fields: {', '.join(missing)}")

    if "title" in payload and not clean_str(payload.get("title")):
        errors.append("Title cannot be empty.")
    if "technology" in payload:
        tech = payload.get("technology")
        if not isinstance(tech, list) or not [t for t in tech if str(t).strip()]:
            errors.append("Technology must be a non-empty list.")
    if payload.get("status") is not None and payload.get("status") not in POC_STATUSES:
        errors.append(f"Invalid PoC status '{payload.get('status')}'. Must be one of: {', '.join(POC_STATUSES)}")
    for key in ("isBudgetAllocated", "isVendorAware"):
        if key in payload and payload[key] is not None and not isinstance(payload[key], bool):
            errors.append(f"{key} must be a boolean.")
    return errors


def _technology(payload: dict) -> list[str]:
    return [str(t).strip() for t in payload.get("technology") or [] if str(t).strip()]


# ---------- Queries ----------
def list_pocs(s: "Session", user: Employee) -> list[Poc]:
    """PoCs visible to `user`, newest activity first."""
    q = s.query(Poc).options(selectinload(Poc.assignments))

    def assigned(*roles: str):
        return Poc.id.in_(
            select(PocEmployee.poc_id).where(
                PocEmployee.employee_id == user.id,
                PocEmployee.unassigned_at.is_(None),
                PocEmployee.role.in_(roles),
            )
        )

    if user.role == ROLE_PRESALES:
        q = q.filter(Poc.workflow_status.in_((WORKFLOW_PENDING, WORKFLOW_ACTIVE)))
    elif user.role == ROLE_ACCOUNT_MANAGER:
        q = q.filter(assigned(ENG_ROLE_ACCOUNT_MANAGER))
    elif user.role == ROLE_LEAD:
        q = q.filter(Poc.workflow_status == WORKFLOW_ACTIVE, assigned(ENG_ROLE_TECHNICAL_LEAD))
    elif user.role == ROLE_TECHNICAL_TEAM:
        q = q.filter(
            Poc.workflow_status == WORKFLOW_ACTIVE,
            assigned(ENG_ROLE_LEAD_ENGINEER, ENG_ROLE_SUPPORTING_ENGINEER),
        )
    return q.order_by(Poc.updated_at.desc(), Poc.id.desc()).all()


def get_poc(s: "Session", poc_id: int, *, for_update: bool = False) -> Poc:
    return get_parent(s, POC, poc_id, for_update=for_update)


# ---------- Create ----------
def create_poc(s: "Session", payload: dict, user: Employee) -> tuple[Poc, list[Employee]]:
    """
    Insert a PoC pending Presales review with its TL/AM, optional initial team and first
    status period. Returns (poc, presales reviewers to notify after commit).
    """
    raise_if_errors(validate_poc_payload(payload))

    customer_id = parse_int(payload.get("customerId"), "customerId")
    lead_id = parse_int(payload.get("leadId"), "leadId")
    am_id = parse_int(payload.get("accountManagerId"), "accountManagerId")
    customer = s.get(Customer, customer_id)
    if customer is None:
        raise NotFound(f"Customer with id {customer_id} not found.")

    start_date = parse_date(payload.get("startDate"))
    end_date = parse_date(payload.get("endDate"))
    if end_date is not None and end_date < start_date:
        raise ValidationError("End date cannot be before start date.")
    starts_at = _as_datetime(start_date)
    now = datetime.utcnow()

    poc = Poc(
        customer_id=customer.id,
        title=clean_str(payload.get("title")),
        technology=_technology(payload),
        description=clean_str(payload.get("description")),
        start_date=start_date,
        end_date=end_date,
        status=payload["status"],
        workflow_status=WORKFLOW_PENDING,
        last_comment=clean_str(payload.get("lastComment")),
        is_budget_allocated=bool(payload.get("isBudgetAllocated")),
        is_vendor_aware=bool(payload.get("isVendorAware")),
        created_by_id=user.id,
        created_at=now,
        updated_at=now,
    )
    s.add(poc)
    s.flush()

    set_role_holder(s, POC, poc.id, ENG_ROLE_TECHNICAL_LEAD, lead_id, assigned_at=starts_at, now=now)
    set_role_holder(s, POC, poc.id, ENG_ROLE_ACCOUNT_MANAGER, am_id, assigned_at=starts_at, now=now)
    record_event(s, actor=user, action="POC_CREATED", entity_type="poc", entity_id=poc.id, details={"title": poc.title})

    members = parse_team_payload(
        POC,
        payload.get("initialTeamAssignments"),
        default_assigned_at=starts_at,
        skip_employee_ids=(lead_id, am_id),
    )
    apply_team(s, POC, poc.id, members, now=now)
    open_status_rows(s, POC, poc.id, [poc.status], started_at=now)

    presales = s.query(Employee).filter(Employee.role == ROLE_PRESALES).order_by(Employee.id.asc()).all()
    s.flush()
    s.refresh(poc)
    logger.info("PoC created id=%s by=%s members=%s", poc.id, user.id, len(members))
    return poc, presales


# ---------- Presales review ----------
def approve_poc(s: "Session", poc_id: int, payload: dict, user: Employee) -> tuple[Poc, Employee | None, Employee | None]:
    """pending_presales_review -> active. Returns (poc, account manager, technical lead)."""
    description = clean_str(payload.get("description"))
    if not description:
        raise ValidationError("Description is required to approve a PoC.")
    poc = s.query(Poc).filter(Poc.id == poc_id, Poc.workflow_status == WORKFLOW_PENDING).with_for_update().one_or_none()
    if poc is None:
        raise NotFound("PoC not found or is not pending review.")

    poc.description = description
    poc.workflow_status = WORKFLOW_ACTIVE
    poc.updated_at = datetime.utcnow()
    record_event(
        s,
        actor=user,
        action="STATUS_UPDATED",
        entity_type="poc",
        entity_id=poc.id,
        details={"field": "Workflow", "from": WORKFLOW_PENDING, "to": WORKFLOW_ACTIVE},
    )
    s.flush()
    am = active_holder(s, POC, poc.id, ENG_ROLE_ACCOUNT_MANAGER)
    lead = active_holder(s, POC, poc.id, ENG_ROLE_TECHNICAL_LEAD)
    return poc, am, lead


def reject_poc(s: "Session", poc_id: int, payload: dict, user: Employee) -> Poc:
    poc = s.query(Poc).filter(Poc.id == poc_id, Poc.workflow_status == WORKFLOW_PENDING).with_for_update().one_or_none()
    if poc is None:
        raise NotFound("PoC not found or is not pending review.")
    reason = clean_str(payload.get("reason"))
    poc.workflow_status = WORKFLOW_REJECTED
    poc.updated_at = datetime.utcnow()
    details = {"field": "Workflow", "from": WORKFLOW_PENDING, "to": WORKFLOW_REJECTED}
    if reason:
        details["reason"] = reason
    record_event(s, actor=user, action="STATUS_UPDATED", entity_type="poc", entity_id=poc.id, details=details)
    s.flush()
    return poc


# ---------- Update ----------
_LOGGED_FIELDS = (
    # payload key, column, label
    ("title", "title", "Title"),
    ("technology", "technology", "Technology"),
    ("startDate", "start_date", "Start Date"),
    ("endDate", "end_date", "Target End Date"),
)


def _display(column: str, value):
    if column == "technology":
        return ", ".join(value or [])
    if column in ("start_date", "end_date"):
        return date_label(value)
    return value


def update_poc(s: "Session", poc_id: int, payload: dict, user: Employee) -> tuple[Poc, TeamChanges]:
    """
    Apply a partial update under a row lock. Every visible change is written to the
    activity log; returns the team changes for post-commit notifications.
    """
    poc = get_poc(s, poc_id, for_update=True)
    raise_if_errors(validate_poc_payload(payload, partial=True))
    now = datetime.utcnow()

    new_values = {
        "title": clean_str(payload.get("title")),
        "technology": _technology(payload),
        "start_date": parse_date(payload.get("startDate")),
        "end_date": parse_date(payload.get("endDate")),
    }
    if "startDate" in payload and new_values["start_date"] is None:
        raise ValidationError("Start date cannot be empty.")
    for key, column, label in _LOGGED_FIELDS:
        if key not in payload:
            continue
        old, new = getattr(poc, column), new_values[column]
        if old != new:
            record_event(
                s,
                actor=user,
                action="FIELD_UPDATED",
                entity_type="poc",
                entity_id=poc.id,
                details=changed_field(label, _display(column, old), _display(column, new)),
            )
            setattr(poc, column, new)
    if poc.end_date is not None and poc.end_date < poc.start_date:
        raise ValidationError("End date cannot be before start date.")

    if "description" in payload:
        poc.description = clean_str(payload.get("description"))
    if "lastComment" in payload:
        poc.last_comment = clean_str(payload.get("lastComment"))
    if "isBudgetAllocated" in payload:
        poc.is_budget_allocated = bool(payload.get("isBudgetAllocated"))
    if "isVendorAware" in payload:
        poc.is_vendor_aware = bool(payload.get("isVendorAware"))
    if "customerId" in payload:
        customer_id = parse_int(payload.get("customerId"), "customerId")
        if s.get(Customer, customer_id) is None:
            raise NotFound(f"Customer with id {customer_id} not found.")
        poc.customer_id = customer_id

    new_status = payload.get("status")
    if new_status and new_status != poc.status:
        record_event(
            s,
            actor=user,
            action="STATUS_UPDATED",
            entity_type="poc",
            entity_id=poc.id,
            details={"from": poc.status, "to": new_status},
        )
        poc.status = new_status
        replace_statuses(s, POC, poc.id, [new_status], now=now)

    for key, role, action in (
        ("leadId", ENG_ROLE_TECHNICAL_LEAD, "LEAD_ASSIGNED"),
        ("accountManagerId", ENG_ROLE_ACCOUNT_MANAGER, "AM_ASSIGNED"),
    ):
        if payload.get(key) is None:
            continue
        previous, holder, changed = set_role_holder(s, POC, poc.id, role, parse_int(payload[key], key), now=now)
        if changed:
            record_event(
                s,
                actor=user,
                action=action,
                entity_type="poc",
                entity_id=poc.id,
                details={"from": employee_name(previous), "to": holder.full_name},
            )

    changes = TeamChanges()
    if "teamAssignments" in payload:
        lead = active_holder(s, POC, poc.id, ENG_ROLE_TECHNICAL_LEAD)
        am = active_holder(s, POC, poc.id, ENG_ROLE_ACCOUNT_MANAGER)
        members = parse_team_payload(
            POC,
            payload.get("teamAssignments"),
            default_assigned_at=now,
            skip_employee_ids=[e.id for e in (lead, am) if e is not None],
        )
        changes = apply_team(s, POC, poc.id, members, now=now)
        log_team_changes(s, POC, poc.id, changes, user)

    poc.updated_at = now
    s.flush()
    s.refresh(poc)
    return poc, changes


# ---------- Delete ----------
def delete_poc(s: "Session", poc_id: int, user: Employee) -> dict:
    poc = get_poc(s, poc_id)
    snapshot = serialize_poc(poc)
    archive_and_delete(s, POC, poc, snapshot, user)
    return snapshot
