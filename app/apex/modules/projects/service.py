from __future__ import annotations

import logging
from datetime import datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import select

from app.apex.activity import record_event
from app.apex.constants import (
    ENG_ROLE_ACCOUNT_MANAGER,
    ENG_ROLE_PROJECT_MANAGER,
    ENG_ROLE_TECHNICAL_LEAD,
    PROJECT_STATUSES,
    ROLE_ACCOUNT_MANAGER,
    ROLE_LEAD,
    ROLE_PROJECT_MANAGER,
    ROLE_TECHNICAL_TEAM,
)
from app.apex.errors import NotFound, ValidationError, raise_if_errors
from app.apex.modules.customers.models import Customer
from app.apex.modules.employees.models import Employee
from app.apex.modules.employees.service import employee_name, employee_ref
from app.apex.modules.engagements.kinds import PROJECT
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
    sync_holder_columns,
)
from app.apex.modules.engagements.status import open_status_rows, replace_statuses
from app.apex.modules.engagements.team import (
    TeamChanges,
    active_assignments,
    apply_team,
    parse_team_payload,
    set_role_holder,
)
from app.apex.modules.pocs.models import Poc
from app.apex.modules.projects.models import Project, ProjectActivityLog, ProjectCurrentStatus, ProjectEmployee
from app.apex.modules.tasks.service import task_tree
from app.apex.utils import clean_str, iso, optional_int, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    ("customerId", "Customer"),
    ("title", "Title"),
    ("technology", "Technology"),
    ("startDate", "Start date"),
    ("statuses", "Statuses"),
    ("accountManagerId", "Account Manager"),
    ("projectManagerId", "Project Manager"),
)

# payload key -> role, activity type
_HOLDER_FIELDS = (
    ("projectManagerId", ENG_ROLE_PROJECT_MANAGER, "PM_ASSIGNED"),
    ("accountManagerId", ENG_ROLE_ACCOUNT_MANAGER, "AM_ASSIGNED"),
    ("technicalLeadId", ENG_ROLE_TECHNICAL_LEAD, "LEAD_ASSIGNED"),
)

RECENT_ACTIVITY_LIMIT = 25


def _brief(e: Employee | None) -> dict | None:
    if e is None:
        return None
    return {"id": e.id, "firstName": e.first_name, "lastName": e.last_name, "name": e.full_name, "email": e.email}


def _active(project: Project) -> list[ProjectEmployee]:
    return [a for a in project.assignments if a.unassigned_at is None]


# ---------- Serialization ----------
def serialize_project_row(p: Project) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "customerName": p.customer.name if p.customer else None,
        "technology": p.technology or [],
        "projectManagerName": p.project_manager.full_name if p.project_manager else None,
        "accountManagerName": p.account_manager.full_name if p.account_manager else None,
        "technicalLeadName": p.technical_lead.full_name if p.technical_lead else None,
        "statuses": sorted(p.statuses),
        "teamMemberCount": len(_active(p)),
        "startDate": iso(p.start_date),
        "endDate": iso(p.end_date),
        "updatedAt": iso(p.updated_at),
    }


def serialize_project(p: Project, *, include_tasks: bool = True) -> dict:
    history = sorted(p.status_history, key=lambda st: (st.started_at, st.id), reverse=True)
    attachments = sorted(p.attachments, key=lambda a: (a.created_at, a.id), reverse=True)
    body = {
        "id": p.id,
        "customerId": p.customer_id,
        "customer": {"id": p.customer.id, "name": p.customer.name} if p.customer else None,
        "sourcePocId": p.source_poc_id,
        "title": p.title,
        "technology": p.technology or [],
        "description": p.description,
        "lastComment": p.last_comment,
        "statuses": p.statuses,
        "startDate": iso(p.start_date),
        "endDate": iso(p.end_date),
        "createdAt": iso(p.created_at),
        "updatedAt": iso(p.updated_at),
        "createdBy": employee_ref(p.created_by),
        "accountManagerId": p.account_manager_id,
        "accountManager": _brief(p.account_manager),
        "technicalLeadId": p.technical_lead_id,
        "lead": _brief(p.technical_lead),
        "projectManagerId": p.project_manager_id,
        "projectManager": _brief(p.project_manager),
        "teamAssignments": [serialize_assignment(PROJECT, a) for a in sorted(_active(p), key=team_sort_key)],
        "statusHistory": [serialize_status(PROJECT, st, include_comments=True) for st in history],
        "attachments": [serialize_attachment(PROJECT, a) for a in attachments],
    }
    if include_tasks:
        body["tasks"] = task_tree(p.tasks)
    return body


def serialize_recent_activity(ev: ProjectActivityLog) -> dict:
    return {
        "id": ev.id,
        "projectId": ev.project_id,
        "projectTitle": ev.project.title if ev.project else None,
        "activityType": ev.activity_type,
        "details": ev.details or {},
        "timestamp": iso(ev.timestamp),
        "user": {"id": ev.user.id, "name": ev.user.full_name} if ev.user else None,
    }


# ---------- Validation ----------
def _statuses(value) -> list[str]:
    out: list[str] = []
    for status in value or []:
        if status not in out:
            out.append(status)
    return out


def validate_project_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate Project create/update payload. Returns list of errors."""
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
    if "statuses" in payload and payload.get("statuses") is not None:
        statuses = payload.get("statuses")
        if not isinstance(statuses, list) or not statuses:
            errors.append("Statuses must be a non-empty list.")
        else:
            bad = [str(st) for st in statuses if st not in PROJECT_STATUSES]
            if bad:
                errors.append(f"Invalid project status(es): {', '.join(bad)}. Must be one of: {', '.join(PROJECT_STATUSES)}")
    return errors


def _technology(payload: dict) -> list[str]:
    return [str(t).strip() for t in payload.get("technology") or [] if str(t).strip()]


# ---------- Queries ----------
def list_projects(s: "Session", user: Employee) -> list[Project]:
    q = s.query(Project)
    if user.role == ROLE_PROJECT_MANAGER:
        q = q.filter(Project.project_manager_id == user.id)
    elif user.role == ROLE_ACCOUNT_MANAGER:
        q = q.filter(Project.account_manager_id == user.id)
    elif user.role == ROLE_LEAD:
        q = q.filter(Project.technical_lead_id == user.id)
    elif user.role == ROLE_TECHNICAL_TEAM:
        q = q.filter(
            Project.id.in_(
                select(ProjectEmployee.project_id).where(
                    ProjectEmployee.employee_id == user.id,
                    ProjectEmployee.unassigned_at.is_(None),
                )
            )
        )
    return q.order_by(Project.updated_at.desc(), Project.id.desc()).all()


def get_project(s: "Session", project_id: int, *, for_update: bool = False) -> Project:
    return get_parent(s, PROJECT, project_id, for_update=for_update)


def recent_activity(s: "Session", limit: int = RECENT_ACTIVITY_LIMIT) -> list[ProjectActivityLog]:
    return (
        s.query(ProjectActivityLog)
        .order_by(ProjectActivityLog.timestamp.desc(), ProjectActivityLog.id.desc())
        .limit(limit)
        .all()
    )


def _set_current_statuses(s: "Session", project: Project, statuses: list[str]) -> None:
    """Keep rows for statuses that stay; (project_id, status) is unique."""
    keep = set(statuses)
    for row in list(project.current_statuses):
        if row.status not in keep:
            project.current_statuses.remove(row)
    s.flush()
    present = set(project.statuses)
    for status in statuses:
        if status not in present:
            project.current_statuses.append(ProjectCurrentStatus(status=status))
    s.flush()


# ---------- Create ----------
def create_project(s: "Session", payload: dict, user: Employee) -> Project:
    raise_if_errors(validate_project_payload(payload))

    customer_id = parse_int(payload.get("customerId"), "customerId")
    customer = s.get(Customer, customer_id)
    if customer is None:
        raise NotFound(f"Customer with id {customer_id} not found.")
    source_poc_id = optional_int(payload.get("sourcePocId"), "sourcePocId")
    if source_poc_id is not None and s.get(Poc, source_poc_id) is None:
        raise NotFound(f"PoC with id {source_poc_id} not found.")

    start_date = parse_date(payload.get("startDate"))
    end_date = parse_date(payload.get("endDate"))
    if end_date is not None and end_date < start_date:
        raise ValidationError("End date cannot be before start date.")
    starts_at = datetime.combine(start_date, time.min)
    statuses = _statuses(payload.get("statuses"))
    now = datetime.utcnow()

    project = Project(
        customer_id=customer.id,
        source_poc_id=source_poc_id,
        title=clean_str(payload.get("title")),
        technology=_technology(payload),
        description=clean_str(payload.get("description")),
        last_comment=clean_str(payload.get("lastComment")),
        start_date=start_date,
        end_date=end_date,
        created_by_id=user.id,
        created_at=now,
        updated_at=now,
    )
    s.add(project)
    s.flush()

    def log(action: str, details: dict) -> None:
        record_event(s, actor=user, action=action, entity_type="project", entity_id=project.id, details=details)

    log("PROJECT_CREATED", {"title": project.title})

    holder_ids: list[int] = []
    for key, role, action in _HOLDER_FIELDS:
        employee_id = optional_int(payload.get(key), key)
        if employee_id is None:
            continue
        _prev, holder, _changed = set_role_holder(s, PROJECT, project.id, role, employee_id, assigned_at=starts_at, now=now)
        holder_ids.append(holder.id)
        if role == ENG_ROLE_TECHNICAL_LEAD:
            log(action, {"from": "None", "to": holder.full_name})
    sync_holder_columns(s, PROJECT, project)

    log("FIELD_UPDATED", changed_field("Customer", None, customer.name))
    log("FIELD_UPDATED", changed_field("Technology", None, ", ".join(project.technology)))
    log("FIELD_UPDATED", changed_field("Start Date", None, date_label(start_date)))
    if end_date is not None:
        log("FIELD_UPDATED", changed_field("Target End Date", None, date_label(end_date)))
    log("STATUS_UPDATED", {"from": "None", "to": ", ".join(statuses)})

    _set_current_statuses(s, project, statuses)
    open_status_rows(s, PROJECT, project.id, statuses, started_at=now)

    members = parse_team_payload(
        PROJECT,
        payload.get("initialTeamAssignments"),
        default_assigned_at=starts_at,
        skip_employee_ids=holder_ids,
    )
    apply_team(s, PROJECT, project.id, members, now=now)

    s.flush()
    s.refresh(project)
    logger.info("Project created id=%s by=%s members=%s", project.id, user.id, len(members))
    return project


# ---------- Update ----------
_LOGGED_FIELDS = (
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


def update_project(s: "Session", project_id: int, payload: dict, user: Employee) -> tuple[Project, TeamChanges]:
    project = get_project(s, project_id, for_update=True)
    raise_if_errors(validate_project_payload(payload, partial=True))
    now = datetime.utcnow()

    def log(action: str, details: dict) -> None:
        record_event(s, actor=user, action=action, entity_type="project", entity_id=project.id, details=details)

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
        old, new = getattr(project, column), new_values[column]
        if old != new:
            log("FIELD_UPDATED", changed_field(label, _display(column, old), _display(column, new)))
            setattr(project, column, new)
    if project.end_date is not None and project.end_date < project.start_date:
        raise ValidationError("End date cannot be before start date.")

    if "customerId" in payload:
        customer = s.get(Customer, parse_int(payload.get("customerId"), "customerId"))
        if customer is None:
            raise NotFound(f"Customer with id {payload.get('customerId')} not found.")
        if customer.id != project.customer_id:
            old_name = project.customer.name if project.customer else None
            log("FIELD_UPDATED", changed_field("Customer", old_name, customer.name))
            project.customer_id = customer.id
    if "description" in payload:
        project.description = clean_str(payload.get("description"))
    if "lastComment" in payload:
        project.last_comment = clean_str(payload.get("lastComment"))

    if payload.get("statuses") is not None:
        statuses = _statuses(payload["statuses"])
        old_statuses = project.statuses
        if sorted(old_statuses) != sorted(statuses):
            log("STATUS_UPDATED", {"from": ", ".join(old_statuses) or "None", "to": ", ".join(statuses)})
            replace_statuses(s, PROJECT, project.id, statuses, now=now)
            _set_current_statuses(s, project, statuses)

    for key, role, action in _HOLDER_FIELDS:
        if payload.get(key) is None:
            continue
        previous, holder, changed = set_role_holder(s, PROJECT, project.id, role, parse_int(payload[key], key), now=now)
        if changed:
            log(action, {"from": employee_name(previous), "to": holder.full_name})
    sync_holder_columns(s, PROJECT, project)

    changes = TeamChanges()
    if "teamAssignments" in payload:
        managed = [
            a.employee_id
            for a in active_assignments(s, PROJECT, project.id)
            if a.role in PROJECT.managed_roles
        ]
        members = parse_team_payload(
            PROJECT,
            payload.get("teamAssignments"),
            default_assigned_at=now,
            skip_employee_ids=managed,
        )
        changes = apply_team(s, PROJECT, project.id, members, now=now)
        log_team_changes(s, PROJECT, project.id, changes, user)

    project.updated_at = now
    s.flush()
    s.refresh(project)
    return project, changes


# ---------- Delete ----------
def delete_project(s: "Session", project_id: int, user: Employee) -> dict:
    project = get_project(s, project_id)
    snapshot = serialize_project(project)
    archive_and_delete(s, PROJECT, project, snapshot, user)
    return snapshot
