from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from flask import current_app

from app.apex.activity import record_event
from app.apex.archive import archive_snapshot
from app.apex.errors import Conflict, NotFound, ValidationError
from app.apex.modules.employees.models import Employee
from app.apex.modules.engagements.mentions import extract_mentioned_ids
from app.apex.modules.engagements.team import active_assignments, check_company_role, get_employee
from app.apex.storage import store_upload
from app.apex.utils import clean_str, parse_datetime, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from werkzeug.datastructures import FileStorage
    from app.apex.modules.engagements.kinds import EngagementKind

logger = logging.getLogger(__name__)


def get_parent(s: "Session", kind: "EngagementKind", parent_id: int, *, for_update: bool = False):
    """Load the PoC/Project; FOR UPDATE where the backend supports it."""
    if for_update:
        parent = (
            s.query(kind.model)
            .filter(kind.model.id == parent_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
    else:
        parent = s.get(kind.model, parent_id)
    if parent is None:
        raise NotFound(f"{kind.label} with id {parent_id} not found.")
    return parent


def get_child(s: "Session", model, row_id: int, label: str):
    row = s.get(model, row_id)
    if row is None:
        raise NotFound(f"{label} not found")
    return row


def changed_field(field_name: str, old: Any, new: Any) -> dict:
    return {"field": field_name, "from": old if old not in (None, "", []) else "None", "to": new if new not in (None, "", []) else "None"}


# ---------- Status history ----------
def list_status_comments(s: "Session", kind: "EngagementKind", parent_id: int) -> list:
    model = kind.status_model
    return (
        s.query(model)
        .filter(kind.fk_column(model) == parent_id)
        .order_by(model.started_at.desc(), model.id.desc())
        .all()
    )


def create_status_comment(s: "Session", kind: "EngagementKind", payload: dict):
    parent_id = payload.get(kind.id_param)
    status = clean_str(payload.get("status"))
    started_at = parse_datetime(payload.get("startedAt"))
    if parent_id is None or not status or started_at is None:
        raise ValidationError(f"Missing required fields: {kind.id_param}, status, startedAt")
    parent = get_parent(s, kind, parse_int(parent_id, kind.id_param))
    row = kind.status_model(status=status, started_at=started_at, ended_at=parse_datetime(payload.get("endedAt")))
    setattr(row, kind.fk, parent.id)
    s.add(row)
    s.flush()
    return row


def update_status_comment(s: "Session", kind: "EngagementKind", row, payload: dict):
    touched = False
    if "startedAt" in payload:
        started_at = parse_datetime(payload.get("startedAt"))
        if started_at is None:
            raise ValidationError("startedAt cannot be empty.")
        row.started_at = started_at
        touched = True
    if "endedAt" in payload:
        row.ended_at = parse_datetime(payload.get("endedAt"))
        touched = True
    if "status" in payload:
        status = clean_str(payload.get("status"))
        if not status:
            raise ValidationError("status cannot be empty.")
        row.status = status
        touched = True
    if not touched:
        raise ValidationError("No fields provided for update. Provide startedAt, endedAt or status.")
    if row.ended_at is not None and row.ended_at < row.started_at:
        raise ValidationError("endedAt cannot be before startedAt.")
    s.flush()
    return row


def delete_status_comment(s: "Session", kind: "EngagementKind", row) -> None:
    model = kind.comment_model
    count = s.query(model).filter(model.status_comment_id == row.id).count()
    if count:
        raise Conflict(
            f"Cannot delete this status entry: {count} comment(s) reference it. Delete the comments first."
        )
    s.delete(row)
    s.flush()


# ---------- Comments ----------
def list_comments(s: "Session", kind: "EngagementKind", status_comment_id: int) -> list:
    model = kind.comment_model
    return (
        s.query(model)
        .filter(model.status_comment_id == status_comment_id)
        .order_by(model.created_at.asc(), model.id.asc())
        .all()
    )


def create_comment(s: "Session", kind: "EngagementKind", payload: dict):
    """
    Insert a comment on a status entry. Returns (comment, status_row, mentioned employees);
    the caller sends mention emails after commit.
    """
    status_comment_id = payload.get("statusCommentId")
    author_id = payload.get("authorId")
    text = payload.get("comment")
    if status_comment_id is None or author_id is None or not isinstance(text, str) or not text.strip():
        raise ValidationError("Missing required fields: statusCommentId, authorId, comment")

    status_row = s.get(kind.status_model, parse_int(status_comment_id, "statusCommentId"))
    if status_row is None:
        raise NotFound(f"{kind.label} status entry with id {status_comment_id} not found.")
    author = s.get(Employee, parse_int(author_id, "authorId"))
    if author is None:
        raise NotFound(f"Author (employee) with id {author_id} not found.")

    comment = kind.comment_model(
        status_comment_id=status_row.id,
        author_id=author.id,
        comment=text.strip(),
        created_at=datetime.utcnow(),
    )
    s.add(comment)
    s.flush()

    mentioned_ids = [eid for eid in extract_mentioned_ids(text) if eid != author.id]
    mentioned = s.query(Employee).filter(Employee.id.in_(mentioned_ids)).all() if mentioned_ids else []
    return comment, status_row, mentioned


def update_comment(s: "Session", kind: "EngagementKind", comment, payload: dict):
    text = payload.get("comment")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Comment must be a non-empty string.")
    comment.comment = text.strip()
    comment.updated_at = datetime.utcnow()
    s.flush()
    return comment


# ---------- Assignments ----------
def list_assignments(s: "Session", kind: "EngagementKind", *, parent_id: int | None, employee_id: int | None) -> list:
    model = kind.assignment_model
    q = s.query(model)
    if parent_id is not None:
        q = q.filter(kind.fk_column(model) == parent_id)
    if employee_id is not None:
        q = q.filter(model.employee_id == employee_id)
    return q.order_by(kind.fk_column(model).asc(), model.assigned_at.desc()).all()


def _check_role_slot(s: "Session", kind: "EngagementKind", parent_id: int, employee_id: int, role: str, *, exclude_id: int | None = None) -> None:
    rows = [r for r in active_assignments(s, kind, parent_id, role=role) if r.id != exclude_id]
    if role in kind.single_holder_roles and rows:
        raise Conflict(f"{kind.label} {parent_id} already has an active {role}.")
    if any(r.employee_id == employee_id for r in rows):
        raise Conflict(f"Employee (ID: {employee_id}) is already actively assigned the role '{role}' on this {kind.label}.")


def create_assignment(s: "Session", kind: "EngagementKind", payload: dict, actor: Employee):
    parent_id = payload.get(kind.id_param)
    employee_id = payload.get("employeeId")
    role = clean_str(payload.get("role"))
    if parent_id is None or employee_id is None or not role:
        raise ValidationError(f"Missing required fields: {kind.id_param}, employeeId, role")

    parent = get_parent(s, kind, parse_int(parent_id, kind.id_param))
    employee = get_employee(s, parse_int(employee_id, "employeeId"))
    check_company_role(kind, employee, role)
    _check_role_slot(s, kind, parent.id, employee.id, role)

    row = kind.assignment_model(
        employee_id=employee.id,
        role=role,
        assigned_at=parse_datetime(payload.get("assignedAt")) or datetime.utcnow(),
    )
    setattr(row, kind.fk, parent.id)
    s.add(row)
    s.flush()
    record_event(
        s,
        actor=actor,
        action="TEAM_MEMBER_ASSIGNED",
        entity_type=kind.name,
        entity_id=parent.id,
        details={"member": employee.full_name, "role": role},
    )
    sync_holder_columns(s, kind, parent)
    return row


def update_assignment(s: "Session", kind: "EngagementKind", row, payload: dict, actor: Employee):
    if "role" not in payload and "unassignedAt" not in payload:
        raise ValidationError("No fields provided for update. Provide role or unassignedAt.")
    parent_id = kind.parent_id_of(row)
    old_role = row.role
    was_active = row.unassigned_at is None

    role = row.role
    if "role" in payload:
        role = clean_str(payload.get("role"))
        if not role:
            raise ValidationError("role cannot be empty.")
    unassigned_at = row.unassigned_at
    if "unassignedAt" in payload:
        unassigned_at = parse_datetime(payload.get("unassignedAt"))

    takes_slot = unassigned_at is None and (not was_active or role != old_role)
    if takes_slot or role != old_role:
        check_company_role(kind, row.employee, role)
    if takes_slot:
        _check_role_slot(s, kind, parent_id, row.employee_id, role, exclude_id=row.id)

    row.role = role
    row.unassigned_at = unassigned_at
    s.flush()
    sync_holder_columns(s, kind, get_parent(s, kind, parent_id))

    if was_active and unassigned_at is not None:
        record_event(
            s,
            actor=actor,
            action="TEAM_MEMBER_UNASSIGNED",
            entity_type=kind.name,
            entity_id=parent_id,
            details={"member": row.employee.full_name, "role": old_role},
        )
    elif takes_slot:
        record_event(
            s,
            actor=actor,
            action="TEAM_MEMBER_ASSIGNED",
            entity_type=kind.name,
            entity_id=parent_id,
            details={"member": row.employee.full_name, "role": role},
        )
    return row


def delete_assignment(s: "Session", kind: "EngagementKind", row, actor: Employee) -> None:
    parent_id = kind.parent_id_of(row)
    if row.unassigned_at is None and row.role in kind.managed_roles:
        others = [r for r in active_assignments(s, kind, parent_id, role=row.role) if r.id != row.id]
        if not others:
            raise ValidationError(
                f"Cannot delete the only active {row.role} of this {kind.label}. Assign a replacement first."
            )
    record_event(
        s,
        actor=actor,
        action="TEAM_MEMBER_UNASSIGNED",
        entity_type=kind.name,
        entity_id=parent_id,
        details={"member": row.employee.full_name, "role": row.role},
    )
    s.delete(row)
    s.flush()
    sync_holder_columns(s, kind, get_parent(s, kind, parent_id))


def sync_holder_columns(s: "Session", kind: "EngagementKind", parent) -> None:
    """Projects mirror their single-holder roles on their own columns; PoCs have none."""
    columns = getattr(parent, "HOLDER_COLUMNS", None)
    if not columns:
        return
    for role, column in columns.items():
        rows = active_assignments(s, kind, parent.id, role=role)
        setattr(parent, column, rows[0].employee_id if rows else None)
    s.flush()


# ---------- Activity ----------
def list_activity(s: "Session", kind: "EngagementKind", parent_id: int, *, limit: int | None = None) -> list:
    model = kind.activity_model
    q = s.query(model).filter(kind.fk_column(model) == parent_id).order_by(model.timestamp.desc(), model.id.desc())
    if limit:
        q = q.limit(limit)
    return q.all()


# ---------- Attachments ----------
def upload_attachment(
    s: "Session",
    kind: "EngagementKind",
    parent,
    file: "FileStorage | None",
    description: str | None,
    user: Employee,
):
    if file is None or not file.filename:
        raise ValidationError("No file uploaded.")
    description = clean_str(description)
    if not description:
        raise ValidationError("Description is required.")

    stored = store_upload(
        current_app.config, kind.name, parent.id, file.filename, file.read(), file.mimetype or None
    )

    att = kind.attachment_model(
        uploaded_by_id=user.id,
        description=description,
        original_filename=file.filename,
        storage_key=stored.key,
        mime_type=file.mimetype or "application/octet-stream",
        file_size_bytes=stored.size_bytes,
        sha256=stored.sha256,
    )
    setattr(att, kind.fk, parent.id)
    s.add(att)
    s.flush()
    record_event(
        s,
        actor=user,
        action="ATTACHMENT_UPLOADED",
        entity_type=kind.name,
        entity_id=parent.id,
        details={"filename": att.original_filename},
    )
    logger.info("%s attachment uploaded id=%s key=%s size=%s", kind.label, parent.id, stored.key, stored.size_bytes)
    return att


def find_attachment(s: "Session", attachment_uuid: str):
    """Look the uuid up in PoC attachments first, then Project attachments."""
    from app.apex.modules.engagements.kinds import POC, PROJECT

    for kind in (POC, PROJECT):
        model = kind.attachment_model
        att = s.query(model).filter(model.uuid == attachment_uuid).one_or_none()
        if att is not None:
            return kind, att
    raise NotFound("Attachment not found.")


# ---------- Shared by PoC/Project create, update, delete ----------
def date_label(value) -> str:
    return value.isoformat() if value is not None else "None"


def log_team_changes(s: "Session", kind: "EngagementKind", parent_id: int, changes, actor: Employee | None) -> None:
    for employee, role in changes.assigned:
        record_event(
            s, actor=actor, action="TEAM_MEMBER_ASSIGNED", entity_type=kind.name, entity_id=parent_id,
            details={"member": employee.full_name, "role": role},
        )
    for employee, _old_role, new_role in changes.role_changed:
        record_event(
            s, actor=actor, action="TEAM_MEMBER_ASSIGNED", entity_type=kind.name, entity_id=parent_id,
            details={"member": employee.full_name, "role": new_role},
        )
    for employee, role in changes.unassigned:
        record_event(
            s, actor=actor, action="TEAM_MEMBER_UNASSIGNED", entity_type=kind.name, entity_id=parent_id,
            details={"member": employee.full_name, "role": role},
        )


def archive_and_delete(s: "Session", kind: "EngagementKind", parent, snapshot: dict, actor: Employee) -> None:
    """Snapshot into archived_records, then delete; child rows go by cascade. Stored files are kept."""
    archive_snapshot(s, kind.name, parent.id, snapshot, actor=actor)
    s.delete(parent)
    s.flush()
    logger.info("%s archived and deleted id=%s by=%s", kind.label, snapshot.get("id"), actor.id if actor else None)
