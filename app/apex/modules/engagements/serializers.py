from __future__ import annotations

from typing import TYPE_CHECKING

from app.apex.constants import (
    ENG_ROLE_ACCOUNT_MANAGER,
    ENG_ROLE_LEAD_ENGINEER,
    ENG_ROLE_PROJECT_MANAGER,
    ENG_ROLE_TECHNICAL_LEAD,
)
from app.apex.modules.employees.service import employee_ref
from app.apex.utils import iso

if TYPE_CHECKING:
    from app.apex.modules.engagements.kinds import EngagementKind

# Team listing order: TL, AM, PM, LE, everyone else; then first name.
_ROLE_ORDER = {
    ENG_ROLE_TECHNICAL_LEAD: 0,
    ENG_ROLE_ACCOUNT_MANAGER: 1,
    ENG_ROLE_PROJECT_MANAGER: 2,
    ENG_ROLE_LEAD_ENGINEER: 3,
}


def team_sort_key(assignment) -> tuple:
    return (_ROLE_ORDER.get(assignment.role, 9), (assignment.employee.first_name or "").lower())


def serialize_assignment(kind: "EngagementKind", a) -> dict:
    e = a.employee
    return {
        "id": a.id,
        kind.id_param: kind.parent_id_of(a),
        "employeeId": a.employee_id,
        "role": a.role,
        "assignedAt": iso(a.assigned_at),
        "unassignedAt": iso(a.unassigned_at),
        "employee": {
            "id": e.id,
            "firstName": e.first_name,
            "lastName": e.last_name,
            "name": e.full_name,
            "email": e.email,
            "jobTitle": e.job_title,
            "companyRole": e.role,
        }
        if e
        else None,
    }


def serialize_comment(kind: "EngagementKind", c) -> dict:
    return {
        "id": c.id,
        "statusCommentId": c.status_comment_id,
        "authorId": c.author_id,
        "comment": c.comment,
        "createdAt": iso(c.created_at),
        "updatedAt": iso(c.updated_at),
        "author": employee_ref(c.author),
    }


def serialize_status(kind: "EngagementKind", st, *, include_comments: bool = False) -> dict:
    body = {
        "id": st.id,
        kind.id_param: kind.parent_id_of(st),
        "status": st.status,
        "startedAt": iso(st.started_at),
        "endedAt": iso(st.ended_at),
    }
    if include_comments:
        body["comments"] = [serialize_comment(kind, c) for c in st.comments]
    return body


def serialize_activity(kind: "EngagementKind", ev) -> dict:
    return {
        "id": ev.id,
        kind.id_param: kind.parent_id_of(ev),
        "activityType": ev.activity_type,
        "details": ev.details or {},
        "timestamp": iso(ev.timestamp),
        "user": {"id": ev.user.id, "name": ev.user.full_name} if ev.user else None,
    }


def serialize_attachment(kind: "EngagementKind", att) -> dict:
    return {
        "id": att.id,
        "uuid": att.uuid,
        kind.id_param: kind.parent_id_of(att),
        "description": att.description,
        "originalFilename": att.original_filename,
        "mimeType": att.mime_type,
        "fileSizeBytes": att.file_size_bytes,
        "createdAt": iso(att.created_at),
        "uploadedBy": employee_ref(att.uploaded_by),
    }
