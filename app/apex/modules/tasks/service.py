from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from app.apex.activity import record_event
from app.apex.constants import (
    DEFAULT_TASK_PRIORITY,
    TASK_PRIORITIES,
    TASK_STATUS_COMPLETED,
    TASK_STATUS_NOT_STARTED,
    TASK_STATUSES,
)
from app.apex.errors import NotFound, ValidationError, raise_if_errors
from app.apex.modules.employees.models import Employee
from app.apex.modules.projects.models import Project
from app.apex.modules.tasks.models import ProjectTask, TaskAssignee
from app.apex.utils import clean_str, iso, optional_int, parse_date, parse_int

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def serialize_task(t: ProjectTask) -> dict:
    return {
        "id": t.id,
        "projectId": t.project_id,
        "parentTaskId": t.parent_task_id,
        "taskName": t.task_name,
        "description": t.description,
        "status": t.status,
        "priority": t.priority,
        "dueDate": iso(t.due_date),
        "tags": t.tags or [],
        "assignees": [{"id": e.id, "name": e.full_name} for e in t.assignees],
        "createdBy": t.created_by_id,
        "createdAt": iso(t.created_at),
        "updatedAt": iso(t.updated_at),
    }


def task_tree(tasks: list[ProjectTask]) -> list[dict]:
    """Nest a project's flat task list: top-level tasks with their `subtasks`, recursively."""
    children: dict[int | None, list[ProjectTask]] = {}
    for t in sorted(tasks, key=lambda t: (t.created_at, t.id)):
        children.setdefault(t.parent_task_id, []).append(t)

    def build(parent_id: int | None) -> list[dict]:
        out = []
        for t in children.get(parent_id, []):
            body = serialize_task(t)
            body["subtasks"] = build(t.id)
            out.append(body)
        return out

    return build(None)


def _tags(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValidationError("tags must be a list.")
    return [str(v).strip() for v in value if str(v).strip()]


def _assignee_ids(value: Any) -> list[int]:
    if not isinstance(value, list):
        raise ValidationError("assignees must be a list of employee ids.")
    ids: list[int] = []
    for raw in value:
        eid = parse_int(raw, "assignees")
        if eid not in ids:
            ids.append(eid)
    return ids


def _resolve_assignees(s: "Session", ids: list[int]) -> list[Employee]:
    if not ids:
        return []
    found = {e.id: e for e in s.query(Employee).filter(Employee.id.in_(ids)).all()}
    missing = [str(i) for i in ids if i not in found]
    if missing:
        raise NotFound(f"Employee(s) not found: {', '.join(missing)}")
    return [found[i] for i in ids]


def _names(employees: list[Employee]) -> str:
    return ", ".join(e.full_name for e in employees) or "None"


def validate_task_payload(payload: dict, *, partial: bool = False) -> list[str]:
    errors: list[str] = []
    if not partial:
        missing = [key for key in ("projectId", "taskName", "createdBy") if payload.get(key) in (None, "")]
        if missing:
            errors.append(f"Missing required fields: {', '.join(missing)}")
    if "taskName" in payload and payload.get("taskName") is not None and not clean_str(payload.get("taskName")):
        errors.append("taskName cannot be empty.")
    status = payload.get("status")
    if status is not None and status not in TASK_STATUSES:
        errors.append(f"Invalid task status '{status}'. Must be one of: {', '.join(TASK_STATUSES)}")
    priority = payload.get("priority")
    if priority is not None and priority not in TASK_PRIORITIES:
        errors.append(f"Invalid task priority '{priority}'. Must be one of: {', '.join(TASK_PRIORITIES)}")
    return errors


def list_tasks(s: "Session", project_id: int) -> list[ProjectTask]:
    return (
        s.query(ProjectTask)
        .filter(ProjectTask.project_id == project_id)
        .order_by(ProjectTask.created_at.asc(), ProjectTask.id.asc())
        .all()
    )


def get_task(s: "Session", task_id: int) -> ProjectTask:
    task = s.get(ProjectTask, task_id)
    if task is None:
        raise NotFound("Task not found.")
    return task


def create_task(s: "Session", payload: dict, user: Employee) -> ProjectTask:
    raise_if_errors(validate_task_payload(payload))
    project_id = parse_int(payload.get("projectId"), "projectId")
    project = s.get(Project, project_id)
    if project is None:
        raise NotFound(f"Project with id {project_id} not found.")
    created_by = s.get(Employee, parse_int(payload.get("createdBy"), "createdBy"))
    if created_by is None:
        raise NotFound(f"Employee with id {payload.get('createdBy')} not found.")

    parent = None
    parent_id = optional_int(payload.get("parentTaskId"), "parentTaskId")
    if parent_id is not None:
        parent = s.get(ProjectTask, parent_id)
        if parent is None or parent.project_id != project.id:
            raise ValidationError("parentTaskId must reference a task in the same project.")

    assignees = _resolve_assignees(s, _assignee_ids(payload.get("assignees") or []))
    now = datetime.utcnow()
    task = ProjectTask(
        project_id=project.id,
        parent_task_id=parent.id if parent else None,
        task_name=clean_str(payload.get("taskName")),
        description=clean_str(payload.get("description")),
        status=payload.get("status") or TASK_STATUS_NOT_STARTED,
        priority=payload.get("priority") or DEFAULT_TASK_PRIORITY,
        due_date=parse_date(payload.get("dueDate")),
        tags=_tags(payload.get("tags")),
        created_by_id=created_by.id,
        created_at=now,
        updated_at=now,
    )
    task.assignee_links = [TaskAssignee(employee_id=e.id) for e in assignees]
    s.add(task)
    s.flush()

    details = {"taskName": task.task_name}
    if parent is not None:
        details["parentTaskName"] = parent.task_name
    record_event(s, actor=user, action="TASK_CREATED", entity_type="project", entity_id=project.id, details=details)
    logger.info("Task created id=%s project_id=%s", task.id, project.id)
    return task


def update_task(s: "Session", task: ProjectTask, payload: dict, user: Employee) -> ProjectTask:
    raise_if_errors(validate_task_payload(payload, partial=True))
    name = task.task_name

    def log(field: str, old, new) -> None:
        record_event(
            s,
            actor=user,
            action="TASK_UPDATED",
            entity_type="project",
            entity_id=task.project_id,
            details={"taskName": name, "field": field, "from": old, "to": new},
        )

    status = payload.get("status")
    if status and status != task.status:
        if status == TASK_STATUS_COMPLETED:
            record_event(
                s,
                actor=user,
                action="TASK_COMPLETED",
                entity_type="project",
                entity_id=task.project_id,
                details={"taskName": name},
            )
        else:
            log("Status", task.status, status)
        task.status = status

    new_name = clean_str(payload.get("taskName"))
    if new_name and new_name != task.task_name:
        log("Name", task.task_name, new_name)
        task.task_name = new_name

    priority = payload.get("priority")
    if priority and priority != task.priority:
        log("Priority", task.priority, priority)
        task.priority = priority

    if "dueDate" in payload:
        due = parse_date(payload.get("dueDate"))
        if due != task.due_date:
            log("Due Date", iso(task.due_date) or "None", iso(due) or "None")
            task.due_date = due

    if "tags" in payload:
        tags = _tags(payload.get("tags"))
        old_tags = task.tags or []
        if sorted(old_tags) != sorted(tags):
            log("Tags", ", ".join(old_tags) or "None", ", ".join(tags) or "None")
            task.tags = tags

    if "description" in payload:
        task.description = clean_str(payload.get("description"))

    if payload.get("assignees") is not None:
        new_assignees = _resolve_assignees(s, _assignee_ids(payload["assignees"]))
        old_assignees = task.assignees
        if sorted(e.id for e in old_assignees) != sorted(e.id for e in new_assignees):
            log("Assignees", _names(old_assignees), _names(new_assignees))
        task.assignee_links.clear()
        s.flush()
        task.assignee_links.extend(TaskAssignee(employee_id=e.id) for e in new_assignees)

    task.updated_at = datetime.utcnow()
    s.flush()
    return task


def delete_task(s: "Session", task: ProjectTask, user: Employee) -> None:
    record_event(
        s,
        actor=user,
        action="TASK_DELETED",
        entity_type="project",
        entity_id=task.project_id,
        details={"taskName": task.task_name},
    )
    s.delete(task)
    s.flush()
